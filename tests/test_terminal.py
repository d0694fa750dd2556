"""Tests for terminal-mode launches."""

import pytest

from scriptdeck.primitives.errors import LaunchError
from scriptdeck.runtime.terminal import TerminalLauncher, terminal_argv


class TestTerminalArgv:
    """Test argv construction per platform and template."""

    def test_template_substitution(self):
        argv = terminal_argv("bash /s/a.sh", ["kitty", "bash", "-c", "{command}; read"])
        assert argv == ["kitty", "bash", "-c", "bash /s/a.sh; read"]

    def test_linux_default(self):
        argv = terminal_argv("bash /s/a.sh", platform="linux")
        assert argv == ["x-terminal-emulator", "-e", "bash", "-c", "bash /s/a.sh"]

    def test_macos_uses_terminal_app(self):
        argv = terminal_argv("bash '/s/my script.sh'", platform="darwin")
        assert argv[0] == "osascript"
        assert argv[2] == "tell application \"Terminal\" to do script \"bash '/s/my script.sh'\""


@pytest.mark.asyncio
class TestTerminalLauncher:
    """Test launching through a configured template."""

    async def test_launch_returns_immediately(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "a.sh", "sleep 10")
        await TerminalLauncher(["true", "{command}"]).launch(path, {"A": "1"}, "x")

    async def test_missing_terminal_program(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "a.sh", "true")
        launcher = TerminalLauncher(["/nonexistent/terminal", "{command}"])
        with pytest.raises(LaunchError) as exc_info:
            await launcher.launch(path)
        assert exc_info.value.script_path == path
