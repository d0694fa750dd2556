"""Terminal-mode launcher.

Opens a script in a terminal emulator and returns immediately. Terminal
runs are not supervised, so they have no exit code and cannot be timed out
or cancelled.

Launcher types:
    configured: ``settings.terminal_command``, an argv template whose
        elements may contain a ``{command}`` placeholder
    macOS: osascript driving Terminal.app
    default: x-terminal-emulator -e bash -c {command}
"""

import asyncio
import sys
from typing import Dict, List, Optional, Set

from scriptdeck.primitives.errors import LaunchError
from scriptdeck.primitives.subprocess import build_command
from scriptdeck.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TERMINAL_COMMAND = ["x-terminal-emulator", "-e", "bash", "-c", "{command}"]


def _applescript_string(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def terminal_argv(command: str, template: Optional[List[str]] = None, platform: str = sys.platform) -> List[str]:
    """Argv that opens ``command`` in a terminal window."""
    if template:
        return [part.replace("{command}", command) for part in template]
    if platform == "darwin":
        return [
            "osascript",
            "-e",
            f"tell application \"Terminal\" to do script {_applescript_string(command)}",
            "-e",
            "tell application \"Terminal\" to activate",
        ]
    return [part.replace("{command}", command) for part in DEFAULT_TERMINAL_COMMAND]


class TerminalLauncher:
    """Fire-and-forget terminal launches."""

    def __init__(self, template: Optional[List[str]] = None):
        self.template = template
        self._reapers: Set[asyncio.Task] = set()

    async def launch(
        self,
        script_path: str,
        env_vars: Optional[Dict[str, str]] = None,
        args: str = "",
    ) -> None:
        """Open the script in a terminal.

        Raises:
            LaunchError: If the terminal program could not be started.
        """
        command = build_command(script_path, env_vars, args, replace_shell=False)
        argv = terminal_argv(command, self.template)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise LaunchError(script_path, str(e), cause=e)

        logger.info("Opened %s in terminal (pid %s)", script_path, process.pid)
        reaper = asyncio.create_task(process.wait())
        self._reapers.add(reaper)
        reaper.add_done_callback(self._reapers.discard)
