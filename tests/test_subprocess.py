"""Tests for the script process supervisor."""

import asyncio
import os
import stat

import pytest

from helpers import wait_for
from scriptdeck.primitives.subprocess import ProcessSupervisor, build_command


class TestBuildCommand:
    """Test bash command line construction."""

    def test_plain(self):
        assert build_command("/s/a.sh") == "exec bash /s/a.sh"

    def test_path_is_quoted(self):
        assert build_command("/s/my script.sh") == "exec bash '/s/my script.sh'"

    def test_env_exported_and_quoted(self):
        command = build_command("/s/a.sh", {"GREETING": "hello world"}, "x")
        assert command == "export GREETING='hello world'; exec bash /s/a.sh x"

    def test_invalid_env_names_skipped(self):
        command = build_command("/s/a.sh", {"1BAD": "x", "GOOD": "y", "A-B": "z"})
        assert command == "export GOOD=y; exec bash /s/a.sh"

    def test_without_replacing_shell(self):
        assert build_command("/s/a.sh", replace_shell=False) == "bash /s/a.sh"


@pytest.mark.asyncio
class TestExecute:
    """Test ProcessSupervisor.execute against real bash scripts."""

    async def test_success_captures_output(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "ok.sh", "echo hello\necho oops >&2\n")
        result = await ProcessSupervisor().execute(path)

        assert result.success is True
        assert result.exit_code == 0
        assert result.stdout == "hello"
        assert result.stderr == "oops"
        assert result.timed_out is False
        assert result.duration_ms >= 0

    async def test_non_zero_exit(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "fail.sh", "echo broken >&2\nexit 3")
        result = await ProcessSupervisor().execute(path)

        assert result.success is False
        assert result.exit_code == 3
        assert result.stderr == "broken"

    async def test_env_and_args(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "greet.sh", 'echo "$GREETING|$1|$2"')
        result = await ProcessSupervisor().execute(path, env_vars={"GREETING": "hi there"}, args='"a b" c')

        assert result.stdout == "hi there|a b|c"

    async def test_timeout_kills_process(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "slow.sh", "sleep 10")
        result = await ProcessSupervisor().execute(path, timeout_seconds=1)

        assert result.timed_out is True
        assert result.success is False
        assert result.exit_code == -1
        assert result.duration_ms < 5000

    async def test_timeout_reaches_background_children(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "forks.sh", "(sleep 10; echo late) &\nsleep 10")
        result = await ProcessSupervisor().execute(path, timeout_seconds=1)

        assert result.timed_out is True
        assert "late" not in result.stdout
        assert result.duration_ms < 5000

    async def test_deadline_covers_children_after_shell_exit(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "detach.sh", "sleep 8 &\nexit 0")
        result = await ProcessSupervisor().execute(path, timeout_seconds=1)

        assert result.timed_out is True
        assert result.success is False
        assert result.duration_ms < 5000

    async def test_overlong_line_is_captured(self, scripts_dir, make_script):
        path = make_script(
            scripts_dir,
            "wide.sh",
            "head -c 2000000 /dev/zero | tr '\\0' x\necho\necho after",
        )
        seen = []
        result = await ProcessSupervisor().execute(path, on_output=lambda line, err: seen.append(len(line)))

        assert result.success is True
        assert result.exit_code == 0
        lines = result.stdout.split("\n")
        assert lines == ["x" * 2000000, "after"]
        assert seen == [2000000, 5]

    async def test_unterminated_overlong_output(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "tail.sh", "head -c 1500000 /dev/zero | tr '\\0' y")
        result = await ProcessSupervisor().execute(path)

        assert result.success is True
        assert result.stdout == "y" * 1500000

    async def test_zero_timeout_never_kills(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "nap.sh", "sleep 0.3\necho done")
        result = await ProcessSupervisor().execute(path, timeout_seconds=0)

        assert result.success is True
        assert result.stdout == "done"

    async def test_missing_script(self, tmp_path):
        result = await ProcessSupervisor().execute(str(tmp_path / "gone.sh"))

        assert result.success is False
        assert result.exit_code == -1
        assert "gone.sh" in result.stderr

    async def test_spawn_failure(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "ok.sh", "echo hello")
        result = await ProcessSupervisor(shell="/nonexistent/bash").execute(path)

        assert result.success is False
        assert result.exit_code == -1
        assert result.stderr

    async def test_null_byte_in_args_is_spawn_failure(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "ok.sh", "echo hello")
        result = await ProcessSupervisor().execute(path, args="x\x00y")

        assert result.success is False
        assert result.exit_code == -1
        assert "null" in result.stderr

    async def test_marks_script_executable(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "plain.sh", "echo hi", mode=0o644)
        await ProcessSupervisor().execute(path)

        assert os.stat(path).st_mode & stat.S_IXUSR

    async def test_streams_lines(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "lines.sh", "echo one\necho two >&2\necho three")
        seen = []
        result = await ProcessSupervisor().execute(path, on_output=lambda line, err: seen.append((line, err)))

        assert [line for line, err in seen if not err] == ["one", "three"]
        assert [line for line, err in seen if err] == ["two"]
        assert result.stdout == "one\nthree"

    async def test_failing_output_callback_is_ignored(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "ok.sh", "echo hello")

        def explode(line, is_error):
            raise RuntimeError("boom")

        result = await ProcessSupervisor().execute(path, on_output=explode)
        assert result.success is True
        assert result.stdout == "hello"


@pytest.mark.asyncio
class TestKill:
    """Test killing live processes."""

    async def test_kill_running(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "slow.sh", "sleep 10")
        supervisor = ProcessSupervisor()
        task = asyncio.create_task(supervisor.execute(path))
        await wait_for(lambda: supervisor.is_running(path))

        assert supervisor.running_paths() == [path]
        assert supervisor.kill(path) is True
        result = await task

        assert result.exit_code == -1
        assert result.timed_out is False
        assert result.success is False
        assert supervisor.is_running(path) is False

    async def test_kill_reaches_children_after_shell_exit(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "detach.sh", "sleep 8 &\necho started\nexit 0")
        supervisor = ProcessSupervisor()
        seen = []
        task = asyncio.create_task(supervisor.execute(path, on_output=lambda line, err: seen.append(line)))
        await wait_for(lambda: seen == ["started"])
        await asyncio.sleep(0.2)

        assert supervisor.is_running(path) is True
        assert supervisor.kill(path) is True
        result = await asyncio.wait_for(task, 5)

        assert result.stdout == "started"
        assert result.timed_out is False
        assert supervisor.is_running(path) is False

    async def test_kill_unknown(self):
        assert ProcessSupervisor().kill("/nowhere/a.sh") is False

    async def test_kill_after_exit(self, scripts_dir, make_script):
        path = make_script(scripts_dir, "ok.sh", "true")
        supervisor = ProcessSupervisor()
        await supervisor.execute(path)
        assert supervisor.kill(path) is False
