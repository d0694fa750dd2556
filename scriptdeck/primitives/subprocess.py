"""Script process supervisor.

Spawns one script under bash, streams its output, enforces an optional
deadline and reports an ExecutionResult. Expected failures (spawn errors,
non-zero exits, timeouts) are returned as results, never raised.

Each script runs in its own session so that a kill reaches the whole
process group. A run ends only once the shell has exited and its output
pipes are closed; background children still holding the pipes keep the run
alive, and the deadline and kill() cover them.
"""

import asyncio
import os
import re
import shlex
import signal
import stat
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from scriptdeck.constants import UNKNOWN_EXIT_CODE
from scriptdeck.models import ExecutionResult
from scriptdeck.utils.logger import get_logger

logger = get_logger(__name__)

OutputCallback = Callable[[str, bool], None]

_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# StreamReader buffer limit. Longer lines are read in chunks of this size.
_LINE_LIMIT = 1024 * 1024


@dataclass
class _Supervised:
    """Live bookkeeping for one spawned process."""

    process: asyncio.subprocess.Process
    timed_out: bool = False
    # Set once the result is determined: shell exited and output closed.
    finished: bool = False
    stdout: List[str] = field(default_factory=list)
    stderr: List[str] = field(default_factory=list)


def build_command(
    script_path: str,
    env_vars: Optional[Dict[str, str]] = None,
    args: str = "",
    replace_shell: bool = True,
) -> str:
    """Build the bash command line for a script.

    Environment variables are exported ahead of the invocation, the script
    path is single-quoted and the argument string is appended verbatim.
    With ``replace_shell`` the outer shell execs the script.
    """
    parts: List[str] = []
    for key, value in (env_vars or {}).items():
        if not _ENV_NAME.match(key):
            logger.warning("Skipping invalid environment variable name %r for %s", key, script_path)
            continue
        parts.append(f"export {key}={shlex.quote(str(value))}")

    invocation = f"bash {shlex.quote(script_path)}"
    if replace_shell:
        invocation = "exec " + invocation
    if args and args.strip():
        invocation += f" {args.strip()}"
    parts.append(invocation)
    return "; ".join(parts)


class ProcessSupervisor:
    """Runs scripts and tracks live processes by script path.

    The registry is private; callers interact through execute(), kill()
    and is_running().
    """

    def __init__(self, shell: str = "bash"):
        self.shell = shell
        self._processes: Dict[str, _Supervised] = {}

    def is_running(self, script_path: str) -> bool:
        supervised = self._processes.get(script_path)
        return supervised is not None and not supervised.finished

    def running_paths(self) -> List[str]:
        return [path for path in self._processes if self.is_running(path)]

    async def execute(
        self,
        script_path: str,
        env_vars: Optional[Dict[str, str]] = None,
        args: str = "",
        timeout_seconds: int = 0,
        on_output: Optional[OutputCallback] = None,
    ) -> ExecutionResult:
        """Run a script to completion.

        Args:
            script_path: Absolute path of the script.
            env_vars: Variables exported into the shell before invocation.
            args: Argument string appended to the command line.
            timeout_seconds: Kill deadline in seconds, 0 for none.
            on_output: Optional callback receiving (line, is_error) per line.

        Returns:
            ExecutionResult with exit code, trimmed output and timing.
        """
        start_time = time.monotonic()

        if not os.path.isfile(script_path):
            return ExecutionResult(
                success=False,
                exit_code=UNKNOWN_EXIT_CODE,
                stdout="",
                stderr=f"No such script: {script_path}",
                duration_ms=self._elapsed_ms(start_time),
                timed_out=False,
            )

        await self._ensure_executable(script_path)
        command = build_command(script_path, env_vars, args)

        try:
            process = await asyncio.create_subprocess_exec(
                self.shell,
                "-c",
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
                limit=_LINE_LIMIT,
            )
        except (OSError, ValueError) as e:
            logger.error("Failed to spawn %s: %s", script_path, e)
            return ExecutionResult(
                success=False,
                exit_code=UNKNOWN_EXIT_CODE,
                stdout="",
                stderr=str(e),
                duration_ms=self._elapsed_ms(start_time),
                timed_out=False,
            )

        supervised = _Supervised(process=process)
        self._processes[script_path] = supervised
        logger.debug("Spawned %s (pid %s, timeout %ss)", script_path, process.pid, timeout_seconds)

        timer: Optional[asyncio.TimerHandle] = None
        if timeout_seconds and timeout_seconds > 0:
            loop = asyncio.get_running_loop()
            timer = loop.call_later(timeout_seconds, self._expire, script_path, supervised)

        error: Optional[str] = None
        try:
            await asyncio.gather(
                self._pump(process.stdout, supervised.stdout, False, on_output),
                self._pump(process.stderr, supervised.stderr, True, on_output),
            )
            await process.wait()
        except asyncio.CancelledError:
            self._signal_group(process)
            raise
        except Exception as e:
            logger.error("Lost track of %s: %s", script_path, e)
            error = str(e)
            self._signal_group(process)
            await process.wait()
        finally:
            supervised.finished = True
            if timer is not None:
                timer.cancel()
            if self._processes.get(script_path) is supervised:
                del self._processes[script_path]

        return_code = process.returncode
        if error is not None or return_code is None or return_code < 0:
            exit_code = UNKNOWN_EXIT_CODE
        else:
            exit_code = return_code

        stderr = "\n".join(supervised.stderr).rstrip()
        if error:
            stderr = f"{stderr}\n{error}".strip()

        result = ExecutionResult(
            success=exit_code == 0 and not supervised.timed_out and error is None,
            exit_code=exit_code,
            stdout="\n".join(supervised.stdout).rstrip(),
            stderr=stderr,
            duration_ms=self._elapsed_ms(start_time),
            timed_out=supervised.timed_out,
        )
        logger.info(
            "Finished %s: exit=%s timed_out=%s duration=%sms",
            script_path,
            result.exit_code,
            result.timed_out,
            result.duration_ms,
        )
        return result

    def kill(self, script_path: str) -> bool:
        """Send a kill signal to a script's live process.

        Returns:
            True if a live process was found and signalled.
        """
        supervised = self._processes.get(script_path)
        if supervised is None or supervised.finished:
            return False
        logger.info("Killing %s (pid %s)", script_path, supervised.process.pid)
        return self._signal_group(supervised.process)

    def _expire(self, script_path: str, supervised: _Supervised) -> None:
        # The shell may have exited while background children still hold
        # its output open; the deadline covers them too.
        if supervised.finished:
            return
        supervised.timed_out = True
        logger.warning("Timeout reached for %s, killing pid %s", script_path, supervised.process.pid)
        self._signal_group(supervised.process)

    def _signal_group(self, process: asyncio.subprocess.Process) -> bool:
        """SIGKILL the script's process group.

        The group outlives the shell while any child is alive, so this still
        reaches background children after the shell has been reaped.
        """
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, signal.SIGKILL)
            elif process.returncode is None:
                process.kill()
            else:
                return False
        except ProcessLookupError:
            return False
        except PermissionError:
            if process.returncode is not None:
                return False
            try:
                process.kill()
            except ProcessLookupError:
                return False
        return True

    async def _pump(
        self,
        stream: Optional[asyncio.StreamReader],
        sink: List[str],
        is_error: bool,
        on_output: Optional[OutputCallback],
    ) -> None:
        if stream is None:
            return
        while True:
            raw = await _read_line(stream)
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            sink.append(line)
            if on_output is not None:
                try:
                    on_output(line, is_error)
                except Exception as e:
                    logger.warning("Output callback failed: %s", e)

    async def _ensure_executable(self, script_path: str) -> None:
        try:
            await asyncio.to_thread(_add_exec_bits, script_path)
        except OSError as e:
            logger.warning("Could not mark %s executable: %s", script_path, e)

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)


def _add_exec_bits(script_path: str) -> None:
    mode = os.stat(script_path).st_mode
    wanted = mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
    if wanted != mode:
        os.chmod(script_path, wanted)


async def _read_line(stream: asyncio.StreamReader) -> bytes:
    """Read one line of any length; empty bytes at EOF.

    StreamReader.readline() gives up on lines longer than the buffer limit
    and throws the buffered data away, so overlong lines are collected in
    chunks instead.
    """
    chunks: List[bytes] = []
    while True:
        try:
            chunks.append(await stream.readuntil(b"\n"))
            break
        except asyncio.IncompleteReadError as e:
            chunks.append(e.partial)
            break
        except asyncio.LimitOverrunError as e:
            chunks.append(await stream.read(e.consumed))
    return b"".join(chunks)
