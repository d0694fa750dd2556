"""Script execution orchestrator.

Single owner of run/queue state. Every state transition happens in a
synchronous section of the event loop (no await between the check and the
update), so no two state transitions can interleave.

Per-script state machine:
    Idle -> Running -> Idle                 (direct run)
    Idle -> Queued -> Running -> Idle       (admission-limited run)
    Queued -> Idle                          (dequeue, force-reset)
    Running -> Idle                         (completion, force-reset)

A force-reset run is detached: if its process later exits, the result is
discarded and nothing is promoted.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Set

from scriptdeck.constants import Defaults
from scriptdeck.loaders.settings_loader import SettingsManager
from scriptdeck.models import ExecutionEntry, RunMode, ScriptRecord, ScriptView, Settings
from scriptdeck.notify import CompletionEvent, LoggingNotifier, Notifier
from scriptdeck.persistence.history import HistoryStore
from scriptdeck.persistence.store import open_store
from scriptdeck.primitives.errors import ScanError, ScriptNotFound, StoreError
from scriptdeck.primitives.subprocess import ProcessSupervisor
from scriptdeck.runtime.profile_resolver import ProfileResolver, RunParameters
from scriptdeck.runtime.terminal import TerminalLauncher
from scriptdeck.scanner import FolderWatch, scan, watch
from scriptdeck.utils.logger import get_logger
from scriptdeck.utils.path_utils import script_name

logger = get_logger(__name__)

ViewListener = Callable[[List[ScriptView]], None]
OutputListener = Callable[[str, str, bool], None]
CompletionListener = Callable[[str, ExecutionEntry], None]


class ScriptState(str, Enum):
    IDLE = "idle"
    QUEUED = "queued"
    RUNNING = "running"


@dataclass(eq=False)
class _Run:
    """One admitted background run. Identity is the detach token."""

    path: str
    params: RunParameters
    started_at: str = ""
    task: Optional[asyncio.Task] = field(default=None, repr=False)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ScriptOrchestrator:
    """Bounded-concurrency FIFO runner for a folder of scripts."""

    def __init__(
        self,
        settings_manager: Optional[SettingsManager] = None,
        history: Optional[HistoryStore] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        notifier: Optional[Notifier] = None,
        terminal: Optional[TerminalLauncher] = None,
        on_output: Optional[OutputListener] = None,
        watch_interval: float = Defaults.WATCH_INTERVAL,
    ):
        self.settings_manager = settings_manager or SettingsManager()
        self.history = history or HistoryStore(open_store())
        self.supervisor = supervisor or ProcessSupervisor()
        self.notifier = notifier or LoggingNotifier()
        self.terminal = terminal or TerminalLauncher()
        self.on_output = on_output
        self.watch_interval = watch_interval

        self._scripts: List[str] = []
        self._running: Dict[str, _Run] = {}
        self._queue: Deque[str] = deque()
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[ViewListener] = []
        self._completion_listeners: List[CompletionListener] = []
        self._watches: List[FolderWatch] = []
        self._rescan_task: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self.settings_manager.settings

    async def start(self, watch_folders: bool = False) -> List[ScriptView]:
        """Load settings and history, scan folders and optionally watch them."""
        self.settings_manager.load()
        self._apply_settings()
        await self.history.load()
        await self.rescan()
        if watch_folders:
            await self._rewatch()
        return self.views()

    async def stop(self, kill_running: bool = False) -> None:
        """Dispose watchers; with ``kill_running`` also kill and await live runs."""
        for subscription in self._watches:
            subscription.dispose()
        self._watches = []
        if self._rescan_task is not None:
            self._rescan_task.cancel()
            self._rescan_task = None
        if kill_running:
            # Includes processes detached by force_reset.
            for path in self.supervisor.running_paths():
                self.supervisor.kill(path)
            self._queue.clear()
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)

    async def wait_idle(self) -> None:
        """Wait until nothing is running or queued."""
        await self._idle.wait()

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def rescan(self) -> List[ScriptView]:
        """Rescan folders and reconcile run/queue state.

        Scripts that vanished are dropped from the queue and the view.
        Running and queued state of surviving scripts is preserved.

        Raises:
            ScanError: If no configured folder is readable. State is unchanged.
        """
        paths = await scan(self.settings.folders)
        present = set(paths)

        dropped = [path for path in self._queue if path not in present]
        for path in dropped:
            logger.info("Dropping %s from queue: no longer on disk", path)
        self._queue = deque(path for path in self._queue if path in present)
        self._scripts = paths

        self._check_idle()
        self._emit()
        return self.views()

    def _on_folder_change(self) -> None:
        if self._rescan_task is not None and not self._rescan_task.done():
            return
        self._rescan_task = asyncio.create_task(self._rescan_quietly())

    async def _rescan_quietly(self) -> None:
        try:
            await self.rescan()
        except ScanError as e:
            logger.warning("Rescan after folder change failed: %s", e)

    async def _rewatch(self) -> None:
        for subscription in self._watches:
            subscription.dispose()
        self._watches = []
        for folder in self.settings.folders:
            subscription = await watch(folder, self._on_folder_change, self.watch_interval)
            if subscription.active:
                self._watches.append(subscription)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def state(self, script_path: str) -> ScriptState:
        if script_path in self._running:
            return ScriptState.RUNNING
        if script_path in self._queue:
            return ScriptState.QUEUED
        return ScriptState.IDLE

    def running(self) -> List[str]:
        return list(self._running)

    def queued(self) -> List[str]:
        return list(self._queue)

    def views(self) -> List[ScriptView]:
        resolver = ProfileResolver(self.settings)
        views = []
        for path in self._scripts:
            record = self.history.get(path)
            views.append(
                ScriptView(
                    id=path,
                    name=script_name(path),
                    record=record,
                    running=path in self._running,
                    queued=path in self._queue,
                    tags=resolver.parameters(record).tags,
                )
            )
        return views

    def find(self, script: str) -> str:
        """Resolve a script path or display name from the current scan.

        Raises:
            ScriptNotFound: If nothing in the scan matches.
        """
        if script in self._scripts:
            return script
        for path in self._scripts:
            if script_name(path) == script:
                return path
        raise ScriptNotFound(script)

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """Receive rebuilt views after every scan and state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        if not self._listeners:
            return
        views = self.views()
        for listener in list(self._listeners):
            try:
                listener(views)
            except Exception as e:
                logger.warning("View listener failed: %s", e)

    def on_completion(self, listener: CompletionListener) -> Callable[[], None]:
        """Receive (script_path, entry) for every finished or launched run.

        Called once the run is over, whether or not its history entry could
        be written.
        """
        self._completion_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._completion_listeners:
                self._completion_listeners.remove(listener)

        return unsubscribe

    def _completed(self, script_path: str, entry: ExecutionEntry) -> None:
        for listener in list(self._completion_listeners):
            try:
                listener(script_path, entry)
            except Exception as e:
                logger.warning("Completion listener failed: %s", e)

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    async def request_run(self, script_path: str, mode: RunMode = RunMode.BACKGROUND) -> ScriptState:
        """Run a script now, queue it, or open it in a terminal.

        No-op if the script is already running or queued.

        Returns:
            The script's state after the request.

        Raises:
            ScriptNotFound: If the path is not in the current scan.
            LaunchError: If a terminal launch could not be started.
        """
        if script_path not in self._scripts:
            raise ScriptNotFound(script_path)

        current = self.state(script_path)
        if current is not ScriptState.IDLE:
            logger.debug("Ignoring run request for %s: already %s", script_path, current.value)
            return current

        if mode is RunMode.TERMINAL:
            await self._launch_terminal(script_path)
            return self.state(script_path)

        if len(self._running) < self.settings.max_concurrent:
            self._start(script_path)
        else:
            self._queue.append(script_path)
            self._idle.clear()
            logger.info("Queued %s (position %s)", script_path, len(self._queue))
        self._emit()
        return self.state(script_path)

    def cancel(self, script_path: str) -> bool:
        """Kill a running script's process.

        The run still completes through its normal path, recording history
        and promoting the next queued script.

        Returns:
            True if a live process was found and signalled.
        """
        if script_path not in self._running:
            return False
        killed = self.supervisor.kill(script_path)
        if killed:
            logger.info("Cancelled %s", script_path)
        else:
            logger.info("Cancel of %s found no live process", script_path)
        return killed

    def force_reset(self, script_path: str) -> bool:
        """Return a running or queued script to idle without touching its process.

        An in-flight completion of a reset run is discarded. Nothing is
        promoted, since the process may still be alive.

        Returns:
            True if the script was running or queued.
        """
        if script_path in self._running:
            run = self._running.pop(script_path)
            logger.warning("Force-reset %s; in-flight result started %s will be discarded", script_path, run.started_at)
        elif script_path in self._queue:
            self._queue.remove(script_path)
            logger.warning("Force-reset queued %s", script_path)
        else:
            return False
        self._check_idle()
        self._emit()
        return True

    def dequeue(self, script_path: str) -> bool:
        """Remove a queued script without running it."""
        if script_path not in self._queue:
            return False
        self._queue.remove(script_path)
        logger.info("Dequeued %s", script_path)
        self._check_idle()
        self._emit()
        return True

    def _start(self, script_path: str) -> None:
        params = ProfileResolver(self.settings).parameters(self.history.get(script_path))
        run = _Run(path=script_path, params=params, started_at=_now())
        self._running[script_path] = run
        self._idle.clear()

        task = asyncio.create_task(self._supervise(run), name=f"run:{script_path}")
        run.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(
            "Running %s (%s/%s slots, timeout %ss)",
            script_path,
            len(self._running),
            self.settings.max_concurrent,
            params.timeout_seconds,
        )

    async def _supervise(self, run: _Run) -> None:
        path = run.path
        params = run.params
        try:
            result = await self.supervisor.execute(
                path,
                env_vars=params.env_vars,
                args=params.args,
                timeout_seconds=params.timeout_seconds,
                on_output=self._output_forwarder(path),
            )

            if self._running.get(path) is not run:
                logger.warning("Discarding result of %s (exit %s): run was force-reset", path, result.exit_code)
                return

            entry = ExecutionEntry(
                started_at=run.started_at,
                duration_ms=result.duration_ms,
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
                timed_out=result.timed_out,
                args=params.args,
                mode=RunMode.BACKGROUND,
            )
            try:
                await self.history.record(path, entry)
            except StoreError as e:
                logger.error("Could not record execution of %s: %s", path, e)

            self._completed(path, entry)
            self._dispatch(
                CompletionEvent(
                    script_path=path,
                    name=script_name(path),
                    success=result.success,
                    timed_out=result.timed_out,
                    exit_code=result.exit_code,
                )
            )
        except Exception:
            logger.exception("Supervision of %s failed", path)
        finally:
            self._complete(run)

    def _complete(self, run: _Run) -> None:
        if self._running.get(run.path) is not run:
            return
        del self._running[run.path]
        self._promote()
        self._check_idle()
        self._emit()

    def _promote(self) -> None:
        while self._queue and len(self._running) < self.settings.max_concurrent:
            script_path = self._queue.popleft()
            logger.info("Promoting %s from queue", script_path)
            self._start(script_path)

    def _check_idle(self) -> None:
        if not self._running and not self._queue:
            self._idle.set()

    async def _launch_terminal(self, script_path: str) -> None:
        params = ProfileResolver(self.settings).parameters(self.history.get(script_path))
        started_at = _now()
        await self.terminal.launch(script_path, params.env_vars, params.args)
        entry = ExecutionEntry(
            started_at=started_at,
            duration_ms=0,
            exit_code=None,
            args=params.args,
            mode=RunMode.TERMINAL,
        )
        await self.history.record(script_path, entry)
        self._completed(script_path, entry)
        self._emit()

    def _output_forwarder(self, script_path: str) -> Optional[Callable[[str, bool], None]]:
        if self.on_output is None:
            return None
        on_output = self.on_output

        def forward(line: str, is_error: bool) -> None:
            on_output(script_path, line, is_error)

        return forward

    def _dispatch(self, event: CompletionEvent) -> None:
        asyncio.get_running_loop().call_soon(self._deliver, event)

    def _deliver(self, event: CompletionEvent) -> None:
        try:
            self.notifier.notify(event)
        except Exception as e:
            logger.warning("Notification for %s failed: %s", event.script_path, e)

    # ------------------------------------------------------------------
    # Records and settings
    # ------------------------------------------------------------------

    async def update_script(self, script_path: str, **changes: Any) -> ScriptRecord:
        record = await self.history.update(script_path, **changes)
        self._emit()
        return record

    async def toggle_favorite(self, script_path: str) -> ScriptRecord:
        record = await self.history.toggle_favorite(script_path)
        self._emit()
        return record

    async def clear_history(self, script_path: str) -> ScriptRecord:
        record = await self.history.clear(script_path)
        self._emit()
        return record

    async def save_settings(self, **changes: Any) -> Settings:
        """Write settings through, then apply them.

        Folder changes trigger a rewatch (if watching) and a rescan; a
        higher concurrency ceiling promotes queued scripts immediately.
        """
        old_folders = self.settings.folders
        settings = await self.settings_manager.save(**changes)
        self._apply_settings()

        if settings.folders != old_folders:
            if self._watches:
                await self._rewatch()
            await self.rescan()

        self._promote()
        self._emit()
        return settings

    async def add_folder(self, folder: str) -> Settings:
        if folder == self.settings.scripts_folder or folder in self.settings.additional_folders:
            return self.settings
        return await self.save_settings(additional_folders=[*self.settings.additional_folders, folder])

    async def remove_folder(self, folder: str) -> Settings:
        folders = [f for f in self.settings.additional_folders if f != folder]
        return await self.save_settings(additional_folders=folders)

    def _apply_settings(self) -> None:
        self.history.history_limit = self.settings.history_limit
        self.terminal.template = self.settings.terminal_command
