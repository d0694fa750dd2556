"""Folder scanner and watcher bridge.

Lists the scripts directly inside each configured folder and polls folders
for changes. Watching is best-effort: a folder that cannot be watched simply
does not auto-refresh.
"""

import asyncio
import os
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from scriptdeck.constants import SCRIPT_SUFFIX, Defaults
from scriptdeck.primitives.errors import ScanError
from scriptdeck.utils.logger import get_logger
from scriptdeck.utils.path_utils import expand_path

logger = get_logger(__name__)

Snapshot = FrozenSet[Tuple[str, float]]


def scan_folder(folder: str) -> List[str]:
    """Sorted script paths directly inside one folder.

    Raises:
        OSError: If the folder does not exist or cannot be listed.
    """
    expanded = expand_path(folder)
    scripts = []
    with os.scandir(expanded) as entries:
        for entry in entries:
            if entry.name.endswith(SCRIPT_SUFFIX) and entry.is_file():
                scripts.append(os.path.join(expanded, entry.name))
    return sorted(scripts)


def scan_folders(folders: Iterable[str]) -> List[str]:
    """Sorted, de-duplicated script paths across folders.

    Unreadable folders are skipped.

    Raises:
        ScanError: If folders were configured and none of them was readable.
    """
    folders = list(folders)
    found = set()
    readable = 0
    for folder in folders:
        try:
            found.update(scan_folder(folder))
            readable += 1
        except OSError as e:
            logger.warning("Skipping folder %s: %s", folder, e)

    if folders and readable == 0:
        raise ScanError(folders)
    return sorted(found)


async def scan(folders: Iterable[str]) -> List[str]:
    """Async wrapper around scan_folders; enumeration runs off the event loop."""
    return await asyncio.to_thread(scan_folders, list(folders))


def _snapshot(folder: str) -> Snapshot:
    with os.scandir(folder) as entries:
        return frozenset((entry.name, entry.stat(follow_symlinks=False).st_mtime) for entry in entries)


class FolderWatch:
    """Disposable, non-recursive change subscription for one folder."""

    def __init__(
        self,
        folder: str,
        on_change: Callable[[], None],
        interval: float = Defaults.WATCH_INTERVAL,
    ):
        self.folder = expand_path(folder)
        self.on_change = on_change
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> bool:
        """Take the initial snapshot and start polling. False if the folder is unwatchable."""
        try:
            initial = await asyncio.to_thread(_snapshot, self.folder)
        except OSError as e:
            logger.warning("Cannot watch %s, auto-refresh disabled: %s", self.folder, e)
            return False
        self._task = asyncio.create_task(self._poll(initial), name=f"watch:{self.folder}")
        return True

    def dispose(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _poll(self, previous: Snapshot) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                current = await asyncio.to_thread(_snapshot, self.folder)
            except OSError as e:
                logger.warning("Stopped watching %s: %s", self.folder, e)
                # Folder vanished; that is a change too.
                self._notify()
                return
            if current != previous:
                previous = current
                self._notify()

    def _notify(self) -> None:
        try:
            self.on_change()
        except Exception as e:
            logger.warning("Change handler for %s failed: %s", self.folder, e)


async def watch(
    folder: str,
    on_change: Callable[[], None],
    interval: float = Defaults.WATCH_INTERVAL,
) -> FolderWatch:
    """Watch a folder; the returned subscription is inactive if watching failed."""
    subscription = FolderWatch(folder, on_change, interval)
    await subscription.start()
    return subscription
