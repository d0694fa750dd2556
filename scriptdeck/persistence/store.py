"""
persistence/store.py: Durable key-value store

Persists structured records to a single JSON file in user space. Every
mutation is a read-modify-write cycle serialized by one lock per store
instance, and the in-memory snapshot only changes after the file write
has been committed.
"""

import asyncio
import copy
import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from scriptdeck.constants import STATE_FILE
from scriptdeck.primitives.errors import StoreError
from scriptdeck.utils.logger import get_logger
from scriptdeck.utils.path_utils import ensure_directory, get_user_space

logger = get_logger(__name__)

Mutator = Callable[[Any], Any]


class DurableStore:
    """Atomic JSON key-value store with serialized writes."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Dict[str, Any] = {}
        self._lock = asyncio.Lock()
        self._loaded = False

    async def load(self) -> None:
        """Load the store from disk. A missing file is an empty store."""
        async with self._lock:
            self._data = await asyncio.to_thread(self._read)
            self._loaded = True

    def get(self, key: str, default: Any = None) -> Any:
        """Return a deep copy of the committed value for ``key``."""
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    async def set(self, key: str, value: Any) -> None:
        await self.update(key, lambda _current: value)

    async def update(self, key: str, mutate: Mutator, default: Any = None) -> Any:
        """Apply ``mutate`` to the current value and commit the result.

        Args:
            key: Top-level key.
            mutate: Receives a copy of the current value, returns the new one.
            default: Value passed to ``mutate`` when the key is absent.

        Returns:
            The committed value.

        Raises:
            StoreError: If the write could not be committed. The committed
                snapshot is unchanged in that case.
        """
        async with self._lock:
            if not self._loaded:
                self._data = await asyncio.to_thread(self._read)
                self._loaded = True

            current = copy.deepcopy(self._data.get(key, default))
            new_value = mutate(current)

            staged = dict(self._data)
            staged[key] = new_value
            await asyncio.to_thread(self._write, staged)

            self._data = staged
            return copy.deepcopy(new_value)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(f"Invalid JSON in state file: {e}", path=str(self.path), cause=e)
        except OSError as e:
            raise StoreError(f"Cannot read state file: {e}", path=str(self.path), cause=e)
        if not isinstance(data, dict):
            raise StoreError("State file must contain a JSON object", path=str(self.path))
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp_file = self.path.with_name(self.path.name + ".tmp")
        try:
            ensure_directory(self.path.parent)
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            tmp_file.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to write %s: %s", self.path, e)
            raise StoreError(f"Cannot write state file: {e}", path=str(self.path), cause=e)


def open_store(path: Optional[Path] = None) -> DurableStore:
    """Store at ``path`` or the default state file in user space."""
    if path is None:
        path = get_user_space() / STATE_FILE
    return DurableStore(path)
