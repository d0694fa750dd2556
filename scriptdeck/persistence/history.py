"""
persistence/history.py: Execution history and per-script records

Keeps one ScriptRecord per script path under the ``scripts`` key of the
durable store. Every change is a read-modify-write through the store, and
the in-memory records are refreshed only after the write is committed.
"""

from typing import Any, Callable, Dict, List, Optional

from scriptdeck.constants import Defaults
from scriptdeck.models import ExecutionEntry, ScriptRecord
from scriptdeck.persistence.store import DurableStore
from scriptdeck.utils.logger import get_logger

logger = get_logger(__name__)

SCRIPTS_KEY = "scripts"

EDITABLE_FIELDS = ("favorite", "icon", "args", "timeout_seconds", "tags", "env_vars")


class HistoryStore:
    """Bounded, most-recent-first execution history per script."""

    def __init__(self, store: DurableStore, history_limit: int = Defaults.HISTORY_LIMIT):
        self.store = store
        self.history_limit = history_limit
        self._records: Dict[str, ScriptRecord] = {}

    async def load(self) -> None:
        await self.store.load()
        self._records = {
            data["path"]: ScriptRecord.from_dict(data)
            for data in self.store.get(SCRIPTS_KEY, [])
            if isinstance(data, dict) and data.get("path")
        }

    def get(self, script_path: str) -> ScriptRecord:
        """Committed record for a script, or a fresh default record."""
        record = self._records.get(script_path)
        if record is None:
            return ScriptRecord(path=script_path)
        return ScriptRecord.from_dict(record.to_dict())

    def paths(self) -> List[str]:
        return sorted(self._records)

    async def record(self, script_path: str, entry: ExecutionEntry) -> ScriptRecord:
        """Prepend an execution entry, truncate to the limit and count the run."""
        limit = self.history_limit

        def apply(record: ScriptRecord) -> ScriptRecord:
            history = [entry, *record.history]
            if limit > 0:
                history = history[:limit]
            record.history = history
            record.run_count += 1
            return record

        return await self._mutate(script_path, apply)

    async def clear(self, script_path: str) -> ScriptRecord:
        """Drop history and last-run fields. The run count is kept."""

        def apply(record: ScriptRecord) -> ScriptRecord:
            record.history = []
            return record

        return await self._mutate(script_path, apply)

    async def update(self, script_path: str, **changes: Any) -> ScriptRecord:
        """Set editable record fields (favorite, icon, args, timeout, tags, env)."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not editable: {', '.join(sorted(unknown))}")

        def apply(record: ScriptRecord) -> ScriptRecord:
            for name, value in changes.items():
                if name == "tags":
                    value = sorted(set(value))
                elif name == "env_vars":
                    value = {str(k): str(v) for k, v in value.items()}
                elif name == "timeout_seconds":
                    value = max(0, int(value))
                setattr(record, name, value)
            return record

        return await self._mutate(script_path, apply)

    async def toggle_favorite(self, script_path: str) -> ScriptRecord:
        def apply(record: ScriptRecord) -> ScriptRecord:
            record.favorite = not record.favorite
            return record

        return await self._mutate(script_path, apply)

    async def _mutate(
        self,
        script_path: str,
        apply: Callable[[ScriptRecord], ScriptRecord],
    ) -> ScriptRecord:
        committed: Dict[str, Any] = {}

        def rewrite(scripts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            for index, data in enumerate(scripts):
                if data.get("path") == script_path:
                    record = apply(ScriptRecord.from_dict(data))
                    scripts[index] = record.to_dict()
                    break
            else:
                record = apply(ScriptRecord(path=script_path))
                scripts.append(record.to_dict())
            committed["record"] = record
            return scripts

        await self.store.update(SCRIPTS_KEY, rewrite, default=[])

        record = committed["record"]
        self._records[script_path] = record
        logger.debug("Committed record for %s (runs=%s)", script_path, record.run_count)
        return self.get(script_path)
