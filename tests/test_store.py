"""Tests for the durable JSON store."""

import asyncio
import json

import pytest

from scriptdeck.persistence.store import DurableStore, open_store
from scriptdeck.primitives.errors import StoreError


@pytest.mark.asyncio
class TestDurableStore:
    """Test read-modify-write and atomic commit behavior."""

    async def test_missing_file_is_empty(self, tmp_path):
        store = DurableStore(tmp_path / "state.json")
        await store.load()
        assert store.get("scripts") is None
        assert store.get("scripts", []) == []

    async def test_update_writes_through(self, tmp_path):
        path = tmp_path / "nested" / "state.json"
        store = DurableStore(path)

        value = await store.update("count", lambda current: current + 1, default=0)

        assert value == 1
        assert json.loads(path.read_text()) == {"count": 1}
        assert not (tmp_path / "nested" / "state.json.tmp").exists()

    async def test_concurrent_updates_are_serialized(self, tmp_path):
        path = tmp_path / "state.json"
        store = DurableStore(path)

        await asyncio.gather(
            *(store.update("count", lambda current: current + 1, default=0) for _ in range(20)),
            *(store.update("names", lambda current, n=n: current + [n], default=[]) for n in range(5)),
        )

        assert store.get("count") == 20
        assert sorted(store.get("names")) == [0, 1, 2, 3, 4]
        assert json.loads(path.read_text())["count"] == 20

    async def test_get_returns_copy(self, tmp_path):
        store = DurableStore(tmp_path / "state.json")
        await store.set("items", [1, 2])

        items = store.get("items")
        items.append(3)
        assert store.get("items") == [1, 2]

    async def test_reload_from_disk(self, tmp_path):
        path = tmp_path / "state.json"
        await DurableStore(path).set("name", "value")

        store = DurableStore(path)
        await store.load()
        assert store.get("name") == "value"

    async def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        with pytest.raises(StoreError):
            await DurableStore(path).load()

    async def test_non_object_raises(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[]")
        with pytest.raises(StoreError):
            await DurableStore(path).load()

    async def test_failed_write_leaves_snapshot_unchanged(self, tmp_path):
        store = DurableStore(tmp_path / "state.json")
        await store.set("count", 1)

        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store.path = blocker / "state.json"

        with pytest.raises(StoreError):
            await store.set("count", 2)
        assert store.get("count") == 1

    async def test_open_store_defaults_to_user_space(self, _setup_user_space):
        store = open_store()
        assert store.path == _setup_user_space / "scripts-state.json"
