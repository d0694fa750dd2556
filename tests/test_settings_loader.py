"""Tests for settings loading, validation and write-through."""

import pytest
import yaml

from scriptdeck.loaders.settings_loader import SettingsManager, _merge
from scriptdeck.models import Settings
from scriptdeck.primitives.errors import ConfigurationError, StoreError


class TestMerge:
    """Test deep merge semantics."""

    def test_nested_dicts_merge(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        assert _merge(base, {"a": {"y": 3}}) == {"a": {"x": 1, "y": 3}, "b": 1}

    def test_lists_replace(self):
        assert _merge({"a": [1, 2]}, {"a": [3]}) == {"a": [3]}


class TestLoad:
    """Test loading settings.yaml."""

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = SettingsManager(tmp_path / "settings.yaml").load()
        assert settings == Settings()
        assert settings.max_concurrent == 2
        assert settings.default_timeout_seconds == 300
        assert settings.history_limit == 20
        assert settings.scripts_folder == "~/scripts"

    def test_default_path_in_user_space(self, _setup_user_space):
        assert SettingsManager().path == _setup_user_space / "settings.yaml"

    def test_partial_file_merged_over_defaults(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump({
            "max_concurrent": 4,
            "folder_profiles": [{"path": "~/scripts/deploy", "timeout_seconds": 60}],
        }))
        settings = SettingsManager(path).load()

        assert settings.max_concurrent == 4
        assert settings.history_limit == 20
        assert settings.folder_profiles[0].timeout_seconds == 60
        assert settings.folder_profiles[0].default_args == ""

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("")
        assert SettingsManager(path).load() == Settings()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("max_concurrent: [unclosed")
        with pytest.raises(ConfigurationError):
            SettingsManager(path).load()

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            SettingsManager(path).load()

    def test_invalid_value_names_field(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump({"max_concurrent": 0}))
        with pytest.raises(ConfigurationError) as exc_info:
            SettingsManager(path).load()
        assert exc_info.value.field == "max_concurrent"

    def test_terminal_command_needs_placeholder(self):
        with pytest.raises(ValueError):
            Settings(terminal_command=["xterm", "-e", "bash"])
        assert Settings(terminal_command=["xterm", "-e", "bash", "-c", "{command}"]).terminal_command


class TestFolders:
    """Test the combined folder list."""

    def test_main_folder_first_without_duplicates(self):
        settings = Settings(scripts_folder="~/scripts", additional_folders=["/opt/s", "~/scripts", "", "/opt/s"])
        assert settings.folders == ["~/scripts", "/opt/s"]


@pytest.mark.asyncio
class TestSave:
    """Test write-through saves."""

    async def test_save_writes_then_commits(self, tmp_path):
        path = tmp_path / "settings.yaml"
        manager = SettingsManager(path)
        manager.load()

        settings = await manager.save(max_concurrent=3, additional_folders=["/opt/s"])

        assert settings.max_concurrent == 3
        assert manager.settings.max_concurrent == 3
        assert SettingsManager(path).load().additional_folders == ["/opt/s"]

    async def test_invalid_save_leaves_settings(self, tmp_path):
        manager = SettingsManager(tmp_path / "settings.yaml")
        manager.load()

        with pytest.raises(ConfigurationError):
            await manager.save(history_limit=-1)
        assert manager.settings.history_limit == 20
        assert not manager.path.exists()

    async def test_failed_write_leaves_settings(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        manager = SettingsManager(blocker / "settings.yaml")

        with pytest.raises(StoreError):
            await manager.save(max_concurrent=5)
        assert manager.settings.max_concurrent == 2
