"""Settings loader.

Loads settings.yaml once at start, deep-merged over the built-in defaults,
and writes partial updates through to disk before they become the
in-memory settings.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from scriptdeck.constants import SETTINGS_FILE
from scriptdeck.models import Settings
from scriptdeck.primitives.errors import ConfigurationError, StoreError
from scriptdeck.utils.logger import get_logger
from scriptdeck.utils.path_utils import ensure_directory, get_user_space

logger = get_logger(__name__)


def _merge(base: Dict, override: Dict) -> Dict:
    """Deep merge override into base.

    - Dicts: recursive deep merge
    - Lists and scalars: replace
    """
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _validate(data: Dict[str, Any]) -> Settings:
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ConfigurationError(f"Invalid settings: {e}", field=field, cause=e)


class SettingsManager:
    """Owns the in-memory settings and their YAML file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_user_space() / SETTINGS_FILE
        self.settings = Settings()
        self._lock = asyncio.Lock()

    def load(self) -> Settings:
        """Load settings from disk, or defaults if the file does not exist.

        Raises:
            ConfigurationError: If the file is not valid YAML or fails validation.
        """
        if not self.path.exists():
            self.settings = Settings()
            return self.settings

        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.path}: {e}", cause=e)
        except OSError as e:
            raise ConfigurationError(f"Cannot read {self.path}: {e}", cause=e)

        if not isinstance(data, dict):
            raise ConfigurationError(f"{self.path} must contain a mapping")

        self.settings = _validate(_merge(Settings().model_dump(), data))
        logger.debug("Loaded settings from %s", self.path)
        return self.settings

    async def save(self, **changes: Any) -> Settings:
        """Merge a partial update, write it through, then commit in memory.

        Raises:
            ConfigurationError: If the merged settings fail validation.
            StoreError: If the file could not be written.
        """
        async with self._lock:
            merged = _merge(self.settings.model_dump(), changes)
            updated = _validate(merged)
            await asyncio.to_thread(self._write, updated)
            self.settings = updated
            logger.info("Saved settings: %s", ", ".join(sorted(changes)) or "(no changes)")
            return updated

    def _write(self, settings: Settings) -> None:
        tmp_file = self.path.with_name(self.path.name + ".tmp")
        try:
            ensure_directory(self.path.parent)
            with open(tmp_file, "w", encoding="utf-8") as f:
                yaml.safe_dump(settings.model_dump(), f, sort_keys=False)
            tmp_file.replace(self.path)
        except OSError as e:
            logger.error("Failed to write %s: %s", self.path, e)
            raise StoreError(f"Cannot write settings: {e}", path=str(self.path), cause=e)
