"""Shared fixtures: isolated user space and script folders."""

import os
import tempfile

# Loggers configure their file handlers on import; keep them out of ~.
os.environ.setdefault("SCRIPTDECK_HOME", tempfile.mkdtemp(prefix="scriptdeck-tests-"))

import pytest
import yaml


@pytest.fixture(autouse=True)
def _setup_user_space(tmp_path, monkeypatch):
    """Point SCRIPTDECK_HOME at a temporary directory for every test."""
    user_space = tmp_path / "user_space"
    user_space.mkdir()
    monkeypatch.setenv("SCRIPTDECK_HOME", str(user_space))
    yield user_space


@pytest.fixture
def scripts_dir(tmp_path):
    folder = tmp_path / "scripts"
    folder.mkdir()
    return folder


@pytest.fixture
def make_script():
    """Factory writing a bash script and returning its absolute path."""

    def _make(folder, name, body, mode=0o755):
        path = folder / name
        path.write_text("#!/bin/bash\n" + body + "\n", encoding="utf-8")
        path.chmod(mode)
        return str(path)

    return _make


@pytest.fixture
def write_settings(_setup_user_space):
    """Write settings.yaml into the temporary user space."""

    def _write(**values):
        path = _setup_user_space / "settings.yaml"
        path.write_text(yaml.safe_dump(values), encoding="utf-8")
        return path

    return _write

