"""Path utilities for user space, home expansion and prefix matching.

Provides functions to:
- Locate the user space directory (settings, state, logs)
- Expand home-relative folder notation
- Compare paths on segment boundaries
- Derive script display names
"""

import os
from pathlib import Path

from scriptdeck.constants import HOME_ENV_VAR, SCRIPT_SUFFIX, USER_DIR


def ensure_directory(path: Path) -> Path:
    """Ensure directory exists, creating it and all parents if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The path (for chaining)

    Raises:
        OSError: If directory cannot be created
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_user_space() -> Path:
    """Get user space directory from env var or default to ~/.scriptdeck."""
    user_space = os.getenv(HOME_ENV_VAR)
    if user_space:
        return Path(user_space).expanduser()
    return Path.home() / USER_DIR


def expand_path(path: str) -> str:
    """Expand ``~`` and ``~/...`` to the user's home directory.

    The result is normalized and absolute; trailing separators are dropped.
    """
    if not path:
        return path
    expanded = os.path.expanduser(path)
    return os.path.normpath(os.path.abspath(expanded))


def is_path_prefix(prefix: str, path: str) -> bool:
    """True if ``prefix`` is ``path`` itself or one of its parent directories.

    Matching is on whole path segments, so ``/a/scripts`` is not a prefix
    of ``/a/scripts2/x.sh``.
    """
    prefix = os.path.normpath(prefix)
    path = os.path.normpath(path)
    if path == prefix:
        return True
    if prefix == os.sep:
        return path.startswith(os.sep)
    return path.startswith(prefix + os.sep)


def script_name(path: str) -> str:
    """Display name for a script: file name without the script suffix."""
    name = os.path.basename(path)
    if name.endswith(SCRIPT_SUFFIX):
        return name[: -len(SCRIPT_SUFFIX)]
    return name
