"""Error types for scriptdeck.

Primitives return result objects with a success field instead of raising
exceptions for expected failures (non-zero exit, timeout, spawn failure).
These errors are for exceptional cases:
- Persistence: a durable write could not be committed
- Configuration: settings that fail validation
- Scanning: none of the configured folders could be read
"""

from typing import List, Optional


class ScriptDeckError(Exception):
    """Base exception for scriptdeck failures.

    Attributes:
        message: Error description.
        cause: Optional underlying exception being wrapped.
    """

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(ScriptDeckError):
    """Settings failed to load or validate.

    Attributes:
        field: Optional settings field that caused the error.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.field = field


class StoreError(ScriptDeckError):
    """Durable store read or write failure.

    Raised to the caller of the mutating operation. The in-memory view is
    left untouched when this is raised.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.path = path


class ScanError(ScriptDeckError):
    """No configured folder could be read."""

    def __init__(self, folders: List[str]):
        self.folders = list(folders)
        super().__init__(
            "No readable script folder: " + (", ".join(self.folders) or "(none configured)")
        )


class LaunchError(ScriptDeckError):
    """A terminal-mode launch could not be started."""

    def __init__(
        self,
        script_path: str,
        reason: str,
        cause: Optional[Exception] = None,
    ):
        super().__init__(f"Cannot open {script_path} in a terminal: {reason}", cause)
        self.script_path = script_path


class ScriptNotFound(ScriptDeckError):
    """Script path is not part of the current scan."""

    def __init__(self, script_path: str):
        super().__init__(f"Script not found: {script_path}")
        self.script_path = script_path
