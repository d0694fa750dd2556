"""Data model for scripts, executions and settings.

Records and entries are plain dataclasses persisted as JSON. Settings and
folder profiles are pydantic models because they come from user-edited
configuration and must be validated.

Last-execution fields on ScriptRecord are derived from ``history[0]`` and
cannot be set independently.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from scriptdeck.constants import Defaults


class RunMode(str, Enum):
    BACKGROUND = "background"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class ExecutionEntry:
    """One completed (or terminal-mode launched) run of a script.

    Attributes:
        started_at: ISO-8601 UTC timestamp of the run request.
        duration_ms: Wall-clock duration in milliseconds.
        exit_code: Process exit code, None only for terminal-mode launches.
        stdout: Captured standard output, trailing whitespace trimmed.
        stderr: Captured standard error, trailing whitespace trimmed.
        timed_out: True if the process was killed by its deadline.
        args: Argument string actually used.
        mode: How the script was run.
    """

    started_at: str
    duration_ms: int
    exit_code: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    args: str = ""
    mode: RunMode = RunMode.BACKGROUND

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionEntry":
        return cls(
            started_at=data["started_at"],
            duration_ms=int(data.get("duration_ms", 0)),
            exit_code=data.get("exit_code"),
            stdout=data.get("stdout") or "",
            stderr=data.get("stderr") or "",
            timed_out=bool(data.get("timed_out", False)),
            args=data.get("args") or "",
            mode=RunMode(data.get("mode", RunMode.BACKGROUND.value)),
        )


@dataclass
class ExecutionResult:
    """Result of one supervised script execution.

    Attributes:
        success: True if exit code is 0 and the run did not time out.
        exit_code: Exit code, -1 if it could not be determined.
        stdout: Standard output from process.
        stderr: Standard error from process.
        duration_ms: Time from spawn request to result, in milliseconds.
        timed_out: True if the deadline fired and the process was killed.
    """

    success: bool
    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False


@dataclass
class ScriptRecord:
    """Durable per-script metadata and bounded history, keyed by path."""

    path: str
    favorite: bool = False
    icon: Optional[str] = None
    run_count: int = 0
    args: str = ""
    timeout_seconds: int = 0
    tags: List[str] = field(default_factory=list)
    env_vars: Dict[str, str] = field(default_factory=dict)
    history: List[ExecutionEntry] = field(default_factory=list)

    @property
    def last_entry(self) -> Optional[ExecutionEntry]:
        return self.history[0] if self.history else None

    @property
    def last_execution(self) -> Optional[str]:
        entry = self.last_entry
        return entry.started_at if entry else None

    @property
    def last_duration(self) -> Optional[int]:
        entry = self.last_entry
        return entry.duration_ms if entry else None

    @property
    def last_exit_code(self) -> Optional[int]:
        entry = self.last_entry
        return entry.exit_code if entry else None

    @property
    def last_timed_out(self) -> bool:
        entry = self.last_entry
        return entry.timed_out if entry else False

    @property
    def last_output(self) -> Optional[str]:
        entry = self.last_entry
        return entry.stdout if entry else None

    @property
    def last_error(self) -> Optional[str]:
        entry = self.last_entry
        return entry.stderr if entry else None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize, including the derived last-execution fields for readers."""
        return {
            "path": self.path,
            "favorite": self.favorite,
            "icon": self.icon,
            "run_count": self.run_count,
            "args": self.args,
            "timeout_seconds": self.timeout_seconds,
            "tags": sorted(set(self.tags)),
            "env_vars": dict(self.env_vars),
            "history": [entry.to_dict() for entry in self.history],
            "last_execution": self.last_execution,
            "last_duration": self.last_duration,
            "last_exit_code": self.last_exit_code,
            "last_timed_out": self.last_timed_out,
            "last_output": self.last_output,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScriptRecord":
        """Load a record; derived fields are recomputed from history."""
        return cls(
            path=data["path"],
            favorite=bool(data.get("favorite", False)),
            icon=data.get("icon"),
            run_count=max(0, int(data.get("run_count", 0))),
            args=data.get("args") or "",
            timeout_seconds=max(0, int(data.get("timeout_seconds", 0))),
            tags=sorted(set(data.get("tags") or [])),
            env_vars={str(k): str(v) for k, v in (data.get("env_vars") or {}).items()},
            history=[ExecutionEntry.from_dict(e) for e in data.get("history") or []],
        )


@dataclass
class ScriptView:
    """Transient view of a script: its record plus live run/queue state."""

    id: str
    name: str
    record: ScriptRecord
    running: bool = False
    queued: bool = False
    # Record tags merged with the folder profile's tags.
    tags: List[str] = field(default_factory=list)

    @property
    def path(self) -> str:
        return self.id

    def to_dict(self) -> Dict[str, Any]:
        data = self.record.to_dict()
        data.pop("history")
        data.update(
            id=self.id,
            name=self.name,
            running=self.running,
            queued=self.queued,
            effective_tags=list(self.tags),
        )
        return data


class FolderProfile(BaseModel):
    """Per-folder defaults for arguments, environment and timeout."""

    path: str = Field(..., min_length=1)
    default_args: str = ""
    env_vars: Dict[str, str] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    timeout_seconds: int = Field(default=0, ge=0)


class Settings(BaseModel):
    """Application settings persisted in settings.yaml."""

    scripts_folder: str = Defaults.SCRIPTS_FOLDER
    additional_folders: List[str] = Field(default_factory=list)
    max_concurrent: int = Field(default=Defaults.MAX_CONCURRENT, ge=1)
    default_timeout_seconds: int = Field(default=Defaults.DEFAULT_TIMEOUT_SECONDS, ge=0)
    history_limit: int = Field(default=Defaults.HISTORY_LIMIT, ge=0)
    folder_profiles: List[FolderProfile] = Field(default_factory=list)
    terminal_command: Optional[List[str]] = None

    @field_validator("terminal_command")
    @classmethod
    def _has_command_placeholder(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is not None and not any("{command}" in part for part in value):
            raise ValueError("terminal_command must contain a {command} placeholder")
        return value

    @property
    def folders(self) -> List[str]:
        """Configured folders: main folder first, blanks and duplicates dropped."""
        folders: List[str] = []
        for folder in [self.scripts_folder, *self.additional_folders]:
            if folder and folder not in folders:
                folders.append(folder)
        return folders
