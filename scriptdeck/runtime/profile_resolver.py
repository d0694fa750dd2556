"""Folder profile resolver.

Finds the most specific folder profile for a script and derives the
effective run parameters. Pure resolver with no side effects.

Resolution order (later wins):
    1. Global settings (default timeout)
    2. Folder profile (default args, env vars, timeout)
    3. Script record overrides (args, env vars, timeout)
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from scriptdeck.models import FolderProfile, ScriptRecord, Settings
from scriptdeck.utils.path_utils import expand_path, is_path_prefix


@dataclass
class RunParameters:
    """Effective parameters for one run of a script."""

    args: str = ""
    env_vars: Dict[str, str] = field(default_factory=dict)
    timeout_seconds: int = 0
    tags: List[str] = field(default_factory=list)


def resolve(script_path: str, profiles: Iterable[FolderProfile]) -> Optional[FolderProfile]:
    """Return the profile whose folder is the longest segment prefix of the script.

    Args:
        script_path: Absolute path of the script.
        profiles: Configured folder profiles; paths may use ``~`` notation.

    Returns:
        The matching profile, or None if no profile folder contains the script.
    """
    script_path = os.path.normpath(script_path)
    best: Optional[FolderProfile] = None
    best_length = -1

    for profile in profiles:
        folder = expand_path(profile.path)
        if not is_path_prefix(folder, script_path):
            continue
        if len(folder) > best_length:
            best = profile
            best_length = len(folder)

    return best


class ProfileResolver:
    """Computes effective run parameters from settings, profile and record."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def profile_for(self, script_path: str) -> Optional[FolderProfile]:
        return resolve(script_path, self.settings.folder_profiles)

    def parameters(self, record: ScriptRecord) -> RunParameters:
        """Resolve args, env vars and timeout for a script record.

        - args: record args if non-empty, else profile default args, else ""
        - env_vars: profile env vars overridden key-by-key by record env vars
        - timeout: record timeout if > 0, else profile timeout if > 0,
          else the global default timeout
        """
        profile = self.profile_for(record.path)

        if record.args:
            args = record.args
        elif profile and profile.default_args:
            args = profile.default_args
        else:
            args = ""

        env_vars: Dict[str, str] = {}
        if profile:
            env_vars.update(profile.env_vars)
        env_vars.update(record.env_vars)

        if record.timeout_seconds > 0:
            timeout = record.timeout_seconds
        elif profile and profile.timeout_seconds > 0:
            timeout = profile.timeout_seconds
        else:
            timeout = self.settings.default_timeout_seconds

        tags = sorted(set(record.tags) | set(profile.tags if profile else []))

        return RunParameters(
            args=args,
            env_vars=env_vars,
            timeout_seconds=timeout,
            tags=tags,
        )
