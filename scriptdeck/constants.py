"""scriptdeck constants

Centralized names for the user-space directory, persisted files and
defaults shared by the loaders and the orchestrator.
"""

# Working directory under the user's home. Overridden by $SCRIPTDECK_HOME.
USER_DIR = ".scriptdeck"
HOME_ENV_VAR = "SCRIPTDECK_HOME"

SETTINGS_FILE = "settings.yaml"
STATE_FILE = "scripts-state.json"
LOG_DIR = "logs"

# Only immediate children with this suffix are considered scripts.
SCRIPT_SUFFIX = ".sh"

# Exit code recorded when a process could not be spawned or reaped.
UNKNOWN_EXIT_CODE = -1


class Defaults:
    """Built-in settings values used when settings.yaml omits a key."""

    SCRIPTS_FOLDER = "~/scripts"
    DEFAULT_TIMEOUT_SECONDS = 300
    MAX_CONCURRENT = 2
    HISTORY_LIMIT = 20

    # Seconds between directory snapshots when watching a folder.
    WATCH_INTERVAL = 1.0
