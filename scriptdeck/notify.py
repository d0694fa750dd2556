"""Completion notifications.

The orchestrator hands a CompletionEvent to a Notifier after every
background run. Delivery is fire-and-forget; a failing notifier never
affects execution state.
"""

import shutil
import subprocess
import sys
from dataclasses import dataclass
from typing import List, Optional

from scriptdeck.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CompletionEvent:
    """Outcome of one background run, as shown to the user."""

    script_path: str
    name: str
    success: bool
    timed_out: bool
    exit_code: int

    @property
    def title(self) -> str:
        return "Completed" if self.success else "Failed"

    @property
    def body(self) -> str:
        if self.timed_out:
            return f"{self.name} timed out"
        if self.success:
            return f"{self.name} finished"
        return f"{self.name} failed (exit {self.exit_code})"


class Notifier:
    """Base notifier. Subclasses deliver the event somewhere."""

    def notify(self, event: CompletionEvent) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Writes completion events to the scriptdeck log."""

    def notify(self, event: CompletionEvent) -> None:
        if event.success:
            logger.info("%s: %s", event.title, event.body)
        else:
            logger.warning("%s: %s", event.title, event.body)


class DesktopNotifier(Notifier):
    """Desktop notification through notify-send (Linux) or osascript (macOS)."""

    def __init__(self):
        self._argv_prefix = self._detect()

    @staticmethod
    def _detect() -> Optional[List[str]]:
        if sys.platform == "darwin" and shutil.which("osascript"):
            return ["osascript", "-e"]
        notify_send = shutil.which("notify-send")
        if notify_send:
            return [notify_send]
        return None

    @property
    def available(self) -> bool:
        return self._argv_prefix is not None

    def notify(self, event: CompletionEvent) -> None:
        if self._argv_prefix is None:
            return
        if self._argv_prefix[0] == "osascript":
            script = 'display notification "{}" with title "{}"'.format(
                _applescript_escape(event.body), _applescript_escape(event.title)
            )
            argv = [*self._argv_prefix, script]
        else:
            argv = [*self._argv_prefix, event.title, event.body]
        subprocess.Popen(argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


def _applescript_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
