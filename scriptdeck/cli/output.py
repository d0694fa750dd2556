"""Shared output utilities for CLI verbs."""

import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import Any, Coroutine, Dict, List, Optional


def run_async(coro: Coroutine) -> Any:
    """Run an async coroutine from sync context."""
    return asyncio.run(coro)


def print_result(result: Any, compact: bool = False) -> None:
    """Print a result as JSON to stdout."""
    indent = None if compact else 2
    print(json.dumps(result, indent=indent, default=str))


def die(msg: str, code: int = 1) -> None:
    """Print error to stderr and exit."""
    print(f"error: {msg}", file=sys.stderr)
    sys.exit(code)


def parse_pairs(raw: Optional[List[str]]) -> Dict[str, str]:
    """Parse KEY=VALUE arguments, exiting on malformed input."""
    pairs: Dict[str, str] = {}
    for item in raw or []:
        if "=" not in item:
            die(f"expected KEY=VALUE, got: {item}")
        key, value = item.split("=", 1)
        key = key.strip()
        if not key:
            die(f"empty key in: {item}")
        pairs[key] = value
    return pairs


def format_duration(ms: Optional[int]) -> str:
    """Human duration: 850ms, 2.5s, 3m 12s, 1h 4m."""
    if ms is None:
        return ""
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60_000:
        return f"{ms / 1000:.1f}s"
    if ms < 3_600_000:
        return f"{ms // 60_000}m {(ms % 60_000) // 1000}s"
    return f"{ms // 3_600_000}h {(ms % 3_600_000) // 60_000}m"


def format_timestamp(iso: Optional[str], now: Optional[datetime] = None) -> str:
    """Relative time for recent timestamps, a date for older ones."""
    if not iso:
        return "Never"
    moment = datetime.fromisoformat(iso)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    minutes = int((now - moment).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 24 * 60:
        return f"{minutes // 60}h ago"
    if minutes < 7 * 24 * 60:
        return f"{minutes // (24 * 60)}d ago"
    return moment.astimezone().strftime("%Y-%m-%d")


def view_line(view) -> str:
    """One-line summary of a ScriptView."""
    record = view.record
    if view.running:
        status = "running"
    elif view.queued:
        status = "queued"
    elif record.last_timed_out:
        status = "timed out"
    elif record.last_exit_code is None:
        status = "-"
    elif record.last_exit_code == 0:
        status = "ok"
    else:
        status = f"exit {record.last_exit_code}"

    star = "*" if record.favorite else " "
    icon = f"{record.icon} " if record.icon else ""
    last = format_timestamp(record.last_execution)
    duration = format_duration(record.last_duration)
    tags = "".join(f" #{tag}" for tag in view.tags)
    return f"{star} {icon}{view.name:<24} {status:<10} {last:<10} {duration:<8} runs={record.run_count}{tags}"


def build_orchestrator(**kwargs):
    """Orchestrator wired to the user-space settings and state files."""
    from scriptdeck.notify import DesktopNotifier, LoggingNotifier
    from scriptdeck.orchestrator import ScriptOrchestrator

    desktop = DesktopNotifier()
    notifier = desktop if desktop.available else LoggingNotifier()
    return ScriptOrchestrator(notifier=notifier, **kwargs)
