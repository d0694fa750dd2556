"""scriptdeck history <script> [--clear] [--limit N] [--json]"""

from scriptdeck.cli.output import (
    build_orchestrator,
    die,
    format_duration,
    format_timestamp,
    print_result,
    run_async,
)


def register(subparsers):
    p = subparsers.add_parser("history", help="Show or clear a script's execution history")
    p.add_argument("script", help="Script name (without .sh) or path")
    p.add_argument("--clear", action="store_true", help="Clear history (run count is kept)")
    p.add_argument("--limit", type=int, default=0, help="Show at most N entries")
    p.add_argument("--json", action="store_true", dest="as_json", help="Print entries as JSON")
    p.set_defaults(handler=handle)


async def _history(args):
    orchestrator = build_orchestrator()
    await orchestrator.start()
    path = orchestrator.find(args.script)
    if args.clear:
        return await orchestrator.clear_history(path)
    return orchestrator.history.get(path)


def handle(args):
    from scriptdeck.primitives.errors import ScriptDeckError

    try:
        record = run_async(_history(args))
    except ScriptDeckError as e:
        die(e.message)

    entries = record.history[: args.limit] if args.limit > 0 else record.history
    if args.as_json:
        print_result({
            "path": record.path,
            "run_count": record.run_count,
            "history": [entry.to_dict() for entry in entries],
        })
        return

    print(f"{record.path} (runs: {record.run_count})")
    if not entries:
        print("  no history")
    for entry in entries:
        if entry.exit_code is None:
            outcome = "launched in terminal"
        elif entry.timed_out:
            outcome = "timed out"
        else:
            outcome = f"exit {entry.exit_code}"
        when = format_timestamp(entry.started_at)
        args_note = f" args: {entry.args}" if entry.args else ""
        print(f"  {when:<10} {outcome:<22} {format_duration(entry.duration_ms):<8}{args_note}")
