"""scriptdeck watch [--interval SECONDS]

Keeps the orchestrator running with folder watching enabled and prints
the script list whenever it changes. Stop with Ctrl-C.
"""

import asyncio

from scriptdeck.cli.output import build_orchestrator, die, run_async, view_line


def register(subparsers):
    p = subparsers.add_parser("watch", help="Watch script folders and print changes")
    p.add_argument("--interval", type=float, default=1.0,
                   help="Polling interval in seconds (default: 1.0)")
    p.set_defaults(handler=handle)


def _print_views(views):
    print("-" * 72)
    for view in views:
        print(view_line(view))


async def _watch(args):
    orchestrator = build_orchestrator(watch_interval=args.interval)
    orchestrator.subscribe(_print_views)
    await orchestrator.start(watch_folders=True)
    try:
        await asyncio.Event().wait()
    finally:
        await orchestrator.stop()


def handle(args):
    from scriptdeck.primitives.errors import ScriptDeckError

    try:
        run_async(_watch(args))
    except KeyboardInterrupt:
        pass
    except ScriptDeckError as e:
        die(e.message)
