"""scriptdeck list [--json]"""

from scriptdeck.cli.output import build_orchestrator, die, print_result, run_async, view_line


def register(subparsers):
    p = subparsers.add_parser("list", help="Scan script folders and list scripts")
    p.add_argument("--json", action="store_true", dest="as_json",
                   help="Print views as JSON")
    p.set_defaults(handler=handle)


async def _list():
    orchestrator = build_orchestrator()
    return await orchestrator.start()


def handle(args):
    from scriptdeck.primitives.errors import ScriptDeckError

    try:
        views = run_async(_list())
    except ScriptDeckError as e:
        die(e.message)

    if args.as_json:
        print_result([view.to_dict() for view in views])
        return
    if not views:
        print("No scripts found.")
        return
    for view in views:
        print(view_line(view))
