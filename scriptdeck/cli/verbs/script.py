"""scriptdeck script <script> [--args S] [--env K=V ...] [--timeout N] [--tag T ...]
[--favorite | --no-favorite] [--icon G]

Edits a script's persisted overrides and prints the resulting record.
"""

import argparse

from scriptdeck.cli.output import build_orchestrator, die, parse_pairs, print_result, run_async


def register(subparsers):
    p = subparsers.add_parser("script", help="Edit a script's args, env, timeout, tags, favorite and icon")
    p.add_argument("script", help="Script name (without .sh) or path")
    p.add_argument("--args", dest="script_args", help="Argument string used for every run")
    p.add_argument("--env", action="append", metavar="KEY=VALUE",
                   help="Environment variable (repeatable); replaces the script's env")
    p.add_argument("--timeout", type=int, help="Timeout override in seconds (0 = use defaults)")
    p.add_argument("--tag", action="append", help="Tag (repeatable); replaces the script's tags")
    p.add_argument("--favorite", action=argparse.BooleanOptionalAction, default=None,
                   help="Mark or unmark as favorite")
    p.add_argument("--icon", help="Icon glyph ('' to clear)")
    p.set_defaults(handler=handle)


async def _edit(args):
    orchestrator = build_orchestrator()
    await orchestrator.start()
    path = orchestrator.find(args.script)

    changes = {}
    if args.script_args is not None:
        changes["args"] = args.script_args
    if args.env is not None:
        changes["env_vars"] = parse_pairs(args.env)
    if args.timeout is not None:
        changes["timeout_seconds"] = args.timeout
    if args.tag is not None:
        changes["tags"] = args.tag
    if args.favorite is not None:
        changes["favorite"] = args.favorite
    if args.icon is not None:
        changes["icon"] = args.icon or None

    if not changes:
        return orchestrator.history.get(path)
    return await orchestrator.update_script(path, **changes)


def handle(args):
    from scriptdeck.primitives.errors import ScriptDeckError

    if args.timeout is not None and args.timeout < 0:
        die("--timeout must be >= 0")
    try:
        record = run_async(_edit(args))
    except ScriptDeckError as e:
        die(e.message)

    data = record.to_dict()
    data.pop("history")
    print_result(data)
