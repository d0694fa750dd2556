"""scriptdeck settings [--set key=value ...] [--add-folder F] [--remove-folder F]

Values given with --set are parsed as YAML scalars, so numbers and
booleans keep their types.
"""

from scriptdeck.cli.output import build_orchestrator, die, parse_pairs, print_result, run_async


def register(subparsers):
    p = subparsers.add_parser("settings", help="Show or change settings")
    p.add_argument("--set", action="append", dest="assignments", metavar="KEY=VALUE",
                   help="Set a settings field (repeatable)")
    p.add_argument("--add-folder", action="append", default=[], help="Add a script folder")
    p.add_argument("--remove-folder", action="append", default=[], help="Remove a script folder")
    p.set_defaults(handler=handle)


async def _settings(args):
    import yaml

    orchestrator = build_orchestrator()
    orchestrator.settings_manager.load()

    changes = {
        key: yaml.safe_load(value) if value else value
        for key, value in parse_pairs(args.assignments).items()
    }
    if changes:
        await orchestrator.settings_manager.save(**changes)
    for folder in args.add_folder:
        folders = orchestrator.settings.additional_folders
        if folder not in folders and folder != orchestrator.settings.scripts_folder:
            await orchestrator.settings_manager.save(additional_folders=[*folders, folder])
    for folder in args.remove_folder:
        folders = [f for f in orchestrator.settings.additional_folders if f != folder]
        await orchestrator.settings_manager.save(additional_folders=folders)
    return orchestrator.settings


def handle(args):
    from scriptdeck.primitives.errors import ScriptDeckError

    try:
        settings = run_async(_settings(args))
    except ScriptDeckError as e:
        die(e.message)
    print_result(settings.model_dump())
