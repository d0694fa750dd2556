"""scriptdeck run <script>... [--terminal] [--quiet]

Scripts are requested in argument order, so with a concurrency ceiling of
N the first N start immediately and the rest run in FIFO order.
"""

import sys

from scriptdeck.cli.output import build_orchestrator, die, print_result, run_async


def register(subparsers):
    p = subparsers.add_parser("run", help="Run scripts by name or path")
    p.add_argument("scripts", nargs="+", help="Script names (without .sh) or paths")
    p.add_argument("--terminal", action="store_true",
                   help="Open each script in a terminal window instead")
    p.add_argument("--quiet", "-q", action="store_true",
                   help="Do not stream script output")
    p.set_defaults(handler=handle)


def _printer(names):
    def on_output(path: str, line: str, is_error: bool) -> None:
        stream = sys.stderr if is_error else sys.stdout
        print(f"[{names.get(path, path)}] {line}", file=stream, flush=True)

    return on_output


async def _run(args):
    from scriptdeck.models import RunMode
    from scriptdeck.utils.path_utils import expand_path, script_name

    orchestrator = build_orchestrator()
    await orchestrator.start()

    paths = []
    for script in args.scripts:
        if "/" in script:
            script = expand_path(script)
        paths.append(orchestrator.find(script))

    if not args.quiet:
        orchestrator.on_output = _printer({path: script_name(path) for path in paths})

    entries = {}
    orchestrator.on_completion(lambda path, entry: entries.setdefault(path, entry))

    mode = RunMode.TERMINAL if args.terminal else RunMode.BACKGROUND
    try:
        for path in paths:
            state = await orchestrator.request_run(path, mode)
            print(f"[scriptdeck] {script_name(path)}: {state.value}", file=sys.stderr)
        await orchestrator.wait_idle()
    finally:
        await orchestrator.stop(kill_running=True)

    return [(path, entries.get(path)) for path in dict.fromkeys(paths)]


def handle(args):
    from scriptdeck.primitives.errors import ScriptDeckError

    try:
        results = run_async(_run(args))
    except ScriptDeckError as e:
        die(e.message)

    summary = []
    failed = False
    for path, entry in results:
        summary.append({
            "path": path,
            "exit_code": entry.exit_code if entry else None,
            "timed_out": entry.timed_out if entry else False,
            "duration_ms": entry.duration_ms if entry else None,
            "mode": entry.mode.value if entry else None,
        })
        # No entry means the run ended without a result.
        if entry is None or (entry.exit_code is not None and (entry.exit_code != 0 or entry.timed_out)):
            failed = True

    print_result(summary)
    if failed:
        sys.exit(1)
