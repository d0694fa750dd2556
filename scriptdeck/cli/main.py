"""scriptdeck entry point.

Maps shell verbs to orchestrator operations: list, run, history, script,
settings and watch.
"""

import argparse
import os
import sys

from scriptdeck.cli.verbs import history, list_scripts, run, script, settings, watch


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scriptdeck",
        description="Run a folder of shell scripts with bounded concurrency and history",
    )
    parser.add_argument(
        "--home",
        help="User space directory for settings, state and logs (default: ~/.scriptdeck)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="verb", required=True)

    list_scripts.register(sub)
    run.register(sub)
    history.register(sub)
    script.register(sub)
    settings.register(sub)
    watch.register(sub)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    # Must be set before any scriptdeck logger is created.
    if args.home:
        os.environ["SCRIPTDECK_HOME"] = args.home

    if args.debug:
        import logging
        logging.basicConfig(
            level=logging.DEBUG,
            format="[%(name)s] %(levelname)s: %(message)s",
            stream=sys.stderr,
        )

    handler = args.handler
    handler(args)


if __name__ == "__main__":
    main()
