"""Subcommand dispatcher for reelcompose.

Usage:
    reelcompose compose  --config settings.yaml --testimonial t-1
    reelcompose intro    --config settings.yaml --response r-1
    reelcompose validate --config settings.yaml
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="reelcompose",
        description="Compose recorded testimonial answers into one branded video.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own main().
    subparsers.add_parser("compose", help="Full testimonial: intro + all answers")
    subparsers.add_parser("intro", help="One response behind its question title card")
    subparsers.add_parser("validate", help="Validate a settings file")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    from . import compose_cli

    if parsed.command == "compose":
        compose_cli.main(remaining)
    elif parsed.command == "intro":
        compose_cli.intro_main(remaining)
    elif parsed.command == "validate":
        compose_cli.validate_main(remaining)


if __name__ == "__main__":
    main()
