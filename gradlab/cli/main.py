# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for gradlab.

Every operation is a subcommand of `gradlab`. The global options
(--config, --log-level, --dry-run, --seed) are inherited by every
subcommand through argparse's parent parser mechanism.

Usage:
    gradlab <subcommand> [options]
    gradlab validate --config configs/regression.yaml
    gradlab train --config configs/regression.yaml --seed 123
    gradlab info
"""

import argparse
import sys
from typing import Optional, Sequence

from gradlab.cli.commands import handle_info, handle_train, handle_validate
from gradlab.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    Uses add_help=False so help text doesn't collide between the parent and
    the subcommand parsers.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML run configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level.",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Validate and describe the command without training.",
    )
    parent.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override the random seed (takes precedence over config).",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """Register every subcommand and set its handler via set_defaults(func=...)."""
    commands = [
        ("train", "Train a model from a run config.", handle_train),
        ("validate", "Load and validate a run config.", handle_validate),
        ("info", "Display environment and config info.", handle_info),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler)

    train_parser = subparsers.choices["train"]
    train_parser.add_argument(
        "--by-step",
        action="store_true",
        default=False,
        dest="by_step",
        help="Stop after the first iteration.",
    )
    train_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for each worker event before giving up.",
    )
    train_parser.add_argument(
        "--report-out",
        type=str,
        default=None,
        dest="report_out",
        help="Write the last encoded report to this path.",
    )


def build_parser() -> argparse.ArgumentParser:
    parent = _build_global_parser()
    root_parser = argparse.ArgumentParser(
        prog="gradlab",
        description="gradlab: interactive gradient-descent training engine.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)
    return root_parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

    If no subcommand is given, we show help and exit with USER_ERROR.
    """
    root_parser = build_parser()
    args = root_parser.parse_args(argv)

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
