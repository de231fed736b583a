"""Command-line entry point for deary.

This is the only place that consults the process environment (HOME, EDITOR,
XDG_CONFIG_HOME); everything below it receives explicit configuration.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import REPO_DIR, DearyConfig, find_config_file, load_config
from .engine import JournalEngine
from .errors import DearyError


def config_search_dirs() -> list[Path]:
    """Directories searched for a configuration file, in order."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(xdg) if xdg else Path.home() / ".config"
    return [config_home / "deary", Path.home()]


def resolve_config(args: argparse.Namespace) -> DearyConfig:
    """Build configuration: defaults, then environment, then file, then flags."""
    base = DearyConfig(
        repo_path=Path.home() / REPO_DIR,
        editor=os.environ.get("EDITOR") or None,
    )
    config_path = args.config or find_config_file(config_search_dirs())
    config = load_config(config_path, base)
    if args.repo is not None:
        config.repo_path = args.repo
    config.repo_path = config.repo_path.expanduser().absolute()
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deary",
        description="Encrypted journal with a tamper-evident git history",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--repo",
        "-r",
        type=Path,
        help=f"Repository directory (default: ~/{REPO_DIR})",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log external commands and commits",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    init = commands.add_parser("init", help="Initialize a new diary")
    init.add_argument("key_id", help="GPG key ID (or email address, associated with the key)")

    commands.add_parser("list", help="List diary entries")
    commands.add_parser("create", help="Create a new diary entry")

    for name, help_text in [
        ("show", "Show a diary entry"),
        ("edit", "Edit a diary entry"),
        ("delete", "Delete a diary entry"),
    ]:
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("name", help="Entry name")

    log = commands.add_parser("log", help="Show the change history")
    log.add_argument("name", nargs="?", help="Only changes to this entry")

    return parser


def run_command(args: argparse.Namespace, config: DearyConfig) -> None:
    if args.command == "init":
        JournalEngine.initialize(config, args.key_id)
        print(f"Initialized diary in {config.repo_path}")
        return

    engine = JournalEngine(config)

    if args.command == "list":
        for name in sorted(engine.list_entries()):
            print(name)

    elif args.command == "show":
        text = engine.read_entry(args.name)
        sys.stdout.buffer.write(text)
        sys.stdout.buffer.flush()

    elif args.command == "create":
        print(engine.create_entry())

    elif args.command == "edit":
        engine.update_entry(args.name)

    elif args.command == "delete":
        engine.delete_entry(args.name)

    elif args.command == "log":
        for record in engine.history(args.name):
            print(f"{record.sha[:12]}  {record.timestamp.isoformat()}  {record.message}")


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = resolve_config(args)
        run_command(args, config)
    except DearyError as e:
        print(f"deary: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
