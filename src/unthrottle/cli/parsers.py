#!/usr/bin/env python3
"""
Argument parsers for the vzdump-unthrottle CLI.
"""

import argparse
from typing import List, Optional

from rich.markup import escape

from unthrottle import __version__
from unthrottle.cli.hook_commands import cmd_hook
from unthrottle.cli.throttle_commands import cmd_pending, cmd_remove, cmd_restore, cmd_show
from unthrottle.cli.utils import console, setup_logging
from unthrottle.errors import UserError


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (default: $UNTHROTTLE_LOG_LEVEL or INFO)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON")
    parser.add_argument(
        "--state-dir",
        help="Directory for saved throttle configs (default: /var/tmp/vzdump-unthrottle)",
    )


def _add_hook_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "phase",
        help="vzdump phase: job-(init|start|end|abort), backup-(start|end|abort), "
        "log-end, pre-(stop|restart), post-restart",
    )
    parser.add_argument("mode", nargs="?", help="Backup mode: stop|suspend|snapshot")
    parser.add_argument("vmid", nargs="?", help="VM id")


def _run(args) -> int:
    try:
        setup_logging(args)
        args.func(args)
    except UserError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/]")
        return 1
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unthrottle",
        description="Lift Proxmox VM disk throttling during vzdump backups",
    )
    parser.add_argument("--version", action="version", version=f"unthrottle {__version__}")
    _add_common_arguments(parser)

    subparsers = parser.add_subparsers(dest="command", help="Commands")
    parser.set_defaults(func=lambda args, p=parser: p.print_help())

    remove_parser = subparsers.add_parser(
        "remove", help="Save and lift the disk throttles of a VM"
    )
    remove_parser.add_argument("vmid", help="VM id")
    remove_parser.add_argument(
        "--profile", help="Throttle profile YAML (default: next to the hook script)"
    )
    remove_parser.set_defaults(func=cmd_remove)

    restore_parser = subparsers.add_parser(
        "restore", help="Restore the saved disk throttles of a VM"
    )
    restore_parser.add_argument("vmid", help="VM id")
    restore_parser.set_defaults(func=cmd_restore)

    show_parser = subparsers.add_parser("show", help="Show the saved throttle config of a VM")
    show_parser.add_argument("vmid", help="VM id")
    show_parser.add_argument("--json", action="store_true", help="Output JSON")
    show_parser.set_defaults(func=cmd_show)

    pending_parser = subparsers.add_parser(
        "pending", help="List VMs with saved throttle configs not yet restored"
    )
    pending_parser.add_argument("--json", action="store_true", help="Output JSON")
    pending_parser.set_defaults(func=cmd_pending)

    hook_parser = subparsers.add_parser("hook", help="Run as vzdump hook for one phase")
    _add_hook_arguments(hook_parser)
    hook_parser.set_defaults(func=cmd_hook)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of the ``unthrottle`` management command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    return _run(args)


def hook_main(argv: Optional[List[str]] = None) -> int:
    """Entry point vzdump calls: ``vzdump-unthrottle PHASE [MODE VMID]``.

    Configure it with ``script: /usr/local/bin/vzdump-unthrottle`` in
    /etc/vzdump.conf.
    """
    parser = argparse.ArgumentParser(
        prog="vzdump-unthrottle",
        description="vzdump hook script lifting disk throttles during backups",
    )
    parser.add_argument("--version", action="version", version=f"vzdump-unthrottle {__version__}")
    _add_common_arguments(parser)
    _add_hook_arguments(parser)
    parser.set_defaults(func=cmd_hook)

    args = parser.parse_args(argv)
    return _run(args)
