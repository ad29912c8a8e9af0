#!/usr/bin/env python3
"""
vzdump hook command.
"""

import os

from unthrottle.cli.utils import build_manager, print_result
from unthrottle.hook import HookContext, run_hook


def cmd_hook(args):
    """Handle one vzdump lifecycle phase."""
    argv = [value for value in (args.phase, args.mode, args.vmid) if value is not None]
    context = HookContext.from_environ(argv, os.environ)

    # The profile is only needed when throttling is lifted.
    manager = build_manager(args, with_profile=context.action == "remove")
    result = run_hook(context, manager)
    if result is not None:
        print_result(result)
