#!/usr/bin/env python3
"""
Manual throttle commands for the vzdump-unthrottle CLI.
"""

import json

from rich.table import Table

from unthrottle.cli.utils import build_manager, console, print_result, snapshot_table


def cmd_remove(args):
    """Lift disk throttling on a VM and save the original settings."""
    manager = build_manager(args)
    print_result(manager.remove_throttle(args.vmid))


def cmd_restore(args):
    """Put saved disk throttling back on a VM."""
    manager = build_manager(args, with_profile=False)
    print_result(manager.restore_throttle(args.vmid))


def cmd_show(args):
    """Show the saved throttle config of a VM."""
    manager = build_manager(args, with_profile=False)
    snapshot = manager.peek(args.vmid)

    if snapshot is None:
        console.print(f"[dim]No saved throttle config for VM {args.vmid}[/]")
        return

    if args.json:
        console.print_json(json.dumps(snapshot.to_dict()))
        return

    console.print(snapshot_table(snapshot))


def cmd_pending(args):
    """List VMs whose throttling has not been restored yet."""
    manager = build_manager(args, with_profile=False)
    snapshots = manager.pending_snapshots()

    if args.json:
        console.print_json(json.dumps([snapshot.to_dict() for snapshot in snapshots]))
        return

    if not snapshots:
        console.print(f"[dim]No pending throttle restores in {manager.snapshot_dir}[/]")
        return

    table = Table(title="Pending throttle restores")
    table.add_column("VM", style="cyan")
    table.add_column("Slot", style="green")
    table.add_column("Options", style="yellow")
    for snapshot in snapshots:
        for record in snapshot:
            table.add_row(snapshot.vmid, record.slot_id, record.option_string)

    console.print(table)
    console.print("[dim]Run 'unthrottle restore VMID' to put them back.[/]")
