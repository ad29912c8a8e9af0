#!/usr/bin/env python3
"""
Shared utilities for the vzdump-unthrottle CLI.
"""

import os
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from unthrottle import paths
from unthrottle.backends import QmBackend
from unthrottle.logging import configure_logging
from unthrottle.models import BackupThrottleProfile, ThrottleSnapshot, load_profile
from unthrottle.throttle import ThrottleConfigManager, ThrottleResult

console = Console()


def setup_logging(args) -> None:
    """Configure logging from ``--log-level``/``--json-logs`` or the environment."""
    level = getattr(args, "log_level", None) or os.getenv("UNTHROTTLE_LOG_LEVEL", "INFO")
    configure_logging(level=level, json_output=getattr(args, "json_logs", False))


def resolve_profile(args) -> Optional[BackupThrottleProfile]:
    profile_file = getattr(args, "profile", None)
    return load_profile(Path(profile_file) if profile_file else paths.profile_path())


def build_manager(args, with_profile: bool = True) -> ThrottleConfigManager:
    """Manager wired to ``qm`` and the configured snapshot directory."""
    state_dir = getattr(args, "state_dir", None)
    return ThrottleConfigManager(
        backend=QmBackend(qm_binary=paths.qm_binary()),
        snapshot_dir=Path(state_dir) if state_dir else paths.state_dir(),
        profile=resolve_profile(args) if with_profile else None,
    )


def print_result(result: ThrottleResult) -> None:
    if result.changed:
        console.print(f"[green]✅ {result.message}[/]")
    else:
        console.print(f"[dim]{result.message}[/]")


def snapshot_table(snapshot: ThrottleSnapshot) -> Table:
    table = Table(title=f"Saved throttle config for VM {snapshot.vmid}")
    table.add_column("Slot", style="cyan")
    table.add_column("Options", style="green")
    for record in snapshot:
        table.add_row(record.slot_id, record.option_string)
    return table
