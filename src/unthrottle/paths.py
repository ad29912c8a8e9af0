"""
Canonical path helpers for vzdump-unthrottle.

Every module that needs to locate the snapshot directory, a per-VM snapshot
file or the backup throttle profile should import from here instead of
computing paths inline.
"""

import os
import re
import sys
from pathlib import Path
from typing import Optional, Union

from unthrottle.errors import InvalidVMIDError

PROGRAM_NAME = "vzdump-unthrottle"
PROFILE_NAME = f"{PROGRAM_NAME}.yaml"
STATE_ROOT = Path("/var/tmp")
SNAPSHOT_PREFIX = "storageconf_"

_VMID_RE = re.compile(r"^[0-9]+$")


# ── program location ─────────────────────────────────────────────────────────

def program_path() -> Optional[Path]:
    """Path of the running hook script, if it can be determined."""
    argv0 = sys.argv[0] if sys.argv else ""
    if not argv0 or argv0 in ("-c", "-m"):
        return None
    return Path(argv0)


# ── VM ids ───────────────────────────────────────────────────────────────────

def validate_vmid(vmid: Union[str, int]) -> str:
    """Return *vmid* as a string, rejecting anything but a decimal number."""
    text = str(vmid).strip()
    if not _VMID_RE.match(text):
        raise InvalidVMIDError(str(vmid))
    return text


# ── snapshot storage ─────────────────────────────────────────────────────────

def state_dir() -> Path:
    """Directory holding the persisted snapshots.

    Lives under /var/tmp so a snapshot survives an unexpected host reboot.
    Both console scripts share it, whatever name they were started under.
    """
    override = os.getenv("UNTHROTTLE_STATE_DIR")
    if override:
        return Path(override)
    return STATE_ROOT / PROGRAM_NAME


def snapshot_path(vmid: Union[str, int], root: Optional[Path] = None) -> Path:
    """Path of the snapshot file for *vmid*."""
    return (root or state_dir()) / f"{SNAPSHOT_PREFIX}{validate_vmid(vmid)}"


def vmid_from_snapshot_path(path: Path) -> Optional[str]:
    """Inverse of :func:`snapshot_path`; None for unrelated files."""
    if not path.name.startswith(SNAPSHOT_PREFIX):
        return None
    vmid = path.name[len(SNAPSHOT_PREFIX):]
    return vmid if _VMID_RE.match(vmid) else None


# ── configuration ────────────────────────────────────────────────────────────

def profile_path() -> Path:
    """Backup throttle profile, in the directory of the installed scripts.

    ``/usr/local/bin/vzdump-unthrottle`` and ``/usr/local/bin/unthrottle``
    both read ``/usr/local/bin/vzdump-unthrottle.yaml``.
    """
    override = os.getenv("UNTHROTTLE_PROFILE")
    if override:
        return Path(override)
    path = program_path()
    if path is None:
        return Path.cwd() / PROFILE_NAME
    return path.resolve().parent / PROFILE_NAME


def qm_binary() -> str:
    """The Proxmox ``qm`` command."""
    return os.getenv("UNTHROTTLE_QM", "qm")
