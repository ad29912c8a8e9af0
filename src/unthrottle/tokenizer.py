"""Parsing of ``qm config`` output and disk option strings."""

import re
from typing import List, Tuple

from unthrottle.errors import RecordFormatError
from unthrottle.models import DiskRecord, OptionToken

DISK_BUSES = ("ide", "sata", "scsi", "virtio")
THROTTLE_PREFIXES = ("iops", "mbps")

_DISK_SLOT_RE = re.compile(r"^(%s)[0-9]+$" % "|".join(DISK_BUSES))


def is_disk_slot(slot_id: str) -> bool:
    """True for disk attachment points such as ``scsi0`` or ``virtio12``."""
    return bool(_DISK_SLOT_RE.match(slot_id))


def is_throttle_key(key: str) -> bool:
    """True for I/O limit options (``iops_rd``, ``mbps_wr_max``, ...)."""
    return key.startswith(THROTTLE_PREFIXES)


def parse_options(text: str) -> Tuple[OptionToken, ...]:
    tokens = []
    for raw in text.split(","):
        raw = raw.strip()
        if not raw:
            continue
        key, sep, value = raw.partition("=")
        tokens.append(OptionToken(key=key, value=value if sep else None))
    return tuple(tokens)


def make_record(slot_id: str, options: str) -> DiskRecord:
    return DiskRecord(slot_id=slot_id, options=parse_options(options))


def parse_record(line: str) -> DiskRecord:
    """Parse the ``<slot_id>:<options>`` form written to snapshot files.

    Only the first ``:`` separates; volume ids such as
    ``local-lvm:vm-100-disk-0`` keep theirs.
    """
    slot_id, sep, options = line.strip().partition(":")
    if not sep or not slot_id:
        raise RecordFormatError(f"malformed disk record: {line.strip()!r}")
    return make_record(slot_id, options)


def parse_config(text: str) -> List[Tuple[str, str]]:
    """Parse ``qm config`` output into ``(key, value)`` pairs.

    Only the top-level section is read: anything from the first ``[section]``
    header on describes pending changes or snapshots, not the running config.
    """
    entries = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("["):
            break
        key, sep, value = stripped.partition(":")
        if not sep:
            continue
        entries.append((key.strip(), value.strip()))
    return entries
