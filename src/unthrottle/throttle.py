#!/usr/bin/env python3
"""Remove disk I/O throttles for the duration of a backup and put them back."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import structlog

from unthrottle.errors import InvalidActionError
from unthrottle.interfaces.vmconfig import VMConfigBackend
from unthrottle.logging import log_operation
from unthrottle.models import BackupThrottleProfile, DiskRecord, OptionToken, ThrottleSnapshot
from unthrottle.paths import snapshot_path, state_dir, validate_vmid, vmid_from_snapshot_path
from unthrottle.tokenizer import is_disk_slot, is_throttle_key, make_record, parse_record

log = structlog.get_logger(__name__)


def strip(record: DiskRecord) -> DiskRecord:
    """Copy of *record* without any throttle option."""
    return DiskRecord(
        slot_id=record.slot_id,
        options=tuple(token for token in record.options if not is_throttle_key(token.key)),
    )


def merge(record: DiskRecord, profile: Optional[BackupThrottleProfile]) -> DiskRecord:
    """Strip *record*, then append each profile key it does not already carry."""
    stripped = strip(record)
    if profile is None:
        return stripped

    present = set(stripped.keys)
    extra = []
    for key, value in profile.items():
        if key in present:
            continue
        present.add(key)
        extra.append(OptionToken(key=key, value=value))
    return DiskRecord(slot_id=stripped.slot_id, options=stripped.options + tuple(extra))


@dataclass
class ThrottleResult:
    """Outcome of a remove or restore."""

    action: str
    vmid: str
    changed: bool
    records: Tuple[DiskRecord, ...] = field(default_factory=tuple)

    @property
    def message(self) -> str:
        if not self.changed:
            if self.action == "remove":
                return f"No throttled disks on VM {self.vmid}, nothing to do"
            return f"No saved throttle config for VM {self.vmid}, nothing to do"
        slots = ", ".join(record.slot_id for record in self.records)
        if self.action == "remove":
            return f"Throttling lifted on VM {self.vmid} ({slots})"
        return f"Throttling restored on VM {self.vmid} ({slots})"


class ThrottleConfigManager:
    """Capture, replace and restore per-disk throttle settings of VMs.

    The original records of a VM are kept in a snapshot file under
    *snapshot_dir* between :meth:`remove_throttle` and :meth:`restore_throttle`.
    """

    def __init__(
        self,
        backend: VMConfigBackend,
        snapshot_dir: Optional[Path] = None,
        profile: Optional[BackupThrottleProfile] = None,
    ):
        self.backend = backend
        self.snapshot_dir = snapshot_dir or state_dir()
        self.profile = profile

    def snapshot_path(self, vmid: Union[str, int]) -> Path:
        return snapshot_path(vmid, root=self.snapshot_dir)

    def capture_throttled(self, vmid: Union[str, int]) -> ThrottleSnapshot:
        """Disk records of *vmid* that carry at least one throttle option."""
        vmid = validate_vmid(vmid)
        records = []
        for slot_id, options in self.backend.get_config(vmid):
            if not is_disk_slot(slot_id):
                continue
            record = make_record(slot_id, options)
            if any(is_throttle_key(key) for key in record.keys):
                records.append(record)
        return ThrottleSnapshot(vmid=vmid, records=tuple(records))

    def replacement_for(self, record: DiskRecord) -> DiskRecord:
        # No profile and an empty profile both mean strip only.
        if self.profile is None or self.profile.is_empty:
            return strip(record)
        return merge(record, self.profile)

    def persist(self, vmid: Union[str, int], snapshot: ThrottleSnapshot) -> Path:
        """Write *snapshot* to the snapshot file of *vmid*, replacing any old one."""
        path = self.snapshot_path(vmid)
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(snapshot.to_text())
        tmp_path.replace(path)

        log.debug("snapshot.persisted", vmid=snapshot.vmid, path=str(path), disks=len(snapshot))
        return path

    def peek(self, vmid: Union[str, int]) -> Optional[ThrottleSnapshot]:
        """Read the persisted snapshot of *vmid* without removing it."""
        vmid = validate_vmid(vmid)
        path = self.snapshot_path(vmid)
        if not path.exists():
            return None
        return self._read_snapshot(vmid, path)

    def load_and_clear(self, vmid: Union[str, int]) -> Optional[ThrottleSnapshot]:
        """Read and delete the persisted snapshot of *vmid*; None if there is none."""
        vmid = validate_vmid(vmid)
        path = self.snapshot_path(vmid)
        if not path.exists():
            return None

        snapshot = self._read_snapshot(vmid, path)
        path.unlink()
        log.debug("snapshot.loaded", vmid=vmid, path=str(path), disks=len(snapshot))
        return snapshot

    def pending_snapshots(self) -> List[ThrottleSnapshot]:
        """All snapshots still waiting for a restore, ordered by VM id."""
        if not self.snapshot_dir.is_dir():
            return []

        snapshots = []
        for path in self.snapshot_dir.iterdir():
            vmid = vmid_from_snapshot_path(path)
            if vmid is None or not path.is_file():
                continue
            snapshots.append(self._read_snapshot(vmid, path))
        return sorted(snapshots, key=lambda s: int(s.vmid))

    def apply_records(self, vmid: Union[str, int], records: Sequence[DiskRecord]) -> None:
        """Push *records* to the VM config in one update, ignoring VM locks."""
        directives = [(record.slot_id, record.option_string) for record in records]
        self.backend.update_config(validate_vmid(vmid), directives, skiplock=True)

    def remove_throttle(self, vmid: Union[str, int]) -> ThrottleResult:
        """Save the throttled disk records of *vmid*, then lift or cap the limits."""
        vmid = validate_vmid(vmid)
        with log_operation(log, "throttle.remove", vmid=vmid) as op_log:
            snapshot = self.capture_throttled(vmid)
            if snapshot.is_empty:
                op_log.info("throttle.remove.nothing_to_do")
                return ThrottleResult(action="remove", vmid=vmid, changed=False)

            self.persist(vmid, snapshot)
            replacement = tuple(self.replacement_for(record) for record in snapshot)
            self.apply_records(vmid, replacement)
            return ThrottleResult(action="remove", vmid=vmid, changed=True, records=replacement)

    def restore_throttle(self, vmid: Union[str, int]) -> ThrottleResult:
        """Re-apply the disk records saved by :meth:`remove_throttle`."""
        vmid = validate_vmid(vmid)
        with log_operation(log, "throttle.restore", vmid=vmid) as op_log:
            snapshot = self.load_and_clear(vmid)
            if not snapshot:
                op_log.info("throttle.restore.nothing_to_do")
                return ThrottleResult(action="restore", vmid=vmid, changed=False)

            try:
                self.apply_records(vmid, snapshot.records)
            except Exception:
                # The snapshot file is already gone; keep the records in the log.
                for record in snapshot:
                    op_log.error("throttle.restore.unapplied", record=record.to_line())
                raise
            return ThrottleResult(
                action="restore", vmid=vmid, changed=True, records=snapshot.records
            )

    def storage_throttle(self, action: str, vmid: Union[str, int]) -> ThrottleResult:
        """Run ``remove`` or ``restore`` for *vmid*."""
        if action == "remove":
            return self.remove_throttle(vmid)
        if action == "restore":
            return self.restore_throttle(vmid)
        raise InvalidActionError(action)

    def _read_snapshot(self, vmid: str, path: Path) -> ThrottleSnapshot:
        records = tuple(
            parse_record(line) for line in path.read_text().splitlines() if line.strip()
        )
        return ThrottleSnapshot(vmid=vmid, records=records)
