#!/usr/bin/env python3
"""Tests for ThrottleConfigManager and the strip/merge rules."""

import subprocess
from unittest.mock import MagicMock

import pytest

from unthrottle.errors import InvalidActionError, InvalidVMIDError
from unthrottle.models import BackupThrottleProfile, ThrottleSnapshot
from unthrottle.throttle import ThrottleConfigManager, merge, strip
from unthrottle.tokenizer import is_throttle_key, parse_record

SCSI0_ORIGINAL = "scsi0:local-lvm:vm-100-disk-0,iops_rd=500,iops_wr=500,cache=writeback,size=32G"
VIRTIO2_ORIGINAL = "virtio2:ceph:vm-100-disk-2,mbps_rd=100,mbps_wr=80,mbps_rd_max=150,discard=on,size=64G"


class TestStrip:
    """Test removal of throttle options."""

    def test_example(self):
        record = parse_record("scsi0:iops_rd=500,iops_wr=500,cache=writeback")
        assert strip(record).to_line() == "scsi0:cache=writeback"

    @pytest.mark.parametrize("line", [
        SCSI0_ORIGINAL,
        VIRTIO2_ORIGINAL,
        "sata1:iops=10,iops_max=20,iops_max_length=5,mbps=1,mbps_max=2",
        "ide0:local:vm-1-disk-0",
        "scsi3:",
    ])
    def test_never_leaves_throttle_keys(self, line):
        stripped = strip(parse_record(line))
        assert not [key for key in stripped.keys if is_throttle_key(key)]

    def test_keeps_other_options_in_order(self):
        stripped = strip(parse_record(SCSI0_ORIGINAL))
        assert stripped.to_line() == "scsi0:local-lvm:vm-100-disk-0,cache=writeback,size=32G"

    def test_does_not_modify_input(self):
        record = parse_record(SCSI0_ORIGINAL)
        strip(record)
        assert record.to_line() == SCSI0_ORIGINAL


class TestMerge:
    """Test replacement of throttle options by a profile."""

    def test_example(self):
        record = parse_record("scsi0:iops_rd=500,iops_wr=500,cache=writeback")
        profile = BackupThrottleProfile(limits={"iops_rd_max": "10000"})
        assert merge(record, profile).to_line() == "scsi0:cache=writeback,iops_rd_max=10000"

    def test_profile_order_kept(self):
        record = parse_record("scsi0:local-lvm:vm-100-disk-0,iops_rd=500")
        profile = BackupThrottleProfile(limits={"mbps_rd": "400", "iops_rd": "5000"})
        merged = merge(record, profile)
        assert merged.to_line() == "scsi0:local-lvm:vm-100-disk-0,mbps_rd=400,iops_rd=5000"

    def test_existing_key_not_duplicated(self):
        record = parse_record("scsi0:local-lvm:vm-100-disk-0,cache=writeback,iops_rd=500")
        profile = BackupThrottleProfile(limits={"cache": "none", "iops_rd": "9000"})

        merged = merge(record, profile)

        assert merged.keys.count("cache") == 1
        assert merged.keys.count("iops_rd") == 1
        assert merged.to_line() == "scsi0:local-lvm:vm-100-disk-0,cache=writeback,iops_rd=9000"

    def test_no_profile_is_strip(self):
        record = parse_record(SCSI0_ORIGINAL)
        assert merge(record, None) == strip(record)

    def test_empty_profile_is_strip(self):
        record = parse_record(SCSI0_ORIGINAL)
        assert merge(record, BackupThrottleProfile()) == strip(record)


class TestCaptureThrottled:
    """Test selection of throttled disk records."""

    def test_only_throttled_disks(self, manager):
        snapshot = manager.capture_throttled("100")

        assert snapshot.vmid == "100"
        assert [record.to_line() for record in snapshot] == [SCSI0_ORIGINAL, VIRTIO2_ORIGINAL]

    def test_no_throttled_disks(self, manager):
        assert manager.capture_throttled("200").is_empty

    def test_unknown_vm(self, manager):
        assert manager.capture_throttled(999).is_empty

    def test_option_value_mentioning_iops_is_not_throttle(self, fake_backend, manager):
        fake_backend.configs["300"] = [("scsi0", "nfs:300/vm-300-iops-test.qcow2,size=4G")]
        assert manager.capture_throttled("300").is_empty

    def test_query_failure_propagates(self, temp_dir):
        backend = MagicMock()
        backend.get_config.side_effect = subprocess.CalledProcessError(2, ["qm", "config"])
        manager = ThrottleConfigManager(backend=backend, snapshot_dir=temp_dir)

        with pytest.raises(subprocess.CalledProcessError):
            manager.capture_throttled("100")


class TestPersistence:
    """Test snapshot files."""

    def test_persist_creates_directory(self, manager):
        snapshot = manager.capture_throttled("100")

        path = manager.persist("100", snapshot)

        assert path == manager.snapshot_dir / "storageconf_100"
        assert path.read_text() == f"{SCSI0_ORIGINAL}\n{VIRTIO2_ORIGINAL}\n"
        assert not path.with_name("storageconf_100.tmp").exists()

    def test_persist_overwrites(self, manager):
        manager.persist("100", manager.capture_throttled("100"))
        snapshot = manager.capture_throttled("100")
        smaller = ThrottleSnapshot(vmid="100", records=snapshot.records[:1])

        manager.persist("100", smaller)

        assert manager.snapshot_path("100").read_text() == f"{SCSI0_ORIGINAL}\n"

    def test_load_and_clear(self, manager):
        original = manager.capture_throttled("100")
        manager.persist("100", original)

        loaded = manager.load_and_clear("100")

        assert loaded == original
        assert not manager.snapshot_path("100").exists()

    def test_load_and_clear_absent(self, manager):
        assert manager.load_and_clear("100") is None

    def test_load_ignores_blank_lines(self, manager):
        manager.snapshot_dir.mkdir(parents=True)
        manager.snapshot_path("100").write_text(f"\n{SCSI0_ORIGINAL}\n\n")

        loaded = manager.load_and_clear("100")

        assert [record.to_line() for record in loaded] == [SCSI0_ORIGINAL]

    def test_peek_keeps_file(self, manager):
        manager.persist("100", manager.capture_throttled("100"))

        assert len(manager.peek("100")) == 2
        assert manager.snapshot_path("100").exists()
        assert manager.peek("200") is None

    def test_pending_snapshots(self, manager):
        manager.persist("100", manager.capture_throttled("100"))
        manager.snapshot_path("20").write_text("scsi1:iops=5\n")
        (manager.snapshot_dir / "storageconf_100.tmp").write_text("junk\n")
        (manager.snapshot_dir / "README").write_text("junk\n")

        pending = manager.pending_snapshots()

        assert [snapshot.vmid for snapshot in pending] == ["20", "100"]

    def test_pending_snapshots_without_directory(self, manager):
        assert manager.pending_snapshots() == []


class TestRemoveThrottle:
    """Test the backup-start flow."""

    def test_nothing_to_do(self, manager, fake_backend):
        result = manager.remove_throttle("200")

        assert not result.changed
        assert "nothing to do" in result.message
        assert fake_backend.updates == []
        assert not manager.snapshot_path("200").exists()

    def test_strips_and_persists(self, manager, fake_backend):
        result = manager.remove_throttle("100")

        assert result.changed
        assert manager.snapshot_path("100").read_text() == f"{SCSI0_ORIGINAL}\n{VIRTIO2_ORIGINAL}\n"
        assert fake_backend.updates == [
            (
                "100",
                [
                    ("scsi0", "local-lvm:vm-100-disk-0,cache=writeback,size=32G"),
                    ("virtio2", "ceph:vm-100-disk-2,discard=on,size=64G"),
                ],
                True,
            )
        ]

    def test_applies_profile(self, fake_backend, temp_dir):
        profile = BackupThrottleProfile(limits={"iops_rd_max": "10000"})
        manager = ThrottleConfigManager(fake_backend, snapshot_dir=temp_dir, profile=profile)

        result = manager.remove_throttle("100")

        assert [record.to_line() for record in result.records] == [
            "scsi0:local-lvm:vm-100-disk-0,cache=writeback,size=32G,iops_rd_max=10000",
            "virtio2:ceph:vm-100-disk-2,discard=on,size=64G,iops_rd_max=10000",
        ]

    def test_update_failure_keeps_snapshot(self, temp_dir, qm_config_entries):
        backend = MagicMock()
        backend.get_config.return_value = qm_config_entries
        backend.update_config.side_effect = subprocess.CalledProcessError(25, ["qm", "set"])
        manager = ThrottleConfigManager(backend=backend, snapshot_dir=temp_dir)

        with pytest.raises(subprocess.CalledProcessError):
            manager.remove_throttle("100")

        assert manager.snapshot_path("100").exists()

    def test_invalid_vmid(self, manager):
        with pytest.raises(InvalidVMIDError):
            manager.remove_throttle("../etc")


class TestRestoreThrottle:
    """Test the backup-end/backup-abort flow."""

    def test_round_trip(self, manager, fake_backend):
        before = fake_backend.get_config("100")
        manager.remove_throttle("100")

        result = manager.restore_throttle("100")

        assert result.changed
        assert fake_backend.updates[-1] == (
            "100",
            [
                ("scsi0", SCSI0_ORIGINAL.split(":", 1)[1]),
                ("virtio2", VIRTIO2_ORIGINAL.split(":", 1)[1]),
            ],
            True,
        )
        assert fake_backend.get_config("100") == before
        assert not manager.snapshot_path("100").exists()

    def test_twice(self, manager, fake_backend):
        manager.remove_throttle("100")

        first = manager.restore_throttle("100")
        second = manager.restore_throttle("100")

        assert first.changed
        assert not second.changed
        assert "nothing to do" in second.message
        assert len(fake_backend.updates) == 2

    def test_nothing_to_do(self, manager, fake_backend):
        result = manager.restore_throttle("100")

        assert not result.changed
        assert fake_backend.updates == []

    def test_empty_snapshot_file(self, manager, fake_backend):
        manager.snapshot_dir.mkdir(parents=True)
        manager.snapshot_path("100").write_text("\n")

        result = manager.restore_throttle("100")

        assert not result.changed
        assert result.message == "No saved throttle config for VM 100, nothing to do"
        assert not manager.snapshot_path("100").exists()
        assert fake_backend.updates == []

    def test_update_failure_propagates(self, temp_dir):
        backend = MagicMock()
        backend.update_config.side_effect = subprocess.CalledProcessError(25, ["qm", "set"])
        manager = ThrottleConfigManager(backend=backend, snapshot_dir=temp_dir)
        manager.snapshot_path("100").write_text(f"{SCSI0_ORIGINAL}\n")

        with pytest.raises(subprocess.CalledProcessError):
            manager.restore_throttle("100")

        assert not manager.snapshot_path("100").exists()


class TestStorageThrottle:
    """Test action dispatch."""

    def test_remove_and_restore(self, manager):
        assert manager.storage_throttle("remove", "100").action == "remove"
        assert manager.storage_throttle("restore", "100").action == "restore"

    def test_invalid_action(self, manager):
        with pytest.raises(InvalidActionError, match="invalid action 'purge'"):
            manager.storage_throttle("purge", "100")

