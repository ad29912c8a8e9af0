"""
Pytest fixtures and configuration for vzdump-unthrottle tests.
"""
import logging
import tempfile
from pathlib import Path
from typing import Dict, List, Sequence, Tuple
from unittest.mock import MagicMock, patch

import pytest
import structlog

from unthrottle.interfaces.vmconfig import VMConfigBackend
from unthrottle.throttle import ThrottleConfigManager

QM_CONFIG_OUTPUT = """\
boot: order=scsi0;ide2;net0
cores: 2
ide2: local:iso/debian-12.iso,media=cdrom,size=628M
memory: 4096
name: web01
net0: virtio=BC:24:11:AA:BB:CC,bridge=vmbr0,rate=50
scsi0: local-lvm:vm-100-disk-0,iops_rd=500,iops_wr=500,cache=writeback,size=32G
scsi1: local-lvm:vm-100-disk-1,size=100G
scsihw: virtio-scsi-pci
unused0: local-lvm:vm-100-disk-3,iops_rd=100
virtio2: ceph:vm-100-disk-2,mbps_rd=100,mbps_wr=80,mbps_rd_max=150,discard=on,size=64G
"""


class FakeVMConfigBackend(VMConfigBackend):
    """In-memory stand-in for ``qm``."""

    name = "fake"

    def __init__(self, configs: Dict[str, List[Tuple[str, str]]] = None):
        self.configs = {vmid: list(entries) for vmid, entries in (configs or {}).items()}
        self.updates: List[Tuple[str, List[Tuple[str, str]], bool]] = []

    def get_config(self, vmid: str) -> List[Tuple[str, str]]:
        return list(self.configs.get(vmid, []))

    def update_config(
        self, vmid: str, directives: Sequence[Tuple[str, str]], skiplock: bool = True
    ) -> None:
        self.updates.append((vmid, list(directives), skiplock))
        entries = dict(self.configs.get(vmid, []))
        entries.update(directives)
        self.configs[vmid] = list(entries.items())


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI tests."""
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(saved_level)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def qm_config_output():
    """Output of ``qm config 100 --current``."""
    return QM_CONFIG_OUTPUT


@pytest.fixture
def qm_config_entries(qm_config_output):
    from unthrottle.tokenizer import parse_config

    return parse_config(qm_config_output)


@pytest.fixture
def fake_backend(qm_config_entries):
    """Backend with VM 100 (two throttled disks) and VM 200 (none)."""
    return FakeVMConfigBackend(
        {
            "100": qm_config_entries,
            "200": [
                ("scsi0", "local-lvm:vm-200-disk-0,size=16G"),
                ("net0", "virtio=BC:24:11:00:00:01,bridge=vmbr0"),
            ],
        }
    )


@pytest.fixture
def manager(fake_backend, temp_dir):
    return ThrottleConfigManager(backend=fake_backend, snapshot_dir=temp_dir / "state")


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for testing without actual command execution."""
    with patch("subprocess.run") as mock_run:
        mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="")
        yield mock_run
