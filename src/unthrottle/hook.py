#!/usr/bin/env python3
"""
vzdump hook phase dispatch.

vzdump runs the hook once per lifecycle phase as ``<script> PHASE [MODE VMID]``
and passes the rest of the context in environment variables. Those are read
in one place, :meth:`HookContext.from_environ`; everything downstream gets
explicit values.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence

import structlog

from unthrottle.errors import MissingArgumentError, UnknownPhaseError
from unthrottle.logging import hook_context
from unthrottle.paths import validate_vmid
from unthrottle.throttle import ThrottleConfigManager, ThrottleResult

log = structlog.get_logger(__name__)


class Phase(Enum):
    """Lifecycle phases vzdump reports to its hook script."""

    JOB_INIT = "job-init"
    JOB_START = "job-start"
    JOB_END = "job-end"
    JOB_ABORT = "job-abort"
    BACKUP_START = "backup-start"
    BACKUP_END = "backup-end"
    BACKUP_ABORT = "backup-abort"
    LOG_END = "log-end"
    PRE_STOP = "pre-stop"
    PRE_RESTART = "pre-restart"
    POST_RESTART = "post-restart"

    @classmethod
    def parse(cls, value: str) -> "Phase":
        try:
            return cls(value)
        except ValueError:
            raise UnknownPhaseError(value)

    @property
    def is_vm_phase(self) -> bool:
        return self in VM_PHASES


VM_PHASES = frozenset(
    {
        Phase.BACKUP_START,
        Phase.BACKUP_END,
        Phase.BACKUP_ABORT,
        Phase.LOG_END,
        Phase.PRE_STOP,
        Phase.PRE_RESTART,
        Phase.POST_RESTART,
    }
)

PHASE_ACTIONS = {
    Phase.BACKUP_START: "remove",
    Phase.BACKUP_END: "restore",
    Phase.BACKUP_ABORT: "restore",
}

MANAGED_VMTYPES = ("qemu",)


@dataclass(frozen=True)
class HookContext:
    """Everything vzdump tells the hook about the current phase."""

    phase: Phase
    mode: Optional[str] = None  # stop/suspend/snapshot
    vmid: Optional[str] = None
    vmtype: Optional[str] = None  # qemu/lxc (openvz on old releases)
    hostname: Optional[str] = None
    dumpdir: Optional[str] = None
    storeid: Optional[str] = None
    tarfile: Optional[str] = None
    logfile: Optional[str] = None

    @classmethod
    def from_environ(cls, argv: Sequence[str], environ: Mapping[str, str]) -> "HookContext":
        """Build a context from hook arguments (without the program name) and env."""
        if not argv:
            raise MissingArgumentError("missing phase argument")

        phase = Phase.parse(argv[0])
        values = {
            "phase": phase,
            "dumpdir": environ.get("DUMPDIR") or None,
            "storeid": environ.get("STOREID") or None,
        }

        if phase.is_vm_phase:
            if len(argv) < 3:
                raise MissingArgumentError(f"phase '{phase.value}' requires MODE and VMID")
            values["mode"] = argv[1]
            values["vmid"] = validate_vmid(argv[2])
            values["vmtype"] = environ.get("VMTYPE") or None
            values["hostname"] = environ.get("HOSTNAME") or None

        if phase is Phase.BACKUP_END:
            values["tarfile"] = environ.get("TARGET") or environ.get("TARFILE") or None
        if phase is Phase.LOG_END:
            values["logfile"] = environ.get("LOGFILE") or None

        return cls(**values)

    @property
    def action(self) -> Optional[str]:
        return PHASE_ACTIONS.get(self.phase)


def run_hook(context: HookContext, manager: ThrottleConfigManager) -> Optional[ThrottleResult]:
    """Do the work for one phase; None for phases that need none."""
    with hook_context(context.phase.value, mode=context.mode, vmid=context.vmid):
        action = context.action
        if action is None:
            log.debug("hook.phase_ignored")
            return None

        if context.vmtype and context.vmtype not in MANAGED_VMTYPES:
            log.info("hook.vmtype_skipped", vmtype=context.vmtype)
            return None

        return manager.storage_throttle(action, context.vmid)
