"""Proxmox ``qm`` backend for reading and updating VM configuration."""

from typing import List, Optional, Sequence

import structlog

from ..interfaces.process import ProcessRunner
from ..interfaces.vmconfig import Directive, VMConfigBackend
from ..tokenizer import parse_config
from .subprocess_runner import SubprocessRunner

log = structlog.get_logger(__name__)


class QmBackend(VMConfigBackend):
    """Drives ``qm config`` and ``qm set`` on a Proxmox VE node."""

    name = "qm"

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        qm_binary: str = "qm",
    ):
        self.runner = runner or SubprocessRunner()
        self.qm_binary = qm_binary

    def get_config(self, vmid: str) -> List[Directive]:
        result = self.runner.run([self.qm_binary, "config", str(vmid), "--current"])
        return parse_config(result.stdout)

    def build_set_command(
        self,
        vmid: str,
        directives: Sequence[Directive],
        skiplock: bool = True,
    ) -> List[str]:
        command = [self.qm_binary, "set", str(vmid)]
        if skiplock:
            command += ["--skiplock", "1"]
        for key, value in directives:
            command += [f"--{key}", value]
        return command

    def update_config(
        self,
        vmid: str,
        directives: Sequence[Directive],
        skiplock: bool = True,
    ) -> None:
        if not directives:
            return

        command = self.build_set_command(vmid, directives, skiplock=skiplock)
        log.info("qm.set", vmid=vmid, slots=[key for key, _ in directives])
        result = self.runner.run(command)
        for line in (result.stdout + result.stderr).splitlines():
            if line.strip():
                log.info("qm.output", vmid=vmid, line=line.rstrip())
