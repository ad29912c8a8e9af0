"""Interface to the VM configuration of the hypervisor."""

from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

Directive = Tuple[str, str]


class VMConfigBackend(ABC):
    """Reads and updates the disk configuration of a VM."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name (e.g., 'qm')."""
        pass

    @abstractmethod
    def get_config(self, vmid: str) -> List[Directive]:
        """Current configuration of *vmid* as ``(key, value)`` pairs."""
        pass

    @abstractmethod
    def update_config(
        self,
        vmid: str,
        directives: Sequence[Directive],
        skiplock: bool = True,
    ) -> None:
        """Set each ``(key, value)`` directive on *vmid* in one call."""
        pass
