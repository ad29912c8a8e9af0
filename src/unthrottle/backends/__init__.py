"""Concrete implementations of the collaborator interfaces."""

from .qm_backend import QmBackend
from .subprocess_runner import SubprocessRunner

__all__ = ["QmBackend", "SubprocessRunner"]
