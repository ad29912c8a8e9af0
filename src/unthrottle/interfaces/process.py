"""Abstract interface for process execution."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List


@dataclass
class ProcessResult:
    """Output of a command that exited successfully."""

    returncode: int
    stdout: str
    stderr: str


class ProcessRunner(ABC):
    """Abstract interface for process execution."""

    @abstractmethod
    def run(self, command: List[str]) -> ProcessResult:
        """Run *command*, raising ``subprocess.CalledProcessError`` if it fails."""
        pass
