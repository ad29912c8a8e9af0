"""Subprocess process runner implementation."""

import subprocess
from typing import List

from ..interfaces.process import ProcessResult, ProcessRunner


class SubprocessRunner(ProcessRunner):
    """Run processes using the subprocess module."""

    def run(self, command: List[str]) -> ProcessResult:
        result = subprocess.run(command, capture_output=True, check=True, text=True)
        return ProcessResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
