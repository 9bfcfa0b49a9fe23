"""Process Runner.

This module runs the external tools the build drives (clang, clang++,
llvm-config) and hands back a structured result instead of a bare exit code.

Design:
    - Wraps subprocess.run with captured stdout/stderr, decoded leniently
    - Never raises for a non-zero exit; each stage decides which error
      from nativebuild.errors to raise
    - A missing executable is reported as exit code 127, like a shell would
    - No timeout: every child process runs to completion
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

CommandArg = Union[str, Path]

EXIT_COMMAND_NOT_FOUND = 127


def _decode(output: Optional[bytes]) -> str:
    # Compilers echo source lines verbatim, which need not be UTF-8
    return output.decode("utf-8", errors="replace") if output else ""


@dataclass
class ProcessResult:
    """Result of one external tool invocation."""

    command: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> List[str]:
        """Non-empty stdout lines."""
        return [line for line in self.stdout.splitlines() if line.strip()]


def run_tool(command: Sequence[CommandArg], cwd: Optional[Path] = None) -> ProcessResult:
    """Run an external tool and capture its output.

    Args:
        command: Executable followed by its arguments
        cwd: Working directory for the child process

    Returns:
        ProcessResult with exit code and captured output
    """
    cmd = [str(arg) for arg in command]
    logger.debug("run: %s", " ".join(cmd))

    try:
        completed = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
        )
    except OSError as e:
        logger.debug("failed to start %s: %s", cmd[0], e)
        return ProcessResult(
            command=cmd,
            returncode=EXIT_COMMAND_NOT_FOUND,
            stdout="",
            stderr=f"{cmd[0]}: {e}",
        )

    if completed.returncode != 0:
        logger.debug("%s exited with %d", cmd[0], completed.returncode)

    return ProcessResult(
        command=cmd,
        returncode=completed.returncode,
        stdout=_decode(completed.stdout),
        stderr=_decode(completed.stderr),
    )
