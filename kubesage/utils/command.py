"""Command execution utilities for the cluster tools.

kubectl and helm are always executed as argv lists, never through a shell.
"""

import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional

import structlog

logger = structlog.get_logger(__name__)

_FORBIDDEN_CHARACTERS = (";", "|", "&", "`", "$(", ">", "<", "\n", "\r")


class UnsafeCommandError(ValueError):
    """Raised when a command argument contains shell metacharacters."""
    pass


@dataclass
class CommandResult:
    """Outcome of an external command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def sanitize_command(command: List[str]) -> List[str]:
    """Validate an argv list before execution.

    Arguments come from model-generated tool calls, so anything that could be
    interpreted by a shell is rejected even though no shell is involved.

    Raises:
        UnsafeCommandError: If an argument contains a forbidden sequence
    """
    if not command:
        raise UnsafeCommandError("Empty command")
    sanitized = []
    for arg in command:
        arg = str(arg)
        for forbidden in _FORBIDDEN_CHARACTERS:
            if forbidden in arg:
                raise UnsafeCommandError(f"Forbidden sequence {forbidden!r} in argument {arg!r}")
        sanitized.append(arg)
    return sanitized


def check_positional(*values: Optional[str]) -> None:
    """Reject resource or release names that kubectl/helm would parse as flags.

    Raises:
        UnsafeCommandError: If a value starts with '-'
    """
    for value in values:
        if value is not None and str(value).startswith("-"):
            raise UnsafeCommandError(f"Argument {value!r} must not start with '-'")


def run_command(command: List[str], timeout: Optional[float] = None) -> CommandResult:
    """Run a command and capture its output.

    Args:
        command: argv list, validated with sanitize_command
        timeout: Seconds before the process is killed

    Returns:
        CommandResult with decoded stdout/stderr

    Raises:
        UnsafeCommandError: If the command fails validation
        FileNotFoundError: If the executable is missing
        subprocess.TimeoutExpired: If the timeout elapses
    """
    args = sanitize_command(command)
    start = time.monotonic()
    logger.debug(f"Running command: [{' '.join(args)}]")
    process = subprocess.run(args=args, capture_output=True, check=False, timeout=timeout)
    duration = time.monotonic() - start
    logger.debug(
        f"Command finished: [{args[0]}]",
        exit_code=process.returncode,
        duration_seconds=round(duration, 3),
    )
    return CommandResult(
        returncode=process.returncode,
        stdout=process.stdout.decode(errors="replace"),
        stderr=process.stderr.decode(errors="replace"),
    )
