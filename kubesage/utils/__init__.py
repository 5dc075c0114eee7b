"""
Utility functions and helpers.

Common utilities for retry logic, logging and command execution.
"""

from kubesage.utils.retry import BackoffPolicy, retry_async
from kubesage.utils.logging import configure_logging, get_logger, bind_request
from kubesage.utils.command import CommandResult, run_command, sanitize_command

__all__ = [
    "BackoffPolicy",
    "retry_async",
    "configure_logging",
    "get_logger",
    "bind_request",
    "CommandResult",
    "run_command",
    "sanitize_command",
]
