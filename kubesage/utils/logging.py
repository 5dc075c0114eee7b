"""Structured logging configuration for kubesage."""

from __future__ import annotations

import logging
import sys
import uuid
from typing import Optional, Union

import structlog


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def configure_logging(level: Union[str, int] = logging.INFO, json: bool = False) -> None:
    """Configure structlog for kubesage.

    At DEBUG level, prompts, drafts and tool arguments are logged.
    At INFO level and above, only loop milestones and failures are logged.

    Args:
        level: Standard logging level, as a name ("DEBUG") or number.
        json: Render JSON lines instead of the human-friendly console format.
    """
    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structlog logger."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def bind_request(request_id: Optional[str] = None) -> str:
    """Bind a request id to every log line emitted by the current context.

    Returns:
        The bound request id (generated when not given).
    """
    request_id = request_id or uuid.uuid4().hex[:8]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id
