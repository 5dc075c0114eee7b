"""Retry logic with exponential backoff."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

from kubesage.llm.errors import EmptyResponseError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Exponential backoff: ``delay(n) = base_seconds * 2**n``.

    ``max_seconds`` optionally caps a single delay. The policy is pure and
    deterministic, so it is monotonically non-decreasing in ``attempt``.

    Example:
        >>> BackoffPolicy().delay(1), BackoffPolicy().delay(2)
        (2.0, 4.0)
        >>> BackoffPolicy(base_seconds=1, max_seconds=5).delay(10)
        5.0
    """

    base_seconds: float = 1.0
    max_seconds: Optional[float] = None

    def delay(self, attempt: int) -> float:
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        delay = float(self.base_seconds * (2 ** attempt))
        if self.max_seconds is not None:
            delay = min(delay, float(self.max_seconds))
        return delay

    @classmethod
    def from_config(cls, config) -> "BackoffPolicy":
        return cls(base_seconds=config.backoff_base_seconds, max_seconds=config.backoff_max_seconds)


def _non_empty_text(result: Any) -> bool:
    return isinstance(result, str) and bool(result.strip())


async def retry_async(
    operation: Callable[[], Awaitable[Any]],
    *,
    attempts: int,
    backoff: BackoffPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "call",
    accept: Optional[Callable[[Any], bool]] = None,
) -> Any:
    """
    Await ``operation()`` until it produces an accepted result.

    Args:
        operation: Zero-argument coroutine function performing one attempt
        attempts: Total number of attempts (>= 1)
        backoff: Policy computing the wait after failed attempt ``n``
        sleep: Awaitable sleep, injectable for tests
        label: Name used in log lines
        accept: Predicate for a successful result (default: non-empty text)

    Returns:
        The first accepted result.

    Raises:
        The exception of the last failed attempt. A rejected result counts as
        a failure and surfaces as EmptyResponseError.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")
    accept = accept or _non_empty_text

    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
            if not accept(result):
                raise EmptyResponseError(f"{label} returned an empty response")
            return result
        except Exception as e:
            if attempt >= attempts:
                logger.warning(f"{label} failed after {attempts} attempts", error=str(e))
                raise
            delay = backoff.delay(attempt)
            logger.warning(
                f"{label} failed (attempt {attempt}/{attempts}), retrying",
                error=str(e),
                delay_seconds=delay,
            )
            await sleep(delay)
