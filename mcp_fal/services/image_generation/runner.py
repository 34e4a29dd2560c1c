"""
Runner: generate-with-retry under a single deadline, with structured logging.
Transient failures (rate limits, 502/503, connection resets, DNS) are retried with
exponential backoff; everything else propagates on the first attempt.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from mcp_fal.services.image_generation.base import UpstreamError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DEADLINE_SECONDS = 180.0

RETRYABLE_SIGNALS = (
    "RATE_LIMIT",
    "rate limit",
    "429",
    "502",
    "503",
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
    "connection reset",
    "connecttimeout",
    "connect timeout",
    "name or service not known",
    "temporarily unavailable",
    "too many requests",
)

# Keys for structured logging
LOG_KEYS = (
    "endpoint",
    "attempt",
    "max_attempts",
    "retryable",
    "delay_seconds",
    "error",
)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    retryable_signals: tuple[str, ...] = RETRYABLE_SIGNALS

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def is_retryable(self, error: BaseException) -> bool:
        message = str(error).lower()
        return any(signal.lower() in message for signal in self.retryable_signals)

    def delays(self) -> list[float]:
        """Sleep before attempt 2, 3, ... (seconds)."""
        out: list[float] = []
        delay = self.initial_delay
        for _ in range(self.max_retries):
            out.append(delay)
            delay = min(delay * self.backoff_multiplier, self.max_delay)
        return out


async def generate_with_retry(
    call: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    deadline: float = DEFAULT_DEADLINE_SECONDS,
    endpoint: str | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """
    Run call() until it succeeds, a non-retryable failure occurs, or retries run out.
    The deadline covers all attempts and backoff sleeps together; when it expires
    UpstreamTimeoutError is raised no matter how many retries are left.
    On exhausted retries the last failure is re-raised unchanged.
    """
    policy = policy or RetryPolicy()
    try:
        return await asyncio.wait_for(
            _attempts(call, policy, endpoint, sleep, on_retry),
            timeout=deadline,
        )
    except asyncio.TimeoutError as e:
        logger.error(
            "image_generation_deadline_exceeded",
            extra={"endpoint": endpoint, "duration_ms": int(deadline * 1000)},
        )
        raise UpstreamTimeoutError(deadline) from e


async def _attempts(
    call: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    endpoint: str | None,
    sleep: Callable[[float], Awaitable[Any]],
    on_retry: Callable[[int, BaseException], None] | None,
) -> T:
    delays = policy.delays()
    attempt = 0
    while True:
        attempt += 1
        try:
            result = await _call_once(call)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            retryable = policy.is_retryable(e)
            _log_structured(
                endpoint=endpoint,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                retryable=retryable,
                error=str(e) or type(e).__name__,
            )
            if not retryable or attempt >= policy.max_attempts:
                raise
            delay = delays[attempt - 1]
            logger.info(
                "image_generation_retry_scheduled",
                extra={
                    "endpoint": endpoint,
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                    "delay_seconds": delay,
                },
            )
            if on_retry is not None:
                on_retry(attempt, e)
            await sleep(delay)
            continue
        if attempt > 1:
            logger.info(
                "image_generation_success_after_retry",
                extra={"endpoint": endpoint, "attempt": attempt},
            )
        return result


async def _call_once(call: Callable[[], Awaitable[T]]) -> T:
    """One attempt. A TimeoutError raised by the call itself is not the deadline expiring."""
    try:
        return await call()
    except (TimeoutError, asyncio.TimeoutError) as e:
        raise UpstreamError(f"{type(e).__name__}: {e}") from e


def _log_structured(**kwargs: Any) -> None:
    """Emit one structured log line per failed attempt."""
    extra = {k: v for k, v in kwargs.items() if k in LOG_KEYS and v is not None}
    logger.warning("image_generation_attempt_failed", extra=extra)
