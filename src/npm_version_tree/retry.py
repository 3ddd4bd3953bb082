"""
Retry policy for registry requests.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, Tuple, Type, TypeVar

from .cli_config import get_config

T = TypeVar("T")

# Delays used by earlier releases: 3s before the first retry, 10s before the second.
BACKOFF_DELAYS = (3.0, 10.0)


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many times to try a request and how long to wait in between.

    ``delays[i]`` is the pause in seconds before retry ``i + 1``. Retries
    without a matching entry happen immediately. Only exceptions listed in
    ``retry_on`` are retried; anything else propagates on the first attempt.
    """

    max_attempts: int = 3
    delays: Tuple[float, ...] = ()
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if any(delay < 0 for delay in self.delays):
            raise ValueError("delays must not be negative")
        object.__setattr__(self, "delays", tuple(self.delays))

    @classmethod
    def immediate(cls, max_attempts: int = 3) -> "RetryPolicy":
        return cls(max_attempts=max_attempts)

    @classmethod
    def backoff(cls, delays: Sequence[float] = BACKOFF_DELAYS) -> "RetryPolicy":
        return cls(max_attempts=len(delays) + 1, delays=tuple(delays))

    def delay_before(self, retry_number: int) -> float:
        """Pause before the given retry (1-based); 0 when not configured."""
        if 1 <= retry_number <= len(self.delays):
            return self.delays[retry_number - 1]
        return 0.0

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retry_on)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        on_failure: Optional[Callable[[int, BaseException], None]] = None,
    ) -> T:
        """
        Await ``operation()`` until it succeeds or attempts run out.

        ``on_failure(attempt, exc)`` is called after every retryable failure.
        When all attempts fail the last exception is re-raised.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                if on_failure is not None:
                    on_failure(attempt, exc)
                if attempt >= self.max_attempts:
                    raise
                delay = self.delay_before(attempt)
                if delay:
                    await asyncio.sleep(delay)

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        """Policy built from the ``fetch`` section of the global configuration."""
        fetch_config = get_config().fetch
        return cls(
            max_attempts=fetch_config.retry_attempts,
            delays=tuple(fetch_config.retry_delays),
        )
