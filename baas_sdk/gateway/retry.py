"""
Retry policy for gateway calls.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar

from ..exceptions import TransportError

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class RetryPolicy:
    """
    Bounded retry with an optional hook run after each failed attempt.

    Attributes:
        max_attempts: Total number of attempts, including the first one
        backoff_factor: Delay before attempt n+1 is ``backoff_factor * 2**(n-1)``;
            zero retries immediately
        retry_on: Exception types that count as retryable failures
    """
    max_attempts: int = 2
    backoff_factor: float = 0.0
    retry_on: Tuple[Type[BaseException], ...] = (TransportError,)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay(self, attempt: int) -> float:
        if self.backoff_factor <= 0:
            return 0.0
        return self.backoff_factor * (2 ** (attempt - 1))

    def run(
        self,
        func: Callable[[int], T],
        on_failure: Optional[Callable[[int, BaseException], None]] = None
    ) -> T:
        """
        Call ``func(attempt)`` until it succeeds or attempts run out.

        Exceptions outside ``retry_on`` propagate immediately. After every
        retryable failure ``on_failure(attempt, error)`` is called, including
        the last one.

        Raises:
            The last retryable exception once all attempts have failed
        """
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(attempt)
            except self.retry_on as e:
                last_error = e
                logger.warning(f"Attempt {attempt}/{self.max_attempts} failed: {e}")
                if on_failure is not None:
                    on_failure(attempt, e)
                if attempt < self.max_attempts:
                    wait_time = self.delay(attempt)
                    if wait_time:
                        time.sleep(wait_time)
        assert last_error is not None
        raise last_error
