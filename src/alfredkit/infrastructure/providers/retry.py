"""Retry policy and per-provider retry loop."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, Protocol, TypeVar

from .errors import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

Sleeper = Callable[[float], None]

# Exponent cap for the backoff doubling.
MAX_BACKOFF_DOUBLINGS = 8


class Provider(Protocol[T_co]):
    """A named upstream capable of producing one payload per call."""

    name: str

    def fetch_once(self) -> T_co:
        """Fetch the payload or raise :class:`ProviderError`."""
        ...


@dataclass
class FunctionProvider(Generic[T]):
    """Adapt a plain callable into a :class:`Provider`."""

    name: str
    fetch: Callable[[], T]

    def fetch_once(self) -> T:
        return self.fetch()


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts per provider, including the first.
        base_backoff_ms: Delay before the second attempt; doubles afterwards.
    """

    max_attempts: int = 3
    base_backoff_ms: int = 200

    def backoff_for_attempt(self, attempt: int) -> int:
        """Milliseconds to wait before the 1-indexed ``attempt``."""
        if attempt <= 1:
            return 0
        return self.base_backoff_ms * 2 ** min(attempt - 2, MAX_BACKOFF_DOUBLINGS)


def run_with_retry(provider: Provider[T], policy: RetryPolicy, sleep: Sleeper = time.sleep) -> T:
    """
    Call ``provider.fetch_once`` under ``policy``.

    Args:
        provider: Provider to call
        policy: Attempt budget and backoff
        sleep: Sleep function taking seconds; injectable for tests

    Returns:
        The provider payload

    Raises:
        ProviderError: The non-retryable error, or the last retryable one
            once attempts are exhausted
    """
    max_attempts = max(policy.max_attempts, 1)

    for attempt in range(1, max_attempts + 1):
        delay_ms = policy.backoff_for_attempt(attempt)
        if delay_ms > 0:
            sleep(delay_ms / 1000)
        try:
            return provider.fetch_once()
        except ProviderError as e:
            if not e.retryable:
                logger.debug(f"{provider.name}: giving up after non-retryable error: {e}")
                raise
            if attempt == max_attempts:
                logger.warning(f"{provider.name}: all {max_attempts} attempts failed: {e}")
                raise
            logger.warning(
                f"{provider.name}: attempt {attempt} failed: {e}. "
                f"Retrying in {policy.backoff_for_attempt(attempt + 1)}ms..."
            )

    # Unreachable: the loop either returns or raises.
    raise RuntimeError("retry loop exited without a result")
