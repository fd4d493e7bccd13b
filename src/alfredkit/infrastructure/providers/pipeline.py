"""Ordered provider fallback with a provenance trace."""

import logging
import time
from dataclasses import dataclass, field
from typing import Generic, Sequence, TypeVar

from .errors import InvalidResponseError, ProviderError
from .retry import Provider, RetryPolicy, Sleeper, run_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PipelineSuccess(Generic[T]):
    """Payload from the first provider that succeeded.

    Attributes:
        payload: The provider result
        provider: Name of the provider that produced it
        trace: ``"name: error"`` entries for providers that failed before it
    """

    payload: T
    provider: str
    trace: list[str] = field(default_factory=list)


class PipelineFailure(Exception):
    """Every provider failed."""

    def __init__(self, trace: list[str], errors: list[ProviderError]):
        self.trace = trace
        self.errors = errors
        super().__init__(" | ".join(trace) or "no providers configured")

    @property
    def retryable(self) -> bool:
        return any(error.retryable for error in self.errors)

    @property
    def invalid_response(self) -> bool:
        """Whether every provider failed by returning an unparseable body."""
        return bool(self.errors) and all(
            isinstance(error, InvalidResponseError) for error in self.errors
        )


def run_pipeline(
    providers: Sequence[Provider[T]],
    policy: RetryPolicy,
    sleep: Sleeper = time.sleep,
) -> PipelineSuccess[T]:
    """
    Try providers strictly in order until one succeeds.

    Args:
        providers: Ordered providers
        policy: Retry policy applied to each provider
        sleep: Sleep function passed to the retry loop

    Returns:
        The first success with the trace of earlier failures

    Raises:
        PipelineFailure: If every provider failed
    """
    trace: list[str] = []
    errors: list[ProviderError] = []

    for provider in providers:
        try:
            payload = run_with_retry(provider, policy, sleep)
        except ProviderError as e:
            trace.append(f"{provider.name}: {e}")
            errors.append(e)
            continue
        if trace:
            logger.info(f"Served by fallback provider {provider.name} after: {' | '.join(trace)}")
        return PipelineSuccess(payload=payload, provider=provider.name, trace=trace)

    raise PipelineFailure(trace, errors)
