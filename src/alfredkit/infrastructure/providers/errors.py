"""Exception types for upstream providers."""

from contextlib import contextmanager
from typing import Iterator

RETRYABLE_STATUSES = frozenset({408, 425, 429})


class ProviderError(Exception):
    """Base exception for a failed provider call."""

    retryable = False


class TransportError(ProviderError):
    """Network-level failure: DNS, connect, read or timeout."""

    retryable = True

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"transport error: {message}")


class HttpError(ProviderError):
    """Upstream answered with a non-2xx status.

    Request timeouts, early data, rate limits and 5xx responses are
    retryable; every other status is final.
    """

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"http error ({status}): {message}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status in RETRYABLE_STATUSES or 500 <= self.status <= 599


class InvalidResponseError(ProviderError):
    """A 2xx body did not match the expected schema."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"invalid provider response: {message}")


class UnsupportedInputError(ProviderError):
    """The upstream asserted it cannot serve this input."""

    label = "unsupported input"

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"{self.label}: {message}")


class UnsupportedPairError(UnsupportedInputError):
    """The upstream does not quote this trading pair."""

    label = "unsupported trading pair"


@contextmanager
def malformed_payload(source: str) -> Iterator[None]:
    """Report wrongly typed fields of a decoded body as :class:`InvalidResponseError`."""
    try:
        yield
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
        raise InvalidResponseError(f"{source} payload: {type(e).__name__}: {e}") from e
