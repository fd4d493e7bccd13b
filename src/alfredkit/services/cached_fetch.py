"""
Cache-aware provider orchestration.

A :class:`CachedFetcher` serves a fresh cached record when one exists,
otherwise runs the provider pipeline and writes the result through. When
every provider fails it falls back to a stale record, and only raises when
there is nothing cached to serve.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from alfredkit.core.errors import ErrorCode, WorkflowError, runtime_error
from alfredkit.infrastructure.cache_store import (
    CacheRecord,
    Freshness,
    evaluate_freshness,
    format_timestamp,
    parse_timestamp,
    read_cache,
    write_cache,
)
from alfredkit.infrastructure.providers import (
    PipelineFailure,
    PipelineSuccess,
    Provider,
    RetryPolicy,
    Sleeper,
    run_pipeline,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheStatus(str, Enum):
    """How a result was obtained."""

    LIVE = "live"
    CACHE_HIT = "cache_hit"
    CACHE_STALE_FALLBACK = "cache_stale_fallback"


@dataclass
class CacheMetadata:
    """Cache details reported alongside every result."""

    status: CacheStatus
    key: str
    ttl_secs: int
    age_secs: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "key": self.key,
            "ttl_secs": self.ttl_secs,
            "age_secs": self.age_secs,
        }


@dataclass
class CacheLookup(Generic[T]):
    """A decoded cache record and its freshness, if a usable record exists."""

    record: Optional[CacheRecord] = None
    value: Optional[T] = None
    freshness: Optional[Freshness] = None

    @property
    def is_fresh(self) -> bool:
        return self.record is not None and self.freshness is not None and self.freshness.is_fresh


@dataclass
class CachedResult(Generic[T]):
    """Outcome of :meth:`CachedFetcher.resolve`.

    Attributes:
        value: Decoded payload
        provider: Provider that produced the payload
        fetched_at: RFC 3339 instant of the fetch
        cache: Status, key, TTL and age
        trace: Failures of providers tried during this call
    """

    value: T
    provider: str
    fetched_at: str
    cache: CacheMetadata
    trace: list[str] = field(default_factory=list)


def format_trace_message(prefix: str, trace: Sequence[str]) -> str:
    """Render ``"prefix (provider trace: a | b)"``."""
    if not trace:
        return prefix
    return f"{prefix} (provider trace: {' | '.join(trace)})"


def pipeline_failure_error(
    prefix: str,
    failure: PipelineFailure,
    details: Optional[dict[str, Any]] = None,
) -> WorkflowError:
    """Classify a total provider failure as a runtime error carrying the trace."""
    code = (
        ErrorCode.UPSTREAM_INVALID_RESPONSE
        if failure.invalid_response
        else ErrorCode.UPSTREAM_UNAVAILABLE
    )
    return runtime_error(
        format_trace_message(prefix, failure.trace),
        code=code,
        retryable=failure.retryable,
        details={"provider_trace": list(failure.trace), **(details or {})},
    )


def fetch_uncached(
    providers: Sequence[Provider[T]],
    policy: RetryPolicy,
    error_prefix: str,
    sleep: Sleeper = time.sleep,
) -> PipelineSuccess[T]:
    """
    Run providers without a cache, for queries not worth persisting.

    Raises:
        WorkflowError: When every provider failed
    """
    try:
        return run_pipeline(providers, policy, sleep)
    except PipelineFailure as failure:
        raise pipeline_failure_error(error_prefix, failure) from failure


class CachedFetcher(Generic[T]):
    """
    Cache-first resolution of one logical query.

    Args:
        path: Cache file for the query
        key: Cache key reported in metadata
        ttl_secs: Freshness window
        encode: Converts a provider payload to a JSON object for storage
        decode: Converts a stored JSON object back; raising marks the record unusable
        retry_policy: Retry policy applied to every provider
        sleep: Sleep function used between retries
    """

    def __init__(
        self,
        *,
        path: Path,
        key: str,
        ttl_secs: int,
        encode: Callable[[T], dict[str, Any]],
        decode: Callable[[dict[str, Any]], T],
        retry_policy: RetryPolicy,
        sleep: Sleeper = time.sleep,
    ):
        self.path = path
        self.key = key
        self.ttl_secs = ttl_secs
        self.encode = encode
        self.decode = decode
        self.retry_policy = retry_policy
        self.sleep = sleep

    def lookup(self, now: datetime) -> CacheLookup[T]:
        """Read and decode the cached record; corrupt records count as a miss."""
        record = read_cache(self.path)
        if record is None:
            return CacheLookup()
        try:
            value = self.decode(record.payload)
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            logger.warning(f"Ignoring undecodable cache record {self.path}: {e}")
            return CacheLookup()
        return CacheLookup(
            record=record,
            value=value,
            freshness=evaluate_freshness(record, now, self.ttl_secs),
        )

    def resolve(
        self,
        now: datetime,
        providers: Sequence[Provider[T]],
        error_prefix: str,
        lookup: Optional[CacheLookup[T]] = None,
    ) -> CachedResult[T]:
        """
        Serve the query from cache or providers.

        Args:
            now: Current instant
            providers: Providers in fallback order
            error_prefix: Message prefix used when nothing can be served
            lookup: Result of an earlier :meth:`lookup`, to avoid re-reading

        Returns:
            The result with its cache metadata

        Raises:
            WorkflowError: ``runtime.upstream_unavailable`` (or
                ``runtime.upstream_invalid_response``) when every provider
                failed and nothing is cached; ``runtime.storage_failure``
                when the fresh result cannot be written
        """
        if lookup is None:
            lookup = self.lookup(now)

        if lookup.is_fresh:
            logger.debug(f"Cache hit for {self.key}")
            return self._from_lookup(lookup, CacheStatus.CACHE_HIT, [])

        try:
            success = run_pipeline(providers, self.retry_policy, self.sleep)
        except PipelineFailure as failure:
            if lookup.record is not None:
                logger.info(f"Serving stale cache for {self.key}: {failure}")
                return self._from_lookup(lookup, CacheStatus.CACHE_STALE_FALLBACK, failure.trace)
            raise pipeline_failure_error(
                error_prefix, failure, {"cache_key": self.key}
            ) from failure

        record = CacheRecord(
            payload=self.encode(success.payload),
            provider=success.provider,
            fetched_at=format_timestamp(now),
        )
        self._write(record)
        return CachedResult(
            value=success.payload,
            provider=success.provider,
            fetched_at=record.fetched_at,
            cache=CacheMetadata(CacheStatus.LIVE, self.key, self.ttl_secs, 0),
            trace=success.trace,
        )

    def _write(self, record: CacheRecord) -> None:
        try:
            write_cache(self.path, record)
        except OSError as e:
            raise WorkflowError(
                code=ErrorCode.STORAGE_FAILURE,
                message=f"failed to write cache {self.path}: {e}",
                details={"cache_key": self.key},
            ) from e

    def _from_lookup(
        self,
        lookup: CacheLookup[T],
        status: CacheStatus,
        trace: list[str],
    ) -> CachedResult[T]:
        record = lookup.record
        freshness = lookup.freshness
        assert record is not None and freshness is not None
        # An unparseable fetched_at is reported as-is rather than invented.
        fetched = parse_timestamp(record.fetched_at)
        return CachedResult(
            value=lookup.value,  # type: ignore[arg-type]
            provider=record.provider,
            fetched_at=format_timestamp(fetched) if fetched else record.fetched_at,
            cache=CacheMetadata(status, self.key, self.ttl_secs, freshness.age_secs),
            trace=list(trace),
        )
