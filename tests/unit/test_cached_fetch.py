"""Tests for cache-first resolution with stale fallback."""

from datetime import datetime, timedelta, timezone

import pytest

from alfredkit.core.errors import ErrorCode, WorkflowError
from alfredkit.infrastructure.cache_store import CacheRecord, read_cache, write_cache
from alfredkit.infrastructure.fakes import RecordingSleeper, ScriptedProvider
from alfredkit.infrastructure.providers import (
    HttpError,
    InvalidResponseError,
    RetryPolicy,
    TransportError,
)
from alfredkit.services.cached_fetch import CachedFetcher, CacheStatus, fetch_uncached

NOW = datetime(2026, 2, 10, 13, 0, 0, tzinfo=timezone.utc)


def make_fetcher(tmp_path, ttl_secs: int = 1800) -> CachedFetcher[int]:
    return CachedFetcher(
        path=tmp_path / "tool" / "k.json",
        key="k",
        ttl_secs=ttl_secs,
        encode=lambda value: {"value": value},
        decode=lambda payload: int(payload["value"]),
        retry_policy=RetryPolicy(2, 100),
        sleep=RecordingSleeper(),
    )


def seed(fetcher: CachedFetcher, value, fetched_at: datetime) -> None:
    write_cache(
        fetcher.path,
        CacheRecord(
            payload={"value": value},
            provider="cached",
            fetched_at=fetched_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
        ),
    )


def test_live_result_is_written_through(tmp_path):
    fetcher = make_fetcher(tmp_path)

    result = fetcher.resolve(NOW, [ScriptedProvider("p", [5])], "failed")

    assert result.value == 5
    assert result.provider == "p"
    assert result.cache.status is CacheStatus.LIVE
    assert result.cache.age_secs == 0
    assert result.fetched_at == "2026-02-10T13:00:00Z"
    assert read_cache(fetcher.path).payload == {"value": 5}


def test_fresh_cache_skips_providers(tmp_path):
    fetcher = make_fetcher(tmp_path)
    seed(fetcher, 3, NOW - timedelta(seconds=60))
    provider = ScriptedProvider("p", [5])

    result = fetcher.resolve(NOW, [provider], "failed")

    assert result.value == 3
    assert result.provider == "cached"
    assert result.cache.status is CacheStatus.CACHE_HIT
    assert result.cache.age_secs == 60
    assert provider.calls == 0


def test_stale_cache_is_refreshed_when_providers_succeed(tmp_path):
    fetcher = make_fetcher(tmp_path)
    seed(fetcher, 3, NOW - timedelta(hours=1))

    result = fetcher.resolve(NOW, [ScriptedProvider("p", [5])], "failed")

    assert result.value == 5
    assert result.cache.status is CacheStatus.LIVE


def test_stale_fallback_keeps_record_untouched(tmp_path):
    fetcher = make_fetcher(tmp_path)
    seed(fetcher, 3, NOW - timedelta(hours=1))
    before = fetcher.path.read_text(encoding="utf-8")

    result = fetcher.resolve(
        NOW,
        [
            ScriptedProvider("a", [TransportError("refused")]),
            ScriptedProvider("b", [HttpError(503, "down")]),
        ],
        "failed",
    )

    assert result.value == 3
    assert result.cache.status is CacheStatus.CACHE_STALE_FALLBACK
    assert result.cache.age_secs == 3600
    assert result.trace == [
        "a: transport error: refused",
        "b: http error (503): down",
    ]
    assert fetcher.path.read_text(encoding="utf-8") == before


def test_total_failure_without_cache_raises_with_trace(tmp_path):
    fetcher = make_fetcher(tmp_path)

    with pytest.raises(WorkflowError) as exc_info:
        fetcher.resolve(
            NOW,
            [
                ScriptedProvider("a", [HttpError(500, "x")]),
                ScriptedProvider("b", [HttpError(404, "y")]),
            ],
            "failed to fetch",
        )

    error = exc_info.value
    assert error.code is ErrorCode.UPSTREAM_UNAVAILABLE
    assert error.exit_code == 1
    assert error.message == (
        "failed to fetch (provider trace: a: http error (500): x | b: http error (404): y)"
    )
    assert error.retryable is True
    assert error.details["cache_key"] == "k"
    assert not fetcher.path.exists()


def test_invalid_responses_everywhere_classify_as_invalid_response(tmp_path):
    fetcher = make_fetcher(tmp_path)

    with pytest.raises(WorkflowError) as exc_info:
        fetcher.resolve(NOW, [ScriptedProvider("a", [InvalidResponseError("bad")])], "failed")

    assert exc_info.value.code is ErrorCode.UPSTREAM_INVALID_RESPONSE


def test_undecodable_cache_counts_as_miss(tmp_path):
    fetcher = make_fetcher(tmp_path)
    seed(fetcher, "not-a-number", NOW)

    result = fetcher.resolve(NOW, [ScriptedProvider("p", [5])], "failed")

    assert result.cache.status is CacheStatus.LIVE


def test_write_failure_is_storage_error(tmp_path):
    blocker = tmp_path / "tool"
    blocker.write_text("file, not a directory", encoding="utf-8")
    fetcher = make_fetcher(tmp_path)

    with pytest.raises(WorkflowError) as exc_info:
        fetcher.resolve(NOW, [ScriptedProvider("p", [5])], "failed")

    assert exc_info.value.code is ErrorCode.STORAGE_FAILURE


def test_fetch_uncached_raises_classified_error():
    with pytest.raises(WorkflowError) as exc_info:
        fetch_uncached(
            [ScriptedProvider("bilibili", [HttpError(400, "bilibili suggest code -400")])],
            RetryPolicy(1),
            "bilibili suggest request failed",
            RecordingSleeper(),
        )
    assert exc_info.value.details["provider_trace"] == [
        "bilibili: http error (400): bilibili suggest code -400"
    ]
