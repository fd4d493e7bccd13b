"""
Property-based tests for cache keys, freshness, cache persistence, backoff
and provider ordering.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from alfredkit.infrastructure.cache_store import (
    CacheRecord,
    cache_key,
    evaluate_freshness,
    format_timestamp,
    read_cache,
    write_cache,
)
from alfredkit.infrastructure.fakes import RecordingSleeper, ScriptedProvider
from alfredkit.infrastructure.providers import (
    HttpError,
    PipelineFailure,
    RetryPolicy,
    TransportError,
    run_pipeline,
)

BASE = datetime(2026, 2, 10, 12, 0, 0, tzinfo=timezone.utc)

instants = st.integers(min_value=-10**6, max_value=10**8).map(
    lambda secs: BASE + timedelta(seconds=secs)
)
ttls = st.integers(min_value=0, max_value=10**7)


@given(
    kind=st.sampled_from(["fx", "crypto", "today", "week"]),
    parts=st.lists(st.text(max_size=20), min_size=1, max_size=3),
)
@settings(max_examples=100)
def test_cache_keys_are_deterministic_and_path_safe(kind, parts):
    """*For any* identifiers, the key is stable and safe as a file name."""
    key = cache_key(kind, *parts)
    assert key == cache_key(kind, *parts)
    assert key.startswith(f"{kind}-")
    assert all(ch.isascii() and (ch.isalnum() or ch == "-") for ch in key)
    assert key == key.lower()


@given(
    lat=st.floats(min_value=-90, max_value=90, allow_nan=False),
    lon=st.floats(min_value=-180, max_value=180, allow_nan=False),
)
@settings(max_examples=100)
def test_coordinate_keys_use_four_decimals(lat, lon):
    """*For any* coordinates, both components render with four decimals."""
    key = cache_key("today", "coords", lat, lon)
    for component in (f"{round(lat, 4) + 0.0:.4f}", f"{round(lon, 4) + 0.0:.4f}"):
        assert component in key
        assert len(component.split(".")[1]) == 4


@given(fetched=instants, now=instants, later=st.integers(min_value=0, max_value=10**6), ttl=ttls)
@settings(max_examples=100)
def test_freshness_is_monotonic_in_time(fetched, now, later, ttl):
    """
    *For any* record, age never decreases as time moves forward, and once
    stale a record never becomes fresh again.
    """
    record = CacheRecord(payload={}, provider="p", fetched_at=format_timestamp(fetched))
    first = evaluate_freshness(record, now, ttl)
    second = evaluate_freshness(record, now + timedelta(seconds=later), ttl)
    assert second.age_secs >= first.age_secs >= 0
    if not first.is_fresh:
        assert not second.is_fresh
    assert first.is_fresh == (first.age_secs <= ttl)


json_scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-(2**53), max_value=2**53),
    st.floats(allow_nan=False, allow_infinity=False),
    st.text(max_size=20),
)
payloads = st.dictionaries(
    st.text(max_size=10),
    st.recursive(
        json_scalars,
        lambda children: st.lists(children, max_size=4)
        | st.dictionaries(st.text(max_size=8), children, max_size=4),
        max_leaves=10,
    ),
    max_size=6,
)


@given(payload=payloads, provider=st.text(min_size=1, max_size=20), fetched=instants)
@settings(max_examples=100)
def test_cache_round_trip(payload, provider, fetched):
    """*For any* JSON payload, what is written is read back unchanged."""
    record = CacheRecord(payload=payload, provider=provider, fetched_at=format_timestamp(fetched))
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "tool" / "key.json"
        write_cache(path, record)
        assert read_cache(path) == record
        assert [p.name for p in path.parent.iterdir()] == ["key.json"]


@given(content=st.binary(max_size=200))
@settings(max_examples=100)
def test_corrupt_cache_never_raises(content):
    """*For any* file content, reading either yields a record or a miss."""
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "key.json"
        path.write_bytes(content)
        result = read_cache(path)
        assert result is None or isinstance(result, CacheRecord)


@given(
    base=st.integers(min_value=0, max_value=10_000),
    attempt=st.integers(min_value=2, max_value=40),
)
@settings(max_examples=100)
def test_backoff_doubles_until_capped(base, attempt):
    """*For any* attempt, the delay doubles the previous one until the cap."""
    policy = RetryPolicy(max_attempts=50, base_backoff_ms=base)
    assert policy.backoff_for_attempt(1) == 0
    current = policy.backoff_for_attempt(attempt)
    following = policy.backoff_for_attempt(attempt + 1)
    assert current == base * 2 ** min(attempt - 2, 8)
    assert following in (current * 2, current)
    assert current <= base * 256


outcomes = st.sampled_from(["ok", "retryable", "final"])


@given(script=st.lists(outcomes, min_size=1, max_size=6), attempts=st.integers(1, 3))
@settings(max_examples=100)
def test_pipeline_serves_first_successful_provider(script, attempts):
    """
    *For any* provider list, the first provider that succeeds serves the
    payload, later providers are never called, and the trace names every
    earlier provider in order.
    """
    providers = []
    for index, outcome in enumerate(script):
        if outcome == "ok":
            result = f"payload-{index}"
        elif outcome == "retryable":
            result = TransportError("reset")
        else:
            result = HttpError(404, "missing")
        providers.append(ScriptedProvider(f"p{index}", [result]))

    try:
        success = run_pipeline(providers, RetryPolicy(attempts, 0), RecordingSleeper())
    except PipelineFailure as failure:
        assert "ok" not in script
        assert [entry.split(":")[0] for entry in failure.trace] == [p.name for p in providers]
        return

    winner = script.index("ok")
    assert success.provider == f"p{winner}"
    assert success.payload == f"payload-{winner}"
    assert [entry.split(":")[0] for entry in success.trace] == [
        p.name for p in providers[:winner]
    ]
    assert all(p.calls == 0 for p in providers[winner + 1 :])
    for p, outcome in zip(providers[:winner], script):
        assert p.calls == (attempts if outcome == "retryable" else 1)
