"""
Disk-backed single-record cache.

Each logical query maps to one JSON file holding a domain payload, the name
of the provider that produced it, and the instant it was fetched. Reads never
raise: a missing or corrupt file is a cache miss. Writes go to a temporary
sibling file and are renamed into place.
"""

import errno
import hashlib
import json
import logging
import math
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

# Largest age reported, matching an unsigned 64-bit counter.
MAX_AGE_SECS = 2**64 - 1

_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")


class CacheWriteError(OSError):
    """Cache record could not be serialized or written."""

    pass


@dataclass
class CacheRecord:
    """
    A persisted provider result.

    Attributes:
        payload: Domain-defined JSON object, opaque to the cache
        provider: Name of the provider that produced the payload
        fetched_at: RFC 3339 UTC instant of the fetch
    """

    payload: dict[str, Any]
    provider: str
    fetched_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "payload": self.payload,
            "provider": self.provider,
            "fetched_at": self.fetched_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["CacheRecord"]:
        """Build a record from decoded JSON, or None if the shape is wrong."""
        if not isinstance(data, dict):
            return None
        payload = data.get("payload")
        provider = data.get("provider")
        fetched_at = data.get("fetched_at")
        if not isinstance(payload, dict):
            return None
        if not isinstance(provider, str) or not isinstance(fetched_at, str):
            return None
        return cls(payload=payload, provider=provider, fetched_at=fetched_at)


@dataclass(frozen=True)
class Freshness:
    """Age of a cached record relative to its TTL."""

    age_secs: int
    is_fresh: bool


def format_timestamp(instant: datetime) -> str:
    """Format an instant as RFC 3339 UTC with second precision."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(raw: str) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; returns None if invalid or lacking an offset."""
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed.astimezone(timezone.utc)


def slugify(value: str) -> str:
    """Lowercase ASCII alphanumerics; collapse everything else to single dashes."""
    lowered = "".join(ch.lower() if ch.isascii() else " " for ch in value)
    return _SLUG_SEPARATORS.sub("-", lowered).strip("-")


def stable_hash(value: str) -> str:
    """16 hex digits derived from the SHA-256 of ``value``."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


def _key_part(identifier: Union[str, float, int]) -> str:
    if isinstance(identifier, bool):
        identifier = str(identifier)
    if isinstance(identifier, float):
        if not math.isfinite(identifier):
            raise ValueError(f"cannot derive a cache key from {identifier}")
        # Adding 0.0 folds -0.0 into 0.0 so both render the same key.
        return f"{round(identifier, 4) + 0.0:.4f}"
    if isinstance(identifier, int):
        return str(identifier)
    slug = slugify(identifier)
    return slug or f"q{stable_hash(identifier)}"


def cache_key(kind: str, *identifiers: Union[str, float, int]) -> str:
    """
    Derive a deterministic cache key.

    Text identifiers are slugged (non-ASCII-only text falls back to a
    ``q``-prefixed hash); floats such as coordinates are rounded to four
    decimal places.

    Examples:
        ``cache_key("fx", "USD", "TWD")`` -> ``"fx-usd-twd"``
        ``cache_key("today", "coords", 25.033, 121.5654)``
        -> ``"today-coords-25.0330-121.5654"``

    Args:
        kind: Query kind, e.g. ``fx`` or ``today``
        *identifiers: Ordered query identifiers

    Returns:
        Lowercase, hyphen-joined key
    """
    parts = [_key_part(kind)]
    parts.extend(_key_part(identifier) for identifier in identifiers)
    return "-".join(parts)


def cache_path(root: Path, tool: str, key: str) -> Path:
    """Return the file path storing ``key`` for ``tool`` under ``root``."""
    return Path(root) / tool / f"{key}.json"


def read_cache(path: Path) -> Optional[CacheRecord]:
    """
    Read a cache record.

    Returns:
        The record, or None when the file is missing, unreadable or corrupt
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Ignoring unreadable cache file {path}: {e}")
        return None

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring corrupt cache file {path}: {e}")
        return None

    record = CacheRecord.from_dict(data)
    if record is None:
        logger.warning(f"Ignoring cache file with unexpected shape: {path}")
    return record


def write_cache(path: Path, record: CacheRecord) -> None:
    """
    Atomically persist a cache record.

    The record is written to ``<path>.<pid>.tmp`` and renamed onto ``path``;
    concurrent writers race at the rename and the last one wins.

    Raises:
        CacheWriteError: If the record cannot be serialized
        OSError: If the file cannot be written
    """
    path = Path(path)
    try:
        content = json.dumps(record.to_dict(), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise CacheWriteError(errno.EINVAL, f"cannot serialize cache record: {e}") from e

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{os.getpid()}.tmp")
    try:
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.debug(f"Wrote cache record {path}")


def evaluate_freshness(record: CacheRecord, now: datetime, ttl_secs: int) -> Freshness:
    """
    Judge whether a record is within its TTL at ``now``.

    A record whose ``fetched_at`` cannot be parsed is reported as one second
    past its TTL.
    """
    fetched_at = parse_timestamp(record.fetched_at)
    if fetched_at is None:
        age = min(ttl_secs + 1, MAX_AGE_SECS)
    else:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        elapsed = math.floor((now - fetched_at).total_seconds())
        age = min(max(elapsed, 0), MAX_AGE_SECS)
    return Freshness(age_secs=age, is_fresh=age <= ttl_secs)
