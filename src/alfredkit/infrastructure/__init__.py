"""
Infrastructure Layer - cache store, usage log, project discovery and providers.
"""

from alfredkit.infrastructure.cache_store import (
    CacheRecord,
    CacheWriteError,
    Freshness,
    cache_key,
    cache_path,
    evaluate_freshness,
    format_timestamp,
    parse_timestamp,
    read_cache,
    slugify,
    write_cache,
)
from alfredkit.infrastructure.fakes import (
    FixedClock,
    RecordingSleeper,
    ScriptedProvider,
)
from alfredkit.infrastructure.project_discovery import (
    Project,
    discover_projects,
    filter_projects,
    last_commit_summary,
)
from alfredkit.infrastructure.usage_log import (
    UsageLog,
    parse_usage_timestamp,
    record_usage,
)

__all__ = [
    # Cache store
    "CacheRecord",
    "CacheWriteError",
    "Freshness",
    "cache_key",
    "cache_path",
    "evaluate_freshness",
    "format_timestamp",
    "parse_timestamp",
    "read_cache",
    "slugify",
    "write_cache",
    # Fakes
    "FixedClock",
    "RecordingSleeper",
    "ScriptedProvider",
    # Projects
    "Project",
    "discover_projects",
    "filter_projects",
    "last_commit_summary",
    # Usage log
    "UsageLog",
    "parse_usage_timestamp",
    "record_usage",
]
