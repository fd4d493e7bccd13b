"""
Configuration module for alfredkit.

Every helper reads its settings from the process environment, which is how
Alfred passes workflow variables. Loaders are pure functions of
``(key, value)`` pairs; ``from_env()`` is a thin wrapper over ``os.environ``.
Default values are loaded from defaults.yaml for maintainability.
"""

import logging
import os
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

import yaml

from alfredkit.core.errors import ErrorCode, user_error
from alfredkit.core.list_parser import split_ordered_list

logger = logging.getLogger(__name__)

# Path to the default configuration file
_DEFAULTS_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

# Cache for default values
_defaults_cache: dict[str, Any] | None = None

Pairs = Union[Mapping[str, str], Iterable[tuple[str, str]]]

ALFRED_CACHE_ENV_VARS = (
    "ALFRED_WORKFLOW_CACHE",
    "alfred_workflow_cache",
    "ALFRED_WORKFLOW_DATA",
    "alfred_workflow_data",
)
OUTPUT_MODE_ENV = "WORKFLOW_OUTPUT_MODE"
LOG_LEVEL_ENV = "ALFREDKIT_LOG_LEVEL"


def _load_defaults() -> dict[str, Any]:
    """Load default configuration values from defaults.yaml."""
    global _defaults_cache

    if _defaults_cache is not None:
        return _defaults_cache

    if not _DEFAULTS_CONFIG_PATH.exists():
        logger.warning(f"Defaults config not found: {_DEFAULTS_CONFIG_PATH}")
        _defaults_cache = {}
        return _defaults_cache

    try:
        content = _DEFAULTS_CONFIG_PATH.read_text(encoding="utf-8")
        _defaults_cache = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse defaults config: {e}")
        _defaults_cache = {}

    return _defaults_cache


def _get_default(section: str, key: str, fallback: Any = None) -> Any:
    """Get a default value from the defaults config."""
    defaults = _load_defaults()
    section_defaults = defaults.get(section, {})
    return section_defaults.get(key, fallback)


def env_map(pairs: Pairs) -> dict[str, str]:
    """Collect ``(key, value)`` pairs or a mapping into a plain dict."""
    if isinstance(pairs, Mapping):
        return dict(pairs)
    return {key: value for key, value in pairs}


def non_empty(raw: Optional[str]) -> Optional[str]:
    """Return the trimmed value, or None when it is missing or blank."""
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def expand_home_tokens(raw: str, home: Optional[str]) -> str:
    """
    Expand a leading ``~`` and any ``$HOME``/``${HOME}`` tokens.

    Args:
        raw: Path-like text from configuration
        home: Value of ``HOME``; nothing is expanded when it is unset

    Returns:
        The expanded text
    """
    if not home:
        return raw
    value = raw.replace("${HOME}", home).replace("$HOME", home)
    if value == "~":
        return home
    if value.startswith("~/"):
        return home + value[1:]
    return value


def resolve_cache_dir(env: Mapping[str, str], domain_var: str) -> Path:
    """
    Resolve the cache root for a domain.

    Order: the domain's ``*_CACHE_DIR``, Alfred's workflow cache directory,
    Alfred's workflow data directory, then the OS temporary directory.

    Args:
        env: Environment mapping
        domain_var: Name of the dedicated variable, e.g. ``MARKET_CACHE_DIR``

    Returns:
        Cache root directory (not created)
    """
    home = non_empty(env.get("HOME"))
    for name in (domain_var, *ALFRED_CACHE_ENV_VARS):
        value = non_empty(env.get(name))
        if value:
            return Path(expand_home_tokens(value, home))
    app_dir = _get_default("cache", "app_dir_name", "alfredkit")
    return Path(tempfile.gettempdir()) / app_dir


def parse_ttl_override(raw: Optional[str], default: int) -> int:
    """Parse a TTL override; blank, unparseable or zero values keep the default."""
    value = non_empty(raw)
    if value is None:
        return default
    try:
        ttl = int(value)
    except ValueError:
        logger.debug(f"Ignoring invalid TTL override: {value!r}")
        return default
    return ttl if ttl > 0 else default


def parse_clamped_int(
    name: str,
    raw: Optional[str],
    default: int,
    minimum: int,
    maximum: int,
) -> int:
    """
    Parse an integer option and clamp it into ``[minimum, maximum]``.

    Raises:
        WorkflowError: ``user.invalid_input`` naming the variable and literal
    """
    value = non_empty(raw)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise user_error(f"invalid {name}: {value}", details={"variable": name}) from None
    return max(minimum, min(maximum, parsed))


def parse_alpha_code(name: str, raw: Optional[str], length: int = 2) -> Optional[str]:
    """
    Parse an alphabetic code such as a region code.

    Returns:
        The uppercased code, or None when blank

    Raises:
        WorkflowError: ``user.invalid_input`` when the value is not ``length``
            ASCII letters
    """
    value = non_empty(raw)
    if value is None:
        return None
    if len(value) != length or not (value.isascii() and value.isalpha()):
        raise user_error(
            f"invalid {name}: {value} (expected {length} ASCII letters)",
            details={"variable": name},
        )
    return value.upper()


def require_credential(env: Mapping[str, str], name: str) -> str:
    """
    Return a required credential from the environment.

    Raises:
        WorkflowError: ``user.missing_credential`` when unset or blank
    """
    value = non_empty(env.get(name))
    if value is None:
        raise user_error(
            f"missing {name}",
            code=ErrorCode.MISSING_CREDENTIAL,
            details={"variable": name},
        )
    return value


@dataclass
class MarketConfig:
    """Configuration for FX and crypto quotes."""

    cache_dir: Path
    fx_ttl_secs: int = field(
        default_factory=lambda: _get_default("market", "fx_cache_ttl_secs", 86400)
    )
    crypto_ttl_secs: int = field(
        default_factory=lambda: _get_default("market", "crypto_cache_ttl_secs", 300)
    )
    max_attempts: int = field(default_factory=lambda: _get_default("market", "max_attempts", 3))
    base_backoff_ms: int = field(
        default_factory=lambda: _get_default("market", "base_backoff_ms", 200)
    )
    timeout_secs: float = field(
        default_factory=lambda: _get_default("market", "timeout_secs", 6.0)
    )

    @classmethod
    def from_pairs(cls, pairs: Pairs) -> "MarketConfig":
        env = env_map(pairs)
        config = cls(cache_dir=resolve_cache_dir(env, "MARKET_CACHE_DIR"))
        config.fx_ttl_secs = parse_ttl_override(
            env.get("MARKET_FX_CACHE_TTL_SECS"), config.fx_ttl_secs
        )
        config.crypto_ttl_secs = parse_ttl_override(
            env.get("MARKET_CRYPTO_CACHE_TTL_SECS"), config.crypto_ttl_secs
        )
        return config

    @classmethod
    def from_env(cls) -> "MarketConfig":
        return cls.from_pairs(os.environ)


@dataclass
class WeatherConfig:
    """Configuration for forecasts."""

    cache_dir: Path
    ttl_secs: int = field(default_factory=lambda: _get_default("weather", "cache_ttl_secs", 1800))
    max_attempts: int = field(default_factory=lambda: _get_default("weather", "max_attempts", 2))
    base_backoff_ms: int = field(
        default_factory=lambda: _get_default("weather", "base_backoff_ms", 200)
    )
    timeout_secs: float = field(
        default_factory=lambda: _get_default("weather", "timeout_secs", 3.0)
    )
    user_agent: str = field(
        default_factory=lambda: _get_default("weather", "user_agent", "alfredkit/0.1")
    )

    @classmethod
    def from_pairs(cls, pairs: Pairs) -> "WeatherConfig":
        env = env_map(pairs)
        config = cls(cache_dir=resolve_cache_dir(env, "WEATHER_CACHE_DIR"))
        config.ttl_secs = parse_ttl_override(env.get("WEATHER_CACHE_TTL_SECS"), config.ttl_secs)
        return config

    @classmethod
    def from_env(cls) -> "WeatherConfig":
        return cls.from_pairs(os.environ)


@dataclass
class BilibiliConfig:
    """Configuration for bilibili search suggestions."""

    uid: Optional[str] = None
    max_results: int = field(default_factory=lambda: _get_default("bilibili", "max_results", 10))
    timeout_ms: int = field(default_factory=lambda: _get_default("bilibili", "timeout_ms", 8000))
    user_agent: str = field(
        default_factory=lambda: _get_default("bilibili", "user_agent", "alfredkit/0.1")
    )

    @classmethod
    def from_pairs(cls, pairs: Pairs) -> "BilibiliConfig":
        env = env_map(pairs)
        config = cls(uid=non_empty(env.get("BILIBILI_UID")))
        config.max_results = parse_clamped_int(
            "BILIBILI_MAX_RESULTS", env.get("BILIBILI_MAX_RESULTS"), config.max_results, 1, 20
        )
        config.timeout_ms = parse_clamped_int(
            "BILIBILI_TIMEOUT_MS", env.get("BILIBILI_TIMEOUT_MS"), config.timeout_ms, 1000, 30000
        )
        config.user_agent = non_empty(env.get("BILIBILI_USER_AGENT")) or config.user_agent
        return config

    @classmethod
    def from_env(cls) -> "BilibiliConfig":
        return cls.from_pairs(os.environ)


@dataclass
class YouTubeConfig:
    """Configuration for YouTube video search."""

    api_key: str
    max_results: int = field(default_factory=lambda: _get_default("youtube", "max_results", 10))
    region_code: Optional[str] = None
    timeout_secs: float = field(
        default_factory=lambda: _get_default("youtube", "timeout_secs", 8.0)
    )

    @classmethod
    def from_pairs(cls, pairs: Pairs) -> "YouTubeConfig":
        env = env_map(pairs)
        config = cls(api_key=require_credential(env, "YOUTUBE_API_KEY"))
        config.max_results = parse_clamped_int(
            "YOUTUBE_MAX_RESULTS", env.get("YOUTUBE_MAX_RESULTS"), config.max_results, 1, 25
        )
        config.region_code = parse_alpha_code(
            "YOUTUBE_REGION_CODE", env.get("YOUTUBE_REGION_CODE")
        )
        return config

    @classmethod
    def from_env(cls) -> "YouTubeConfig":
        return cls.from_pairs(os.environ)


@dataclass
class ProjectConfig:
    """Configuration for the git project index."""

    project_dirs: list[Path] = field(default_factory=list)
    usage_file: Path = field(
        default_factory=lambda: Path(_get_default("project", "usage_file", "usage.log"))
    )
    max_results: int = field(default_factory=lambda: _get_default("project", "max_results", 30))
    max_depth: int = field(default_factory=lambda: _get_default("project", "max_depth", 3))

    @classmethod
    def from_pairs(cls, pairs: Pairs) -> "ProjectConfig":
        env = env_map(pairs)
        home = non_empty(env.get("HOME"))
        raw_dirs = non_empty(env.get("PROJECT_DIRS")) or _get_default(
            "project", "project_dirs", "$HOME/Project"
        )
        raw_usage = non_empty(env.get("USAGE_FILE")) or _get_default(
            "project", "usage_file", "usage.log"
        )
        config = cls(
            project_dirs=[Path(expand_home_tokens(d, home)) for d in split_ordered_list(raw_dirs)],
            usage_file=Path(expand_home_tokens(raw_usage, home)),
        )
        config.max_results = parse_clamped_int(
            "PROJECT_MAX_RESULTS", env.get("PROJECT_MAX_RESULTS"), config.max_results, 1, 200
        )
        return config

    @classmethod
    def from_env(cls) -> "ProjectConfig":
        return cls.from_pairs(os.environ)


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = field(default_factory=lambda: _get_default("logging", "level", "WARNING"))
    format: str = field(
        default_factory=lambda: _get_default(
            "logging", "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )
    enabled: bool = False

    @classmethod
    def from_pairs(cls, pairs: Pairs) -> "LoggingConfig":
        env = env_map(pairs)
        config = cls()
        level = non_empty(env.get(LOG_LEVEL_ENV))
        if level:
            config.level = level.upper()
            config.enabled = True
        return config

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls.from_pairs(os.environ)


def configure_logging(config: LoggingConfig) -> None:
    """
    Attach a stderr handler to the package logger when logging is enabled.

    Output streams carry the Alfred/envelope contract, so nothing is logged
    unless ``ALFREDKIT_LOG_LEVEL`` is set explicitly.
    """
    if not config.enabled:
        return
    package_logger = logging.getLogger("alfredkit")
    if any(getattr(h, "_alfredkit_handler", False) for h in package_logger.handlers):
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(config.format))
    handler._alfredkit_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)
    level = logging.getLevelName(config.level)
    package_logger.setLevel(level if isinstance(level, int) else logging.WARNING)
