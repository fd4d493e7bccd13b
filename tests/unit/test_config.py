"""Tests for environment-driven configuration loaders."""

import logging
import tempfile
from pathlib import Path

import pytest

from alfredkit.core.config import (
    BilibiliConfig,
    LoggingConfig,
    MarketConfig,
    ProjectConfig,
    WeatherConfig,
    YouTubeConfig,
    configure_logging,
    expand_home_tokens,
    parse_ttl_override,
    resolve_cache_dir,
)
from alfredkit.core.errors import ErrorCode, WorkflowError


class TestCacheDir:
    def test_domain_variable_wins(self):
        env = {"MARKET_CACHE_DIR": "/a", "ALFRED_WORKFLOW_CACHE": "/b"}
        assert resolve_cache_dir(env, "MARKET_CACHE_DIR") == Path("/a")

    def test_alfred_cache_then_data(self):
        assert resolve_cache_dir(
            {"ALFRED_WORKFLOW_CACHE": "/b", "ALFRED_WORKFLOW_DATA": "/c"}, "X"
        ) == Path("/b")
        assert resolve_cache_dir({"ALFRED_WORKFLOW_DATA": "/c"}, "X") == Path("/c")

    def test_blank_values_are_skipped(self):
        env = {"MARKET_CACHE_DIR": "  ", "ALFRED_WORKFLOW_DATA": "/c"}
        assert resolve_cache_dir(env, "MARKET_CACHE_DIR") == Path("/c")

    def test_falls_back_to_temp_dir(self):
        assert resolve_cache_dir({}, "X") == Path(tempfile.gettempdir()) / "alfredkit"

    def test_home_tokens_are_expanded(self):
        env = {"HOME": "/home/me", "WEATHER_CACHE_DIR": "~/cache"}
        assert resolve_cache_dir(env, "WEATHER_CACHE_DIR") == Path("/home/me/cache")
        assert expand_home_tokens("${HOME}/x:$HOME/y", "/h") == "/h/x:/h/y"
        assert expand_home_tokens("~/x", None) == "~/x"


class TestTtlOverrides:
    @pytest.mark.parametrize("raw", [None, "", "abc", "0", "-5", "1.5"])
    def test_invalid_overrides_keep_default(self, raw):
        assert parse_ttl_override(raw, 300) == 300

    def test_valid_override(self):
        assert parse_ttl_override(" 60 ", 300) == 60

    def test_market_defaults_and_overrides(self):
        config = MarketConfig.from_pairs([("MARKET_CRYPTO_CACHE_TTL_SECS", "60")])
        assert config.fx_ttl_secs == 86400
        assert config.crypto_ttl_secs == 60
        assert config.max_attempts == 3

    def test_weather_defaults(self):
        config = WeatherConfig.from_pairs({"WEATHER_CACHE_TTL_SECS": "0"})
        assert config.ttl_secs == 1800
        assert config.max_attempts == 2
        assert "nils-alfredworkflow" in config.user_agent


class TestSearchConfigs:
    def test_bilibili_clamps_ranges(self):
        config = BilibiliConfig.from_pairs(
            {"BILIBILI_MAX_RESULTS": "99", "BILIBILI_TIMEOUT_MS": "10", "BILIBILI_UID": " 42 "}
        )
        assert config.max_results == 20
        assert config.timeout_ms == 1000
        assert config.uid == "42"

    def test_bilibili_rejects_non_numeric(self):
        with pytest.raises(WorkflowError) as exc_info:
            BilibiliConfig.from_pairs({"BILIBILI_MAX_RESULTS": "many"})
        assert exc_info.value.message == "invalid BILIBILI_MAX_RESULTS: many"

    def test_youtube_requires_key(self):
        with pytest.raises(WorkflowError) as exc_info:
            YouTubeConfig.from_pairs({})
        assert exc_info.value.code is ErrorCode.MISSING_CREDENTIAL
        assert exc_info.value.exit_code == 2

    def test_youtube_region_code(self):
        config = YouTubeConfig.from_pairs({"YOUTUBE_API_KEY": "k", "YOUTUBE_REGION_CODE": "tw"})
        assert config.region_code == "TW"
        with pytest.raises(WorkflowError):
            YouTubeConfig.from_pairs({"YOUTUBE_API_KEY": "k", "YOUTUBE_REGION_CODE": "TWN"})


class TestProjectConfig:
    def test_project_dirs_are_an_ordered_list(self):
        config = ProjectConfig.from_pairs(
            {"HOME": "/home/me", "PROJECT_DIRS": "$HOME/work, ~/oss\n/srv/repos"}
        )
        assert config.project_dirs == [
            Path("/home/me/work"),
            Path("/home/me/oss"),
            Path("/srv/repos"),
        ]

    def test_defaults(self):
        config = ProjectConfig.from_pairs({"HOME": "/home/me"})
        assert config.project_dirs == [Path("/home/me/Project"), Path("/home/me/.config")]
        assert config.usage_file == Path("/home/me/.config/zsh/cache/.alfred_project_usage.log")
        assert config.max_results == 30

    def test_max_results_clamped(self):
        assert ProjectConfig.from_pairs({"PROJECT_MAX_RESULTS": "0"}).max_results == 1
        assert ProjectConfig.from_pairs({"PROJECT_MAX_RESULTS": "999"}).max_results == 200


class TestLogging:
    def test_disabled_without_level(self):
        config = LoggingConfig.from_pairs({})
        assert config.enabled is False
        configure_logging(config)
        handlers = logging.getLogger("alfredkit").handlers
        assert not any(getattr(h, "_alfredkit_handler", False) for h in handlers)

    def test_enabled_by_level_variable(self):
        config = LoggingConfig.from_pairs({"ALFREDKIT_LOG_LEVEL": "debug"})
        assert config.enabled is True
        assert config.level == "DEBUG"
        package_logger = logging.getLogger("alfredkit")
        try:
            configure_logging(config)
            configure_logging(config)
            ours = [h for h in package_logger.handlers if getattr(h, "_alfredkit_handler", False)]
            assert len(ours) == 1
        finally:
            for handler in list(package_logger.handlers):
                if getattr(handler, "_alfredkit_handler", False):
                    package_logger.removeHandler(handler)
            package_logger.setLevel(logging.NOTSET)
