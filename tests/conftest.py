"""Shared fixtures: isolated environment, mock HTTP transport and a fixed clock."""

from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest

from alfredkit.infrastructure.fakes import FixedClock, RecordingSleeper
from alfredkit.services.container import ServicesContainer

ISOLATED_ENV_VARS = (
    "WORKFLOW_OUTPUT_MODE",
    "ALFREDKIT_LOG_LEVEL",
    "ALFRED_WORKFLOW_CACHE",
    "alfred_workflow_cache",
    "ALFRED_WORKFLOW_DATA",
    "alfred_workflow_data",
    "MARKET_CACHE_DIR",
    "MARKET_FX_CACHE_TTL_SECS",
    "MARKET_CRYPTO_CACHE_TTL_SECS",
    "WEATHER_CACHE_DIR",
    "WEATHER_CACHE_TTL_SECS",
    "BILIBILI_UID",
    "BILIBILI_MAX_RESULTS",
    "BILIBILI_TIMEOUT_MS",
    "BILIBILI_USER_AGENT",
    "YOUTUBE_API_KEY",
    "YOUTUBE_MAX_RESULTS",
    "YOUTUBE_REGION_CODE",
    "SPOTIFY_CLIENT_ID",
    "SPOTIFY_CLIENT_SECRET",
    "PROJECT_DIRS",
    "USAGE_FILE",
    "PROJECT_MAX_RESULTS",
)

DEFAULT_NOW = datetime(2026, 2, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Clear workflow variables and point caches at a temporary directory."""
    for name in ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MARKET_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("WEATHER_CACHE_DIR", str(tmp_path / "cache"))
    return tmp_path


@pytest.fixture
def clock():
    return FixedClock(DEFAULT_NOW)


@pytest.fixture
def sleeper():
    return RecordingSleeper()


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def install_services(monkeypatch, clock, sleeper):
    """
    Route CLI commands through a mock transport.

    Returns a function taking the request handler; every invocation gets a
    fresh container sharing the handler, clock and sleeper.
    """

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> None:
        monkeypatch.setattr(
            "alfredkit.cli.common.create_services",
            lambda: ServicesContainer(http_client=mock_client(handler), clock=clock, sleep=sleeper),
        )

    return install
