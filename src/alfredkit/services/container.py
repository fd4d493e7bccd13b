"""
Centralized services container for alfredkit.

Holds the shared HTTP client, clock and sleep function used by every
command. Domain services are built on demand because each reads its own
configuration from the environment, and some of it (such as an API key) is
only required by one command.
"""

import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Mapping

import httpx

from alfredkit.core.config import (
    BilibiliConfig,
    MarketConfig,
    ProjectConfig,
    WeatherConfig,
    YouTubeConfig,
)
from alfredkit.infrastructure.providers import Sleeper, create_http_client
from alfredkit.services.market_expression import MarketExpressionService
from alfredkit.services.market_service import MarketService
from alfredkit.services.project_service import ProjectService
from alfredkit.services.suggest_service import SuggestService
from alfredkit.services.video_service import VideoSearchService
from alfredkit.services.weather_service import WeatherService


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ServicesContainer:
    """
    Shared dependencies for one CLI invocation.

    Attributes:
        http_client: Client used by every provider
        clock: Source of the current UTC instant
        sleep: Sleep function used between retry attempts
        environ: Environment the configuration is read from
    """

    http_client: httpx.Client
    clock: Callable[[], datetime] = utc_now
    sleep: Sleeper = time.sleep
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)

    def market(self) -> MarketService:
        config = MarketConfig.from_pairs(self.environ)
        return MarketService(config, self.http_client, self.clock, self.sleep)

    def market_expression(self) -> MarketExpressionService:
        return MarketExpressionService(self.market())

    def weather(self) -> WeatherService:
        config = WeatherConfig.from_pairs(self.environ)
        return WeatherService(config, self.http_client, self.clock, self.sleep)

    def bilibili(self) -> SuggestService:
        return SuggestService(BilibiliConfig.from_pairs(self.environ), self.http_client, self.sleep)

    def youtube(self) -> VideoSearchService:
        return VideoSearchService(
            YouTubeConfig.from_pairs(self.environ), self.http_client, self.sleep
        )

    def projects(self) -> ProjectService:
        return ProjectService(ProjectConfig.from_pairs(self.environ))

    def close(self) -> None:
        self.http_client.close()


def create_services() -> ServicesContainer:
    """Create the container with a real HTTP client and wall-clock time."""
    return ServicesContainer(http_client=create_http_client())
