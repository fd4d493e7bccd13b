"""
Services Layer - domain services built on the cached provider pipeline.
"""

from alfredkit.services.cached_fetch import (
    CachedFetcher,
    CachedResult,
    CacheMetadata,
    CacheStatus,
    fetch_uncached,
    format_trace_message,
)
from alfredkit.services.container import ServicesContainer, create_services
from alfredkit.services.market_expression import MarketExpressionService, parse_expression
from alfredkit.services.market_service import MarketKind, MarketQuote, MarketRequest, MarketService
from alfredkit.services.project_service import ProjectService, UsageRecord
from alfredkit.services.suggest_service import SuggestService
from alfredkit.services.video_service import VideoSearchService
from alfredkit.services.weather_service import (
    ForecastOutput,
    ForecastPeriod,
    ForecastRequest,
    WeatherService,
)

__all__ = [
    # Cached fetch
    "CacheMetadata",
    "CacheStatus",
    "CachedFetcher",
    "CachedResult",
    "fetch_uncached",
    "format_trace_message",
    # Container
    "ServicesContainer",
    "create_services",
    # Market
    "MarketExpressionService",
    "MarketKind",
    "MarketQuote",
    "MarketRequest",
    "MarketService",
    "parse_expression",
    # Projects
    "ProjectService",
    "UsageRecord",
    # Search
    "SuggestService",
    "VideoSearchService",
    # Weather
    "ForecastOutput",
    "ForecastPeriod",
    "ForecastRequest",
    "WeatherService",
]
