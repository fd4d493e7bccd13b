"""
Daily forecast service.

Resolves a city (through geocoding) or raw coordinates, then serves the
forecast from cache or from Open-Meteo with MET Norway as fallback.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

import httpx

from alfredkit.core.config import WeatherConfig
from alfredkit.core.errors import ErrorCode, runtime_error, user_error
from alfredkit.core.feedback import Feedback, Item
from alfredkit.infrastructure.cache_store import cache_key, cache_path
from alfredkit.infrastructure.providers import (
    FunctionProvider,
    ProviderError,
    RetryPolicy,
    Sleeper,
    UnsupportedInputError,
    run_with_retry,
)
from alfredkit.infrastructure.providers.weather import (
    ForecastDay,
    Location,
    MetNoProvider,
    OpenMeteoGeocoder,
    OpenMeteoProvider,
    ProviderForecast,
)
from alfredkit.services.cached_fetch import CacheMetadata, CachedFetcher, CacheLookup
from alfredkit.services.weather_codes import summary_for

logger = logging.getLogger(__name__)

WEATHER_TOOL_DIR = "weather-cli"


class ForecastPeriod(str, Enum):
    """Forecast horizon."""

    TODAY = "today"
    WEEK = "week"

    @property
    def forecast_days(self) -> int:
        return 1 if self is ForecastPeriod.TODAY else 7


def round1(value: float) -> float:
    """Round half away from zero to one decimal place."""
    return math.copysign(math.floor(abs(value) * 10 + 0.5) / 10, value)


def coordinate_label(latitude: float, longitude: float) -> str:
    """Stable ``"lat,lon"`` label with four decimals."""
    return f"{round(latitude, 4) + 0.0:.4f},{round(longitude, 4) + 0.0:.4f}"


@dataclass
class ForecastRequest:
    """A validated forecast request for a city or a coordinate pair."""

    period: ForecastPeriod
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def parse(
        cls,
        period: ForecastPeriod,
        city: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> "ForecastRequest":
        """
        Validate the location arguments.

        Raises:
            WorkflowError: ``user.invalid_input`` unless exactly one of a
                non-empty city or an in-range lat/lon pair is given
        """
        city = city.strip() if city else None
        has_coords = latitude is not None or longitude is not None
        if city and has_coords:
            raise user_error("use either --city or --lat/--lon, not both")
        if city:
            return cls(period=period, city=city)
        if not has_coords:
            raise user_error("location must not be empty: pass --city or --lat/--lon")
        if latitude is None or longitude is None:
            raise user_error("both --lat and --lon are required")
        if not (math.isfinite(latitude) and -90.0 <= latitude <= 90.0):
            raise user_error(f"invalid latitude: {latitude} (expected -90..90)")
        if not (math.isfinite(longitude) and -180.0 <= longitude <= 180.0):
            raise user_error(f"invalid longitude: {longitude} (expected -180..180)")
        return cls(period=period, latitude=latitude, longitude=longitude)

    @property
    def cache_key(self) -> str:
        if self.city:
            return cache_key(self.period.value, self.city)
        return cache_key(self.period.value, "coords", self.latitude, self.longitude)

    def coordinate_location(self) -> Location:
        assert self.latitude is not None and self.longitude is not None
        return Location(
            name=coordinate_label(self.latitude, self.longitude),
            latitude=self.latitude,
            longitude=self.longitude,
        )


@dataclass
class CachedForecast:
    """Forecast payload as stored in the cache."""

    location: Location
    timezone: str
    days: list[ForecastDay]

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": {
                "name": self.location.name,
                "latitude": self.location.latitude,
                "longitude": self.location.longitude,
                "timezone": self.location.timezone,
            },
            "timezone": self.timezone,
            "forecast": [
                {
                    "date": day.date,
                    "weather_code": day.weather_code,
                    "temp_min_c": day.temp_min_c,
                    "temp_max_c": day.temp_max_c,
                    "precip_prob_max_pct": day.precip_prob_max_pct,
                }
                for day in self.days
            ],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CachedForecast":
        location = payload["location"]
        return cls(
            location=Location(
                name=str(location["name"]),
                latitude=float(location["latitude"]),
                longitude=float(location["longitude"]),
                timezone=str(location.get("timezone") or payload["timezone"]),
            ),
            timezone=str(payload["timezone"]),
            days=[
                ForecastDay(
                    date=str(day["date"]),
                    weather_code=int(day["weather_code"]),
                    temp_min_c=float(day["temp_min_c"]),
                    temp_max_c=float(day["temp_max_c"]),
                    precip_prob_max_pct=int(day["precip_prob_max_pct"]),
                )
                for day in payload["forecast"]
            ],
        )


@dataclass
class ForecastOutput:
    """Forecast result emitted by the weather commands."""

    period: ForecastPeriod
    forecast: CachedForecast
    source: str
    fetched_at: str
    freshness: CacheMetadata
    source_trace: list[str] = field(default_factory=list)
    lang: str = "zh"

    def day_summary(self, day: ForecastDay) -> str:
        return summary_for(day.weather_code, self.lang)

    def to_dict(self) -> dict[str, Any]:
        location = self.forecast.location
        return {
            "period": self.period.value,
            "location": {
                "name": location.name,
                "latitude": location.latitude,
                "longitude": location.longitude,
            },
            "timezone": self.forecast.timezone,
            "forecast": [
                {
                    "date": day.date,
                    "weather_code": day.weather_code,
                    "summary": self.day_summary(day),
                    "temp_min_c": day.temp_min_c,
                    "temp_max_c": day.temp_max_c,
                    "precip_prob_max_pct": day.precip_prob_max_pct,
                }
                for day in self.forecast.days
            ],
            "source": self.source,
            "source_trace": list(self.source_trace),
            "fetched_at": self.fetched_at,
            "freshness": self.freshness.to_dict(),
        }

    def _day_line(self, day: ForecastDay) -> str:
        return (
            f"{day.date} {self.day_summary(day)} "
            f"{day.temp_min_c:.1f}~{day.temp_max_c:.1f}°C rain {day.precip_prob_max_pct}%"
        )

    def to_feedback(self) -> Feedback:
        location = self.forecast.location
        subtitle = (
            f"{location.name} ({self.forecast.timezone}) source={self.source} "
            f"cache={self.freshness.status.value}"
        )
        items = [
            Item(title=self._day_line(day), subtitle=subtitle, arg=day.date, valid=False)
            for day in self.forecast.days
        ]
        if not items:
            items = [Item(title="No forecast available", subtitle=subtitle, valid=False)]
        return Feedback(items=items)

    def to_human(self) -> list[str]:
        location = self.forecast.location
        lines = [
            f"{location.name} ({self.forecast.timezone}) "
            f"source={self.source} cache={self.freshness.status.value}"
        ]
        lines.extend(self._day_line(day) for day in self.forecast.days)
        return lines


def _normalize_days(days: list[ForecastDay]) -> list[ForecastDay]:
    return [
        ForecastDay(
            date=day.date,
            weather_code=day.weather_code,
            temp_min_c=round1(day.temp_min_c),
            temp_max_c=round1(day.temp_max_c),
            precip_prob_max_pct=min(max(day.precip_prob_max_pct, 0), 100),
        )
        for day in days
    ]


class WeatherService:
    """Resolves forecasts with caching and provider fallback."""

    def __init__(
        self,
        config: WeatherConfig,
        client: httpx.Client,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        sleep: Sleeper = time.sleep,
    ):
        self.config = config
        self.client = client
        self.clock = clock
        self.sleep = sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(self.config.max_attempts, self.config.base_backoff_ms)

    def geocode(self, city: str) -> Location:
        """
        Resolve a city name.

        Raises:
            WorkflowError: ``user.invalid_input`` when the city is unknown,
                ``runtime.upstream_unavailable`` when geocoding fails
        """
        geocoder = OpenMeteoGeocoder(self.client, self.config.timeout_secs)
        provider = FunctionProvider(geocoder.name, lambda: geocoder.geocode(city))
        try:
            return run_with_retry(provider, self.retry_policy, self.sleep)
        except UnsupportedInputError as e:
            raise user_error(f"location not found: {city}", details={"city": city}) from e
        except ProviderError as e:
            raise runtime_error(
                f"failed to resolve city '{city}': {e}",
                code=ErrorCode.UPSTREAM_UNAVAILABLE,
                retryable=e.retryable,
            ) from e

    def build_providers(self, location: Location, period: ForecastPeriod) -> list:
        """Forecast providers in fallback order, wrapped to carry the location."""
        timeout = self.config.timeout_secs
        days = period.forecast_days
        primary = OpenMeteoProvider(self.client, location, days, timeout)
        fallback = MetNoProvider(self.client, location, days, timeout, self.config.user_agent)
        return [
            FunctionProvider(provider.name, _located(provider.fetch_once, location))
            for provider in (primary, fallback)
        ]

    def resolve(
        self,
        request: ForecastRequest,
        lang: str = "zh",
        provider_factory: Optional[Callable[[Location, ForecastPeriod], list]] = None,
    ) -> ForecastOutput:
        """
        Resolve a forecast.

        City requests are keyed by the query text, so a fresh cache entry is
        served without geocoding. Otherwise the location comes from the
        cached record when one exists, or from geocoding.

        Args:
            request: Validated request
            lang: Summary language, ``zh`` or ``en``
            provider_factory: Override for :meth:`build_providers`

        Raises:
            WorkflowError: When no provider succeeds and nothing is cached
        """
        key = request.cache_key
        fetcher: CachedFetcher[CachedForecast] = CachedFetcher(
            path=cache_path(self.config.cache_dir, WEATHER_TOOL_DIR, key),
            key=key,
            ttl_secs=self.config.ttl_secs,
            encode=CachedForecast.to_dict,
            decode=CachedForecast.from_dict,
            retry_policy=self.retry_policy,
            sleep=self.sleep,
        )
        now = self.clock()
        lookup: CacheLookup[CachedForecast] = fetcher.lookup(now)

        if lookup.value is not None:
            location = lookup.value.location
        elif request.city:
            location = self.geocode(request.city)
        else:
            location = request.coordinate_location()

        factory = provider_factory or self.build_providers
        result = fetcher.resolve(
            now,
            factory(location, request.period),
            "failed to fetch forecast from providers",
            lookup=lookup,
        )
        return ForecastOutput(
            period=request.period,
            forecast=result.value,
            source=result.provider,
            fetched_at=result.fetched_at,
            freshness=result.cache,
            source_trace=result.trace,
            lang=lang,
        )


def _located(
    fetch: Callable[[], ProviderForecast],
    location: Location,
) -> Callable[[], CachedForecast]:
    def fetch_located() -> CachedForecast:
        forecast = fetch()
        timezone_name = forecast.timezone.strip() or location.timezone
        return CachedForecast(
            location=location,
            timezone=timezone_name,
            days=_normalize_days(forecast.days),
        )

    return fetch_located
