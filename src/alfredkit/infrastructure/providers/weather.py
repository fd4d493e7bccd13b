"""
Forecast providers: Open-Meteo (geocoding and daily forecast) and MET Norway.

Both forecast providers return a :class:`ProviderForecast` of daily rows
using WMO weather codes, so the service can treat them interchangeably.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from alfredkit.infrastructure.cache_store import parse_timestamp

from .errors import InvalidResponseError, UnsupportedInputError, malformed_payload
from .http import get_json

logger = logging.getLogger(__name__)

GEOCODE_ENDPOINT = "https://geocoding-api.open-meteo.com/v1/search"
OPEN_METEO_ENDPOINT = "https://api.open-meteo.com/v1/forecast"
MET_NO_ENDPOINT = "https://api.met.no/weatherapi/locationforecast/2.0/compact"

FORECAST_DAILY_FIELDS = (
    "weather_code,temperature_2m_max,temperature_2m_min,precipitation_probability_max"
)

# MET Norway symbol families mapped to WMO codes as used by Open-Meteo.
MET_SYMBOL_CODES = {
    "clearsky": 0,
    "fair": 1,
    "partlycloudy": 2,
    "cloudy": 3,
    "fog": 45,
    "lightrain": 61,
    "rain": 63,
    "heavyrain": 65,
    "lightsleet": 66,
    "sleet": 67,
    "heavysleet": 67,
    "lightsnow": 71,
    "snow": 73,
    "heavysnow": 75,
    "lightrainshowers": 80,
    "rainshowers": 81,
    "heavyrainshowers": 82,
    "lightsleetshowers": 81,
    "sleetshowers": 82,
    "heavysleetshowers": 82,
    "lightsnowshowers": 85,
    "snowshowers": 85,
    "heavysnowshowers": 86,
    "lightrainandthunder": 95,
    "rainandthunder": 95,
    "heavyrainandthunder": 99,
    "lightrainshowersandthunder": 95,
    "rainshowersandthunder": 95,
    "heavyrainshowersandthunder": 99,
    "lightsleetandthunder": 96,
    "sleetandthunder": 96,
    "heavysleetandthunder": 99,
    "lightsleetshowersandthunder": 96,
    "sleetshowersandthunder": 96,
    "heavysleetshowersandthunder": 99,
    "lightsnowandthunder": 99,
    "snowandthunder": 99,
    "heavysnowandthunder": 99,
    "lightsnowshowersandthunder": 99,
    "snowshowersandthunder": 99,
    "heavysnowshowersandthunder": 99,
}
UNKNOWN_SYMBOL_CODE = 3


@dataclass
class Location:
    """A resolved place with coordinates."""

    name: str
    latitude: float
    longitude: float
    timezone: str = "UTC"


@dataclass
class ForecastDay:
    """One day of forecast as reported by a provider."""

    date: str
    weather_code: int
    temp_min_c: float
    temp_max_c: float
    precip_prob_max_pct: int


@dataclass
class ProviderForecast:
    """Daily forecast rows and the timezone they are expressed in."""

    timezone: str
    days: list[ForecastDay] = field(default_factory=list)


def clamp_percentage(value: Optional[float]) -> int:
    """Clamp a probability into 0..100 and round it; missing or NaN is 0."""
    if value is None or not math.isfinite(value):
        return 0
    return int(round(min(max(value, 0.0), 100.0)))


def met_symbol_to_code(symbol: str) -> int:
    """Map a MET symbol such as ``rainshowers_day`` to a WMO code."""
    family = symbol.split("_", 1)[0]
    return MET_SYMBOL_CODES.get(family, UNKNOWN_SYMBOL_CODE)


def weather_severity(code: int) -> int:
    """Rank WMO codes so that ties prefer the more notable weather."""
    if code in (95, 96, 99):
        return 9
    if code in (75, 82, 86):
        return 8
    if code in (65, 67, 73, 81, 85):
        return 7
    if code in (61, 63, 66, 71, 80):
        return 6
    if code in (51, 53, 55, 56, 57):
        return 5
    if code in (45, 48):
        return 4
    if code in (0, 1, 2, 3):
        return code
    return 0


def _number(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidResponseError(f"forecast payload: invalid {what}")
    return float(value)


def parse_geocode(data: Any, city: str) -> Location:
    """
    Take the first Open-Meteo geocoding result.

    Raises:
        UnsupportedInputError: When there are no results
        InvalidResponseError: When the result lacks a name or timezone
    """
    if not isinstance(data, dict):
        raise InvalidResponseError("geocode payload: not an object")
    results = data.get("results") or []
    if not results:
        raise UnsupportedInputError(f"location not found: {city}")
    first = results[0]
    if not isinstance(first, dict):
        raise InvalidResponseError("geocode payload: invalid result")
    name = str(first.get("name") or "").strip()
    if not name:
        raise InvalidResponseError("geocode payload: empty location name")
    timezone = str(first.get("timezone") or "").strip()
    if not timezone:
        raise InvalidResponseError("geocode payload: missing timezone")
    return Location(
        name=name,
        latitude=_number(first.get("latitude"), "latitude"),
        longitude=_number(first.get("longitude"), "longitude"),
        timezone=timezone,
    )


def parse_open_meteo_forecast(data: Any) -> ProviderForecast:
    """Build daily rows from the parallel ``daily`` arrays of Open-Meteo."""
    if not isinstance(data, dict):
        raise InvalidResponseError("forecast payload: not an object")
    timezone = str(data.get("timezone") or "").strip()
    if not timezone:
        raise InvalidResponseError("forecast payload: missing timezone")
    daily = data.get("daily")
    if not isinstance(daily, dict):
        raise InvalidResponseError("forecast payload: missing daily")

    columns = {
        name: daily.get(name) or []
        for name in (
            "time",
            "weather_code",
            "temperature_2m_max",
            "temperature_2m_min",
            "precipitation_probability_max",
        )
    }
    length = len(columns["time"])
    if any(len(values) != length for values in columns.values()):
        raise InvalidResponseError("forecast payload: daily arrays length mismatch")

    days = []
    for index in range(length):
        date = str(columns["time"][index]).strip()
        if not date:
            raise InvalidResponseError("forecast payload: empty date in daily.time")
        precip = columns["precipitation_probability_max"][index]
        days.append(
            ForecastDay(
                date=date,
                weather_code=int(_number(columns["weather_code"][index], "weather_code")),
                temp_max_c=_number(columns["temperature_2m_max"][index], "temperature_2m_max"),
                temp_min_c=_number(columns["temperature_2m_min"][index], "temperature_2m_min"),
                precip_prob_max_pct=clamp_percentage(
                    None if precip is None else _number(precip, "precipitation")
                ),
            )
        )
    return ProviderForecast(timezone=timezone, days=days)


class _DailyStats:
    def __init__(self) -> None:
        self.temp_min: Optional[float] = None
        self.temp_max: Optional[float] = None
        self.precip_max = 0
        self.codes: Counter[int] = Counter()

    def observe_temperature(self, value: float) -> None:
        self.temp_min = value if self.temp_min is None else min(self.temp_min, value)
        self.temp_max = value if self.temp_max is None else max(self.temp_max, value)

    def choose_weather_code(self) -> int:
        if not self.codes:
            return UNKNOWN_SYMBOL_CODE
        return max(
            self.codes.items(),
            key=lambda item: (item[1], weather_severity(item[0]), item[0]),
        )[0]


def parse_met_no_forecast(data: Any, forecast_days: int) -> ProviderForecast:
    """
    Aggregate MET Norway's hourly timeseries into UTC daily rows.

    Per day: min/max air temperature, the most frequent weather code (ties
    broken by severity, then code) and the highest precipitation probability.

    Raises:
        InvalidResponseError: For malformed payloads or fewer days than requested
    """
    properties = data.get("properties") if isinstance(data, dict) else None
    timeseries = properties.get("timeseries") if isinstance(properties, dict) else None
    if not isinstance(timeseries, list) or not timeseries:
        raise InvalidResponseError("MET Norway response has empty timeseries")

    daily: dict[str, _DailyStats] = {}
    for point in timeseries:
        if not isinstance(point, dict):
            raise InvalidResponseError("MET Norway response contains invalid entry")
        instant = parse_timestamp(str(point.get("time", "")))
        if instant is None:
            raise InvalidResponseError(
                f"MET Norway response contains invalid time '{point.get('time')}'"
            )
        stats = daily.setdefault(instant.strftime("%Y-%m-%d"), _DailyStats())
        point_data = point.get("data") or {}
        details = (point_data.get("instant") or {}).get("details") or {}
        if "air_temperature" in details:
            stats.observe_temperature(_number(details["air_temperature"], "air_temperature"))

        code_recorded = False
        for horizon in ("next_1_hours", "next_6_hours", "next_12_hours"):
            window = point_data.get(horizon) or {}
            symbol = (window.get("summary") or {}).get("symbol_code")
            if symbol and not code_recorded:
                stats.codes[met_symbol_to_code(str(symbol))] += 1
                code_recorded = True
            probability = (window.get("details") or {}).get("probability_of_precipitation")
            if probability is not None:
                stats.precip_max = max(
                    stats.precip_max, clamp_percentage(_number(probability, "probability"))
                )

    days = []
    for date in sorted(daily):
        stats = daily[date]
        if stats.temp_min is None or stats.temp_max is None:
            raise InvalidResponseError("MET Norway response missing daily temperature")
        days.append(
            ForecastDay(
                date=date,
                weather_code=stats.choose_weather_code(),
                temp_min_c=stats.temp_min,
                temp_max_c=stats.temp_max,
                precip_prob_max_pct=stats.precip_max,
            )
        )

    if len(days) < forecast_days:
        raise InvalidResponseError(
            f"MET Norway response does not include {forecast_days} forecast days"
        )
    return ProviderForecast(timezone="UTC", days=days[:forecast_days])


class OpenMeteoGeocoder:
    """Resolves city names to coordinates."""

    name = "open_meteo"

    def __init__(self, client: httpx.Client, timeout: float):
        self.client = client
        self.timeout = timeout

    def geocode(self, city: str) -> Location:
        data = get_json(
            self.client,
            GEOCODE_ENDPOINT,
            params={"name": city, "count": 1, "language": "en", "format": "json"},
            timeout=self.timeout,
        )
        with malformed_payload("geocode"):
            return parse_geocode(data, city)


class OpenMeteoProvider:
    """Primary forecast provider."""

    name = "open_meteo"

    def __init__(
        self,
        client: httpx.Client,
        location: Location,
        forecast_days: int,
        timeout: float,
    ):
        self.client = client
        self.location = location
        self.forecast_days = forecast_days
        self.timeout = timeout

    def fetch_once(self) -> ProviderForecast:
        data = get_json(
            self.client,
            OPEN_METEO_ENDPOINT,
            params={
                "latitude": self.location.latitude,
                "longitude": self.location.longitude,
                "timezone": "auto",
                "forecast_days": self.forecast_days,
                "daily": FORECAST_DAILY_FIELDS,
            },
            timeout=self.timeout,
        )
        with malformed_payload(self.name):
            return parse_open_meteo_forecast(data)


class MetNoProvider:
    """Fallback forecast provider; MET Norway rejects requests without a User-Agent."""

    name = "met_no"

    def __init__(
        self,
        client: httpx.Client,
        location: Location,
        forecast_days: int,
        timeout: float,
        user_agent: str,
    ):
        self.client = client
        self.location = location
        self.forecast_days = forecast_days
        self.timeout = timeout
        self.user_agent = user_agent

    def fetch_once(self) -> ProviderForecast:
        data = get_json(
            self.client,
            MET_NO_ENDPOINT,
            params={"lat": self.location.latitude, "lon": self.location.longitude},
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
        )
        with malformed_payload(self.name):
            return parse_met_no_forecast(data, self.forecast_days)
