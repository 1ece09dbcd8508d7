"""
Weather forecast sync for Task Deck.

The fetcher pulls three days of hourly readings from Open-Meteo and
buckets them by hour of day (24 buckets, one reading per forecast day).
ForecastDigest is the consumer side: it polls the service version and
folds the hourly buckets into 2-hour slots only when a new snapshot
arrived.
"""

import json
import logging
import math
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, NamedTuple, Optional

from taskdeck.core.config import Config
from taskdeck.core.errors import FetchError
from taskdeck.sync.service import SyncService

logger = logging.getLogger(__name__)

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
FORECAST_DAYS = 3
HOURS_PER_DAY = 24


class Coordinates(NamedTuple):
    latitude: float
    longitude: float


@dataclass(frozen=True)
class HourlyReading:
    """One forecast hour."""
    time: str
    temperature: float
    weather_code: int
    is_day: bool


@dataclass(frozen=True)
class ForecastSlot:
    """Two adjacent forecast hours folded together."""
    time: str
    temperature: float
    weather_code: int
    is_day: bool


# 24 buckets, one list of readings (per forecast day) per hour of day
WeatherSnapshot = List[List[HourlyReading]]


class OpenMeteoFetcher:
    """Blocking fetch of hourly temperature, weather code and day flag."""

    def __init__(self, timeout: float = 10.0, forecast_days: int = FORECAST_DAYS):
        self.timeout = timeout
        self.forecast_days = forecast_days

    def build_url(self, coords: Coordinates) -> str:
        query = urllib.parse.urlencode({
            "latitude": coords.latitude,
            "longitude": coords.longitude,
            "hourly": "temperature_2m,weather_code,is_day",
            "timezone": "auto",
            "forecast_days": self.forecast_days,
        })
        return f"{OPEN_METEO_URL}?{query}"

    def __call__(self, coords: Coordinates) -> WeatherSnapshot:
        """
        Fetch and bucket a forecast.

        Raises:
            FetchError: On HTTP, network, JSON or timestamp errors
        """
        req = urllib.request.Request(
            self.build_url(coords),
            headers={'User-Agent': 'taskdeck-weather/1.0'}
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                payload = json.loads(response.read().decode('utf-8'))
        except urllib.error.HTTPError as e:
            raise FetchError(f"Forecast request returned status {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            raise FetchError(f"Forecast request failed: {e}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FetchError(f"Forecast response is not JSON: {e}") from e

        return parse_hourly(payload)


def parse_hourly(payload: dict) -> WeatherSnapshot:
    """
    Bucket an Open-Meteo ``hourly`` block by hour of day.

    Missing temperature/code/day values default to zero.

    Raises:
        FetchError: If the block is missing or a timestamp is malformed
    """
    hourly = payload.get("hourly") if isinstance(payload, dict) else None
    if not isinstance(hourly, dict) or "time" not in hourly:
        raise FetchError("Forecast response has no hourly data")

    times = hourly.get("time") or []
    temperatures = hourly.get("temperature_2m") or []
    codes = hourly.get("weather_code") or []
    day_flags = hourly.get("is_day") or []

    buckets: WeatherSnapshot = [[] for _ in range(HOURS_PER_DAY)]

    for i, stamp in enumerate(times):
        try:
            label = datetime.strptime(stamp, "%Y-%m-%dT%H:%M").strftime("%H:%M")
        except (TypeError, ValueError) as e:
            raise FetchError(f"Bad forecast timestamp {stamp!r}") from e

        buckets[i % HOURS_PER_DAY].append(HourlyReading(
            time=label,
            temperature=float(_at(temperatures, i, 0.0)),
            weather_code=int(_at(codes, i, 0)),
            is_day=_at(day_flags, i, 0) == 1,
        ))

    return buckets


def _at(values: list, index: int, default):
    value = values[index] if index < len(values) else None
    return default if value is None else value


def _round_half_away(value: float) -> float:
    # round() would round halves to even
    return math.copysign(math.floor(abs(value) + 0.5), value)


def fold_forecast(snapshot: WeatherSnapshot, days: int = FORECAST_DAYS) -> Optional[List[List[ForecastSlot]]]:
    """
    Fold 24 hourly buckets into 12 two-hour slots per day.

    Each slot keeps the first hour's label, the rounded mean temperature
    (near-zero values normalized to 0.0), the larger weather code, and is
    daytime when either hour is.

    Returns:
        One list of slots per day, or None if the snapshot is not 24 buckets
        of at least ``days`` readings
    """
    if len(snapshot) != HOURS_PER_DAY:
        return None
    if any(len(bucket) < days for bucket in snapshot):
        return None

    folded: List[List[ForecastSlot]] = []
    for day in range(days):
        slots = []
        for i in range(HOURS_PER_DAY // 2):
            first = snapshot[2 * i][day]
            second = snapshot[2 * i + 1][day]

            temperature = _round_half_away((first.temperature + second.temperature) / 2)
            if abs(temperature) < 0.1:
                temperature = 0.0

            slots.append(ForecastSlot(
                time=first.time,
                temperature=temperature,
                weather_code=max(first.weather_code, second.weather_code),
                is_day=first.is_day or second.is_day,
            ))
        folded.append(slots)
    return folded


class ForecastDigest:
    """Consumer-side cache re-derived only when the service version moves."""

    def __init__(self, days: int = FORECAST_DAYS):
        self.days = days
        self.slots: List[List[ForecastSlot]] = []
        self.broken = True
        self.last_version = 0

    def refresh(self, service: SyncService) -> bool:
        """
        Poll the service once.

        Returns:
            True if a new snapshot was folded in
        """
        if not service.has_changed(self.last_version):
            return False

        self.last_version = service.version
        folded = fold_forecast(service.snapshot() or [], self.days)
        if folded is None:
            logger.warning("Weather snapshot is incomplete; marking forecast broken")
            self.broken = True
            self.slots = []
        else:
            self.broken = False
            self.slots = folded
        return True


def start_weather_service(
    config: Config,
    on_publish: Optional[Callable[[], None]] = None,
    start: bool = True
) -> SyncService:
    """
    Build the weather SyncService from configuration.

    Args:
        config: Configuration with weather settings
        on_publish: Wake-up called after each published forecast
        start: Start the worker thread immediately
    """
    service = SyncService(
        fetch=OpenMeteoFetcher(timeout=config.get_request_timeout()),
        params=Coordinates(*config.get_coordinates()),
        refresh_interval=config.get_refresh_interval(),
        max_retries=config.get_max_retries(),
        backoff_base=config.get_backoff_base(),
        on_publish=on_publish,
        initial=[],
        name="weather",
    )
    if start:
        service.start()
    return service
