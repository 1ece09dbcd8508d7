"""
Background synchronization for Task Deck.

Provides the generic retrying, versioned SyncService and the weather
forecast fetcher/digest built on it.
"""

from .service import SyncService, ReadWriteLock, Reconfigure, Stop
from .weather import (
    Coordinates,
    HourlyReading,
    ForecastSlot,
    ForecastDigest,
    OpenMeteoFetcher,
    fold_forecast,
    parse_hourly,
    start_weather_service,
)

__all__ = [
    # Service
    'SyncService',
    'ReadWriteLock',
    'Reconfigure',
    'Stop',
    # Weather
    'Coordinates',
    'HourlyReading',
    'ForecastSlot',
    'ForecastDigest',
    'OpenMeteoFetcher',
    'fold_forecast',
    'parse_hourly',
    'start_weather_service',
]
