"""
Configuration management for Task Deck
Handles loading and saving calendar, storage and weather sync settings
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

logger = logging.getLogger(__name__)

MIN_CALENDAR_WEEKS = 6
MAX_CALENDAR_WEEKS = 20000

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class Config:
    """Configuration manager for Task Deck"""

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration manager

        Args:
            config_dir: Path to configuration directory (defaults to ./config)
        """
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.settings_file = self.config_dir / "settings.json"
        self.weather_file = self.config_dir / "weather.json"

        # Load configurations
        self.settings = self._load_json(self.settings_file, self._default_settings())
        self.weather = self._load_json(self.weather_file, self._default_weather())

    def _load_json(self, file_path: Path, default: Dict[str, Any]) -> Dict[str, Any]:
        """Load JSON file or return default if file doesn't exist"""
        if file_path.exists():
            try:
                with open(file_path, 'r') as f:
                    loaded = json.load(f)
            except json.JSONDecodeError as e:
                logger.warning(f"Ignoring unreadable config {file_path}: {e}")
                return default
            # Keys added in newer versions fall back to defaults
            return {**default, **loaded} if isinstance(loaded, dict) else default
        else:
            # Create file with defaults
            self._save_json(file_path, default)
            return default

    def _save_json(self, file_path: Path, data: Dict[str, Any]) -> None:
        """Save data to JSON file"""
        with open(file_path, 'w') as f:
            json.dump(data, f, indent=2)

    def _default_settings(self) -> Dict[str, Any]:
        """Default system settings"""
        return {
            "data_directory": "data",
            "first_day_of_week": "monday",
            "calendar_weeks_to_show": 100,
            "time_format": "%H:%M",
        }

    def _default_weather(self) -> Dict[str, Any]:
        """Default weather sync settings"""
        return {
            "coordinates": [0.0, 0.0],
            "refresh_interval_seconds": 600,
            "max_retries": 3,
            "backoff_base": 2,
            "request_timeout_seconds": 10,
            "three_day_forecast": False,
        }

    def get(self, key: str, section: str = "settings", default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            key: Configuration key
            section: Configuration section ('settings', 'weather')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        section_map = {
            "settings": self.settings,
            "weather": self.weather,
        }

        return section_map.get(section, {}).get(key, default)

    def set(self, key: str, value: Any, section: str = "settings") -> None:
        """
        Set configuration value and save to disk

        Args:
            key: Configuration key
            value: Value to set
            section: Configuration section ('settings', 'weather')
        """
        section_map = {
            "settings": (self.settings, self.settings_file),
            "weather": (self.weather, self.weather_file),
        }

        if section in section_map:
            config_dict, file_path = section_map[section]
            config_dict[key] = value
            self._save_json(file_path, config_dict)

    def _get_number(self, key: str, section: str, cast, default):
        """Read a numeric value, falling back to the default when invalid"""
        value = self.get(key, section, default)
        try:
            return cast(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid value for {section}.{key}: {value!r}, using {default}")
            return default

    def get_calendar_weeks(self) -> int:
        """Number of calendar weeks to display, clamped to a sane range"""
        weeks = self._get_number("calendar_weeks_to_show", "settings", int, 100)
        return max(MIN_CALENDAR_WEEKS, min(MAX_CALENDAR_WEEKS, weeks))

    def get_first_weekday(self) -> int:
        """Configured first day of the week as a weekday index (Monday=0)"""
        name = str(self.get("first_day_of_week", "settings", "monday")).lower()
        if name not in WEEKDAYS:
            logger.warning(f"Unknown first_day_of_week {name!r}, using monday")
            return 0
        return WEEKDAYS.index(name)

    def get_time_format(self) -> str:
        return self.get("time_format", "settings", "%H:%M")

    def get_data_directory(self) -> Path:
        """Get full path to the data directory"""
        path = Path(self.get("data_directory", "settings", "data"))
        if path.is_absolute():
            return path
        base_path = Path(__file__).parent.parent.parent
        return base_path / path

    def get_coordinates(self) -> Tuple[float, float]:
        """Latitude/longitude used by the weather sync"""
        coords = self.get("coordinates", "weather", [0.0, 0.0])
        try:
            latitude, longitude = (float(c) for c in coords)
        except (TypeError, ValueError):
            logger.warning(f"Invalid weather coordinates {coords!r}, using (0, 0)")
            return 0.0, 0.0
        return latitude, longitude

    def get_refresh_interval(self) -> float:
        """Seconds between weather refreshes"""
        return max(1.0, self._get_number("refresh_interval_seconds", "weather", float, 600.0))

    def get_max_retries(self) -> int:
        """Fetch attempts per refresh cycle"""
        return max(1, self._get_number("max_retries", "weather", int, 3))

    def get_backoff_base(self) -> float:
        """Base of the exponential retry backoff, in seconds"""
        return max(0.0, self._get_number("backoff_base", "weather", float, 2.0))

    def get_forecast_days(self) -> int:
        """Days of forecast to display (1, or 3 when three_day_forecast is on)"""
        return 3 if self.get("three_day_forecast", "weather", False) else 1

    def get_request_timeout(self) -> float:
        """Timeout for a single weather request, in seconds"""
        return max(1.0, self._get_number("request_timeout_seconds", "weather", float, 10.0))
