"""
Unit tests for the config module.
Tests defaults, persistence and the validated accessors.
"""

import json
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from taskdeck.core.config import Config, MAX_CALENDAR_WEEKS, MIN_CALENDAR_WEEKS


@pytest.fixture
def config_dir(tmp_path):
    return tmp_path / "config"


class TestConfigFiles:
    """Tests for loading and saving configuration files."""

    def test_creates_default_files(self, config_dir):
        Config(config_dir)
        settings = json.loads((config_dir / "settings.json").read_text())
        weather = json.loads((config_dir / "weather.json").read_text())

        assert settings["calendar_weeks_to_show"] == 100
        assert settings["first_day_of_week"] == "monday"
        assert weather["max_retries"] == 3

    def test_set_persists(self, config_dir):
        Config(config_dir).set("max_retries", 5, section="weather")
        assert Config(config_dir).get("max_retries", "weather") == 5

    def test_missing_keys_fall_back_to_defaults(self, config_dir):
        config_dir.mkdir(parents=True)
        (config_dir / "settings.json").write_text(json.dumps({"time_format": "%I:%M %p"}))

        config = Config(config_dir)

        assert config.get_time_format() == "%I:%M %p"
        assert config.get_calendar_weeks() == 100

    def test_unreadable_file_uses_defaults(self, config_dir):
        config_dir.mkdir(parents=True)
        (config_dir / "weather.json").write_text("{oops")

        assert Config(config_dir).get_refresh_interval() == 600

    def test_unknown_section(self, config_dir):
        assert Config(config_dir).get("anything", "nope", "fallback") == "fallback"


class TestAccessors:
    """Tests for typed accessors."""

    @pytest.mark.parametrize("value,expected", [
        (1, MIN_CALENDAR_WEEKS),
        (52, 52),
        (10 ** 6, MAX_CALENDAR_WEEKS),
        ("many", 100),
    ])
    def test_calendar_weeks_clamped(self, config_dir, value, expected):
        config = Config(config_dir)
        config.set("calendar_weeks_to_show", value)
        assert config.get_calendar_weeks() == expected

    @pytest.mark.parametrize("name,index", [("monday", 0), ("Sunday", 6), ("someday", 0)])
    def test_first_weekday(self, config_dir, name, index):
        config = Config(config_dir)
        config.set("first_day_of_week", name)
        assert config.get_first_weekday() == index

    def test_coordinates(self, config_dir):
        config = Config(config_dir)
        config.set("coordinates", ["52.52", 13.41], section="weather")
        assert config.get_coordinates() == (52.52, 13.41)

    def test_invalid_coordinates(self, config_dir):
        config = Config(config_dir)
        config.set("coordinates", "Berlin", section="weather")
        assert config.get_coordinates() == (0.0, 0.0)

    def test_retry_settings(self, config_dir):
        config = Config(config_dir)
        config.set("max_retries", 0, section="weather")
        config.set("backoff_base", "fast", section="weather")

        assert config.get_max_retries() == 1
        assert config.get_backoff_base() == 2.0

    def test_forecast_days(self, config_dir):
        config = Config(config_dir)
        assert config.get_forecast_days() == 1

        config.set("three_day_forecast", True, section="weather")
        assert config.get_forecast_days() == 3

    def test_data_directory(self, config_dir, tmp_path):
        config = Config(config_dir)
        assert config.get_data_directory().name == "data"

        config.set("data_directory", str(tmp_path / "elsewhere"))
        assert config.get_data_directory() == tmp_path / "elsewhere"
