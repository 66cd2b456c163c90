"""Tests for crm_calendar/config.py and crm_calendar/logging_config.py"""

import logging

import pytest
import yaml

from crm_calendar.config import CONFIG_FILE, CalendarConfig, load_config
from crm_calendar.logging_config import setup_logging


class TestCalendarConfig:
    def test_defaults(self):
        config = CalendarConfig()
        assert config.scheduling.recurrence_conflict_policy == "partial"
        assert config.scheduling.max_recurrence_instances == 500
        assert config.views.agenda_days == 30
        assert config.views.week_starts_on == "monday"
        assert config.logging.json_output is False

    def test_shipped_file_loads(self):
        assert CONFIG_FILE.exists()
        config = load_config()
        assert config.scheduling.recurrence_conflict_policy in ("partial", "all_or_nothing")

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml")
        assert config == CalendarConfig()

    def test_nested_under_calendar_key(self, tmp_path):
        path = tmp_path / "calendar.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "calendar": {
                        "scheduling": {"recurrence_conflict_policy": "all_or_nothing"},
                        "logging": {"json": True},
                    }
                }
            )
        )

        config = load_config(path)

        assert config.scheduling.recurrence_conflict_policy == "all_or_nothing"
        assert config.logging.json_output is True

    def test_flat_file(self, tmp_path):
        path = tmp_path / "calendar.yaml"
        path.write_text(yaml.safe_dump({"views": {"week_starts_on": "sunday"}}))
        assert load_config(path).views.week_starts_on == "sunday"

    def test_invalid_policy_rejected(self):
        with pytest.raises(ValueError):
            CalendarConfig(scheduling={"recurrence_conflict_policy": "sometimes"})

    def test_extra_keys_allowed(self):
        config = CalendarConfig(scheduling={"max_recurrence_instances": 10, "unknown_field": 1})
        assert config.scheduling.max_recurrence_instances == 10

    def test_relative_db_path_resolves_under_project(self):
        config = CalendarConfig()
        assert config.storage.resolved_db_path().is_absolute()
        assert config.storage.resolved_db_path().name == "calendar.db"


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_level_from_config(self, monkeypatch):
        monkeypatch.delenv("CRM_CALENDAR_LOG_LEVEL", raising=False)
        setup_logging(CalendarConfig(logging={"level": "WARNING"}).logging)
        assert logging.getLogger().level == logging.WARNING

    def test_environment_overrides_config(self, monkeypatch):
        monkeypatch.setenv("CRM_CALENDAR_LOG_LEVEL", "DEBUG")
        setup_logging(CalendarConfig(logging={"level": "WARNING"}).logging)
        assert logging.getLogger().level == logging.DEBUG

    def test_single_handler(self, monkeypatch):
        monkeypatch.delenv("CRM_CALENDAR_LOG_LEVEL", raising=False)
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1
