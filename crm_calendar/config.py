from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from crm_calendar import CONFIG_PATH, PROJECT_ROOT

logger = logging.getLogger(__name__)

CONFIG_FILE = CONFIG_PATH / "calendar.yaml"


# =============================================================================
# CalendarConfig (args/calendar.yaml)
# =============================================================================

class SchedulingConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    # partial: persist every instance and warn; all_or_nothing: reject the batch
    recurrence_conflict_policy: Literal["partial", "all_or_nothing"] = Field(default="partial")
    max_recurrence_instances: int = Field(default=500, ge=1)


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    db_path: str = Field(default="data/calendar.db")

    def resolved_db_path(self) -> Path:
        path = Path(self.db_path)
        return path if path.is_absolute() else PROJECT_ROOT / path


class ViewsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    agenda_days: int = Field(default=30, ge=1)
    week_starts_on: Literal["monday", "sunday"] = Field(default="monday")


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    level: str = Field(default="INFO")
    json_output: bool = Field(default=False, alias="json")


class CalendarConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    views: ViewsConfig = Field(default_factory=ViewsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: Optional[Path] = None) -> CalendarConfig:
    """
    Load calendar configuration from args/calendar.yaml.

    A missing file yields the defaults. The file may nest everything under a
    top-level ``calendar:`` key.
    """
    config_file = Path(path) if path else CONFIG_FILE
    if not config_file.exists():
        logger.debug(f"No config at {config_file}, using defaults")
        return CalendarConfig()

    with open(config_file) as f:
        raw = yaml.safe_load(f) or {}

    data = raw.get("calendar", raw)
    return CalendarConfig.model_validate(data)
