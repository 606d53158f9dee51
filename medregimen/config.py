"""
Configuration for the regimen interpreter.

Settings are plain immutable values handed to the functions that need
them; nothing here is cached at module level. load_config() reads an
optional .env file with python-dotenv and then the process environment:

    MEDREGIMEN_ENV_PATH        path of the .env file (default ./.env)
    MEDREGIMEN_MORNING_TIME    "HH:MM", default 08:00
    MEDREGIMEN_AFTERNOON_TIME  "HH:MM", default 13:00
    MEDREGIMEN_EVENING_TIME    "HH:MM", default 18:00
    MEDREGIMEN_BEDTIME_TIME    "HH:MM", default 22:00
"""

from dataclasses import dataclass, field
from datetime import time
from pathlib import Path
from typing import Optional, Union
import logging
import os

from dotenv import load_dotenv

from medregimen.status import LONG_DATE_FORMAT, SHORT_DATE_FORMAT

logger = logging.getLogger(__name__)


ENV_PREFIX = "MEDREGIMEN_"


@dataclass(frozen=True)
class TimingPreferences:
    """User-chosen clock times for the named times of day."""
    morning: time = time(8, 0)
    afternoon: time = time(13, 0)
    evening: time = time(18, 0)
    bedtime: time = time(22, 0)


@dataclass(frozen=True)
class RegimenConfig:
    """Everything the interpreter can be tuned with."""
    timing: TimingPreferences = field(default_factory=TimingPreferences)
    short_date_format: str = SHORT_DATE_FORMAT
    long_date_format: str = LONG_DATE_FORMAT


def parse_clock_time(value: str) -> time:
    """
    Parse "HH:MM" (24h).

    Raises:
        ValueError: If value is not a valid clock time
    """
    hour_text, separator, minute_text = value.strip().partition(":")
    if not separator:
        raise ValueError(f"clock time must be HH:MM, got {value!r}")
    return time(int(hour_text), int(minute_text))


def _env_time(name: str, default: time) -> time:
    raw = os.getenv(f"{ENV_PREFIX}{name}")
    if raw is None or not raw.strip():
        return default
    try:
        return parse_clock_time(raw)
    except ValueError as e:
        logger.warning(f"Ignoring {ENV_PREFIX}{name}={raw!r}: {e}")
        return default


def load_config(env_path: Optional[Union[str, Path]] = None) -> RegimenConfig:
    """
    Build a RegimenConfig from an optional .env file and the environment.

    Variables already present in the environment take precedence over the
    file. A missing file is not an error.
    """
    if env_path is None:
        env_path = os.getenv(f"{ENV_PREFIX}ENV_PATH", ".env")
    env_path = Path(env_path)

    if env_path.exists():
        load_dotenv(env_path, override=False)
        logger.debug(f"Loaded configuration from {env_path}")
    else:
        logger.debug(f"No configuration file at {env_path}, using environment only")

    defaults = TimingPreferences()
    timing = TimingPreferences(
        morning=_env_time("MORNING_TIME", defaults.morning),
        afternoon=_env_time("AFTERNOON_TIME", defaults.afternoon),
        evening=_env_time("EVENING_TIME", defaults.evening),
        bedtime=_env_time("BEDTIME_TIME", defaults.bedtime),
    )
    return RegimenConfig(timing=timing)
