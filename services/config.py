"""Runtime settings loaded from the environment (and a .env file, if present)."""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import pytz
from dotenv import load_dotenv

from models.entities import SchedulingStrategy

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

DEFAULT_HISTORY_DEPTH = 20
DEFAULT_ACTIVITY_LOG_SIZE = 200
DEFAULT_TIMEZONE = "UTC"
DEFAULT_LOG_LEVEL = "INFO"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class SchedulerSettings:
    """Tunable defaults for the scheduler core."""
    history_depth: int = DEFAULT_HISTORY_DEPTH
    activity_log_size: int = DEFAULT_ACTIVITY_LOG_SIZE
    default_strategy: SchedulingStrategy = SchedulingStrategy.EFFICIENT
    default_timezone: str = DEFAULT_TIMEZONE
    randomize_ties: bool = False
    random_seed: Optional[int] = None
    log_level: str = DEFAULT_LOG_LEVEL


def _int_from_env(name: str, default: Optional[int], minimum: Optional[int] = None) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return default
    if minimum is not None and value < minimum:
        logger.warning("Ignoring %s=%r: must be at least %d", name, raw, minimum)
        return default
    return value


def get_settings() -> SchedulerSettings:
    """
    Build settings from environment variables.

    Recognised variables:
        MEETING_SCHEDULER_HISTORY_DEPTH: undo/redo depth (default 20)
        MEETING_SCHEDULER_ACTIVITY_LOG_SIZE: activity entries kept (default 200)
        MEETING_SCHEDULER_STRATEGY: "efficient" or "spaced"
        MEETING_SCHEDULER_TIMEZONE: pytz zone name for slot instants
        MEETING_SCHEDULER_RANDOMIZE_TIES: shuffle equal-priority pairs
        MEETING_SCHEDULER_RANDOM_SEED: seed for the shuffle
        MEETING_SCHEDULER_LOG_LEVEL: logging level name

    Invalid values fall back to defaults with a warning.
    """
    strategy_raw = os.getenv("MEETING_SCHEDULER_STRATEGY", SchedulingStrategy.EFFICIENT.value)
    try:
        strategy = SchedulingStrategy(strategy_raw.strip().lower())
    except ValueError:
        logger.warning("Unknown scheduling strategy %r, using efficient", strategy_raw)
        strategy = SchedulingStrategy.EFFICIENT

    timezone = os.getenv("MEETING_SCHEDULER_TIMEZONE", DEFAULT_TIMEZONE).strip()
    if timezone not in pytz.all_timezones_set:
        logger.warning("Unknown timezone %r, using %s", timezone, DEFAULT_TIMEZONE)
        timezone = DEFAULT_TIMEZONE

    log_level = os.getenv("MEETING_SCHEDULER_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        logger.warning("Unknown log level %r, using %s", log_level, DEFAULT_LOG_LEVEL)
        log_level = DEFAULT_LOG_LEVEL

    return SchedulerSettings(
        history_depth=_int_from_env("MEETING_SCHEDULER_HISTORY_DEPTH", DEFAULT_HISTORY_DEPTH, minimum=1),
        activity_log_size=_int_from_env(
            "MEETING_SCHEDULER_ACTIVITY_LOG_SIZE", DEFAULT_ACTIVITY_LOG_SIZE, minimum=1
        ),
        default_strategy=strategy,
        default_timezone=timezone,
        randomize_ties=os.getenv("MEETING_SCHEDULER_RANDOMIZE_TIES", "").strip().lower() in _TRUTHY,
        random_seed=_int_from_env("MEETING_SCHEDULER_RANDOM_SEED", None),
        log_level=log_level,
    )


def configure_logging(level: Optional[str] = None):
    """Set up root logging for scripts embedding the scheduler."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
