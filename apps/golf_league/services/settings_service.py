"""
Runtime settings for the league: message transport toggles, RSVP send pacing
and log level.

Each setting is read from the `settings` table first, then from its
environment variable, then from its default. Admins change them through the
settings API without a restart.
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from golf_league.services import data_service
from golf_league.utils.constants import DEFAULT_RSVP_SEND_DELAY_SECONDS
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1", "yes")
BOOL_VALUES = TRUE_VALUES + ("false", "0", "no")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
MAX_SEND_DELAY_SECONDS = 60.0


def _check_bool(value: str) -> None:
    if value.lower() not in BOOL_VALUES:
        raise ValueError("Value must be true or false")


def _check_delay(value: str) -> None:
    try:
        delay = float(value)
    except ValueError:
        raise ValueError("Value must be a number of seconds")
    if not 0 <= delay <= MAX_SEND_DELAY_SECONDS:
        raise ValueError(f"Send delay must be between 0 and {MAX_SEND_DELAY_SECONDS:g} seconds")


def _check_log_level(value: str) -> None:
    if value.upper() not in LOG_LEVELS:
        raise ValueError(f"Log level must be one of: {', '.join(LOG_LEVELS)}")


@dataclass(frozen=True)
class SettingDefinition:
    env_var: str
    default: str
    check: Callable[[str], None]


SETTINGS: Dict[str, SettingDefinition] = {
    "enable_email": SettingDefinition("ENABLE_EMAIL", "true", _check_bool),
    "enable_sms": SettingDefinition("ENABLE_SMS", "true", _check_bool),
    "rsvp_send_delay_seconds": SettingDefinition(
        "RSVP_SEND_DELAY_SECONDS", str(DEFAULT_RSVP_SEND_DELAY_SECONDS), _check_delay
    ),
    "log_level": SettingDefinition("LOG_LEVEL", "INFO", _check_log_level),
}


def get_bool_env(key: str, default: bool = True) -> bool:
    """Parse a boolean environment variable; unset means `default`."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in TRUE_VALUES


def validate_setting(key: str, value: str) -> str:
    """
    Check a value before it is stored.

    Returns:
        The value with surrounding whitespace removed

    Raises:
        ValueError: Unknown key or a value the setting cannot use
    """
    definition = SETTINGS.get(key)
    if definition is None:
        raise ValueError(f"Unknown setting '{key}'. Known settings: {', '.join(SETTINGS)}")
    value = (value or "").strip()
    definition.check(value)
    return value


async def set_setting(session: AsyncSession, key: str, value: str) -> Dict[str, str]:
    cleaned = validate_setting(key, value)
    await data_service.set_setting(session, key, cleaned)
    if key == "log_level":
        logging.getLogger().setLevel(cleaned.upper())
    logger.info(f"Setting '{key}' changed")
    return {"key": key, "value": cleaned}


async def get_setting_with_fallback(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Get a setting value from database first, then env var, then default.

    A database error is logged and treated as "not set" so a broken settings
    table never stops messages from going out.
    """
    if session:
        try:
            value = await data_service.get_setting(session, key)
            if value is not None:
                return value
        except Exception as e:
            logger.warning(f"Error reading setting {key} from database: {e}")

    if env_var:
        value = os.getenv(env_var)
        if value is not None:
            return value

    return default


async def get_bool_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: bool = True,
) -> bool:
    value = await get_setting_with_fallback(session, key, env_var, None)
    if value is None:
        return default
    return value.lower() in TRUE_VALUES


async def get_float_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[float] = None,
) -> Optional[float]:
    value = await get_setting_with_fallback(session, key, env_var, None)
    if value is None:
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        logger.warning(f"Invalid float value for setting {key}: {value}")
        return default


async def get_effective_settings(session: AsyncSession) -> Dict[str, Dict[str, Optional[str]]]:
    """
    Value in force for every known setting and where it came from.

    Returns:
        {key: {"value": ..., "source": "database" | "environment" | "default"}}
    """
    stored = await data_service.list_settings(session)
    effective = {}
    for key, definition in SETTINGS.items():
        if key in stored:
            effective[key] = {"value": stored[key], "source": "database"}
        elif os.getenv(definition.env_var) is not None:
            effective[key] = {"value": os.getenv(definition.env_var), "source": "environment"}
        else:
            effective[key] = {"value": definition.default, "source": "default"}
    return effective
