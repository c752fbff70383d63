"""Environment driven configuration read from ``TASMOTA_*`` variables."""

from __future__ import annotations

import logging
import os

from .const import DEFAULT_HTTP_TIMEOUT, DeviceLimits

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"


def get_env(name: str, default: str | None = None) -> str | None:
    """Get an environment variable, treating blank values as unset."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value


def get_env_float(name: str, default: float) -> float:
    """Get a float environment variable.

    Args:
        name: Environment variable name
        default: Default value if not found or invalid

    Returns:
        Float value from environment or default
    """
    raw = get_env(name)
    if raw is None:
        return default

    try:
        return float(raw)
    except ValueError:
        logger.warning(
            "Invalid float value for %s: '%s'. Using default: %s",
            name,
            raw,
            default,
        )
        return default


def get_env_int(name: str, default: int) -> int:
    """Get an integer environment variable.

    Args:
        name: Environment variable name
        default: Default value if not found or invalid

    Returns:
        Integer value from environment or default
    """
    raw = get_env(name)
    if raw is None:
        return default

    try:
        return int(raw)
    except ValueError:
        logger.warning(
            "Invalid integer value for %s: '%s'. Using default: %s",
            name,
            raw,
            default,
        )
        return default


def load_device_limits() -> DeviceLimits:
    """Build device limits, letting the environment override each value."""
    defaults = DeviceLimits()
    return DeviceLimits(
        min_relay=get_env_int("TASMOTA_MIN_RELAY", defaults.min_relay),
        max_relay=get_env_int("TASMOTA_MAX_RELAY", defaults.max_relay),
        timer_slots=get_env_int("TASMOTA_TIMER_SLOTS", defaults.timer_slots),
        rule_slots=get_env_int("TASMOTA_RULE_SLOTS", defaults.rule_slots),
        rule_timers=get_env_int("TASMOTA_RULE_TIMERS", defaults.rule_timers),
        delay_units_per_second=get_env_int(
            "TASMOTA_DELAY_UNITS", defaults.delay_units_per_second
        ),
    )


def get_http_timeout() -> float:
    """Return the HTTP timeout in seconds for device requests."""
    return get_env_float("TASMOTA_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)


def configure_logging() -> None:
    """Configure root logging from ``TASMOTA_LOG_LEVEL`` if nobody else has."""
    level_name = (get_env("TASMOTA_LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("tasmota_device_manager").setLevel(level)
    # Silence noisy httpx request logging
    logging.getLogger("httpx").setLevel(logging.WARNING)
