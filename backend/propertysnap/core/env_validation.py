"""
Runtime Environment Validation Module

Validates the engine settings when the host shell starts the core. Unlike a
server process the library cannot refuse to start, so problems are returned
to the caller (and logged) rather than terminating the interpreter.
"""

import logging
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from propertysnap.core.config import Settings

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _check_timezone(field: str, value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        return f"{field}: unknown timezone '{value}'"
    return None


def collect_problems(settings: Settings) -> list[str]:
    """Return every configuration problem found in ``settings``."""
    problems: list[str] = []

    # ====================================================================
    # Logging
    # ====================================================================
    if settings.log_level.upper() not in VALID_LOG_LEVELS:
        problems.append(
            f"log_level: must be one of {', '.join(sorted(VALID_LOG_LEVELS))}"
        )

    # ====================================================================
    # Persistence
    # ====================================================================
    try:
        url = make_url(settings.database_url)
        if "+" not in url.drivername:
            problems.append(
                "database_url: an async driver is required "
                "(e.g. sqlite+aiosqlite:// or postgresql+asyncpg://)"
            )
    except ArgumentError:
        problems.append(f"database_url: cannot parse '{settings.database_url}'")

    for field in ("state_key", "notification_preferences_key", "scheduled_notifications_key"):
        if not getattr(settings, field).strip():
            problems.append(f"{field}: must not be empty")

    keys = [
        settings.state_key,
        settings.notification_preferences_key,
        settings.scheduled_notifications_key,
    ]
    if len(set(keys)) != len(keys):
        problems.append("storage keys must be distinct")

    if settings.persist_debounce_ms < 0:
        problems.append("persist_debounce_ms: must be >= 0")

    # ====================================================================
    # Verification
    # ====================================================================
    if settings.gps_threshold_m <= 0:
        problems.append("gps_threshold_m: must be > 0")
    if settings.gps_timeout_s <= 0 or settings.exif_timeout_s <= 0:
        problems.append("gps_timeout_s and exif_timeout_s must be > 0")

    # ====================================================================
    # Reports / notifications
    # ====================================================================
    out_dir = Path(settings.report_output_dir)
    if out_dir.exists() and not out_dir.is_dir():
        problems.append(f"report_output_dir: '{out_dir}' is not a directory")

    for field in ("report_timezone", "notification_timezone"):
        problem = _check_timezone(field, getattr(settings, field))
        if problem:
            problems.append(problem)

    if not 0 <= settings.due_alert_hour <= 23:
        problems.append("due_alert_hour: must be between 0 and 23")

    if not settings.geocoder_base_url.startswith(("http://", "https://")):
        problems.append("geocoder_base_url: must be an http(s) URL")

    return problems


def validate_environment(settings: Optional[Settings] = None) -> list[str]:
    """
    Validate engine settings at startup.

    Returns:
        A list of human-readable problems; empty when the configuration is
        usable.
    """
    try:
        settings = settings or Settings()
    except ValidationError as e:
        problems = []
        for error in e.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            problems.append(f"{field}: {error['msg']}")
        for problem in problems:
            logger.error("Environment validation failed: %s", problem)
        return problems

    problems = collect_problems(settings)
    if problems:
        for problem in problems:
            logger.error("Environment validation failed: %s", problem)
    else:
        logger.info(
            "Environment validation passed",
            extra={"app_name": settings.app_name},
        )
    return problems
