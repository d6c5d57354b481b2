# provisioning_app/utils/time.py
"""
Timestamp helpers for audit lines written into the Contact system comment.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app

DEFAULT_TIMEZONE = "Europe/London"


def get_local_timezone():
    """Return the configured provisioning timezone, falling back to UTC if it is unknown"""
    name = current_app.config.get("PROVISIONING_TIMEZONE") or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        current_app.logger.warning(f"Unknown timezone '{name}'; using UTC for timestamps")
        return timezone.utc


def format_comment_timestamp(moment=None):
    """Format a moment as e.g. '5 March 2024 14:02:11 GMT' in the configured timezone"""
    if moment is None:
        moment = datetime.now(timezone.utc)
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(get_local_timezone())
    return f"{local.day} {local:%B %Y %H:%M:%S %Z}"
