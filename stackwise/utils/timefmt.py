from datetime import datetime

import pytz
from flask import current_app

UTC_TZ = pytz.utc


def to_local(dt: datetime | None) -> datetime | None:
    """Converts a datetime (assumed UTC when naive) to the configured APP_TZ."""
    if not dt:
        return None
    if dt.tzinfo is None:
        dt = UTC_TZ.localize(dt)
    tz = pytz.timezone(current_app.config.get("APP_TZ") or "UTC")
    return dt.astimezone(tz)


def fmt_local(dt: datetime | None, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    local_dt = to_local(dt)
    if not local_dt:
        return ""
    return local_dt.strftime(fmt)


def iso_local(dt: datetime | None) -> str | None:
    local_dt = to_local(dt)
    return local_dt.isoformat() if local_dt else None
