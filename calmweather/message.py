from __future__ import annotations

import datetime as dt
import re

from .alerts import WeatherWarning

STARTUP_PHRASE = "Testing... everything is calm."

_SPACE_RE = re.compile(r"\s+")
_URL_RE = re.compile(r"https?://\S+|www\.\S+", re.IGNORECASE)


def clean_for_tts(text: str) -> str:
    """
    Light de-noising of anything about to be spoken.
    NWS area strings are mostly prose already, so keep it conservative.
    """
    if not text:
        return ""
    t = _URL_RE.sub("", text)
    t = t.replace("*", " ").replace("\u2022", " ")
    return _SPACE_RE.sub(" ", t).strip()


def _fmt_time(when: dt.datetime, tz: dt.tzinfo | None) -> str | None:
    try:
        local = when.astimezone(tz) if tz is not None else when.astimezone()
    except (OverflowError, ValueError, OSError):
        # parsed, but outside what the target zone can represent
        return None
    # 12-hour like "6:42 PM EDT"
    hour = local.strftime("%I").lstrip("0") or "12"
    return f"{hour}:{local.strftime('%M %p')} {local.tzname() or 'local time'}"


def build_calm_message(warning: WeatherWarning, tz: dt.tzinfo | None = None) -> str:
    area = warning.area_desc or "your area"
    category = (warning.category or "weather warning").lower()

    expires_at = warning.expires_at
    spoken_time = _fmt_time(expires_at, tz) if expires_at is not None else None
    until = f"until {spoken_time}" if spoken_time else "until further notice"

    return clean_for_tts(
        f"Hey... just a gentle heads-up, there's a {category} for {area} right now. "
        f"The warning is in effect {until}. "
        "Please take it easy and head to a safe spot when you can. "
        "Stay low, stay calm, and take care of yourself."
    )
