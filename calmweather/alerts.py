from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Iterable

log = logging.getLogger("calmweather.alerts")


def _parse_iso(s: str | None) -> dt.datetime | None:
    if not s:
        return None
    try:
        # Accept "Z" or offset forms
        return dt.datetime.fromisoformat(s.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _str_or_none(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


@dataclass(frozen=True, slots=True)
class WeatherWarning:
    """One active warning from the NWS alerts feed. Only `id` outlives a cycle."""

    id: str
    category: str
    area_desc: str | None = None
    effective: str | None = None
    expires: str | None = None
    headline: str | None = None
    description: str | None = None
    severity: str | None = None

    @property
    def effective_at(self) -> dt.datetime | None:
        return _parse_iso(self.effective)

    @property
    def expires_at(self) -> dt.datetime | None:
        return _parse_iso(self.expires)


def warning_from_feature(feat: Any) -> WeatherWarning | None:
    if not isinstance(feat, dict):
        return None
    props = feat.get("properties")
    if not isinstance(props, dict):
        return None

    category = props.get("event")
    if not isinstance(category, str):
        return None

    # IDs: NWS uses "id" at top-level and "@id"/"id" in properties.
    alert_id = _str_or_none(feat.get("id") or props.get("id") or props.get("@id"))
    if not alert_id:
        log.debug("Dropping %s feature without an identifier", category)
        return None

    return WeatherWarning(
        id=alert_id,
        category=category,
        area_desc=_str_or_none(props.get("areaDesc")),
        effective=_str_or_none(props.get("effective")),
        expires=_str_or_none(props.get("expires")),
        headline=_str_or_none(props.get("headline")),
        description=_str_or_none(props.get("description")),
        severity=_str_or_none(props.get("severity")),
    )


def filter_warnings(features: Iterable[Any], category: str) -> list[WeatherWarning]:
    """
    Keep only features whose properties.event is exactly `category`.

    "Tornado Warning" matches; "Tornado Watch" and "tornado warning" do not.
    Malformed features are skipped, never raised on.
    """
    out: list[WeatherWarning] = []
    for feat in features or []:
        if not isinstance(feat, dict):
            continue
        props = feat.get("properties")
        if not isinstance(props, dict) or props.get("event") != category:
            continue
        w = warning_from_feature(feat)
        if w is not None:
            out.append(w)
    return out
