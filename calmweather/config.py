from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict
import os

import yaml


DEFAULT_ALERTS_URL = "https://api.weather.gov/alerts/active"
DEFAULT_UA = "CalmWeather/1.0 (calm spoken tornado warnings; contact: ops@calmweather.invalid)"


@dataclass(frozen=True)
class FeedConfig:
    region: str
    county: str
    category: str
    url: str
    user_agent: str
    max_retries: int
    base_retry_delay_seconds: float
    timeout_seconds: float


@dataclass(frozen=True)
class ScheduleConfig:
    poll_interval_seconds: float
    speech_min_interval_seconds: float
    timezone: str | None


@dataclass(frozen=True)
class DedupConfig:
    path: str


@dataclass(frozen=True)
class TTSConfig:
    provider: str
    output_path: str
    google_api_key: str | None
    google_voice: str
    elevenlabs_api_key: str | None
    elevenlabs_voice_id: str
    espeak_voice: str
    rate_wpm: int


@dataclass(frozen=True)
class PlayerConfig:
    player: str
    volume: int


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    file: str | None


@dataclass(frozen=True)
class AppConfig:
    feed: FeedConfig
    schedule: ScheduleConfig
    dedup: DedupConfig
    tts: TTSConfig
    player: PlayerConfig
    logging: LoggingConfig


def _env(key: str, default: str | None = None) -> str | None:
    v = os.environ.get(key)
    return v if v not in (None, "") else default


def _env_int(key: str, default: int) -> int:
    v = _env(key)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    v = _env(key)
    if v is None:
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_ms_as_seconds(key: str, default_seconds: float) -> float:
    v = _env(key)
    if v is None:
        return default_seconds
    try:
        return float(v) / 1000.0
    except ValueError:
        return default_seconds


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = raw.get(name)
    return sec if isinstance(sec, dict) else {}


def _read_yaml(path: str | None) -> Dict[str, Any]:
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        return {}
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return raw


def load_config(path: str | None = None) -> AppConfig:
    """
    Build the runtime configuration.

    Values come from the optional YAML file first, then environment variables
    override them. Interval env vars are given in milliseconds; everything is
    stored in seconds.
    """
    raw = _read_yaml(path)
    f = _section(raw, "feed")
    s = _section(raw, "schedule")
    d = _section(raw, "dedup")
    t = _section(raw, "tts")
    p = _section(raw, "player")
    lg = _section(raw, "logging")

    feed = FeedConfig(
        region=str(_env("ALERT_STATE", f.get("region", "KY"))).strip().upper(),
        county=str(_env("ALERT_COUNTY", f.get("county", "Jefferson"))).strip(),
        category=str(_env("ALERT_EVENT", f.get("category", "Tornado Warning"))),
        url=str(_env("NWS_ALERTS_URL", f.get("url", DEFAULT_ALERTS_URL))),
        user_agent=str(_env("NWS_USER_AGENT", f.get("user_agent", DEFAULT_UA))),
        max_retries=max(0, _env_int("FETCH_MAX_RETRIES", int(f.get("max_retries", 5)))),
        base_retry_delay_seconds=max(
            0.0,
            _env_ms_as_seconds("FETCH_BASE_DELAY_MS", float(f.get("base_retry_delay_seconds", 5.0))),
        ),
        timeout_seconds=max(1.0, _env_float("FETCH_TIMEOUT_SECONDS", float(f.get("timeout_seconds", 15.0)))),
    )

    schedule = ScheduleConfig(
        poll_interval_seconds=max(
            1.0,
            _env_ms_as_seconds("POLL_INTERVAL_MS", float(s.get("poll_interval_seconds", 300.0))),
        ),
        speech_min_interval_seconds=max(
            0.0,
            _env_ms_as_seconds("SPEECH_RATE_LIMIT_MS", float(s.get("speech_min_interval_seconds", 60.0))),
        ),
        timezone=_env("ALERT_TIMEZONE", s.get("timezone")),
    )

    dedup = DedupConfig(path=str(_env("DEDUP_FILE", d.get("path", "./data/spoken-alerts.json"))))

    tts = TTSConfig(
        provider=str(_env("TTS_PROVIDER", t.get("provider", "google"))).strip().lower(),
        output_path=str(_env("TTS_OUTPUT_PATH", t.get("output_path", "./data/speech.mp3"))),
        google_api_key=_env("GOOGLE_API_KEY", t.get("google_api_key")),
        google_voice=str(_env("GOOGLE_VOICE", t.get("google_voice", "en-US-Wavenet-D"))),
        elevenlabs_api_key=_env("ELEVENLABS_API_KEY", t.get("elevenlabs_api_key")),
        elevenlabs_voice_id=str(_env("ELEVENLABS_VOICE_ID", t.get("elevenlabs_voice_id", "EXAVITQu4vr4xnSDxMaL"))),
        espeak_voice=str(_env("ESPEAK_VOICE", t.get("espeak_voice", "en-us"))),
        rate_wpm=_env_int("TTS_RATE_WPM", int(t.get("rate_wpm", 140))),
    )

    player = PlayerConfig(
        player=str(_env("AUDIO_PLAYER", p.get("player", "mpg123"))).strip(),
        volume=max(0, min(100, _env_int("VOLUME", int(p.get("volume", 30))))),
    )

    logging_cfg = LoggingConfig(
        level=str(_env("LOG_LEVEL", lg.get("level", "INFO"))).upper(),
        file=_env("LOG_FILE", lg.get("file")),
    )

    return AppConfig(
        feed=feed,
        schedule=schedule,
        dedup=dedup,
        tts=tts,
        player=player,
        logging=logging_cfg,
    )
