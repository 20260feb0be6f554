from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from zoneinfo import ZoneInfo

from .alerts import WeatherWarning, filter_warnings
from .config import AppConfig, LoggingConfig, load_config
from .gate import SpeechGate
from .ledger import DedupStore
from .message import STARTUP_PHRASE, build_calm_message
from .notifier import Notifier
from .nws_alerts import NwsAlertSource
from .player import AudioPlayer
from .tts import TTS

log = logging.getLogger("calmweather")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _setup_logging(cfg: LoggingConfig | None = None) -> None:
    level_name = cfg.level if cfg is not None else "INFO"
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stdout, force=True)

    if cfg is not None and cfg.file:
        try:
            Path(cfg.file).parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(cfg.file, encoding="utf-8")
        except OSError:
            log.exception("Could not open log file %s; logging to stdout only", cfg.file)
        else:
            fh.setFormatter(logging.Formatter(_LOG_FORMAT))
            logging.getLogger().addHandler(fh)


class Orchestrator:
    """
    Runs the alert cycle: fetch -> filter -> dedup -> speech gate -> notifier.

    One cycle at a time. The next one starts poll_interval seconds after the
    previous one finished. Shutdown is honoured only between cycles and while
    sleeping; an announcement already playing is allowed to finish.
    """

    def __init__(
        self,
        *,
        source: NwsAlertSource,
        store: DedupStore,
        gate: SpeechGate,
        notifier: Notifier,
        region: str,
        category: str,
        poll_interval_seconds: float,
        tz: ZoneInfo | None = None,
    ) -> None:
        self.source = source
        self.store = store
        self.gate = gate
        self.notifier = notifier
        self.region = region.strip().upper()
        self.category = category
        self.poll_interval_seconds = float(poll_interval_seconds)
        self.tz = tz

        self.state = "idle"
        self.shutting_down = False
        self._stop = asyncio.Event()

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "Orchestrator":
        tz = ZoneInfo(cfg.schedule.timezone) if cfg.schedule.timezone else None
        if cfg.tts.provider in ("espeak-ng", "espeak") and cfg.player.player != "aplay":
            log.warning("espeak-ng produces WAV audio; %s may not play it (set AUDIO_PLAYER=aplay)", cfg.player.player)
        return cls(
            source=NwsAlertSource.from_config(cfg.feed),
            store=DedupStore(path=Path(cfg.dedup.path)),
            gate=SpeechGate(cfg.schedule.speech_min_interval_seconds),
            notifier=Notifier(
                TTS.from_config(cfg.tts),
                AudioPlayer(player=cfg.player.player, volume=cfg.player.volume),
            ),
            region=cfg.feed.region,
            category=cfg.feed.category,
            poll_interval_seconds=cfg.schedule.poll_interval_seconds,
            tz=tz,
        )

    def request_shutdown(self) -> None:
        if self.shutting_down:
            return
        log.info("Shutdown signal received; stopping after the current step")
        self.shutting_down = True
        self._stop.set()

    async def announce(self, text: str) -> bool:
        if not self.gate.attempt():
            return False
        ok = await self.notifier.speak(text)
        if not ok:
            log.error("Announcement failed; not retrying")
        return ok

    async def process_warning(self, warning: WeatherWarning) -> None:
        if self.store.has_been_announced(warning.id):
            log.debug("Skipping already-announced warning: %s", warning.id)
            return

        log.info("New warning: %s", warning.headline or warning.id)
        try:
            await self.announce(build_calm_message(warning, self.tz))
        finally:
            # at-most-once: marked whether or not it was actually spoken
            self.store.mark_announced(warning.id)

    async def poll_once(self) -> None:
        self.state = "fetching"
        log.info("Polling NWS for %s in %s", self.category, self.region)
        features = await self.source.fetch_features(self.region)

        self.state = "processing"
        warnings = filter_warnings(features, self.category)
        log.info("Found %d active %s(s)", len(warnings), self.category)

        for w in warnings:
            try:
                await self.process_warning(w)
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Processing warning %s failed (continuing)", w.id)

    async def _sleep_until_next_cycle(self) -> None:
        self.state = "sleeping"
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval_seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self, *, once: bool = False) -> None:
        try:
            self.store.load()
            await self.announce(STARTUP_PHRASE)

            while not self.shutting_down:
                await self.poll_once()
                if once or self.shutting_down:
                    break
                await self._sleep_until_next_cycle()
        finally:
            self.state = "shutting_down"
            await self.source.aclose()
            log.info("Stopped")


def _install_signal_handlers(orch: Orchestrator) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orch.request_shutdown)
        except NotImplementedError:  # pragma: no cover
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(orch.request_shutdown))


async def _run_daemon(cfg: AppConfig, *, once: bool) -> None:
    orch = Orchestrator.from_config(cfg)
    _install_signal_handlers(orch)
    await orch.run(once=once)


async def _check(cfg: AppConfig) -> int:
    source = NwsAlertSource.from_config(cfg.feed)
    try:
        warnings = await source.fetch_active_warnings(cfg.feed.region)
    finally:
        await source.aclose()

    if not warnings:
        print(f"No active {cfg.feed.category} for {cfg.feed.region}")
        return 0
    for w in warnings:
        print(f"{w.id}\t{w.expires or '-'}\t{w.area_desc or '-'}")
    return 0


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="calmweather", description="Calm spoken severe-weather warnings")
    ap.add_argument("--config", default=None, help="optional YAML config file")
    ap.add_argument("--once", action="store_true", help="run a single poll cycle and exit")
    ap.add_argument("--check", action="store_true", help="print active matching warnings and exit")
    args = ap.parse_args(argv)

    _setup_logging()
    try:
        cfg = load_config(args.config)
        _setup_logging(cfg.logging)

        if args.check:
            return asyncio.run(_check(cfg))

        log.info("=== CalmWeather ===")
        log.info("Monitoring: %s County, %s (%s)", cfg.feed.county, cfg.feed.region, cfg.feed.category)
        log.info(
            "Poll interval: %ss | Speech rate limit: %ss",
            cfg.schedule.poll_interval_seconds,
            cfg.schedule.speech_min_interval_seconds,
        )
        asyncio.run(_run_daemon(cfg, once=args.once))
    except Exception:
        log.exception("Fatal error")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
