from __future__ import annotations

import logging
import time
from typing import Callable

log = logging.getLogger("calmweather.gate")


class SpeechGate:
    """
    Minimum spacing between spoken announcements, process-wide.

    A permitted attempt consumes the window immediately, before the notifier
    result is known, so a failing backend is not hammered. Denied attempts are
    dropped, not queued.
    """

    def __init__(self, min_interval_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.min_interval_seconds = max(0.0, float(min_interval_seconds))
        self._clock = clock
        self.last_speech_time: float | None = None

    def attempt(self, now: float | None = None) -> bool:
        if now is None:
            now = self._clock()
        last = self.last_speech_time
        if last is not None and now - last < self.min_interval_seconds:
            log.warning(
                "Rate limit active (%.1fs since last speech, min %.1fs); skipping speech",
                now - last,
                self.min_interval_seconds,
            )
            return False
        self.last_speech_time = now
        return True
