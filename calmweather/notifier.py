from __future__ import annotations

import asyncio
import logging

from .player import AudioPlayer
from .tts import TTS

log = logging.getLogger("calmweather.notifier")


class Notifier:
    """Text in, sound out. Only the combined success/failure is reported."""

    def __init__(self, tts: TTS, player: AudioPlayer) -> None:
        self.tts = tts
        self.player = player

    async def speak(self, text: str) -> bool:
        try:
            audio_path = await self.tts.synthesize(text)
            await self.player.play(audio_path)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("Speech failed")
            return False
        return True
