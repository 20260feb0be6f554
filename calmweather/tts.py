from __future__ import annotations

import asyncio
import base64
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from .config import TTSConfig

log = logging.getLogger("calmweather.tts")

GOOGLE_TTS_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
ELEVENLABS_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"

# Slow and low for a calm delivery
GOOGLE_SPEAKING_RATE = 0.85
GOOGLE_PITCH = -2.0
ELEVENLABS_VOICE_SETTINGS: Dict[str, Any] = {
    "stability": 0.8,
    "similarity_boost": 0.6,
    "style": 0.0,
    "use_speaker_boost": False,
}


class TTSError(RuntimeError):
    pass


def _clamp_int(val: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, int(val)))


@dataclass
class TTS:
    backend: str
    output_path: Path
    google_api_key: Optional[str] = None
    google_voice: str = "en-US-Wavenet-D"
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice_id: str = "EXAVITQu4vr4xnSDxMaL"
    espeak_voice: str = "en-us"
    rate_wpm: int = 140
    timeout: float = 30.0
    client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, cfg: TTSConfig, client: Optional[httpx.AsyncClient] = None) -> "TTS":
        return cls(
            backend=cfg.provider,
            output_path=Path(cfg.output_path),
            google_api_key=cfg.google_api_key,
            google_voice=cfg.google_voice,
            elevenlabs_api_key=cfg.elevenlabs_api_key,
            elevenlabs_voice_id=cfg.elevenlabs_voice_id,
            espeak_voice=cfg.espeak_voice,
            rate_wpm=cfg.rate_wpm,
            client=client,
        )

    async def synthesize(self, text: str) -> Path:
        log.info("Synthesizing speech via %s", self.backend)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        if self.backend == "elevenlabs":
            audio = await self._elevenlabs(text)
        elif self.backend in ("espeak-ng", "espeak"):
            wav_path = self.output_path.with_suffix(".wav")
            await asyncio.to_thread(self._espeak, text, wav_path)
            return wav_path
        elif self.backend == "google":
            audio = await self._google(text)
        else:
            raise TTSError(f"Unknown TTS backend: {self.backend!r}")

        self.output_path.write_bytes(audio)
        log.debug("TTS audio saved to %s (%d bytes)", self.output_path, len(audio))
        return self.output_path

    async def _post(self, url: str, *, json: Dict[str, Any], headers: Optional[Dict[str, str]] = None, params: Optional[Dict[str, str]] = None) -> httpx.Response:
        if self.client is not None:
            return await self.client.post(url, json=json, headers=headers, params=params)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, json=json, headers=headers, params=params)

    async def _google(self, text: str) -> bytes:
        if not self.google_api_key:
            raise TTSError("GOOGLE_API_KEY is not set")

        body = {
            "input": {"text": text},
            "voice": {"languageCode": "en-US", "name": self.google_voice},
            "audioConfig": {
                "audioEncoding": "MP3",
                "speakingRate": GOOGLE_SPEAKING_RATE,
                "pitch": GOOGLE_PITCH,
            },
        }
        r = await self._post(GOOGLE_TTS_URL, json=body, params={"key": self.google_api_key})
        if not r.is_success:
            raise TTSError(f"Google TTS API error ({r.status_code}): {r.text}")

        content = r.json().get("audioContent")
        if not isinstance(content, str) or not content:
            raise TTSError("Google TTS response had no audioContent")
        return base64.b64decode(content)

    async def _elevenlabs(self, text: str) -> bytes:
        if not self.elevenlabs_api_key:
            raise TTSError("ELEVENLABS_API_KEY is not set")

        body = {
            "text": text,
            "model_id": "eleven_monolingual_v1",
            "voice_settings": dict(ELEVENLABS_VOICE_SETTINGS),
        }
        r = await self._post(
            ELEVENLABS_TTS_URL.format(voice_id=self.elevenlabs_voice_id),
            json=body,
            headers={"xi-api-key": self.elevenlabs_api_key, "Accept": "audio/mpeg"},
        )
        if not r.is_success:
            raise TTSError(f"ElevenLabs API error ({r.status_code}): {r.text}")
        return r.content

    def _espeak(self, text: str, wav_path: Path) -> None:
        # offline fallback; writes WAV, so pair it with aplay
        if not shutil.which("espeak-ng"):
            raise TTSError("espeak-ng backend selected but espeak-ng not found")

        rate = _clamp_int(self.rate_wpm, 80, 450)
        cmd = ["espeak-ng", "-v", self.espeak_voice, "-s", str(rate), "-w", str(wav_path), text]
        subprocess.run(cmd, check=True)
