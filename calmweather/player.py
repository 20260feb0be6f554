from __future__ import annotations

import asyncio
import logging
import subprocess
from pathlib import Path
from typing import List

log = logging.getLogger("calmweather.player")


class AudioPlayer:
    """Plays a finished audio file through a local CLI player (mpg123 or aplay)."""

    def __init__(self, player: str = "mpg123", volume: int = 30) -> None:
        self.player = (player or "mpg123").strip()
        self.volume = max(0, min(100, int(volume)))

    def command_for(self, path: Path | str) -> List[str]:
        if self.player == "aplay":
            # aplay has no volume flag
            return ["aplay", str(path)]
        return [self.player, "-q", "--volume", str(self.volume), str(path)]

    async def play(self, path: Path | str) -> None:
        cmd = self.command_for(path)
        log.info("Playing audio at %d%% volume using %s", self.volume, self.player)
        proc = await asyncio.to_thread(subprocess.run, cmd, check=False)
        if proc.returncode != 0:
            log.warning("Audio player exited with non-zero code: %s", proc.returncode)
