from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator

log = logging.getLogger("calmweather.ledger")


@dataclass
class DedupStore:
    """
    Persistent "already announced" ledger so a restart never re-speaks a warning.

    Stored as a JSON array of warning ids. Entries never expire; the file only
    grows. Every mark rewrites the whole set atomically (tmp file + rename).
    """
    path: Path

    # dict keeps insertion order for stable file output
    _ids: Dict[str, None] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def load(self) -> None:
        self._ids = {}
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            log.info("No dedup ledger at %s; starting fresh", self.path)
            return
        except (OSError, UnicodeDecodeError) as e:
            log.info("Dedup ledger %s unreadable (%s); starting fresh", self.path, e)
            return

        try:
            data = json.loads(raw)
        except ValueError:
            log.info("Dedup ledger %s is not valid JSON; starting fresh", self.path)
            return

        if not isinstance(data, list) or not all(isinstance(x, str) for x in data):
            log.info("Dedup ledger %s is not a list of ids; starting fresh", self.path)
            return

        self._ids = dict.fromkeys(data)
        log.info("Loaded %d previously announced warning id(s) from %s", len(self._ids), self.path)

    def has_been_announced(self, alert_id: str) -> bool:
        return alert_id in self._ids

    def mark_announced(self, alert_id: str) -> None:
        self._ids[alert_id] = None
        self._save()

    def _save(self) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(list(self._ids), f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except (OSError, ValueError) as e:
            # in-memory mark still holds for this process
            log.warning("Could not save dedup ledger %s: %s", self.path, e)
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass

    def __contains__(self, alert_id: object) -> bool:
        return alert_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)
