from __future__ import annotations

import re
import time
from dataclasses import dataclass


SYLLABLES_PER_SEC = 4
MIN_SPEAKING_MS = 1000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Deadline:
    """A cancelable countdown stored as an absolute timestamp.

    Only ``end_ts`` matters for firing; ``duration_ms`` is kept so clients can
    draw a progress bar. ``end_ts == 0`` means the timer is not armed.
    """

    end_ts: int = 0
    duration_ms: int = 0

    @property
    def active(self) -> bool:
        return self.end_ts > 0

    def arm(self, now: int, duration_ms: int, end_ts: int | None = None) -> None:
        self.duration_ms = max(0, int(duration_ms))
        self.end_ts = end_ts if end_ts is not None else now + self.duration_ms

    def cancel(self) -> None:
        self.end_ts = 0
        self.duration_ms = 0

    def remaining(self, now: int) -> int:
        if not self.active:
            return 0
        return self.end_ts - now

    def expired(self, now: int) -> bool:
        return self.active and self.remaining(now) <= 0

    def copy(self) -> Deadline:
        return Deadline(end_ts=self.end_ts, duration_ms=self.duration_ms)


def syllable_count(word: str) -> int:
    word = word.lower()
    if len(word) <= 3:
        return 1
    word = re.sub(r"(?:[^laeiouy]es|ed|[^laeiouy]e)$", "", word)
    word = re.sub(r"^y", "", word)
    vowels = re.findall(r"[aeiouy]{1,2}", word)
    # No letters at all is most likely a year
    return len(vowels) if vowels else 3


def speaking_time_ms(text: str | None) -> int:
    """Estimated time for a host to read the clue out loud."""
    if not text:
        return 0
    cleaned = re.sub(r"^\(.*\)", "", text)
    cleaned = re.sub(r"_+", " blank ", cleaned)
    total = sum(syllable_count(w) for w in cleaned.split(" "))
    return max(int(total / SYLLABLES_PER_SEC * 1000), MIN_SPEAKING_MS)
