from __future__ import annotations

import gzip
import json
import logging
import random
from dataclasses import dataclass, field
from typing import Protocol

from .models import Clue


log = logging.getLogger(__name__)


@dataclass
class Episode:
    ep_num: str | None = None
    air_date: str | None = None
    info: str | None = None
    jeopardy: list[Clue] = field(default_factory=list)
    double: list[Clue] = field(default_factory=list)
    final: list[Clue] = field(default_factory=list)

    def rounds(self) -> dict[str, list[Clue]]:
        return {"jeopardy": list(self.jeopardy), "double": list(self.double), "final": list(self.final)}


class EpisodeSource(Protocol):
    def pick(self, number: str | None = None, info_filter: str | None = None) -> Episode | None: ...


def _clue_from_archive(raw: dict) -> Clue:
    return Clue(
        value=int(raw.get("val") or 0),
        category=str(raw.get("cat") or ""),
        question=raw.get("q"),
        answer=raw.get("a"),
        daily_double=bool(raw.get("dd")),
        x=int(raw.get("x") or 0),
        y=int(raw.get("y") or 0),
    )


class EpisodeLibrary:
    """In-memory question archive keyed by episode number."""

    def __init__(self, episodes: dict[str, Episode] | None = None):
        self.episodes: dict[str, Episode] = dict(episodes or {})

    @classmethod
    def from_file(cls, path: str) -> EpisodeLibrary:
        with gzip.open(path, "rt", encoding="utf-8") as f:
            data = json.load(f)
        episodes = {}
        for num, raw in data.items():
            episodes[num] = Episode(
                ep_num=raw.get("epNum", num),
                air_date=raw.get("airDate"),
                info=raw.get("info"),
                jeopardy=[_clue_from_archive(c) for c in raw.get("jeopardy") or []],
                double=[_clue_from_archive(c) for c in raw.get("double") or []],
                final=[_clue_from_archive(c) for c in raw.get("final") or []],
            )
        log.info(f"[EPISODES] loaded {len(episodes)} episodes from {path}")
        return cls(episodes)

    def pick(self, number: str | None = None, info_filter: str | None = None) -> Episode | None:
        if number:
            return self.episodes.get(str(number))
        nums = list(self.episodes.keys())
        if info_filter:
            nums = [n for n in nums if self.episodes[n].info == info_filter]
        if not nums:
            return None
        return self.episodes[random.choice(nums)]
