from __future__ import annotations

import logging

from .models import GameState, Player


log = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


class Roster:
    """Players of one room, keyed by their current connection id.

    ``client_ids`` maps the durable id a browser keeps across reloads to the
    connection id it last used, so a returning player can take back their
    seat.
    """

    def __init__(self, players: list[Player] | None = None, client_ids: dict[str, str] | None = None):
        self.players: list[Player] = list(players or [])
        self.client_ids: dict[str, str] = dict(client_ids or {})

    def __len__(self) -> int:
        return len(self.players)

    def get(self, sid: str | None) -> Player | None:
        if sid is None:
            return None
        for p in self.players:
            if p.id == sid:
                return p
        return None

    def has(self, sid: str | None) -> bool:
        return self.get(sid) is not None

    def all(self) -> list[Player]:
        return list(self.players)

    def connected(self) -> list[Player]:
        return [p for p in self.players if p.connected]

    def is_connected(self, sid: str | None) -> bool:
        p = self.get(sid)
        return bool(p and p.connected)

    def name_of(self, sid: str | None) -> str | None:
        p = self.get(sid)
        return p.name if p else None

    def register(self, client_id: str, sid: str) -> str | None:
        """Add or revive the player for ``client_id``.

        Returns the previous connection id when this is a reconnection, so the
        caller can move game state over to ``sid``.
        """
        old_sid = self.client_ids.get(client_id) if client_id else None
        if client_id:
            self.client_ids[client_id] = sid

        if old_sid and old_sid != sid:
            existing = self.get(old_sid)
            if existing is not None:
                # A stray entry may already exist for the new connection
                self.players = [p for p in self.players if p.id != sid]
                existing.id = sid
                existing.connected = True
                existing.disconnect_time = None
                return old_sid

        player = self.get(sid)
        if player is None:
            self.players.append(Player(id=sid))
        else:
            player.connected = True
            player.disconnect_time = None
        return old_sid if old_sid and old_sid != sid else None

    def mark_disconnected(self, sid: str, now: int) -> bool:
        p = self.get(sid)
        if p is None:
            return False
        p.connected = False
        p.disconnect_time = now
        return True

    def set_name(self, sid: str, name: str) -> bool:
        n = (name or "").strip()
        if not n or len(n) > MAX_NAME_LENGTH:
            return False
        p = self.get(sid)
        if p is None:
            return False
        p.name = n
        return True

    def sweep(self, now: int, retention_ms: int) -> list[str]:
        """Drop players that have been gone longer than ``retention_ms``.

        Nothing is dropped while nobody is connected: during an outage every
        player looks stale and we would broadcast an empty roster.
        """
        if not self.connected():
            return []
        evicted = [
            p.id
            for p in self.players
            if not p.connected and p.disconnect_time is not None and now - p.disconnect_time > retention_ms
        ]
        if evicted:
            self.players = [p for p in self.players if p.id not in evicted]
            log.info(f"[SWEEP] evicted {len(evicted)} disconnected players")
        return evicted

    def sort_by_score(self, scores: dict[str, int]) -> None:
        self.players.sort(key=lambda p: scores.get(p.id, 0), reverse=True)

    def to_client(self) -> list[dict]:
        return [
            {"id": p.id, "name": p.name, "connected": p.connected, "disconnectTime": p.disconnect_time}
            for p in self.players
        ]


def _rekey(mapping: dict, old: str, new: str) -> dict:
    # Rebuilt rather than popped so the buzz order is kept
    if old not in mapping:
        return mapping
    return {(new if k == old else k): v for k, v in mapping.items() if k != new}


def remap_player(state: GameState, old: str, new: str) -> None:
    """Move every piece of per-player state from ``old`` to ``new``."""
    pub = state.public
    q = pub.q

    pub.scores = _rekey(pub.scores, old, new)
    q.buzzes = _rekey(q.buzzes, old, new)
    q.judges = _rekey(q.judges, old, new)
    q.submitted = _rekey(q.submitted, old, new)
    q.answers = _rekey(q.answers, old, new)
    q.wagers = _rekey(q.wagers, old, new)
    state.answers = _rekey(state.answers, old, new)
    state.wagers = _rekey(state.wagers, old, new)
    if q.waiting_for_wager is not None:
        q.waiting_for_wager = _rekey(q.waiting_for_wager, old, new)

    if q.current_judge_answer == old:
        q.current_judge_answer = new
    if q.daily_double_player == old:
        q.daily_double_player = new
    if pub.picker == old:
        pub.picker = new
    if pub.host == old:
        pub.host = new
