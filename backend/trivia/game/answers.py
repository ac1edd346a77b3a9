from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from . import judging, rounds

if TYPE_CHECKING:
    from .session import Session


log = logging.getLogger(__name__)

MAX_ANSWER_LENGTH = 10000

# (minimum, floor of the maximum) per round; the maximum is otherwise the score
WAGER_LIMITS = {
    "jeopardy": (5, 1000),
    "double": (5, 2000),
    "final": (0, 0),
}


def play_clue_done(session: Session) -> None:
    """The clue has been read out: open buzzing and the answer window."""
    st = session.state
    q = st.public.q
    q.play_clue.cancel()
    q.buzz_unlock_ts = session.now()
    if st.public.round == "final":
        unlock_answer(session, st.final_timeout_ms)
        session.cue("playFinalRoundMusic")
    else:
        # The Daily Double player was buzzed in at pick time
        if not q.current_daily_double:
            q.can_buzz = True
        unlock_answer(session, st.answer_timeout_ms)
    session.touch()


def unlock_answer(session: Session, duration_ms: int) -> None:
    session.state.public.q.answer_timer.arm(session.now(), duration_ms)


def answer_expired(session: Session) -> None:
    if session.state.public.round != "final":
        session.cue("playTimesUp")
    judging.reveal_answer(session)


def wager_expired(session: Session) -> None:
    q = session.state.public.q
    owing = list(q.waiting_for_wager or {})
    log.info(f"[WAGERTIMEOUT] {session.code} forcing wagers for {len(owing)} players")
    for sid in owing:
        submit_wager(session, sid, 0)
    # Nobody owed anything, e.g. a final round with an empty roster
    if q is session.state.public.q and q.waiting_for_wager == {}:
        _release_final_clue(session)
    session.touch()


def buzz(session: Session, sid: str) -> bool:
    q = session.state.public.q
    if not q.can_buzz:
        return False
    if sid in q.buzzes:
        return False
    q.buzzes[sid] = session.now()
    session.touch()
    return True


def submit_answer(session: Session, sid: str, coord: str, text: Any, max_length: int = MAX_ANSWER_LENGTH) -> bool:
    st = session.state
    q = st.public.q
    if coord != q.current_q:
        return False
    if not q.answer_timer.active:
        # Time was already up
        return False
    if text is not None and not isinstance(text, str):
        return False
    if text and len(text) > max_length:
        return False

    log.debug(f"[ANSWER] {session.code} {sid} {coord} {text!r}")
    if text:
        st.answers[sid] = text
    q.submitted[sid] = True
    session.touch()

    if st.public.round != "final" and all(p.id in q.submitted for p in session.roster.connected()):
        judging.reveal_answer(session)
    return True


def wager_bounds(round_name: str, score: int) -> tuple[int, int]:
    lo, floor = WAGER_LIMITS.get(round_name, (0, 0))
    return lo, max(score, floor)


def clamp_wager(raw: Any, lo: int, hi: int) -> int:
    """Clamp a client supplied wager, anything non-numeric counts as ``lo``."""
    if isinstance(raw, bool):
        return lo
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError:
            return lo
    if not isinstance(raw, (int, float)) or math.isnan(raw):
        return lo
    return int(min(max(raw, lo), hi))


def submit_wager(session: Session, sid: str, amount: Any) -> bool:
    st = session.state
    pub = st.public
    q = pub.q
    if sid in st.wagers:
        return False
    if not q.current_q or not q.waiting_for_wager or sid not in q.waiting_for_wager:
        return False

    lo, hi = wager_bounds(pub.round, pub.scores.get(sid, 0))
    wager = clamp_wager(amount, lo, hi)
    log.debug(f"[WAGER] {session.code} {sid} {amount!r} -> {wager}")

    if pub.round == "final":
        # Private until the judging cursor reaches this player
        st.wagers[sid] = wager
        del q.waiting_for_wager[sid]
        if not q.waiting_for_wager:
            _release_final_clue(session)
    elif sid == q.daily_double_player:
        st.wagers[sid] = wager
        q.waiting_for_wager = None
        rounds.reveal_clue_text(session)
        rounds.trigger_play_clue(session)
    else:
        return False
    session.touch()
    return True


def _release_final_clue(session: Session) -> None:
    session.state.public.q.waiting_for_wager = None
    rounds.reveal_clue_text(session)
    rounds.trigger_play_clue(session)
