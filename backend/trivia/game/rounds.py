from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from .models import PLAYABLE_ROUNDS, BoardCell, Clue, QuestionState
from .timers import speaking_time_ms

if TYPE_CHECKING:
    from .session import Session


log = logging.getLogger(__name__)


def build_board(clues: list[Clue]) -> dict[str, Clue]:
    return {c.coord: c for c in clues}


def build_public_board(clues: list[Clue]) -> dict[str, BoardCell]:
    return {c.coord: BoardCell(value=c.value, category=c.category) for c in clues}


def reset_per_question(session: Session) -> None:
    st = session.state
    st.answers = {}
    st.wagers = {}
    # A fresh QuestionState also means all three deadlines are disarmed
    st.public.q = QuestionState()
    # A host always picks, whatever happened during the question
    if st.public.host:
        st.public.picker = st.public.host
    session.cancel_auto_judging()
    session.ai_suppressed = False
    session.touch()


def advance_round(session: Session) -> None:
    """Move to the next round and deal its board.

    Rounds without clues are skipped straight away, so a custom game with
    only a final round goes directly to it.
    """
    st = session.state
    while True:
        reset_per_question(session)
        pub = st.public
        if pub.round == "jeopardy":
            pub.round = "double"
            if not pub.allow_multiple_correct and not pub.host:
                # sorted() is stable, so ties go to roster order
                trailing = sorted(session.roster.connected(), key=lambda p: pub.scores.get(p.id, 0))
                pub.picker = trailing[0].id if trailing else None
        elif pub.round == "double":
            pub.round = "final"
        elif pub.round == "final":
            pub.round = "end"
            _record_results(session)
        else:
            pub.round = "jeopardy"

        if pub.round in PLAYABLE_ROUNDS:
            clues = st.rounds.get(pub.round) or []
            st.board = build_board(clues)
            pub.board = build_public_board(clues)
            if not pub.board:
                log.info(f"[ROUND] {session.code} {pub.round} has no clues, skipping")
                continue
        break

    log.info(f"[ROUND] {session.code} -> {st.public.round}")
    if st.public.round == "final":
        _start_final(session)
    elif st.public.round in ("jeopardy", "double"):
        session.cue("playCategoryReveal")
    session.touch()
    session.touch_roster()


def _start_final(session: Session) -> None:
    st = session.state
    pub = st.public
    q = pub.q
    now = session.now()

    # Everyone on the roster owes a wager, connected or not
    q.waiting_for_wager = {p.id: True for p in session.roster.all()}
    q.wager_timer.arm(now, st.final_timeout_ms)

    q.current_q = next(iter(pub.board))
    q.current_value = pub.board[q.current_q].value

    # Judging then goes from the lowest score upwards
    for p in sorted(session.roster.all(), key=lambda p: pub.scores.get(p.id, 0)):
        q.buzzes[p.id] = now

    session.cue("playCorrectAnswerSting")


def _record_results(session: Session) -> None:
    pub = session.state.public
    ranked = sorted(pub.scores.items(), key=lambda kv: kv[1], reverse=True)
    results = [[session.roster.name_of(pid), score] for pid, score in ranked]
    session.push("jpd:results", json.dumps(results))


def reveal_clue_text(session: Session) -> None:
    st = session.state
    coord = st.public.q.current_q
    cell = st.public.board.get(coord)
    clue = st.board.get(coord)
    if cell is not None and clue is not None:
        cell.question = clue.question


def trigger_play_clue(session: Session) -> None:
    q = session.state.public.q
    q.wager_timer.cancel()
    cell = session.state.public.board.get(q.current_q)
    text = cell.question if cell else None
    session.cue("playClueText", {"coord": q.current_q, "text": text})
    duration = speaking_time_ms(text)
    log.debug(f"[TRIGGERPLAYCLUE] {session.code} {q.current_q} speaking={duration}ms")
    q.play_clue.arm(session.now(), duration)
    session.touch()


def pick_question(session: Session, sid: str, coord: str) -> bool:
    st = session.state
    pub = st.public
    q = pub.q

    if pub.host and sid != pub.host:
        return False
    # Anyone may pick for a picker who is not around
    if pub.picker and session.roster.is_connected(pub.picker) and pub.picker != sid:
        return False
    if q.current_q:
        return False
    if coord not in pub.board:
        return False

    # The undo window closes once a new question starts
    session.snapshot = None

    q.current_q = coord
    q.current_value = pub.board[coord].value
    clue = st.board.get(coord)
    if clue is not None and clue.daily_double and not pub.allow_multiple_correct:
        # Wager on the category alone, the clue stays hidden for now
        now = session.now()
        q.current_daily_double = True
        q.daily_double_player = sid
        q.waiting_for_wager = {sid: True}
        q.wager_timer.arm(now, st.answer_timeout_ms)
        q.buzzes[sid] = now
        for p in session.roster.all():
            if p.id != sid:
                q.submitted[p.id] = True
        session.cue("playDailyDouble")
    else:
        reveal_clue_text(session)
        trigger_play_clue(session)

    log.debug(f"[PICK] {session.code} {sid} {coord} dd={q.current_daily_double}")
    session.touch()
    return True


def next_question(session: Session) -> None:
    st = session.state
    pub = st.public
    q = pub.q

    session.add_chat({"id": "", "name": "System", "cmd": "answer", "msg": q.current_answer})
    session.touch_roster()

    pub.board.pop(q.current_q, None)
    st.board.pop(q.current_q, None)
    reset_per_question(session)
    if not pub.board:
        advance_round(session)
    else:
        session.cue("playMakeSelectionPrompt")
        session.touch()


def skip_to_next(session: Session) -> bool:
    if not session.state.public.q.can_next_q:
        return False
    next_question(session)
    return True
