from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from . import rounds

if TYPE_CHECKING:
    from .session import Session


log = logging.getLogger(__name__)

AI_JUDGE_NAME = "AI Judge"


def reveal_answer(session: Session) -> None:
    """Close answering for the current clue and start judging it."""
    st = session.state
    q = st.public.q
    q.answer_timer.cancel()
    q.play_clue.cancel()
    q.wager_timer.cancel()

    # Buzzing in without typing anything still gets judged
    for sid in q.buzzes:
        st.answers.setdefault(sid, "")
    q.answers = dict(st.answers)
    q.can_buzz = False
    clue = st.board.get(q.current_q)
    q.current_answer = clue.answer if clue else None

    session.snapshot = st.copy()
    advance_judging(session, False)
    session.touch()


def advance_judging(session: Session, skip_remaining: bool) -> None:
    """Move the cursor to the next buzzed player and show their wager.

    Players who have left the roster are passed over. Once the cursor runs
    off the end, or a correct answer ends the clue, the question can be
    closed and nothing more is shown.
    """
    st = session.state
    q = st.public.q
    order = list(q.buzzes)
    while True:
        idx = 0 if q.current_judge_answer_index is None else q.current_judge_answer_index + 1
        q.current_judge_answer_index = idx
        q.current_judge_answer = order[idx] if idx < len(order) else None
        if skip_remaining or q.current_judge_answer is None:
            q.can_next_q = True

        pid = q.current_judge_answer
        if pid is None or skip_remaining:
            break
        if pid in st.wagers:
            q.wagers[pid] = st.wagers[pid]
        if session.roster.has(pid):
            break
        log.info(f"[ADVANCEJUDGING] {session.code} player gone, moving on: {pid}")

    log.debug(f"[ADVANCEJUDGING] {session.code} index={q.current_judge_answer_index} player={q.current_judge_answer}")
    dispatch_auto_judge(session)
    session.touch()


def judge_answer(
    session: Session,
    caller: str | None,
    question_id: str,
    player_id: str,
    correct: bool | None,
    judge_name: str | None = None,
) -> bool:
    """Apply a verdict for the player under the cursor.

    Returns True only when the verdict changed a score; a skip (``None``) is
    accepted but returns False.
    """
    st = session.state
    pub = st.public
    q = pub.q

    if player_id in q.judges:
        return False
    if not q.current_q or question_id != q.current_q:
        return False
    if q.current_judge_answer is None or q.current_judge_answer != player_id:
        return False
    if pub.host and caller != pub.host:
        return False
    if correct is not None and not isinstance(correct, bool):
        return False

    q.judges[player_id] = correct
    pub.scores.setdefault(player_id, 0)
    wager = q.wagers.get(player_id)
    delta = wager if wager is not None else q.current_value
    if correct is True:
        pub.scores[player_id] += delta
        if not pub.allow_multiple_correct:
            pub.picker = player_id
    elif correct is False:
        pub.scores[player_id] -= delta
    log.debug(f"[JUDGE] {session.code} {player_id} correct={correct} delta={delta}")

    if correct is not None:
        session.add_chat(
            {
                "id": "" if judge_name == AI_JUDGE_NAME else caller or "",
                "name": judge_name or session.roster.name_of(caller),
                "cmd": "judge",
                "msg": json.dumps(
                    {
                        "id": player_id,
                        "name": session.roster.name_of(player_id),
                        "answer": q.answers.get(player_id),
                        "correct": correct,
                        "delta": delta if correct else -delta,
                    }
                ),
            }
        )
        session.touch_roster()

    several_may_be_right = pub.round == "final" or pub.allow_multiple_correct
    advance_judging(session, not several_may_be_right and correct is True)

    if q.can_next_q:
        rounds.next_question(session)
    else:
        session.touch()
    return correct is not None


def bulk_judge(session: Session, caller: str | None, items: list[Any]) -> int:
    """Judge players in cursor order until one has no verdict in ``items``.

    Whoever is left gets judged one at a time afterwards.
    """
    verdicts: dict[str, bool | None] = {}
    for item in items or []:
        if not isinstance(item, dict):
            continue
        pid = item.get("playerId") or item.get("id")
        if pid:
            verdicts[str(pid)] = item.get("correct")

    judged = 0
    while True:
        q = session.state.public.q
        pid = q.current_judge_answer
        if pid is None or pid not in verdicts:
            break
        judge_answer(session, caller, q.current_q, pid, verdicts[pid])
        if pid not in q.judges:
            # Rejected, e.g. not the host
            break
        judged += 1
    return judged


def undo(session: Session, caller: str | None) -> bool:
    pub = session.state.public
    if pub.host and caller != pub.host:
        return False
    if session.snapshot is None:
        return False

    # Copy again so the snapshot survives a second undo
    session.state = session.snapshot.copy()
    session.cancel_auto_judging()
    # The automated judge would just repeat the verdict being undone
    session.ai_suppressed = True
    session.count("undo")
    if session.state.public.enable_ai_judge:
        session.count("aiUndo")
    advance_judging(session, False)
    session.touch()
    session.touch_roster()
    return True


def quick_verdict(answer: str | None, response: str | None) -> bool | None:
    """Verdicts that need no outside help, or None."""
    r = (response or "").strip()
    if not r:
        return False
    if answer is not None and r.lower() == answer.strip().lower():
        return True
    return None


def dispatch_auto_judge(session: Session) -> None:
    st = session.state
    pub = st.public
    q = pub.q
    pid = q.current_judge_answer
    if pid is None or q.can_next_q:
        return
    if session.auto_judge is None or not pub.enable_ai_judge or session.ai_suppressed:
        return
    key = (q.current_q, pid)
    if key in session.ai_tasks:
        return

    token = session.next_ai_token()
    session.ai_tasks[key] = token
    clue = st.board.get(q.current_q)
    question = (clue.question if clue else None) or ""
    session.spawn(run_auto_judge, session, key, token, question, q.current_answer or "", st.answers.get(pid, ""))


def run_auto_judge(
    session: Session,
    key: tuple[str, str],
    token: int,
    question: str,
    answer: str,
    response: str,
) -> None:
    """Background task: get a verdict and hand it back to the session.

    Runs outside the session lock. Failures leave judging to the humans.
    """
    verdict = quick_verdict(answer, response)
    if verdict is not None:
        session.count("aiShortcut")
    else:
        try:
            verdict = session.auto_judge.decide(question, answer, response)
        except Exception:
            log.exception(f"[AIJUDGE] {session.code} decision failed for {key}")
            session.release_auto_judge(key, token)
            return
        session.count("aiChatGpt")
        if verdict is None:
            session.count("aiRefuse")
    session.apply_auto_judgement(key, token, question, answer, response, verdict)
