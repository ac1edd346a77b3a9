from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Literal

from .timers import Deadline


RoundName = Literal["start", "jeopardy", "double", "final", "end"]

PLAYABLE_ROUNDS: tuple[str, ...] = ("jeopardy", "double", "final")


@dataclass
class Player:
    id: str
    name: str | None = None
    connected: bool = True
    disconnect_time: int | None = None


@dataclass(frozen=True)
class Clue:
    value: int
    category: str
    question: str | None = None
    answer: str | None = None
    daily_double: bool = False
    x: int = 0
    y: int = 0

    @property
    def coord(self) -> str:
        return f"{self.x}_{self.y}"

    @classmethod
    def from_dict(cls, d: dict) -> Clue:
        return cls(
            value=int(d.get("value") or 0),
            category=str(d.get("category") or ""),
            question=d.get("question"),
            answer=d.get("answer"),
            daily_double=bool(d.get("daily_double")),
            x=int(d.get("x") or 0),
            y=int(d.get("y") or 0),
        )


@dataclass
class BoardCell:
    value: int
    category: str
    question: str | None = None

    def to_client(self) -> dict:
        d = {"value": self.value, "category": self.category}
        if self.question is not None:
            d["question"] = self.question
        return d


@dataclass
class QuestionState:
    """Everything that is wiped between two questions."""

    current_q: str = ""
    current_answer: str | None = None
    current_value: int = 0
    current_daily_double: bool = False
    daily_double_player: str | None = None
    # Players that still owe a wager. None outside of a wager phase.
    waiting_for_wager: dict[str, bool] | None = None
    play_clue: Deadline = field(default_factory=Deadline)
    answer_timer: Deadline = field(default_factory=Deadline)
    wager_timer: Deadline = field(default_factory=Deadline)
    buzz_unlock_ts: int = 0
    answers: dict[str, str] = field(default_factory=dict)
    submitted: dict[str, bool] = field(default_factory=dict)
    buzzes: dict[str, int] = field(default_factory=dict)
    judges: dict[str, bool | None] = field(default_factory=dict)
    wagers: dict[str, int] = field(default_factory=dict)
    can_buzz: bool = False
    can_next_q: bool = False
    current_judge_answer: str | None = None
    current_judge_answer_index: int | None = None

    def copy(self) -> QuestionState:
        return QuestionState(
            current_q=self.current_q,
            current_answer=self.current_answer,
            current_value=self.current_value,
            current_daily_double=self.current_daily_double,
            daily_double_player=self.daily_double_player,
            waiting_for_wager=dict(self.waiting_for_wager) if self.waiting_for_wager is not None else None,
            play_clue=self.play_clue.copy(),
            answer_timer=self.answer_timer.copy(),
            wager_timer=self.wager_timer.copy(),
            buzz_unlock_ts=self.buzz_unlock_ts,
            answers=dict(self.answers),
            submitted=dict(self.submitted),
            buzzes=dict(self.buzzes),
            judges=dict(self.judges),
            wagers=dict(self.wagers),
            can_buzz=self.can_buzz,
            can_next_q=self.can_next_q,
            current_judge_answer=self.current_judge_answer,
            current_judge_answer_index=self.current_judge_answer_index,
        )

    @classmethod
    def from_dict(cls, d: dict) -> QuestionState:
        q = cls()
        for key in (
            "current_q",
            "current_answer",
            "current_value",
            "current_daily_double",
            "daily_double_player",
            "buzz_unlock_ts",
            "can_buzz",
            "can_next_q",
            "current_judge_answer",
            "current_judge_answer_index",
        ):
            if key in d:
                setattr(q, key, d[key])
        wfw = d.get("waiting_for_wager")
        q.waiting_for_wager = dict(wfw) if wfw is not None else None
        for key in ("play_clue", "answer_timer", "wager_timer"):
            raw = d.get(key) or {}
            setattr(q, key, Deadline(end_ts=int(raw.get("end_ts", 0)), duration_ms=int(raw.get("duration_ms", 0))))
        for key in ("answers", "submitted", "buzzes", "judges", "wagers"):
            setattr(q, key, dict(d.get(key) or {}))
        return q


@dataclass
class PublicState:
    ep_num: str | None = None
    air_date: str | None = None
    info: str | None = None
    board: dict[str, BoardCell] = field(default_factory=dict)
    scores: dict[str, int] = field(default_factory=dict)
    round: RoundName = "start"
    # None lets anyone pick, otherwise the last correct answerer
    picker: str | None = None
    host: str | None = None
    allow_multiple_correct: bool = False
    enable_ai_judge: bool = False
    q: QuestionState = field(default_factory=QuestionState)

    def copy(self) -> PublicState:
        return PublicState(
            ep_num=self.ep_num,
            air_date=self.air_date,
            info=self.info,
            board={k: BoardCell(c.value, c.category, c.question) for k, c in self.board.items()},
            scores=dict(self.scores),
            round=self.round,
            picker=self.picker,
            host=self.host,
            allow_multiple_correct=self.allow_multiple_correct,
            enable_ai_judge=self.enable_ai_judge,
            q=self.q.copy(),
        )

    def to_client(self, server_time: int) -> dict:
        q = self.q
        return {
            "serverTime": server_time,
            "epNum": self.ep_num,
            "airDate": self.air_date,
            "info": self.info,
            "board": {k: c.to_client() for k, c in self.board.items()},
            "scores": dict(self.scores),
            "round": self.round,
            "picker": self.picker,
            "host": self.host,
            "allowMultipleCorrect": self.allow_multiple_correct,
            "enableAIJudge": self.enable_ai_judge,
            "currentQ": q.current_q,
            "currentAnswer": q.current_answer,
            "currentValue": q.current_value,
            "currentDailyDouble": q.current_daily_double,
            "dailyDoublePlayer": q.daily_double_player,
            "waitingForWager": dict(q.waiting_for_wager) if q.waiting_for_wager is not None else None,
            "playClueDuration": q.play_clue.duration_ms,
            "playClueEndTS": q.play_clue.end_ts,
            "questionDuration": q.answer_timer.duration_ms,
            "questionEndTS": q.answer_timer.end_ts,
            "wagerDuration": q.wager_timer.duration_ms,
            "wagerEndTS": q.wager_timer.end_ts,
            "buzzUnlockTS": q.buzz_unlock_ts,
            "answers": dict(q.answers),
            "submitted": dict(q.submitted),
            "buzzes": dict(q.buzzes),
            "judges": dict(q.judges),
            "wagers": dict(q.wagers),
            "canBuzz": q.can_buzz,
            "canNextQ": q.can_next_q,
            "currentJudgeAnswer": q.current_judge_answer,
            "currentJudgeAnswerIndex": q.current_judge_answer_index,
        }

    @classmethod
    def from_dict(cls, d: dict) -> PublicState:
        return cls(
            ep_num=d.get("ep_num"),
            air_date=d.get("air_date"),
            info=d.get("info"),
            board={k: BoardCell(**c) for k, c in (d.get("board") or {}).items()},
            scores={k: int(v) for k, v in (d.get("scores") or {}).items()},
            round=d.get("round") or "start",
            picker=d.get("picker"),
            host=d.get("host"),
            allow_multiple_correct=bool(d.get("allow_multiple_correct")),
            enable_ai_judge=bool(d.get("enable_ai_judge")),
            q=QuestionState.from_dict(d.get("q") or {}),
        )


@dataclass
class GameState:
    # Clue lists per playable round, as loaded
    rounds: dict[str, list[Clue]] = field(default_factory=dict)
    # Full clue data for the current round, including answers
    board: dict[str, Clue] = field(default_factory=dict)
    # Private ledgers. Answers go public at reveal, wagers when the cursor reaches the player
    answers: dict[str, str] = field(default_factory=dict)
    wagers: dict[str, int] = field(default_factory=dict)
    answer_timeout_ms: int = 20000
    final_timeout_ms: int = 30000
    public: PublicState = field(default_factory=PublicState)

    def copy(self) -> GameState:
        # Clues are frozen, so sharing them between copies is safe
        return GameState(
            rounds={name: list(clues) for name, clues in self.rounds.items()},
            board=dict(self.board),
            answers=dict(self.answers),
            wagers=dict(self.wagers),
            answer_timeout_ms=self.answer_timeout_ms,
            final_timeout_ms=self.final_timeout_ms,
            public=self.public.copy(),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> GameState:
        return cls(
            rounds={name: [Clue.from_dict(c) for c in clues] for name, clues in (d.get("rounds") or {}).items()},
            board={k: Clue.from_dict(c) for k, c in (d.get("board") or {}).items()},
            answers=dict(d.get("answers") or {}),
            wagers={k: int(v) for k, v in (d.get("wagers") or {}).items()},
            answer_timeout_ms=int(d.get("answer_timeout_ms") or 20000),
            final_timeout_ms=int(d.get("final_timeout_ms") or 30000),
            public=PublicState.from_dict(d.get("public") or {}),
        )
