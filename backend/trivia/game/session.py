from __future__ import annotations

import functools
import itertools
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from threading import RLock
from typing import Any, Callable, Mapping

from . import answers, judging, rounds
from .custom import parse_custom_csv
from .episodes import Episode, EpisodeSource
from .errors import CustomDataError
from .models import GameState, Player, PublicState
from .roster import Roster, remap_player
from .timers import now_ms
from ..ai import AutoJudge
from ..storage import Store


log = logging.getLogger(__name__)

MAX_CHAT_LENGTH = 10000

Emitter = Callable[[str, Any], None]
Spawner = Callable[..., Any]


@dataclass
class SessionSettings:
    answer_timeout_ms: int = 20000
    final_timeout_ms: int = 30000
    max_answer_length: int = answers.MAX_ANSWER_LENGTH
    max_custom_data_length: int = 1000000
    chat_history_limit: int = 100
    disconnect_retention_ms: int = 3600 * 1000
    sweep_interval_ms: int = 1800 * 1000
    room_ttl_sec: int = 86400
    perma_rooms: list[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> SessionSettings:
        return cls(
            answer_timeout_ms=int(config.get("ANSWER_TIMEOUT_SEC", 20)) * 1000,
            final_timeout_ms=int(config.get("FINAL_TIMEOUT_SEC", 30)) * 1000,
            max_answer_length=int(config.get("MAX_ANSWER_LENGTH", answers.MAX_ANSWER_LENGTH)),
            max_custom_data_length=int(config.get("MAX_CUSTOM_DATA_LENGTH", 1000000)),
            chat_history_limit=int(config.get("CHAT_HISTORY_LIMIT", 100)),
            disconnect_retention_ms=int(config.get("DISCONNECT_RETENTION_SEC", 3600)) * 1000,
            sweep_interval_ms=int(config.get("SWEEP_INTERVAL_SEC", 1800)) * 1000,
            room_ttl_sec=int(config.get("ROOM_TTL_SEC", 86400)),
            perma_rooms=list(config.get("PERMA_ROOMS") or []),
        )


def _mutation(fn):
    """Run ``fn`` under the session lock and publish its effects once done.

    Nested calls (a timer handler judging, judging advancing the round...)
    only flush when the outermost call returns, so clients never see a half
    applied change.
    """

    @functools.wraps(fn)
    def wrapper(self: Session, *args, **kwargs):
        with self._lock:
            self._depth += 1
            try:
                return fn(self, *args, **kwargs)
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._flush()

    return wrapper


def _timeout_ms(raw: Any, default: int) -> int:
    try:
        sec = float(raw)
    except (TypeError, ValueError):
        return default
    if sec != sec or sec <= 0:
        return default
    return int(sec * 1000)


class Session:
    """One game room: its state, roster and chat.

    All game rules live in the ``rounds``, ``answers`` and ``judging``
    modules; this class serializes access to them and publishes results.
    """

    def __init__(
        self,
        code: str,
        store: Store,
        emit: Emitter,
        spawn: Spawner,
        clock: Callable[[], int] = now_ms,
        auto_judge: AutoJudge | None = None,
        episodes: EpisodeSource | None = None,
        settings: SessionSettings | None = None,
        created_at: int | None = None,
    ):
        self.code = code
        self.store = store
        self.emit = emit
        self.spawn = spawn
        self.clock = clock
        self.auto_judge = auto_judge
        self.episodes = episodes
        self.settings = settings or SessionSettings()
        self.created_at = created_at if created_at is not None else clock()

        self.state = GameState(
            answer_timeout_ms=self.settings.answer_timeout_ms,
            final_timeout_ms=self.settings.final_timeout_ms,
        )
        self.roster = Roster()
        self.chat: deque[dict] = deque(maxlen=self.settings.chat_history_limit)
        self.snapshot: GameState | None = None

        # Pending automated judgments, (question id, player id) -> token
        self.ai_tasks: dict[tuple[str, str], int] = {}
        self.ai_suppressed = False
        self._ai_tokens = itertools.count(1)

        self._lock = RLock()
        self._depth = 0
        self._outbox: list[tuple[str, Any]] = []
        self._state_dirty = False
        self._roster_dirty = False
        self._changed = False
        self._last_sweep = self.created_at

    # -- helpers used by the game modules --------------------------------

    def now(self) -> int:
        return self.clock()

    def touch(self) -> None:
        self._state_dirty = True

    def touch_roster(self) -> None:
        self._roster_dirty = True

    def cue(self, event: str, payload: Any = None) -> None:
        self._outbox.append((event, payload))

    def add_chat(self, entry: dict) -> None:
        msg = dict(entry, timestamp=self.now())
        self.chat.append(msg)
        self._outbox.append(("chat:message", msg))
        self._changed = True

    def _is_member(self, sid: str | None) -> bool:
        """Game actions are only taken from sockets on this room's roster."""
        if self.roster.has(sid):
            return True
        log.debug(f"[REJECT] {self.code} {sid} is not in this room")
        return False

    def next_ai_token(self) -> int:
        return next(self._ai_tokens)

    def cancel_auto_judging(self) -> None:
        # Results of running tasks come back with a token nobody holds anymore
        self.ai_tasks.clear()

    def count(self, prefix: str) -> None:
        try:
            self.store.count(prefix)
        except Exception:
            log.exception(f"[COUNT] {prefix} failed")

    def push(self, key: str, value: str) -> None:
        try:
            self.store.push(key, value)
        except Exception:
            log.exception(f"[PUSH] {key} failed")

    def public_state(self) -> dict:
        with self._lock:
            return self.state.public.to_client(self.now())

    def roster_view(self) -> list[dict]:
        with self._lock:
            return self.roster.to_client()

    def chat_history(self) -> list[dict]:
        with self._lock:
            return list(self.chat)

    # -- publishing -------------------------------------------------------

    def _flush(self) -> None:
        outbox, self._outbox = self._outbox, []
        changed = self._state_dirty or self._roster_dirty or self._changed
        if self._state_dirty:
            self._state_dirty = False
            self.emit("room:state", self.state.public.to_client(self.now()))
        if self._roster_dirty:
            self._roster_dirty = False
            self.roster.sort_by_score(self.state.public.scores)
            self.emit("room:roster", self.roster.to_client())
        for event, payload in outbox:
            self.emit(event, payload)
        self._changed = False
        if changed:
            self.save()

    def save(self) -> None:
        ttl = None if self.code in self.settings.perma_rooms else self.settings.room_ttl_sec
        try:
            self.store.save_room(self.code, json.dumps(self.to_record()), ttl)
        except Exception:
            # Gameplay goes on, the next change writes again
            log.exception(f"[SAVE] {self.code} failed")
            return
        self.count("saves")

    # -- roster -----------------------------------------------------------

    @_mutation
    def register_connection(self, client_id: str, sid: str) -> None:
        old_sid = self.roster.register(client_id, sid)
        if old_sid:
            log.info(f"[RECONNECT] {self.code} {old_sid} -> {sid}")
            remap_player(self.state, old_sid, sid)
            if self.snapshot is not None:
                remap_player(self.snapshot, old_sid, sid)
            for key in [k for k in self.ai_tasks if k[1] == old_sid]:
                del self.ai_tasks[key]
            judging.dispatch_auto_judge(self)
        self.state.public.scores.setdefault(sid, 0)
        self.touch()
        self.touch_roster()

    @_mutation
    def disconnect(self, sid: str) -> None:
        if self.roster.mark_disconnected(sid, self.now()):
            self.touch_roster()

    @_mutation
    def set_display_name(self, sid: str, name: Any) -> bool:
        if not isinstance(name, str) or not self.roster.set_name(sid, name):
            return False
        self.touch_roster()
        return True

    @_mutation
    def chat_message(self, sid: str, text: Any) -> bool:
        if not isinstance(text, str) or not text.strip() or len(text) > MAX_CHAT_LENGTH:
            return False
        if not self.roster.has(sid):
            return False
        self.add_chat({"id": sid, "name": self.roster.name_of(sid), "msg": text})
        return True

    # -- game flow --------------------------------------------------------

    @_mutation
    def start(self, sid: str, options: Any, custom_data: Any = None) -> bool:
        """Load an episode (or the uploaded CSV) and deal the first round."""
        if not self._is_member(sid):
            return False
        if not isinstance(options, dict):
            return False
        if custom_data is not None and not isinstance(custom_data, str):
            return False
        if custom_data and len(custom_data) > self.settings.max_custom_data_length:
            return False

        number = options.get("number")
        info_filter = options.get("filter")
        log.info(f"[LOADEPISODE] {self.code} number={number} filter={info_filter} custom={bool(custom_data)}")

        episode: Episode | None
        if custom_data:
            try:
                episode = parse_custom_csv(custom_data)
            except CustomDataError as e:
                log.warning(f"[LOADEPISODE] {self.code} bad custom data: {e}")
                return False
            self.count("customGames")
        elif self.episodes is not None:
            episode = self.episodes.pick(number, info_filter)
        else:
            episode = None
        if episode is None:
            log.info(f"[LOADEPISODE] {self.code} no episode found")
            return False

        self.count("newGames")
        enable_ai = bool(options.get("enableAIJudge")) and self.auto_judge is not None
        if enable_ai:
            self.count("aiJudge")
        self.state = GameState(
            rounds=episode.rounds(),
            answer_timeout_ms=_timeout_ms(options.get("answerTimeout"), self.settings.answer_timeout_ms),
            final_timeout_ms=_timeout_ms(options.get("finalTimeout"), self.settings.final_timeout_ms),
            public=PublicState(
                ep_num=episode.ep_num,
                air_date=episode.air_date,
                info=episode.info,
                host=sid if options.get("makeMeHost") else None,
                allow_multiple_correct=bool(options.get("allowMultipleCorrect")),
                enable_ai_judge=enable_ai,
                scores={p.id: 0 for p in self.roster.all()},
            ),
        )
        self.snapshot = None
        self.cancel_auto_judging()
        rounds.advance_round(self)
        return True

    @_mutation
    def pick_question(self, sid: str, coord: Any) -> bool:
        if not self._is_member(sid) or not isinstance(coord, str):
            return False
        return rounds.pick_question(self, sid, coord)

    @_mutation
    def buzz(self, sid: str) -> bool:
        if not self._is_member(sid):
            return False
        return answers.buzz(self, sid)

    @_mutation
    def submit_answer(self, sid: str, coord: Any, text: Any) -> bool:
        if not self._is_member(sid):
            return False
        return answers.submit_answer(self, sid, coord, text, self.settings.max_answer_length)

    @_mutation
    def submit_wager(self, sid: str, amount: Any) -> bool:
        if not self._is_member(sid):
            return False
        return answers.submit_wager(self, sid, amount)

    @_mutation
    def judge(self, sid: str, question_id: Any, player_id: Any, correct: Any) -> bool:
        if not self._is_member(sid):
            return False
        if not isinstance(question_id, str) or not isinstance(player_id, str):
            return False
        q = self.state.public.q
        expected = q.current_answer or ""
        response = self.state.answers.get(player_id, "")
        ok = judging.judge_answer(self, sid, question_id, player_id, correct)
        if ok and correct is True and response.strip().lower() != expected.strip().lower():
            self.push("jpd:nonTrivialJudges", f"{expected},{response},1")
        return ok

    @_mutation
    def bulk_judge(self, sid: str, items: Any) -> int:
        if not self._is_member(sid) or not isinstance(items, list):
            return 0
        return judging.bulk_judge(self, sid, items)

    @_mutation
    def undo(self, sid: str) -> bool:
        if not self._is_member(sid):
            return False
        return judging.undo(self, sid)

    @_mutation
    def skip_to_next(self, sid: str) -> bool:
        if not self._is_member(sid):
            return False
        return rounds.skip_to_next(self)

    @_mutation
    def set_auto_judge_enabled(self, sid: str, enabled: Any) -> bool:
        if not self._is_member(sid):
            return False
        pub = self.state.public
        if pub.host and sid != pub.host:
            return False
        if enabled and self.auto_judge is None:
            return False
        pub.enable_ai_judge = bool(enabled)
        if pub.enable_ai_judge:
            self.count("aiJudge")
            judging.dispatch_auto_judge(self)
        else:
            self.cancel_auto_judging()
        self.touch()
        return True

    @_mutation
    def tick(self) -> None:
        """Fire every deadline that has passed and sweep the roster."""
        now = self.now()
        q = self.state.public.q
        if q.wager_timer.expired(now):
            q.wager_timer.cancel()
            answers.wager_expired(self)
        q = self.state.public.q
        if q.play_clue.expired(now):
            q.play_clue.cancel()
            answers.play_clue_done(self)
        q = self.state.public.q
        if q.answer_timer.expired(now):
            q.answer_timer.cancel()
            answers.answer_expired(self)

        if now - self._last_sweep >= self.settings.sweep_interval_ms:
            self._last_sweep = now
            if self.roster.sweep(now, self.settings.disconnect_retention_ms):
                self.touch_roster()

    # -- automated judge callbacks ---------------------------------------

    @_mutation
    def apply_auto_judgement(
        self,
        key: tuple[str, str],
        token: int,
        question: str,
        answer: str,
        response: str,
        verdict: bool | None,
    ) -> bool:
        self.push(
            "jpd:aiJudges",
            json.dumps({"question": question, "answer": answer, "response": response, "correct": verdict}),
        )
        if self.ai_tasks.get(key) != token:
            log.debug(f"[AIJUDGE] {self.code} stale result for {key}")
            return False
        del self.ai_tasks[key]
        if verdict is None:
            return False
        question_id, player_id = key
        return judging.judge_answer(
            self, self.state.public.host, question_id, player_id, verdict, judge_name=judging.AI_JUDGE_NAME
        )

    def release_auto_judge(self, key: tuple[str, str], token: int) -> None:
        with self._lock:
            if self.ai_tasks.get(key) == token:
                del self.ai_tasks[key]

    # -- persistence ------------------------------------------------------

    def to_record(self) -> dict:
        pub = self.state.public
        return {
            "chat": list(self.chat),
            "clientIds": dict(self.roster.client_ids),
            "roster": [asdict(p) for p in self.roster.players],
            "creationTime": self.created_at,
            "jpd": self.state.to_dict(),
            "settings": {
                "answerTimeout": self.state.answer_timeout_ms,
                "finalTimeout": self.state.final_timeout_ms,
                "host": pub.host,
                "allowMultipleCorrect": pub.allow_multiple_correct,
                "enableAIJudge": pub.enable_ai_judge,
            },
        }

    @classmethod
    def from_record(cls, code: str, raw: str, **kwargs) -> Session:
        """Rebuild a session saved by :meth:`save`.

        Deadlines are absolute, so timers simply fire on the first tick once
        they are due. Nobody is connected after a restart.
        """
        data = json.loads(raw)
        session = cls(code, created_at=data.get("creationTime"), **kwargs)
        now = session.now()
        session.state = GameState.from_dict(data.get("jpd") or {})
        session.roster = Roster(
            players=[Player(**p) for p in data.get("roster") or []],
            client_ids=data.get("clientIds") or {},
        )
        for p in session.roster.players:
            if p.connected:
                p.connected = False
                p.disconnect_time = now
        session.chat.extend(data.get("chat") or [])

        q = session.state.public.q
        for name in ("play_clue", "answer_timer", "wager_timer"):
            deadline = getattr(q, name)
            if deadline.active:
                log.info(f"[REHYDRATE] {code} {name} remaining={deadline.remaining(now)}ms")
        with session._lock:
            judging.dispatch_auto_judge(session)
        return session
