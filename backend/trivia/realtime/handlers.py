from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import request
from flask_socketio import SocketIO, emit, join_room

from ..game.registry import SessionRegistry
from ..game.session import Session


log = logging.getLogger(__name__)

_room_tasks: dict[str, bool] = {}


def _room_code(payload: dict) -> str:
    return str(payload.get("roomCode", "")).strip()


def register_socketio_handlers(socketio: SocketIO, registry: SessionRegistry, config: Mapping[str, Any]) -> None:
    perma_rooms = set(config.get("PERMA_ROOMS") or [])
    tick_interval = float(config.get("TICK_INTERVAL_SEC", 0.25))
    run_ticker = not config.get("TESTING") or config.get("ENABLE_TICKER_IN_TESTS")

    def _lookup(payload: dict) -> Session | None:
        room_code = _room_code(payload)
        if not room_code:
            emit("room:error", {"error": "invalid_room"})
            return None
        session = registry.get(room_code)
        if session is None and room_code in perma_rooms:
            session = registry.create(room_code)
        if session is None:
            emit("room:error", {"error": "room_not_found"})
        return session

    def _ensure_room_task(room_code: str) -> None:
        if not run_ticker:
            return
        if _room_tasks.get(room_code):
            return
        _room_tasks[room_code] = True

        def _runner() -> None:
            while True:
                session = registry.get(room_code)
                if session is None:
                    break
                try:
                    session.tick()
                except Exception:
                    # A broken handler must not stop the room's clock
                    log.exception(f"[TICK] {room_code} failed")
                socketio.sleep(tick_interval)

            _room_tasks.pop(room_code, None)

        socketio.start_background_task(_runner)

    for session in registry.list():
        _ensure_room_task(session.code)

    @socketio.on("room:join")
    def room_join(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        client_id = str(payload.get("clientId", "")).strip()

        join_room(session.code)
        session.register_connection(client_id, request.sid)

        # Late joiners and reconnects get the log so far
        emit("chat:sync", {"roomCode": session.code, "messages": session.chat_history()}, to=request.sid)
        _ensure_room_task(session.code)
        return {"ok": True, "id": request.sid}

    @socketio.on("profile:name")
    def profile_name(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        return {"ok": session.set_display_name(request.sid, payload.get("name"))}

    @socketio.on("chat:message")
    def chat_message(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        return {"ok": session.chat_message(request.sid, payload.get("text"))}

    @socketio.on("game:start")
    def game_start(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        custom_data = payload.get("customData")
        ok = session.start(request.sid, payload.get("options") or {}, custom_data)
        if not ok:
            error = "invalid_custom_data" if custom_data else "start_failed"
            emit("room:error", {"error": error})
        return {"ok": ok}

    @socketio.on("game:pick")
    def game_pick(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        return {"ok": session.pick_question(request.sid, payload.get("coord"))}

    @socketio.on("game:buzz")
    def game_buzz(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        return {"ok": session.buzz(request.sid)}

    @socketio.on("game:answer")
    def game_answer(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        return {"ok": session.submit_answer(request.sid, payload.get("coord"), payload.get("text"))}

    @socketio.on("game:wager")
    def game_wager(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        return {"ok": session.submit_wager(request.sid, payload.get("amount"))}

    @socketio.on("game:judge")
    def game_judge(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        ok = session.judge(request.sid, payload.get("questionId"), payload.get("playerId"), payload.get("correct"))
        return {"ok": ok}

    @socketio.on("game:bulk_judge")
    def game_bulk_judge(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        return {"ok": True, "judged": session.bulk_judge(request.sid, payload.get("items"))}

    @socketio.on("game:undo")
    def game_undo(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        return {"ok": session.undo(request.sid)}

    @socketio.on("game:skip")
    def game_skip(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        return {"ok": session.skip_to_next(request.sid)}

    @socketio.on("game:auto_judge")
    def game_auto_judge(data):
        payload = data or {}
        session = _lookup(payload)
        if session is None:
            return {"ok": False}
        return {"ok": session.set_auto_judge_enabled(request.sid, payload.get("enabled"))}

    @socketio.on("disconnect")
    def on_disconnect(*args):
        # A socket may have joined several rooms
        for session in registry.list():
            if session.roster.has(request.sid):
                session.disconnect(request.sid)
