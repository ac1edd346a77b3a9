from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("rooms", __name__)


def _registry():
    return current_app.extensions["trivia_registry"]


@bp.post("/rooms")
def create_room():
    # Nobody is attached yet, the first room:join registers the creator
    session = _registry().create()
    return jsonify({"roomCode": session.code})


@bp.get("/rooms/<code>")
def get_room(code: str):
    session = _registry().get(code)
    if not session:
        return jsonify({"error": "room_not_found"}), 404
    return jsonify({"roomCode": session.code, "state": session.public_state(), "roster": session.roster_view()})
