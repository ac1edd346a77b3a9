from __future__ import annotations

from flask import Blueprint, jsonify

bp = Blueprint("health", __name__)


@bp.get("/ping")
def ping():
    return jsonify({"message": "pong"})
