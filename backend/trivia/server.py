from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from flask import Flask, send_from_directory
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .ai import create_judge
from .config import Config
from .game.episodes import EpisodeLibrary
from .game.registry import SessionRegistry
from .game.session import SessionSettings
from .realtime.handlers import register_socketio_handlers
from .routes.health import bp as health_bp
from .routes.rooms import bp as rooms_bp
from .storage import create_store


log = logging.getLogger(__name__)


def _room_emitter(socketio: SocketIO, room_code: str):
    def _emit(event: str, payload=None) -> None:
        if payload is None:
            socketio.emit(event, to=room_code)
        else:
            socketio.emit(event, payload, to=room_code)

    return _emit


def _load_episodes(path: str) -> EpisodeLibrary:
    if not path:
        log.info("[EPISODES] EPISODES_PATH not set, only custom games are available")
        return EpisodeLibrary()
    return EpisodeLibrary.from_file(path)


def create_app(config_class=Config) -> tuple[Flask, SocketIO]:
    dist_dir = Path(__file__).resolve().parents[2] / "frontend" / "dist"

    static_folder = str(dist_dir) if dist_dir.exists() else None
    static_url_path = "/" if dist_dir.exists() else None

    app = Flask(
        __name__,
        static_folder=static_folder,
        static_url_path=static_url_path,
    )
    app.config.from_object(config_class)
    logging.getLogger("trivia").setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    env_async_mode = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()
    if app.config.get("TESTING"):
        async_mode = "threading"
    elif env_async_mode:
        async_mode = env_async_mode
    elif sys.platform.startswith("win") or sys.version_info >= (3, 13):
        # eventlet is unreliable on Windows and on newer Python
        async_mode = "threading"
    else:
        async_mode = "eventlet"

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=async_mode,
    )

    store = create_store(app.config.get("REDIS_URL", ""))
    judge = create_judge(app.config.get("OPENAI_API_KEY", ""), app.config.get("OPENAI_MODEL", ""))
    episodes = _load_episodes(app.config.get("EPISODES_PATH", ""))
    settings = SessionSettings.from_config(app.config)

    def session_kwargs(room_code: str) -> dict:
        return {
            "emit": _room_emitter(socketio, room_code),
            "spawn": socketio.start_background_task,
            "auto_judge": judge,
            "episodes": episodes,
            "settings": settings,
        }

    registry = SessionRegistry(store, session_kwargs)
    registry.load_from_store()
    app.extensions["trivia_registry"] = registry

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")

    register_socketio_handlers(socketio, registry, app.config)

    if dist_dir.exists():
        @app.get("/")
        def index():
            return send_from_directory(dist_dir, "index.html")

        @app.get("/<path:path>")
        def static_proxy(path: str):
            file_path = dist_dir / path
            if file_path.exists() and file_path.is_file():
                return send_from_directory(dist_dir, path)
            return send_from_directory(dist_dir, "index.html")

    return app, socketio
