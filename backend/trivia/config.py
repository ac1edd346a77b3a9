import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Storage (defaults to in-memory when REDIS_URL is empty)
    REDIS_URL = os.environ.get("REDIS_URL", "")
    ROOM_TTL_SEC = int(os.environ.get("ROOM_TTL_SEC", "86400"))
    # Rooms that never expire from storage
    PERMA_ROOMS = [r.strip() for r in os.environ.get("PERMA_ROOMS", "default").split(",") if r.strip()]

    # Question archive (gzipped JSON keyed by episode number)
    EPISODES_PATH = os.environ.get("EPISODES_PATH", "")

    # Automated judging
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-5-nano")

    # Game
    ANSWER_TIMEOUT_SEC = int(os.environ.get("ANSWER_TIMEOUT_SEC", "20"))
    FINAL_TIMEOUT_SEC = int(os.environ.get("FINAL_TIMEOUT_SEC", "30"))
    MAX_ANSWER_LENGTH = int(os.environ.get("MAX_ANSWER_LENGTH", "10000"))
    MAX_CUSTOM_DATA_LENGTH = int(os.environ.get("MAX_CUSTOM_DATA_LENGTH", "1000000"))
    CHAT_HISTORY_LIMIT = int(os.environ.get("CHAT_HISTORY_LIMIT", "100"))

    # Roster cleanup
    DISCONNECT_RETENTION_SEC = int(os.environ.get("DISCONNECT_RETENTION_SEC", "3600"))
    SWEEP_INTERVAL_SEC = int(os.environ.get("SWEEP_INTERVAL_SEC", "1800"))

    # Room ticker
    TICK_INTERVAL_SEC = float(os.environ.get("TICK_INTERVAL_SEC", "0.25"))
    ENABLE_TICKER_IN_TESTS = False
