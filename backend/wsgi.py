import logging

from dotenv import load_dotenv

# Config reads the environment at import time
load_dotenv()
logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s %(message)s")

from trivia.server import create_app  # noqa: E402

app, socketio = create_app()
