import pytest

from trivia.config import Config
from trivia.game.episodes import Episode
from trivia.game.models import Clue
from trivia.game.session import Session, SessionSettings
from trivia.storage import MemoryStore


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    REDIS_URL = ""
    OPENAI_API_KEY = ""
    EPISODES_PATH = ""
    PERMA_ROOMS = ["default"]


class FakeClock:
    # Far from zero: a deadline at 0 means "not armed"
    def __init__(self, start=1_000_000):
        self.t = start

    def __call__(self):
        return self.t

    def advance(self, ms):
        self.t += ms


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event, payload=None):
        self.events.append((event, payload))

    def names(self):
        return [e for e, _ in self.events]

    def last(self, event):
        for e, payload in reversed(self.events):
            if e == event:
                return payload
        return None

    def clear(self):
        self.events = []


class ManualSpawner:
    """Holds background tasks until the test decides they have finished."""

    def __init__(self):
        self.tasks = []

    def __call__(self, fn, *args, **kwargs):
        self.tasks.append((fn, args, kwargs))

    def run_all(self):
        tasks, self.tasks = self.tasks, []
        for fn, args, kwargs in tasks:
            fn(*args, **kwargs)


class FakeJudge:
    def __init__(self, verdict=True):
        self.verdict = verdict
        self.calls = []

    def decide(self, question, answer, response):
        self.calls.append((question, answer, response))
        if isinstance(self.verdict, Exception):
            raise self.verdict
        return self.verdict


class FakeEpisodes:
    def __init__(self, episode):
        self.episode = episode

    def pick(self, number=None, info_filter=None):
        return self.episode


def sample_episode():
    return Episode(
        ep_num="1234",
        air_date="2004-06-02",
        jeopardy=[
            Clue(200, "SCIENCE", "This planet is called the red planet", "Mars", False, 1, 1),
            Clue(400, "SCIENCE", "Its chemical symbol is Au", "Gold", False, 1, 2),
            Clue(200, "HISTORY", "The first president of the United States", "Washington", True, 2, 1),
        ],
        double=[
            Clue(400, "ART", "He painted the Mona Lisa", "da Vinci", False, 1, 1),
            Clue(800, "ART", "Dutch painter of The Starry Night", "van Gogh", True, 1, 2),
        ],
        final=[
            Clue(0, "GEOGRAPHY", "The longest river in Africa", "Nile", False, 1, 1),
        ],
    )


SAMPLE_CSV = """round,category,question,answer,isDailyDouble
jeopardy,A,q1,a1,false
jeopardy,A,q2,a2,false
jeopardy,B,q3,a3,true
double,C,q4,a4,false
final,D,q5,a5,false
"""


def final_only_episode():
    return Episode(
        ep_num="Custom",
        final=[Clue(0, "GEOGRAPHY", "The longest river in Africa", "Nile", False, 1, 1)],
    )


def counter(store, prefix):
    return sum(v for k, v in store.counters.items() if k.rsplit(":", 1)[0] == prefix)


class Game:
    """A session wired to fakes, plus shortcuts for driving it."""

    def __init__(self, auto_judge=None, episode=None, settings=None, store=None):
        self.clock = FakeClock()
        self.emitted = Recorder()
        self.spawner = ManualSpawner()
        self.store = store if store is not None else MemoryStore()
        self.judge = auto_judge
        self.session = Session(
            "test",
            store=self.store,
            emit=self.emitted,
            spawn=self.spawner,
            clock=self.clock,
            auto_judge=auto_judge,
            episodes=FakeEpisodes(episode or sample_episode()),
            settings=settings or SessionSettings(),
        )

    @property
    def state(self):
        return self.session.state

    @property
    def pub(self):
        return self.session.state.public

    @property
    def q(self):
        return self.session.state.public.q

    def join(self, *sids):
        for sid in sids:
            self.session.register_connection(f"client-{sid}", sid)

    def start(self, sid="a", **options):
        assert self.session.start(sid, options)

    def finish_reading(self):
        self.clock.advance(max(self.q.play_clue.remaining(self.clock()), 0))
        self.session.tick()

    def expire_answers(self):
        self.clock.advance(max(self.q.answer_timer.remaining(self.clock()), 0))
        self.session.tick()

    def expire_wagers(self):
        self.clock.advance(max(self.q.wager_timer.remaining(self.clock()), 0))
        self.session.tick()

    def open_clue(self, sid, coord):
        assert self.session.pick_question(sid, coord)
        self.finish_reading()


@pytest.fixture()
def make_game():
    return Game


@pytest.fixture()
def game():
    return Game()


@pytest.fixture()
def flask_app():
    from trivia.server import create_app

    application, _ = create_app(TestConfig)
    yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    socketio = flask_app.extensions["socketio"]
    test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    if test_client.is_connected():
        test_client.disconnect()
