import os
import random
import sys
import pytest

# Ensure the backend root (containing the `category_game` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from category_game import create_app, db, socketio
from category_game.services.games import GameService


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    LOG_LEVEL = 'DEBUG'
    CORS_ORIGINS = '*'
    SUBMISSION_DURATION_SEC = 120
    VOTING_PER_EXEMPLAR_SEC = 15
    VOTING_MINIMUM_SEC = 30
    RESULT_REVEAL_SEC = 5
    SUMMARY_DURATION_SEC = 15
    SCOREBOARD_DURATION_SEC = 10
    MIN_PLAYERS = 2
    GM_GRACE_SEC = 300
    PLAYER_GRACE_SEC = 600
    ENDED_ROOM_TTL_SEC = 300
    CATEGORY_MAX_LENGTH = 50
    TICK_INTERVAL_SEC = 1.0
    # Tests advance timers by calling tick() themselves
    TIMER_DRIVER_ENABLED = False
    EXPORT_PASSWORD = 'letmein'


class RecordingGateway:
    """Collects outbound events instead of sending them."""

    def __init__(self):
        self.sent = []
        self.channels = []

    def emit_to_connection(self, connection_id, event, payload=None):
        if connection_id:
            self.sent.append((connection_id, event, payload or {}))

    def emit_to_room(self, code, event, payload=None):
        self.sent.append((f'room:{code}', event, payload or {}))

    def join_room_channel(self, connection_id, code):
        self.channels.append((connection_id, code))

    def events(self, target=None, name=None):
        return [
            payload for to, event, payload in self.sent
            if (target is None or to == target) and (name is None or event == name)
        ]

    def names(self, target):
        return [event for to, event, _ in self.sent if to == target]

    def clear(self):
        self.sent.clear()


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import category_game.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def gateway():
    return RecordingGateway()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def service(flask_app, gateway, clock):
    return GameService(flask_app, gateway, clock=clock, rng=random.Random(7))


@pytest.fixture()
def run_ticks(service, clock):
    def _run(count):
        for _ in range(count):
            clock.advance(1)
            service.tick()
    return _run
