import os
import sys
import pytest

# Ensure the backend root (containing the `whosejunk` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from whosejunk import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOCK_TO_DOMAIN = True
    ALLOWED_EMAIL_DOMAIN = 'example.com'
    ADMIN_EMAILS = ['boss@example.com']
    LEADERBOARD_POLICY = 'single_attempt'
    INITIAL_SEASON = 1
    ROUNDS_PATH = None


class BestScoreConfig(TestConfig):
    LEADERBOARD_POLICY = 'best_score'


ALICE = {'uid': 'u-alice', 'name': 'Alice', 'email': 'alice@example.com'}
BOB = {'uid': 'u-bob', 'name': 'Bob', 'email': 'bob@example.com'}
BOSS = {'uid': 'u-boss', 'name': 'Boss', 'email': 'boss@example.com'}


def _reset_runtime_state():
    from whosejunk.api import play, season
    from whosejunk import socketio_events
    play._sessions.clear()
    season._commits_in_flight.clear()
    socketio_events._sid_subscriptions.clear()


def _build_app(config_class):
    _reset_runtime_state()
    application = create_app(config_class)
    with application.app_context():
        # Ensure models are imported so tables are created
        import whosejunk.models  # noqa: F401
        db.create_all()
    return application


def _teardown_app(application):
    with application.app_context():
        db.session.remove()
        db.drop_all()
    _reset_runtime_state()


@pytest.fixture()
def flask_app():
    application = _build_app(TestConfig)
    yield application
    _teardown_app(application)


@pytest.fixture()
def best_score_app():
    application = _build_app(BestScoreConfig)
    yield application
    _teardown_app(application)


@pytest.fixture()
def app_ctx(flask_app):
    """Application context for calling services directly."""
    with flask_app.app_context():
        yield flask_app
        db.session.remove()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def login(test_client, claims):
    res = test_client.post('/login', json=claims)
    assert res.status_code == 200, res.get_json()
    return test_client


@pytest.fixture()
def alice(flask_app):
    return login(flask_app.test_client(), ALICE)


@pytest.fixture()
def bob(flask_app):
    return login(flask_app.test_client(), BOB)


@pytest.fixture()
def boss(flask_app):
    return login(flask_app.test_client(), BOSS)


@pytest.fixture()
def sio_client(flask_app, alice):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=alice,
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except RuntimeError:
        pass
