import os
import sys
import pytest

# Ensure the backend root (containing the `haygame` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from haygame import create_app, db, socketio
from haygame.services.notifications import NotificationError
from haygame.services.registry import current_services


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SIGNATURE_VERIFIER = 'attestation'
    RATE_LIMIT_ENABLED = False
    LOCK_TIMEOUT_SEC = 5


class FakeClock:
    """Stands in for haygame.services.clock.now_ms."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class RecordingNotifier:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, notification):
        if self.fail:
            raise NotificationError('smtp unreachable')
        self.sent.append((notification.wallet_address, notification.amount))


def _build_app(config_class):
    application = create_app(config_class)
    with application.app_context():
        # Ensure models are imported so tables are created
        import haygame.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr('haygame.services.clock.now_ms', fake)
    return fake


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def flask_app(clock):
    yield from _build_app(TestConfig)


@pytest.fixture()
def file_app(clock, tmp_path):
    """App on a file database so several threads can hold their own connections."""
    config = type('FileConfig', (TestConfig,), {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'haygame.db'}",
        'LOCK_TIMEOUT_SEC': 30,
    })
    yield from _build_app(config)


@pytest.fixture()
def services(flask_app, notifier):
    svc = current_services()
    svc.outbox.notifier = notifier
    return svc


@pytest.fixture()
def client(flask_app, services):
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
