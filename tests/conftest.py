import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from kiosk.api import create_app
from kiosk.celery_worker import celery_app
from kiosk.data.database import init_models, make_session_factory
from kiosk.data.seed import seed
from kiosk.services.lock_service import LockService
from kiosk.services.payment_gateway import StubQrCodeGateway


class InMemoryRedis:
    """The slice of the redis client LockService talks to."""

    def __init__(self):
        self.store = {}

    def set(self, name, value, nx=False, ex=None):
        if nx and name in self.store:
            return None
        self.store[name] = value
        return True

    def eval(self, script, numkeys, key, token):
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0

    def ping(self):
        return True


@pytest.fixture(autouse=True, scope="session")
def _celery_eager():
    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = True
    yield


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_models(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = make_session_factory(engine)
    seed(factory)
    return factory


@pytest.fixture
def file_session_factory(tmp_path):
    """Seeded on-disk database, for tests that need two independent sessions."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'kiosk.db'}",
        connect_args={"check_same_thread": False},
        future=True,
    )
    init_models(engine)
    factory = make_session_factory(engine)
    seed(factory)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return InMemoryRedis()


@pytest.fixture
def lock_service(redis_client):
    return LockService(client=redis_client)


@pytest.fixture
def qr_gateway():
    return StubQrCodeGateway(ttl_seconds=300)


@pytest.fixture
def app(engine, session_factory, lock_service, qr_gateway):
    return create_app(engine=engine, lock_service=lock_service, qr_gateway=qr_gateway)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
