"""Shared fixtures: throwaway keys, a controllable clock, stores and apps."""
from datetime import datetime, timedelta, timezone

import pytest

from api import create_app
from models.db_storage import DBStorage
from models.memory_storage import MemoryStorage
from services.sessions import SessionLifecycle
from utils.keys import generate_key_pair
from utils.tokens import TokenService

ACCESS_TTL = timedelta(minutes=15)
REFRESH_TTL = timedelta(minutes=60)


class Clock:
    """Callable clock that only moves when a test says so."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="session")
def key_pair():
    return generate_key_pair()


@pytest.fixture(scope="session")
def other_key_pair():
    return generate_key_pair()


@pytest.fixture
def clock():
    return Clock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def token_service(key_pair, clock):
    private_key, public_key = key_pair
    return TokenService(private_key, public_key, ACCESS_TTL, REFRESH_TTL, clock=clock)


@pytest.fixture
def foreign_token_service(other_key_pair, clock):
    """Same settings, different key pair: its tokens must never verify here."""
    private_key, public_key = other_key_pair
    return TokenService(private_key, public_key, ACCESS_TTL, REFRESH_TTL, clock=clock)


@pytest.fixture
def memory_store():
    return MemoryStorage()


@pytest.fixture
def db_store():
    storage = DBStorage("sqlite://")
    storage.reload()
    yield storage
    storage.dispose()


@pytest.fixture(params=["memory", "db"])
def store(request):
    """Run contract tests against both store implementations."""
    if request.param == "memory":
        return MemoryStorage()
    storage = DBStorage("sqlite://")
    storage.reload()
    request.addfinalizer(storage.dispose)
    return storage


@pytest.fixture
def lifecycle(store, token_service, clock):
    return SessionLifecycle(store, token_service, clock=clock)


@pytest.fixture
def app(memory_store, token_service):
    app = create_app("testing", store=memory_store, token_service=token_service)
    return app


@pytest.fixture
def client(app):
    return app.test_client()
