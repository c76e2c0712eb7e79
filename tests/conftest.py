import pytest
from fastapi.testclient import TestClient

from config import Settings
from db_setup import ContactStore
from identity_service import IdentityResolver
from main import create_app


@pytest.fixture
def store():
    with ContactStore(":memory:") as store:
        yield store


@pytest.fixture
def resolver(store):
    return IdentityResolver(store)


@pytest.fixture
def app():
    return create_app(Settings(db_name=":memory:"))


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def count_contacts(store):
    return store.conn.execute("SELECT COUNT(*) FROM Contact").fetchone()[0]
