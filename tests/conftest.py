import pytest
from fastapi.testclient import TestClient

from userapi.api import create_app
from userapi.config import Settings
from userapi.store import UserStore, seed_store


@pytest.fixture
def store():
    """A fresh store seeded with the two demo users."""
    s = UserStore()
    seed_store(s, [("user1", "password1"), ("user2", "password2")])
    return s


@pytest.fixture
def app(store):
    return create_app(store, Settings(seed_demo_users=False))


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth():
    return ("user1", "password1")
