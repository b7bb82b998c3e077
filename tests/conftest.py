import random

import pytest

from santadraw import create_app
from santadraw.services.reveal import RevealSession
from santadraw.services.store import MemorySlotStore


@pytest.fixture
def app():
    return create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "WTF_CSRF_ENABLED": False,
    })


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store():
    return MemorySlotStore()


@pytest.fixture
def session(store):
    return RevealSession(store=store, rng=random.Random(7))


def start_drawing(session, names=("Ana", "Bruno", "Carla")):
    session.start_registration()
    for name in names:
        assert session.add_participant(name)
    assert session.finalize_registration()
    return session
