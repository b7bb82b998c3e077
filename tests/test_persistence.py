import json

import pytest
from cryptography.fernet import Fernet

from santadraw import create_app
from santadraw.extensions import SESSION_EXTENSION_KEY
from santadraw.models import StateSlot
from santadraw.security import build_fernet, seal_slot, unseal_slot
from santadraw.services import store as slots
from santadraw.services.reveal import Phase


def make_app(db_path, secret="test-secret"):
    return create_app({
        "TESTING": True,
        "SECRET_KEY": secret,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "WTF_CSRF_ENABLED": False,
    })


def drive_to_second_draw(client):
    client.post("/registration/start")
    for name in ("Ana", "Bruno", "Carla", "Dora"):
        client.post("/registration/participants", json={"name": name})
    client.post("/registration/finalize")
    client.post("/draw/")
    client.post("/draw/confirm")
    return client.post("/draw/").get_json()["drawn"]


def test_session_survives_restart(tmp_path):
    db_path = tmp_path / "santa.db"
    first = make_app(db_path)
    pending = drive_to_second_draw(first.test_client())
    before = first.extensions[SESSION_EXTENSION_KEY]

    second = make_app(db_path)
    after = second.extensions[SESSION_EXTENSION_KEY]
    assert after.phase == Phase.DRAWING
    assert after.position == 1
    assert after.draw_order == before.draw_order
    assert after.results == before.results

    body = second.test_client().post("/draw/").get_json()
    assert body["drawn"] == pending


def test_secret_slots_are_sealed(tmp_path):
    db_path = tmp_path / "santa.db"
    app = make_app(db_path)
    drive_to_second_draw(app.test_client())

    with app.app_context():
        rows = {row.key: row.value for row in StateSlot.query.all()}

    assert json.loads(rows[slots.PARTICIPANTS]) == ["Ana", "Bruno", "Carla", "Dora"]
    fernet = build_fernet("test-secret")
    for key in (slots.ASSIGNMENTS, slots.PENDING):
        # Fernet tokens, not JSON
        assert rows[key].startswith("gAAAAA")
        json.loads(unseal_slot(fernet, rows[key]))


def test_wrong_key_loses_secret_slots(tmp_path):
    db_path = tmp_path / "santa.db"
    drive_to_second_draw(make_app(db_path).test_client())

    # Assignments no longer decrypt, so the drawing state does not add up
    other = make_app(db_path, secret="another-secret")
    session = other.extensions[SESSION_EXTENSION_KEY]
    assert session.phase == Phase.IDLE
    assert session.roster == []


def test_unusable_database_runs_in_memory(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path}/missing/dir/santa.db",
        "WTF_CSRF_ENABLED": False,
    })
    client = app.test_client()
    assert client.get("/").get_json()["state"]["persistence_degraded"]

    drive_to_second_draw(client)
    assert client.get("/").get_json()["state"]["phase"] == "drawing"


def test_explicit_key_is_used():
    key = Fernet.generate_key().decode("utf-8")
    fernet = build_fernet("ignored", key)
    token = seal_slot(fernet, '"Bruno"')
    assert unseal_slot(Fernet(key.encode("utf-8")), token) == '"Bruno"'


def test_unseal_rejects_garbage():
    with pytest.raises(ValueError):
        unseal_slot(build_fernet("secret"), "not-a-token")


def test_unknown_strategy_fails_fast():
    with pytest.raises(ValueError):
        create_app({"SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:", "SANTA_DRAW_STRATEGY": "hat"})


def test_new_roster_survives_after_key_change(tmp_path):
    db_path = tmp_path / "santa.db"
    drive_to_second_draw(make_app(db_path).test_client())

    rotated = make_app(db_path, secret="another-secret")
    with rotated.app_context():
        assert StateSlot.query.count() == 0

    client = rotated.test_client()
    client.post("/registration/start")
    for name in ("Dora", "Edu", "Fabi"):
        client.post("/registration/participants", json={"name": name})

    session = make_app(db_path, secret="another-secret").extensions[SESSION_EXTENSION_KEY]
    assert session.phase == Phase.REGISTERING
    assert session.roster == ["Dora", "Edu", "Fabi"]
