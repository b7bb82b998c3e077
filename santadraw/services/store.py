from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Iterable

from cryptography.fernet import Fernet
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PersistenceError
from ..extensions import db
from ..models import StateSlot
from ..security import seal_slot, unseal_slot

# Flat slot layout. A missing slot means its default value.
PARTICIPANTS = "participants"
PHASE = "phase"
DRAW_ORDER = "draw_order"
ASSIGNMENTS = "assignments"
RESULTS = "results"
POSITION = "position"
PENDING = "pending"

ALL_SLOTS = (PARTICIPANTS, PHASE, DRAW_ORDER, ASSIGNMENTS, RESULTS, POSITION, PENDING)

# Slots that would spoil the surprise if someone peeked at the store.
SECRET_SLOTS = frozenset({ASSIGNMENTS, PENDING})

MISSING = object()


class SlotStore:
    """Port the reveal session writes through to. Values are JSON-serialisable."""

    def read(self, key: str) -> Any:
        raise NotImplementedError

    def write(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemorySlotStore(SlotStore):
    def __init__(self, initial: dict[str, Any] | None = None):
        self.slots: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.write(key, value)

    def read(self, key: str) -> Any:
        if key not in self.slots:
            return MISSING
        return json.loads(self.slots[key])

    def write(self, key: str, value: Any) -> None:
        # JSON text, same as the database store
        self.slots[key] = json.dumps(value)

    def clear(self) -> None:
        self.slots.clear()


class DatabaseSlotStore(SlotStore):
    """
    One StateSlot row per slot. Secret slots are Fernet-sealed before they
    hit the database; a token that no longer decrypts reads as missing.

    Must be used inside an application context.
    """

    def __init__(self, fernet: Fernet, secret_slots: Iterable[str] = SECRET_SLOTS):
        self.fernet = fernet
        self.secret_slots = frozenset(secret_slots)

    def read(self, key: str) -> Any:
        try:
            row = StateSlot.query.filter_by(key=key).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read slot {key}") from e
        if row is None:
            return MISSING

        raw = row.value
        if key in self.secret_slots:
            try:
                raw = unseal_slot(self.fernet, raw)
            except ValueError:
                return MISSING
        try:
            return json.loads(raw)
        except ValueError:
            return MISSING

    def write(self, key: str, value: Any) -> None:
        raw = json.dumps(value)
        if key in self.secret_slots:
            raw = seal_slot(self.fernet, raw)
        try:
            row = StateSlot.query.filter_by(key=key).first()
            if row is None:
                row = StateSlot(key=key)
                db.session.add(row)
            row.value = raw
            row.updated_at = datetime.utcnow()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"Could not write slot {key}") from e

    def clear(self) -> None:
        try:
            StateSlot.query.delete()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError("Could not clear slots") from e
