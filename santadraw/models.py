from datetime import datetime

from .extensions import db


class StateSlot(db.Model):
    """
    One named slot of the persisted reveal session (participants, phase,
    draw order, ...). The value column holds JSON text, Fernet-sealed for
    secret slots.
    """
    __tablename__ = "state_slots"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(32), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=False, default="null")
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
