from __future__ import annotations

import os

from flask import Flask
from sqlalchemy.exc import SQLAlchemyError

from .extensions import SESSION_EXTENSION_KEY, csrf, db, migrate
from .security import build_fernet
from .services.assignments import CHAIN, STRATEGIES
from .services.reveal import RevealSession
from .services.store import DatabaseSlotStore, MemorySlotStore
from .views.draw import draw_bp
from .views.public import public_bp
from .views.registration import registration_bp


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off", ""}


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__)

    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///santadraw.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # "chain" (single random circle) or "rejection" (any derangement)
    app.config["SANTA_DRAW_STRATEGY"] = os.environ.get("SANTA_DRAW_STRATEGY", CHAIN).strip().lower()
    app.config["SANTA_PERSIST"] = _env_flag("SANTA_PERSIST", True)
    app.config["ASSIGNMENT_ENC_KEY"] = os.environ.get("ASSIGNMENT_ENC_KEY", "")
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO").upper()

    if test_config:
        app.config.update(test_config)

    if app.config["SANTA_DRAW_STRATEGY"] not in STRATEGIES:
        raise ValueError(f"Unknown SANTA_DRAW_STRATEGY: {app.config['SANTA_DRAW_STRATEGY']!r}")

    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    # Blueprints
    app.register_blueprint(public_bp)
    app.register_blueprint(registration_bp)
    app.register_blueprint(draw_bp)

    app.extensions[SESSION_EXTENSION_KEY] = _build_session(app)
    return app


def _build_session(app: Flask) -> RevealSession:
    strategy = app.config["SANTA_DRAW_STRATEGY"]
    if not app.config["SANTA_PERSIST"]:
        return RevealSession(store=MemorySlotStore(), strategy=strategy)

    fernet = build_fernet(app.config["SECRET_KEY"], app.config.get("ASSIGNMENT_ENC_KEY"))
    session = RevealSession(store=DatabaseSlotStore(fernet), strategy=strategy)

    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as e:
            app.logger.warning("Could not prepare the slot table, running in memory only: %s", e)
            session.persistence_degraded = True
            return session
        session.load()

    return session
