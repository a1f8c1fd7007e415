from __future__ import annotations

import sqlite3

from flask import Flask, jsonify
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .engine.clock import GameClock, utcnow
from .engine.errors import PetError
from .extensions import db, migrate, login_manager, csrf


@event.listens_for(Engine, "connect")
def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    if isinstance(dbapi_connection, sqlite3.Connection):
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.execute("PRAGMA journal_mode=WAL")
        cur.execute("PRAGMA synchronous=NORMAL")
        cur.execute("PRAGMA busy_timeout=30000")
        cur.close()


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object("config.Config")
    if config_overrides:
        app.config.update(config_overrides)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if uri.startswith("sqlite:"):
        opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS", {}))
        ca = dict(opts.get("connect_args", {}))
        ca.setdefault("check_same_thread", False)
        ca.setdefault("timeout", 30)
        opts["connect_args"] = ca
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)

    app.extensions["pet_clock"] = GameClock(app.config.get("TIME_MULTIPLIER", 1.0))

    from .models.user import User
    from .models.pet import Pet

    from .auth.routes import auth_bp
    app.register_blueprint(auth_bp, url_prefix="/auth")

    from .pets.routes import pet_bp
    app.register_blueprint(pet_bp, url_prefix="/pet")

    from .cli import (
        init_db_cmd,
        reset_db_cmd,
        purge_data_cmd,
        seed_demo_cmd,
        sweep_inactive_cmd,
        sweep_evolution_cmd,
    )

    app.cli.add_command(init_db_cmd)
    app.cli.add_command(reset_db_cmd)
    app.cli.add_command(purge_data_cmd)
    app.cli.add_command(seed_demo_cmd)
    app.cli.add_command(sweep_inactive_cmd)
    app.cli.add_command(sweep_evolution_cmd)

    @app.get("/health")
    def health():
        return jsonify({"status": "OK", "timestamp": utcnow().isoformat()})

    @app.get("/dev-mode")
    def dev_mode():
        return jsonify(
            {
                "isDevMode": bool(app.config.get("DEV_MODE")),
                "timeMultiplier": app.extensions["pet_clock"].multiplier,
                "timestamp": utcnow().isoformat(),
            }
        )

    @app.errorhandler(PetError)
    def _pet_error(exc: PetError):
        app.logger.warning("request rejected: %s (%s)", exc.message, type(exc).__name__)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def _database_error(exc: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("database error")
        return jsonify({"error": "Database unavailable", "retryable": True}), 503

    # Flask-SQLAlchemy removes the session when the app context ends.
    @app.teardown_request
    def _teardown_request(_exc):
        if _exc is not None:
            db.session.rollback()

    return app
