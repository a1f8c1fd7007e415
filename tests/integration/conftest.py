import os
import sys
from datetime import datetime, timedelta

import pytest
from flask import g

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from tamagotchi import create_app
from tamagotchi.extensions import db
from tamagotchi.models.user import User
from tamagotchi.models.pet import Pet
from tamagotchi.services import pets as pet_service

START = datetime(2025, 3, 1, 12, 0)


def _assert_memory_db(uri: str):
    if uri != "sqlite:///:memory:":
        raise RuntimeError(
            f"Refusing to run tests on non-memory DB: {uri!r}. "
            "This guard protects your real database."
        )


class FrozenClock:
    multiplier = 1.0

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current += timedelta(**delta)
        return self.current


@pytest.fixture(scope="function")
def app():
    os.environ.pop("DATABASE_URL", None)

    flask_app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key",
            "WTF_CSRF_ENABLED": False,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False}},
            "SERVER_NAME": "localhost",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "DEV_MODE": True,
        }
    )

    _assert_memory_db(flask_app.config["SQLALCHEMY_DATABASE_URI"])

    # client requests reuse the app context pushed below, and with it ``g``,
    # so Flask-Login must not serve the previous request's user
    @flask_app.before_request
    def _forget_cached_user():
        g.pop("_login_user", None)

    with flask_app.app_context():
        db.create_all()
        yield flask_app
        _assert_memory_db(flask_app.config["SQLALCHEMY_DATABASE_URI"])
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def clock(app):
    frozen = FrozenClock(START)
    app.extensions["pet_clock"] = frozen
    return frozen


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    def _make_user(email: str, name: str = "Owner"):
        u = User(email=email, name=name)
        u.set_password("pass123")
        db.session.add(u)
        db.session.commit()
        return u
    return _make_user


@pytest.fixture()
def login_as(client, app):
    def _login_as(user: User):
        user_id = user.id
        with client.session_transaction() as sess:
            sess["_user_id"] = str(user_id)
            sess["_fresh"] = True
    return _login_as


@pytest.fixture()
def owner(make_user):
    return make_user("owner@petmail.com", "Owner")


@pytest.fixture()
def pet(clock, owner) -> Pet:
    return pet_service.spawn(owner.id, "Mochi")


@pytest.fixture()
def set_stats(app):
    def _set_stats(pet: Pet, **values):
        for key, value in values.items():
            setattr(pet, key, value)
        db.session.commit()
        return pet
    return _set_stats
