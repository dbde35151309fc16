import re

import pytest

from app import create_app
from config import Config
from models import db
from models.user import User, Role
from security.password import hash_password
from utils import emailer


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    CREATE_TABLES_ON_START = True
    BCRYPT_ROUNDS = 4
    RECOVERY_CODE_BCRYPT_ROUNDS = 4
    TWOFA_ENABLED = True
    TWOFA_ROLES = ["ADMIN"]
    TWOFA_LOCK_BACKEND = "memory"
    SMTP_HOST = "smtp.test"
    SMTP_FROM_EMAIL = "noreply@test"
    LOG_LEVEL = "WARNING"


PASSWORD = "correct horse battery"
CODE_RE = re.compile(r"Verification code: (\d{6})")


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def fake_send(to_email, subject, body):
        sent.append({"to": to_email, "subject": subject, "body": body})
        return True, None

    monkeypatch.setattr(emailer, "send_email", fake_send)
    return sent


def last_code(outbox) -> str:
    match = CODE_RE.search(outbox[-1]["body"])
    assert match, outbox[-1]["body"]
    return match.group(1)


@pytest.fixture
def make_user(app):
    def _make(email="admin@example.com", roles=("ADMIN",), password=PASSWORD):
        with app.app_context():
            user = User(email=email, password_hash=hash_password(password, rounds=4))
            for name in roles:
                user.roles.append(Role.query.filter_by(name=name).one())
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


def login(client, email="admin@example.com", password=PASSWORD, ip="10.0.0.1"):
    return client.post(
        "/auth/login",
        json={"email": email, "password": password},
        environ_base={"REMOTE_ADDR": ip},
    )


def submit_code(client, token, ip="10.0.0.1", **fields):
    payload = {"login_token": token}
    payload.update(fields)
    return client.post("/auth/login/2fa", json=payload, environ_base={"REMOTE_ADDR": ip})


def csrf_headers(client) -> dict:
    cookie = client.get_cookie("csrf_token")
    return {"X-CSRF-Token": cookie.value if cookie else ""}
