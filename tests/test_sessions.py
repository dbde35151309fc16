from datetime import datetime, timedelta

from conftest import csrf_headers, login
from models import db
from models.session import UserSession


def test_logout_revokes_session(app, client, make_user):
    make_user("user@example.com", roles=("USER",))
    login(client, "user@example.com")
    assert client.get("/auth/me").status_code == 200

    assert client.post("/auth/logout", headers=csrf_headers(client)).status_code == 200
    assert client.get("/auth/me").status_code == 401
    with app.app_context():
        assert UserSession.query.filter_by(revoked_at=None).count() == 0


def test_new_login_revokes_older_sessions(app, make_user):
    make_user("user@example.com", roles=("USER",))
    first, second = app.test_client(), app.test_client()
    login(first, "user@example.com")
    login(second, "user@example.com")

    assert first.get("/auth/me").status_code == 401
    assert second.get("/auth/me").status_code == 200


def test_idle_session_is_rejected(app, client, make_user):
    make_user("user@example.com", roles=("USER",))
    login(client, "user@example.com")
    with app.app_context():
        sess = UserSession.query.one()
        sess.last_seen_at = datetime.utcnow() - timedelta(seconds=app.config["IDLE_TIMEOUT_SECONDS"])
        db.session.commit()
    assert client.get("/auth/me").status_code == 401


def test_csrf_token_is_bound_to_session(app, make_user):
    make_user("a@example.com", roles=("USER",))
    make_user("b@example.com", roles=("USER",))
    alice, bob = app.test_client(), app.test_client()
    login(alice, "a@example.com")
    login(bob, "b@example.com")

    resp = alice.post("/auth/logout", headers=csrf_headers(bob))
    assert resp.status_code == 403
    assert alice.post("/auth/logout", headers=csrf_headers(alice)).status_code == 200


def test_logout_all(client, make_user):
    make_user("user@example.com", roles=("USER",))
    login(client, "user@example.com")
    resp = client.post("/auth/logout_all", headers=csrf_headers(client))
    assert resp.status_code == 200
    assert resp.get_json()["revoked_sessions"] == 1
