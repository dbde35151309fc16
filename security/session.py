"""
Cookie sessions for fully signed-in users.

A session only exists once the password and, when required, the second factor
have both passed. Establishing one revokes every other session of the user.
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta

from flask import request, current_app

from models import db
from models.session import UserSession
from security.csrf import issue_csrf_token

logger = logging.getLogger(__name__)


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "twofactor_session")


def create_session(user_id: int, auth_method: int = 0, ip: str = None, user_agent: str = None) -> str:
    """Stores the session and returns the raw cookie value."""
    raw_token = secrets.token_urlsafe(32)
    now = datetime.utcnow()
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)

    db.session.add(UserSession(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        auth_method=int(auth_method),
        created_at=now,
        last_seen_at=now,
        expires_at=now + timedelta(seconds=lifetime),
        ip=ip,
        user_agent=(user_agent or "")[:255] or None,
    ))
    db.session.commit()
    return raw_token


def establish_session(resp, user_id: int, auth_method: int = 0, ip: str = None):
    """Last login step. Returns (resp, number of older sessions revoked)."""
    revoked = revoke_all_sessions(user_id)
    raw_token = create_session(user_id, auth_method, ip=ip, user_agent=request.headers.get("User-Agent"))

    resp.set_cookie(
        _cookie_name(),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    return issue_csrf_token(resp, raw_token), revoked


def get_session_from_request():
    raw_token = request.cookies.get(_cookie_name())
    if not raw_token:
        return None

    sess = UserSession.query.filter_by(token_hash=_hash_token(raw_token)).first()
    if sess is None:
        return None

    now = datetime.utcnow()
    if not sess.is_active(now, current_app.config.get("IDLE_TIMEOUT_SECONDS", 1200)):
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess


def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    sess = UserSession.query.filter_by(token_hash=_hash_token(raw_token), revoked_at=None).first()
    if sess is None:
        return False
    sess.revoked_at = datetime.utcnow()
    db.session.commit()
    return True


def revoke_all_sessions(user_id: int) -> int:
    now = datetime.utcnow()
    count = (
        UserSession.query
        .filter_by(user_id=user_id, revoked_at=None)
        .update({UserSession.revoked_at: now}, synchronize_session=False)
    )
    db.session.commit()
    if count:
        logger.info("Revoked %d session(s) for user %s", count, user_id)
    return count
