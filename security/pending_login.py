import logging
import secrets
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db, transaction
from models.pending_login import PendingLogin
from security.locks import get_lock
from utils.audit import build_event

logger = logging.getLogger(__name__)

TOKEN_BYTES = 16


def create(user_id: int, user_login: str, auth_method: int, has_recovery: bool,
           email_address: str, ip: str = None, now: datetime = None) -> str:
    """
    Stores a pending login and returns its token (hex of 16 random bytes).
    """
    now = now or datetime.utcnow()
    lifetime = current_app.config.get("TWOFA_SESSION_EXPIRY_SECONDS", 300)
    token = secrets.token_hex(TOKEN_BYTES)

    row = PendingLogin(
        token=token,
        user_id=user_id,
        user_login=(user_login or "")[:255],
        auth_method=int(auth_method),
        has_recovery=bool(has_recovery),
        email_address=email_address,
        ip=ip,
        created=now,
        expires=now + timedelta(seconds=lifetime),
    )
    db.session.add(row)
    db.session.commit()
    return token


def get(token: str, now: datetime = None):
    """
    The pending login for `token`, or None if unknown or expired.
    Expired rows are left for cleanup_expired().
    """
    if not token or not isinstance(token, str):
        return None

    row = PendingLogin.query.filter_by(token=token).first()
    if row is None:
        return None

    now = now or datetime.utcnow()
    if row.expires <= now:
        return None
    return row


def delete(token: str) -> None:
    if not token:
        return
    PendingLogin.query.filter_by(token=token).delete()
    db.session.commit()


def _next_batch(last_id: int, batch_size: int) -> list:
    return (
        PendingLogin.query
        .filter(PendingLogin.id > last_id)
        .order_by(PendingLogin.id.asc())
        .limit(batch_size)
        .all()
    )


def _process_expired(batch_size: int, now: datetime) -> int:
    """
    Walks every pending login in id order. Each batch's audit rows and
    deletions commit together; a failing batch is rolled back and ends the run.
    """
    deleted = 0
    last_id = 0

    while True:
        try:
            rows = _next_batch(last_id, batch_size)
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Reading pending 2FA sessions after id %s failed", last_id)
            break
        if not rows:
            break
        last_id = rows[-1].id

        expired = [row for row in rows if row.expires <= now]
        if not expired:
            continue

        try:
            with transaction():
                for row in expired:
                    db.session.add(build_event(
                        "LOGIN_FAIL",
                        user_id=row.user_id,
                        login_name=row.user_login,
                        ip=row.ip,
                        timestamp=row.created,
                        metadata={"reason": "session_expired"},
                    ))
                PendingLogin.query.filter(
                    PendingLogin.id.in_([row.id for row in expired])
                ).delete(synchronize_session=False)
        except SQLAlchemyError:
            logger.exception("Expired 2FA session cleanup failed after id %s", last_id)
            break
        deleted += len(expired)

    return deleted


def _release(lock, lock_name: str) -> None:
    try:
        lock.release(lock_name)
    except SQLAlchemyError:
        logger.exception("Releasing lock %s failed", lock_name)


def cleanup_expired(lock=None, timeout: float = None, batch_size: int = None,
                    lock_name: str = None, now: datetime = None) -> int:
    """
    Deletes expired pending logins, recording each as a failed login.

    Only one caller runs at a time. A caller that finds the lock taken waits
    (at most `timeout` seconds) for the running cleanup to finish and returns 0
    without scanning again. Returns the number of sessions removed.

    Database errors are logged and never raised to the caller.
    """
    if lock is None:
        lock = get_lock()
    if lock_name is None:
        lock_name = current_app.config.get("TWOFA_CLEANUP_LOCK_NAME", "twofa_cleanup_lock")

    try:
        acquired = lock.try_acquire(lock_name)
        if not acquired:
            if timeout is None:
                timeout = current_app.config.get("TWOFA_CLEANUP_TIMEOUT_SECONDS", 60)
            if lock.acquire_wait(lock_name, timeout):
                # only a signal that the other run finished
                _release(lock, lock_name)
            return 0
    except SQLAlchemyError:
        logger.exception("Taking lock %s for 2FA session cleanup failed", lock_name)
        return 0

    try:
        if batch_size is None:
            batch_size = current_app.config.get("TWOFA_CLEANUP_BATCH_SIZE", 1000)
        deleted = _process_expired(batch_size, now or datetime.utcnow())
        if deleted:
            logger.info("Removed %d expired 2FA sessions", deleted)
        return deleted
    finally:
        _release(lock, lock_name)
