import threading
from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from models.audit_log import AuditLog
from models.pending_login import PendingLogin
from models.two_factor_auth import AuthMethod
from security import pending_login
from security.locks import MemoryLock, get_lock

NOW = datetime(2026, 1, 1, 12, 0, 0)


class _SignallingLock(MemoryLock):
    def __init__(self):
        super().__init__()
        self.waiting = threading.Event()

    def acquire_wait(self, name, timeout):
        self.waiting.set()
        return super().acquire_wait(name, timeout)


def _open(user_id, now=NOW, ip="198.51.100.7"):
    return pending_login.create(
        user_id=user_id,
        user_login="admin@example.com",
        auth_method=AuthMethod.APP,
        has_recovery=False,
        email_address="ad*****@ex*****.com",
        ip=ip,
        now=now,
    )


def test_token_is_32_hex_chars(ctx, make_user):
    token = _open(make_user())
    assert len(token) == 32
    int(token, 16)


def test_session_expires_after_300_seconds(ctx, make_user):
    token = _open(make_user())

    assert pending_login.get(token, now=NOW) is not None
    assert pending_login.get(token, now=NOW + timedelta(seconds=299)) is not None
    assert pending_login.get(token, now=NOW + timedelta(seconds=300)) is None
    # lazy expiry: the row is still there for cleanup
    assert PendingLogin.query.filter_by(token=token).count() == 1


def test_unknown_or_empty_token(ctx):
    assert pending_login.get("0" * 32) is None
    assert pending_login.get("") is None
    assert pending_login.get(None) is None


def test_delete(ctx, make_user):
    token = _open(make_user())
    pending_login.delete(token)
    assert PendingLogin.query.count() == 0


def test_cleanup_removes_only_expired_and_audits(ctx, make_user):
    user_id = make_user()
    old = [_open(user_id, now=NOW - timedelta(minutes=10), ip=f"198.51.100.{i}") for i in range(5)]
    fresh = _open(user_id, now=NOW)

    deleted = pending_login.cleanup_expired(batch_size=2, now=NOW + timedelta(seconds=10))

    assert deleted == 5
    assert [row.token for row in PendingLogin.query.all()] == [fresh]
    for token in old:
        assert PendingLogin.query.filter_by(token=token).first() is None

    events = AuditLog.query.filter_by(action="LOGIN_FAIL").order_by(AuditLog.id).all()
    assert len(events) == 5
    assert {e.ip for e in events} == {f"198.51.100.{i}" for i in range(5)}
    for event in events:
        assert event.user_id == user_id
        assert event.login_name == "admin@example.com"
        assert event.timestamp == NOW - timedelta(minutes=10)
        assert event.meta == {"reason": "session_expired"}


def test_cleanup_with_nothing_expired(ctx, make_user):
    _open(make_user())
    assert pending_login.cleanup_expired(now=NOW) == 0
    assert PendingLogin.query.count() == 1


def test_cleanup_releases_lock(ctx, make_user):
    _open(make_user(), now=NOW - timedelta(hours=1))
    pending_login.cleanup_expired(now=NOW)

    lock = get_lock()
    assert lock.try_acquire(ctx.config["TWOFA_CLEANUP_LOCK_NAME"])
    lock.release(ctx.config["TWOFA_CLEANUP_LOCK_NAME"])


def test_waiter_returns_without_deleting(ctx, make_user):
    _open(make_user(), now=NOW - timedelta(hours=1))
    lock = MemoryLock()
    name = "cleanup-test"

    assert lock.try_acquire(name)
    try:
        assert pending_login.cleanup_expired(lock=lock, timeout=0.05, lock_name=name, now=NOW) == 0
    finally:
        lock.release(name)

    assert PendingLogin.query.count() == 1
    assert pending_login.cleanup_expired(lock=lock, lock_name=name, now=NOW) == 1


def test_concurrent_cleanup_runs_one_pass(ctx, make_user):
    user_id = make_user()
    for i in range(4):
        _open(user_id, now=NOW - timedelta(hours=1), ip=f"203.0.113.{i}")

    lock = _SignallingLock()
    name = "cleanup-test"
    results = []

    # hold the lock as the "running" cleanup while a second caller arrives
    assert lock.try_acquire(name)
    waiter = threading.Thread(
        target=lambda: results.append(
            pending_login.cleanup_expired(lock=lock, timeout=5, lock_name=name, now=NOW)
        )
    )
    waiter.start()
    assert lock.waiting.wait(5)
    try:
        deleted = pending_login._process_expired(batch_size=10, now=NOW)
    finally:
        lock.release(name)
    waiter.join(timeout=5)

    assert deleted == 4
    assert results == [0]
    assert PendingLogin.query.count() == 0
    assert AuditLog.query.filter_by(action="LOGIN_FAIL").count() == 4


def test_memory_lock_waits_for_release():
    lock = MemoryLock()
    assert lock.try_acquire("a")
    assert not lock.try_acquire("a")
    assert lock.try_acquire("b")
    assert not lock.acquire_wait("a", 0.01)

    lock.release("a")
    assert lock.acquire_wait("a", 0.01)
    lock.release("a")
    lock.release("b")


def test_failed_batch_read_is_logged_not_raised(ctx, make_user, monkeypatch):
    _open(make_user(), now=NOW - timedelta(hours=1))

    def broken(last_id, batch_size):
        raise OperationalError("SELECT ...", {}, Exception("connection lost"))

    monkeypatch.setattr(pending_login, "_next_batch", broken)
    assert pending_login.cleanup_expired(now=NOW) == 0

    monkeypatch.undo()
    assert PendingLogin.query.count() == 1
    lock = get_lock()
    assert lock.try_acquire(ctx.config["TWOFA_CLEANUP_LOCK_NAME"])
    lock.release(ctx.config["TWOFA_CLEANUP_LOCK_NAME"])


def test_lock_errors_are_logged_not_raised(ctx, make_user):
    class BrokenLock(MemoryLock):
        def try_acquire(self, name):
            raise OperationalError("SELECT GET_LOCK(...)", {}, Exception("server has gone away"))

    _open(make_user(), now=NOW - timedelta(hours=1))
    assert pending_login.cleanup_expired(lock=BrokenLock(), now=NOW) == 0
    assert PendingLogin.query.count() == 1


def test_cleanup_during_a_request_keeps_the_original_requester(ctx, make_user):
    _open(make_user(), now=NOW - timedelta(hours=1), ip=None)

    with ctx.test_request_context(
        "/auth/login",
        method="POST",
        headers={"User-Agent": "someone-else/1.0"},
        environ_base={"REMOTE_ADDR": "192.0.2.50"},
    ):
        assert pending_login.cleanup_expired(now=NOW) == 1

    event = AuditLog.query.filter_by(action="LOGIN_FAIL").one()
    assert event.ip is None
    assert event.user_agent is None
