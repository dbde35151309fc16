"""
Named mutual-exclusion locks shared by every request that can run cleanup.

Both backends offer the same three calls:
    try_acquire(name) -> bool       never waits
    acquire_wait(name, timeout)     waits up to `timeout` seconds
    release(name)
"""
import threading

from flask import current_app
from sqlalchemy import text


class MemoryLock:
    """Process-local locks, enough for a single-process deployment and tests."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def _lock_for(self, name: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    def try_acquire(self, name: str) -> bool:
        return self._lock_for(name).acquire(blocking=False)

    def acquire_wait(self, name: str, timeout: float) -> bool:
        return self._lock_for(name).acquire(timeout=max(0, timeout))

    def release(self, name: str) -> None:
        lock = self._lock_for(name)
        if lock.locked():
            lock.release()


class MySQLLock:
    """
    MySQL GET_LOCK / RELEASE_LOCK. The lock belongs to the connection that took
    it, so each held lock keeps its own connection until released.
    """

    def __init__(self, engine):
        self._engine = engine
        self._connections = {}

    def _get_lock(self, name: str, timeout: int) -> bool:
        conn = self._engine.connect()
        try:
            got = conn.execute(
                text("SELECT GET_LOCK(:name, :timeout)"), {"name": name, "timeout": int(timeout)}
            ).scalar()
        except Exception:
            conn.close()
            raise
        if got == 1:
            self._connections[name] = conn
            return True
        conn.close()
        return False

    def try_acquire(self, name: str) -> bool:
        return self._get_lock(name, 0)

    def acquire_wait(self, name: str, timeout: float) -> bool:
        return self._get_lock(name, timeout)

    def release(self, name: str) -> None:
        conn = self._connections.pop(name, None)
        if conn is None:
            return
        try:
            conn.execute(text("SELECT RELEASE_LOCK(:name)"), {"name": name})
        finally:
            conn.close()


def init_locks(app, db) -> None:
    backend = app.config.get("TWOFA_LOCK_BACKEND", "memory")
    if backend == "mysql":
        with app.app_context():
            lock = MySQLLock(db.engine)
    elif backend == "memory":
        lock = MemoryLock()
    else:
        raise ValueError(f"Unknown TWOFA_LOCK_BACKEND: {backend}")
    app.extensions["twofa_lock"] = lock


def get_lock():
    return current_app.extensions["twofa_lock"]
