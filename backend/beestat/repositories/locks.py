from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock

from sqlalchemy import Connection, text
from sqlalchemy.orm import Session

from beestat.core.errors import LockTimeoutError

logger = logging.getLogger("beestat.locks")

POLL_SECONDS = 0.05

# name -> [lock, number of holders and waiters]
_local_locks: dict[str, list] = {}
_local_locks_guard = Lock()


@contextmanager
def advisory_lock(db: Session, name: str, *, timeout_seconds: float) -> Iterator[None]:
    """Hold a named lock for the duration of the block.

    PostgreSQL and MySQL use server side advisory locks, so the lock is shared
    by every process using the database. Those locks belong to the connection
    that took them, so they are taken and released on a dedicated connection
    that stays checked out for the whole block; the session is free to commit
    in between. Other dialects fall back to a lock that only spans this
    process.
    """
    engine = db.get_bind().engine
    server_lock = SERVER_LOCKS.get(engine.dialect.name)
    connection = engine.connect() if server_lock is not None else None
    try:
        if connection is not None:
            acquire, release = server_lock(connection, name, timeout_seconds)
        else:
            acquire, release = _local_lock(name, timeout_seconds)

        if not acquire():
            logger.warning("lock timeout name=%s timeout_seconds=%s", name, timeout_seconds)
            raise LockTimeoutError(name, timeout_seconds)
        try:
            yield
        finally:
            release()
    finally:
        if connection is not None:
            connection.close()


def lock_key(name: str) -> int:
    digest = hashlib.sha1(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def _postgresql_lock(connection: Connection, name: str, timeout_seconds: float):
    key = lock_key(name)

    def acquire() -> bool:
        deadline = time.monotonic() + timeout_seconds
        while True:
            if connection.scalar(text("SELECT pg_try_advisory_lock(:key)"), {"key": key}):
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(POLL_SECONDS)

    def release() -> None:
        connection.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": key})

    return acquire, release


def _mysql_lock(connection: Connection, name: str, timeout_seconds: float):
    def acquire() -> bool:
        result = connection.scalar(
            text("SELECT GET_LOCK(:name, :timeout)"),
            {"name": name, "timeout": timeout_seconds},
        )
        return result == 1

    def release() -> None:
        connection.execute(text("SELECT RELEASE_LOCK(:name)"), {"name": name})

    return acquire, release


SERVER_LOCKS = {
    "postgresql": _postgresql_lock,
    "mysql": _mysql_lock,
    "mariadb": _mysql_lock,
}


def _local_lock(name: str, timeout_seconds: float):
    with _local_locks_guard:
        entry = _local_locks.setdefault(name, [Lock(), 0])
        entry[1] += 1

    def forget() -> None:
        # The last holder or waiter drops the entry.
        with _local_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _local_locks[name]

    def acquire() -> bool:
        if entry[0].acquire(timeout=timeout_seconds):
            return True
        forget()
        return False

    def release() -> None:
        entry[0].release()
        forget()

    return acquire, release
