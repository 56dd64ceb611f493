from __future__ import annotations

import tempfile
from datetime import datetime, timezone
from threading import Event, Thread
from unittest import TestCase
from unittest.mock import patch

from sqlalchemy import create_engine, event

from _support import memory_session_factory

from beestat.core.errors import LockTimeoutError
from beestat.db import models  # noqa: F401  registers the tables
from beestat.db.base import Base
from beestat.db.session import build_session_factory
from beestat.repositories.entities import ecobee_tokens
from beestat.repositories.locks import SERVER_LOCKS, _local_locks, _postgresql_lock, advisory_lock, lock_key
from beestat.repositories.users import create_anonymous_user
from beestat.services.tokens import EcobeeTokenService


class AdvisoryLockTests(TestCase):
    def setUp(self) -> None:
        self.db = memory_session_factory()()

    def tearDown(self) -> None:
        self.db.close()

    def test_second_holder_times_out_until_released(self) -> None:
        acquired = Event()
        release = Event()

        def hold() -> None:
            with advisory_lock(self.db, "ecobee_token->refresh(1)", timeout_seconds=1.0):
                acquired.set()
                release.wait(2.0)

        holder = Thread(target=hold)
        holder.start()
        self.assertTrue(acquired.wait(2.0))

        with self.assertRaises(LockTimeoutError):
            with advisory_lock(self.db, "ecobee_token->refresh(1)", timeout_seconds=0.05):
                pass

        release.set()
        holder.join(2.0)
        with advisory_lock(self.db, "ecobee_token->refresh(1)", timeout_seconds=0.5):
            pass
        self.assertNotIn("ecobee_token->refresh(1)", _local_locks)

    def test_lock_is_released_when_block_raises(self) -> None:
        with self.assertRaises(ValueError):
            with advisory_lock(self.db, "ecobee_token->refresh(2)", timeout_seconds=0.5):
                raise ValueError("boom")

        with advisory_lock(self.db, "ecobee_token->refresh(2)", timeout_seconds=0.05):
            pass

    def test_names_do_not_block_each_other(self) -> None:
        with advisory_lock(self.db, "ecobee_token->refresh(3)", timeout_seconds=0.5):
            with advisory_lock(self.db, "ecobee_token->refresh(4)", timeout_seconds=0.05):
                pass

    def test_unused_local_locks_are_dropped(self) -> None:
        with advisory_lock(self.db, "ecobee_token->refresh(5)", timeout_seconds=0.5):
            self.assertIn("ecobee_token->refresh(5)", _local_locks)

        self.assertNotIn("ecobee_token->refresh(5)", _local_locks)

    def test_lock_key_is_stable_signed_64_bit(self) -> None:
        key = lock_key("ecobee_token->refresh(1)")

        self.assertEqual(key, lock_key("ecobee_token->refresh(1)"))
        self.assertNotEqual(key, lock_key("ecobee_token->refresh(2)"))
        self.assertTrue(-(2**63) <= key < 2**63)


class ServerAdvisoryLockTests(TestCase):
    """Runs the PostgreSQL lock statements against SQLite functions that keep
    one owner per DBAPI connection, the way PostgreSQL session locks do."""

    def setUp(self) -> None:
        directory = tempfile.TemporaryDirectory()
        self.addCleanup(directory.cleanup)
        self.engine = create_engine(
            f"sqlite:///{directory.name}/beestat.db",
            connect_args={"check_same_thread": False},
        )
        self.addCleanup(self.engine.dispose)
        self.held: dict[int, int] = {}
        event.listen(self.engine, "connect", self._register_lock_functions)
        Base.metadata.create_all(self.engine)
        self.session_factory = build_session_factory(self.engine)

        server_locks = patch.dict(SERVER_LOCKS, {"sqlite": _postgresql_lock})
        server_locks.start()
        self.addCleanup(server_locks.stop)

    def _register_lock_functions(self, dbapi_connection, connection_record) -> None:
        owner = id(dbapi_connection)
        held = self.held

        def try_lock(key: int) -> int:
            return int(held.setdefault(key, owner) == owner)

        def unlock(key: int) -> int:
            if held.get(key) != owner:
                return 0
            del held[key]
            return 1

        dbapi_connection.create_function("pg_try_advisory_lock", 1, try_lock)
        dbapi_connection.create_function("pg_advisory_unlock", 1, unlock)

    def test_lock_survives_commit_and_is_released_on_its_connection(self) -> None:
        with self.session_factory() as db:
            with advisory_lock(db, "ecobee_token->refresh(1)", timeout_seconds=0.5):
                create_anonymous_user(db)
                db.commit()
                self.assertEqual(list(self.held), [lock_key("ecobee_token->refresh(1)")])

                with self.session_factory() as other:
                    with self.assertRaises(LockTimeoutError):
                        with advisory_lock(other, "ecobee_token->refresh(1)", timeout_seconds=0.1):
                            pass

        self.assertEqual(self.held, {})

    def test_token_refresh_releases_lock(self) -> None:
        with self.session_factory() as db:
            user_id = create_anonymous_user(db).id
            ecobee_tokens.create(
                db,
                user_id,
                {
                    "access_token": "old-access",
                    "refresh_token": "old-refresh",
                    "timestamp": datetime.now(timezone.utc),
                },
            )
            db.commit()
        service = EcobeeTokenService(
            exchange=lambda arguments: {"access_token": "new-access", "refresh_token": "new-refresh"},
            redirect_uri="http://localhost:8000/api/ecobee/initialize",
            session_factory=self.session_factory,
            lock_timeout_seconds=0.5,
        )

        service.refresh(user_id)

        self.assertEqual(self.held, {})
        service.refresh(user_id)
        with self.session_factory() as db:
            self.assertEqual(service.current(db, user_id).access_token, "new-access")
