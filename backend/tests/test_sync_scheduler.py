from __future__ import annotations

from datetime import datetime, timezone
from threading import Event
from unittest import TestCase

from _support import memory_session_factory

from beestat.core.config import Settings
from beestat.core.errors import EcobeeApiError
from beestat.repositories.entities import ecobee_tokens
from beestat.repositories.users import create_anonymous_user
from beestat.services.sync_scheduler import EcobeeSyncScheduler


class _SyncService:
    def __init__(self, failing_user_ids: set[int] | None = None) -> None:
        self.failing_user_ids = failing_user_ids or set()
        self.synced: list[int] = []
        self.done = Event()

    def sync(self, db, user_id: int) -> dict:
        self.synced.append(user_id)
        self.done.set()
        if user_id in self.failing_user_ids:
            raise EcobeeApiError(status_code=500, detail="Processing error.")
        return {}


class EcobeeSyncSchedulerTests(TestCase):
    def setUp(self) -> None:
        self.session_factory = memory_session_factory()
        with self.session_factory() as db:
            self.user_ids = []
            for index in range(3):
                user_id = create_anonymous_user(db).id
                self.user_ids.append(user_id)
                ecobee_tokens.create(
                    db,
                    user_id,
                    {
                        "access_token": f"access-{index}",
                        "refresh_token": f"refresh-{index}",
                        "timestamp": datetime.now(timezone.utc),
                        "deleted": index == 2,
                    },
                )
            db.commit()

    def _scheduler(self, sync_service: _SyncService, **settings) -> EcobeeSyncScheduler:
        return EcobeeSyncScheduler(
            settings=Settings(**settings),
            session_factory=self.session_factory,
            sync_service=sync_service,
        )

    def test_run_once_syncs_users_with_a_token_and_isolates_failures(self) -> None:
        sync_service = _SyncService(failing_user_ids={self.user_ids[0]})
        scheduler = self._scheduler(sync_service)

        with self.assertLogs("beestat.sync_scheduler", level="ERROR"):
            synced, failed = scheduler.run_once()

        self.assertEqual(sync_service.synced, self.user_ids[:2])
        self.assertEqual(synced, 1)
        self.assertEqual(failed, [self.user_ids[0]])
        snapshot = scheduler.get_status_snapshot()
        self.assertEqual(snapshot["last_failed_user_ids"], [self.user_ids[0]])
        self.assertIsNotNone(snapshot["last_run_ts"])

    def test_force_sync(self) -> None:
        sync_service = _SyncService()
        scheduler = self._scheduler(sync_service)

        scheduler.request_force_sync(self.user_ids[1])

        self.assertTrue(sync_service.done.wait(2.0))
        self.assertEqual(sync_service.synced, [self.user_ids[1]])
        scheduler.stop()

    def test_force_sync_disabled(self) -> None:
        scheduler = self._scheduler(_SyncService(), sync_enabled=False)

        with self.assertRaises(RuntimeError):
            scheduler.request_force_sync(self.user_ids[0])
        self.assertFalse(scheduler.get_status_snapshot()["enabled"])
