from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from threading import Event, Lock, Thread
from typing import Any

from sqlalchemy.orm import sessionmaker

from beestat.core.config import Settings
from beestat.db.session import session_scope
from beestat.repositories.entities import list_user_ids_with_ecobee_token
from beestat.services.ecobee_sync import EcobeeSyncService


class EcobeeSyncScheduler:
    """Background thread that syncs every user holding an ecobee token.

    Each user runs in their own session so one failing account neither rolls
    back nor stops the others.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        session_factory: sessionmaker,
        sync_service: EcobeeSyncService,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory
        self._sync_service = sync_service
        self._logger = logging.getLogger("beestat.sync_scheduler")
        self._stop_event = Event()
        self._thread: Thread | None = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ecobee-sync-force")

        self._lock = Lock()
        self._running = False
        self._next_due_ts: datetime | None = None
        self._last_run_ts: datetime | None = None
        self._last_synced: int = 0
        self._last_failed: list[int] = []
        self._force_future: Future[None] | None = None

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._next_due_ts = datetime.now(timezone.utc)
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="ecobee-sync", daemon=True)
        self._thread.start()
        self._logger.info(
            "started ecobee sync enabled=%s interval_seconds=%s",
            self._settings.sync_enabled,
            self._settings.sync_interval_seconds,
        )

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        self._executor.shutdown(wait=False, cancel_futures=False)
        with self._lock:
            self._running = False

    def request_force_sync(self, user_id: int) -> None:
        if not self._settings.sync_enabled:
            raise RuntimeError("ecobee sync is disabled by configuration")
        with self._lock:
            force_future = self._force_future
            if force_future is not None and not force_future.done():
                raise RuntimeError("An ecobee force sync is already in progress")
            self._force_future = self._executor.submit(self._force_worker, user_id)

    def get_status_snapshot(self) -> dict[str, Any]:
        with self._lock:
            force_future = self._force_future
            return {
                "enabled": self._settings.sync_enabled,
                "running": self._running and not self._stop_event.is_set(),
                "interval_seconds": self._settings.sync_interval_seconds,
                "next_due_ts": _to_iso(self._next_due_ts),
                "last_run_ts": _to_iso(self._last_run_ts),
                "last_synced": self._last_synced,
                "last_failed_user_ids": list(self._last_failed),
                "force_in_progress": bool(force_future and not force_future.done()),
            }

    def run_once(self) -> tuple[int, list[int]]:
        with self._session_factory() as db:
            user_ids = list_user_ids_with_ecobee_token(db)

        synced = 0
        failed: list[int] = []
        for user_id in user_ids:
            if self._stop_event.is_set():
                break
            if self.sync_user(user_id):
                synced += 1
            else:
                failed.append(user_id)

        with self._lock:
            self._last_run_ts = datetime.now(timezone.utc)
            self._last_synced = synced
            self._last_failed = failed
        return synced, failed

    def sync_user(self, user_id: int) -> bool:
        try:
            with session_scope(self._session_factory) as db:
                self._sync_service.sync(db, user_id)
        except Exception:
            self._logger.exception("ecobee sync failed user_id=%s", user_id)
            return False
        return True

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            if not self._settings.sync_enabled:
                self._stop_event.wait(1.0)
                continue

            now = datetime.now(timezone.utc)
            with self._lock:
                next_due = self._next_due_ts
            if next_due is None or now >= next_due:
                try:
                    synced, failed = self.run_once()
                    self._logger.info("periodic ecobee sync synced=%s failed=%s", synced, len(failed))
                except Exception:
                    self._logger.exception("periodic ecobee sync failed")
                with self._lock:
                    self._next_due_ts = datetime.now(timezone.utc) + timedelta(
                        seconds=self._settings.sync_interval_seconds
                    )

            self._stop_event.wait(1.0)

    def _force_worker(self, user_id: int) -> None:
        self.sync_user(user_id)


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
