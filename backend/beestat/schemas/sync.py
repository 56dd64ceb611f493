from pydantic import BaseModel


class SyncStatusResponse(BaseModel):
    enabled: bool
    running: bool
    interval_seconds: int
    next_due_ts: str | None
    last_run_ts: str | None
    last_synced: int
    last_failed_user_ids: list[int]
    force_in_progress: bool


class SyncForceResponse(BaseModel):
    status: str
    message: str
