from fastapi import APIRouter, Depends, HTTPException, status

from beestat.dependencies import get_sync_scheduler, require_user_id
from beestat.schemas.sync import SyncForceResponse, SyncStatusResponse
from beestat.services.sync_scheduler import EcobeeSyncScheduler

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/status", response_model=SyncStatusResponse)
def get_sync_status(
    user_id: int = Depends(require_user_id),
    sync_scheduler: EcobeeSyncScheduler = Depends(get_sync_scheduler),
) -> SyncStatusResponse:
    return SyncStatusResponse.model_validate(sync_scheduler.get_status_snapshot())


@router.post("/force", response_model=SyncForceResponse, status_code=status.HTTP_202_ACCEPTED)
def post_sync_force(
    user_id: int = Depends(require_user_id),
    sync_scheduler: EcobeeSyncScheduler = Depends(get_sync_scheduler),
) -> SyncForceResponse:
    try:
        sync_scheduler.request_force_sync(user_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    return SyncForceResponse(status="accepted", message="ecobee sync started asynchronously")
