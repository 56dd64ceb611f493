from typing import TYPE_CHECKING

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from beestat.core.config import Settings
from beestat.db.models import UserSession
from beestat.db.session import get_db
from beestat.repositories.users import get_active_session

if TYPE_CHECKING:
    from beestat.services.ecobee import EcobeeService
    from beestat.services.patreon import PatreonService
    from beestat.services.sync_scheduler import EcobeeSyncScheduler


def get_settings_from_app(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        raise HTTPException(status_code=503, detail="Application settings are not initialized")
    return settings


def _service(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} is not initialized")
    return service


def get_ecobee_service(request: Request) -> "EcobeeService":
    return _service(request, "ecobee_service", "ecobee service")


def get_patreon_service(request: Request) -> "PatreonService":
    return _service(request, "patreon_service", "Patreon service")


def get_sync_scheduler(request: Request) -> "EcobeeSyncScheduler":
    return _service(request, "sync_scheduler", "Sync scheduler")


def get_current_session(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_from_app),
) -> UserSession | None:
    session_key = request.cookies.get(settings.session_cookie_name)
    if not session_key:
        return None
    return get_active_session(db, session_key)


def require_user_id(session: UserSession | None = Depends(get_current_session)) -> int:
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
    return session.user_id
