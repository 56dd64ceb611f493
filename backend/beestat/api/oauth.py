from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from beestat.api.errors import to_http_exception
from beestat.core.config import Settings
from beestat.core.errors import BeestatError
from beestat.db.session import get_db
from beestat.dependencies import (
    get_ecobee_service,
    get_patreon_service,
    get_settings_from_app,
    require_user_id,
)
from beestat.services.ecobee import EcobeeService
from beestat.services.patreon import PatreonService

router = APIRouter(prefix="/api", tags=["oauth"])
logger = logging.getLogger("beestat.oauth_api")


@router.get("/ecobee/authorize")
def ecobee_authorize(ecobee_service: EcobeeService = Depends(get_ecobee_service)) -> RedirectResponse:
    return RedirectResponse(ecobee_service.authorize_url(), status_code=302)


@router.get("/ecobee/initialize")
def ecobee_initialize(
    code: str | None = Query(default=None),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_from_app),
    ecobee_service: EcobeeService = Depends(get_ecobee_service),
) -> RedirectResponse:
    try:
        session = ecobee_service.initialize(
            db,
            code=code,
            error=error,
            error_description=error_description,
        )
        db.commit()
    except BeestatError as exc:
        db.rollback()
        logger.warning("ecobee initialize failed message=%s code=%s", exc.message, exc.code)
        raise to_http_exception(exc) from exc

    response = RedirectResponse(f"{settings.beestat_root_uri}dashboard/", status_code=302)
    response.set_cookie(
        settings.session_cookie_name,
        session.session_key,
        max_age=settings.session_cookie_max_age_seconds,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/patreon/authorize")
def patreon_authorize(
    user_id: int = Depends(require_user_id),
    patreon_service: PatreonService = Depends(get_patreon_service),
) -> RedirectResponse:
    return RedirectResponse(patreon_service.authorize_url(), status_code=302)


@router.get("/patreon/initialize", response_class=HTMLResponse)
def patreon_initialize(
    code: str | None = Query(default=None),
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    patreon_service: PatreonService = Depends(get_patreon_service),
) -> HTMLResponse:
    try:
        page = patreon_service.initialize(db, user_id, code)
        db.commit()
    except BeestatError as exc:
        db.rollback()
        logger.warning("patreon initialize failed user_id=%s message=%s", user_id, exc.message)
        raise to_http_exception(exc) from exc
    return HTMLResponse(page)
