from __future__ import annotations

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from beestat.api.rpc import serialize
from beestat.core.errors import NotFoundError
from beestat.dashboard.cache import ObjectCache
from beestat.dashboard.cards import SystemCard
from beestat.dashboard.comparison import comparison_attributes, comparison_period
from beestat.dashboard.formatting import CELSIUS, FAHRENHEIT
from beestat.dashboard.modals import HelpRecentActivityModal
from beestat.db.session import get_db
from beestat.dependencies import require_user_id
from beestat.repositories.entities import ecobee_thermostats, thermostat_groups, thermostats

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _load_cache(db: Session, user_id: int, thermostat_id: int) -> ObjectCache:
    try:
        thermostat = thermostats.get_by_id(db, user_id, thermostat_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc

    cache = ObjectCache()
    cache.set("thermostat", {thermostat.id: serialize(thermostat)})
    ecobee_thermostat = ecobee_thermostats.get_by_id(
        db,
        user_id,
        thermostat.ecobee_thermostat_id,
        include_deleted=True,
    )
    cache.set("ecobee_thermostat", {ecobee_thermostat.id: serialize(ecobee_thermostat)})
    if thermostat.thermostat_group_id is not None:
        group = thermostat_groups.get_by_id(db, user_id, thermostat.thermostat_group_id, include_deleted=True)
        cache.set("thermostat_group", {group.id: serialize(group)})
    return cache


@router.get("/cards/system", response_class=HTMLResponse)
def system_card(
    thermostat_id: int = Query(ge=1),
    temperature_unit: Literal["F", "C"] = Query(default="F"),
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    cache = _load_cache(db, user_id, thermostat_id)
    card = SystemCard(
        cache,
        thermostat_id,
        temperature_unit=CELSIUS if temperature_unit == "C" else FAHRENHEIT,
    )
    return HTMLResponse(content=card.to_html())


@router.get("/modals/help-recent-activity", response_class=HTMLResponse)
def help_recent_activity() -> HTMLResponse:
    return HTMLResponse(content=HelpRecentActivityModal().to_html())


@router.get("/comparison-attributes")
def get_comparison_attributes(
    thermostat_id: int = Query(ge=1),
    comparison_type: Literal["heat", "cool", "resist"] = Query(default="heat"),
    property_type: Literal["similar", "same_structure", "all"] = Query(default="similar"),
    region: Literal["region", "global"] = Query(default="region"),
    period: str = Query(default="0"),
    custom_date: date | None = Query(default=None),
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
) -> dict:
    cache = _load_cache(db, user_id, thermostat_id)
    thermostat = cache.get("thermostat")[thermostat_id]
    group_id = thermostat["thermostat_group_id"]
    if group_id is None:
        raise HTTPException(status_code=409, detail="Thermostat has not been grouped yet")
    group = cache.get("thermostat_group")[group_id]

    if period != "custom" and not period.isdigit():
        raise HTTPException(status_code=422, detail="period must be a number of months or 'custom'")
    try:
        begin, end = comparison_period(period if period == "custom" else int(period), custom=custom_date)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    return {
        "attributes": comparison_attributes(
            group,
            comparison_type,
            property_type=property_type,
            region=region,
        ),
        "period": {
            "begin": begin.isoformat() if begin is not None else None,
            "end": end.isoformat() if end is not None else None,
        },
    }
