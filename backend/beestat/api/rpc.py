from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from beestat.api.errors import to_http_exception
from beestat.core.errors import AccessDeniedError, BeestatError
from beestat.db.base import Base
from beestat.db.models import (
    Address,
    EcobeeSensor,
    EcobeeThermostat,
    Sensor,
    Thermostat,
    ThermostatGroup,
    UserSession,
)
from beestat.db.session import get_db
from beestat.dependencies import get_current_session
from beestat.repositories.crud import CrudRepository
from beestat.repositories.entities import (
    addresses,
    ecobee_sensors,
    ecobee_thermostats,
    sensors,
    thermostat_groups,
    thermostats,
)
from beestat.repositories.users import delete_sessions
from beestat.schemas.entities import (
    AddressResponse,
    EcobeeSensorResponse,
    EcobeeThermostatResponse,
    SensorResponse,
    ThermostatGroupResponse,
    ThermostatResponse,
)
from beestat.schemas.rpc import RpcCall, RpcResponse

router = APIRouter(prefix="/api", tags=["rpc"])
logger = logging.getLogger("beestat.rpc")

MAX_BATCH_CALLS = 50

RESPONSE_SCHEMAS: dict[type[Base], type[BaseModel]] = {
    Address: AddressResponse,
    EcobeeThermostat: EcobeeThermostatResponse,
    EcobeeSensor: EcobeeSensorResponse,
    Thermostat: ThermostatResponse,
    Sensor: SensorResponse,
    ThermostatGroup: ThermostatGroupResponse,
}


@dataclass(frozen=True)
class RpcContext:
    request: Request
    db: Session
    user_id: int | None
    session_key: str | None


Handler = Callable[[RpcContext, dict[str, Any]], Any]


@dataclass(frozen=True)
class RpcResource:
    """Methods a resource exposes; private ones need a logged in session."""

    public: dict[str, Handler]
    private: dict[str, Handler]

    def resolve(self, method: str, *, logged_in: bool) -> Handler:
        if method in self.public:
            return self.public[method]
        if method in self.private:
            if not logged_in:
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
            return self.private[method]
        raise AccessDeniedError(f"Method {method} is not exposed")


def _read_id(repository: CrudRepository) -> Handler:
    def handler(context: RpcContext, arguments: dict[str, Any]) -> Any:
        return repository.read_id(context.db, context.user_id, arguments.get("attributes"))

    return handler


def _thermostat_sync(context: RpcContext, arguments: dict[str, Any]) -> Any:
    sync_service = getattr(context.request.app.state, "ecobee_sync_service", None)
    if sync_service is None:
        raise HTTPException(status_code=503, detail="ecobee sync service is not initialized")
    sync_service.sync(context.db, context.user_id)
    return thermostats.read_id(context.db, context.user_id)


def _user_log_out(context: RpcContext, arguments: dict[str, Any]) -> Any:
    # "all" ends every session of the user, otherwise only the calling one.
    session_key = None if arguments.get("all") is True else context.session_key
    return delete_sessions(context.db, user_id=context.user_id, session_key=session_key) > 0


def _user_sync_patreon_status(context: RpcContext, arguments: dict[str, Any]) -> Any:
    patreon_service = getattr(context.request.app.state, "patreon_service", None)
    if patreon_service is None:
        raise HTTPException(status_code=503, detail="Patreon service is not initialized")
    return patreon_service.sync_patreon_status(context.db, context.user_id).patreon_status


RESOURCES: dict[str, RpcResource] = {
    "address": RpcResource(public={}, private={"read_id": _read_id(addresses)}),
    "ecobee_thermostat": RpcResource(public={}, private={"read_id": _read_id(ecobee_thermostats)}),
    "ecobee_sensor": RpcResource(public={}, private={"read_id": _read_id(ecobee_sensors)}),
    "thermostat": RpcResource(
        public={},
        private={"read_id": _read_id(thermostats), "sync": _thermostat_sync},
    ),
    "sensor": RpcResource(public={}, private={"read_id": _read_id(sensors)}),
    "thermostat_group": RpcResource(public={}, private={"read_id": _read_id(thermostat_groups)}),
    "user": RpcResource(
        public={},
        private={"log_out": _user_log_out, "sync_patreon_status": _user_sync_patreon_status},
    ),
}


def serialize(value: Any) -> Any:
    if isinstance(value, Base):
        schema = RESPONSE_SCHEMAS.get(type(value))
        if schema is None:
            raise BeestatError(f"{type(value).__name__} cannot be returned")
        return schema.model_validate(value).model_dump(mode="json")
    if isinstance(value, dict):
        return {str(key): serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    return value


def _execute(context: RpcContext, call: RpcCall) -> Any:
    resource = RESOURCES.get(call.resource)
    if resource is None:
        raise AccessDeniedError(f"Resource {call.resource} is not exposed")
    handler = resource.resolve(call.method, logged_in=context.user_id is not None)
    return serialize(handler(context, call.arguments))


def _context(request: Request, db: Session, session: UserSession | None) -> RpcContext:
    return RpcContext(
        request=request,
        db=db,
        user_id=session.user_id if session is not None else None,
        session_key=session.session_key if session is not None else None,
    )


@router.post("/batch", response_model=RpcResponse)
def batch_endpoint(
    request: Request,
    calls: list[RpcCall] = Body(...),
    db: Session = Depends(get_db),
    session: UserSession | None = Depends(get_current_session),
) -> RpcResponse:
    if not calls or len(calls) > MAX_BATCH_CALLS:
        raise HTTPException(status_code=400, detail=f"A batch holds 1 to {MAX_BATCH_CALLS} calls")
    aliases = [call.alias for call in calls if call.alias is not None]
    if len(aliases) != len(set(aliases)):
        raise HTTPException(status_code=400, detail="Batch aliases must be unique")

    context = _context(request, db, session)
    data: dict[str, Any] = {}
    try:
        for index, call in enumerate(calls):
            data[call.alias if call.alias is not None else str(index)] = _execute(context, call)
        db.commit()
    except BeestatError as exc:
        db.rollback()
        logger.info("batch call failed message=%s code=%s", exc.message, exc.code)
        raise to_http_exception(exc) from exc
    except HTTPException:
        db.rollback()
        raise
    return RpcResponse(data=data)


@router.post("/{resource}/{method}", response_model=RpcResponse)
def call_endpoint(
    resource: str,
    method: str,
    request: Request,
    arguments: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    session: UserSession | None = Depends(get_current_session),
) -> RpcResponse:
    call = RpcCall(resource=resource, method=method, arguments=arguments or {})
    context = _context(request, db, session)
    try:
        data = _execute(context, call)
        db.commit()
    except BeestatError as exc:
        db.rollback()
        logger.info("call failed resource=%s method=%s message=%s", resource, method, exc.message)
        raise to_http_exception(exc) from exc
    except HTTPException:
        db.rollback()
        raise
    return RpcResponse(data=data)
