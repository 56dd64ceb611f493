from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from beestat.db.models import (
    Address,
    EcobeeSensor,
    EcobeeThermostat,
    EcobeeToken,
    PatreonToken,
    Sensor,
    Thermostat,
    ThermostatGroup,
)
from beestat.repositories.crud import CrudRepository

addresses = CrudRepository(Address)
ecobee_thermostats = CrudRepository(EcobeeThermostat)
ecobee_sensors = CrudRepository(EcobeeSensor)
ecobee_tokens = CrudRepository(EcobeeToken)
patreon_tokens = CrudRepository(PatreonToken)
thermostats = CrudRepository(Thermostat)
thermostat_groups = CrudRepository(ThermostatGroup)
sensors = CrudRepository(Sensor)


def list_ecobee_thermostats_by_guid(db: Session, guids: list[str]) -> list[EcobeeThermostat]:
    # Not user scoped: used while logging in, before a user is known.
    if not guids:
        return []
    statement = (
        select(EcobeeThermostat)
        .where(EcobeeThermostat.guid.in_(guids), EcobeeThermostat.deleted.is_(False))
        .order_by(EcobeeThermostat.id.asc())
    )
    return list(db.scalars(statement))


def list_user_ids_with_ecobee_token(db: Session) -> list[int]:
    statement = (
        select(EcobeeToken.user_id)
        .where(EcobeeToken.deleted.is_(False))
        .order_by(EcobeeToken.user_id.asc())
    )
    return [int(user_id) for user_id in db.scalars(statement)]


def list_group_thermostats(db: Session, user_id: int, thermostat_group_id: int) -> list[Thermostat]:
    return thermostats.read(
        db,
        user_id,
        {"thermostat_group_id": thermostat_group_id, "inactive": False},
    )
