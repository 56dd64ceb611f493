from __future__ import annotations

from collections import Counter
from typing import Any

from sqlalchemy.orm import Session

from beestat.db.models import Thermostat, ThermostatGroup
from beestat.repositories.crud import apply_changes
from beestat.repositories.entities import addresses, list_group_thermostats, thermostat_groups

PROPERTY_KEYS = ("structure_type", "stories", "square_feet", "age")
SYSTEM_TYPE_KEYS = ("heat", "heat_auxiliary", "cool")


def sync_group_attributes(db: Session, user_id: int, thermostat_group_id: int) -> ThermostatGroup:
    """Roll the group's active thermostats up onto the group row.

    Each column takes the most common non-null value among the thermostats;
    for system types a user reported value beats the detected one.
    """
    group = thermostat_groups.get_by_id(db, user_id, thermostat_group_id)
    members = list_group_thermostats(db, user_id, thermostat_group_id)

    values: dict[str, Any] = {}
    for key in PROPERTY_KEYS:
        values[f"property_{key}"] = most_common(
            [(member.property or {}).get(key) for member in members]
        )
    for key in SYSTEM_TYPE_KEYS:
        values[f"system_type_{key}"] = most_common(
            [system_type_value(member, key) for member in members]
        )

    latitude = longitude = None
    if group.address_id is not None:
        address = addresses.get_by_id(db, user_id, group.address_id, include_deleted=True)
        latitude, longitude = address.latitude, address.longitude
    values["address_latitude"] = latitude
    values["address_longitude"] = longitude

    if apply_changes(group, values):
        db.flush()
    return group


def system_type_value(thermostat: Thermostat, key: str) -> str | None:
    system_type = thermostat.system_type or {}
    reported = (system_type.get("reported") or {}).get(key)
    if reported is not None:
        return reported
    return (system_type.get("detected") or {}).get(key)


def most_common(values: list[Any]) -> Any:
    counts = Counter(value for value in values if value is not None)
    if not counts:
        return None
    return counts.most_common(1)[0][0]
