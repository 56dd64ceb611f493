from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class EntityResponse(BaseModel):
    id: int
    user_id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class AddressResponse(EntityResponse):
    key: str
    normalized: dict[str, Any] | None


class EcobeeThermostatResponse(EntityResponse):
    guid: str
    identifier: str | None
    name: str | None
    utc_time: datetime | None
    model_number: str | None
    json_runtime: dict[str, Any] | None
    json_settings: dict[str, Any] | None
    json_location: dict[str, Any] | None
    json_program: dict[str, Any] | None
    json_events: list[Any] | None
    json_device: list[Any] | None
    json_house_details: dict[str, Any] | None
    json_equipment_status: list[str] | None
    json_notification_settings: dict[str, Any] | None
    json_weather: dict[str, Any] | None
    json_remote_sensors: list[Any] | None
    inactive: bool


class ThermostatResponse(EntityResponse):
    ecobee_thermostat_id: int
    thermostat_group_id: int | None
    address_id: int | None
    name: str | None
    temperature: float | None
    temperature_unit: str | None
    humidity: float | None
    first_connected: datetime | None
    property: dict[str, Any] | None
    filters: dict[str, Any] | None
    json_alerts: list[Any]
    system_type: dict[str, Any] | None
    inactive: bool


class EcobeeSensorResponse(EntityResponse):
    ecobee_thermostat_id: int
    identifier: str
    name: str | None
    type: str | None
    code: str | None
    in_use: bool
    json_capability: list[Any] | None
    inactive: bool


class SensorResponse(EntityResponse):
    ecobee_sensor_id: int
    thermostat_id: int
    name: str | None
    type: str | None
    in_use: bool
    temperature: float | None
    humidity: float | None
    occupancy: bool | None
    inactive: bool


class ThermostatGroupResponse(EntityResponse):
    address_id: int | None
    property_structure_type: str | None
    property_stories: int | None
    property_square_feet: int | None
    property_age: int | None
    system_type_heat: str | None
    system_type_heat_auxiliary: str | None
    system_type_cool: str | None
    address_latitude: float | None
    address_longitude: float | None
    inactive: bool
