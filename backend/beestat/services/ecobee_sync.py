from __future__ import annotations

import hashlib
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from beestat.db.models import EcobeeSensor, EcobeeThermostat, Sensor, Thermostat
from beestat.repositories.crud import apply_changes
from beestat.repositories.entities import (
    ecobee_sensors,
    ecobee_thermostats,
    sensors,
    thermostat_groups,
    thermostats,
)
from beestat.repositories.locks import advisory_lock
from beestat.services.addresses import AddressService
from beestat.services.ecobee import EcobeeService
from beestat.services.ecobee_client import thermostat_guid
from beestat.services.thermostat_groups import sync_group_attributes

ECOBEE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
TEMPERATURE_LIMIT = 999.9

# raw API block -> ecobee_thermostat column
RAW_BLOCKS = {
    "runtime": "json_runtime",
    "extendedRuntime": "json_extended_runtime",
    "electricity": "json_electricity",
    "settings": "json_settings",
    "location": "json_location",
    "program": "json_program",
    "events": "json_events",
    "devices": "json_device",
    "technician": "json_technician",
    "utility": "json_utility",
    "management": "json_management",
    "alerts": "json_alerts",
    "weather": "json_weather",
    "houseDetails": "json_house_details",
    "oemCfg": "json_oem_cfg",
    "notificationSettings": "json_notification_settings",
    "privacy": "json_privacy",
    "version": "json_version",
    "remoteSensors": "json_remote_sensors",
    "audio": "json_audio",
}

FILTER_TYPES = {
    "furnaceFilter": "furnace",
    "humidifierFilter": "humidifier",
    "dehumidifierFilter": "dehumidifier",
    "ventilator": "ventilator",
    "uvLamp": "uv_lamp",
}

# Checked in order; ecobee sends free text like "Condo", "multiPlex", "rowHouse".
STRUCTURE_TYPES = (
    (re.compile(r"^detached$", re.IGNORECASE), "detached"),
    (re.compile(r"apartment", re.IGNORECASE), "apartment"),
    (re.compile(r"^condo", re.IGNORECASE), "condominium"),
    (re.compile(r"^loft", re.IGNORECASE), "loft"),
    (re.compile(r"multi[^a-z]?plex", re.IGNORECASE), "multiplex"),
    (re.compile(r"(town|row)(house|home)", re.IGNORECASE), "townhouse"),
    (re.compile(r"semi[^a-z]?detached", re.IGNORECASE), "semi-detached"),
)

USA_PATTERN = re.compile(r"(^USA?$)|(united.?states)", re.IGNORECASE)

DIFFERENTIAL_DETAILS = (
    "Low values for this setting will generally not cause any harm, but they do "
    "contribute to short cycling and decreased efficiency."
)


class EcobeeSyncService:
    """Reconciles the ecobee thermostat list with local rows for one user.

    Rows are looked up by their ecobee identity, created when missing and
    updated in place. Rows ecobee no longer reports are marked inactive.
    Values are only assigned when they differ, so an unchanged payload
    produces no writes.

    A full sync holds a per user lock and commits before releasing it, so the
    periodic loop, a forced sync and the RPC call never interleave for one
    user.
    """

    def __init__(
        self,
        *,
        ecobee: EcobeeService,
        addresses: AddressService,
        lock_timeout_seconds: float = 60.0,
    ) -> None:
        self._ecobee = ecobee
        self._addresses = addresses
        self._lock_timeout_seconds = lock_timeout_seconds
        self._logger = logging.getLogger("beestat.ecobee_sync")

    def lock_name(self, user_id: int) -> str:
        return f"ecobee_sync({user_id})"

    def sync(self, db: Session, user_id: int) -> dict[str, Any]:
        with advisory_lock(db, self.lock_name(user_id), timeout_seconds=self._lock_timeout_seconds):
            # One fetch feeds both passes.
            api_thermostats = self._ecobee.get_thermostats(db, user_id)
            synced_thermostats = self.sync_thermostats(db, user_id, api_thermostats)
            synced_sensors = self.sync_sensors(db, user_id, api_thermostats)
            db.commit()
        return {"ecobee_thermostat": synced_thermostats, "ecobee_sensor": synced_sensors}

    def sync_thermostats(
        self,
        db: Session,
        user_id: int,
        api_thermostats: list[dict[str, Any]] | None = None,
    ) -> dict[int, EcobeeThermostat]:
        if api_thermostats is None:
            api_thermostats = self._ecobee.get_thermostats(db, user_id)

        ecobee_thermostat_ids_to_keep: list[int] = []
        thermostat_ids_to_keep: list[int] = []
        for api_thermostat in api_thermostats:
            ecobee_thermostat, thermostat = self._thermostat_rows(db, user_id, api_thermostat)
            ecobee_thermostat_ids_to_keep.append(ecobee_thermostat.id)
            thermostat_ids_to_keep.append(thermostat.id)

            if apply_changes(ecobee_thermostat, ecobee_thermostat_values(api_thermostat)):
                db.flush()
            self._sync_thermostat(db, user_id, api_thermostat, thermostat)

        inactivated = 0
        for thermostat in thermostats.read(db, user_id):
            if thermostat.id in thermostat_ids_to_keep:
                continue
            ecobee_thermostat = ecobee_thermostats.get_by_id(
                db,
                user_id,
                thermostat.ecobee_thermostat_id,
                include_deleted=True,
            )
            changed = apply_changes(ecobee_thermostat, {"inactive": True})
            changed = apply_changes(thermostat, {"inactive": True}) or changed
            inactivated += int(changed)
        db.flush()

        self._logger.info(
            "synced thermostats user_id=%s returned=%s inactivated=%s",
            user_id,
            len(thermostat_ids_to_keep),
            inactivated,
        )
        return ecobee_thermostats.read_id(db, user_id, {"id": ecobee_thermostat_ids_to_keep})

    def sync_sensors(
        self,
        db: Session,
        user_id: int,
        api_thermostats: list[dict[str, Any]] | None = None,
    ) -> dict[int, EcobeeSensor]:
        if api_thermostats is None:
            api_thermostats = self._ecobee.get_thermostats(db, user_id)

        ecobee_sensor_ids_to_keep: list[int] = []
        for api_thermostat in api_thermostats:
            guid = thermostat_guid(api_thermostat)
            ecobee_thermostat = ecobee_thermostats.get(db, user_id, {"guid": guid})
            thermostat = (
                thermostats.get(db, user_id, {"ecobee_thermostat_id": ecobee_thermostat.id})
                if ecobee_thermostat is not None
                else None
            )
            if ecobee_thermostat is None or thermostat is None:
                self._logger.warning("sensor sync skipped unknown thermostat user_id=%s guid=%s", user_id, guid)
                continue

            for api_sensor in api_thermostat.get("remoteSensors") or []:
                ecobee_sensor, sensor = self._sensor_rows(db, user_id, ecobee_thermostat, thermostat, api_sensor)
                ecobee_sensor_ids_to_keep.append(ecobee_sensor.id)

                changed = apply_changes(ecobee_sensor, ecobee_sensor_values(api_sensor))
                changed = apply_changes(sensor, sensor_values(api_sensor)) or changed
                if changed:
                    db.flush()

        for ecobee_sensor in ecobee_sensors.read(db, user_id):
            if ecobee_sensor.id in ecobee_sensor_ids_to_keep:
                continue
            apply_changes(ecobee_sensor, {"inactive": True})
            sensor = sensors.get(db, user_id, {"ecobee_sensor_id": ecobee_sensor.id})
            if sensor is not None:
                apply_changes(sensor, {"inactive": True})
        db.flush()

        return ecobee_sensors.read_id(db, user_id, {"id": ecobee_sensor_ids_to_keep})

    def _thermostat_rows(
        self,
        db: Session,
        user_id: int,
        api_thermostat: dict[str, Any],
    ) -> tuple[EcobeeThermostat, Thermostat]:
        guid = thermostat_guid(api_thermostat)
        ecobee_thermostat = ecobee_thermostats.get(db, user_id, {"guid": guid})
        if ecobee_thermostat is None:
            ecobee_thermostat = ecobee_thermostats.create(db, user_id, {"guid": guid})
            self._logger.info("new thermostat user_id=%s guid=%s", user_id, guid)
            thermostat = None
        else:
            thermostat = thermostats.get(db, user_id, {"ecobee_thermostat_id": ecobee_thermostat.id})

        if thermostat is None:
            thermostat = thermostats.create(
                db,
                user_id,
                {"ecobee_thermostat_id": ecobee_thermostat.id, "json_alerts": []},
            )
        return ecobee_thermostat, thermostat

    def _sensor_rows(
        self,
        db: Session,
        user_id: int,
        ecobee_thermostat: EcobeeThermostat,
        thermostat: Thermostat,
        api_sensor: dict[str, Any],
    ) -> tuple[EcobeeSensor, Sensor]:
        identifier = str(api_sensor.get("id"))
        ecobee_sensor = ecobee_sensors.get(
            db,
            user_id,
            {"ecobee_thermostat_id": ecobee_thermostat.id, "identifier": identifier},
        )
        if ecobee_sensor is None:
            ecobee_sensor = ecobee_sensors.create(
                db,
                user_id,
                {"ecobee_thermostat_id": ecobee_thermostat.id, "identifier": identifier},
            )
            sensor = None
        else:
            sensor = sensors.get(db, user_id, {"ecobee_sensor_id": ecobee_sensor.id})

        if sensor is None:
            sensor = sensors.create(
                db,
                user_id,
                {"ecobee_sensor_id": ecobee_sensor.id, "thermostat_id": thermostat.id},
            )
        return ecobee_sensor, sensor

    def _sync_thermostat(
        self,
        db: Session,
        user_id: int,
        api_thermostat: dict[str, Any],
        thermostat: Thermostat,
    ) -> None:
        runtime = api_thermostat.get("runtime") or {}
        settings = api_thermostat.get("settings") or {}
        location = api_thermostat.get("location") or {}

        address = self._addresses.search(
            db,
            user_id,
            address_string(location),
            normalize_country(location.get("country")),
        )

        attributes: dict[str, Any] = {
            "name": api_thermostat.get("name"),
            "inactive": False,
            "temperature": sanitize_temperature(runtime.get("actualTemperature")),
            "temperature_unit": "°C" if settings.get("useCelsius") is True else "°F",
            "humidity": sanitize_humidity(runtime.get("actualHumidity")),
            "first_connected": parse_ecobee_time(runtime.get("firstConnected")),
            "address_id": address.id,
            "property": build_property(api_thermostat.get("houseDetails") or {}),
            "filters": build_filters(api_thermostat.get("notificationSettings") or {}),
            "json_alerts": build_alerts(
                api_thermostat.get("alerts") or [],
                settings,
                thermostat.json_alerts or [],
            ),
        }

        reported = (thermostat.system_type or {}).get("reported") or {
            "heat": None,
            "heat_auxiliary": None,
            "cool": None,
        }
        attributes["system_type"] = {
            "reported": reported,
            "detected": detect_system_type(
                settings,
                api_thermostat.get("devices") or [],
                address.latitude,
            ),
        }

        thermostat_group = thermostat_groups.get(db, user_id, {"address_id": address.id})
        if thermostat_group is None:
            thermostat_group = thermostat_groups.create(db, user_id, {"address_id": address.id})
        attributes["thermostat_group_id"] = thermostat_group.id

        if apply_changes(thermostat, attributes):
            db.flush()

        sync_group_attributes(db, user_id, thermostat_group.id)


def ecobee_thermostat_values(api_thermostat: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {
        "name": api_thermostat.get("name"),
        "identifier": api_thermostat.get("identifier"),
        "utc_time": parse_ecobee_time(api_thermostat.get("utcTime")),
        "model_number": api_thermostat.get("modelNumber"),
        "json_equipment_status": equipment_status_list(api_thermostat.get("equipmentStatus")),
        "inactive": False,
    }
    for block, column in RAW_BLOCKS.items():
        values[column] = api_thermostat.get(block)
    return values


def ecobee_sensor_values(api_sensor: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": api_sensor.get("name"),
        "type": api_sensor.get("type"),
        "code": api_sensor.get("code"),
        "in_use": api_sensor.get("inUse") is True,
        "json_capability": api_sensor.get("capability") or [],
        "inactive": False,
    }


def sensor_values(api_sensor: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {
        "name": api_sensor.get("name"),
        "type": api_sensor.get("type"),
        "in_use": api_sensor.get("inUse") is True,
        "temperature": None,
        "humidity": None,
        "occupancy": None,
        "inactive": False,
    }
    for capability in api_sensor.get("capability") or []:
        kind = capability.get("type")
        value = capability.get("value")
        if kind == "temperature":
            values["temperature"] = sanitize_temperature(value)
        elif kind == "humidity":
            values["humidity"] = sanitize_humidity(value)
        elif kind == "occupancy":
            values["occupancy"] = value == "true"
    return values


def equipment_status_list(value: Any) -> list[str]:
    if not isinstance(value, str) or value.strip() == "":
        return []
    return value.split(",")


def sanitize_temperature(raw: Any) -> float | None:
    """ecobee reports tenths of a degree and sometimes sends garbage."""
    number = _number(raw)
    if number is None:
        return None
    temperature = number / 10
    if temperature > TEMPERATURE_LIMIT or temperature < -TEMPERATURE_LIMIT:
        return None
    return temperature


def sanitize_humidity(raw: Any) -> float | None:
    number = _number(raw)
    if number is None or number > 100 or number < 0:
        return None
    return number


def parse_ecobee_time(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.strptime(value.strip(), ECOBEE_TIME_FORMAT)
    except ValueError:
        return None


def normalize_country(country: Any) -> str:
    if not isinstance(country, str) or country.strip() == "":
        return "USA"
    if USA_PATTERN.search(country.strip()):
        return "USA"
    return country.strip()


def address_string(location: dict[str, Any]) -> str:
    parts = [
        location.get(name)
        for name in ("streetAddress", "city", "provinceState", "postalCode")
        if location.get(name) is not None
    ]
    return ", ".join(str(part) for part in parts)


def build_property(house_details: dict[str, Any]) -> dict[str, Any]:
    structure_type = None
    style = house_details.get("style")
    if isinstance(style, str):
        for pattern, name in STRUCTURE_TYPES:
            if pattern.search(style):
                structure_type = name
                break

    stories = _digits(house_details.get("numberOfFloors"))
    square_feet = _digits(house_details.get("size"))
    return {
        "structure_type": structure_type,
        "stories": stories if stories else None,
        "square_feet": square_feet if square_feet else None,
        "age": _digits(house_details.get("age")),
    }


def build_filters(notification_settings: dict[str, Any]) -> dict[str, Any]:
    filters: dict[str, Any] = {}
    for notification in notification_settings.get("equipment") or []:
        key = FILTER_TYPES.get(notification.get("type"))
        if key is None or notification.get("enabled") is not True:
            continue
        filters[key] = {
            "last_changed": notification.get("filterLastChanged"),
            "life": notification.get("filterLife"),
            "life_units": notification.get("filterLifeUnits"),
        }
    return filters


def alert_guid(alert: dict[str, Any]) -> str:
    # Text and source only: beestat alerts are regenerated with a new timestamp every sync.
    return hashlib.sha1(f"{alert['text']}{alert['source']}".encode("utf-8")).hexdigest()


def build_alerts(
    api_alerts: list[dict[str, Any]],
    settings: dict[str, Any],
    existing_alerts: list[dict[str, Any]],
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Merge fresh alerts into the stored list.

    Stored alerts keep their state (e.g. dismissed), vanished ones are
    dropped and new ones are appended.
    """
    now = now or datetime.now(timezone.utc)
    new_alerts: dict[str, dict[str, Any]] = {}

    for api_alert in api_alerts:
        alert = {
            "timestamp": _alert_timestamp(api_alert.get("date"), api_alert.get("time")),
            "text": api_alert.get("text"),
            "code": api_alert.get("alertNumber"),
            "details": "N/A",
            "source": "thermostat",
            "dismissed": False,
        }
        alert["guid"] = alert_guid(alert)
        new_alerts[alert["guid"]] = alert

    differentials = (
        ("stage1CoolingDifferentialTemp", "Cool", 100000),
        ("stage1HeatingDifferentialTemp", "Heat", 100001),
    )
    for setting, label, code in differentials:
        value = _number(settings.get(setting))
        if value is None or value / 10 != 0.5:
            continue
        alert = {
            "timestamp": now.strftime(ECOBEE_TIME_FORMAT),
            "text": f"{label} Differential Temperature is set to 0.5°F; we recommend at least 1.0°F",
            "details": DIFFERENTIAL_DETAILS,
            "code": code,
            "source": "beestat",
            "dismissed": False,
        }
        alert["guid"] = alert_guid(alert)
        new_alerts[alert["guid"]] = alert

    existing_guids = {alert.get("guid") for alert in existing_alerts}
    merged = [alert for alert in existing_alerts if alert.get("guid") in new_alerts]
    merged.extend(alert for guid, alert in new_alerts.items() if guid not in existing_guids)
    return merged


def detect_system_type(
    settings: dict[str, Any],
    devices: list[dict[str, Any]],
    latitude: float | None,
) -> dict[str, str | None]:
    # Outputs get a type once a wire is connected, so they show what is hooked up.
    outputs = [
        output.get("type")
        for device in devices
        for output in device.get("outputs") or []
        if output.get("type") != "none"
    ]

    if settings.get("heatPumpGroundWater") is True:
        heat = "geothermal"
    elif settings.get("hasHeatPump") is True:
        heat = "compressor"
    elif settings.get("hasBoiler") is True:
        heat = "boiler"
    elif "heat1" in outputs:
        # The further north, the less likely the heat is electric.
        heat = "gas" if latitude is not None and latitude > 30 else "electric"
    else:
        heat = "none"

    if heat in ("gas", "boiler", "oil", "electric"):
        heat_auxiliary: str | None = "none"
    elif heat == "compressor":
        heat_auxiliary = "electric"
    else:
        heat_auxiliary = None

    if settings.get("heatPumpGroundWater") is True:
        cool = "geothermal"
    elif "compressor1" in outputs:
        cool = "compressor"
    else:
        cool = "none"

    return {"heat": heat, "heat_auxiliary": heat_auxiliary, "cool": cool}


def _alert_timestamp(date: Any, time: Any) -> str | None:
    try:
        parsed = datetime.strptime(f"{date} {time}", ECOBEE_TIME_FORMAT)
    except (TypeError, ValueError):
        return None
    return parsed.strftime(ECOBEE_TIME_FORMAT)


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _digits(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    text = str(value).strip()
    return int(text) if text.isascii() and text.isdigit() else None
