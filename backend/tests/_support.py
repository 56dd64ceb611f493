from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from beestat.db import models  # noqa: F401  registers the tables
from beestat.db.base import Base
from beestat.db.session import build_session_factory


def memory_session_factory() -> sessionmaker:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return build_session_factory(engine)


def api_thermostat(**overrides: Any) -> dict[str, Any]:
    thermostat: dict[str, Any] = {
        "identifier": "311012345678",
        "name": "Main Floor",
        "modelNumber": "athenaSmart",
        "utcTime": "2026-10-19 12:00:00",
        "equipmentStatus": "fan,auxHeat1",
        "runtime": {
            "firstConnected": "2019-03-01 17:22:10",
            "actualTemperature": 715,
            "actualHumidity": 45,
            "desiredHeat": 700,
            "desiredCool": 760,
        },
        "settings": {
            "hvacMode": "heat",
            "useCelsius": False,
            "hasHeatPump": False,
            "stage1HeatingDifferentialTemp": 5,
            "stage1CoolingDifferentialTemp": 10,
        },
        "location": {
            "streetAddress": "1 Main St",
            "city": "Springfield",
            "provinceState": "IL",
            "country": "USA",
            "postalCode": "62701",
        },
        "program": {
            "currentClimateRef": "home",
            "climates": [{"climateRef": "home", "name": "Home", "heatTemp": 700, "coolTemp": 760}],
        },
        "houseDetails": {"style": "detached", "numberOfFloors": 2, "size": 2000, "age": 20},
        "devices": [{"outputs": [{"type": "heat1"}, {"type": "compressor1"}, {"type": "none"}]}],
        "notificationSettings": {
            "emailAddresses": ["owner@example.com"],
            "equipment": [
                {
                    "type": "furnaceFilter",
                    "enabled": True,
                    "filterLastChanged": "2026-09-01",
                    "filterLife": 3,
                    "filterLifeUnits": "month",
                }
            ],
        },
        "alerts": [],
        "remoteSensors": [
            {
                "id": "rs:100",
                "name": "Bedroom",
                "type": "ecobee3_remote_sensor",
                "code": "ABCD",
                "inUse": True,
                "capability": [
                    {"id": "1", "type": "temperature", "value": "702"},
                    {"id": "2", "type": "occupancy", "value": "true"},
                ],
            }
        ],
    }
    thermostat.update(overrides)
    return thermostat


class FakeSmartyStreets:
    def __init__(self, normalized: dict[str, Any] | None) -> None:
        self.normalized = normalized
        self.calls: list[tuple[str, str]] = []

    def normalize(self, street: str, country: str) -> dict[str, Any] | None:
        self.calls.append((street, country))
        return self.normalized


US_ADDRESS = {
    "address1": "1 Main St",
    "address2": "Springfield IL 62701-0001",
    "delivery_point_barcode": "627010001019",
    "metadata": {"latitude": 39.8, "longitude": -89.6},
}
