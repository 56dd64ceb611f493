from __future__ import annotations

import calendar
from collections.abc import Mapping
from datetime import date
from typing import Any

PROPERTY_AGE_DELTA = 10
PROPERTY_SQUARE_FEET_DELTA = 1000
REGION_RADIUS = 250

COMPARISON_TYPES = ("heat", "cool", "resist")


def comparison_attributes(
    thermostat_group: Mapping[str, Any],
    comparison_type: str,
    *,
    property_type: str = "similar",
    region: str = "region",
) -> dict[str, Any]:
    """Filters for picking the homes a thermostat group is scored against.

    ``property_type`` is ``similar`` (structure, age, size and stories),
    ``same_structure`` or anything else for no property filter. Any region
    other than ``global`` limits the comparison to a radius around the group.
    """
    if comparison_type not in COMPARISON_TYPES:
        raise ValueError(f"Unknown comparison type {comparison_type}")

    attributes: dict[str, Any] = {}
    structure_type = thermostat_group.get("property_structure_type")

    if property_type == "similar":
        if structure_type is not None:
            attributes["property_structure_type"] = structure_type

        age = thermostat_group.get("property_age")
        if age is not None:
            attributes["property_age"] = {
                "operator": "between",
                "value": [max(0, age - PROPERTY_AGE_DELTA), age + PROPERTY_AGE_DELTA],
            }

        square_feet = thermostat_group.get("property_square_feet")
        if square_feet is not None:
            attributes["property_square_feet"] = {
                "operator": "between",
                "value": [
                    max(0, square_feet - PROPERTY_SQUARE_FEET_DELTA),
                    square_feet + PROPERTY_SQUARE_FEET_DELTA,
                ],
            }

        # Apartments ignore stories; single story homes match exactly.
        stories = thermostat_group.get("property_stories")
        if stories is not None and structure_type != "apartment":
            if stories < 2:
                attributes["property_stories"] = stories
            else:
                attributes["property_stories"] = {"operator": ">=", "value": stories}
    elif property_type == "same_structure":
        if structure_type is not None:
            attributes["property_structure_type"] = structure_type

    latitude = thermostat_group.get("address_latitude")
    longitude = thermostat_group.get("address_longitude")
    if latitude is not None and longitude is not None and region != "global":
        attributes["address_latitude"] = latitude
        attributes["address_longitude"] = longitude
        attributes["address_radius"] = REGION_RADIUS

    if comparison_type == "heat":
        attributes["system_type_heat"] = thermostat_group.get("system_type_heat")
    elif comparison_type == "cool":
        attributes["system_type_cool"] = thermostat_group.get("system_type_cool")
    return attributes


def comparison_period(
    period: int | str,
    *,
    custom: date | None = None,
    today: date | None = None,
) -> tuple[date | None, date | None]:
    """Begin and end of the year of data to compare.

    ``period`` is a number of months back or ``"custom"``. ``(None, None)``
    means "now", which lets the group's stored profile be reused.
    """
    today = today or date.today()
    if period == "custom":
        if custom is None:
            raise ValueError("A custom comparison period needs a date")
        if custom == today:
            return None, None
        return subtract_months(custom, 12), custom

    months = int(period)
    if months == 0:
        return None, None
    end = subtract_months(today, months)
    return subtract_months(end, 12), end


def subtract_months(value: date, months: int) -> date:
    month_index = value.year * 12 + value.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
