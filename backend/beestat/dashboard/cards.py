from __future__ import annotations

from typing import Any

from beestat.dashboard import style
from beestat.dashboard.cache import ObjectCache
from beestat.dashboard.component import Card, Menu, MenuItem
from beestat.dashboard.elements import Element, icon
from beestat.dashboard.formatting import (
    FAHRENHEIT,
    convert_temperature,
    format_temperature,
    split_temperature,
)

HVAC_MODES = {
    "off": "Off",
    "auto": "Auto",
    "auxHeatOnly": "Aux",
    "cool": "Cool",
    "heat": "Heat",
}

# equipment -> (icon, color, subscript); None subscript leaves a small spacer.
EQUIPMENT_ICONS: dict[str, tuple[str, str, str | None]] = {
    "nothing": ("cancel", style.COLOR["gray_base"], "none"),
    "fan": ("fan", style.COLOR["gray_light"], None),
    "cool_1": ("snowflake", style.COLOR["blue_light"], "1"),
    "cool_2": ("snowflake", style.COLOR["blue_light"], "2"),
    "heat_1": ("fire", style.COLOR["orange_base"], "1"),
    "heat_2": ("fire", style.COLOR["orange_base"], "2"),
    "heat_3": ("fire", style.COLOR["orange_base"], "3"),
    "aux_1": ("fire", style.COLOR["red_base"], "1"),
    "aux_2": ("fire", style.COLOR["red_base"], "2"),
    "aux_3": ("fire", style.COLOR["red_base"], "3"),
    "humidifier": ("water_percent", style.COLOR["gray_base"], ""),
    "dehumidifier": ("water_off", style.COLOR["gray_base"], ""),
    "ventilator": ("air_purifier", style.COLOR["gray_base"], "v"),
    "economizer": ("cash", style.COLOR["gray_base"], ""),
}


class SystemCard(Card):
    """Current temperature and humidity, running equipment and the active climate."""

    bound_keys = ("thermostat", "ecobee_thermostat")

    def __init__(
        self,
        cache: ObjectCache,
        thermostat_id: int,
        *,
        temperature_unit: str = FAHRENHEIT,
    ) -> None:
        super().__init__(cache)
        self.thermostat_id = thermostat_id
        self.temperature_unit = temperature_unit

    @property
    def thermostat(self) -> dict[str, Any]:
        return self._cache.get("thermostat", {})[self.thermostat_id]

    @property
    def ecobee_thermostat(self) -> dict[str, Any]:
        return self._cache.get("ecobee_thermostat", {})[self.thermostat["ecobee_thermostat_id"]]

    def decorate_contents(self, parent: Element) -> None:
        self._decorate_circle(parent)
        self._decorate_equipment(parent)
        self._decorate_climate(parent)

    def decorate_top_right(self, parent: Element) -> None:
        menu = Menu()
        menu.add_menu_item(MenuItem("Thermostat Info", "thermostat", "thermostat_info"))
        if self.thermostat.get("filters"):
            menu.add_menu_item(MenuItem("Filter Info", "air_filter", "filter_info"))
        menu.add_menu_item(MenuItem("Help", "help_circle", "help_system"))
        menu.render(parent)

    def get_title(self) -> str:
        return f"System - {self.thermostat.get('name')}"

    def get_subtitle(self) -> str:
        ecobee_thermostat = self.ecobee_thermostat
        return system_subtitle(
            ecobee_thermostat.get("json_settings") or {},
            ecobee_thermostat.get("json_runtime") or {},
            ecobee_thermostat.get("json_program") or {},
            temperature_unit=self.temperature_unit,
        )

    def _decorate_circle(self, parent: Element) -> None:
        thermostat = self.thermostat
        circle = Element(
            "div",
            style={
                "padding": f"{style.GUTTER * 3}px",
                "border-radius": "50%",
                "background": style.thermostat_color(self.thermostat_id),
                "height": "180px",
                "width": "180px",
                "margin": f"{style.GUTTER}px auto",
                "text-align": "center",
            },
            attributes={"class": "system_circle"},
        )
        parent.append_child(circle)

        whole, fractional = split_temperature(
            convert_temperature(thermostat.get("temperature"), output_unit=self.temperature_unit)
        )
        temperature = circle.append_child(Element("div", attributes={"class": "temperature"}))
        temperature.append_child(
            Element("span", text=whole, style={"font-size": "48px", "font-weight": style.FONT_WEIGHT_LIGHT})
        )
        temperature.append_child(Element("span", text=f".{fractional}", style={"font-size": "24px"}))

        humidity = circle.append_child(
            Element("div", style={"display": "inline-flex", "align-items": "center"})
        )
        humidity.append_child(icon("water_percent"))
        humidity.append_child(Element("span", text=f"{_humidity_text(thermostat.get('humidity'))}%"))

    def _decorate_equipment(self, parent: Element) -> None:
        ecobee_thermostat = self.ecobee_thermostat
        equipment = running_equipment(
            ecobee_thermostat.get("json_equipment_status") or [],
            has_heat_pump=(ecobee_thermostat.get("json_settings") or {}).get("hasHeatPump") is True,
        )
        container = parent.append_child(Element("div", attributes={"class": "equipment"}))
        for name in equipment or ["nothing"]:
            icon_name, color, subscript = EQUIPMENT_ICONS[name]
            container.append_child(icon(icon_name, color=color))
            if subscript is None:
                container.append_child(Element("span", style={"margin-right": f"{style.GUTTER // 4}px"}))
            else:
                container.append_child(
                    Element(
                        "sub",
                        text=subscript,
                        style={"font-size": "10px", "font-weight": style.FONT_WEIGHT_BOLD, "color": color},
                    )
                )

    def _decorate_climate(self, parent: Element) -> None:
        program = self.ecobee_thermostat.get("json_program") or {}
        climate = get_climate(program, program.get("currentClimateRef"))
        container = parent.append_child(
            Element(
                "div",
                style={"display": "inline-flex", "align-items": "center", "float": "right"},
                attributes={"class": "climate"},
            )
        )
        container.append_child(icon(climate_icon(climate)))
        container.append_child(
            Element("span", text=climate.get("name") or "", style={"margin-left": f"{style.GUTTER // 4}px"})
        )


def running_equipment(equipment_status: list[str], *, has_heat_pump: bool) -> list[str]:
    """Map ecobee's equipmentStatus entries to what the card shows as running."""
    status = set(equipment_status)
    running = [
        name
        for name in ("fan", "ventilator", "humidifier", "dehumidifier", "economizer")
        if name in status
    ]

    if "compCool2" in status:
        running.append("cool_2")
    elif "compCool1" in status:
        running.append("cool_1")

    if has_heat_pump:
        heat = _highest(status, (("heatPump3", "heat_3"), ("heatPump2", "heat_2"), ("heatPump", "heat_1")))
        aux = _highest(status, (("auxHeat3", "aux_3"), ("auxHeat2", "aux_2"), ("auxHeat1", "aux_1")))
        running.extend(name for name in (heat, aux) if name is not None)
    else:
        # Without a heat pump the aux stages are the primary heat.
        heat = _highest(status, (("auxHeat3", "heat_3"), ("auxHeat2", "heat_2"), ("auxHeat1", "heat_1")))
        if heat is not None:
            running.append(heat)

    if "compHotWater" in status:
        running.append("heat_1")
    if "auxHotWater" in status:
        running.append("aux_1")
    return running


def get_climate(program: dict[str, Any], climate_ref: str | None) -> dict[str, Any]:
    for climate in program.get("climates") or []:
        if climate.get("climateRef") == climate_ref:
            return climate
    return {}


def climate_icon(climate: dict[str, Any]) -> str:
    climate_ref = climate.get("climateRef")
    if climate_ref == "home":
        return "home"
    if climate_ref == "away":
        return "update"
    if climate_ref == "sleep":
        return "alarm_snooze"
    return "home" if climate.get("isOccupied") is True else "update"


def system_subtitle(
    settings: dict[str, Any],
    runtime: dict[str, Any],
    program: dict[str, Any],
    *,
    temperature_unit: str = FAHRENHEIT,
) -> str:
    """``<mode> / Schedule|Overridden / <setpoints>``; setpoints are in tenths of a degree."""
    climate = get_climate(program, program.get("currentClimateRef"))
    overridden = (
        runtime.get("desiredHeat") != climate.get("heatTemp")
        or runtime.get("desiredCool") != climate.get("coolTemp")
    )
    source = runtime if overridden else climate
    heat_key, cool_key = ("desiredHeat", "desiredCool") if overridden else ("heatTemp", "coolTemp")
    heat = format_temperature(_tenths(source.get(heat_key)), output_unit=temperature_unit)
    cool = format_temperature(_tenths(source.get(cool_key)), output_unit=temperature_unit)

    hvac_mode = settings.get("hvacMode")
    subtitle = HVAC_MODES.get(hvac_mode, str(hvac_mode))
    if hvac_mode != "off":
        subtitle += " / Overridden" if overridden else " / Schedule"

    if hvac_mode == "auto":
        subtitle += f" / {heat} - {cool}"
    elif hvac_mode in ("heat", "auxHeatOnly"):
        subtitle += f" / {heat}"
    elif hvac_mode == "cool":
        subtitle += f" / {cool}"
    return subtitle


def _highest(status: set[str], stages: tuple[tuple[str, str], ...]) -> str | None:
    for ecobee_name, name in stages:
        if ecobee_name in status:
            return name
    return None


def _tenths(value: Any) -> float | None:
    return value / 10 if isinstance(value, (int, float)) and not isinstance(value, bool) else None


def _humidity_text(value: Any) -> str:
    if value is None:
        return "?"
    return str(int(value)) if float(value).is_integer() else str(value)
