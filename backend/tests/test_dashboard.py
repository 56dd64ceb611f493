from __future__ import annotations

from datetime import date
from typing import Any
from unittest import TestCase

from beestat.dashboard.cache import ObjectCache
from beestat.dashboard.cards import SystemCard, running_equipment, system_subtitle
from beestat.dashboard.comparison import comparison_attributes, comparison_period, subtract_months
from beestat.dashboard.elements import Element
from beestat.dashboard.formatting import CELSIUS, convert_temperature, format_temperature, split_temperature
from beestat.dashboard.inputs import TextInput
from beestat.dashboard.modals import HelpRecentActivityModal

PROGRAM = {
    "currentClimateRef": "home",
    "climates": [{"climateRef": "home", "name": "Home", "heatTemp": 700, "coolTemp": 760, "isOccupied": True}],
}


def _cache(**thermostat: Any) -> ObjectCache:
    cache = ObjectCache()
    cache.set(
        "ecobee_thermostat",
        {
            10: {
                "json_settings": {"hvacMode": "heat", "hasHeatPump": False},
                "json_runtime": {"desiredHeat": 700, "desiredCool": 760},
                "json_program": PROGRAM,
                "json_equipment_status": ["fan", "auxHeat1"],
            }
        },
    )
    cache.set(
        "thermostat",
        {1: {"name": "Main Floor", "ecobee_thermostat_id": 10, "temperature": 71.46, "humidity": 45, **thermostat}},
    )
    return cache


class ObjectCacheTests(TestCase):
    def test_listeners_get_changes_until_unsubscribed(self) -> None:
        cache = ObjectCache()
        seen: list[tuple[str, Any]] = []
        unsubscribe = cache.subscribe("thermostat", lambda key, value: seen.append((key, value)))

        cache.set("thermostat", {1: {}})
        cache.set("sensor", {})
        cache.delete("thermostat")
        unsubscribe()
        cache.set("thermostat", {2: {}})

        self.assertEqual(seen, [("thermostat", {1: {}}), ("thermostat", None)])
        self.assertIn("thermostat", cache)
        self.assertEqual(cache.get("missing", "default"), "default")


class SystemCardTests(TestCase):
    def test_render(self) -> None:
        card = SystemCard(_cache(), 1)

        root = card.render(Element("body"))

        text = root.text_content()
        self.assertIn("System - Main Floor", text)
        self.assertIn("Heat / Schedule / 70.0", text)
        self.assertIn("71", text)
        self.assertIn(".5", text)
        self.assertIn("45%", text)
        self.assertIn("Home", text)
        actions = [item.attributes["data-action"] for item in root.iter() if "data-action" in item.attributes]
        self.assertEqual(actions, ["thermostat_info", "help_system"])
        icons = [element.attributes["class"] for element in root.find_all("span") if "class" in element.attributes]
        self.assertIn("icon fan", icons)
        self.assertIn("icon fire", icons)

    def test_rerenders_when_bound_key_changes(self) -> None:
        cache = _cache()
        card = SystemCard(cache, 1)
        body = Element("body")
        card.render(body)

        cache.set("thermostat", {1: {"name": "Basement", "ecobee_thermostat_id": 10, "filters": {"furnace": {}}}})

        self.assertEqual(len(body.children), 1)
        self.assertIn("System - Basement", body.text_content())
        self.assertIn("filter_info", body.to_html())

    def test_dispose_stops_rerendering(self) -> None:
        cache = _cache()
        card = SystemCard(cache, 1)
        body = Element("body")
        card.render(body)

        card.dispose()
        cache.set("thermostat", {1: {"name": "Basement", "ecobee_thermostat_id": 10}})

        self.assertEqual(body.children, [])
        self.assertFalse(card.rendered)

    def test_celsius(self) -> None:
        html = SystemCard(_cache(), 1, temperature_unit=CELSIUS).to_html()

        self.assertIn("Heat / Schedule / 21.1", html)

    def test_subtitle_overridden_and_auto(self) -> None:
        overridden = system_subtitle({"hvacMode": "heat"}, {"desiredHeat": 680, "desiredCool": 760}, PROGRAM)
        auto = system_subtitle({"hvacMode": "auto"}, {"desiredHeat": 700, "desiredCool": 760}, PROGRAM)
        off = system_subtitle({"hvacMode": "off"}, {}, PROGRAM)

        self.assertEqual(overridden, "Heat / Overridden / 68.0")
        self.assertEqual(auto, "Auto / Schedule / 70.0 - 76.0")
        self.assertEqual(off, "Off")

    def test_running_equipment(self) -> None:
        self.assertEqual(running_equipment([], has_heat_pump=False), [])
        self.assertEqual(
            running_equipment(["compCool2", "compCool1", "fan"], has_heat_pump=False),
            ["fan", "cool_2"],
        )
        self.assertEqual(
            running_equipment(["heatPump2", "auxHeat1"], has_heat_pump=True),
            ["heat_2", "aux_1"],
        )
        self.assertEqual(running_equipment(["auxHeat2"], has_heat_pump=False), ["heat_2"])

    def test_nothing_running_shows_placeholder(self) -> None:
        cache = _cache()
        cache.get("ecobee_thermostat")[10]["json_equipment_status"] = []

        html = SystemCard(cache, 1).to_html()

        self.assertIn("icon cancel", html)


class TextInputTests(TestCase):
    def test_icon_pads_field(self) -> None:
        text_input = TextInput().set_icon("magnify").set_value("Springfield")
        body = Element("body")
        text_input.render(body)

        self.assertEqual(text_input.input.style["padding-left"], "24px")
        self.assertEqual(text_input.get_value(), "Springfield")
        self.assertIn("icon magnify", body.to_html())

    def test_focus_blur_and_blur_event(self) -> None:
        text_input = TextInput()
        blurred: list[TextInput] = []
        text_input.add_event_listener("blur", blurred.append)
        text_input.render()
        resting = text_input.input.style["background"]

        text_input.input.dispatch_event("focus")
        focused = text_input.input.style["background"]
        text_input.input.dispatch_event("blur")

        self.assertNotEqual(focused, resting)
        self.assertEqual(text_input.input.style["background"], resting)
        self.assertEqual(blurred, [text_input])

    def test_setting_attribute_after_render_rerenders(self) -> None:
        text_input = TextInput().set_value("a")
        text_input.render()
        first = text_input.input

        text_input.set_attribute({"placeholder": "Search"})

        self.assertIsNot(text_input.input, first)
        self.assertEqual(text_input.input.attributes["placeholder"], "Search")
        self.assertEqual(text_input.get_value(), "a")


class ModalTests(TestCase):
    def test_help_recent_activity(self) -> None:
        html = HelpRecentActivityModal().to_html()

        self.assertIn("Recent Activity - Help", html)
        self.assertIn("5-minute", html)
        self.assertIn("icon close", html)


class FormattingTests(TestCase):
    def test_temperature_helpers(self) -> None:
        self.assertEqual(convert_temperature(212, output_unit=CELSIUS), 100.0)
        self.assertEqual(convert_temperature(100, output_unit="°F", input_unit=CELSIUS), 212.0)
        self.assertEqual(format_temperature(None), "?")
        self.assertEqual(format_temperature(70, units=True), "70.0°F")
        self.assertEqual(split_temperature(71.46), ("71", "5"))
        self.assertEqual(split_temperature(None), ("?", "?"))


class ComparisonTests(TestCase):
    GROUP = {
        "property_structure_type": "detached",
        "property_age": 5,
        "property_square_feet": 1800,
        "property_stories": 2,
        "address_latitude": 44.9,
        "address_longitude": -93.2,
        "system_type_heat": "gas",
        "system_type_cool": "compressor",
    }

    def test_similar_homes(self) -> None:
        attributes = comparison_attributes(self.GROUP, "heat")

        self.assertEqual(attributes["property_structure_type"], "detached")
        self.assertEqual(attributes["property_age"], {"operator": "between", "value": [0, 15]})
        self.assertEqual(attributes["property_square_feet"], {"operator": "between", "value": [800, 2800]})
        self.assertEqual(attributes["property_stories"], {"operator": ">=", "value": 2})
        self.assertEqual(attributes["address_radius"], 250)
        self.assertEqual(attributes["system_type_heat"], "gas")
        self.assertNotIn("system_type_cool", attributes)

    def test_single_story_and_apartments(self) -> None:
        single = comparison_attributes({**self.GROUP, "property_stories": 1}, "cool")
        apartment = comparison_attributes(
            {**self.GROUP, "property_structure_type": "apartment"},
            "resist",
        )

        self.assertEqual(single["property_stories"], 1)
        self.assertEqual(single["system_type_cool"], "compressor")
        self.assertNotIn("property_stories", apartment)
        self.assertNotIn("system_type_heat", apartment)

    def test_structure_only_and_global(self) -> None:
        attributes = comparison_attributes(self.GROUP, "heat", property_type="same_structure", region="global")

        self.assertEqual(
            attributes,
            {"property_structure_type": "detached", "system_type_heat": "gas"},
        )

    def test_unknown_type(self) -> None:
        with self.assertRaises(ValueError):
            comparison_attributes(self.GROUP, "humidify")

    def test_periods(self) -> None:
        today = date(2026, 3, 31)

        self.assertEqual(comparison_period(0, today=today), (None, None))
        self.assertEqual(comparison_period(1, today=today), (date(2025, 2, 28), date(2026, 2, 28)))
        self.assertEqual(
            comparison_period("custom", custom=date(2025, 12, 15), today=today),
            (date(2024, 12, 15), date(2025, 12, 15)),
        )
        self.assertEqual(comparison_period("custom", custom=today, today=today), (None, None))
        self.assertEqual(subtract_months(date(2024, 3, 31), 1), date(2024, 2, 29))
