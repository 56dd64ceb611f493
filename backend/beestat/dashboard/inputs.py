from __future__ import annotations

from typing import Any

from beestat.dashboard import style
from beestat.dashboard.component import Component
from beestat.dashboard.elements import Element, icon


class TextInput(Component):
    """Single line text field. Darkens on focus and dispatches ``blur``."""

    css_class = "input_text"

    def __init__(self) -> None:
        super().__init__()
        self._value: str | None = None
        self._style: dict[str, Any] | None = None
        self._attributes: dict[str, Any] | None = None
        self._icon: str | None = None
        self.input: Element | None = None

    def set_value(self, value: str) -> TextInput:
        self._value = value
        if self.input is not None:
            self.input.set_attribute("value", value)
        return self

    def get_value(self) -> str | None:
        if self.input is not None:
            return self.input.attributes.get("value")
        return self._value

    def set_style(self, input_style: dict[str, Any]) -> TextInput:
        return self._set("_style", input_style)

    def set_attribute(self, attributes: dict[str, Any]) -> TextInput:
        return self._set("_attributes", attributes)

    def set_icon(self, icon_name: str) -> TextInput:
        return self._set("_icon", icon_name)

    def decorate(self, parent: Element) -> None:
        parent.set_style({"position": "relative"})
        field = Element(
            "input",
            attributes={"type": "text"},
            style={
                "border": "none",
                "background": style.COLOR["bluegray_light"],
                "border-radius": style.BORDER_RADIUS,
                "padding": f"{style.GUTTER // 2}px",
                "color": "#fff",
                "outline": "none",
                "transition": "background 200ms ease",
            },
        )
        if self._style is not None:
            field.set_style(self._style)
        for name, value in (self._attributes or {}).items():
            field.set_attribute(name, value)

        # The icon sits on top of the field, so pad the text past it.
        if self._icon is not None:
            icon_container = Element("div", style={"position": "absolute", "top": "7px", "left": "6px"})
            icon_container.append_child(icon(self._icon, size=16, color="#fff"))
            parent.append_child(icon_container)
            field.set_style({"padding-left": "24px"})

        field.add_event_listener("focus", self._on_focus)
        field.add_event_listener("blur", self._on_blur)

        if self._value is not None:
            field.set_attribute("value", self._value)

        self.input = parent.append_child(field)

    def _on_focus(self, field: Element) -> None:
        field.set_style({"background": style.COLOR["bluegray_dark"]})

    def _on_blur(self, field: Element) -> None:
        self.dispatch_event("blur")
        field.set_style({"background": style.COLOR["bluegray_light"]})

    def _set(self, name: str, value: Any) -> TextInput:
        setattr(self, name, value)
        if self.rendered:
            self.rerender()
        return self
