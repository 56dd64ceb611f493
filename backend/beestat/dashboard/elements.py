from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterator
from html import escape
from typing import Any

VOID_TAGS = {"br", "hr", "img", "input", "meta"}


class Element:
    """A minimal DOM node: tag, inline style, attributes, text and children."""

    def __init__(
        self,
        tag: str,
        *,
        text: str | None = None,
        style: dict[str, Any] | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self.tag = tag
        self.text = text
        self.style: dict[str, Any] = dict(style or {})
        self.attributes: dict[str, Any] = dict(attributes or {})
        self.children: list[Element] = []
        self.parent: Element | None = None
        self._handlers: dict[str, list[Callable[[Element], None]]] = defaultdict(list)

    def append_child(self, child: Element) -> Element:
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        self.children.append(child)
        return child

    def remove_child(self, child: Element) -> None:
        self.children.remove(child)
        child.parent = None

    def replace_child(self, old: Element, new: Element) -> None:
        index = self.children.index(old)
        old.parent = None
        new.parent = self
        self.children[index] = new

    def set_style(self, style: dict[str, Any]) -> Element:
        self.style.update(style)
        return self

    def set_attribute(self, name: str, value: Any) -> Element:
        self.attributes[name] = value
        return self

    def add_event_listener(self, event: str, handler: Callable[[Element], None]) -> None:
        self._handlers[event].append(handler)

    def dispatch_event(self, event: str) -> None:
        for handler in list(self._handlers.get(event, ())):
            handler(self)

    def iter(self) -> Iterator[Element]:
        yield self
        for child in self.children:
            yield from child.iter()

    def find_all(self, tag: str) -> list[Element]:
        return [element for element in self.iter() if element.tag == tag]

    def text_content(self) -> str:
        return (self.text or "") + "".join(child.text_content() for child in self.children)

    def to_html(self) -> str:
        parts = [f"<{self.tag}"]
        attributes = dict(self.attributes)
        if self.style:
            attributes["style"] = "; ".join(f"{name}: {value}" for name, value in self.style.items())
        for name, value in attributes.items():
            if value is None or value is False:
                continue
            if value is True:
                parts.append(f" {name}")
            else:
                parts.append(f' {name}="{escape(str(value), quote=True)}"')
        parts.append(">")
        if self.tag in VOID_TAGS:
            return "".join(parts)
        if self.text is not None:
            parts.append(escape(self.text, quote=False))
        parts.extend(child.to_html() for child in self.children)
        parts.append(f"</{self.tag}>")
        return "".join(parts)


def icon(name: str, *, size: int = 24, color: str | None = None) -> Element:
    style: dict[str, Any] = {"font-size": f"{size}px"}
    if color is not None:
        style["color"] = color
    return Element("span", style=style, attributes={"class": f"icon {name}"})
