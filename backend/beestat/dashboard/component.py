from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from beestat.dashboard import style
from beestat.dashboard.cache import ObjectCache
from beestat.dashboard.elements import Element, icon


class Component:
    """Base for everything drawn on the dashboard.

    ``render`` builds the element tree under a parent and ``rerender`` swaps
    the old tree for a fresh one in place. A component listing cache keys in
    ``bound_keys`` rerenders whenever one of those keys changes.
    """

    bound_keys: tuple[str, ...] = ()
    css_class = "component"

    def __init__(self, cache: ObjectCache | None = None) -> None:
        self._cache = cache
        self._parent: Element | None = None
        self._root: Element | None = None
        self._handlers: dict[str, list[Callable[[Component], None]]] = defaultdict(list)
        self._unsubscribers: list[Callable[[], None]] = []
        self._logger = logging.getLogger(f"beestat.dashboard.{type(self).__name__}")
        if cache is not None:
            for key in self.bound_keys:
                self._unsubscribers.append(cache.subscribe(key, self._on_cache_change))

    @property
    def rendered(self) -> bool:
        return self._root is not None

    @property
    def root(self) -> Element | None:
        return self._root

    def render(self, parent: Element | None = None) -> Element:
        self._parent = parent if parent is not None else Element("body")
        self._root = self._build()
        self._parent.append_child(self._root)
        return self._root

    def rerender(self) -> None:
        if self._parent is None or self._root is None:
            return
        fresh = self._build()
        self._parent.replace_child(self._root, fresh)
        self._root = fresh

    def dispose(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        if self._parent is not None and self._root is not None:
            self._parent.remove_child(self._root)
        self._root = None

    def add_event_listener(self, event: str, handler: Callable[[Component], None]) -> None:
        self._handlers[event].append(handler)

    def dispatch_event(self, event: str) -> None:
        for handler in list(self._handlers.get(event, ())):
            handler(self)

    def to_html(self) -> str:
        if self._root is None:
            self.render()
        return self._root.to_html()

    def decorate(self, parent: Element) -> None:
        raise NotImplementedError

    def _build(self) -> Element:
        root = Element("div", attributes={"class": self.css_class})
        self.decorate(root)
        return root

    def _on_cache_change(self, key: str, value: Any) -> None:
        self.rerender()


class MenuItem:
    def __init__(self, text: str, icon_name: str, action: str) -> None:
        self.text = text
        self.icon_name = icon_name
        self.action = action


class Menu:
    def __init__(self) -> None:
        self.items: list[MenuItem] = []

    def add_menu_item(self, item: MenuItem) -> Menu:
        self.items.append(item)
        return self

    def render(self, parent: Element) -> Element:
        container = Element("div", attributes={"class": "menu"})
        container.append_child(icon("dots_vertical"))
        for item in self.items:
            entry = Element("div", attributes={"class": "menu_item", "data-action": item.action})
            entry.append_child(icon(item.icon_name, size=16))
            entry.append_child(Element("span", text=item.text))
            container.append_child(entry)
        return parent.append_child(container)


class Card(Component):
    css_class = "card"

    def decorate(self, parent: Element) -> None:
        parent.set_style(
            {
                "padding": f"{style.GUTTER}px",
                "background": style.COLOR["bluegray_base"],
                "border-radius": style.BORDER_RADIUS,
            }
        )

        top_right = Element("div", style={"float": "right"})
        parent.append_child(top_right)
        self.decorate_top_right(top_right)

        title = self.get_title()
        if title is not None:
            parent.append_child(Element("div", text=title, attributes={"class": "title"}))
        subtitle = self.get_subtitle()
        if subtitle is not None:
            parent.append_child(Element("div", text=subtitle, attributes={"class": "subtitle"}))

        contents = Element("div", attributes={"class": "contents"})
        parent.append_child(contents)
        self.decorate_contents(contents)

    def decorate_top_right(self, parent: Element) -> None:
        pass

    def decorate_contents(self, parent: Element) -> None:
        pass

    def get_title(self) -> str | None:
        return None

    def get_subtitle(self) -> str | None:
        return None


class Modal(Component):
    css_class = "modal"

    def decorate(self, parent: Element) -> None:
        header = Element("div", attributes={"class": "modal_header"})
        header.append_child(Element("span", text=self.get_title(), attributes={"class": "title"}))
        header.append_child(icon("close"))
        parent.append_child(header)

        contents = Element("div", attributes={"class": "contents"})
        parent.append_child(contents)
        self.decorate_contents(contents)

    def decorate_contents(self, parent: Element) -> None:
        pass

    def get_title(self) -> str:
        return ""
