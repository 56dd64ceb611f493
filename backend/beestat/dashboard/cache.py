from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from threading import Lock
from typing import Any

Listener = Callable[[str, Any], None]


class ObjectCache:
    """Keyed store for what the dashboard shows, e.g. ``thermostat`` or
    ``data.comparison_scores_heat``. Every ``set`` and ``delete`` notifies the
    listeners subscribed to that key.
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._lock = Lock()
        self._logger = logging.getLogger("beestat.dashboard.cache")

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
        self._dispatch(key, value)

    def delete(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            del self._data[key]
        self._dispatch(key, None)

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners[key].append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners[key]:
                    self._listeners[key].remove(listener)

        return unsubscribe

    def _dispatch(self, key: str, value: Any) -> None:
        with self._lock:
            listeners = list(self._listeners.get(key, ()))
        for listener in listeners:
            listener(key, value)
        if listeners:
            self._logger.debug("cache change key=%s listeners=%s", key, len(listeners))
