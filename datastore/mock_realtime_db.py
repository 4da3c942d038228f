from __future__ import annotations
import copy
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from settings import get_settings

logger = logging.getLogger(__name__)

ChannelCallback = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class MockRealtimeDatabase:
    """In-process stand-in for a hosted realtime database.

    Every write delivers the channel's complete value to its subscribers,
    synchronously on the writing thread.
    """

    def __init__(self, name: str = "default", persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._values: Dict[str, Any] = {}
        self._subscribers: Dict[str, List[ChannelCallback]] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def set_value(self, channel: str, value: Any) -> None:
        with self._lock:
            self._values[channel] = copy.deepcopy(value)
            self._persist()
        self._notify(channel)

    def update(self, channel: str, path: str, value: Any) -> None:
        """Write ``value`` at a slash-separated ``path`` below ``channel``."""

        parts = [part for part in path.split("/") if part]
        if not parts:
            self.set_value(channel, value)
            return
        with self._lock:
            root = self._values.get(channel)
            if not isinstance(root, dict):
                root = {}
            node = root
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[parts[-1]] = copy.deepcopy(value)
            self._values[channel] = root
            self._persist()
        self._notify(channel)

    def get_value(self, channel: str) -> Any:
        with self._lock:
            return copy.deepcopy(self._values.get(channel))

    def channels(self) -> list[str]:
        """Return the names of all channels holding a value."""

        with self._lock:
            return sorted(self._values)

    def subscribe(self, channel: str, callback: ChannelCallback) -> Unsubscribe:
        with self._lock:
            self._subscribers.setdefault(channel, []).append(callback)
        self._deliver(channel, callback, self.get_value(channel))

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(channel, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _notify(self, channel: str) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(channel, []))
        for callback in callbacks:
            self._deliver(channel, callback, self.get_value(channel))

    @staticmethod
    def _deliver(channel: str, callback: ChannelCallback, value: Any) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("Subscriber failed to handle update", extra={"channel": channel})

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(json.dumps(self._values, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        if isinstance(data, dict):
            self._values.update(data)


@lru_cache
def build_default_database(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockRealtimeDatabase:
    settings = get_settings()
    db_path = settings.mock_db_persistence_path if path is None else path
    persistence = Path(db_path) if db_path else None
    return MockRealtimeDatabase(name=name or "default", persistence_path=persistence)
