"""Realtime database subscriptions delivering whole channel values."""

from __future__ import annotations

import copy
import json
import logging
import random
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Protocol, Tuple

import httpx

from settings import Settings

logger = logging.getLogger(__name__)

NETWORK_STATUS_CHANNEL = "network_status"
SENSOR_DATA_CHANNEL = "sensor_data"

ChannelCallback = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class ChannelSource(Protocol):
    def subscribe(self, channel: str, callback: ChannelCallback) -> Unsubscribe:
        ...


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection parameters for the hosted realtime database."""

    database_url: str
    api_key: Optional[str] = None
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["DatabaseConfig"]:
        if not settings.database_url:
            return None
        return cls(
            database_url=settings.database_url.rstrip("/"),
            api_key=settings.database_api_key,
            timeout=settings.database_timeout,
        )


class StreamCancelled(Exception):
    """Raised when the server revokes or cancels a streaming subscription."""


def iter_events(lines: Iterable[str]) -> Iterator[Tuple[str, str]]:
    """Group server-sent-event lines into ``(event, data)`` pairs."""

    event = "message"
    data: list[str] = []
    for line in lines:
        if not line:
            if data:
                yield event, "\n".join(data)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


def apply_event(document: Any, event: str, path: str, data: Any) -> Any:
    """Return the channel value after applying a ``put`` or ``patch`` at ``path``.

    ``document`` is not modified.
    """

    parts = [part for part in path.split("/") if part]
    if not parts:
        if event == "patch" and isinstance(data, dict):
            merged = dict(document) if isinstance(document, dict) else {}
            for key, value in data.items():
                if value is None:
                    merged.pop(key, None)
                else:
                    merged[key] = value
            return merged
        return copy.deepcopy(data)

    root = copy.deepcopy(document) if isinstance(document, dict) else {}
    node = root
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child

    leaf = parts[-1]
    if event == "patch" and isinstance(data, dict):
        target = node.get(leaf)
        merged = dict(target) if isinstance(target, dict) else {}
        merged.update(data)
        node[leaf] = {key: value for key, value in merged.items() if value is not None}
    elif data is None:
        node.pop(leaf, None)
    else:
        node[leaf] = data
    return root


class RealtimeDatabaseClient:
    """HTTP client for a realtime database exposing REST and event streams."""

    def __init__(
        self,
        config: DatabaseConfig,
        transport: Optional[httpx.BaseTransport] = None,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
    ) -> None:
        self._config = config
        self._client = httpx.Client(
            base_url=config.database_url,
            timeout=httpx.Timeout(config.timeout, read=None),
            follow_redirects=True,
            transport=transport,
        )
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._listeners: Dict[int, Tuple[threading.Thread, threading.Event]] = {}
        self._listeners_lock = threading.Lock()

    def get(self, channel: str) -> Any:
        response = self._client.get(self._path(channel), params=self._params())
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    def subscribe(self, channel: str, callback: ChannelCallback) -> Unsubscribe:
        stop = threading.Event()
        thread = threading.Thread(
            target=self.listen,
            args=(channel, callback, stop),
            name=f"realtime-db-{channel}",
            daemon=True,
        )
        with self._listeners_lock:
            self._listeners[id(stop)] = (thread, stop)
        thread.start()

        def unsubscribe() -> None:
            stop.set()
            with self._listeners_lock:
                self._listeners.pop(id(stop), None)

        return unsubscribe

    def listen(self, channel: str, callback: ChannelCallback, stop: threading.Event) -> None:
        """Stream ``channel`` until ``stop`` is set, reconnecting on transport errors."""

        attempt = 0
        while not stop.is_set():
            try:
                self._stream_once(channel, callback, stop)
                attempt = 0
                delay = self._base_delay
            except StreamCancelled as exc:
                logger.error(
                    "Realtime subscription cancelled by server",
                    extra={"channel": channel, "reason": str(exc)},
                )
                return
            except (httpx.HTTPError, json.JSONDecodeError) as exc:
                if stop.is_set():
                    return
                attempt += 1
                delay = self._backoff(attempt)
                logger.warning(
                    "Realtime stream failed; reconnecting",
                    extra={
                        "channel": channel,
                        "attempt": attempt,
                        "delay_seconds": round(delay, 2),
                        "reason": str(exc),
                    },
                )
            except Exception:
                logger.exception("Realtime listener stopped unexpectedly", extra={"channel": channel})
                return
            stop.wait(delay)

    def close(self) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners.values())
            self._listeners.clear()
        for _thread, stop in listeners:
            stop.set()
        self._client.close()

    def _stream_once(self, channel: str, callback: ChannelCallback, stop: threading.Event) -> None:
        document: Any = None
        with self._client.stream(
            "GET",
            self._path(channel),
            params=self._params(),
            headers={"Accept": "text/event-stream"},
        ) as response:
            response.raise_for_status()
            for event, data in iter_events(response.iter_lines()):
                if stop.is_set():
                    return
                if event in {"put", "patch"}:
                    message = json.loads(data)
                    if not isinstance(message, dict):
                        continue
                    path = message.get("path") or "/"
                    if not isinstance(path, str):
                        logger.warning(
                            "Ignoring stream event with invalid path",
                            extra={"channel": channel, "invalid_value": path},
                        )
                        continue
                    document = apply_event(document, event, path, message.get("data"))
                    self._deliver(channel, callback, copy.deepcopy(document))
                elif event in {"cancel", "auth_revoked"}:
                    raise StreamCancelled(f"{event}: {data}")

    @staticmethod
    def _deliver(channel: str, callback: ChannelCallback, value: Any) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("Subscriber failed to handle update", extra={"channel": channel})

    def _backoff(self, attempt: int) -> float:
        delay = min(self._base_delay * (2 ** (attempt - 1)), self._max_delay)
        return delay + random.uniform(0, delay * 0.1)

    def _params(self) -> Dict[str, str]:
        if self._config.api_key:
            return {"auth": self._config.api_key}
        return {}

    @staticmethod
    def _path(channel: str) -> str:
        return f"/{channel.strip('/')}.json"
