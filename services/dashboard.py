"""Dashboard state: latest channel values plus the user's chart filters."""

from __future__ import annotations

import logging
import time
from datetime import timezone, tzinfo
from functools import lru_cache
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from datastore.mock_realtime_db import build_default_database
from models.records import FilterState, NetworkStatus, ViewMode, WindowSelection, parse_window
from services.chart import Chart, build_chart, resolve_timezone
from services.subscription import (
    NETWORK_STATUS_CHANNEL,
    SENSOR_DATA_CHANNEL,
    ChannelSource,
    DatabaseConfig,
    RealtimeDatabaseClient,
    Unsubscribe,
)
from settings import get_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class DashboardService:
    """Holds the latest snapshots and filters; renders charts on demand."""

    def __init__(
        self,
        default_window: WindowSelection = 60,
        tz: tzinfo = timezone.utc,
        clock: Clock = time.time,
    ) -> None:
        self._clock = clock
        self._tz = tz
        self._network_status = NetworkStatus()
        self._sensor_data: Dict[str, Any] = {}
        self._filters = FilterState(window_minutes=parse_window(default_window))
        self._lock = Lock()
        self._source: Optional[ChannelSource] = None
        self._unsubscribes: List[Unsubscribe] = []

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def attach(self, source: ChannelSource) -> None:
        """Subscribe to both channels of ``source``."""
        self._source = source
        self._unsubscribes.append(source.subscribe(NETWORK_STATUS_CHANNEL, self.on_network_status))
        self._unsubscribes.append(source.subscribe(SENSOR_DATA_CHANNEL, self.on_sensor_data))

    def close(self) -> None:
        while self._unsubscribes:
            self._unsubscribes.pop()()
        close = getattr(self._source, "close", None)
        if callable(close):
            close()
        self._source = None

    def on_network_status(self, value: Any) -> None:
        status = NetworkStatus.from_value(value)
        with self._lock:
            self._network_status = status
        logger.debug("Network status replaced", extra={"channel": NETWORK_STATUS_CHANNEL})

    def on_sensor_data(self, value: Any) -> None:
        if value is not None and not isinstance(value, Mapping):
            logger.warning(
                "Ignoring malformed sensor snapshot",
                extra={"channel": SENSOR_DATA_CHANNEL, "invalid_value": type(value).__name__},
            )
            value = None
        snapshot = {str(node_id): series for node_id, series in (value or {}).items()}
        with self._lock:
            self._sensor_data = snapshot
            self._filters.selected_nodes = list(snapshot)
        logger.info(
            "Sensor snapshot replaced",
            extra={"channel": SENSOR_DATA_CHANNEL, "node_count": len(snapshot)},
        )

    def network_status(self) -> NetworkStatus:
        with self._lock:
            return self._network_status

    def nodes(self) -> List[str]:
        with self._lock:
            return list(self._sensor_data)

    def filters(self) -> FilterState:
        with self._lock:
            return self._filters.copy()

    def set_window(self, value: Any) -> FilterState:
        try:
            window = parse_window(value)
        except ValueError:
            logger.warning("Rejected time window", extra={"invalid_value": value})
            raise
        with self._lock:
            self._filters.window_minutes = window
            return self._filters.copy()

    def set_view_mode(self, value: Any) -> FilterState:
        try:
            mode = ViewMode(value)
        except ValueError as exc:
            logger.warning("Rejected view mode", extra={"invalid_value": value})
            raise ValueError(f"Unsupported view mode {value!r}.") from exc
        with self._lock:
            self._filters.view_mode = mode
            return self._filters.copy()

    def toggle_node(self, node_id: str, checked: bool) -> FilterState:
        with self._lock:
            selected = self._filters.selected_nodes
            if checked and node_id not in selected:
                selected.append(node_id)
            elif not checked:
                self._filters.selected_nodes = [node for node in selected if node != node_id]
            return self._filters.copy()

    def set_selected_nodes(self, node_ids: Iterable[str]) -> FilterState:
        unique: List[str] = []
        for node_id in node_ids:
            if node_id not in unique:
                unique.append(node_id)
        with self._lock:
            self._filters.selected_nodes = unique
            return self._filters.copy()

    def chart(
        self,
        now_seconds: Optional[int] = None,
        filters: Optional[FilterState] = None,
    ) -> Chart:
        """Build the chart for the stored filters, or for ``filters`` when given."""
        with self._lock:
            snapshot = self._sensor_data
            active = filters.copy() if filters is not None else self._filters.copy()
        now = int(self._clock()) if now_seconds is None else now_seconds
        return build_chart(snapshot, active, now, self._tz)


def build_source() -> ChannelSource:
    """Hosted database when one is configured, otherwise the in-process mock."""
    config = DatabaseConfig.from_settings(get_settings())
    if config is None:
        return build_default_database()
    return RealtimeDatabaseClient(config)


@lru_cache
def build_default_dashboard() -> DashboardService:
    settings = get_settings()
    return DashboardService(
        default_window=settings.default_window,
        tz=resolve_timezone(settings.timezone),
    )
