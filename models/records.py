"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Union

# Raw shapes as delivered by the realtime database.
NodeSeries = Mapping[Union[str, int], Any]
SensorSnapshot = Mapping[str, NodeSeries]

WindowSelection = Union[int, str]

ALL_TIME = "all"
WINDOW_CHOICES: tuple[WindowSelection, ...] = (5, 10, 30, 60, ALL_TIME)


class ViewMode(str, Enum):
    """Chart presentation modes."""

    mean = "mean"
    individual = "individual"


@dataclass(frozen=True, slots=True)
class Reading:
    """A single sensor reading reported by one node."""

    value: Optional[float]
    timestamp: int


@dataclass(frozen=True, slots=True)
class NetworkStatus:
    """Latest mesh network summary published on the ``network_status`` channel."""

    active_nodes: Optional[int] = None
    current_parent: Optional[str] = None
    last_update: Optional[int] = None

    @classmethod
    def from_value(cls, value: Any) -> "NetworkStatus":
        if not isinstance(value, Mapping):
            return cls()
        parent = value.get("current_parent")
        return cls(
            active_nodes=_optional_int(value.get("active_nodes")),
            current_parent=None if parent is None else str(parent),
            last_update=_optional_int(value.get("last_update")),
        )


@dataclass(slots=True)
class FilterState:
    """User-controlled chart filters. Read-only input to the aggregator."""

    window_minutes: WindowSelection = 60
    selected_nodes: List[str] = field(default_factory=list)
    view_mode: ViewMode = ViewMode.mean

    def copy(self) -> "FilterState":
        return FilterState(
            window_minutes=self.window_minutes,
            selected_nodes=list(self.selected_nodes),
            view_mode=self.view_mode,
        )


def parse_window(value: Any) -> WindowSelection:
    """Normalise a window selector to one of ``WINDOW_CHOICES``."""

    if isinstance(value, str):
        candidate = value.strip().lower()
        if candidate == ALL_TIME:
            return ALL_TIME
        try:
            value = int(candidate)
        except ValueError as exc:
            raise ValueError(f"Unsupported time window {value!r}.") from exc
    if isinstance(value, bool) or not isinstance(value, int) or value not in WINDOW_CHOICES:
        raise ValueError(f"Unsupported time window {value!r}.")
    return value


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
