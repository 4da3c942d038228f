"""Aggregation logic for sensor readings.

Everything here is a pure function of (snapshot, filters, current time):
inputs are never mutated and anomalous input degrades to empty output.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from models.records import ALL_TIME, NodeSeries, Reading, SensorSnapshot, WindowSelection

TimestampKey = Union[str, int]


def parse_timestamp(key: Any) -> Optional[int]:
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key
    try:
        return int(str(key).strip())
    except ValueError:
        return None


def _timestamp_key(key: Any) -> Any:
    timestamp = parse_timestamp(key)
    return key if timestamp is None else timestamp


def _entry_value(entry: Any) -> Any:
    if isinstance(entry, Mapping):
        return entry.get("value")
    return None


def _as_number(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def filter_node_series(
    series: Optional[NodeSeries],
    window_minutes: WindowSelection,
    now_seconds: int,
) -> Dict[TimestampKey, Any]:
    """Keep the entries of ``series`` that fall inside the trailing window.

    ``"all"`` returns the series unchanged. Otherwise an entry survives when
    its key, read as integer seconds, is at or after
    ``now_seconds - window_minutes * 60``.
    """

    if not isinstance(series, Mapping):
        return {}
    if window_minutes == ALL_TIME:
        return dict(series)

    cutoff = now_seconds - int(window_minutes) * 60
    filtered: Dict[TimestampKey, Any] = {}
    for key, entry in series.items():
        timestamp = parse_timestamp(key)
        if timestamp is not None and timestamp >= cutoff:
            filtered[key] = entry
    return filtered


def _node_series(snapshot: Optional[SensorSnapshot], node_id: str) -> Optional[NodeSeries]:
    if not isinstance(snapshot, Mapping):
        return None
    return snapshot.get(node_id)


def compute_mean_series(
    snapshot: Optional[SensorSnapshot],
    node_ids: Iterable[str],
    window_minutes: WindowSelection,
    now_seconds: int,
) -> Dict[TimestampKey, float]:
    """Average the positive readings of the selected nodes per timestamp.

    Zero, negative and non-numeric values count as absent. A timestamp with
    no remaining value is left out. Keys keep first-seen order across nodes,
    so callers sort before charting.
    """

    # 100 and "100" name the same timestamp; the first raw key seen is reported.
    timestamps: Dict[Any, TimestampKey] = {}
    per_node: List[Dict[Any, Any]] = []
    for node_id in node_ids:
        filtered = filter_node_series(_node_series(snapshot, node_id), window_minutes, now_seconds)
        by_time: Dict[Any, Any] = {}
        for key, entry in filtered.items():
            normalized = _timestamp_key(key)
            by_time.setdefault(normalized, entry)
            timestamps.setdefault(normalized, key)
        per_node.append(by_time)

    means: Dict[TimestampKey, float] = {}
    for normalized, key in timestamps.items():
        values: List[float] = []
        for series in per_node:
            if normalized not in series:
                continue
            number = _as_number(_entry_value(series[normalized]))
            if number is not None and number > 0:
                values.append(number)
        if values:
            means[key] = sum(values) / len(values)
    return means


def build_individual_series(
    snapshot: Optional[SensorSnapshot],
    node_ids: Iterable[str],
    window_minutes: WindowSelection,
    now_seconds: int,
) -> Dict[str, List[Reading]]:
    """Return the filtered readings of each selected node in its own key order."""

    result: Dict[str, List[Reading]] = {}
    for node_id in node_ids:
        filtered = filter_node_series(_node_series(snapshot, node_id), window_minutes, now_seconds)
        readings: List[Reading] = []
        for key, entry in filtered.items():
            timestamp = parse_timestamp(key)
            if timestamp is None:
                continue
            readings.append(Reading(value=_as_number(_entry_value(entry)), timestamp=timestamp))
        result[node_id] = readings
    return result


def reference_timeline(
    snapshot: Optional[SensorSnapshot],
    node_ids: Sequence[str],
    window_minutes: WindowSelection,
    now_seconds: int,
) -> List[int]:
    """Timestamps used as chart labels in the individual view.

    Taken from the first selected node only. When that node has no data the
    timeline is empty, even if other selected nodes have readings.
    """

    if not node_ids:
        return []
    first = build_individual_series(snapshot, node_ids[:1], window_minutes, now_seconds)
    return [reading.timestamp for reading in first[node_ids[0]]]


@dataclass(frozen=True)
class Aggregator:
    """Binds the pure functions above to a fixed snapshot and clock reading."""

    snapshot: Optional[SensorSnapshot]
    now_seconds: int

    def filter_node(self, node_id: str, window_minutes: WindowSelection) -> Dict[TimestampKey, Any]:
        return filter_node_series(_node_series(self.snapshot, node_id), window_minutes, self.now_seconds)

    def mean(self, node_ids: Iterable[str], window_minutes: WindowSelection) -> Dict[TimestampKey, float]:
        return compute_mean_series(self.snapshot, node_ids, window_minutes, self.now_seconds)

    def individual(self, node_ids: Iterable[str], window_minutes: WindowSelection) -> Dict[str, List[Reading]]:
        return build_individual_series(self.snapshot, node_ids, window_minutes, self.now_seconds)

    def timeline(self, node_ids: Sequence[str], window_minutes: WindowSelection) -> List[int]:
        return reference_timeline(self.snapshot, node_ids, window_minutes, self.now_seconds)
