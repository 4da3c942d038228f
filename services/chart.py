"""Adapt aggregator output into the line-chart description served to the UI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models.records import FilterState, SensorSnapshot, ViewMode
from services.aggregator import Aggregator, parse_timestamp

MEAN_DATASET_LABEL = "Mean Sensor Value"
MEAN_BORDER_COLOR = "rgb(75, 192, 192)"
MEAN_BACKGROUND_COLOR = "rgba(75, 192, 192, 0.2)"


@dataclass
class Dataset:
    label: str
    data: List[Optional[float]] = field(default_factory=list)
    border_color: str = MEAN_BORDER_COLOR
    background_color: Optional[str] = None
    fill: bool = False


@dataclass
class Chart:
    labels: List[str] = field(default_factory=list)
    datasets: List[Dataset] = field(default_factory=list)


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def format_label(timestamp: int, tz: tzinfo = timezone.utc) -> str:
    return datetime.fromtimestamp(timestamp, tz=tz).strftime("%H:%M:%S")


def node_color(index: int) -> str:
    return f"hsl({(index * 50) % 360}, 70%, 50%)"


def build_chart(
    snapshot: Optional[SensorSnapshot],
    filters: FilterState,
    now_seconds: int,
    tz: tzinfo = timezone.utc,
) -> Chart:
    aggregator = Aggregator(snapshot=snapshot, now_seconds=now_seconds)
    nodes = list(filters.selected_nodes)

    if filters.view_mode is ViewMode.mean:
        means = aggregator.mean(nodes, filters.window_minutes)
        points = []
        for key, value in means.items():
            timestamp = parse_timestamp(key)
            if timestamp is not None:
                points.append((timestamp, value))
        points.sort(key=lambda point: point[0])
        return Chart(
            labels=[format_label(timestamp, tz) for timestamp, _ in points],
            datasets=[
                Dataset(
                    label=MEAN_DATASET_LABEL,
                    data=[value for _, value in points],
                    border_color=MEAN_BORDER_COLOR,
                    background_color=MEAN_BACKGROUND_COLOR,
                    fill=True,
                )
            ],
        )

    series = aggregator.individual(nodes, filters.window_minutes)
    return Chart(
        labels=[format_label(ts, tz) for ts in aggregator.timeline(nodes, filters.window_minutes)],
        datasets=[
            Dataset(
                label=f"Node {node_id}",
                data=[reading.value for reading in series[node_id]],
                border_color=node_color(index),
                fill=False,
            )
            for index, node_id in enumerate(nodes)
        ],
    )
