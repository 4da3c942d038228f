"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from models.records import FilterState, NetworkStatus, ViewMode
from services.chart import Chart

WindowValue = Union[Literal[5, 10, 30, 60], Literal["all"]]


class NetworkStatusResponse(BaseModel):
    """Latest value of the ``network_status`` channel."""

    active_nodes: Optional[int] = None
    current_parent: Optional[str] = None
    last_update: Optional[int] = Field(
        default=None, description="Seconds since the epoch of the last mesh update."
    )

    @classmethod
    def from_status(cls, status: NetworkStatus) -> "NetworkStatusResponse":
        return cls(
            active_nodes=status.active_nodes,
            current_parent=status.current_parent,
            last_update=status.last_update,
        )


class NodeListResponse(BaseModel):
    nodes: List[str] = Field(default_factory=list)
    selected: List[str] = Field(default_factory=list)


class FilterStateResponse(BaseModel):
    """Current chart filters."""

    window_minutes: WindowValue
    selected_nodes: List[str] = Field(default_factory=list)
    view_mode: ViewMode

    @classmethod
    def from_state(cls, state: FilterState) -> "FilterStateResponse":
        return cls(
            window_minutes=state.window_minutes,
            selected_nodes=list(state.selected_nodes),
            view_mode=state.view_mode,
        )


class FilterUpdate(BaseModel):
    """Partial filter update; omitted fields keep their current value."""

    window_minutes: Optional[WindowValue] = None
    selected_nodes: Optional[List[str]] = None
    view_mode: Optional[ViewMode] = None


class ChartDataset(BaseModel):
    label: str
    data: List[Optional[float]] = Field(default_factory=list)
    borderColor: str
    backgroundColor: Optional[str] = None
    fill: bool = False


class ChartResponse(BaseModel):
    """Line chart description, shaped for the browser charting library."""

    labels: List[str] = Field(default_factory=list)
    datasets: List[ChartDataset] = Field(default_factory=list)

    @classmethod
    def from_chart(cls, chart: Chart) -> "ChartResponse":
        return cls(
            labels=list(chart.labels),
            datasets=[
                ChartDataset(
                    label=dataset.label,
                    data=list(dataset.data),
                    borderColor=dataset.border_color,
                    backgroundColor=dataset.background_color,
                    fill=dataset.fill,
                )
                for dataset in chart.datasets
            ],
        )
