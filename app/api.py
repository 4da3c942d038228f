"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    ChartResponse,
    FilterStateResponse,
    FilterUpdate,
    NetworkStatusResponse,
    NodeListResponse,
)
from models.records import ViewMode, parse_window
from services.dashboard import DashboardService, build_default_dashboard

router = APIRouter()


def get_dashboard() -> DashboardService:
    return build_default_dashboard()


@router.get(
    "/status",
    response_model=NetworkStatusResponse,
    summary="Latest network status published by the mesh.",
)
async def get_network_status(
    dashboard: DashboardService = Depends(get_dashboard),
) -> NetworkStatusResponse:
    return NetworkStatusResponse.from_status(dashboard.network_status())


@router.get(
    "/nodes",
    response_model=NodeListResponse,
    summary="Nodes present in the latest sensor snapshot and the current selection.",
)
async def list_nodes(
    dashboard: DashboardService = Depends(get_dashboard),
) -> NodeListResponse:
    return NodeListResponse(
        nodes=dashboard.nodes(),
        selected=dashboard.filters().selected_nodes,
    )


@router.post(
    "/nodes/{node_id}/toggle",
    response_model=FilterStateResponse,
    summary="Include or exclude a node from the chart.",
)
async def toggle_node(
    node_id: str,
    checked: bool = Query(..., description="Whether the node should be charted."),
    dashboard: DashboardService = Depends(get_dashboard),
) -> FilterStateResponse:
    return FilterStateResponse.from_state(dashboard.toggle_node(node_id, checked))


@router.get(
    "/filters",
    response_model=FilterStateResponse,
    summary="Current chart filters.",
)
async def get_filters(
    dashboard: DashboardService = Depends(get_dashboard),
) -> FilterStateResponse:
    return FilterStateResponse.from_state(dashboard.filters())


@router.put(
    "/filters",
    response_model=FilterStateResponse,
    summary="Update any subset of the chart filters.",
)
async def update_filters(
    update: FilterUpdate,
    dashboard: DashboardService = Depends(get_dashboard),
) -> FilterStateResponse:
    try:
        if update.window_minutes is not None:
            dashboard.set_window(update.window_minutes)
        if update.view_mode is not None:
            dashboard.set_view_mode(update.view_mode)
        if update.selected_nodes is not None:
            dashboard.set_selected_nodes(update.selected_nodes)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return FilterStateResponse.from_state(dashboard.filters())


@router.get(
    "/chart",
    response_model=ChartResponse,
    summary="Chart description for the current or overridden filters.",
)
async def get_chart(
    window: Optional[str] = Query(None, description="5, 10, 30, 60 or 'all'."),
    view: Optional[ViewMode] = Query(None),
    node: Optional[List[str]] = Query(None, description="Repeat to select several nodes."),
    now: Optional[int] = Query(None, description="Override the current time in epoch seconds."),
    dashboard: DashboardService = Depends(get_dashboard),
) -> ChartResponse:
    filters = dashboard.filters()
    if window is not None:
        try:
            filters.window_minutes = parse_window(window)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(exc),
            ) from exc
    if view is not None:
        filters.view_mode = view
    if node is not None:
        filters.selected_nodes = list(node)
    return ChartResponse.from_chart(dashboard.chart(now_seconds=now, filters=filters))


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /ui for the dashboard."}
