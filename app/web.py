from __future__ import annotations

from datetime import datetime, tzinfo
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from models.records import WINDOW_CHOICES, ViewMode
from services.dashboard import DashboardService, build_default_dashboard


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


def get_dashboard() -> DashboardService:
    return build_default_dashboard()


def _format_last_update(value: Optional[int], tz: tzinfo) -> str:
    if value is None:
        return "unknown"
    try:
        return datetime.fromtimestamp(value, tz=tz).strftime("%Y-%m-%d %H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return "unknown"


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    dashboard: DashboardService = Depends(get_dashboard),
) -> HTMLResponse:
    status = dashboard.network_status()
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "status": status,
            "last_update": _format_last_update(status.last_update, dashboard.tz),
            "nodes": dashboard.nodes(),
            "filters": dashboard.filters(),
            "window_choices": WINDOW_CHOICES,
            "view_modes": list(ViewMode),
        },
    )
