from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_chart, render_filters, render_status


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for querying the sensor network dashboard service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Dashboard API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show the latest network status."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("filters")
def filters_command(ctx: typer.Context) -> None:
    """Show the stored chart filters."""
    state = _get_state(ctx)
    render_filters(state.client.get_filters())


@app.command("chart")
def chart_command(
    ctx: typer.Context,
    window: Optional[str] = typer.Option(
        None, "--window", "-w", help="Time window in minutes (5, 10, 30, 60) or 'all'."
    ),
    view: Optional[str] = typer.Option(
        None, "--view", help="'mean' or 'individual'."
    ),
    node: Optional[List[str]] = typer.Option(
        None, "--node", "-n", help="Node to include; repeat for several."
    ),
) -> None:
    """Print the chart data for the current or overridden filters."""
    state = _get_state(ctx)
    payload = state.client.get_chart(window=window, view=view, nodes=node or None)
    render_chart(payload)


@app.command("set-filter")
def set_filter_command(
    ctx: typer.Context,
    window: Optional[str] = typer.Option(None, "--window", "-w", help="5, 10, 30, 60 or 'all'."),
    view: Optional[str] = typer.Option(None, "--view", help="'mean' or 'individual'."),
    node: Optional[List[str]] = typer.Option(
        None, "--node", "-n", help="Replace the node selection; repeat for several."
    ),
) -> None:
    """Update the stored chart filters."""
    state = _get_state(ctx)
    payload: Dict[str, Any] = {}
    if window is not None:
        payload["window_minutes"] = window if window == "all" else _parse_minutes(window)
    if view is not None:
        payload["view_mode"] = view
    if node:
        payload["selected_nodes"] = list(node)
    if not payload:
        raise typer.BadParameter("Nothing to update; pass --window, --view or --node.")
    render_filters(state.client.update_filters(payload))


def _parse_minutes(value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid window {value!r}.") from exc
