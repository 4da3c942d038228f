from __future__ import annotations

from itertools import zip_longest
from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Network Status")
    echo_key_values(
        [
            ("active_nodes", payload.get("active_nodes")),
            ("current_parent", payload.get("current_parent")),
            ("last_update", payload.get("last_update")),
        ]
    )


def render_filters(payload: Dict[str, Any]) -> None:
    echo_heading("Filters")
    selected = payload.get("selected_nodes") or []
    echo_key_values(
        [
            ("window_minutes", payload.get("window_minutes")),
            ("view_mode", payload.get("view_mode")),
            ("selected_nodes", ", ".join(selected) if selected else "none"),
        ]
    )


def render_chart(payload: Dict[str, Any]) -> None:
    labels = payload.get("labels") or []
    datasets = payload.get("datasets") or []
    echo_heading("Sensor Data")
    if not datasets or not labels:
        typer.echo("No data in the selected window.")
        return

    header = ["time"] + [str(dataset.get("label")) for dataset in datasets]
    typer.echo(" | ".join(header))
    columns = [dataset.get("data") or [] for dataset in datasets]
    for label, *values in zip_longest(labels, *columns):
        if label is None:
            break
        typer.echo(" | ".join([label] + [_format_value(value) for value in values]))
