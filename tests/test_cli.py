from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import pytest
import typer
from typer.testing import CliRunner

from cli.app import app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.chart_calls: List[tuple[Optional[str], Optional[str], Optional[List[str]]]] = []
        self.updates: List[Dict[str, Any]] = []
        self.chart_payload: Dict[str, Any] = {
            "labels": ["00:01:40", "00:02:40"],
            "datasets": [{"label": "Mean Sensor Value", "data": [20.0, 20.5]}],
        }
        self.closed = False

    def get_status(self) -> Dict[str, Any]:
        return {"active_nodes": 3, "current_parent": "node-1", "last_update": 1700000000}

    def get_filters(self) -> Dict[str, Any]:
        return {"window_minutes": 60, "selected_nodes": ["A"], "view_mode": "mean"}

    def get_chart(self, window=None, view=None, nodes=None) -> Dict[str, Any]:
        self.chart_calls.append((window, view, nodes))
        return self.chart_payload

    def update_filters(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.updates.append(payload)
        return {"window_minutes": payload.get("window_minutes", 60), "selected_nodes": [], "view_mode": "mean"}

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    stub = StubClient(config=None)

    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return stub


def test_status_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "active_nodes: 3" in result.stdout
    assert "current_parent: node-1" in result.stdout
    assert stub.closed is True


def test_chart_command_passes_overrides(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(
        app, ["--base-url", "http://dash:9000/", "chart", "-w", "all", "--view", "mean", "-n", "A", "-n", "B"]
    )

    assert result.exit_code == 0
    assert stub.config.base_url == "http://dash:9000"
    assert stub.chart_calls == [("all", "mean", ["A", "B"])]
    assert "time | Mean Sensor Value" in result.stdout
    assert "00:02:40 | 20.50" in result.stdout


def test_chart_command_reports_empty_data(runner: CliRunner, stub: StubClient) -> None:
    stub.chart_payload = {"labels": [], "datasets": [{"label": "Node B", "data": [1.0]}]}

    result = runner.invoke(app, ["chart"])

    assert result.exit_code == 0
    assert "No data in the selected window." in result.stdout


def test_set_filter_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["set-filter", "--window", "30", "--view", "individual"])

    assert result.exit_code == 0
    assert stub.updates == [{"window_minutes": 30, "view_mode": "individual"}]
    assert "window_minutes: 30" in result.stdout


def test_set_filter_requires_an_option(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["set-filter"])

    assert result.exit_code != 0
    assert stub.updates == []


def test_filters_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["filters"])

    assert result.exit_code == 0
    assert "selected_nodes: A" in result.stdout


def test_api_client_builds_chart_query() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"labels": [], "datasets": []})

    client = ApiClient(CLIConfig(base_url="http://dash"), transport=httpx.MockTransport(handler))
    try:
        client.get_chart(window="5", nodes=["A", "B"])
    finally:
        client.close()

    assert seen[0].url.path == "/chart"
    assert seen[0].url.params.get_list("node") == ["A", "B"]
    assert seen[0].url.params["window"] == "5"


def test_api_client_exits_on_http_error(capsys) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"detail": "Unsupported time window '15'."})

    client = ApiClient(CLIConfig(base_url="http://dash"), transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(typer.Exit) as excinfo:
            client.get_chart(window="15")
    finally:
        client.close()

    assert excinfo.value.exit_code == 1
    assert "Unsupported time window" in capsys.readouterr().err


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://env-host:8000/")
    monkeypatch.setenv("CLI_REQUEST_TIMEOUT", "not-a-number")

    config = load_config()

    assert config == CLIConfig(base_url="http://env-host:8000", timeout=30.0)
