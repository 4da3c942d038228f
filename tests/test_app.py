from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.web import _format_last_update
from datastore.mock_realtime_db import MockRealtimeDatabase, build_default_database
from services.chart import resolve_timezone
from services.dashboard import DashboardService, build_default_dashboard
from settings import get_settings


SNAPSHOT = {
    "A": {"100": {"value": 10}, "160": {"value": 20}},
    "B": {"100": {"value": 30}},
}


@pytest.fixture
def database() -> MockRealtimeDatabase:
    database = MockRealtimeDatabase(name="test")
    database.set_value("network_status", {"active_nodes": 2, "current_parent": "A", "last_update": 150})
    database.set_value("sensor_data", SNAPSHOT)
    return database


@pytest.fixture
def api_client(database, monkeypatch) -> Iterator[TestClient]:
    dashboards: list[DashboardService] = []

    def build_test_dashboard() -> DashboardService:
        if not dashboards:
            dashboards.append(DashboardService(clock=lambda: 200.0))
        return dashboards[0]

    build_test_dashboard.cache_clear = dashboards.clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_dashboard", build_test_dashboard)
    monkeypatch.setattr("app.main.build_source", lambda: database)
    monkeypatch.setattr("app.api.build_default_dashboard", build_test_dashboard)
    monkeypatch.setattr("app.web.build_default_dashboard", build_test_dashboard)

    app = create_app()
    with TestClient(app) as client:
        yield client


def test_lifespan_attaches_and_clears_dashboard(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("REALTIME_DB_URL", raising=False)
    monkeypatch.setenv("MOCK_DB_PERSISTENCE_PATH", str(tmp_path / "db.json"))
    get_settings.cache_clear()
    build_default_database.cache_clear()
    app = create_app()

    try:
        with TestClient(app) as client:
            dashboard_during = build_default_dashboard()
            build_default_database().set_value("sensor_data", SNAPSHOT)
            assert client.get("/nodes").json()["nodes"] == ["A", "B"]

        dashboard_after = build_default_dashboard()
        assert dashboard_after is not dashboard_during
    finally:
        build_default_dashboard.cache_clear()
        build_default_database.cache_clear()
        get_settings.cache_clear()


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_status_reflects_network_channel(api_client: TestClient, database) -> None:
    assert api_client.get("/status").json() == {
        "active_nodes": 2,
        "current_parent": "A",
        "last_update": 150,
    }

    database.set_value("network_status", {"active_nodes": 5})

    assert api_client.get("/status").json()["current_parent"] is None


def test_nodes_and_toggle(api_client: TestClient) -> None:
    assert api_client.get("/nodes").json() == {"nodes": ["A", "B"], "selected": ["A", "B"]}

    response = api_client.post("/nodes/A/toggle", params={"checked": "false"})

    assert response.status_code == 200
    assert response.json()["selected_nodes"] == ["B"]


def test_mean_chart(api_client: TestClient) -> None:
    response = api_client.get("/chart")

    assert response.status_code == 200
    payload = response.json()
    assert payload["labels"] == ["00:01:40", "00:02:40"]
    assert payload["datasets"][0]["label"] == "Mean Sensor Value"
    assert payload["datasets"][0]["data"] == [20.0, 20.0]
    assert payload["datasets"][0]["borderColor"] == "rgb(75, 192, 192)"
    assert payload["datasets"][0]["fill"] is True


def test_chart_overrides_do_not_change_filters(api_client: TestClient) -> None:
    response = api_client.get(
        "/chart",
        params=[("view", "individual"), ("node", "B"), ("node", "A"), ("window", "all")],
    )

    payload = response.json()
    assert payload["labels"] == ["00:01:40"]
    assert [dataset["label"] for dataset in payload["datasets"]] == ["Node B", "Node A"]
    assert api_client.get("/filters").json() == {
        "window_minutes": 60,
        "selected_nodes": ["A", "B"],
        "view_mode": "mean",
    }


def test_chart_rejects_unknown_window(api_client: TestClient) -> None:
    response = api_client.get("/chart", params={"window": "15"})

    assert response.status_code == 400
    assert "15" in response.json()["detail"]


def test_update_filters(api_client: TestClient) -> None:
    response = api_client.put(
        "/filters",
        json={"window_minutes": "all", "view_mode": "individual", "selected_nodes": ["B"]},
    )

    assert response.status_code == 200
    assert response.json() == {
        "window_minutes": "all",
        "selected_nodes": ["B"],
        "view_mode": "individual",
    }
    chart = api_client.get("/chart").json()
    assert [dataset["label"] for dataset in chart["datasets"]] == ["Node B"]


def test_update_filters_validates_payload(api_client: TestClient) -> None:
    response = api_client.put("/filters", json={"view_mode": "median"})

    assert response.status_code == 422


def test_ui_page_renders_controls(api_client: TestClient) -> None:
    response = api_client.get("/ui")

    assert response.status_code == 200
    assert "Network Dashboard" in response.text
    assert 'id="node-A"' in response.text
    assert "Last 60 minutes" in response.text


def test_ui_page_shows_last_update_in_display_timezone(api_client: TestClient) -> None:
    response = api_client.get("/ui")

    assert "Last Update: 1970-01-01 00:02:30" in response.text


def test_last_update_uses_given_timezone() -> None:
    tokyo = resolve_timezone("Asia/Tokyo")

    assert _format_last_update(0, tokyo) == "1970-01-01 09:00:00"
    assert _format_last_update(None, tokyo) == "unknown"
