"""Tests for API endpoints."""

import pytest
from unittest.mock import patch
import json

from services.errors import DataSourceUnavailable


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert json.loads(response.data) == {"status": "ok"}


class TestBurndownEndpoint:
    """Test sprint burndown endpoint."""

    def test_developer_burndown(self, client):
        response = client.get("/api/sprints/100/burndown?developer_id=dev-1")
        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["developerId"] == "dev-1"
        assert len(data["days"]) == 3
        assert data["totalPlanned"] == 8
        assert data["sprint"]["name"] == "OBD Sprint 1"

    def test_squad_burndown(self, client):
        data = json.loads(client.get("/api/sprints/100/burndown").data)["data"]
        assert data["developerId"] is None
        assert data["totalTickets"] == 4

    def test_unknown_sprint_returns_404(self, client):
        response = client.get("/api/sprints/999/burndown")
        assert response.status_code == 404
        assert "error" in json.loads(response.data)

    def test_invalid_window_returns_422(self, client, team_sprint_source, closed_sprint_row):
        team_sprint_source.add_sprint(dict(closed_sprint_row, id=101, start_date=None))
        response = client.get("/api/sprints/101/burndown")
        assert response.status_code == 422

    def test_data_source_down_returns_503(self, client, team_sprint_source):
        with patch.object(team_sprint_source, "fetch_sprint_window",
                          side_effect=DataSourceUnavailable("timeout")):
            response = client.get("/api/sprints/100/burndown")
        assert response.status_code == 503


class TestSprintMetricsEndpoints:
    def test_compute_and_history(self, client):
        response = client.post("/api/sprints/100/metrics")
        assert response.status_code == 200
        rollup = json.loads(response.data)["data"]
        assert rollup["totalStoryPoints"] == 10
        assert rollup["completionPercentage"] == 25.0

        history = json.loads(client.get("/api/sprints/100/metrics/history").data)["data"]
        assert len(history) == 1
        assert history[0]["calculatedAt"] == rollup["calculatedAt"]

    def test_history_of_uncomputed_sprint_is_empty(self, client):
        data = json.loads(client.get("/api/sprints/100/metrics/history").data)["data"]
        assert data == []

    def test_developer_metrics(self, client):
        response = client.post("/api/sprints/100/developer-metrics")
        assert response.status_code == 200
        rollups = json.loads(response.data)["data"]
        assert {r["developerId"] for r in rollups} == {"dev-1", "dev-2", None}

    def test_closure_audit(self, client):
        data = json.loads(client.get("/api/sprints/100/closure-audit").data)["data"]
        assert data["isValid"] is True
        assert data["issues"][0]["type"] == "missing_status_at_close"


class TestAllocationsEndpoint:
    def test_requires_sprint_ids(self, client):
        response = client.get("/api/allocations")
        assert response.status_code == 400

    def test_allocations(self, client):
        data = json.loads(client.get("/api/allocations?sprint_ids=100").data)["data"]
        totals = {t["developerId"]: t["percentage"] for t in data["totalsByDeveloper"]}
        assert totals["dev-1"] == 47
        assert totals[None] == 0
        assert len(data["records"]) == 3


class TestRecomputeEndpoint:
    def test_requires_body(self, client):
        response = client.post("/api/recompute", json={})
        assert response.status_code == 400

    def test_rejects_non_list_ids(self, client):
        response = client.post("/api/recompute", json={"sprintIds": "100"})
        assert response.status_code == 400

    def test_recompute_sprint_ids(self, client, rollup_store):
        response = client.post("/api/recompute", json={"sprintIds": [100, 999]})
        assert response.status_code == 200
        run = json.loads(response.data)["data"]
        assert run["processed"] == ["100"]
        assert "999" in run["failed"]
        assert len(rollup_store.sprint_rollup_history("100")) == 1

    def test_recompute_squad(self, client):
        response = client.post("/api/recompute", json={"squadId": "squad-a"})
        run = json.loads(response.data)["data"]
        assert run["sprintIds"] == ["100"]

    def test_busy_returns_409(self, client, app):
        guard = app.extensions["recompute_guard"]
        guard.try_acquire()
        try:
            response = client.post("/api/recompute", json={"sprintIds": [100]})
        finally:
            guard.release()
        assert response.status_code == 409
