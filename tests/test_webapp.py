"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from timekeeper.webapp import create_app


@pytest.fixture
def client(tmp_path):
    app = create_app(db_path=tmp_path / "api.sqlite3")
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def project(client):
    resp = client.post("/api/projects", json={"name": "Shop", "company": "merchandising"})
    assert resp.status_code == 201
    return resp.json()


class TestProjects:
    def test_create_and_list(self, client, project):
        resp = client.get("/api/projects", params={"company": "merchandising"})
        assert resp.status_code == 200
        assert [item["id"] for item in resp.json()] == [project["id"]]
        assert client.get("/api/projects", params={"company": "salescrew"}).json() == []

    def test_archive_hides_project(self, client, project):
        resp = client.patch(f"/api/projects/{project['id']}", json={"archived": True})
        assert resp.status_code == 200
        assert resp.json()["archived"] is True
        assert client.get("/api/projects").json() == []
        assert len(client.get("/api/projects", params={"include_archived": True}).json()) == 1

    def test_blank_name_rejected(self, client):
        resp = client.post("/api/projects", json={"name": "  ", "company": "inkognito"})
        assert resp.status_code == 400

    def test_unknown_company_rejected(self, client):
        resp = client.post("/api/projects", json={"name": "X", "company": "acme"})
        assert resp.status_code == 422

    def test_color_can_be_cleared(self, client):
        created = client.post(
            "/api/projects",
            json={"name": "Paint", "company": "inkognito", "color": "#ff8800"},
        ).json()
        resp = client.patch(f"/api/projects/{created['id']}", json={"color": None})
        assert resp.status_code == 200
        assert resp.json()["color"] is None
        assert resp.json()["name"] == "Paint"

    def test_null_name_rejected(self, client, project):
        resp = client.patch(f"/api/projects/{project['id']}", json={"name": None})
        assert resp.status_code == 400

    def test_missing_project(self, client):
        assert client.get("/api/projects/nope").status_code == 404
        assert client.patch("/api/projects/nope", json={"name": "x"}).status_code == 404


class TestTimer:
    def test_start_stop_cycle(self, client, project):
        resp = client.post(
            "/api/timer/start",
            json={"company": "merchandising", "project_id": project["id"]},
        )
        assert resp.status_code == 201
        entry = resp.json()
        assert entry["end_time"] is None

        status = client.get("/api/status").json()
        assert status["timer_running"] is True
        assert status["active_entry"]["id"] == entry["id"]

        again = client.post(
            "/api/timer/start",
            json={"company": "merchandising", "project_id": project["id"]},
        )
        assert again.status_code == 409

        stopped = client.post("/api/timer/stop")
        assert stopped.status_code == 200
        assert stopped.json()["end_time"] is not None
        assert client.post("/api/timer/stop").status_code == 409

    def test_switch_project(self, client, project):
        other = client.post(
            "/api/projects", json={"name": "Crew", "company": "salescrew"}
        ).json()
        client.post(
            "/api/timer/start",
            json={"company": "merchandising", "project_id": project["id"]},
        )
        resp = client.post("/api/timer/switch", json={"project_id": other["id"]})
        assert resp.status_code == 200
        assert resp.json()["company"] == "salescrew"
        entries = client.get("/api/time-entries").json()
        assert len(entries) == 2
        assert len({entry["session_id"] for entry in entries}) == 1

    def test_start_with_unknown_project(self, client):
        resp = client.post(
            "/api/timer/start", json={"company": "merchandising", "project_id": "nope"}
        )
        assert resp.status_code == 404


class TestEntries:
    def test_create_update_delete(self, client, project):
        resp = client.post(
            "/api/time-entries",
            json={
                "company": "merchandising",
                "start_time": "2026-10-20T07:00:00Z",
                "end_time": "2026-10-20T11:00:00Z",
                "project_id": project["id"],
                "is_home_office": True,
            },
        )
        assert resp.status_code == 201
        entry_id = resp.json()["id"]

        patched = client.patch(
            f"/api/time-entries/{entry_id}", json={"end_time": "2026-10-20T12:00:00Z"}
        )
        assert patched.status_code == 200
        assert patched.json()["end_time"].startswith("2026-10-20T12:00:00")

        assert client.delete(f"/api/time-entries/{entry_id}").status_code == 204
        assert client.get("/api/time-entries").json() == []
        assert client.delete(f"/api/time-entries/{entry_id}").status_code == 404

    def test_null_start_time_rejected(self, client):
        entry = client.post(
            "/api/time-entries",
            json={
                "company": "salescrew",
                "start_time": "2026-10-20T07:00:00Z",
                "end_time": "2026-10-20T08:00:00Z",
            },
        ).json()
        resp = client.patch(f"/api/time-entries/{entry['id']}", json={"start_time": None})
        assert resp.status_code == 400
        assert "start_time" in resp.json()["detail"]

        # An open entry is still allowed.
        reopened = client.patch(f"/api/time-entries/{entry['id']}", json={"end_time": None})
        assert reopened.status_code == 200
        assert reopened.json()["end_time"] is None

    def test_end_before_start_rejected(self, client):
        resp = client.post(
            "/api/time-entries",
            json={
                "company": "salescrew",
                "start_time": "2026-10-20T12:00:00Z",
                "end_time": "2026-10-20T11:00:00Z",
            },
        )
        assert resp.status_code == 400

    def test_naive_timestamps_rejected(self, client):
        resp = client.post(
            "/api/time-entries",
            json={"company": "salescrew", "start_time": "2026-10-20T12:00:00"},
        )
        assert resp.status_code == 422

    def test_unknown_project_rejected(self, client):
        resp = client.post(
            "/api/time-entries",
            json={
                "company": "salescrew",
                "start_time": "2026-10-20T12:00:00Z",
                "project_id": "nope",
            },
        )
        assert resp.status_code == 400

    def test_backfill_and_history(self, client, project):
        resp = client.post(
            "/api/time-entries/backfill",
            json={
                "day": "2026-10-20",
                "blocks": [
                    {"project_id": project["id"], "start_time": "09:00", "end_time": "13:00"},
                    {"project_id": project["id"], "start_time": "13:00", "end_time": "17:30"},
                ],
            },
        )
        assert resp.status_code == 201
        assert len(resp.json()) == 2

        days = client.get("/api/history").json()["days"]
        assert days[0]["date"] == "2026-10-20"
        assert days[0]["raw_seconds"] == 30600
        assert days[0]["adjusted_seconds"] == 28800
        assert days[0]["companies"] == [{"company": "merchandising", "seconds": 30600}]

    def test_backfill_invalid_block(self, client, project):
        resp = client.post(
            "/api/time-entries/backfill",
            json={
                "day": "2026-10-20",
                "blocks": [
                    {"project_id": project["id"], "start_time": "13:00", "end_time": "09:00"}
                ],
            },
        )
        assert resp.status_code == 400

    def test_sick_day(self, client):
        resp = client.post("/api/sick-days", json={"day": "2026-10-18", "company": "inkognito"})
        assert resp.status_code == 201
        assert resp.json()["is_sick_day"] is True
        day = client.get("/api/history").json()["days"][0]
        assert day["is_sick_day"] is True
        assert day["adjusted_seconds"] == 28800


class TestStats:
    def test_empty_stats(self, client):
        resp = client.get("/api/stats")
        assert resp.status_code == 200
        body = resp.json()
        assert body["total_seconds"] == 0
        assert body["overtime_balance_seconds"] == 154800
        assert body["to_go_seconds"] == 138600
        assert set(body) == {
            "total_seconds",
            "current_iso_week",
            "kw_seconds",
            "avg_per_day_seconds",
            "to_go_seconds",
            "overtime_balance_seconds",
        }

    def test_live_elapsed_override(self, client):
        body = client.get("/api/stats", params={"live_elapsed": 600}).json()
        assert body["to_go_seconds"] == 138600 - 600

    def test_negative_live_elapsed_rejected(self, client):
        assert client.get("/api/stats", params={"live_elapsed": -1}).status_code == 422


class TestTodos:
    def test_todo_lifecycle(self, client):
        resp = client.post(
            "/api/todos",
            json={
                "title": "Reply to supplier",
                "source_email_from": "supplier@example.com",
                "priority": "high",
                "project": "salescrew",
            },
        )
        assert resp.status_code == 201
        todo = resp.json()
        assert todo["status"] == "open"

        done = client.patch(f"/api/todos/{todo['id']}", json={"status": "done"}).json()
        assert done["status"] == "done"
        assert done["done_at"] is not None
        assert client.get("/api/todos", params={"status": "open"}).json() == []

        reopened = client.patch(f"/api/todos/{todo['id']}", json={"status": "open"}).json()
        assert reopened["done_at"] is None

        prompt = client.patch(f"/api/todos/{todo['id']}", json={"prompt": "Draft a reply"})
        assert prompt.json()["prompt"] == "Draft a reply"

        assert client.delete(f"/api/todos/{todo['id']}").status_code == 204
        assert client.get("/api/todos").json() == []

    def test_defaults_applied(self, client):
        todo = client.post("/api/todos", json={"title": "Call back"}).json()
        assert todo["priority"] == "medium"
        assert todo["project"] == "other"

    def test_created_done_todo_is_stamped(self, client):
        todo = client.post("/api/todos", json={"title": "x", "status": "done"}).json()
        assert todo["status"] == "done"
        assert todo["done_at"] is not None

        given = client.post(
            "/api/todos",
            json={"title": "y", "status": "done", "done_at": "2026-10-20T09:00:00Z"},
        ).json()
        assert given["done_at"].startswith("2026-10-20T09:00:00")

    def test_created_open_todo_drops_done_at(self, client):
        todo = client.post(
            "/api/todos",
            json={"title": "x", "status": "open", "done_at": "2026-10-20T09:00:00Z"},
        ).json()
        assert todo["done_at"] is None

    def test_done_at_without_status_rejected(self, client):
        todo = client.post("/api/todos", json={"title": "x"}).json()
        resp = client.patch(
            f"/api/todos/{todo['id']}", json={"done_at": "2026-10-20T09:00:00Z"}
        )
        assert resp.status_code == 400
        assert client.get("/api/todos").json()[0]["done_at"] is None

    def test_title_required(self, client):
        assert client.post("/api/todos", json={"title": ""}).status_code == 400
        assert client.post("/api/todos", json={"priority": "high"}).status_code == 422

    def test_unknown_todo(self, client):
        assert client.patch("/api/todos/nope", json={"status": "done"}).status_code == 404
        assert client.delete("/api/todos/nope").status_code == 404
