"""HTTP API tests against the FastAPI app."""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from competitor_watcher import web
from competitor_watcher.web import app

FREE_PLAN_SECTIONS = [
    "market_overview",
    "key_competitors",
    "review_analysis",
    "market_gaps",
    "recommendations",
    "differentiation",
]


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def business(client):
    response = client.post(
        "/api/businesses",
        json={"name": "Café Lisboa", "type": "cafe", "latitude": 38.7139, "longitude": -9.1394},
    )
    assert response.status_code == 201
    return response.json()


def _user(client, username="maria", plan="free"):
    response = client.post("/api/users", json={"username": username, "plan": plan})
    assert response.status_code == 201
    return response.json()


def _events(body: str) -> list[tuple[str, str]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], lines["data"]))
    return events


def test_index(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Competitor Watcher" in response.text
    assert "EventSource" in response.text


class TestUsers:
    def test_create_and_get(self, client):
        user = _user(client, plan="pro")
        assert client.get(f"/api/users/{user['id']}").json()["plan"] == "pro"

    def test_duplicate(self, client):
        _user(client)
        response = client.post("/api/users", json={"username": "maria"})
        assert response.status_code == 400
        assert response.json()["details"] == {"username": "Username already exists"}

    def test_missing(self, client):
        assert client.get("/api/users/nope").status_code == 404


class TestBusinesses:
    """Business CRUD, validation and ownership."""

    def test_missing_name(self, client):
        response = client.post("/api/businesses", json={"type": "cafe"})
        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"

    def test_bad_type(self, client):
        response = client.post("/api/businesses", json={"name": "X", "type": "spaceport"})
        assert response.status_code == 400
        assert "type" in response.json()["details"]

    def test_pending_without_coordinates(self, client):
        response = client.post("/api/businesses", json={"name": "X", "type": "bar"})
        assert response.json()["location_status"] == "pending"

    def test_list_and_get(self, client, business):
        assert [b["id"] for b in client.get("/api/businesses").json()] == [business["id"]]
        assert client.get(f"/api/businesses/{business['id']}").json()["name"] == "Café Lisboa"

    def test_not_found(self, client):
        response = client.get("/api/businesses/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Business not found"}

    def test_update(self, client):
        created = client.post("/api/businesses", json={"name": "X", "type": "bar"}).json()
        response = client.put(f"/api/businesses/{created['id']}", json={"latitude": 38.7, "longitude": -9.1})
        assert response.status_code == 200
        assert response.json()["location_status"] == "validated"
        assert response.json()["name"] == "X"

    def test_delete(self, client, business):
        assert client.delete(f"/api/businesses/{business['id']}").status_code == 204
        assert client.get(f"/api/businesses/{business['id']}").status_code == 404

    def test_business_limit(self, client):
        user = _user(client)
        headers = {"X-User-Id": user["id"]}
        first = client.post("/api/businesses", json={"name": "A", "type": "bar"}, headers=headers)
        assert first.status_code == 201
        second = client.post("/api/businesses", json={"name": "B", "type": "bar"}, headers=headers)
        assert second.status_code == 403
        assert "free plan" in second.json()["error"]

    def test_ownership(self, client):
        alice = _user(client, "alice")
        bob = _user(client, "bob")
        created = client.post(
            "/api/businesses", json={"name": "A", "type": "bar"}, headers={"X-User-Id": alice["id"]}
        ).json()
        assert client.get(f"/api/businesses/{created['id']}", headers={"X-User-Id": bob["id"]}).status_code == 403
        assert client.get(f"/api/businesses/{created['id']}").status_code == 403
        assert client.get("/api/businesses", headers={"X-User-Id": bob["id"]}).json() == []

    def test_unknown_user_header(self, client):
        assert client.get("/api/businesses", headers={"X-User-Id": "ghost"}).status_code == 403


class TestReports:
    """Generating a report and reading it back on every surface."""

    def test_pending_location(self, client):
        created = client.post("/api/businesses", json={"name": "X", "type": "bar"}).json()
        response = client.post(f"/api/run-report/{created['id']}")
        assert response.status_code == 400
        assert "pending location verification" in response.json()["error"]

    def test_run_and_read_back(self, client, business):
        response = client.post(f"/api/run-report/{business['id']}", params={"radius": 9000})
        assert response.status_code == 200
        report = response.json()
        assert report["radius"] == 5000
        assert report["competitors"]

        dialog = client.get(f"/api/reports/{report['id']}/dialog").json()
        assert [s["key"] for s in dialog["sections"]] == FREE_PLAN_SECTIONS
        assert dialog["business_name"] == "Café Lisboa"

        sections = client.get(f"/api/reports/{report['id']}/sections").json()
        assert sections["keys"] == FREE_PLAN_SECTIONS
        assert sections["sections"]["recommendations"]

        download = client.get(f"/api/reports/{report['id']}/html")
        assert download.headers["content-type"].startswith("text/html")
        assert download.headers["content-disposition"] == 'attachment; filename="report-caf-lisboa.html"'
        assert 'data-section="market_overview"' in download.text

        localized = client.get(f"/api/reports/{report['id']}/html", params={"language": "de"})
        assert '<html lang="de">' in localized.text

        full = client.get(f"/api/reports/{report['id']}").json()
        assert full["html"].startswith("<!DOCTYPE html>")
        assert [r["id"] for r in client.get(f"/api/reports/business/{business['id']}").json()] == [report["id"]]
        assert [r["id"] for r in client.get("/api/reports").json()] == [report["id"]]

    def test_report_not_found(self, client):
        assert client.get("/api/reports/nope/dialog").status_code == 404

    def test_report_ownership(self, client):
        alice = _user(client, "alice")
        created = client.post(
            "/api/businesses",
            json={"name": "A", "type": "bar", "latitude": 38.7, "longitude": -9.1},
            headers={"X-User-Id": alice["id"]},
        ).json()
        report = client.post(f"/api/run-report/{created['id']}", headers={"X-User-Id": alice["id"]}).json()
        assert report["user_id"] == alice["id"]
        assert client.get(f"/api/reports/{report['id']}/html").status_code == 403

    def test_pdf_download(self, client, business):
        report = client.post(f"/api/run-report/{business['id']}").json()
        try:
            response = client.get(f"/api/reports/{report['id']}/pdf")
        except (ImportError, OSError) as e:
            pytest.skip(f"WeasyPrint unavailable: {e}")
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_delete_business_removes_reports(self, client, business):
        report = client.post(f"/api/run-report/{business['id']}").json()
        client.delete(f"/api/businesses/{business['id']}")
        assert client.get(f"/api/reports/{report['id']}").status_code == 404


class TestGenerateStream:
    """Server-sent events for report generation."""

    def test_progress_then_complete(self, client, business):
        response = client.get(f"/api/generate/{business['id']}", params={"language": "pt"})
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _events(response.text)
        assert [name for name, _ in events] == ["progress", "progress", "progress", "complete"]

        complete = json.loads(events[-1][1])
        assert complete["business_name"] == "Café Lisboa"
        assert complete["sections"] == FREE_PLAN_SECTIONS
        assert client.get(f"/api/reports/{complete['report_id']}").json()["language"] == "pt"

    def test_error_event(self, client):
        created = client.post("/api/businesses", json={"name": "X", "type": "bar"}).json()
        events = _events(client.get(f"/api/generate/{created['id']}").text)
        assert events[-1][0] == "error"
        assert "pending location verification" in events[-1][1]

    def test_missing_business(self, client):
        events = _events(client.get("/api/generate/nope").text)
        assert events == [("error", "Business not found")]

    def test_closing_stream_cancels_generation(self, business, monkeypatch):
        cancelled = []

        async def slow_report(session, business_id, on_progress=None, **kwargs):
            on_progress("Searching for competitors...")
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(business_id)
                raise

        monkeypatch.setattr(web, "run_report_for_business", slow_report)

        async def consume_first_event():
            events = web.report_events(business["id"])
            first = await events.__anext__()
            await events.aclose()
            await asyncio.sleep(0.01)
            return first, list(cancelled)

        first, cancelled_while_running = asyncio.run(consume_first_event())
        assert first.startswith("event: progress")
        assert cancelled_while_running == [business["id"]]


def test_places_search_without_key(client):
    assert client.get("/api/places/search", params={"q": "Rua Augusta"}).json() == []
