"""HTTP API tests — triage, dedupe, batch, metrics, validation and API-key auth."""

import logging
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from civicai import main
from tests.conftest import auth_header


def _recent(hours: float = 1) -> str:
    return (datetime.now(timezone.utc) - timedelta(hours=hours)).isoformat()


def _issue(id: str, title: str, lat: float = 28.6139, category: str = "Pothole", **extra) -> dict:
    return {
        "id": id,
        "category": category,
        "status": "Submitted",
        "geo": {"lat": lat, "lng": 77.2090},
        "createdAt": _recent(),
        "title": title,
        "description": "",
        "media": [],
        **extra,
    }


class TestHealth:

    async def test_healthz(self, client: AsyncClient):
        res = await client.get("/healthz")
        assert res.status_code == 200
        assert res.json() == {"status": "ok"}

    async def test_version(self, client: AsyncClient):
        res = await client.get("/version")
        assert res.status_code == 200
        assert res.json()["version"] == "1.0.0"


class TestTriageEndpoint:

    async def test_triage(self, client: AsyncClient):
        res = await client.post("/triage", json={"report": {
            "title": "Large pothole on Main Road",
            "description": "blocking traffic",
            "categoryHint": "Pothole",
        }})
        assert res.status_code == 200
        data = res.json()
        assert data["category"] == "Pothole"
        assert data["severity"] == 4
        assert data["suggestedDept"] == "Roads & Infrastructure"
        assert data["eta"] == "2 days"
        assert data["priorityScore"] == 90
        assert data["confidence"] >= 0.7

    async def test_triage_accepts_ticket_field_names(self, client: AsyncClient):
        res = await client.post("/triage", json={"report": {
            "title": "emergency water leak flooding",
            "category": "WaterLeak",
            "severity": 3,
            "geo": {"lat": 28.615, "lng": 77.21},
        }})
        assert res.status_code == 200
        data = res.json()
        assert data["severity"] == 5
        assert data["eta"] == "12 hours"
        assert data["priorityScore"] == 100

    @pytest.mark.parametrize("report", [
        {"title": "pothole", "severityHint": 9},
        {"title": "pothole", "severityHint": 0},
        {"title": "pothole", "categoryHint": "Volcano"},
        {"title": "pothole", "location": {"lat": 200, "lng": 77.2}},
        {"title": "pothole", "location": {"lat": 28.6}},
    ])
    async def test_triage_rejects_invalid_report(self, client: AsyncClient, report):
        res = await client.post("/triage", json={"report": report})
        assert res.status_code == 422
        assert "detail" in res.json()


class TestDedupeEndpoint:

    async def test_empty_snapshot(self, client: AsyncClient):
        res = await client.post("/dedupe", json={
            "report": {"title": "pothole", "categoryHint": "Pothole"},
            "existing": [],
        })
        assert res.status_code == 200
        data = res.json()
        assert data["isDuplicate"] is False
        assert data["similarity"] == 0.0
        assert data["confidence"] == 0.9

    async def test_duplicate(self, client: AsyncClient):
        res = await client.post("/dedupe", json={
            "report": {
                "title": "deep pothole",
                "categoryHint": "Pothole",
                "location": {"lat": 28.6139, "lng": 77.2090},
            },
            "existing": [
                _issue("CIV-1", "deep pothole", lat=28.61395),
                _issue("CIV-2", "deep pothole", lat=28.6139, status="Resolved"),
            ],
        })
        assert res.status_code == 200
        data = res.json()
        assert data["isDuplicate"] is True
        assert data["masterCaseId"] == "CIV-1"
        assert data["suggestedAction"] == "merge"

    async def test_snapshot_limit(self, client: AsyncClient, monkeypatch):
        monkeypatch.setenv("MAX_EXISTING_ISSUES", "1")
        res = await client.post("/dedupe", json={
            "report": {"title": "pothole", "categoryHint": "Pothole"},
            "existing": [_issue("CIV-1", "a"), _issue("CIV-2", "b")],
        })
        assert res.status_code == 413
        assert res.json()["detail"] == "2 issues exceeds the limit of 1"


class TestBatchEndpoint:

    async def test_batch(self, client: AsyncClient):
        res = await client.post("/batch", json={
            "issues": [
                _issue("CIV-1", "deep pothole on the road"),
                _issue("CIV-2", "deep pothole on the road", lat=28.61392),
                _issue("CIV-3", "garbage bin overflow", category="Garbage"),
            ],
            "ids": ["CIV-1", "CIV-3", "CIV-404"],
        })
        assert res.status_code == 200
        data = res.json()
        assert data["processed"] == 2
        by_id = {item["ticketId"]: item for item in data["results"]}
        assert set(by_id) == {"CIV-1", "CIV-3"}
        assert by_id["CIV-1"]["dedupe"]["masterCaseId"] == "CIV-2"
        assert by_id["CIV-1"]["dedupe"]["isDuplicate"] is True
        assert by_id["CIV-3"]["triage"]["category"] == "Garbage"
        assert by_id["CIV-3"]["dedupe"]["isDuplicate"] is False


class TestMetricsEndpoint:

    async def test_counts_calls(self, client: AsyncClient):
        await client.post("/triage", json={"report": {"title": "pothole"}})
        await client.post("/dedupe", json={"report": {"title": "pothole"}, "existing": []})
        res = await client.get("/metrics")
        assert res.status_code == 200
        data = res.json()
        assert data["triageCalls"] == 1
        assert data["dedupeCalls"] == 1
        assert data["duplicatesFound"] == 0


class TestAuth:

    async def test_key_required_when_configured(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(main, "API_KEY", "secret-key")
        res = await client.post("/triage", json={"report": {"title": "pothole"}})
        assert res.status_code == 403

    async def test_valid_key(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(main, "API_KEY", "secret-key")
        res = await client.post(
            "/triage",
            json={"report": {"title": "pothole"}},
            headers=auth_header("secret-key"),
        )
        assert res.status_code == 200

    async def test_health_is_open(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(main, "API_KEY", "secret-key")
        res = await client.get("/healthz")
        assert res.status_code == 200


class TestLifespan:

    async def test_warns_without_api_key(self, monkeypatch, caplog):
        """Startup logs a warning when the service runs unauthenticated."""
        monkeypatch.setattr(main, "API_KEY", None)
        caplog.set_level(logging.INFO, logger="civicai")
        async with main.lifespan(main.app):
            pass
        messages = [record.getMessage() for record in caplog.records]
        assert "API_KEY is not set." in messages
        assert messages[-1] == "Stopping CivicAI sidecar."

    async def test_logs_masked_key(self, monkeypatch, caplog):
        monkeypatch.setattr(main, "API_KEY", "secret-key")
        caplog.set_level(logging.INFO, logger="civicai")
        async with main.lifespan(main.app):
            pass
        messages = [record.getMessage() for record in caplog.records]
        assert "API_KEY is set: secr******" in messages
        assert not any("secret-key" in m for m in messages)

    @pytest.mark.parametrize("key, masked", [
        ("abcd", "****"),
        ("abc", "****"),
        ("abcdef", "abcd**"),
    ])
    def test_mask_api_key(self, key, masked):
        assert main.mask_api_key(key) == masked
