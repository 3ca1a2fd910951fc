"""Tests for the FastAPI application."""

from __future__ import annotations

from io import BytesIO

from fastapi.testclient import TestClient

from incidentrag.api.app import AppDependencies, create_app
from incidentrag.config import Settings
from incidentrag.services.incidents import IncidentService
from incidentrag.services.query import AnswerService


def create_test_client(incident_service: IncidentService, **overrides: object) -> TestClient:
    deps = AppDependencies(incidents=incident_service, answers=AnswerService(incident_service))
    settings = Settings(environment="test", **overrides)
    app = create_app(settings=settings, dependencies=deps)
    return TestClient(app)


def test_ingest_list_search_and_delete(incident_service: IncidentService, report_text: str) -> None:
    with create_test_client(incident_service) as client:
        created = client.post("/incidents/text", json={"text": report_text, "filename": "AC2405.pdf"})
        assert created.status_code == 201, created.text
        incident = created.json()
        assert incident["incident_number"] == "AC2405"
        assert incident["client"] == "PPG Ibérica"
        assert incident["hours_summary"]["total"] == 21

        listing = client.get("/incidents")
        assert listing.status_code == 200
        assert listing.json()["count"] == 1

        fetched = client.get(f"/incidents/{incident['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["detected_at"] == "2024-03-15"

        search = client.post("/search", json={"query": "fallo del autómata", "filters": {"severity": ["low"]}})
        assert search.status_code == 200, search.text
        results = search.json()["results"]
        assert [result["incident"]["id"] for result in results] == [incident["id"]]
        assert results[0]["hits"][0]["text"].startswith("[Sección: ")

        deleted = client.delete(f"/incidents/{incident['id']}")
        assert deleted.status_code == 204

        missing = client.get(f"/incidents/{incident['id']}")
        assert missing.status_code == 404
        assert "correlation_id" in missing.json()


def test_agent_query_and_stats(incident_service: IncidentService, report_text: str) -> None:
    with create_test_client(incident_service) as client:
        empty = client.post("/agent/query", json={"question": "¿Qué trabajos hay?"})
        assert empty.status_code == 200, empty.text
        assert empty.json()["sources"] == []
        assert empty.json()["answer"].startswith("No he encontrado información relevante")

        client.post("/incidents/text", json={"text": report_text, "filename": "AC2405.pdf"})

        response = client.post(
            "/agent/query",
            json={"question": "¿Cuántas horas se dedicaron en PPG?"},
            headers={"X-Request-ID": "req-1"},
        )
        assert response.status_code == 200, response.text
        payload = response.json()
        assert payload["answer"].startswith("Según las actas analizadas:")
        assert payload["sources"][0]["incident_number"] == "AC2405"
        assert "[Sección:" not in payload["sources"][0]["relevant_text"]
        assert payload["trace_id"] == "req-1"
        assert response.headers["X-Correlation-ID"] == "req-1"

        stats = client.get("/stats")
        assert stats.status_code == 200
        body = stats.json()
        assert body["total_incidents"] == 1
        assert body["total_hours"] == 21
        assert body["by_client"] == {"PPG Ibérica": 1}


def test_upload_reports(incident_service: IncidentService, report_text: str) -> None:
    with create_test_client(incident_service) as client:
        uploaded = client.post(
            "/incidents/upload",
            files=[("files", ("AC2405.txt", BytesIO(report_text.encode("utf-8")), "text/plain"))],
        )
        assert uploaded.status_code == 201, uploaded.text
        assert [item["incident_number"] for item in uploaded.json()["incidents"]] == ["AC2405"]

        rejected = client.post(
            "/incidents/upload",
            files=[("files", ("notas.docx", BytesIO(b"binary"), "application/octet-stream"))],
        )
        assert rejected.status_code == 415


def test_validation_and_unknown_ids(incident_service: IncidentService) -> None:
    with create_test_client(incident_service) as client:
        assert client.post("/incidents/text", json={"text": ""}).status_code == 422
        assert client.post("/search", json={"query": "x", "limit": 0}).status_code == 422
        assert client.delete("/incidents/does-not-exist").status_code == 404


def test_api_key_required_for_writes(incident_service: IncidentService, report_text: str) -> None:
    with create_test_client(incident_service, api_key="secret") as client:
        denied = client.post("/incidents/text", json={"text": report_text})
        assert denied.status_code == 401

        allowed = client.post(
            "/incidents/text",
            json={"text": report_text, "filename": "AC2405.pdf"},
            headers={"X-API-Key": "secret"},
        )
        assert allowed.status_code == 201

        assert client.get("/incidents").status_code == 200


def test_health_and_metrics(incident_service: IncidentService) -> None:
    with create_test_client(incident_service) as client:
        health = client.get("/healthz")
        assert health.status_code == 200
        assert health.json()["status"] == "ok"
        assert health.json()["environment"] == "test"

        metrics = client.get("/metrics")
        assert metrics.status_code == 200
        assert "incidentrag" in metrics.text
