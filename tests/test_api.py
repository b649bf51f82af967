"""
FastAPI endpoint tests for the Fleet Compliance API.

Uses httpx + FastAPI TestClient; no real server needed, no LLM calls.
"""

from __future__ import annotations

import api
import pytest
from api import app
from fastapi.testclient import TestClient

from fleet_compliance.config import Settings
from fleet_compliance.pipeline import DocumentIngestionPipeline

client = TestClient(app)


@pytest.fixture(scope="module", autouse=True)
def _warm_pipeline() -> None:
    """Initialise the pipeline once for all API tests (bypasses lifespan)."""
    api._pipeline = DocumentIngestionPipeline(settings=Settings())
    yield  # type: ignore[misc]
    api._pipeline = None


# ─── Sample OCR text (same as main.py) ──────────────────────────────

RAW_OCR = (
    "STATE OF TEXAS  VEHICLE REGISTRATION\n"
    "VIN: 1FVACWDTX9HAJ7221\n"
    "License Plate: 4471KL  |  State: TX\n"
    "Make: Freightliner  |  Model: Cascadia\n"
    "Model Year: 2009\n"
    "Expiration Date: 03/31/2027"
)

VIN = "1FVACWDTX9HAJ7221"


def _document(file_name: str, document_type: str, expiry: str) -> dict:
    return {
        "file_name": file_name,
        "document_type": document_type,
        "vin_candidates": [{"value": VIN, "confidence": 95}],
        "extracted_data": {"expirationDate": expiry},
        "timestamp": "2024-05-01T10:00:00Z",
    }


class TestHealthEndpoint:
    def test_health_returns_200(self) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200

    def test_health_response_shape(self) -> None:
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["llm_enabled"] is False


class TestValidateEndpoint:
    def test_clean_registration(self) -> None:
        resp = client.post("/documents/validate", json={
            "document_type": "registration",
            "extracted_data": {
                "vin": "1HGCM82633A004352",
                "licensePlate": "ABC1234",
                "expirationDate": "2027-03-31",
                "state": "TX",
            },
            "today": "2026-10-18",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["recommendation"] == "auto_approve"
        assert data["status"] == "success"
        assert data["confidence_scores"]["vin"] == 100

    def test_noisy_vin_reports_correction(self) -> None:
        data = client.post("/documents/validate", json={
            "document_type": "insurance",
            "extracted_data": {"vin": "1HGCM82633A00435I"},
        }).json()
        vin = next(f for f in data["extracted_fields"] if f["field"] == "vin")
        assert vin["corrected_value"] == "1HGCM82633A004351"
        assert data["summary"]["critical_missing"] == 2

    def test_missing_body_is_422(self) -> None:
        assert client.post("/documents/validate", json={"document_type": "registration"}).status_code == 422


class TestIngestEndpoint:
    def test_ingest_text(self) -> None:
        resp = client.post("/documents/ingest", json={
            "raw_ocr_text": RAW_OCR,
            "file_name": "truck_07_registration.txt",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["document"]["document_type"] == "registration"
        assert data["document"]["extracted_data"]["vin"] == VIN
        assert data["extraction_method"].startswith("Regex-only")
        assert len(data["original_hash"]) == 64

    def test_too_short_text_rejected(self) -> None:
        resp = client.post("/documents/ingest", json={"raw_ocr_text": "VIN", "file_name": "x.txt"})
        assert resp.status_code == 422

    def test_ingest_file(self) -> None:
        resp = client.post(
            "/documents/ingest/file",
            files={"file": ("truck_07_registration.txt", RAW_OCR.encode("utf-8"), "text/plain")},
        )
        assert resp.status_code == 200
        assert resp.json()["document"]["file_name"] == "truck_07_registration.txt"

    def test_non_utf8_file_rejected(self) -> None:
        resp = client.post("/documents/ingest/file", files={"file": ("x.txt", b"\xff\xfe\xfa" * 10, "text/plain")})
        assert resp.status_code == 400


class TestReconcileEndpoint:
    def test_expired_insurance(self) -> None:
        resp = client.post("/vehicles/reconcile", json={
            "documents": [
                _document("reg.pdf", "registration", "2025-01-01"),
                _document("ins.pdf", "insurance", "2023-01-01"),
            ],
            "now": "2024-06-01T12:00:00Z",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["vehicles"]) == 1
        status = data["vehicles"][0]["compliance_status"]
        assert status["registration"] == "current"
        assert status["insurance"] == "expired"
        assert status["overall"] == "non-compliant"
        assert data["fleet"]["non_compliant_vehicles"] == 1
        assert data["summaries"][0]["manufacturer"] == "Freightliner (USA)"

    def test_empty_fleet(self) -> None:
        data = client.post("/vehicles/reconcile", json={"documents": []}).json()
        assert data["vehicles"] == []
        assert data["fleet"]["total_vehicles"] == 0


class TestPipelineNotReady:
    def test_503_without_pipeline(self) -> None:
        saved, api._pipeline = api._pipeline, None
        try:
            assert client.get("/health").status_code == 503
        finally:
            api._pipeline = saved
