"""
Ingestion pipeline tests: end to end from OCR text to a reconciled vehicle.

The autouse fixture in conftest.py keeps the LLM out of the way; tests that
need an LLM result patch one in explicitly.
"""

from __future__ import annotations

import hashlib
from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest

from fleet_compliance.config import Settings, load_settings
from fleet_compliance.exceptions import ContractViolationError
from fleet_compliance.models import (
    ComplianceState,
    DocumentType,
    OverallCompliance,
    RawExtraction,
    Recommendation,
)
from fleet_compliance.pipeline import DocumentIngestionPipeline
from fleet_compliance.reconciler import reconcile_documents

from main import SAMPLE_DOCUMENTS

_SAMPLES = {name: text for name, _, text in SAMPLE_DOCUMENTS}
REGISTRATION_OCR = _SAMPLES["truck_07_registration.txt"]
INSURANCE_OCR = _SAMPLES["truck_07_insurance.txt"]
CDL_OCR = _SAMPLES["cdl_r_alvarez.txt"]

TODAY = date(2026, 10, 18)
NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
UPLOADED = datetime(2026, 4, 2, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def pipeline() -> DocumentIngestionPipeline:
    return DocumentIngestionPipeline(settings=Settings())


class TestRegexOnlyRun:
    def test_registration_auto_approved(self, pipeline):
        report = pipeline.run(REGISTRATION_OCR, "truck_07_registration.txt", timestamp=UPLOADED, today=TODAY)
        assert report.extraction_method.startswith("Regex-only")
        assert report.document.document_type == DocumentType.REGISTRATION
        assert report.document.timestamp == UPLOADED
        assert report.validation.recommendation == Recommendation.AUTO_APPROVE
        assert report.validation.completeness == 100
        assert report.disagreements == []

    def test_audit_hash(self, pipeline):
        report = pipeline.run(REGISTRATION_OCR, "reg.txt", today=TODAY)
        assert report.original_hash == hashlib.sha256(REGISTRATION_OCR.encode("utf-8")).hexdigest()

    def test_date_correction_visible(self, pipeline):
        report = pipeline.run(REGISTRATION_OCR, "reg.txt", today=TODAY)
        expiry = next(f for f in report.validation.extracted_fields if f.field == "expirationDate")
        assert expiry.corrected_value == "2027-03-31"

    def test_default_timestamp_is_aware(self, pipeline):
        report = pipeline.run(CDL_OCR, "cdl.txt", today=TODAY)
        assert report.document.timestamp.tzinfo is not None

    def test_non_string_input_rejected(self, pipeline):
        with pytest.raises(ContractViolationError):
            pipeline.run(None, "x.txt")


class TestWithLlm:
    def test_llm_values_merged_and_disagreements_flagged(self, pipeline):
        llm = RawExtraction(
            document_type="registration",
            fields={"state": "OK", "licensePlate": "4471KL"},
        )
        with patch("fleet_compliance.pipeline.extract_with_llm", return_value=llm):
            report = pipeline.run(REGISTRATION_OCR, "reg.txt", today=TODAY)

        assert report.extraction_method == "LLM (gpt-5) + Regex cross-check"
        assert report.document.extracted_data["state"] == "OK"
        assert report.document.extracted_data["make"] == "Freightliner"
        assert [w.field for w in report.disagreements] == ["state"]


class TestIngestThenReconcile:
    def test_expired_insurance_makes_truck_non_compliant(self, pipeline):
        reports = [
            pipeline.run(REGISTRATION_OCR, "truck_07_registration.txt", timestamp=UPLOADED, today=TODAY),
            pipeline.run(INSURANCE_OCR, "truck_07_insurance.txt", timestamp=UPLOADED, today=TODAY),
            pipeline.run(CDL_OCR, "cdl_r_alvarez.txt", timestamp=UPLOADED, today=TODAY),
        ]
        vehicles = reconcile_documents([r.document for r in reports], now=NOW)

        assert [v.primary_vin for v in vehicles] == ["1FVACWDTX9HAJ7221", "NO_VIN_cdl_r_alvarez.txt"]
        truck = vehicles[0]
        assert truck.compliance_status.registration == ComplianceState.CURRENT
        assert truck.compliance_status.insurance == ComplianceState.EXPIRED
        assert truck.compliance_status.overall == OverallCompliance.NON_COMPLIANT
        assert truck.consolidated_data.registration.license_plate == "4471KL"
        assert truck.consolidated_data.insurance.policy_number == "CA-7731904"

        driver = vehicles[1].consolidated_data.driver
        assert driver.driver_name == "Rosa Alvarez"
        assert vehicles[1].compliance_status.driver == ComplianceState.CURRENT


class TestSettings:
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("FLEET_LLM_MODEL", "gpt-mini")
        monkeypatch.setenv("FLEET_EXPIRING_SOON_DAYS", "14")
        monkeypatch.setenv("FLEET_LOG_LEVEL", "debug")
        settings = load_settings()
        assert settings.llm_enabled is True
        assert settings.llm_model == "gpt-mini"
        assert settings.expiring_soon_days == 14
        assert settings.log_level == "DEBUG"

    def test_blank_key_disables_llm(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "")
        assert load_settings().llm_enabled is False
