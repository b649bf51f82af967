"""
Document-level assessment tests: completeness, confidence and the decision table.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from fleet_compliance.assessment import decide, validate_document, validate_extracted_document
from fleet_compliance.exceptions import ContractViolationError
from fleet_compliance.models import (
    DocumentType,
    ExtractedDocument,
    Importance,
    Recommendation,
    ValidationStatus,
    VinCandidate,
    WarningSeverity,
)

TODAY = date(2026, 10, 18)

CLEAN_REGISTRATION = {
    "vin": "1HGCM82633A004352",
    "licensePlate": "ABC1234",
    "expirationDate": "2027-03-31",
    "state": "TX",
}


# ═══════════════════════════════════════════════════════════════════
#  Decision Table
# ═══════════════════════════════════════════════════════════════════


class TestDecisionTable:
    def test_auto_approve(self):
        assert decide(0, 80, 0) == (Recommendation.AUTO_APPROVE, ValidationStatus.SUCCESS)

    def test_questionable_field_blocks_auto_approve(self):
        assert decide(0, 95, 1)[0] == Recommendation.REVIEW_RECOMMENDED

    def test_one_critical_missing_is_review(self):
        assert decide(1, 60, 0) == (
            Recommendation.REVIEW_RECOMMENDED,
            ValidationStatus.SUCCESS_WITH_WARNINGS,
        )

    def test_two_critical_missing_is_manual(self):
        assert decide(2, 100, 0) == (
            Recommendation.MANUAL_REVIEW_REQUIRED,
            ValidationStatus.NEEDS_REVIEW,
        )

    def test_low_confidence_is_manual(self):
        assert decide(0, 59.99, 0)[0] == Recommendation.MANUAL_REVIEW_REQUIRED


# ═══════════════════════════════════════════════════════════════════
#  Full Documents
# ═══════════════════════════════════════════════════════════════════


class TestValidateDocument:
    def test_clean_registration_auto_approved(self):
        result = validate_document(CLEAN_REGISTRATION, "registration", today=TODAY)
        assert result.recommendation == Recommendation.AUTO_APPROVE
        assert result.status == ValidationStatus.SUCCESS
        assert result.confidence_score == 100
        assert result.completeness == 67  # 4 of 6 expected fields
        assert result.summary.critical_missing == 0
        assert {m.field for m in result.missing_fields} == {"make", "year"}
        assert result.warnings == []

    def test_original_data_preserved(self):
        data = dict(CLEAN_REGISTRATION)
        result = validate_document(data, "registration", today=TODAY)
        assert result.data == CLEAN_REGISTRATION
        assert data == CLEAN_REGISTRATION

    def test_one_critical_missing(self):
        data = {k: v for k, v in CLEAN_REGISTRATION.items() if k != "vin"}
        result = validate_document(data, "registration", today=TODAY)
        assert result.recommendation == Recommendation.REVIEW_RECOMMENDED
        assert result.summary.critical_missing == 1
        high = [w for w in result.warnings if w.severity == WarningSeverity.HIGH]
        assert high and "critical field(s) missing" in high[0].issue
        assert any(s.startswith("Missing vin: Try looking for") for s in result.suggestions)

    def test_two_critical_missing(self):
        data = {"licensePlate": "ABC1234", "state": "TX"}
        result = validate_document(data, "registration", today=TODAY)
        assert result.recommendation == Recommendation.MANUAL_REVIEW_REQUIRED
        assert result.status == ValidationStatus.NEEDS_REVIEW

    def test_field_aliases_resolved(self):
        data = {
            "vinNumber": "1HGCM82633A004352",
            "plate": "ABC1234",
            "registration_expiry": "03/31/2027",
            "issuingState": "TX",
        }
        result = validate_document(data, "registration", today=TODAY)
        assert result.summary.critical_missing == 0
        assert result.confidence_scores["licensePlate"] == 100

    def test_nested_vin_path(self):
        data = {**CLEAN_REGISTRATION, "vehicle": {"vin": "1HGCM82633A004352"}}
        del data["vin"]
        result = validate_document(data, "registration", today=TODAY)
        assert "vin" in result.confidence_scores

    def test_wrapped_values_unwrapped(self):
        data = {**CLEAN_REGISTRATION, "state": {"value": "TX", "confidence": 88}}
        result = validate_document(data, "registration", today=TODAY)
        assert result.confidence_scores["state"] == 100

    def test_questionable_field_downgrades(self):
        data = {**CLEAN_REGISTRATION, "vin": "1FV0ZZZZZZZZZZZZ"}
        result = validate_document(data, "registration", today=TODAY)
        assert result.summary.questionable_fields == 1
        assert result.recommendation == Recommendation.REVIEW_RECOMMENDED
        assert any("VIN validation issues" in s for s in result.suggestions)

    def test_confidence_is_rounded_mean(self):
        data = {**CLEAN_REGISTRATION, "state": "ZZ", "year": "1975"}
        result = validate_document(data, "registration", today=TODAY)
        # 100 (vin), 100 (plate), 100 (date), 60 (state), 65 (year)
        assert result.confidence_score == 85.0

    def test_unknown_type_scans_vin_keys(self):
        result = validate_document({"vin": "1HGCM82633A004352"}, "scanned_thing", today=TODAY)
        assert result.document_type == DocumentType.UNKNOWN.value
        assert result.completeness == 75
        assert result.recommendation == Recommendation.AUTO_APPROVE

    def test_empty_unknown_document(self):
        result = validate_document({}, "unknown", today=TODAY)
        assert result.confidence_score == 0
        assert result.completeness == 0
        assert result.recommendation == Recommendation.MANUAL_REVIEW_REQUIRED

    def test_vin_candidates_scored_once(self):
        result = validate_document(
            CLEAN_REGISTRATION,
            "registration",
            vin_candidates=[
                VinCandidate(value="1HGCM82633A004352", confidence=95),
                VinCandidate(value="1HGCM82633A00435I", confidence=60),
            ],
            today=TODAY,
        )
        names = [f.field for f in result.extracted_fields]
        assert names.count("vin") == 1
        assert "vin_candidates[0]" not in names  # duplicate of the vin field
        assert "vin_candidates[1]" in names

    def test_vin_arrays_and_date_arrays_scanned(self):
        data = {
            **CLEAN_REGISTRATION,
            "vin_numbers": [{"value": "1FVACWDTX9HAJ7221"}],
            "dates": [{"date": "2026-01-01"}, "not a date"],
        }
        result = validate_document(data, "registration", today=TODAY)
        names = {f.field for f in result.extracted_fields}
        assert {"vin_numbers[0]", "dates[0]", "dates[1]"} <= names

    def test_bad_check_digit_warns(self):
        data = {**CLEAN_REGISTRATION, "vin": "1HGCM82633A004351"}
        result = validate_document(data, "registration", today=TODAY)
        assert any(w.issue == "VIN check digit does not match" for w in result.warnings)

    def test_low_confidence_document_gets_image_tips(self):
        data = {"vin": "??", "licensePlate": "---", "expirationDate": "soon", "state": "Texas"}
        result = validate_document(data, "registration", today=TODAY)
        assert result.confidence_score < 60
        assert any("image quality" in s for s in result.suggestions)
        assert any(s.startswith("Registration documents:") for s in result.suggestions)

    def test_low_completeness_warning(self):
        result = validate_document({"licensePlate": "ABC1234"}, "registration", today=TODAY)
        assert any("Low data completeness" in w.issue for w in result.warnings)

    def test_cdl_missing_fields_importance(self):
        result = validate_document({"licenseNumber": "40182277"}, "cdl", today=TODAY)
        importance = {m.field: m.importance for m in result.missing_fields}
        assert importance["expirationDate"] == Importance.CRITICAL
        assert importance["licenseClass"] == Importance.IMPORTANT

    def test_none_data_is_contract_violation(self):
        with pytest.raises(ContractViolationError) as exc:
            validate_document(None, "registration")
        assert exc.value.code == "CONTRACT_VIOLATION"


class TestValidateExtractedDocument:
    def test_wraps_document(self):
        document = ExtractedDocument(
            file_name="reg.pdf",
            document_type="registration",
            extracted_data=CLEAN_REGISTRATION,
            timestamp=datetime(2026, 10, 1, tzinfo=timezone.utc),
        )
        result = validate_extracted_document(document, today=TODAY)
        assert result.recommendation == Recommendation.AUTO_APPROVE

    def test_none_document(self):
        with pytest.raises(ContractViolationError):
            validate_extracted_document(None)
