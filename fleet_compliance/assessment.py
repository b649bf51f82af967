"""
Document-level assessment: turns a bag of validated fields into a decision.

Flow for one document:
  1. Look up every expected field for the document type (field_tables)
  2. Validate the ones that were found; record the ones that were not
  3. Sweep the remaining VIN-ish and date-ish keys so nothing goes unscored
  4. Compute completeness and mean confidence
  5. Apply the decision table → recommendation + status
  6. Attach advisory warnings and suggestions (never gating)

The decision is a pure function of (critical missing, confidence,
questionable fields). Suggestions are text for the operator and do not
influence it.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional, Sequence

from .exceptions import ContractViolationError
from .field_tables import (
    DATE_ARRAY_KEY,
    DATE_FIELD_KEYS,
    EXPECTED_FIELDS,
    VIN_ARRAY_KEYS,
    VIN_FIELD_KEYS,
    extract_raw_value,
)
from .field_validators import validate_date_field, validate_field, validate_vin_field
from .models import (
    DocumentType,
    DocumentValidationResult,
    ExtractedDocument,
    FieldStatus,
    Importance,
    MissingField,
    Recommendation,
    ValidatedField,
    ValidationStatus,
    ValidationSummary,
    ValidationWarning,
    VinCandidate,
    WarningSeverity,
)
from .vin import DEFAULT_OCR_RULES, OcrCorrectionRules, clean_vin

logger = logging.getLogger(__name__)

AUTO_APPROVE_CONFIDENCE = 80
REVIEW_CONFIDENCE = 60
HIGH_CONFIDENCE = 80
NO_TABLE_COMPLETENESS = 75

_DOCUMENT_TIPS: dict[DocumentType, str] = {
    DocumentType.REGISTRATION: "Registration documents: Focus on VIN, license plate, and expiration date areas",
    DocumentType.INSURANCE: "Insurance documents: Verify policy number, company name, and coverage dates",
    DocumentType.CDL_LICENSE: "CDL documents: Check license number, class, and expiration date",
    DocumentType.MEDICAL_CERTIFICATE: "Medical certificates: Check driver name, examination date, and expiration date",
    DocumentType.INSPECTION: "Inspection reports: Check VIN, inspection result, and next due date",
}


# ─── Public API ──────────────────────────────────────────────────────


def validate_document(
    extracted_data: dict[str, Any],
    document_type: DocumentType | str,
    vin_candidates: Sequence[VinCandidate] = (),
    today: Optional[date] = None,
    ocr_rules: OcrCorrectionRules = DEFAULT_OCR_RULES,
) -> DocumentValidationResult:
    """Validate one document's field map. Never fails on bad data.

    Raises:
        ContractViolationError: extracted_data is not a dict at all.
    """
    if not isinstance(extracted_data, dict):
        raise ContractViolationError(
            "extracted_data must be a field map (dict)",
            {"received": type(extracted_data).__name__},
        )

    doc_type = DocumentType.coerce(document_type)
    logger.info("Validating %s document (%d keys)", doc_type.value, len(extracted_data))

    specs = EXPECTED_FIELDS.get(doc_type, ())
    fields: list[ValidatedField] = []
    missing: list[MissingField] = []
    consumed: set[str] = set()
    seen_vins: set[str] = set()

    # ── Expected fields ─────────────────────────────────────────────
    for spec in specs:
        key, value = extract_raw_value(extracted_data, spec.paths)
        if key is None:
            missing.append(
                MissingField(
                    field=spec.name,
                    importance=spec.importance,
                    impact=spec.impact,
                    alternatives=list(spec.alternatives),
                )
            )
            continue
        consumed.add(key)
        validated = validate_field(value, spec, today=today, ocr_rules=ocr_rules)
        if validated.vin_decoding is not None or spec.name == "vin":
            seen_vins.add(clean_vin(value))
        fields.append(validated)

    found_expected = len(fields)

    # ── Sweep: every other VIN / date the extractor handed us ──────
    fields.extend(_sweep_vins(extracted_data, vin_candidates, consumed, seen_vins, ocr_rules))
    fields.extend(_sweep_dates(extracted_data, consumed, today))

    summary = _summarize(fields, missing, len(specs), found_expected)
    confidence = _mean_confidence(fields)
    recommendation, status = decide(summary.critical_missing, confidence, summary.questionable_fields)
    summary.processing_recommendation = recommendation

    result = DocumentValidationResult(
        document_type=doc_type.value,
        status=status,
        recommendation=recommendation,
        confidence_score=confidence,
        completeness=summary.overall_completeness,
        extracted_fields=fields,
        missing_fields=missing,
        confidence_scores={f.field: f.confidence for f in fields},
        warnings=_build_warnings(summary, fields),
        suggestions=build_suggestions(fields, missing, doc_type, confidence),
        summary=summary,
        data=extracted_data,
    )

    logger.info(
        "Validation complete: %s (%.1f%% confidence, %d%% complete)",
        recommendation.value, confidence, summary.overall_completeness,
    )
    return result


def validate_extracted_document(
    document: ExtractedDocument,
    today: Optional[date] = None,
    ocr_rules: OcrCorrectionRules = DEFAULT_OCR_RULES,
) -> DocumentValidationResult:
    """Convenience wrapper for an ExtractedDocument (its VIN candidates are scored too)."""
    if document is None:
        raise ContractViolationError("document must not be None")
    return validate_document(
        document.extracted_data,
        document.document_type,
        vin_candidates=document.vin_candidates,
        today=today,
        ocr_rules=ocr_rules,
    )


def decide(
    critical_missing: int, confidence: float, questionable_fields: int
) -> tuple[Recommendation, ValidationStatus]:
    """The decision table, evaluated top to bottom."""
    if critical_missing == 0 and confidence >= AUTO_APPROVE_CONFIDENCE and questionable_fields == 0:
        return Recommendation.AUTO_APPROVE, ValidationStatus.SUCCESS
    if critical_missing <= 1 and confidence >= REVIEW_CONFIDENCE:
        return Recommendation.REVIEW_RECOMMENDED, ValidationStatus.SUCCESS_WITH_WARNINGS
    return Recommendation.MANUAL_REVIEW_REQUIRED, ValidationStatus.NEEDS_REVIEW


def build_suggestions(
    fields: Sequence[ValidatedField],
    missing: Sequence[MissingField],
    doc_type: DocumentType,
    confidence: float,
) -> list[str]:
    """Operator-facing hints. Purely advisory."""
    suggestions: list[str] = []

    for item in missing:
        if item.importance != Importance.CRITICAL:
            continue
        if item.alternatives:
            suggestions.append(f"Missing {item.field}: Try looking for {' or '.join(item.alternatives)}")
        else:
            suggestions.append(f"Missing critical field {item.field}: {item.impact}")

    for f in fields:
        if f.confidence >= REVIEW_CONFIDENCE:
            continue
        name = f.field.lower()
        if "vin" in name:
            suggestions.append(f"VIN validation issues: Check document quality and verify {f.field} manually")
        elif "date" in name or "expir" in name:
            suggestions.append(f"Date format issues: Verify {f.field} and confirm date interpretation")
        else:
            suggestions.append(f"Low confidence in {f.field}: Manual verification recommended")

    if confidence < 70 and doc_type in _DOCUMENT_TIPS:
        suggestions.append(_DOCUMENT_TIPS[doc_type])

    if confidence < REVIEW_CONFIDENCE:
        suggestions.append("Consider improving document image quality (lighting, resolution, orientation)")
        suggestions.append("Try scanning at higher resolution or taking a clearer photo")

    return suggestions


# ─── Internal Helpers ────────────────────────────────────────────────


def _sweep_vins(
    data: dict[str, Any],
    candidates: Sequence[VinCandidate],
    consumed: set[str],
    seen: set[str],
    ocr_rules: OcrCorrectionRules,
) -> list[ValidatedField]:
    """Score VINs that live outside the expected-field table, once per distinct value."""
    found: list[tuple[str, Any]] = []

    for key in VIN_FIELD_KEYS:
        if key not in consumed and data.get(key):
            found.append((key, data[key]))

    for key in VIN_ARRAY_KEYS:
        items = data.get(key)
        if isinstance(items, list):
            for index, item in enumerate(items):
                value = item.get("value") or item.get("vin") if isinstance(item, dict) else item
                if value:
                    found.append((f"{key}[{index}]", value))

    for index, candidate in enumerate(candidates):
        found.append((f"vin_candidates[{index}]", candidate.value))

    results: list[ValidatedField] = []
    for name, value in found:
        key = clean_vin(value)
        if key in seen:
            continue
        seen.add(key)
        results.append(validate_vin_field(value, name, ocr_rules))
    return results


def _sweep_dates(
    data: dict[str, Any], consumed: set[str], today: Optional[date]
) -> list[ValidatedField]:
    results: list[ValidatedField] = []

    for key in DATE_FIELD_KEYS:
        if key not in consumed and data.get(key):
            results.append(validate_date_field(data[key], key, today))

    items = data.get(DATE_ARRAY_KEY)
    if isinstance(items, list):
        for index, item in enumerate(items):
            value = item.get("date") or item.get("value") if isinstance(item, dict) else item
            if value:
                results.append(validate_date_field(value, f"{DATE_ARRAY_KEY}[{index}]", today))

    return results


def _mean_confidence(fields: Sequence[ValidatedField]) -> float:
    if not fields:
        return 0.0
    return round(sum(f.confidence for f in fields) / len(fields), 2)


def _summarize(
    fields: Sequence[ValidatedField],
    missing: Sequence[MissingField],
    expected: int,
    found_expected: int,
) -> ValidationSummary:
    if expected > 0:
        completeness = round(found_expected / expected * 100)
    else:
        completeness = NO_TABLE_COMPLETENESS if fields else 0

    return ValidationSummary(
        total_fields_expected=expected,
        total_fields_found=found_expected,
        high_confidence_fields=sum(1 for f in fields if f.confidence >= HIGH_CONFIDENCE),
        questionable_fields=sum(1 for f in fields if f.status == FieldStatus.QUESTIONABLE),
        critical_missing=sum(1 for m in missing if m.importance == Importance.CRITICAL),
        overall_completeness=completeness,
    )


def _build_warnings(
    summary: ValidationSummary, fields: Sequence[ValidatedField]
) -> list[ValidationWarning]:
    warnings: list[ValidationWarning] = []

    if summary.critical_missing > 0:
        warnings.append(
            ValidationWarning(
                field="overall",
                issue=f"{summary.critical_missing} critical field(s) missing",
                severity=WarningSeverity.HIGH,
                suggestion="Review document quality and try re-processing",
            )
        )

    if summary.questionable_fields > 0:
        warnings.append(
            ValidationWarning(
                field="overall",
                issue=f"{summary.questionable_fields} field(s) have low confidence",
                severity=WarningSeverity.MEDIUM,
                suggestion="Manual verification recommended",
            )
        )

    if summary.overall_completeness < 50:
        warnings.append(
            ValidationWarning(
                field="overall",
                issue=f"Low data completeness ({summary.overall_completeness}%)",
                severity=WarningSeverity.MEDIUM,
                suggestion="Consider improving document quality or manual data entry",
            )
        )

    for f in fields:
        decoding = f.vin_decoding
        if decoding is not None and not decoding.check_digit_valid:
            warnings.append(
                ValidationWarning(
                    field=f.field,
                    issue="VIN check digit does not match",
                    severity=WarningSeverity.HIGH,
                    suggestion=(
                        f"Compare the VIN against the vehicle; expected check digit "
                        f"'{decoding.suggested_check_digit}' in position 9"
                    ),
                )
            )

    return warnings
