"""
Document ingestion pipeline: raw OCR text in, validated document out.

Flow:
  ┌─────────┐
  │ Raw OCR │
  └────┬────┘
       │
  ┌────▼────┐     ┌──────────┐
  │  Regex  │     │   LLM    │   ← Dual extraction
  │ Extract │     │ Extract  │
  └────┬────┘     └────┬─────┘
       │               │
       └───────┬───────┘
               │
        ┌──────▼──────┐
        │    Merge    │   ← LLM primary, regex fills gaps, flag disagreements
        └──────┬──────┘
               │
        ┌──────▼──────┐
        │  Assessment │   ← Field scoring + document decision
        └──────┬──────┘
               │
        ┌──────▼──────┐
        │   Report    │   ← ExtractedDocument + DocumentValidationResult
        └─────────────┘

The regex extractor always runs; the LLM is optional. The original OCR
text is SHA-256 hashed for the audit trail. The ExtractedDocument in the
report is what the reconciler consumes later.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import date, datetime, timezone
from typing import Optional

from .assessment import validate_extracted_document
from .config import Settings, load_settings
from .dates import to_date
from .exceptions import ContractViolationError
from .extractor_llm import extract_with_llm
from .extractor_regex import extract_with_regex
from .models import (
    DocumentType,
    ExtractedDocument,
    IngestionReport,
    RawExtraction,
    ValidationWarning,
    VinCandidate,
    WarningSeverity,
)
from .vin import DEFAULT_OCR_RULES, OcrCorrectionRules, clean_vin, normalize_vin

logger = logging.getLogger(__name__)

_DATE_FIELDS = frozenset({"expirationDate", "effectiveDate", "issueDate", "inspectionDate"})


class DocumentIngestionPipeline:
    """Orchestrates extraction and assessment for one uploaded document.

    Usage:
        pipeline = DocumentIngestionPipeline()
        report = pipeline.run(ocr_text, "truck_12_registration.pdf")
        if report.validation.recommendation != Recommendation.AUTO_APPROVE:
            # route to a human
            ...
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        ocr_rules: OcrCorrectionRules = DEFAULT_OCR_RULES,
    ):
        self.settings = settings or load_settings()
        self.ocr_rules = ocr_rules

    def run(
        self,
        raw_text: str,
        file_name: str,
        timestamp: Optional[datetime] = None,
        today: Optional[date] = None,
    ) -> IngestionReport:
        """Execute the full pipeline on raw OCR text.

        Raises:
            ContractViolationError: raw_text or file_name is not a string.
        """
        if not isinstance(raw_text, str) or not isinstance(file_name, str):
            raise ContractViolationError("raw_text and file_name must be strings")

        # ── Step 0: Audit hash of original input ────────────────────
        doc_hash = hashlib.sha256(raw_text.encode("utf-8")).hexdigest()

        # ── Step 1: Dual extraction ─────────────────────────────────
        logger.info("Starting regex extraction for %s", file_name)
        regex_result = extract_with_regex(raw_text)

        logger.info("Starting LLM extraction for %s", file_name)
        llm_result = extract_with_llm(raw_text, self.settings)

        if llm_result is not None:
            extraction_method = f"LLM ({self.settings.llm_model}) + Regex cross-check"
        else:
            extraction_method = "Regex-only (LLM disabled or unavailable)"

        # ── Step 2: Merge and flag disagreements ────────────────────
        merged = merge_extractions(regex_result, llm_result)
        disagreements = find_disagreements(regex_result, llm_result) if llm_result else []
        for warning in disagreements:
            logger.warning("%s: %s", file_name, warning.issue)

        # ── Step 3: Assess ──────────────────────────────────────────
        document = ExtractedDocument(
            file_name=file_name,
            document_type=merged.document_type,
            vin_candidates=merged.vin_candidates,
            extracted_data=dict(merged.fields),
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        validation = validate_extracted_document(document, today=today, ocr_rules=self.ocr_rules)

        return IngestionReport(
            document=document,
            validation=validation,
            disagreements=disagreements,
            extraction_method=extraction_method,
            original_hash=doc_hash,
        )


# ─── Merge ───────────────────────────────────────────────────────────


def merge_extractions(regex: RawExtraction, llm: Optional[RawExtraction]) -> RawExtraction:
    """LLM values win; regex fills the gaps. VIN candidates are unioned by normalized value."""
    if llm is None:
        return regex

    fields = dict(regex.fields)
    fields.update(llm.fields)

    best: dict[str, VinCandidate] = {}
    for candidate in [*llm.vin_candidates, *regex.vin_candidates]:
        key = normalize_vin(candidate.value)
        if not key:
            continue
        if key not in best or candidate.confidence > best[key].confidence:
            best[key] = candidate

    doc_type = llm.document_type if llm.document_type != DocumentType.UNKNOWN else regex.document_type
    return RawExtraction(document_type=doc_type, fields=fields, vin_candidates=list(best.values()))


def find_disagreements(regex: RawExtraction, llm: RawExtraction) -> list[ValidationWarning]:
    """Compare LLM and regex extractions field-by-field.

    Catches the LLM "helpfully" fixing a value that should have been
    reported as-is, and the regex misreading noisy OCR.
    """
    warnings: list[ValidationWarning] = []

    for name in sorted(set(regex.fields) & set(llm.fields)):
        regex_val, llm_val = regex.fields[name], llm.fields[name]
        if _same_value(name, regex_val, llm_val):
            continue
        warnings.append(
            ValidationWarning(
                field=name,
                issue=f"LLM and regex disagree on {name}: regex='{regex_val}', LLM='{llm_val}'",
                severity=WarningSeverity.MEDIUM,
                suggestion="Manual review recommended",
            )
        )

    return warnings


def _same_value(name: str, a: str, b: str) -> bool:
    """Type-aware comparison: VINs by cleaned characters, dates by calendar day."""
    if name == "vin":
        return clean_vin(a) == clean_vin(b)
    if name in _DATE_FIELDS:
        da, db = to_date(a), to_date(b)
        if da is not None and db is not None:
            return da == db
    return a.strip().lower() == b.strip().lower()
