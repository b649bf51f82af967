"""
Deterministic regex-based extraction from OCR text.

Pulls labeled fields ("VIN: ...", "Policy Number: ...") out of a fleet
document's OCR text, guesses the document type from its vocabulary and
mines VIN-shaped tokens. It is the baseline the LLM output is compared
against, so every pattern is conservative: a label must be followed by a
colon, and values stop at the end of the line or a '|' column separator.
"""

from __future__ import annotations

import re

from .models import DocumentType, RawExtraction
from .vin import find_vin_candidates

# Output key → accepted labels. Output keys match the first alias in field_tables.
_LABELS: dict[str, tuple[str, ...]] = {
    "vin": (r"VIN", r"Vehicle\s+Identification\s+(?:Number|No\.?)", r"VIN\s+(?:Number|No\.?)"),
    "licensePlate": (r"License\s+Plate", r"Plate\s+(?:Number|No\.?)", r"Plate"),
    "expirationDate": (
        r"Expiration\s+Date", r"Expiration", r"Expires(?:\s+On)?", r"Exp\.?\s+Date",
        r"Valid\s+(?:Until|Through|Thru)", r"Next\s+Inspection\s+Due",
    ),
    "effectiveDate": (r"Effective\s+Date", r"Effective"),
    "issueDate": (r"Issue\s+Date", r"Issued", r"Date\s+Issued", r"Exam(?:ination)?\s+Date"),
    "inspectionDate": (r"Inspection\s+Date", r"Date\s+Inspected"),
    "state": (r"State", r"Issuing\s+State"),
    "make": (r"Make",),
    "model": (r"Model",),
    "year": (r"Year", r"Model\s+Year"),
    "policyNumber": (r"Policy\s+(?:Number|No\.?|#)", r"Policy"),
    "insuranceCompany": (r"Insurance\s+Company", r"Insurer", r"Carrier"),
    "coverageAmount": (r"Coverage(?:\s+Amount)?", r"Liability\s+Limit"),
    "licenseNumber": (r"License\s+(?:Number|No\.?|#)", r"CDL\s+(?:Number|No\.?|#)", r"DL\s+(?:Number|No\.?|#)"),
    "licenseClass": (r"License\s+Class", r"CDL\s+Class", r"Class"),
    "driverName": (r"Driver\s+Name", r"Driver", r"Name"),
    "result": (r"Result", r"Inspection\s+Result"),
    "permitNumber": (r"Permit\s+(?:Number|No\.?|#)",),
}

# Document type → vocabulary that suggests it
_TYPE_KEYWORDS: dict[DocumentType, tuple[str, ...]] = {
    DocumentType.MEDICAL_CERTIFICATE: ("medical examiner", "medical certificate", "dot physical"),
    DocumentType.INSPECTION: ("inspection", "inspector", "safety check"),
    DocumentType.INSURANCE: ("insurance", "policy", "insured", "coverage"),
    DocumentType.CDL_LICENSE: ("commercial driver", "cdl", "driver license", "driver's license"),
    DocumentType.PERMIT: ("permit",),
    DocumentType.REGISTRATION: ("registration", "certificate of title", "registrant"),
}


def _label_pattern(labels: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = "|".join(labels)
    return re.compile(
        rf"(?:^|\|)[ \t]*(?:{alternatives})[ \t]*:[ \t]*([^|\n]+)",
        re.IGNORECASE | re.MULTILINE,
    )


_PATTERNS: dict[str, re.Pattern[str]] = {key: _label_pattern(labels) for key, labels in _LABELS.items()}


def extract_with_regex(raw_text: str) -> RawExtraction:
    """Extract fleet document fields from raw OCR text using regex patterns.

    Args:
        raw_text: The raw OCR-scanned document text.

    Returns:
        RawExtraction with every field that could be deterministically extracted.
    """
    fields: dict[str, str] = {}
    for key, pattern in _PATTERNS.items():
        value = _extract_labeled_field(raw_text, pattern)
        if value:
            fields[key] = value

    return RawExtraction(
        document_type=guess_document_type(raw_text),
        fields=fields,
        vin_candidates=find_vin_candidates(raw_text),
    )


def guess_document_type(text: str) -> DocumentType:
    """The type whose vocabulary appears most often; UNKNOWN when none does."""
    lowered = text.lower()
    best, best_hits = DocumentType.UNKNOWN, 0
    for doc_type, keywords in _TYPE_KEYWORDS.items():
        hits = sum(lowered.count(keyword) for keyword in keywords)
        if hits > best_hits:
            best, best_hits = doc_type, hits
    return best


def _extract_labeled_field(text: str, pattern: re.Pattern[str]) -> str | None:
    """First 'Label: value' hit, with OCR whitespace runs collapsed."""
    match = pattern.search(text)
    if match:
        value = re.sub(r"\s+", " ", match.group(1)).strip()
        return value or None
    return None
