"""
Data-driven field tables: the alias policy lives here, not in the merge logic.

Extraction runs drift: the same value shows up as `licensePlate`, `plate`
or `plateNumber` depending on the prompt and the model. Every consumer
looks values up through these ordered key lists, so the policy can be
audited (and tested) in one place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .models import DocumentType, FieldType, Importance


# ─── Expected Fields Per Document Type ──────────────────────────────


@dataclass(frozen=True)
class FieldSpec:
    """One field a document type is expected to carry."""

    name: str
    type: FieldType
    paths: tuple[str, ...]  # Candidate keys, dotted paths allowed, first hit wins
    importance: Importance
    impact: str
    alternatives: tuple[str, ...] = ()
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None


_VIN = FieldSpec(
    name="vin",
    type=FieldType.VIN,
    paths=("vin", "vinNumber", "vehicle_vin", "vin_number", "vehicle.vin"),
    importance=Importance.CRITICAL,
    impact="Cannot identify specific vehicle without VIN",
    alternatives=("Vehicle ID", "Chassis Number", "17-character identifier"),
)


def _expiration(*extra_paths: str, subject: str) -> FieldSpec:
    return FieldSpec(
        name="expirationDate",
        type=FieldType.DATE,
        paths=("expirationDate", "expiration_date", "expiry", *extra_paths),
        importance=Importance.CRITICAL,
        impact=f"Cannot determine if {subject} is current without expiration date",
    )


EXPECTED_FIELDS: dict[DocumentType, tuple[FieldSpec, ...]] = {
    DocumentType.REGISTRATION: (
        _VIN,
        FieldSpec(
            name="licensePlate",
            type=FieldType.LICENSE_PLATE,
            paths=("licensePlate", "license_plate", "plateNumber", "plate"),
            importance=Importance.CRITICAL,
            impact="Cannot identify vehicle registration without license plate",
        ),
        _expiration("registrationExpiry", "registration_expiry", subject="registration"),
        FieldSpec(
            name="state",
            type=FieldType.STATE,
            paths=("state", "registrationState", "issuingState"),
            importance=Importance.CRITICAL,
            impact="Needed for jurisdiction compliance",
        ),
        FieldSpec(
            name="make",
            type=FieldType.TEXT,
            paths=("make", "manufacturer"),
            importance=Importance.OPTIONAL,
            impact="Helps confirm the VIN belongs to the right vehicle",
            max_length=40,
        ),
        FieldSpec(
            name="year",
            type=FieldType.NUMBER,
            paths=("year", "modelYear"),
            importance=Importance.OPTIONAL,
            impact="Helps confirm the VIN belongs to the right vehicle",
            min_value=1980,
            max_value=2100,
        ),
    ),
    DocumentType.INSURANCE: (
        _VIN,
        FieldSpec(
            name="policyNumber",
            type=FieldType.POLICY_NUMBER,
            paths=("policyNumber", "policy_number", "policy"),
            importance=Importance.CRITICAL,
            impact="Cannot verify insurance coverage without policy number",
        ),
        _expiration("insuranceExpiry", "insurance_expiry", "endDate", subject="insurance"),
        FieldSpec(
            name="insuranceCompany",
            type=FieldType.TEXT,
            paths=("insuranceCompany", "carrier", "insurer"),
            importance=Importance.IMPORTANT,
            impact="Needed to verify coverage provider",
        ),
        FieldSpec(
            name="effectiveDate",
            type=FieldType.DATE,
            paths=("effectiveDate", "effective_date", "startDate"),
            importance=Importance.OPTIONAL,
            impact="Needed to confirm coverage has started",
        ),
    ),
    DocumentType.CDL_LICENSE: (
        FieldSpec(
            name="licenseNumber",
            type=FieldType.TEXT,
            paths=("licenseNumber", "cdlNumber", "license_number"),
            importance=Importance.CRITICAL,
            impact="Cannot verify driver authorization without license number",
        ),
        _expiration("cdlExpiry", "cdl_expiry", subject="license"),
        FieldSpec(
            name="licenseClass",
            type=FieldType.TEXT,
            paths=("licenseClass", "class", "cdlClass"),
            importance=Importance.IMPORTANT,
            impact="Needed to verify vehicle operation authorization",
            max_length=3,
        ),
        FieldSpec(
            name="driverName",
            type=FieldType.TEXT,
            paths=("driverName", "name", "fullName"),
            importance=Importance.IMPORTANT,
            impact="Needed to match the license to a driver",
        ),
        FieldSpec(
            name="state",
            type=FieldType.STATE,
            paths=("state", "issuingState"),
            importance=Importance.OPTIONAL,
            impact="Identifies the issuing jurisdiction",
        ),
    ),
    DocumentType.MEDICAL_CERTIFICATE: (
        FieldSpec(
            name="driverName",
            type=FieldType.TEXT,
            paths=("driverName", "name", "fullName"),
            importance=Importance.CRITICAL,
            impact="Cannot match the certificate to a driver without a name",
        ),
        _expiration("medicalExpiry", "medical_expiry", subject="medical certificate"),
        FieldSpec(
            name="issueDate",
            type=FieldType.DATE,
            paths=("issueDate", "issue_date", "examDate"),
            importance=Importance.IMPORTANT,
            impact="Needed to confirm when the examination took place",
        ),
        FieldSpec(
            name="licenseNumber",
            type=FieldType.TEXT,
            paths=("licenseNumber", "cdlNumber", "license_number"),
            importance=Importance.OPTIONAL,
            impact="Links the certificate to a CDL",
        ),
    ),
    DocumentType.INSPECTION: (
        _VIN,
        _expiration("inspectionExpiry", "inspection_expiry", subject="inspection"),
        FieldSpec(
            name="inspectionDate",
            type=FieldType.DATE,
            paths=("inspectionDate", "inspection_date", "date"),
            importance=Importance.IMPORTANT,
            impact="Needed to confirm when the vehicle was inspected",
        ),
        FieldSpec(
            name="result",
            type=FieldType.TEXT,
            paths=("result", "status", "inspectionResult"),
            importance=Importance.IMPORTANT,
            impact="Cannot tell whether the vehicle passed inspection",
        ),
    ),
    DocumentType.PERMIT: (
        _VIN,
        FieldSpec(
            name="permitNumber",
            type=FieldType.POLICY_NUMBER,
            paths=("permitNumber", "permit_number", "permit"),
            importance=Importance.CRITICAL,
            impact="Cannot verify the permit without its number",
        ),
        _expiration("permitExpiry", "permit_expiry", subject="permit"),
        FieldSpec(
            name="state",
            type=FieldType.STATE,
            paths=("state", "issuingState"),
            importance=Importance.IMPORTANT,
            impact="Identifies the issuing jurisdiction",
        ),
    ),
    DocumentType.UNKNOWN: (),
}


# ─── Extra Keys Scanned On Every Document ───────────────────────────

VIN_FIELD_KEYS: tuple[str, ...] = ("vin", "vinNumber", "vehicle_vin", "vin_number")
VIN_ARRAY_KEYS: tuple[str, ...] = ("vin_numbers", "vins")

DATE_FIELD_KEYS: tuple[str, ...] = (
    "expirationDate", "expiry", "expiration_date", "due_date",
    "issueDate", "issue_date", "effective_date", "effectiveDate",
    "registration_expiry", "insurance_expiry", "cdl_expiry",
)
DATE_ARRAY_KEY = "dates"


# ─── Reconciliation Category Aliases ────────────────────────────────


@dataclass(frozen=True)
class CategoryRule:
    """How the reconciler recognizes a category and reads its fields."""

    document_types: frozenset[DocumentType]
    filename_hints: tuple[str, ...]
    fields: dict[str, tuple[str, ...]] = field(default_factory=dict)  # output field → candidate keys
    prefer_latest_expiry: bool = False


EXPIRY_KEYS: tuple[str, ...] = ("expirationDate", "expiration_date", "expiry", "endDate")

CATEGORY_RULES: dict[str, CategoryRule] = {
    "registration": CategoryRule(
        document_types=frozenset({DocumentType.REGISTRATION}),
        filename_hints=("registration", "title"),
        fields={
            "license_plate": ("licensePlate", "license_plate", "plate", "plateNumber"),
            "make": ("make", "manufacturer"),
            "model": ("model",),
            "year": ("year", "modelYear"),
            "state": ("state", "issuingState", "registrationState"),
            "expiration_date": ("expirationDate", "expiration_date", "registrationExpiry", "expiry"),
        },
    ),
    "insurance": CategoryRule(
        document_types=frozenset({DocumentType.INSURANCE}),
        filename_hints=("insurance", "policy"),
        fields={
            "policy_number": ("policyNumber", "policy_number", "policy"),
            "insurance_company": ("insuranceCompany", "carrier", "insurer"),
            "effective_date": ("effectiveDate", "effective_date", "startDate"),
            "expiration_date": ("expirationDate", "expiration_date", "endDate", "expiry"),
            "coverage_amount": ("coverageAmount", "liability", "coverage"),
        },
        prefer_latest_expiry=True,
    ),
    "inspection": CategoryRule(
        document_types=frozenset({DocumentType.INSPECTION}),
        filename_hints=("inspection", "safety"),
        fields={
            "inspection_date": ("inspectionDate", "inspection_date", "date"),
            "expiration_date": ("expirationDate", "expiration_date", "expiry"),
            "result": ("result", "status"),
        },
        prefer_latest_expiry=True,
    ),
    "driver": CategoryRule(
        document_types=frozenset({DocumentType.CDL_LICENSE, DocumentType.MEDICAL_CERTIFICATE}),
        filename_hints=("license", "cdl"),
        fields={
            "driver_name": ("driverName", "name"),
            "license_number": ("licenseNumber", "license"),
            "license_class": ("licenseClass", "class"),
            "expiration_date": ("expirationDate", "expiration_date", "expiry"),
        },
    ),
}


# ─── Lookup Helpers ──────────────────────────────────────────────────


def _unwrap(value: Any) -> Any:
    """Extraction output sometimes wraps values as {"value": ..., "confidence": ...}."""
    if isinstance(value, dict):
        return value.get("value")
    return value


def _has_value(value: Any) -> bool:
    return value is not None and value != "" and value is not False


def get_nested_value(data: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts; None when any hop is missing."""
    current = data
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def extract_value(data: Any, keys: tuple[str, ...] | list[str]) -> Optional[str]:
    """First truthy value among the candidate keys, stringified.

    Whitespace-only values lose to any later key that carries text. When
    whitespace is all there is, the first such value comes back unchanged,
    so a present-but-unreadable field is not mistaken for an absent one.
    """
    if not isinstance(data, dict):
        return None
    blank: Optional[str] = None
    for key in keys:
        value = _unwrap(get_nested_value(data, key))
        if not _has_value(value):
            continue
        text = str(value).strip()
        if text:
            return text
        if blank is None:
            blank = str(value)
    return blank


def extract_raw_value(data: Any, keys: tuple[str, ...] | list[str]) -> tuple[Optional[str], Any]:
    """Like extract_value, but also reports which key produced the value."""
    if not isinstance(data, dict):
        return None, None
    for key in keys:
        value = _unwrap(get_nested_value(data, key))
        if _has_value(value):
            return key, value
    return None, None
