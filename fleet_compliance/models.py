"""
Pydantic models for fleet documents: typed at every boundary.

Three groups live here:
  - Field-level results (ValidatedField) produced by the field validators
  - Document-level results (DocumentValidationResult) produced by assessment
  - Vehicle-level records (ConsolidatedVehicle) produced by reconciliation

Every result model carries a value, even when confidence is low. Nothing in
this module represents an error; bad OCR is expressed as a score.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─── Field-Level Enums ──────────────────────────────────────────────


class FieldType(str, Enum):
    """Semantic type of an extracted field; selects the validator."""

    VIN = "vin"
    DATE = "date"
    LICENSE_PLATE = "license_plate"
    POLICY_NUMBER = "policy_number"
    STATE = "state"
    TEXT = "text"
    NUMBER = "number"
    GENERIC = "generic"


class FieldStatus(str, Enum):
    """Confidence bucket for a single field."""

    EXCELLENT = "excellent"  # >= 90
    GOOD = "good"  # >= 75
    ACCEPTABLE = "acceptable"  # >= 60
    QUESTIONABLE = "questionable"  # < 60


class Importance(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    OPTIONAL = "optional"


class WarningSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Recommendation(str, Enum):
    """What the caller should do with a processed document."""

    AUTO_APPROVE = "auto_approve"
    REVIEW_RECOMMENDED = "review_recommended"
    MANUAL_REVIEW_REQUIRED = "manual_review_required"


class ValidationStatus(str, Enum):
    SUCCESS = "success"
    SUCCESS_WITH_WARNINGS = "success_with_warnings"
    NEEDS_REVIEW = "needs_review"


# ─── Field-Level Results ────────────────────────────────────────────


class VinDecoding(BaseModel):
    """What the VIN itself tells us: maker, engine, and check-digit verdict."""

    wmi: str
    manufacturer: Optional[str] = None
    engine_code: Optional[str] = None
    engine_description: Optional[str] = None
    engine_confidence: int = 0
    check_digit_valid: bool = False
    suggested_check_digit: Optional[str] = None


class ValidatedField(BaseModel):
    """One extracted value after validation, scoring and (optional) correction."""

    field: str
    value: str  # Raw value exactly as received (stringified)
    corrected_value: Optional[str] = None  # Only set when it differs from the cleaned raw value
    correction_applied: Optional[str] = None
    confidence: int = Field(default=0, ge=0, le=100)
    status: FieldStatus = FieldStatus.QUESTIONABLE
    validation_notes: list[str] = Field(default_factory=list)
    vin_decoding: Optional[VinDecoding] = None

    @property
    def best_value(self) -> str:
        """The corrected value when one exists, otherwise the raw value."""
        return self.corrected_value if self.corrected_value is not None else self.value


# ─── Document-Level Results ─────────────────────────────────────────


class MissingField(BaseModel):
    field: str
    importance: Importance
    impact: str
    alternatives: list[str] = Field(default_factory=list)


class ValidationWarning(BaseModel):
    field: str
    issue: str
    severity: WarningSeverity
    suggestion: str
    can_proceed: bool = True


class ValidationSummary(BaseModel):
    total_fields_expected: int = 0
    total_fields_found: int = 0
    high_confidence_fields: int = 0
    questionable_fields: int = 0
    critical_missing: int = 0
    overall_completeness: int = 0  # 0-100
    processing_recommendation: Recommendation = Recommendation.MANUAL_REVIEW_REQUIRED


class DocumentValidationResult(BaseModel):
    """Aggregate verdict over one document's fields."""

    document_type: str
    status: ValidationStatus
    recommendation: Recommendation
    confidence_score: float = Field(ge=0, le=100)
    completeness: int = Field(ge=0, le=100)
    extracted_fields: list[ValidatedField] = Field(default_factory=list)
    missing_fields: list[MissingField] = Field(default_factory=list)
    confidence_scores: dict[str, int] = Field(default_factory=dict)
    warnings: list[ValidationWarning] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    summary: ValidationSummary
    data: dict[str, Any] = Field(default_factory=dict)  # Original data, untouched


# ─── Documents ──────────────────────────────────────────────────────


class DocumentType(str, Enum):
    REGISTRATION = "registration"
    INSURANCE = "insurance"
    MEDICAL_CERTIFICATE = "medical_certificate"
    CDL_LICENSE = "cdl_license"
    INSPECTION = "inspection"
    PERMIT = "permit"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: object) -> "DocumentType":
        """Map any incoming label onto a known type; unrecognized labels become UNKNOWN."""
        if isinstance(value, cls):
            return value
        label = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        if label == "cdl":
            return cls.CDL_LICENSE
        try:
            return cls(label)
        except ValueError:
            return cls.UNKNOWN


class VinCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    confidence: int = Field(default=0, ge=0, le=100)


class ExtractedDocument(BaseModel):
    """One successfully processed upload. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    document_type: DocumentType = DocumentType.UNKNOWN
    vin_candidates: list[VinCandidate] = Field(default_factory=list)
    extracted_data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("document_type", mode="before")
    @classmethod
    def _coerce_document_type(cls, value: object) -> DocumentType:
        return DocumentType.coerce(value)

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


# ─── Consolidated Vehicle ───────────────────────────────────────────


class _CategoryRecord(BaseModel):
    expiration_date: Optional[str] = None
    last_updated: datetime
    source_document: str


class RegistrationRecord(_CategoryRecord):
    license_plate: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[str] = None
    state: Optional[str] = None


class InsuranceRecord(_CategoryRecord):
    policy_number: Optional[str] = None
    insurance_company: Optional[str] = None
    effective_date: Optional[str] = None
    coverage_amount: Optional[str] = None


class InspectionRecord(_CategoryRecord):
    inspection_date: Optional[str] = None
    result: Optional[str] = None


class DriverRecord(_CategoryRecord):
    driver_name: Optional[str] = None
    license_number: Optional[str] = None
    license_class: Optional[str] = None


class ConsolidatedData(BaseModel):
    """Absent categories stay None; they are never fabricated."""

    registration: Optional[RegistrationRecord] = None
    insurance: Optional[InsuranceRecord] = None
    inspection: Optional[InspectionRecord] = None
    driver: Optional[DriverRecord] = None


class ComplianceState(str, Enum):
    CURRENT = "current"
    EXPIRED = "expired"
    MISSING = "missing"
    UNKNOWN = "unknown"


class OverallCompliance(str, Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non-compliant"
    REVIEW_NEEDED = "review-needed"


class ComplianceStatus(BaseModel):
    registration: ComplianceState
    insurance: ComplianceState
    inspection: ComplianceState
    driver: ComplianceState
    overall: OverallCompliance
    last_checked: datetime

    def by_category(self) -> dict[str, ComplianceState]:
        return {
            "registration": self.registration,
            "insurance": self.insurance,
            "inspection": self.inspection,
            "driver": self.driver,
        }


class ConsolidatedVehicle(BaseModel):
    """The reconciled, authoritative record for one physical vehicle."""

    primary_vin: str  # 17-char VIN, shorter variant, or a synthetic NO_VIN_ key
    alternative_vins: list[str] = Field(default_factory=list)
    documents: list[ExtractedDocument] = Field(default_factory=list)  # Newest first
    consolidated_data: ConsolidatedData
    compliance_status: ComplianceStatus
    document_count: int = 0
    selection_notes: list[str] = Field(default_factory=list)

    @property
    def has_vin(self) -> bool:
        return not self.primary_vin.startswith("NO_VIN_")


# ─── Fleet Summary (read model for the dashboard) ───────────────────


class ExpiryUrgency(str, Enum):
    EXPIRED = "expired"
    CRITICAL = "critical"  # <= 7 days
    WARNING = "warning"  # <= 30 days
    NORMAL = "normal"


class ExpiringCategory(BaseModel):
    category: str
    expiration_date: date
    days_until_expiry: int
    urgency: ExpiryUrgency


class VehicleSummary(BaseModel):
    vin: str
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[str] = None
    license_plate: Optional[str] = None
    state: Optional[str] = None
    manufacturer: Optional[str] = None
    engine_description: Optional[str] = None
    overall_status: OverallCompliance
    document_count: int
    document_types: list[str] = Field(default_factory=list)
    next_expiring: Optional[ExpiringCategory] = None
    expiring_categories: list[ExpiringCategory] = Field(default_factory=list)
    has_expired_documents: bool = False
    has_expiring_soon_documents: bool = False


class CategoryBreakdown(BaseModel):
    category: str
    total: int = 0
    current: int = 0
    expired: int = 0
    missing: int = 0
    unknown: int = 0
    compliance_rate: int = 0  # Percentage of vehicles current in this category


class FleetSummary(BaseModel):
    total_vehicles: int = 0
    compliant_vehicles: int = 0
    non_compliant_vehicles: int = 0
    vehicles_needing_review: int = 0
    vehicles_without_vin: int = 0
    expiring_soon: int = 0
    categories: list[CategoryBreakdown] = Field(default_factory=list)


# ─── Extraction / Ingestion ─────────────────────────────────────────


class RawExtraction(BaseModel):
    """What an extractor (regex or LLM) pulled out of one document's text."""

    document_type: DocumentType = DocumentType.UNKNOWN
    fields: dict[str, str] = Field(default_factory=dict)
    vin_candidates: list[VinCandidate] = Field(default_factory=list)

    @field_validator("document_type", mode="before")
    @classmethod
    def _coerce_document_type(cls, value: object) -> DocumentType:
        return DocumentType.coerce(value)


class IngestionReport(BaseModel):
    """Output of the ingestion pipeline for one uploaded document."""

    document: ExtractedDocument
    validation: DocumentValidationResult
    disagreements: list[ValidationWarning] = Field(default_factory=list)
    extraction_method: str = "unknown"
    original_hash: str = ""  # SHA-256 of the OCR text for audit trail
