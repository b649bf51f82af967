"""
Vehicle reconciler: many independently processed documents in, one record per vehicle out.

─── Grouping ───
A single pass over the documents in arrival order. Each document's VINs
(explicit candidates plus any `vin` field) are normalized and deduped.
The primary is a 17-character candidate that already keys a group, else
the first 17-character candidate (resolved through the alias table), else
the first candidate. Every other candidate that does not key a group of
its own becomes an alias of the primary, so a later document carrying only
the short variant still lands in the same group. Once a VIN keys a group
it stays there. Documents without any VIN try the file name, then fall
back to a synthetic NO_VIN_<file name> group.

─── Category merge ───
Registration and driver take the newest matching document. Insurance and
inspection take the one with the latest parseable expiration date.

─── Compliance ───
Per category: current / expired / unknown / missing. Overall: any expired
→ non-compliant, else any unknown → review-needed, else compliant.

The reconciler holds no state between runs; feeding it the same documents
twice yields identical output.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Container, Iterable, Optional, Sequence

from .dates import to_date
from .exceptions import ContractViolationError
from .field_tables import CATEGORY_RULES, EXPIRY_KEYS, VIN_FIELD_KEYS, CategoryRule, extract_value
from .models import (
    ComplianceState,
    ComplianceStatus,
    ConsolidatedData,
    ConsolidatedVehicle,
    DriverRecord,
    ExtractedDocument,
    InspectionRecord,
    InsuranceRecord,
    OverallCompliance,
    RegistrationRecord,
)
from .vin import VIN_LENGTH, is_grouping_length, normalize_vin, vin_from_filename

logger = logging.getLogger(__name__)

NO_VIN_PREFIX = "NO_VIN_"

_RECORD_TYPES = {
    "registration": RegistrationRecord,
    "insurance": InsuranceRecord,
    "inspection": InspectionRecord,
    "driver": DriverRecord,
}


# ─── VIN Extraction & Grouping ───────────────────────────────────────


def extract_vins_from_document(document: ExtractedDocument) -> list[str]:
    """Every usable VIN a document presents, normalized, in first-seen order."""
    raw: list[object] = [c.value for c in document.vin_candidates]
    data = document.extracted_data
    for key in VIN_FIELD_KEYS:
        value = data.get(key)
        if isinstance(value, dict):
            value = value.get("value")
        if value:
            raw.append(value)

    vins: list[str] = []
    for value in raw:
        vin = normalize_vin(value)
        if is_grouping_length(vin) and vin not in vins:
            vins.append(vin)
    return vins


def select_primary_vin(
    vins: Sequence[str],
    aliases: dict[str, str],
    groups: Container[str] = (),
) -> str:
    """Pick the group key for a non-empty candidate list.

    A 17-character VIN that already keys a group wins, then one already
    aliased (resolved to its primary), then the first 17-character VIN.
    Short VINs fall back the same way.
    """
    full = [vin for vin in vins if len(vin) == VIN_LENGTH]
    for pool in (full, vins):
        for vin in pool:
            if vin in groups:
                return vin
        for vin in pool:
            if vin in aliases:
                return aliases[vin]
        if pool:
            return pool[0]
    return vins[0]


def group_documents_by_vin(
    documents: Iterable[ExtractedDocument],
) -> tuple[dict[str, list[ExtractedDocument]], dict[str, str]]:
    """Group documents by resolved primary VIN.

    Returns (groups, aliases). Groups keep first-appearance order; the alias
    table maps each variant VIN to the primary it was resolved to.
    """
    groups: dict[str, list[ExtractedDocument]] = {}
    aliases: dict[str, str] = {}

    for document in documents:
        vins = extract_vins_from_document(document)

        if not vins:
            mined = vin_from_filename(document.file_name)
            if mined:
                key = aliases.get(mined, mined)
                logger.debug("VIN %s mined from file name %s", key, document.file_name)
            else:
                key = f"{NO_VIN_PREFIX}{document.file_name}"
                logger.warning("No VIN found for %s, grouping as %s", document.file_name, key)
            groups.setdefault(key, []).append(document)
            continue

        primary = select_primary_vin(vins, aliases, groups)
        for vin in vins:
            if vin != primary and vin not in groups:
                aliases.setdefault(vin, primary)
        groups.setdefault(primary, []).append(document)

    return groups, aliases


# ─── Category Merge ──────────────────────────────────────────────────


def _matches(document: ExtractedDocument, rule: CategoryRule) -> bool:
    if document.document_type in rule.document_types:
        return True
    name = document.file_name.lower()
    return any(hint in name for hint in rule.filename_hints)


def _expiry_of(document: ExtractedDocument) -> Optional[date]:
    return to_date(extract_value(document.extracted_data, EXPIRY_KEYS))


def select_category_document(
    documents: Sequence[ExtractedDocument], rule: CategoryRule
) -> Optional[ExtractedDocument]:
    """The authoritative document for one category, or None when nothing matches."""
    matching = [d for d in documents if _matches(d, rule)]
    if not matching:
        return None

    if rule.prefer_latest_expiry:
        def sort_key(doc: ExtractedDocument) -> tuple[bool, date, datetime]:
            expiry = _expiry_of(doc)
            return expiry is not None, expiry or date.min, doc.timestamp

        return max(matching, key=sort_key)

    return max(matching, key=lambda d: d.timestamp)


def _build_record(category: str, rule: CategoryRule, document: ExtractedDocument):
    values = {
        output: extract_value(document.extracted_data, keys)
        for output, keys in rule.fields.items()
    }
    return _RECORD_TYPES[category](
        **values,
        last_updated=document.timestamp,
        source_document=document.file_name,
    )


def consolidate_data(
    documents: Sequence[ExtractedDocument],
) -> tuple[ConsolidatedData, list[str]]:
    """Merge a group's documents per category. Returns (data, selection notes)."""
    blocks = {}
    notes: list[str] = []

    for category, rule in CATEGORY_RULES.items():
        chosen = select_category_document(documents, rule)
        if chosen is None:
            continue
        blocks[category] = _build_record(category, rule, chosen)

        if rule.prefer_latest_expiry:
            newest = max((d for d in documents if _matches(d, rule)), key=lambda d: d.timestamp)
            if newest is not chosen:
                notes.append(
                    f"{category}: {chosen.file_name} chosen for its later expiration date "
                    f"over newer upload {newest.file_name}"
                )

    return ConsolidatedData(**blocks), notes


# ─── Compliance ──────────────────────────────────────────────────────


def category_state(expiration: Optional[str], today: date) -> ComplianceState:
    """Classify one category's expiration date against today."""
    if not expiration:
        return ComplianceState.MISSING
    expiry = to_date(expiration)
    if expiry is None:
        return ComplianceState.UNKNOWN
    if expiry < today:
        return ComplianceState.EXPIRED
    return ComplianceState.CURRENT


def overall_state(states: Iterable[ComplianceState]) -> OverallCompliance:
    states = list(states)
    if ComplianceState.EXPIRED in states:
        return OverallCompliance.NON_COMPLIANT
    if ComplianceState.UNKNOWN in states:
        return OverallCompliance.REVIEW_NEEDED
    return OverallCompliance.COMPLIANT


def compute_compliance(data: ConsolidatedData, now: datetime) -> ComplianceStatus:
    today = now.date()
    states = {}
    for category in CATEGORY_RULES:
        block = getattr(data, category)
        states[category] = category_state(block.expiration_date if block else None, today)

    return ComplianceStatus(
        **states,
        overall=overall_state(states.values()),
        last_checked=now,
    )


# ─── Public API ──────────────────────────────────────────────────────


class VehicleReconciler:
    """Stateless facade; construct one per request if convenient.

    `now` pins the clock used for compliance. Left as None, each call
    reads the current UTC time.
    """

    def __init__(self, now: Optional[datetime] = None):
        self._now = now

    def reconcile(self, documents: Sequence[ExtractedDocument]) -> list[ConsolidatedVehicle]:
        return reconcile_documents(documents, now=self._now)


def reconcile_documents(
    documents: Sequence[ExtractedDocument],
    now: Optional[datetime] = None,
) -> list[ConsolidatedVehicle]:
    """Reconcile a full document set into consolidated vehicles.

    Raises:
        ContractViolationError: documents is None or holds non-documents.
    """
    if documents is None:
        raise ContractViolationError("documents must be a list, got None")
    for index, document in enumerate(documents):
        if not isinstance(document, ExtractedDocument):
            raise ContractViolationError(
                "documents must contain ExtractedDocument records",
                {"index": index, "received": type(document).__name__},
            )

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    logger.info("Reconciling %d documents", len(documents))
    groups, aliases = group_documents_by_vin(documents)

    vehicles: list[ConsolidatedVehicle] = []
    for primary, group in groups.items():
        ordered = sorted(group, key=lambda d: d.timestamp, reverse=True)
        data, notes = consolidate_data(ordered)
        compliance = compute_compliance(data, now)
        vehicles.append(
            ConsolidatedVehicle(
                primary_vin=primary,
                alternative_vins=sorted(v for v, p in aliases.items() if p == primary),
                documents=ordered,
                consolidated_data=data,
                compliance_status=compliance,
                document_count=len(ordered),
                selection_notes=notes,
            )
        )
        logger.debug("Vehicle %s: %d documents, %s", primary, len(ordered), compliance.overall.value)

    logger.info("Reconciled %d documents into %d vehicles", len(documents), len(vehicles))
    return vehicles
