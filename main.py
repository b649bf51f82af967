#!/usr/bin/env python3
"""
Fleet Compliance — Entry Point
==============================

Ingests a handful of sample OCR-scanned fleet documents, reconciles them
into vehicles and prints a compliance report.

Usage:
    python main.py                          # Regex-only mode (no API key needed)
    OPENAI_API_KEY=sk-... python main.py    # LLM + Regex dual extraction
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone

from fleet_compliance.config import load_settings
from fleet_compliance.fleet_summary import build_vehicle_summary, summarize_fleet
from fleet_compliance.models import ComplianceState, OverallCompliance, Recommendation
from fleet_compliance.pipeline import DocumentIngestionPipeline
from fleet_compliance.reconciler import reconcile_documents


# ─── Sample OCR Output ──────────────────────────────────────────────

SAMPLE_DOCUMENTS: list[tuple[str, datetime, str]] = [
    (
        "truck_07_registration.txt",
        datetime(2026, 4, 2, 9, 30, tzinfo=timezone.utc),
        """\
STATE OF TEXAS  VEHICLE REGISTRATION
VIN: 1FVACWDTX9HAJ7221
License Plate: 4471KL  |  State: TX
Make: Freightliner  |  Model: Cascadia
Model Year: 2009
Expiration Date: 03/31/2027""",
    ),
    (
        "truck_07_insurance.txt",
        datetime(2026, 1, 10, 14, 0, tzinfo=timezone.utc),
        """\
COMMERCIAL AUTO INSURANCE  ID CARD
Insurance Company: Lone Star Mutual
Policy Number: CA-7731904
VIN: 1FVACWDTX9HAJ7221
Effective Date: 2025-01-15
Expiration Date: 2026-01-15""",
    ),
    (
        "truck_12_registration.txt",
        datetime(2026, 6, 20, 11, 15, tzinfo=timezone.utc),
        """\
VEHICLE REGISTRATION
VIN: 5VCACSVF2LH123456
License Plate: 9ZK-2201  |  State: OK
Make: Volvo  |  Model: VNL
Expiration Date: June 30, 2027""",
    ),
    (
        "truck_12_inspection.txt",
        datetime(2026, 7, 1, 8, 0, tzinfo=timezone.utc),
        """\
ANNUAL SAFETY INSPECTION REPORT
VIN: 5VCACSVF2LH123456
Inspection Date: 07/01/2026
Result: PASS
Next Inspection Due: 07/01/2027""",
    ),
    (
        "cdl_r_alvarez.txt",
        datetime(2026, 5, 5, 16, 45, tzinfo=timezone.utc),
        """\
COMMERCIAL DRIVER LICENSE
Driver Name: Rosa Alvarez
License Number: 40182277  |  License Class: A
State: TX
Expires: 11/02/2026""",
    ),
]


# ─── ANSI Color Constants ───────────────────────────────────────────

_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"
_BOLD = "\033[1m"
_RESET = "\033[0m"
_WIDTH = 72

_STATE_COLORS = {
    ComplianceState.CURRENT: _GREEN,
    ComplianceState.EXPIRED: _RED,
    ComplianceState.UNKNOWN: _YELLOW,
    ComplianceState.MISSING: _DIM,
}

_OVERALL_COLORS = {
    OverallCompliance.COMPLIANT: _GREEN,
    OverallCompliance.NON_COMPLIANT: _RED,
    OverallCompliance.REVIEW_NEEDED: _YELLOW,
}

_RECOMMENDATION_COLORS = {
    Recommendation.AUTO_APPROVE: _GREEN,
    Recommendation.REVIEW_RECOMMENDED: _YELLOW,
    Recommendation.MANUAL_REVIEW_REQUIRED: _RED,
}


# ─── Pretty Printer Helpers ─────────────────────────────────────────


def _print_ingestion(report) -> None:
    """One line per document, plus any warnings worth a human's attention."""
    validation = report.validation
    color = _RECOMMENDATION_COLORS[validation.recommendation]
    print(
        f"  {report.document.file_name:<28} {report.document.document_type.value:<20}"
        f" {color}{validation.recommendation.value}{_RESET}"
        f" {_DIM}({validation.confidence_score:.0f}% / {validation.completeness}% complete){_RESET}"
    )
    for f in validation.extracted_fields:
        if f.correction_applied:
            print(f"      {_CYAN}{f.field}: {f.correction_applied}{_RESET}")
    for w in [*report.disagreements, *validation.warnings]:
        print(f"      {_YELLOW}[{w.severity.value}]{_RESET} {w.field}: {w.issue}")


def _print_vehicle(vehicle, summary) -> None:
    overall = vehicle.compliance_status.overall
    print(f"\n  {_BOLD}{vehicle.primary_vin}{_RESET}  {_OVERALL_COLORS[overall]}{overall.value.upper()}{_RESET}")
    if summary.manufacturer:
        print(f"    Maker:       {summary.manufacturer}  {_DIM}{summary.engine_description or ''}{_RESET}")
    if summary.license_plate:
        print(f"    Plate:       {summary.license_plate} ({summary.state or '??'})")
    if vehicle.alternative_vins:
        print(f"    Aliases:     {', '.join(vehicle.alternative_vins)}")
    print(f"    Documents:   {vehicle.document_count}")

    for category, state in vehicle.compliance_status.by_category().items():
        block = getattr(vehicle.consolidated_data, category)
        expiry = f" {_DIM}expires {block.expiration_date}{_RESET}" if block and block.expiration_date else ""
        print(f"    {category:<12} {_STATE_COLORS[state]}{state.value}{_RESET}{expiry}")

    if summary.next_expiring and summary.next_expiring.days_until_expiry >= 0:
        nxt = summary.next_expiring
        print(f"    Next due:    {nxt.category} in {nxt.days_until_expiry} day(s) ({nxt.urgency.value})")
    for note in vehicle.selection_notes:
        print(f"    {_DIM}note: {note}{_RESET}")


# ─── Pretty Printer ─────────────────────────────────────────────────


def print_report(reports, vehicles, now: datetime, expiring_soon_days: int) -> int:
    """Pretty-print ingestion results and the fleet compliance view.

    Returns:
        0 if no vehicle is non-compliant, 1 otherwise.
    """
    print(f"\n{'=' * _WIDTH}")
    print(f"{_BOLD}{_CYAN}  FLEET COMPLIANCE REPORT{_RESET}")
    print(f"{'=' * _WIDTH}")
    print(f"  As of:       {now:%Y-%m-%d %H:%M} UTC")
    print(f"  Extraction:  {reports[0].extraction_method if reports else 'n/a'}")
    print(f"{'─' * _WIDTH}")

    for report in reports:
        _print_ingestion(report)

    print(f"{'─' * _WIDTH}")
    for vehicle in vehicles:
        _print_vehicle(vehicle, build_vehicle_summary(vehicle, now, expiring_soon_days))

    fleet = summarize_fleet(vehicles, now, expiring_soon_days)
    print(f"\n{'=' * _WIDTH}")
    print(
        f"  Vehicles: {fleet.total_vehicles}   "
        f"{_GREEN}compliant {fleet.compliant_vehicles}{_RESET}   "
        f"{_RED}non-compliant {fleet.non_compliant_vehicles}{_RESET}   "
        f"{_YELLOW}review {fleet.vehicles_needing_review}{_RESET}   "
        f"expiring soon {fleet.expiring_soon}"
    )
    print(f"{'=' * _WIDTH}\n")

    return 1 if fleet.non_compliant_vehicles else 0


# ─── Main ────────────────────────────────────────────────────────────


def main():
    """Ingest the sample documents, reconcile them and print the report."""
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    print("\n  Starting Fleet Compliance...")
    print(f"  Ingesting {len(SAMPLE_DOCUMENTS)} OCR-scanned documents...\n")

    now = datetime.now(timezone.utc)
    pipeline = DocumentIngestionPipeline(settings=settings)
    reports = [
        pipeline.run(text, file_name, timestamp=timestamp)
        for file_name, timestamp, text in SAMPLE_DOCUMENTS
    ]
    vehicles = reconcile_documents([r.document for r in reports], now=now)

    exit_code = print_report(reports, vehicles, now, settings.expiring_soon_days)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
