"""
Fleet summary: dashboard read model over reconciled vehicles.

Urgency buckets by days until expiry:
  < 0   expired
  <= 7  critical
  <= 30 warning
  else  normal
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

from .dates import to_date
from .models import (
    CategoryBreakdown,
    ComplianceState,
    ConsolidatedVehicle,
    ExpiringCategory,
    ExpiryUrgency,
    FleetSummary,
    OverallCompliance,
    VehicleSummary,
)
from .vin import VIN_LENGTH, decode_vin

CRITICAL_DAYS = 7
WARNING_DAYS = 30

CATEGORIES = ("registration", "insurance", "inspection", "driver")


def urgency_for(days_until_expiry: int) -> ExpiryUrgency:
    if days_until_expiry < 0:
        return ExpiryUrgency.EXPIRED
    if days_until_expiry <= CRITICAL_DAYS:
        return ExpiryUrgency.CRITICAL
    if days_until_expiry <= WARNING_DAYS:
        return ExpiryUrgency.WARNING
    return ExpiryUrgency.NORMAL


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def expiring_categories(vehicle: ConsolidatedVehicle, now: Optional[datetime] = None) -> list[ExpiringCategory]:
    """Every category with a parseable expiry, most urgent first."""
    today = _now(now).date()
    found: list[ExpiringCategory] = []
    for category in CATEGORIES:
        block = getattr(vehicle.consolidated_data, category)
        expiry = to_date(block.expiration_date) if block else None
        if expiry is None:
            continue
        days = (expiry - today).days
        found.append(
            ExpiringCategory(
                category=category,
                expiration_date=expiry,
                days_until_expiry=days,
                urgency=urgency_for(days),
            )
        )
    found.sort(key=lambda item: item.days_until_expiry)
    return found


def build_vehicle_summary(
    vehicle: ConsolidatedVehicle,
    now: Optional[datetime] = None,
    expiring_soon_days: int = WARNING_DAYS,
) -> VehicleSummary:
    registration = vehicle.consolidated_data.registration
    expiring = expiring_categories(vehicle, now)

    manufacturer = engine = None
    if len(vehicle.primary_vin) == VIN_LENGTH:
        decoded = decode_vin(vehicle.primary_vin)
        manufacturer = decoded.manufacturer
        engine = decoded.engine_description

    return VehicleSummary(
        vin=vehicle.primary_vin,
        make=registration.make if registration else None,
        model=registration.model if registration else None,
        year=registration.year if registration else None,
        license_plate=registration.license_plate if registration else None,
        state=registration.state if registration else None,
        manufacturer=manufacturer,
        engine_description=engine,
        overall_status=vehicle.compliance_status.overall,
        document_count=vehicle.document_count,
        document_types=sorted({d.document_type.value for d in vehicle.documents}),
        next_expiring=expiring[0] if expiring else None,
        expiring_categories=expiring,
        has_expired_documents=any(e.days_until_expiry < 0 for e in expiring),
        has_expiring_soon_documents=any(0 <= e.days_until_expiry <= expiring_soon_days for e in expiring),
    )


def expiring_within(
    vehicles: Sequence[ConsolidatedVehicle],
    days: int,
    now: Optional[datetime] = None,
) -> list[VehicleSummary]:
    """Vehicles with at least one category expiring in [0, days], soonest first."""
    summaries = [build_vehicle_summary(v, now, expiring_soon_days=days) for v in vehicles]
    hits = [s for s in summaries if s.has_expiring_soon_documents]

    def soonest(summary: VehicleSummary) -> int:
        return min(e.days_until_expiry for e in summary.expiring_categories if e.days_until_expiry >= 0)

    return sorted(hits, key=soonest)


def summarize_fleet(
    vehicles: Sequence[ConsolidatedVehicle],
    now: Optional[datetime] = None,
    expiring_soon_days: int = WARNING_DAYS,
) -> FleetSummary:
    overall = [v.compliance_status.overall for v in vehicles]
    summaries = [build_vehicle_summary(v, now, expiring_soon_days) for v in vehicles]

    breakdown: list[CategoryBreakdown] = []
    for category in CATEGORIES:
        states = [v.compliance_status.by_category()[category] for v in vehicles]
        current = states.count(ComplianceState.CURRENT)
        breakdown.append(
            CategoryBreakdown(
                category=category,
                total=len(states),
                current=current,
                expired=states.count(ComplianceState.EXPIRED),
                missing=states.count(ComplianceState.MISSING),
                unknown=states.count(ComplianceState.UNKNOWN),
                compliance_rate=round(current / len(states) * 100) if states else 0,
            )
        )

    return FleetSummary(
        total_vehicles=len(vehicles),
        compliant_vehicles=overall.count(OverallCompliance.COMPLIANT),
        non_compliant_vehicles=overall.count(OverallCompliance.NON_COMPLIANT),
        vehicles_needing_review=overall.count(OverallCompliance.REVIEW_NEEDED),
        vehicles_without_vin=sum(1 for v in vehicles if not v.has_vin),
        expiring_soon=sum(1 for s in summaries if s.has_expiring_soon_documents),
        categories=breakdown,
    )
