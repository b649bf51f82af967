"""
Field Validator: one scoring function per semantic field type.

These validators NEVER raise and NEVER reject. Every input yields a
ValidatedField; bad input just earns a low confidence and a note that
explains why. Confidence is assembled from independent additive checks
and clamped to 0-100 at the end.

Each validator function:
  - Takes the raw value (anything; it is stringified)
  - Returns a ValidatedField with confidence, status and notes
  - Is pure: no shared state, safe to call concurrently per field

validate_field() dispatches on a FieldSpec from field_tables.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Optional

from .dates import parse_date
from .field_tables import FieldSpec
from .models import FieldStatus, FieldType, ValidatedField, VinDecoding
from .vin import (
    CHECK_DIGIT_INDEX,
    DEFAULT_OCR_RULES,
    LOOSE_VIN_FORMAT,
    VIN_FORMAT,
    VIN_LENGTH,
    OcrCorrectionRules,
    clean_vin,
    correct_vin_ocr_errors,
    decode_vin,
)

# ─── Constants ───────────────────────────────────────────────────────

US_STATE_CODES: frozenset[str] = frozenset({
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
    "DC",
})

WRONG_LENGTH_VIN_CEILING = 30

DEFAULT_TEXT_MIN_LENGTH = 1
DEFAULT_TEXT_MAX_LENGTH = 200


def status_for_confidence(confidence: int) -> FieldStatus:
    if confidence >= 90:
        return FieldStatus.EXCELLENT
    if confidence >= 75:
        return FieldStatus.GOOD
    if confidence >= 60:
        return FieldStatus.ACCEPTABLE
    return FieldStatus.QUESTIONABLE


def _finish(
    field: str,
    raw: str,
    score: int,
    notes: list[str],
    cleaned: Optional[str] = None,
    corrected: Optional[str] = None,
    correction: Optional[str] = None,
    vin_decoding: Optional[VinDecoding] = None,
) -> ValidatedField:
    """Clamp the score, bucket it, and drop a 'correction' that changes nothing."""
    confidence = max(0, min(100, score))
    baseline = raw if cleaned is None else cleaned
    if corrected is not None and corrected == baseline:
        corrected, correction = None, None
    return ValidatedField(
        field=field,
        value=raw,
        corrected_value=corrected,
        correction_applied=correction,
        confidence=confidence,
        status=status_for_confidence(confidence),
        validation_notes=notes,
        vin_decoding=vin_decoding,
    )


def _as_text(value: object) -> str:
    return "" if value is None else str(value)


# ─── VIN ─────────────────────────────────────────────────────────────


def validate_vin_field(
    value: object,
    field: str = "vin",
    ocr_rules: OcrCorrectionRules = DEFAULT_OCR_RULES,
) -> ValidatedField:
    """Score a VIN: length, alphabet, format, manufacturer and check digit.

    OCR-confusable characters are corrected first (per ocr_rules) and the
    correction is recorded. A VIN that is not exactly 17 characters long
    cannot identify a vehicle, so its confidence is capped.
    """
    raw = _as_text(value)
    cleaned = clean_vin(raw)
    notes = [f'Original value: "{raw}"', f'Cleaned value: "{cleaned}"']

    vin = correct_vin_ocr_errors(cleaned, ocr_rules)
    correction = None
    if vin != cleaned:
        correction = f"OCR corrections applied: {cleaned} -> {vin}"
        notes.append(correction)

    score = 0

    # ── Length ──────────────────────────────────────────────────────
    if len(vin) == VIN_LENGTH:
        score += 40
        notes.append("Correct length (17 characters)")
    elif 15 <= len(vin) <= 19:
        score += 25
        notes.append(f"Invalid length {len(vin)} (expected 17), likely OCR issue")
    else:
        score += 5
        notes.append(f"Invalid length {len(vin)} (expected 17)")

    # ── Alphabet ────────────────────────────────────────────────────
    if not re.search(r"[IOQ]", vin):
        score += 30
        notes.append("No invalid characters (I, O, Q)")
    else:
        score += 15
        notes.append("Contains I, O, or Q: potential OCR errors")

    # ── Format, manufacturer, check digit ───────────────────────────
    decoding: Optional[VinDecoding] = None
    if VIN_FORMAT.match(vin):
        score += 30
        notes.append("Valid VIN format")
        decoding = decode_vin(vin)

        if decoding.manufacturer:
            score += 15
            notes.append(f"Valid WMI code: {decoding.wmi} = {decoding.manufacturer}")
        else:
            notes.append(f"Unrecognized WMI code: {decoding.wmi}")

        if decoding.engine_confidence > 60:
            notes.append(f"Engine: {decoding.engine_description}")

        if decoding.check_digit_valid:
            score += 20
            notes.append("Valid VIN check digit")
        else:
            score -= 10
            notes.append("Invalid VIN check digit: possible OCR error in position 9")
            notes.append(
                f"Suggested check digit: '{decoding.suggested_check_digit}' "
                f"(current: '{vin[CHECK_DIGIT_INDEX]}')"
            )
    elif LOOSE_VIN_FORMAT.match(vin):
        score += 20
        notes.append("Alphanumeric format but needs verification")
    else:
        score += 5
        notes.append("Invalid format")

    if len(vin) != VIN_LENGTH and score > WRONG_LENGTH_VIN_CEILING:
        score = WRONG_LENGTH_VIN_CEILING
        notes.append(f"Confidence capped at {WRONG_LENGTH_VIN_CEILING}: wrong VIN length")

    return _finish(field, raw, score, notes, cleaned=cleaned, corrected=vin,
                   correction=correction, vin_decoding=decoding)


# ─── Date ────────────────────────────────────────────────────────────


def validate_date_field(
    value: object, field: str = "date", today: Optional[date] = None
) -> ValidatedField:
    """Parse against known layouts, check plausibility, normalize to ISO."""
    raw = _as_text(value)
    text = raw.strip()
    notes = [f'Original date: "{raw}"']
    score = 0

    parsed = parse_date(text)
    if parsed is None:
        score += 5
        notes.append("Unable to parse date")
        return _finish(field, raw, score, notes)

    if parsed.recognized:
        score += 40
        notes.append(f"Recognized format: {parsed.format_name}")
    else:
        score += 25
        notes.append("Parsed with fallback method")

    current_year = (today or date.today()).year
    year = parsed.value.year
    if 2000 <= year <= current_year + 5:
        score += 35
        notes.append("Date is reasonable")
    elif 1990 <= year <= current_year + 10:
        score += 20
        notes.append("Date is plausible but unusual")
    else:
        score += 5
        notes.append(f"Date year {year} seems unusual")

    iso = parsed.value.isoformat()
    correction = None
    if iso != text:
        correction = f"Standardized to ISO format: {text} -> {iso}"
        notes.append(correction)

    score += 25
    return _finish(field, raw, score, notes, cleaned=text, corrected=iso, correction=correction)


# ─── License Plate ───────────────────────────────────────────────────


def validate_license_plate_field(value: object, field: str = "licensePlate") -> ValidatedField:
    raw = _as_text(value)
    plate = re.sub(r"[^A-Z0-9]", "", raw.upper())
    notes = [f'Cleaned plate: "{plate}"']
    score = 0

    if 2 <= len(plate) <= 8:
        score += 60
        notes.append("Valid length for license plate")
    else:
        score += 20
        notes.append(f"Unusual length for license plate: {len(plate)}")

    if re.fullmatch(r"[A-Z0-9]+", plate):
        score += 40
        notes.append("Alphanumeric format")
    else:
        score += 10
        notes.append("No alphanumeric characters")

    correction = None
    baseline = raw.strip().upper()
    if plate != baseline:
        correction = f"Cleaned: {raw} -> {plate}"
        notes.append(correction)

    return _finish(field, raw, score, notes, cleaned=baseline, corrected=plate, correction=correction)


# ─── Policy Number ───────────────────────────────────────────────────


def validate_policy_number_field(value: object, field: str = "policyNumber") -> ValidatedField:
    raw = _as_text(value)
    policy = raw.strip()
    notes: list[str] = []
    score = 0

    if len(policy) >= 3:
        score += 50
        notes.append("Adequate length for policy number")
    else:
        score += 15
        notes.append(f"Very short for policy number: {len(policy)} characters")

    if re.fullmatch(r"[A-Za-z0-9\- ]+", policy):
        score += 35
        notes.append("Valid alphanumeric format")
    else:
        score += 20
        notes.append("Contains unusual characters for policy number")

    score += 15  # Baseline for having a value
    return _finish(field, raw, score, notes)


# ─── State ───────────────────────────────────────────────────────────


def validate_state_field(value: object, field: str = "state") -> ValidatedField:
    """Exact US state / DC code → 100; some other 2-letter code → 60; anything else → 25."""
    raw = _as_text(value)
    state = raw.strip().upper()
    notes: list[str] = []

    if state in US_STATE_CODES:
        score = 100
        notes.append("Valid US state code")
    elif re.fullmatch(r"[A-Z]{2}", state):
        score = 60
        notes.append("2-letter format but not a recognized US state")
    else:
        score = 25
        notes.append("Not a valid state code format")

    correction = None
    if state != raw:
        correction = f"Normalized: {raw} -> {state}"
        notes.append(correction)

    return _finish(field, raw, score, notes, corrected=state, correction=correction)


# ─── Generic Text / Number ───────────────────────────────────────────


def validate_text_field(
    value: object,
    field: str = "text",
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> ValidatedField:
    raw = _as_text(value)
    text = raw.strip()
    if not text:
        return _finish(field, raw, 0, ["Empty text field"])

    low = DEFAULT_TEXT_MIN_LENGTH if min_length is None else min_length
    high = DEFAULT_TEXT_MAX_LENGTH if max_length is None else max_length
    notes: list[str] = []
    score = 0

    if low <= len(text) <= high:
        score += 50
        notes.append(f"Length {len(text)} within range {low}-{high}")
    else:
        score += 20
        notes.append(f"Length {len(text)} outside expected range {low}-{high}")

    if re.fullmatch(r"[A-Za-z0-9\s\-.']+", text):
        score += 35
        notes.append("Standard characters only")
    else:
        score += 20
        notes.append("Contains special characters")

    score += 15
    return _finish(field, raw, score, notes)


def _format_number(number: float) -> str:
    return str(int(number)) if number.is_integer() else str(number)


def validate_number_field(
    value: object,
    field: str = "number",
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> ValidatedField:
    raw = _as_text(value)
    cleaned = re.sub(r"[^0-9.\-]", "", raw)
    try:
        number = float(cleaned)
    except ValueError:
        return _finish(field, raw, 15, ["Not a valid number"])

    notes = [f"Valid number: {_format_number(number)}"]
    score = 50

    if min_value is not None and number < min_value:
        score -= 20
        notes.append(f"Below minimum value {_format_number(float(min_value))}")
    if max_value is not None and number > max_value:
        score -= 20
        notes.append(f"Above maximum value {_format_number(float(max_value))}")

    score += 35

    try:
        as_given: Optional[float] = float(raw.strip())
    except ValueError:
        as_given = None

    corrected = None
    correction = None
    if as_given != number:
        corrected = _format_number(number)
        correction = f"Cleaned number: {raw} -> {corrected}"
        notes.append(correction)

    return _finish(field, raw, score, notes, corrected=corrected, correction=correction)


def validate_generic_field(value: object, field: str = "value") -> ValidatedField:
    if value is None or value == "":
        return _finish(field, _as_text(value), 5, ["Empty or null value"])

    raw = _as_text(value)
    score = 60
    notes = ["Has value"]
    if raw.strip():
        score += 25
        notes.append(f"Non-empty content ({len(raw.strip())} characters)")
    return _finish(field, raw, score, notes)


# ─── Dispatcher ──────────────────────────────────────────────────────


def validate_field(
    value: object,
    spec: FieldSpec,
    today: Optional[date] = None,
    ocr_rules: OcrCorrectionRules = DEFAULT_OCR_RULES,
) -> ValidatedField:
    """Run the validator that matches the FieldSpec's field type."""
    if spec.type == FieldType.VIN:
        return validate_vin_field(value, spec.name, ocr_rules)
    if spec.type == FieldType.DATE:
        return validate_date_field(value, spec.name, today)
    if spec.type == FieldType.LICENSE_PLATE:
        return validate_license_plate_field(value, spec.name)
    if spec.type == FieldType.POLICY_NUMBER:
        return validate_policy_number_field(value, spec.name)
    if spec.type == FieldType.STATE:
        return validate_state_field(value, spec.name)
    if spec.type == FieldType.TEXT:
        return validate_text_field(value, spec.name, spec.min_length, spec.max_length)
    if spec.type == FieldType.NUMBER:
        return validate_number_field(value, spec.name, spec.min_value, spec.max_value)
    return validate_generic_field(value, spec.name)
