"""
VIN arithmetic and decoding: everything that can be known from the 17 characters alone.

  - Cleaning and normalization (uppercase alphanumeric, truncated to 17)
  - ISO 3779 check digit (position 9, weighted modulo-11)
  - OCR confusable-character correction, driven by a configurable rule set
  - World Manufacturer Identifier (WMI) and engine-code decoding
  - Mining VIN-shaped substrings out of free text and file names

All functions are pure. None of them raise on malformed input; they return
None / False / the input unchanged instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping, NamedTuple, Optional

from .models import VinCandidate, VinDecoding

# ─── Constants ───────────────────────────────────────────────────────

VIN_LENGTH = 17
CHECK_DIGIT_INDEX = 8  # Position 9

CHECK_DIGIT_WEIGHTS: tuple[int, ...] = (8, 7, 6, 5, 4, 3, 2, 10, 0, 9, 8, 7, 6, 5, 4, 3, 2)

TRANSLITERATION: dict[str, int] = {
    "A": 1, "B": 2, "C": 3, "D": 4, "E": 5, "F": 6, "G": 7, "H": 8,
    "J": 1, "K": 2, "L": 3, "M": 4, "N": 5, "P": 7, "R": 9,
    "S": 2, "T": 3, "U": 4, "V": 5, "W": 6, "X": 7, "Y": 8, "Z": 9,
    **{str(d): d for d in range(10)},
}

VIN_FORMAT = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")
LOOSE_VIN_FORMAT = re.compile(r"^[A-Z0-9]{15,19}$")
_VIN_SHAPED = re.compile(r"[A-HJ-NPR-Z0-9]{15,17}")
_VIN_TOKEN = re.compile(r"(?<![A-Z0-9])[A-Z0-9]{15,19}(?![A-Z0-9])")


# ─── Cleaning ────────────────────────────────────────────────────────


def clean_vin(raw: object) -> str:
    """Uppercase and drop everything that is not A-Z / 0-9."""
    return re.sub(r"[^A-Z0-9]", "", str(raw or "").upper())


def normalize_vin(raw: object) -> str:
    """Clean and truncate to the canonical 17 characters."""
    return clean_vin(raw)[:VIN_LENGTH]


def is_grouping_length(vin: str) -> bool:
    """Lengths the reconciler accepts as a usable VIN (15-17)."""
    return 15 <= len(vin) <= VIN_LENGTH


# ─── Check Digit ─────────────────────────────────────────────────────


def calculate_check_digit(vin: str) -> Optional[str]:
    """Compute the position-9 check character for a 17-character VIN.

    Characters outside the transliteration table count as 0, so an OCR'd
    'I' or 'O' still yields a (probably wrong) answer instead of an error.
    """
    if len(vin) != VIN_LENGTH:
        return None

    total = sum(
        TRANSLITERATION.get(char, 0) * weight
        for index, (char, weight) in enumerate(zip(vin, CHECK_DIGIT_WEIGHTS))
        if index != CHECK_DIGIT_INDEX
    )
    remainder = total % 11
    return "X" if remainder == 10 else str(remainder)


def validate_vin_check_digit(vin: str) -> bool:
    """True when position 9 matches the modulo-11 sum of the other 16 positions."""
    expected = calculate_check_digit(vin)
    return expected is not None and vin[CHECK_DIGIT_INDEX] == expected


# ─── OCR Correction ──────────────────────────────────────────────────


@dataclass(frozen=True)
class OcrCorrectionRules:
    """Which confusable characters get rewritten, and where.

    always:               applied at every position (I, O, Q never occur in a VIN)
    numeric_context:      applied only inside the numeric serial tail
    numeric_tail:         how many trailing characters count as numeric; None = whole VIN
    contextual_swaps:     single-character swaps tried at contextual_positions
    require_check_digit_fix:
                          when True a contextual swap is kept only if it turns an
                          invalid check digit into a valid one
    """

    always: Mapping[str, str] = field(
        default_factory=lambda: {"I": "1", "O": "0", "Q": "0"}
    )
    numeric_context: Mapping[str, str] = field(
        default_factory=lambda: {"S": "5", "G": "6", "B": "8", "Z": "2"}
    )
    numeric_tail: Optional[int] = 4
    contextual_swaps: tuple[tuple[str, str], ...] = (
        ("C", "G"), ("G", "C"), ("8", "A"), ("A", "8"),
    )
    contextual_positions: tuple[int, ...] = (3, 4, 5, 6, 7)  # Descriptor section, positions 4-8
    require_check_digit_fix: bool = True


DEFAULT_OCR_RULES = OcrCorrectionRules()

# Blanket substitution: every S/G/B/Z anywhere, then 8 -> A in positions 5-9.
# Known to rewrite perfectly good VINs; kept for callers that want it.
AGGRESSIVE_OCR_RULES = OcrCorrectionRules(
    numeric_tail=None,
    contextual_swaps=(("8", "A"),),
    contextual_positions=(4, 5, 6, 7, 8),
    require_check_digit_fix=False,
)


def correct_vin_ocr_errors(vin: str, rules: OcrCorrectionRules = DEFAULT_OCR_RULES) -> str:
    """Rewrite OCR-confusable characters in an already-cleaned VIN."""
    chars = [rules.always.get(c, c) for c in vin]

    tail_start = 0 if rules.numeric_tail is None else max(0, len(chars) - rules.numeric_tail)
    for i in range(tail_start, len(chars)):
        chars[i] = rules.numeric_context.get(chars[i], chars[i])

    if rules.require_check_digit_fix:
        candidate = "".join(chars)
        if len(candidate) != VIN_LENGTH or validate_vin_check_digit(candidate):
            return candidate
        for pos in rules.contextual_positions:
            for source, target in rules.contextual_swaps:
                if pos < len(chars) and chars[pos] == source:
                    swapped = candidate[:pos] + target + candidate[pos + 1:]
                    if validate_vin_check_digit(swapped):
                        return swapped
        return candidate

    for pos in rules.contextual_positions:
        if pos < len(chars):
            for source, target in rules.contextual_swaps:
                if chars[pos] == source:
                    chars[pos] = target
                    break
    return "".join(chars)


# ─── Manufacturer / Engine Decoding ──────────────────────────────────

_FORD_THIRD_CHARS = "ABCDEFGHJKLMNPRSTUWXYZ"
_GM_THIRD_CHARS = "1234678CDEGHJKLMNPRSTUWYZ"

WMI_MANUFACTURERS: dict[str, str] = {
    **{f"1F{c}": "Ford (USA)" for c in _FORD_THIRD_CHARS},
    "1FV": "Freightliner (USA)",
    **{f"1G{c}": "General Motors (USA)" for c in _GM_THIRD_CHARS},
    "5VC": "Volvo (Sweden)",
    "5VF": "Volvo (Sweden)",
    "5V1": "Volvo (Sweden)",
    "5V2": "Volvo (Sweden)",
    "5V3": "Volvo (Sweden)",
    "5V4": "Volvo (Sweden)",
    "4V4": "Volvo Trucks (USA)",
    "1HG": "Honda (USA)",
    "2HG": "Honda (Canada)",
    "3HG": "Honda (Mexico)",
    "JHM": "Honda (Japan)",
    "1XK": "Kenworth (USA)",
    "2XK": "Kenworth (Canada)",
    "1XP": "Peterbilt (USA)",
    "2XP": "Peterbilt (Canada)",
    "1HT": "International (USA)",
    "3HS": "International (Mexico)",
    "1M1": "Mack (USA)",
    "1M2": "Mack (USA)",
    "5KJ": "Western Star (USA)",
    "5PV": "Hino (USA)",
    "JAL": "Isuzu (Japan)",
}

_ENGINE_CODES: dict[str, tuple[str, dict[str, str]]] = {
    "1FV": ("Freightliner", {
        "Y": "Cummins ISL 8.9L Diesel",
        "S": "Cummins ISL 8.9L Diesel",
        "T": "Cummins ISX 15L Diesel",
        "U": "Cummins X15 Diesel",
        "V": "Detroit Diesel DD13",
        "W": "Detroit Diesel DD15",
        "H": "Caterpillar C7",
        "J": "Caterpillar C13",
    }),
    "5VC": ("Volvo", {
        "F": "Volvo D13 Diesel",
        "G": "Volvo D16 Diesel",
        "H": "Volvo D11 Diesel",
        "J": "Cummins ISX (Volvo Application)",
        "K": "Volvo D13TC Diesel",
    }),
}


class EngineInfo(NamedTuple):
    code: str
    description: str
    confidence: int


def lookup_manufacturer(vin: str) -> Optional[str]:
    return WMI_MANUFACTURERS.get(vin[:3])


def decode_engine(vin: str) -> EngineInfo:
    """Decode the engine from position 8, where the maker's table is known."""
    if len(vin) != VIN_LENGTH:
        return EngineInfo("Unknown", "Invalid VIN length", 0)

    wmi = vin[:3]
    code = vin[7]
    if wmi in _ENGINE_CODES:
        maker, table = _ENGINE_CODES[wmi]
        if code in table:
            return EngineInfo(code, table[code], 90)
        return EngineInfo(code, f"{maker} Engine Code {code}", 60)

    return EngineInfo(code, f"Engine Code {code} ({wmi})", 50)


def decode_vin(vin: str) -> VinDecoding:
    """Everything derivable from a well-formed 17-character VIN."""
    engine = decode_engine(vin)
    check_ok = validate_vin_check_digit(vin)
    return VinDecoding(
        wmi=vin[:3],
        manufacturer=lookup_manufacturer(vin),
        engine_code=engine.code,
        engine_description=engine.description,
        engine_confidence=engine.confidence,
        check_digit_valid=check_ok,
        suggested_check_digit=None if check_ok else calculate_check_digit(vin),
    )


# ─── Mining VINs From Text ───────────────────────────────────────────


def find_vin_candidates(text: str) -> list[VinCandidate]:
    """Find VIN-shaped tokens in free OCR text, scored by how VIN-like they are.

    17 characters + valid check digit → 95
    17 characters, VIN alphabet       → 80
    15-19 alphanumeric characters     → 50
    """
    found: dict[str, int] = {}

    for token in _VIN_TOKEN.findall(text.upper()):
        if not re.search(r"\d", token) or not re.search(r"[A-Z]", token):
            continue  # Pure words / pure numbers are not VINs
        if VIN_FORMAT.match(token):
            score = 95 if validate_vin_check_digit(token) else 80
        else:
            score = 50
        found[token] = max(score, found.get(token, 0))

    return [VinCandidate(value=v, confidence=c) for v, c in found.items()]


def vin_from_filename(file_name: str) -> Optional[str]:
    """Mine a VIN-shaped substring (15-17 chars, VIN alphabet) from a file name."""
    match = _VIN_SHAPED.search(file_name.upper())
    return normalize_vin(match.group(0)) if match else None
