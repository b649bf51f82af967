"""
VIN arithmetic tests: check digit, OCR correction, decoding, mining.

Pure functions only. No clock, no network.
"""

from __future__ import annotations

import pytest

from fleet_compliance.vin import (
    AGGRESSIVE_OCR_RULES,
    CHECK_DIGIT_INDEX,
    DEFAULT_OCR_RULES,
    TRANSLITERATION,
    OcrCorrectionRules,
    calculate_check_digit,
    correct_vin_ocr_errors,
    decode_engine,
    decode_vin,
    find_vin_candidates,
    is_grouping_length,
    normalize_vin,
    validate_vin_check_digit,
    vin_from_filename,
)

VALID_VINS = [
    "1HGCM82633A004352",
    "1FVACWDTX9HAJ7221",
    "5VCACSVF2LH123456",
    "1FVHG3DV8DHFA1234",
    "4V4NC9EH9FN123456",
    "1M8GDM9AXKP042788",
    "11111111111111111",
]


# ═══════════════════════════════════════════════════════════════════
#  Check Digit
# ═══════════════════════════════════════════════════════════════════


class TestCheckDigit:
    @pytest.mark.parametrize("vin", VALID_VINS)
    def test_known_valid_vins(self, vin):
        assert validate_vin_check_digit(vin) is True

    def test_wrong_check_digit_detected(self):
        assert validate_vin_check_digit("1HGCM82633A004351") is False

    def test_suggested_digit_for_invalid_vin(self):
        assert calculate_check_digit("1HGCM82633A004351") == "1"

    def test_remainder_ten_is_x(self):
        assert calculate_check_digit("1M8GDM9AXKP042788") == "X"

    def test_wrong_length_has_no_check_digit(self):
        assert calculate_check_digit("1HGCM82633A00435") is None
        assert validate_vin_check_digit("1HGCM82633A00435") is False

    @pytest.mark.parametrize("vin", VALID_VINS)
    def test_any_single_substitution_breaks_check_digit(self, vin):
        """Every weight is non-zero mod 11, so changing one transliterated value always shows."""
        for index, char in enumerate(vin):
            if index == CHECK_DIGIT_INDEX:
                continue
            replacement = "1" if TRANSLITERATION[char] != 1 else "2"
            mutated = vin[:index] + replacement + vin[index + 1:]
            assert validate_vin_check_digit(mutated) is False, f"position {index + 1}"


# ═══════════════════════════════════════════════════════════════════
#  Cleaning
# ═══════════════════════════════════════════════════════════════════


class TestNormalization:
    def test_strips_separators_and_uppercases(self):
        assert normalize_vin(" 1hgcm-82633a004352 ") == "1HGCM82633A004352"

    def test_truncates_to_seventeen(self):
        assert normalize_vin("1HGCM82633A004352XYZ") == "1HGCM82633A004352"

    def test_none_is_empty(self):
        assert normalize_vin(None) == ""

    @pytest.mark.parametrize("length, expected", [(14, False), (15, True), (17, True), (18, False)])
    def test_grouping_length(self, length, expected):
        assert is_grouping_length("A" * length) is expected


# ═══════════════════════════════════════════════════════════════════
#  OCR Correction
# ═══════════════════════════════════════════════════════════════════


class TestOcrCorrection:
    def test_illegal_letters_always_replaced(self):
        assert correct_vin_ocr_errors("1HGCM82633A00435I") == "1HGCM82633A004351"

    def test_valid_vin_untouched_by_default(self):
        for vin in VALID_VINS:
            assert correct_vin_ocr_errors(vin) == vin

    def test_numeric_tail_substitution(self):
        # S/B only rewritten inside the last four characters
        assert correct_vin_ocr_errors("5VCACSVF2LH12S4B") == "5VCACSVF2LH12548"

    def test_contextual_swap_kept_when_it_fixes_check_digit(self):
        assert correct_vin_ocr_errors("1HGGM82633A004352") == "1HGCM82633A004352"

    def test_contextual_swap_skipped_when_nothing_fixes(self):
        assert correct_vin_ocr_errors("1HGCM82633A004351") == "1HGCM82633A004351"

    def test_aggressive_rules_rewrite_everywhere(self):
        # Blanket S -> 5 damages a perfectly valid Volvo VIN
        corrected = correct_vin_ocr_errors("5VCACSVF2LH123456", AGGRESSIVE_OCR_RULES)
        assert corrected == "5VCAC5VF2LH123456"
        assert corrected != correct_vin_ocr_errors("5VCACSVF2LH123456", DEFAULT_OCR_RULES)

    def test_custom_rules(self):
        rules = OcrCorrectionRules(always={"I": "1"}, numeric_context={}, contextual_swaps=())
        assert correct_vin_ocr_errors("1HGCM82633A0O4352", rules) == "1HGCM82633A0O4352"

    def test_wrong_length_still_substituted(self):
        assert correct_vin_ocr_errors("1FV0ZZZZZZZZZZZZ") == "1FV0ZZZZZZZZ2222"


# ═══════════════════════════════════════════════════════════════════
#  Decoding
# ═══════════════════════════════════════════════════════════════════


class TestDecoding:
    def test_freightliner_engine(self):
        engine = decode_engine("1FVACWDTX9HAJ7221")
        assert engine.description == "Cummins ISX 15L Diesel"
        assert engine.confidence == 90

    def test_volvo_engine(self):
        assert decode_engine("5VCACSVF2LH123456").description == "Volvo D13 Diesel"

    def test_other_maker_generic_engine(self):
        engine = decode_engine("1HGCM82633A004352")
        assert engine.code == "6"
        assert engine.confidence == 50

    def test_invalid_length_engine(self):
        assert decode_engine("1FVACWDTX9HAJ72").confidence == 0

    def test_decode_valid_vin(self):
        decoded = decode_vin("1FVACWDTX9HAJ7221")
        assert decoded.wmi == "1FV"
        assert decoded.manufacturer == "Freightliner (USA)"
        assert decoded.check_digit_valid is True
        assert decoded.suggested_check_digit is None

    def test_decode_reports_suggested_digit(self):
        decoded = decode_vin("1HGCM82633A004351")
        assert decoded.manufacturer == "Honda (USA)"
        assert decoded.check_digit_valid is False
        assert decoded.suggested_check_digit == "1"

    def test_unknown_wmi(self):
        assert decode_vin("11111111111111111").manufacturer is None


# ═══════════════════════════════════════════════════════════════════
#  Mining
# ═══════════════════════════════════════════════════════════════════


class TestMining:
    def test_valid_vin_in_text(self):
        candidates = find_vin_candidates("VIN: 1HGCM82633A004352  Plate: ABC1234")
        assert [(c.value, c.confidence) for c in candidates] == [("1HGCM82633A004352", 95)]

    def test_bad_check_digit_scores_lower(self):
        candidates = find_vin_candidates("vin 1hgcm82633a004351")
        assert candidates[0].confidence == 80

    def test_short_token_scores_lowest(self):
        candidates = find_vin_candidates("VIN 1HGCM82633A00435 on file")
        assert candidates[0].confidence == 50

    def test_pure_numbers_ignored(self):
        assert find_vin_candidates("Account 12345678901234567") == []

    def test_duplicates_collapsed(self):
        text = "1HGCM82633A004352 ... again 1HGCM82633A004352"
        assert len(find_vin_candidates(text)) == 1

    def test_vin_from_filename(self):
        assert vin_from_filename("truck_1HGCM82633A004352.pdf") == "1HGCM82633A004352"

    def test_no_vin_in_filename(self):
        assert vin_from_filename("scan_0042.pdf") is None
