"""
LLM-based extraction from OCR text using OpenAI structured output.

The LLM acts as a "smart OCR post-processor": it copes with messy layouts
better than regex, but nothing it returns is trusted blindly. Every field
still goes through the field validators, and the pipeline flags any value
the regex baseline read differently.

Design:
  - JSON mode enforced (structured output, not free text)
  - Timeout and retry ceilings come from Settings
  - Graceful fallback: no API key or a failed call → None → regex only
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from .config import Settings, load_settings
from .exceptions import ExtractionError
from .models import RawExtraction, VinCandidate

logger = logging.getLogger(__name__)


# ─── System Prompt ───────────────────────────────────────────────────

SYSTEM_PROMPT = """\
You are a data extractor for commercial fleet compliance documents
(vehicle registrations, insurance cards, CDL licenses, DOT medical
certificates, inspection reports and permits).
Parse the given OCR-scanned text into a structured JSON object.

CRITICAL RULES:
1. Extract EXACTLY what is written. Do NOT correct OCR errors in VINs or numbers.
2. Do not infer or hallucinate values for missing fields; omit them.
3. Copy dates as they appear; do not reformat them.

Return a JSON object with these exact keys:
{
    "document_type": "registration | insurance | cdl_license | medical_certificate | inspection | permit | unknown",
    "fields": {
        "vin": "...", "licensePlate": "...", "state": "...", "make": "...",
        "model": "...", "year": "...", "expirationDate": "...",
        "policyNumber": "...", "insuranceCompany": "...", "effectiveDate": "...",
        "coverageAmount": "...", "licenseNumber": "...", "licenseClass": "...",
        "driverName": "...", "issueDate": "...", "inspectionDate": "...",
        "result": "...", "permitNumber": "..."
    },
    "vin_candidates": [{"value": "...", "confidence": 0-100}]
}

Include only the fields that are present in the text.
"""


def build_client(settings: Settings) -> OpenAI:
    return OpenAI(
        api_key=settings.openai_api_key,
        timeout=settings.llm_timeout_seconds,
        max_retries=settings.llm_max_retries,
    )


def extract_with_llm(raw_text: str, settings: Optional[Settings] = None) -> RawExtraction | None:
    """Extract fleet document fields using an LLM.

    Returns:
        RawExtraction if the LLM succeeds, None if unavailable or it fails.
        Failure is NOT an error: the pipeline falls back to regex-only.
    """
    settings = settings or load_settings()
    if not settings.llm_enabled:
        logger.info("No OPENAI_API_KEY set, skipping LLM extraction (regex-only mode)")
        return None

    try:
        client = build_client(settings)
        response = client.chat.completions.create(
            model=settings.llm_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        "Extract structured data from this OCR-scanned fleet document:\n\n"
                        f"{raw_text}"
                    ),
                },
            ],
            response_format={"type": "json_object"},
        )
        extraction = parse_llm_response(response.choices[0].message.content)
    except OpenAIError as e:
        logger.error("LLM extraction failed: %s", e)
        return None
    except ExtractionError as e:
        logger.error("LLM returned unusable content: %s %s", e, e.details)
        return None

    logger.info("LLM extraction succeeded (%d fields)", len(extraction.fields))
    return extraction


def parse_llm_response(content: Optional[str]) -> RawExtraction:
    """Turn the model's JSON text into a RawExtraction.

    Raises:
        ExtractionError: the content is empty, not JSON, or not an object.
    """
    if not content:
        raise ExtractionError("LLM returned empty content")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ExtractionError("LLM response is not valid JSON", {"error": str(e)}) from e
    if not isinstance(data, dict):
        raise ExtractionError("LLM response is not a JSON object", {"type": type(data).__name__})

    raw_fields = data.get("fields")
    fields = raw_fields if isinstance(raw_fields, dict) else {}

    return RawExtraction(
        document_type=data.get("document_type"),
        fields={k: str(v).strip() for k, v in fields.items() if _has_text(v)},
        vin_candidates=[c for c in map(_safe_candidate, data.get("vin_candidates") or []) if c],
    )


# ─── Safe Type Converters ────────────────────────────────────────────


def _has_text(value: Any) -> bool:
    return value is not None and not isinstance(value, (dict, list)) and str(value).strip() != ""


def _safe_candidate(item: Any) -> VinCandidate | None:
    """Accept {"value", "confidence"} objects or bare strings. None on junk."""
    if isinstance(item, str):
        return VinCandidate(value=item, confidence=50) if item.strip() else None
    if not isinstance(item, dict) or not _has_text(item.get("value")):
        return None
    try:
        confidence = int(float(item.get("confidence", 50)))
    except (TypeError, ValueError):
        confidence = 50
    return VinCandidate(value=str(item["value"]).strip(), confidence=max(0, min(100, confidence)))
