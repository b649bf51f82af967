"""
Exception hierarchy for the fleet compliance core.

Data-quality problems are never raised; they become low confidence scores,
warnings and compliance states. Exceptions are reserved for callers that
break the contract (e.g. passing None instead of a document list) and for
an extraction provider that returns unusable content.
"""

from __future__ import annotations


class FleetComplianceError(Exception):
    """Base exception for all fleet compliance failures."""

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ContractViolationError(FleetComplianceError):
    """The caller passed input the core cannot interpret at all."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("CONTRACT_VIOLATION", message, details)


class ExtractionError(FleetComplianceError):
    """The extraction provider returned content that is not a usable field map."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("EXTRACTION_FAILED", message, details)
