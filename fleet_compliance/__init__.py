"""
Fleet Compliance Core: validation and reconciliation for OCR-extracted fleet documents.

Architecture: Field validation → Document assessment → VIN grouping → Category merge → Compliance
Philosophy:  Never fail on bad OCR. Score it, explain it, and keep the operator informed.
"""

__version__ = "1.0.0"
