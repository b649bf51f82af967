"""
Fleet Compliance — FastAPI Server
=================================

HTTP surface over the validation, ingestion and reconciliation core.

Endpoints:
    POST /documents/validate      Score an already-extracted field map
    POST /documents/ingest        Extract + validate raw OCR text
    POST /documents/ingest/file   Same, from an uploaded text file
    POST /vehicles/reconcile      Documents → consolidated vehicles + fleet summary
    GET  /health                  Health check / readiness probe

Run:
    uvicorn api:app --reload              # Dev (http://localhost:8000)
    uvicorn api:app --host 0.0.0.0        # Production

Docs:
    http://localhost:8000/docs             # Swagger UI (auto-generated)
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from fleet_compliance import __version__
from fleet_compliance.assessment import validate_document
from fleet_compliance.config import load_settings
from fleet_compliance.exceptions import ContractViolationError
from fleet_compliance.fleet_summary import build_vehicle_summary, summarize_fleet
from fleet_compliance.models import (
    ConsolidatedVehicle,
    DocumentValidationResult,
    ExtractedDocument,
    FleetSummary,
    IngestionReport,
    VehicleSummary,
    VinCandidate,
)
from fleet_compliance.pipeline import DocumentIngestionPipeline
from fleet_compliance.reconciler import reconcile_documents

MAX_UPLOAD_BYTES = 1_048_576


# ─── Application Lifespan (pre-warm pipeline) ───────────────────────

_pipeline: DocumentIngestionPipeline | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings and build the pipeline once on startup."""
    global _pipeline  # noqa: PLW0603
    _pipeline = DocumentIngestionPipeline(settings=load_settings())
    yield
    _pipeline = None


# ─── FastAPI App ─────────────────────────────────────────────────────

app = FastAPI(
    title="Fleet Compliance API",
    description=(
        "Confidence-scored validation of OCR-extracted fleet documents and "
        "reconciliation of many documents into one compliance record per vehicle."
    ),
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(ContractViolationError)
async def _contract_violation(request: Request, exc: ContractViolationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"code": exc.code, "detail": str(exc), "details": exc.details},
    )


# ─── Request / Response Schemas ─────────────────────────────────────


class ValidateDocumentRequest(BaseModel):
    """Request body for /documents/validate."""

    document_type: str = Field(..., description="registration, insurance, cdl_license, ...")
    extracted_data: dict[str, Any] = Field(..., description="Field map produced by extraction")
    vin_candidates: list[VinCandidate] = Field(default_factory=list)
    today: Optional[date] = Field(default=None, description="Override the reference date")

    model_config = {"json_schema_extra": {"example": {
        "document_type": "registration",
        "extracted_data": {
            "vin": "1HGCM82633A004352",
            "licensePlate": "ABC1234",
            "expirationDate": "2027-03-31",
            "state": "TX",
        },
        "vin_candidates": [],
    }}}


class IngestRequest(BaseModel):
    """Request body for /documents/ingest."""

    raw_ocr_text: str = Field(..., min_length=10, description="Raw OCR text of one document")
    file_name: str = Field(..., min_length=1)
    timestamp: Optional[datetime] = None

    model_config = {"json_schema_extra": {"example": {
        "raw_ocr_text": (
            "STATE OF TEXAS VEHICLE REGISTRATION\n"
            "VIN: 1FVACWDTX9HAJ7221\n"
            "License Plate: TX 4471-KL | State: TX\n"
            "Make: Freightliner | Model: Cascadia\n"
            "Expiration Date: 03/31/2027"
        ),
        "file_name": "truck_07_registration.pdf",
    }}}


class ReconcileRequest(BaseModel):
    """Request body for /vehicles/reconcile."""

    documents: list[ExtractedDocument]
    now: Optional[datetime] = Field(default=None, description="Override the compliance clock")


class ReconcileResponse(BaseModel):
    vehicles: list[ConsolidatedVehicle]
    summaries: list[VehicleSummary]
    fleet: FleetSummary


class HealthResponse(BaseModel):
    status: str
    version: str
    llm_enabled: bool


# ─── Helpers ─────────────────────────────────────────────────────────


def _get_pipeline() -> DocumentIngestionPipeline:
    if _pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialised")
    return _pipeline


# ─── Endpoints ───────────────────────────────────────────────────────


@app.post(
    "/documents/validate",
    summary="Validate an extracted field map",
    tags=["Documents"],
    responses={503: {"description": "Pipeline not yet initialised"}},
)
def validate_extracted(request: ValidateDocumentRequest) -> DocumentValidationResult:
    """Score every field and return a recommendation.

    - **auto_approve**: nothing critical missing, confidence >= 80, no questionable fields
    - **review_recommended**: at most one critical field missing, confidence >= 60
    - **manual_review_required**: everything else
    """
    pipeline = _get_pipeline()
    return validate_document(
        request.extracted_data,
        request.document_type,
        vin_candidates=request.vin_candidates,
        today=request.today,
        ocr_rules=pipeline.ocr_rules,
    )


@app.post(
    "/documents/ingest",
    summary="Extract and validate a document from raw OCR text",
    tags=["Documents"],
    responses={503: {"description": "Pipeline not yet initialised"}},
)
def ingest_document(request: IngestRequest) -> IngestionReport:
    """Run dual extraction (regex + optional LLM) and validation on OCR text.

    The returned `document` is ready to be stored and later passed to
    `/vehicles/reconcile`.
    """
    pipeline = _get_pipeline()
    return pipeline.run(request.raw_ocr_text, request.file_name, timestamp=request.timestamp)


@app.post(
    "/documents/ingest/file",
    summary="Extract and validate a document from an uploaded text file",
    tags=["Documents"],
    responses={
        413: {"description": "File too large (max 1 MB)"},
        400: {"description": "File is not valid UTF-8 text"},
        422: {"description": "File content too short to be a document"},
        503: {"description": "Pipeline not yet initialised"},
    },
)
async def ingest_document_file(file: UploadFile) -> IngestionReport:
    """Upload a `.txt` file holding the OCR text of one fleet document."""
    if file.size and file.size > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large (max 1 MB)")

    content = await file.read()
    try:
        raw_text = content.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be UTF-8 encoded text")

    if len(raw_text.strip()) < 10:
        raise HTTPException(status_code=422, detail="File content too short to be a document")

    pipeline = _get_pipeline()
    return await asyncio.to_thread(pipeline.run, raw_text, file.filename or "upload.txt")


@app.post(
    "/vehicles/reconcile",
    summary="Reconcile documents into per-vehicle compliance records",
    tags=["Vehicles"],
    responses={503: {"description": "Pipeline not yet initialised"}},
)
def reconcile(request: ReconcileRequest) -> ReconcileResponse:
    """Group documents by VIN, merge each category, and derive compliance.

    Recomputes everything from the submitted set; send the full document
    history for a fleet, not a delta.
    """
    settings = _get_pipeline().settings
    now = request.now or datetime.now(timezone.utc)
    vehicles = reconcile_documents(request.documents, now=now)
    days = settings.expiring_soon_days
    return ReconcileResponse(
        vehicles=vehicles,
        summaries=[build_vehicle_summary(v, now, days) for v in vehicles],
        fleet=summarize_fleet(vehicles, now, days),
    )


@app.get(
    "/health",
    summary="Health check",
    tags=["System"],
    responses={503: {"description": "Pipeline not yet initialised"}},
)
def health_check() -> HealthResponse:
    """Returns service status and configuration info."""
    pipeline = _get_pipeline()
    return HealthResponse(
        status="healthy",
        version=__version__,
        llm_enabled=pipeline.settings.llm_enabled,
    )
