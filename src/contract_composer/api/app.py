"""FastAPI application for the contract composer.

Exposes the candidate review queue, template matching and contract
composition of a `ContractEngine` over HTTP.

Usage (from project root, after installing the `server` extra):

    uvicorn contract_composer.api.app:app --reload

The engine is created lazily on the first request from
`CONTRACT_COMPOSER_DATABASE_URL` (or the POSTGRES_* variables) and
`CONTRACT_COMPOSER_CONFIG_DIR`.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse

from ..config.models import ConfigurationError
from ..errors import (
    ComposerError,
    ExternalCollaboratorError,
    InvalidStateError,
    MissingPartyFieldError,
    NotFoundError,
    TemplateValidationError,
    UnresolvedVariableError,
    ValidationError,
)
from ..models.candidate import CandidateQuery
from ..models.enums import ContractSource
from ..parsers.exceptions import DocumentReadError, UnsupportedFormatError
from ..pipeline import ContractEngine, PipelineConfig
from .schemas import (
    ApproveRequest,
    AutoPromoteRequest,
    CategoryRequest,
    ComposeRequest,
    ExtractRequest,
    IngestRequest,
    MatchRequest,
    RejectRequest,
)

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# Most specific classes first; the first match decides the status code.
ERROR_STATUS = (
    (TemplateValidationError, 422),
    (MissingPartyFieldError, 422),
    (UnresolvedVariableError, 422),
    (ValidationError, 400),
    (NotFoundError, 404),
    (InvalidStateError, 409),
    (ExternalCollaboratorError, 502),
)

router = APIRouter(prefix="/api")
_engine_lock = threading.Lock()


def _get_config_dir_from_env() -> Optional[str]:
    """Configuration directory from CONTRACT_COMPOSER_CONFIG_DIR, if set."""
    value = os.getenv("CONTRACT_COMPOSER_CONFIG_DIR")
    return value.strip() or None if value else None


def _save_upload_to_temp(upload: UploadFile, temp_dir: Path) -> Path:
    """Save an uploaded file to a temporary directory and return its path."""
    suffix = Path(upload.filename or "").suffix or ""
    temp_file = tempfile.NamedTemporaryFile(delete=False, suffix=suffix, dir=temp_dir)
    try:
        temp_file.write(upload.file.read())
    finally:
        temp_file.close()
    return Path(temp_file.name)


def get_engine(request: Request) -> ContractEngine:
    """The application's engine, created and initialized on first use."""
    if request.app.state.engine is None:
        with _engine_lock:
            if request.app.state.engine is None:
                engine = ContractEngine(PipelineConfig(config_dir=_get_config_dir_from_env()))
                engine.initialize()
                request.app.state.engine = engine
    return request.app.state.engine


def status_for(error: ComposerError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

async def _composer_error_handler(request: Request, exc: ComposerError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status, content=exc.to_dict())


async def _document_error_handler(request: Request, exc: DocumentReadError) -> JSONResponse:
    status = 415 if isinstance(exc, UnsupportedFormatError) else 400
    return JSONResponse(status_code=status, content=exc.to_dict())


async def _configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error(f"Configuration error: {exc.message}")
    content = {"error_type": "ConfigurationError", "message": exc.message}
    if exc.validation_result is not None:
        content["errors"] = exc.validation_result.errors
    return JSONResponse(status_code=500, content=content)


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error_type": exc.__class__.__name__, "message": str(exc)},
    )


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------

@router.post("/candidates")
def ingest_candidates(body: IngestRequest, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    """Batch ingest; one bad item never fails the batch."""
    outcome = engine.ingest_candidates(
        [c.model_dump(exclude_none=True) for c in body.candidates],
        user_id=body.user_id,
        auto_promote=body.auto_promote,
    )
    return JSONResponse(status_code=200, content=outcome.to_dict())


@router.post("/candidates/extract")
def extract_candidates(body: ExtractRequest, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    """Split raw contract text into candidates and ingest them."""
    if body.use_extractor:
        outcome = engine.extract_and_ingest(
            body.text, body.source_contract, body.contract_category, body.user_id
        )
    else:
        outcome = engine.ingest_text(
            body.text, body.source_contract, body.contract_category, body.user_id
        )
    return JSONResponse(status_code=200, content=outcome.to_dict())


@router.post("/candidates/upload")
def upload_contract(
    file: UploadFile = File(..., description="Contract file (.docx/.pdf/.txt)"),
    contract_category: Optional[str] = Form(None),
    user_id: Optional[str] = Form(None),
    engine: ContractEngine = Depends(get_engine),
) -> JSONResponse:
    """Read an uploaded contract and ingest its clauses as candidates."""
    temp_dir = Path(tempfile.gettempdir()) / "contract_composer_api"
    temp_dir.mkdir(parents=True, exist_ok=True)
    path = _save_upload_to_temp(file, temp_dir)
    try:
        outcome = engine.ingest_file(
            str(path), contract_category, user_id, source_contract=file.filename
        )
    finally:
        path.unlink(missing_ok=True)
    return JSONResponse(status_code=200, content=outcome.to_dict())


@router.get("/candidates")
def query_candidates(
    status: Optional[str] = "pending",
    category: Optional[str] = None,
    contract_category: Optional[str] = Query(None, alias="contractCategory"),
    min_confidence: Optional[float] = Query(None, alias="minConfidence"),
    search: Optional[str] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    order: str = "desc",
    page: int = 1,
    limit: int = 20,
    engine: ContractEngine = Depends(get_engine),
) -> JSONResponse:
    query = CandidateQuery(
        status=status,
        category=category,
        contract_category=contract_category,
        min_confidence=0.5 if min_confidence is None else min_confidence,
        search=search,
        sort_by=sort_by,
        order=order,
        page=page,
        limit=limit,
    )
    return JSONResponse(status_code=200, content=engine.query_candidates(query).to_dict())


@router.get("/candidates/stats")
def candidate_stats(engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    return JSONResponse(status_code=200, content=engine.candidate_stats())


@router.get("/candidates/{candidate_id}")
def get_candidate(candidate_id: str, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    return JSONResponse(status_code=200, content=engine.candidates.get(candidate_id).to_dict())


@router.post("/candidates/auto-promote")
def auto_promote(body: AutoPromoteRequest, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    report = engine.auto_promote(threshold=body.threshold, user_id=body.user_id)
    return JSONResponse(status_code=200, content=report.to_dict())


@router.post("/candidates/approve")
def approve_candidates(body: ApproveRequest, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    result = engine.approve(body.ids, body.overrides, user_id=body.user_id)
    return JSONResponse(status_code=200, content=result.to_dict())


@router.post("/candidates/reject")
def reject_candidates(body: RejectRequest, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    result = engine.reject(body.ids, body.reason, user_id=body.user_id)
    return JSONResponse(status_code=200, content=result.to_dict())


# ---------------------------------------------------------------------------
# Templates and categories
# ---------------------------------------------------------------------------

@router.get("/templates")
def list_templates(
    category: Optional[str] = None,
    contract_category: Optional[str] = Query(None, alias="contractCategory"),
    engine: ContractEngine = Depends(get_engine),
) -> JSONResponse:
    templates = engine.library.list(category=category, contract_category=contract_category)
    return JSONResponse(status_code=200, content={"items": [t.to_dict() for t in templates]})


@router.post("/templates/match")
def match_templates(body: MatchRequest, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    criteria, results = engine.match_templates(body.quote, top_n=body.top_n)
    return JSONResponse(
        status_code=200,
        content={"criteria": criteria.to_dict(), "matches": [r.to_dict() for r in results]},
    )


@router.get("/categories")
def list_categories(engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    return JSONResponse(status_code=200, content=engine.list_categories())


@router.post("/categories")
def add_category(body: CategoryRequest, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    snapshot = engine.add_category(
        body.kind, body.name, body.user_id, keywords=body.keywords, slot_key=body.slot_key
    )
    return JSONResponse(status_code=201, content=snapshot.to_dict())


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

@router.post("/contracts/compose")
def compose_contract(body: ComposeRequest, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    """Compose a contract from a quote, a candidate list or inline clauses."""
    sources = body.sources()
    if len(sources) != 1:
        raise ValidationError(
            "Exactly one of quote, candidate_ids or clauses is required",
            field_name="clauses",
            details={"given": sources},
        )

    if body.quote is not None:
        quote = {**body.quote, "title": body.title} if body.title else body.quote
        result = engine.generate_for_quote(
            quote,
            body.parties,
            jurisdiction=body.jurisdiction,
            reference_date=body.reference_date,
            generated_at=body.generated_at,
            user_id=body.user_id,
            persist=body.persist,
        )
        return JSONResponse(status_code=200, content=result.to_dict())

    if body.candidate_ids is not None:
        contract = engine.compose_from_candidates(
            body.candidate_ids,
            body.parties,
            project_data=body.project,
            jurisdiction=body.jurisdiction,
            reference_date=body.reference_date,
            generated_at=body.generated_at,
            user_id=body.user_id,
            persist=body.persist,
        )
    else:
        contract = engine.compose_contract(
            body.clauses,
            body.parties,
            project_data=body.project,
            jurisdiction=body.jurisdiction,
            source=ContractSource.UPLOAD,
            title=body.title,
            reference_date=body.reference_date,
            generated_at=body.generated_at,
            user_id=body.user_id,
            persist=body.persist,
        )
    return JSONResponse(status_code=200, content={"contract": contract.to_dict()})


@router.get("/contracts/{contract_id}")
def get_contract(
    contract_id: str,
    format: str = "json",
    show_warnings: bool = False,
    engine: ContractEngine = Depends(get_engine),
):
    """Stored contract as JSON, or as an HTML page with `format=html`."""
    if format == "html":
        return HTMLResponse(engine.render_contract(contract_id, show_warnings=show_warnings))
    if format != "json":
        raise ValidationError("format must be 'json' or 'html'", field_name="format")
    return JSONResponse(status_code=200, content=engine.get_contract(contract_id).to_dict())


@router.get("/contracts/{contract_id}/history")
def contract_history(contract_id: str, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    versions = engine.contract_history(contract_id)
    return JSONResponse(status_code=200, content={"versions": [c.to_dict() for c in versions]})


@router.get("/contracts/{contract_id}/download")
def download_contract(contract_id: str, engine: ContractEngine = Depends(get_engine)) -> FileResponse:
    """Export a stored contract to .docx and stream it."""
    target = Path(engine.export_contract(contract_id))
    return FileResponse(path=target, filename=target.name, media_type=DOCX_MEDIA_TYPE)


@router.post("/contracts/{contract_id}/review")
def review_contract(contract_id: str, engine: ContractEngine = Depends(get_engine)) -> JSONResponse:
    """Advisory risk review; degraded clauses are flagged, never fatal."""
    return JSONResponse(status_code=200, content=engine.review_contract(contract_id).to_dict())


def create_app(engine: Optional[ContractEngine] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        engine: Engine to serve. When omitted one is created from the
            environment on the first request.
    """
    application = FastAPI(title="Contract Composer API", version="0.1.0")
    application.state.engine = engine
    application.add_exception_handler(ComposerError, _composer_error_handler)
    application.add_exception_handler(DocumentReadError, _document_error_handler)
    application.add_exception_handler(ConfigurationError, _configuration_error_handler)
    application.add_exception_handler(Exception, _unexpected_error_handler)
    application.include_router(router)
    return application


app = create_app()
