"""
Graduation Credential Validation - API Router
=============================================
REST endpoints for reviewing the documents of a graduation request.

Downloading and OCR happen upstream; requests carry the applicant fields
and the descriptors of files already on local disk.
"""

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
import logging

from app.core.config import Settings, get_settings
from app.core.utc import elapsed_ms, utc_now
from app.services.text_extraction import LocalTextExtractionService
from app.services.validation import (
    DictionaryRepository,
    DocumentDescriptor,
    DocumentType,
    DocumentTypeOrchestrator,
    FieldExtractor,
    MatchEngine,
    MatchSettings,
    REQUIRED_FIELDS,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/graduation", tags=["Graduation Validation"])


# =============================================================================
# Request/Response Models
# =============================================================================

class DocumentDescriptorModel(BaseModel):
    """A file produced by the upstream download step."""
    originalUrl: str = Field(..., description="URL submitted in the request")
    path: Optional[str] = Field(None, description="Local path of the downloaded file")
    status: str = Field("success", description="success or error")
    error: Optional[str] = Field(None, description="Upstream error, e.g. 'PERMISSION_DENIED: ...'")


class ValidateRequest(BaseModel):
    """Request to review every document of a graduation request."""
    request_fields: Dict[str, Any] = Field(..., description="Flat applicant data, including document URLs")
    documents: List[DocumentDescriptorModel] = Field(default_factory=list, description="Downloaded files")


class MatchRequest(BaseModel):
    """Request to match a text against one document type's dictionary."""
    text: str = Field(..., min_length=1, description="OCR text")
    document_type: str = Field(..., description="Document type, e.g. 'cedula'")
    min_matches: int = Field(1, ge=1, description="Keywords required for a valid verdict")


class ExtractRequest(BaseModel):
    """Request to extract TyT fields from exam-result text."""
    text: str = Field(..., min_length=1, description="OCR text of a Saber TyT result")


class MatchResponse(BaseModel):
    document_type: str
    is_valid: bool
    match_count: int
    matched_keywords: List[str]
    strategy: str
    required_matches: int
    dictionary_source: str


class ExtractResponse(BaseModel):
    identity_number: str
    registration_code: str
    institution: str
    program: str
    presentation_date: str
    matched_patterns: Dict[str, str] = {}


# =============================================================================
# Module State
# =============================================================================

_repository: Optional[DictionaryRepository] = None
_field_extractor: Optional[FieldExtractor] = None
_orchestrator: Optional[DocumentTypeOrchestrator] = None


def get_repository(settings: Settings = Depends(get_settings)) -> DictionaryRepository:
    """Get or create the dictionary repository singleton."""
    global _repository
    if _repository is None:
        _repository = DictionaryRepository(
            settings.dictionaries_dir,
            min_entries=settings.min_dictionary_entries,
        )
    return _repository


def get_match_engine(settings: Settings = Depends(get_settings)) -> MatchEngine:
    return MatchEngine(MatchSettings.from_settings(settings))


def get_field_extractor(
    repository: DictionaryRepository = Depends(get_repository),
) -> FieldExtractor:
    """Get or create the TyT extractor, compiled once with the catalogs."""
    global _field_extractor
    if _field_extractor is None:
        _field_extractor = FieldExtractor(
            program_catalog=repository.get_catalog(DocumentType.PROGRAM_CATALOG),
            institution_catalog=repository.get_catalog(DocumentType.CUN_INSTITUTIONS),
        )
    return _field_extractor


def get_orchestrator(
    settings: Settings = Depends(get_settings),
    repository: DictionaryRepository = Depends(get_repository),
    match_engine: MatchEngine = Depends(get_match_engine),
    field_extractor: FieldExtractor = Depends(get_field_extractor),
) -> DocumentTypeOrchestrator:
    """Get or create the orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = DocumentTypeOrchestrator(
            repository=repository,
            match_engine=match_engine,
            field_extractor=field_extractor,
            text_service=LocalTextExtractionService(
                max_bytes=settings.max_document_size_bytes,
                timeout_seconds=settings.extraction_timeout_seconds,
                max_concurrent=settings.max_concurrent_extractions,
            ),
            tier_timeout=settings.tier_timeout_seconds,
            accepted_hosts=settings.accepted_url_hosts_list,
        )
    return _orchestrator


def reset_state() -> None:
    """Forget the singletons (settings changed, tests)."""
    global _repository, _field_extractor, _orchestrator
    _repository = None
    _field_extractor = None
    _orchestrator = None


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/validate")
async def validate_request(
    request: ValidateRequest,
    orchestrator: DocumentTypeOrchestrator = Depends(get_orchestrator),
) -> Dict[str, str]:
    """
    Review every document attached to a graduation request.

    Always answers with the complete record. Documents that could not be
    reviewed carry a status explaining why, e.g.
    "Sin permisos de acceso - Revision Manual".
    """
    start_time = utc_now()
    descriptors = [
        DocumentDescriptor.from_dict(document.model_dump())
        for document in request.documents
    ]
    record = await orchestrator.process(request.request_fields, descriptors)

    logger.info(
        f"Graduation request {request.request_fields.get('ID', 'unknown')} reviewed "
        f"in {elapsed_ms(start_time):.0f}ms"
    )
    return record.to_dict()


@router.post("/match", response_model=MatchResponse)
async def match_text(
    request: MatchRequest,
    repository: DictionaryRepository = Depends(get_repository),
    match_engine: MatchEngine = Depends(get_match_engine),
):
    """Match a text against one document type's dictionary."""
    document_type = DocumentType.parse(request.document_type)
    if document_type is None:
        raise HTTPException(status_code=400, detail=f"Unknown document type: {request.document_type}")

    dictionary = repository.get_set(document_type)
    result = match_engine.match(request.text, dictionary.keywords, request.min_matches)

    return MatchResponse(
        document_type=document_type.value,
        is_valid=result.is_valid,
        match_count=result.match_count,
        matched_keywords=result.matched_keywords,
        strategy=result.strategy.value,
        required_matches=result.required_matches,
        dictionary_source=dictionary.source.value,
    )


@router.post("/extract/tyt", response_model=ExtractResponse)
async def extract_tyt(
    request: ExtractRequest,
    field_extractor: FieldExtractor = Depends(get_field_extractor),
):
    """Extract identity number, EK code, institution, program and exam date."""
    return ExtractResponse(**field_extractor.extract(request.text).to_dict())


@router.get("/dictionaries/stats")
async def dictionary_stats(repository: DictionaryRepository = Depends(get_repository)):
    """Load health of every dictionary."""
    return repository.stats()


@router.delete("/dictionaries/cache")
async def clear_dictionary_cache(repository: DictionaryRepository = Depends(get_repository)):
    """Drop cached dictionaries so edited files are read again."""
    return {"cleared": repository.clear_cache()}


@router.get("/schema")
async def output_schema():
    """Field names of the output record."""
    return {"fields": list(REQUIRED_FIELDS), "count": len(REQUIRED_FIELDS)}
