"""
Graduation Credential Validation Engine
=======================================

Reviews the documents attached to a graduation request and produces a
fixed-schema output record.

Architecture:
- Dictionary Repository: keyword vocabularies per document type, with fallbacks
- Match Engine: exact-then-fuzzy keyword cascade
- Field Extractor: TyT exam-result fields through ordered regex patterns
- Orchestrator: priority tiers, per-tier deadlines, record integrity

Usage:
    from app.services.validation import DocumentTypeOrchestrator

    record = await orchestrator.process(request_fields, descriptors)
    print(record["FotocopiaDocumento"])
"""

from .dictionary_repository import DictionaryRepository, DICTIONARY_FILES, FALLBACK_VOCABULARIES
from .errors import (
    CredentialValidationError,
    FetchError,
    FetchCode,
    ExtractionError,
    ExtractionKind,
    ValidationError,
    StructuralError,
    status_for_error,
)
from .field_extractor import FieldExtractor, FieldPattern
from .match_engine import MatchEngine, MatchSettings
from .models import (
    DocumentType,
    DictionarySet,
    DictionarySource,
    MatchResult,
    MatchStrategy,
    MatchMethod,
    ExtractedFields,
    DocumentDescriptor,
    DescriptorStatus,
    OutputRecord,
    PriorityTier,
    PRIORITY_TIERS,
    REQUIRED_FIELDS,
    NOT_ATTACHED,
    VALID_DOCUMENT,
    MANUAL_REVIEW,
    MANUAL_EXTRACTION,
    VALID,
    NOT_APPLICABLE,
    TIMEOUT_STATUS,
    STRUCTURE_ERROR_STATUS,
)
from .orchestrator import DocumentTypeOrchestrator, DocumentOutcome
from .url_extractor import extract_document_urls

__all__ = [
    # Components
    "DictionaryRepository",
    "MatchEngine",
    "MatchSettings",
    "FieldExtractor",
    "FieldPattern",
    "DocumentTypeOrchestrator",
    "DocumentOutcome",
    "extract_document_urls",
    "DICTIONARY_FILES",
    "FALLBACK_VOCABULARIES",
    # Errors
    "CredentialValidationError",
    "FetchError",
    "FetchCode",
    "ExtractionError",
    "ExtractionKind",
    "ValidationError",
    "StructuralError",
    "status_for_error",
    # Models
    "DocumentType",
    "DictionarySet",
    "DictionarySource",
    "MatchResult",
    "MatchStrategy",
    "MatchMethod",
    "ExtractedFields",
    "DocumentDescriptor",
    "DescriptorStatus",
    "OutputRecord",
    "PriorityTier",
    "PRIORITY_TIERS",
    "REQUIRED_FIELDS",
    # Status vocabulary
    "NOT_ATTACHED",
    "VALID_DOCUMENT",
    "MANUAL_REVIEW",
    "MANUAL_EXTRACTION",
    "VALID",
    "NOT_APPLICABLE",
    "TIMEOUT_STATUS",
    "STRUCTURE_ERROR_STATUS",
]
