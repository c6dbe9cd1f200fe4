"""
Validation Error Taxonomy
=========================

Failures that can happen while reviewing a document, and the single place
where they are turned into output status strings.

- FetchError: the upstream download failed (permissions, not found, auth...)
- ExtractionError: the text extractor could not read the file
- ValidationError: dictionary matching failed internally
- StructuralError: the output record lost required fields
"""

from enum import Enum
from typing import Dict, List, Optional

from .models import MANUAL_REVIEW, manual_review


class CredentialValidationError(Exception):
    """Base class for every error raised by the validation engine."""


class FetchCode(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    AUTH_ERROR = "AUTH_ERROR"
    DOWNLOAD_TIMEOUT = "DOWNLOAD_TIMEOUT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_URL = "INVALID_URL"
    DOWNLOAD_ERROR = "DOWNLOAD_ERROR"


class ExtractionKind(str, Enum):
    HTML_DETECTED = "HTML_DETECTED"
    NO_TEXT = "NO_TEXT"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    TOO_LARGE = "TOO_LARGE"
    TOO_SMALL = "TOO_SMALL"
    TIMEOUT = "TIMEOUT"
    THROTTLED = "THROTTLED"


# Upstream error prefixes that share a category
FETCH_CODE_ALIASES: Dict[str, FetchCode] = {
    "PERMISSION_DENIED": FetchCode.PERMISSION_DENIED,
    "FILE_NOT_FOUND": FetchCode.FILE_NOT_FOUND,
    "AUTH_ERROR": FetchCode.AUTH_ERROR,
    "AUTH_GENERAL_ERROR": FetchCode.AUTH_ERROR,
    "AUTH_SETUP_ERROR": FetchCode.AUTH_ERROR,
    "NO_ACCESS_TOKEN": FetchCode.AUTH_ERROR,
    "DOWNLOAD_TIMEOUT": FetchCode.DOWNLOAD_TIMEOUT,
    "RATE_LIMIT_EXCEEDED": FetchCode.RATE_LIMIT_EXCEEDED,
    "NETWORK_ERROR": FetchCode.NETWORK_ERROR,
    "INVALID_URL": FetchCode.INVALID_URL,
    "URL_VALIDATION_ERROR": FetchCode.INVALID_URL,
}

FETCH_REASONS: Dict[FetchCode, str] = {
    FetchCode.PERMISSION_DENIED: "Sin permisos de acceso",
    FetchCode.FILE_NOT_FOUND: "Archivo no encontrado",
    FetchCode.AUTH_ERROR: "Error de autenticacion",
    FetchCode.DOWNLOAD_TIMEOUT: "Tiempo de descarga agotado",
    FetchCode.RATE_LIMIT_EXCEEDED: "Limite de solicitudes excedido",
    FetchCode.NETWORK_ERROR: "Error de red",
    FetchCode.INVALID_URL: "URL invalida",
    FetchCode.DOWNLOAD_ERROR: "Error de descarga",
}

EXTRACTION_REASONS: Dict[ExtractionKind, str] = {
    ExtractionKind.HTML_DETECTED: "Archivo HTML detectado",
    ExtractionKind.NO_TEXT: "Sin texto extraible",
    ExtractionKind.UNSUPPORTED_TYPE: "Formato no soportado",
    ExtractionKind.TOO_LARGE: "Archivo demasiado grande",
    ExtractionKind.TOO_SMALL: "Archivo demasiado pequeno",
    ExtractionKind.TIMEOUT: "Tiempo de extraccion agotado",
    ExtractionKind.THROTTLED: "Servicio de extraccion saturado",
}


class FetchError(CredentialValidationError):
    """Upstream download failure reported on a document descriptor."""

    def __init__(self, code: FetchCode, detail: str = ""):
        self.code = code
        self.detail = detail
        super().__init__(f"{code.value}: {detail}" if detail else code.value)

    @property
    def reason(self) -> str:
        return FETCH_REASONS[self.code]

    @classmethod
    def from_detail(cls, detail: Optional[str]) -> "FetchError":
        """
        Categorize an upstream error string such as
        "PERMISSION_DENIED: Sin permisos para acceder al archivo".
        """
        detail = (detail or "").strip()
        prefix = detail.split(":", 1)[0].strip().upper()
        code = FETCH_CODE_ALIASES.get(prefix)
        if code is None:
            lowered = detail.lower()
            if "permission" in lowered or "403" in lowered:
                code = FetchCode.PERMISSION_DENIED
            elif "not found" in lowered or "404" in lowered:
                code = FetchCode.FILE_NOT_FOUND
            elif "timeout" in lowered:
                code = FetchCode.DOWNLOAD_TIMEOUT
            elif "quota" in lowered or "rate limit" in lowered or "429" in lowered:
                code = FetchCode.RATE_LIMIT_EXCEEDED
            else:
                code = FetchCode.DOWNLOAD_ERROR
        return cls(code, detail)


class ExtractionError(CredentialValidationError):
    """Text extraction failure with a categorized kind."""

    def __init__(self, kind: ExtractionKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)

    @property
    def reason(self) -> str:
        return EXTRACTION_REASONS[self.kind]


class ValidationError(CredentialValidationError):
    """Dictionary matching could not complete."""


class StructuralError(CredentialValidationError):
    """The output record is missing required fields."""

    def __init__(self, missing_fields: List[str]):
        self.missing_fields = missing_fields
        super().__init__(f"Output record missing fields: {', '.join(missing_fields)}")


def status_for_error(error: BaseException) -> str:
    """Convert a per-document failure into an output status string."""
    if isinstance(error, (FetchError, ExtractionError)):
        return manual_review(error.reason)
    return MANUAL_REVIEW
