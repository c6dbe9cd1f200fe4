"""
Credential Validation Data Models
=================================

Data structures shared by the validation engine:
- Document types and their output fields
- Dictionary sets and match results
- TyT extracted fields
- The fixed-schema output record
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple


# ============================================================================
# STATUS VOCABULARY
# ============================================================================

NOT_ATTACHED = "Document not attached"
VALID_DOCUMENT = "Documento Valido"
MANUAL_REVIEW = "Revision Manual"
MANUAL_EXTRACTION = "Extraccion Manual"
VALID = "Valido"
NOT_APPLICABLE = "N/A"

TIMEOUT_REASON = "Tiempo de procesamiento agotado"
STRUCTURE_ERROR_REASON = "Error de Estructura"


def manual_review(reason: str) -> str:
    """Status for a document that failed for a known reason."""
    return f"{reason} - {MANUAL_REVIEW}"


TIMEOUT_STATUS = manual_review(TIMEOUT_REASON)
STRUCTURE_ERROR_STATUS = manual_review(STRUCTURE_ERROR_REASON)


# ============================================================================
# ENUMERATIONS
# ============================================================================

class DocumentType(str, Enum):
    """Logical document types attached to a graduation request"""
    CEDULA = "cedula"
    DIPLOMA_BACHILLER = "diploma_bachiller"
    DIPLOMA_TECNICO = "diploma_tecnico"
    DIPLOMA_TECNOLOGO = "diploma_tecnologo"
    TITULO_PROFESIONAL = "titulo_profesional"
    PRUEBA_TT = "prueba_tt"
    ICFES = "icfes"
    RECIBO_PAGO = "recibo_pago"
    ENCUESTA_M0 = "encuesta_m0"
    ACTA_HOMOLOGACION = "acta_homologacion"

    # Dictionary-only vocabularies
    CUN_INSTITUTIONS = "cun_institutions"
    PROGRAM_CATALOG = "program_catalog"

    @classmethod
    def parse(cls, value: Any) -> Optional["DocumentType"]:
        """Lenient lookup by value, None when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class DictionarySource(str, Enum):
    """Where a dictionary's keywords came from"""
    FILE = "file"
    FALLBACK = "fallback"
    MERGED = "merged"


class MatchStrategy(str, Enum):
    """Which part of the matching cascade produced the verdict"""
    EXACT = "exact"
    EXACT_FUZZY = "exact+fuzzy"
    NONE = "none"
    FALLBACK = "fallback"


class MatchMethod(str, Enum):
    """How a single keyword was matched"""
    EXACT = "exact"
    ACCENTS = "fuzzy-accents"
    SIMILAR = "fuzzy-similar"
    PARTS = "fuzzy-parts"
    SUBSTRING = "fuzzy-substring"
    NAIVE = "naive"

    @property
    def is_fuzzy(self) -> bool:
        return self.value.startswith("fuzzy")


class DescriptorStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


# ============================================================================
# DICTIONARIES AND MATCHING
# ============================================================================

@dataclass
class DictionarySet:
    """Keyword vocabulary for one document type"""
    document_type: str
    keywords: List[str]
    source: DictionarySource
    file_name: Optional[str] = None

    def __len__(self) -> int:
        return len(self.keywords)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_type": self.document_type,
            "keywords": len(self.keywords),
            "source": self.source.value,
            "file_name": self.file_name,
        }


@dataclass
class KeywordMatch:
    """Evidence for a single matched keyword"""
    keyword: str
    method: MatchMethod
    found: Optional[str] = None  # Text token that matched, for similarity matches
    similarity: Optional[float] = None


@dataclass
class MatchResult:
    """Outcome of matching a text against a dictionary"""
    is_valid: bool
    match_count: int
    matched_keywords: List[str] = field(default_factory=list)
    strategy: MatchStrategy = MatchStrategy.NONE
    required_matches: int = 1
    details: List[KeywordMatch] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "match_count": self.match_count,
            "matched_keywords": self.matched_keywords,
            "strategy": self.strategy.value,
            "required_matches": self.required_matches,
            "details": [
                {
                    "keyword": d.keyword,
                    "method": d.method.value,
                    "found": d.found,
                    "similarity": d.similarity,
                }
                for d in self.details
            ],
        }


# ============================================================================
# TYT EXTRACTION
# ============================================================================

@dataclass
class ExtractedFields:
    """Structured data read from a TyT exam result"""
    identity_number: str = MANUAL_EXTRACTION
    registration_code: str = MANUAL_EXTRACTION
    institution: str = MANUAL_EXTRACTION
    program: str = MANUAL_EXTRACTION
    presentation_date: str = MANUAL_EXTRACTION
    matched_patterns: Dict[str, str] = field(default_factory=dict)

    def is_extracted(self, name: str) -> bool:
        return getattr(self, name) != MANUAL_EXTRACTION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity_number": self.identity_number,
            "registration_code": self.registration_code,
            "institution": self.institution,
            "program": self.program,
            "presentation_date": self.presentation_date,
            "matched_patterns": dict(self.matched_patterns),
        }


# ============================================================================
# INPUT DESCRIPTORS
# ============================================================================

@dataclass
class DocumentDescriptor:
    """A file produced by the upstream fetch step"""
    original_url: str
    local_path: Optional[str] = None
    status: DescriptorStatus = DescriptorStatus.SUCCESS
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == DescriptorStatus.ERROR or not self.local_path

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentDescriptor":
        """Accepts both the upstream camelCase keys and snake_case keys."""
        status = str(data.get("status") or DescriptorStatus.SUCCESS.value).lower()
        return cls(
            original_url=data.get("originalUrl") or data.get("original_url") or "",
            local_path=data.get("path") or data.get("localPath") or data.get("local_path"),
            status=DescriptorStatus.ERROR if status == "error" else DescriptorStatus.SUCCESS,
            error=data.get("error") or data.get("errorDetail") or data.get("error_detail"),
        )


# ============================================================================
# OUTPUT SCHEMA
# ============================================================================

# (output field, request field) pairs copied verbatim from the request
PASSTHROUGH_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("ID", "ID"),
    ("NombreCompleto", "Nombre_completo"),
    ("TipoDocumento", "Tipo_de_documento"),
    ("NumeroDocumento", "Numero_de_Documento"),
    ("Modalidad", "Modalidad"),
    ("NivelDeFormacionSolicitadoParaGrado", "Nivel_de_formacion_del_cual_esta_solicitando_grado"),
    ("ProgramaDelCualSolicita", "Programa_del_cual_esta_solicitando_grado"),
    ("CorreoInsitucional", "Correo_electronico_institucional"),
    ("CorreoPersonal", "Correo_electronico_personal"),
    ("Autorizacion_tratamiento_de_datos", "Autorizacion_tratamiento_de_datos"),
)

DOCUMENT_STATUS_FIELDS: Dict[DocumentType, str] = {
    DocumentType.CEDULA: "FotocopiaDocumento",
    DocumentType.DIPLOMA_BACHILLER: "DiplomayActaGradoBachiller",
    DocumentType.DIPLOMA_TECNICO: "DiplomayActaGradoTecnico",
    DocumentType.DIPLOMA_TECNOLOGO: "DiplomayActaGradoTecnologo",
    DocumentType.TITULO_PROFESIONAL: "DiplomayActaGradoPregrado",
    DocumentType.PRUEBA_TT: "ResultadoSaberProDelNivelParaGrado",
    DocumentType.ICFES: "ExamenIcfes_11",
    DocumentType.RECIBO_PAGO: "RecibiDePagoDerechosDeGrado",
    DocumentType.ENCUESTA_M0: "Encuesta_M0",
    DocumentType.ACTA_HOMOLOGACION: "Acta_Homologacion",
}

# ExtractedFields attribute -> output field
EXTRACTED_FIELDS: Dict[str, str] = {
    "registration_code": "EK",
    "identity_number": "Num_Documento_Extraido",
    "institution": "Institucion_Extraida",
    "program": "Programa_Extraido",
    "presentation_date": "Fecha_Presentacion_Extraida",
}

INSTITUTION_CHECK_FIELD = "Institucion_Valida"
IDENTITY_CHECK_FIELD = "Num_Doc_Valido"
CROSS_CHECK_FIELDS: Tuple[str, ...] = (INSTITUTION_CHECK_FIELD, IDENTITY_CHECK_FIELD)

REQUIRED_FIELDS: Tuple[str, ...] = (
    tuple(name for name, _ in PASSTHROUGH_FIELDS)
    + tuple(DOCUMENT_STATUS_FIELDS.values())
    + tuple(EXTRACTED_FIELDS.values())
    + CROSS_CHECK_FIELDS
)


@dataclass
class PriorityTier:
    """Document types processed concurrently before the next tier starts"""
    number: int
    document_types: Tuple[DocumentType, ...]

    @property
    def assignments(self) -> List[Tuple[DocumentType, str]]:
        return [(doc_type, DOCUMENT_STATUS_FIELDS[doc_type]) for doc_type in self.document_types]


PRIORITY_TIERS: Tuple[PriorityTier, ...] = (
    PriorityTier(1, (DocumentType.CEDULA,)),
    PriorityTier(2, (
        DocumentType.DIPLOMA_BACHILLER,
        DocumentType.DIPLOMA_TECNICO,
        DocumentType.DIPLOMA_TECNOLOGO,
        DocumentType.TITULO_PROFESIONAL,
        DocumentType.PRUEBA_TT,
        DocumentType.ICFES,
    )),
    PriorityTier(3, (
        DocumentType.RECIBO_PAGO,
        DocumentType.ENCUESTA_M0,
        DocumentType.ACTA_HOMOLOGACION,
    )),
)


@dataclass
class OutputRecord:
    """
    Fixed-schema result of one graduation request.

    Writers are grouped by owner: request passthrough at creation, one
    status field per document task, and the TyT group owned by the
    exam-result task. Field identity defines the schema, not order.
    """
    values: Dict[str, Any] = field(default_factory=dict)
    repaired_fields: List[str] = field(default_factory=list)
    emergency: bool = False

    @classmethod
    def create(cls, request_fields: Optional[Dict[str, Any]] = None) -> "OutputRecord":
        request_fields = request_fields or {}
        values: Dict[str, Any] = {}
        for output_name, request_name in PASSTHROUGH_FIELDS:
            raw = request_fields.get(request_name)
            values[output_name] = "" if raw is None else str(raw)
        for status_field in DOCUMENT_STATUS_FIELDS.values():
            values[status_field] = NOT_ATTACHED
        for output_field in EXTRACTED_FIELDS.values():
            values[output_field] = NOT_APPLICABLE
        for check_field in CROSS_CHECK_FIELDS:
            values[check_field] = NOT_APPLICABLE
        return cls(values=values)

    # -- document task writers ------------------------------------------------

    def set_document_status(self, document_type: DocumentType, status: str) -> None:
        self.values[DOCUMENT_STATUS_FIELDS[document_type]] = status

    def document_status(self, document_type: DocumentType) -> str:
        return self.values.get(DOCUMENT_STATUS_FIELDS[document_type])

    # -- TyT task writers -----------------------------------------------------

    def set_tyt_results(
        self,
        extracted: ExtractedFields,
        identity_check: str,
        institution_check: str,
    ) -> None:
        """Commit the exam-result group in one step."""
        for attribute, output_field in EXTRACTED_FIELDS.items():
            self.values[output_field] = getattr(extracted, attribute)
        self.values[IDENTITY_CHECK_FIELD] = identity_check
        self.values[INSTITUTION_CHECK_FIELD] = institution_check

    # -- integrity ------------------------------------------------------------

    def missing_fields(self) -> List[str]:
        """Required fields that are absent, null or not strings."""
        return [
            name for name in REQUIRED_FIELDS
            if not isinstance(self.values.get(name), str)
        ]

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def to_dict(self) -> Dict[str, str]:
        return {name: self.values.get(name) for name in REQUIRED_FIELDS}
