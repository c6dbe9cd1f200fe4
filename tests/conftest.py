"""
Credential Validator - Shared Test Fixtures
Provides reusable fixtures for the engine, fake collaborators and the HTTP client.
"""

import asyncio
import os
import pytest
from typing import AsyncGenerator, Dict, List, Optional, Tuple
from httpx import AsyncClient, ASGITransport

# Configure test environment BEFORE importing app
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["PRELOAD_DICTIONARIES"] = "false"

from app.main import app
from app.core.config import DEFAULT_DICTIONARIES_DIR
from app.routers import graduation
from app.services.validation import (
    DictionaryRepository,
    DocumentType,
    DocumentTypeOrchestrator,
    FieldExtractor,
    MatchEngine,
)


# =============================================================================
# Sample documents
# =============================================================================

SAMPLE_CEDULA = """
REPUBLICA DE COLOMBIA
IDENTIFICACION PERSONAL
CEDULA DE CIUDADANIA
NUMERO 1.023.456.789
APELLIDOS PEREZ GOMEZ
NOMBRES JUAN CARLOS
FECHA DE NACIMIENTO 12-MAR-1998
"""

SAMPLE_TYT = """
REPORTE DE RESULTADOS DEL EXAMEN SABER TYT
Nombre: JUAN CARLOS PEREZ GOMEZ
Identificación: C.C. 1023456789
Número de registro: EK202310012345
Institución de educación superior: CORPORACION UNIFICADA NACIONAL DE EDUCACION SUPERIOR-CUN
Programa Académico: TECNICO PROFESIONAL EN PROCESOS ADMINISTRATIVOS
Aplicación del examen: 15/10/2023
2. Resultados por competencias
Comunicación escrita 145
Razonamiento cuantitativo 132
"""

SAMPLE_BACHILLER = """
REPUBLICA DE COLOMBIA
MINISTERIO DE EDUCACION NACIONAL
INSTITUCION EDUCATIVA SAN JOSE
ACTA DE GRADO No. 245
Confiere el titulo de BACHILLER ACADEMICO a JUAN CARLOS PEREZ GOMEZ
Libro de registro 3 Folio 58
"""

SAMPLE_ICFES = """
RESULTADOS EXAMEN DE ESTADO SABER 11
Número de registro AC201520345678
Puntaje global 312 Percentil 80
Lectura crítica 64 Matemáticas 61
"""

SAMPLE_RECIBO = """
CORPORACION UNIFICADA NACIONAL DE EDUCACION SUPERIOR
NIT 860401734-9
RECIBO DE PAGO DERECHOS DE GRADO
Referencia de pago 99812377
Valor pagado $ 850.000
"""

UNRELATED_TEXT = "zzz qqq xyxyxy 42"


def drive_url(document_type: DocumentType) -> str:
    return f"https://drive.google.com/file/d/{document_type.value}-id/view"


# =============================================================================
# Fakes
# =============================================================================

class FakeTextService:
    """Text service keyed by local path, recording every call."""

    def __init__(
        self,
        texts: Optional[Dict[str, str]] = None,
        errors: Optional[Dict[str, Exception]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.texts = texts or {}
        self.errors = errors or {}
        self.delays = delays or {}
        self.calls: List[Tuple[str, Optional[str]]] = []

    async def extract(self, local_path: str, document_type: Optional[str] = None) -> str:
        self.calls.append((local_path, document_type))
        delay = self.delays.get(local_path)
        if delay:
            await asyncio.sleep(delay)
        if local_path in self.errors:
            raise self.errors[local_path]
        return self.texts.get(local_path, "")


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_router_state():
    """Each test gets fresh router singletons."""
    graduation.reset_state()
    yield
    graduation.reset_state()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def repository() -> DictionaryRepository:
    """Repository over the shipped dictionaries."""
    return DictionaryRepository(DEFAULT_DICTIONARIES_DIR)


@pytest.fixture
def match_engine() -> MatchEngine:
    return MatchEngine()


@pytest.fixture
def field_extractor(repository) -> FieldExtractor:
    return FieldExtractor(
        program_catalog=repository.get_catalog(DocumentType.PROGRAM_CATALOG),
        institution_catalog=repository.get_catalog(DocumentType.CUN_INSTITUTIONS),
    )


@pytest.fixture
def text_service() -> FakeTextService:
    return FakeTextService()


@pytest.fixture
def orchestrator(repository, match_engine, field_extractor, text_service) -> DocumentTypeOrchestrator:
    return DocumentTypeOrchestrator(
        repository=repository,
        match_engine=match_engine,
        field_extractor=field_extractor,
        text_service=text_service,
        tier_timeout=5.0,
    )
