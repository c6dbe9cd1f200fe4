"""
Document Type Orchestrator Tests
================================

End-to-end review of a graduation request with a fake text service:
tier scheduling, status strings, TyT cross-checks, timeouts and record
integrity.
"""

import pytest

from app.services.validation import (
    DocumentDescriptor,
    DocumentType,
    DocumentTypeOrchestrator,
    ExtractionError,
    ExtractionKind,
    MANUAL_EXTRACTION,
    MANUAL_REVIEW,
    NOT_APPLICABLE,
    NOT_ATTACHED,
    OutputRecord,
    REQUIRED_FIELDS,
    STRUCTURE_ERROR_STATUS,
    TIMEOUT_STATUS,
    VALID,
    VALID_DOCUMENT,
)
from app.services.validation.url_extractor import DOCUMENT_URL_FIELDS

from conftest import (
    FakeTextService,
    SAMPLE_BACHILLER,
    SAMPLE_CEDULA,
    SAMPLE_ICFES,
    SAMPLE_RECIBO,
    SAMPLE_TYT,
    UNRELATED_TEXT,
    drive_url,
)


REQUEST_FIELD_FOR = {document_type: name for name, document_type in DOCUMENT_URL_FIELDS}


def make_request(*document_types, **overrides):
    fields = {
        "ID": "REQ-001",
        "Nombre_completo": "Juan Carlos Perez Gomez",
        "Tipo_de_documento": "CC",
        "Numero_de_Documento": "1.023.456.789",
        "Modalidad": "Presencial",
        "Correo_electronico_institucional": "juan.perez@cun.edu.co",
    }
    for document_type in document_types:
        fields[REQUEST_FIELD_FOR[document_type]] = drive_url(document_type)
    fields.update(overrides)
    return fields


def local_path(document_type: DocumentType) -> str:
    return f"/tmp/downloads/{document_type.value}.pdf"


def descriptor(document_type: DocumentType, **kwargs) -> DocumentDescriptor:
    kwargs.setdefault("local_path", local_path(document_type))
    return DocumentDescriptor(original_url=drive_url(document_type), **kwargs)


class TestOrchestrator:
    """Test the full review flow."""

    @pytest.mark.asyncio
    async def test_nothing_attached(self, orchestrator, text_service):
        record = await orchestrator.process(make_request(), [])

        assert len(record.to_dict()) == 27
        assert record["FotocopiaDocumento"] == NOT_ATTACHED
        assert record["Acta_Homologacion"] == NOT_ATTACHED
        assert record["EK"] == NOT_APPLICABLE
        assert record["Num_Doc_Valido"] == NOT_APPLICABLE
        assert record["NombreCompleto"] == "Juan Carlos Perez Gomez"
        assert record["CorreoPersonal"] == ""
        assert text_service.calls == []
        assert record.missing_fields() == []

    @pytest.mark.asyncio
    async def test_valid_identity_document(self, orchestrator, text_service):
        text_service.texts[local_path(DocumentType.CEDULA)] = SAMPLE_CEDULA

        record = await orchestrator.process(
            make_request(DocumentType.CEDULA),
            [descriptor(DocumentType.CEDULA)],
        )

        assert record["FotocopiaDocumento"] == VALID_DOCUMENT
        assert text_service.calls == [(local_path(DocumentType.CEDULA), "cedula")]

    @pytest.mark.asyncio
    async def test_unrecognized_text_goes_to_review(self, orchestrator, text_service):
        text_service.texts[local_path(DocumentType.ICFES)] = UNRELATED_TEXT

        record = await orchestrator.process(make_request(DocumentType.ICFES), [descriptor(DocumentType.ICFES)])

        assert record["ExamenIcfes_11"] == MANUAL_REVIEW

    @pytest.mark.asyncio
    async def test_url_without_descriptor_is_not_attached(self, orchestrator, text_service):
        record = await orchestrator.process(make_request(DocumentType.CEDULA), [])

        assert record["FotocopiaDocumento"] == NOT_ATTACHED
        assert text_service.calls == []

    @pytest.mark.asyncio
    async def test_descriptor_for_unknown_url_is_ignored(self, orchestrator, text_service):
        stray = DocumentDescriptor(original_url="https://drive.google.com/file/d/other/view", local_path="/tmp/x.pdf")

        record = await orchestrator.process(make_request(DocumentType.CEDULA), [stray])

        assert record["FotocopiaDocumento"] == NOT_ATTACHED
        assert text_service.calls == []

    # === FAILURES ===

    @pytest.mark.asyncio
    async def test_permission_denied_download(self, orchestrator, text_service):
        failed = DocumentDescriptor.from_dict({
            "originalUrl": drive_url(DocumentType.RECIBO_PAGO),
            "status": "error",
            "error": "PERMISSION_DENIED: Sin permisos para acceder al archivo",
        })

        record = await orchestrator.process(make_request(DocumentType.RECIBO_PAGO), [failed])

        assert record["RecibiDePagoDerechosDeGrado"] == "Sin permisos de acceso - Revision Manual"
        assert text_service.calls == []

    @pytest.mark.asyncio
    async def test_descriptor_without_file(self, orchestrator):
        record = await orchestrator.process(
            make_request(DocumentType.ENCUESTA_M0),
            [descriptor(DocumentType.ENCUESTA_M0, local_path=None)],
        )

        assert record["Encuesta_M0"] == "Error de descarga - Revision Manual"

    @pytest.mark.asyncio
    async def test_html_download(self, orchestrator, text_service):
        text_service.errors[local_path(DocumentType.CEDULA)] = ExtractionError(ExtractionKind.HTML_DETECTED)

        record = await orchestrator.process(make_request(DocumentType.CEDULA), [descriptor(DocumentType.CEDULA)])

        assert record["FotocopiaDocumento"] == "Archivo HTML detectado - Revision Manual"

    @pytest.mark.asyncio
    async def test_unexpected_error(self, orchestrator, text_service):
        text_service.errors[local_path(DocumentType.CEDULA)] = RuntimeError("boom")

        record = await orchestrator.process(make_request(DocumentType.CEDULA), [descriptor(DocumentType.CEDULA)])

        assert record["FotocopiaDocumento"] == MANUAL_REVIEW

    # === TYT ===

    @pytest.mark.asyncio
    async def test_exam_result_fields_and_checks(self, orchestrator, text_service):
        text_service.texts[local_path(DocumentType.PRUEBA_TT)] = SAMPLE_TYT

        record = await orchestrator.process(make_request(DocumentType.PRUEBA_TT), [descriptor(DocumentType.PRUEBA_TT)])

        assert record["ResultadoSaberProDelNivelParaGrado"] == VALID_DOCUMENT
        assert record["EK"] == "EK202310012345"
        assert record["Num_Documento_Extraido"] == "1023456789"
        assert record["Programa_Extraido"] == "TECNICO PROFESIONAL EN PROCESOS ADMINISTRATIVOS"
        assert record["Fecha_Presentacion_Extraida"] == "15/10/2023"
        assert record["Num_Doc_Valido"] == VALID
        assert record["Institucion_Valida"] == VALID

    @pytest.mark.asyncio
    async def test_exam_result_identity_mismatch(self, orchestrator, text_service):
        text_service.texts[local_path(DocumentType.PRUEBA_TT)] = SAMPLE_TYT

        record = await orchestrator.process(
            make_request(DocumentType.PRUEBA_TT, Numero_de_Documento="79000111"),
            [descriptor(DocumentType.PRUEBA_TT)],
        )

        assert record["Num_Doc_Valido"] == MANUAL_REVIEW
        assert record["Num_Documento_Extraido"] == "1023456789"

    @pytest.mark.asyncio
    async def test_exam_result_foreign_institution(self, orchestrator, text_service):
        text = SAMPLE_TYT.replace(
            "CORPORACION UNIFICADA NACIONAL DE EDUCACION SUPERIOR-CUN", "UNIVERSIDAD XYZ ABCDEF"
        )
        text_service.texts[local_path(DocumentType.PRUEBA_TT)] = text

        record = await orchestrator.process(make_request(DocumentType.PRUEBA_TT), [descriptor(DocumentType.PRUEBA_TT)])

        assert record["Institucion_Extraida"] == "UNIVERSIDAD XYZ ABCDEF"
        assert record["Institucion_Valida"] == MANUAL_REVIEW
        assert record["Num_Doc_Valido"] == VALID

    @pytest.mark.asyncio
    async def test_exam_result_without_fields(self, orchestrator, text_service):
        text_service.texts[local_path(DocumentType.PRUEBA_TT)] = "Reporte de resultados Saber TyT\nsin datos legibles"

        record = await orchestrator.process(make_request(DocumentType.PRUEBA_TT), [descriptor(DocumentType.PRUEBA_TT)])

        assert record["ResultadoSaberProDelNivelParaGrado"] == VALID_DOCUMENT
        assert record["EK"] == MANUAL_EXTRACTION
        assert record["Num_Doc_Valido"] == MANUAL_REVIEW
        assert record["Institucion_Valida"] == MANUAL_REVIEW

    @pytest.mark.asyncio
    async def test_invalid_exam_result_skips_extraction(self, orchestrator, text_service):
        text_service.texts[local_path(DocumentType.PRUEBA_TT)] = UNRELATED_TEXT

        record = await orchestrator.process(make_request(DocumentType.PRUEBA_TT), [descriptor(DocumentType.PRUEBA_TT)])

        assert record["ResultadoSaberProDelNivelParaGrado"] == MANUAL_REVIEW
        assert record["EK"] == NOT_APPLICABLE
        assert record["Num_Doc_Valido"] == NOT_APPLICABLE

    # === TIERS ===

    @pytest.mark.asyncio
    async def test_tiers_run_in_order(self, orchestrator, text_service):
        types = [DocumentType.RECIBO_PAGO, DocumentType.ICFES, DocumentType.CEDULA]
        text_service.texts.update({
            local_path(DocumentType.CEDULA): SAMPLE_CEDULA,
            local_path(DocumentType.ICFES): SAMPLE_ICFES,
            local_path(DocumentType.RECIBO_PAGO): SAMPLE_RECIBO,
        })

        await orchestrator.process(make_request(*types), [descriptor(t) for t in types])

        assert [document_type for _, document_type in text_service.calls] == ["cedula", "icfes", "recibo_pago"]

    @pytest.mark.asyncio
    async def test_tier_timeout_does_not_block_later_tiers(self, repository, match_engine, field_extractor):
        types = [DocumentType.CEDULA, DocumentType.DIPLOMA_BACHILLER, DocumentType.ICFES, DocumentType.RECIBO_PAGO]
        text_service = FakeTextService(
            texts={
                local_path(DocumentType.CEDULA): SAMPLE_CEDULA,
                local_path(DocumentType.DIPLOMA_BACHILLER): SAMPLE_BACHILLER,
                local_path(DocumentType.ICFES): SAMPLE_ICFES,
                local_path(DocumentType.RECIBO_PAGO): SAMPLE_RECIBO,
            },
            delays={local_path(DocumentType.DIPLOMA_BACHILLER): 5.0},
        )
        orchestrator = DocumentTypeOrchestrator(
            repository=repository,
            match_engine=match_engine,
            field_extractor=field_extractor,
            text_service=text_service,
            tier_timeout=0.2,
        )

        record = await orchestrator.process(make_request(*types), [descriptor(t) for t in types])

        assert record["DiplomayActaGradoBachiller"] == TIMEOUT_STATUS
        assert record["ExamenIcfes_11"] == VALID_DOCUMENT
        assert record["FotocopiaDocumento"] == VALID_DOCUMENT
        assert record["RecibiDePagoDerechosDeGrado"] == VALID_DOCUMENT

    @pytest.mark.asyncio
    async def test_timed_out_exam_result_leaves_fields_untouched(self, repository, match_engine, field_extractor):
        text_service = FakeTextService(
            texts={local_path(DocumentType.PRUEBA_TT): SAMPLE_TYT},
            delays={local_path(DocumentType.PRUEBA_TT): 2.0},
        )
        orchestrator = DocumentTypeOrchestrator(
            repository=repository,
            match_engine=match_engine,
            field_extractor=field_extractor,
            text_service=text_service,
            tier_timeout=0.1,
        )

        record = await orchestrator.process(make_request(DocumentType.PRUEBA_TT), [descriptor(DocumentType.PRUEBA_TT)])

        assert record["ResultadoSaberProDelNivelParaGrado"] == TIMEOUT_STATUS
        for name in (
            "EK",
            "Num_Documento_Extraido",
            "Institucion_Extraida",
            "Programa_Extraido",
            "Fecha_Presentacion_Extraida",
            "Institucion_Valida",
            "Num_Doc_Valido",
        ):
            assert record[name] == NOT_APPLICABLE, name

    @pytest.mark.asyncio
    async def test_short_institution_is_not_validated(self, orchestrator, text_service):
        text = SAMPLE_TYT.replace("CORPORACION UNIFICADA NACIONAL DE EDUCACION SUPERIOR-CUN", "SENA")
        text_service.texts[local_path(DocumentType.PRUEBA_TT)] = text

        record = await orchestrator.process(make_request(DocumentType.PRUEBA_TT), [descriptor(DocumentType.PRUEBA_TT)])

        assert record["Institucion_Extraida"] == MANUAL_EXTRACTION
        assert record["Institucion_Valida"] == MANUAL_REVIEW

    # === INPUT SHAPES ===

    @pytest.mark.asyncio
    async def test_dict_descriptors_and_explicit_url_map(self, orchestrator, text_service):
        text_service.texts["/tmp/c.pdf"] = SAMPLE_CEDULA
        url = " https://drive.google.com/file/d/xyz/view "

        record = await orchestrator.process(
            {"ID": "REQ-9"},
            [{"originalUrl": url.strip(), "path": "/tmp/c.pdf", "status": "success"}],
            type_to_url={"cedula": url, "pasaporte": "https://drive.google.com/file/d/p/view"},
        )

        assert record["FotocopiaDocumento"] == VALID_DOCUMENT
        assert record["ID"] == "REQ-9"

    @pytest.mark.asyncio
    async def test_non_mapping_request(self, orchestrator):
        record = await orchestrator.process(None, None)

        assert record.missing_fields() == []
        assert record["ID"] == ""

    # === INTEGRITY ===

    def test_repair_fills_broken_fields(self, orchestrator):
        record = OutputRecord.create({"ID": "REQ-1"})
        record.values["EK"] = None
        del record.values["Encuesta_M0"]

        orchestrator.repair(record)

        assert record["EK"] == STRUCTURE_ERROR_STATUS
        assert record["Encuesta_M0"] == STRUCTURE_ERROR_STATUS
        assert record["ID"] == "REQ-1"
        assert sorted(record.repaired_fields) == ["EK", "Encuesta_M0"]
        assert orchestrator.check_integrity(record) == []

    @pytest.mark.asyncio
    async def test_emergency_record_on_unexpected_failure(self, orchestrator, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("mapping exploded")

        monkeypatch.setattr(orchestrator, "map_documents", explode)
        record = await orchestrator.process(make_request(DocumentType.CEDULA), [descriptor(DocumentType.CEDULA)])

        assert record.emergency
        assert record["NombreCompleto"] == "Juan Carlos Perez Gomez"
        assert record["FotocopiaDocumento"] == MANUAL_REVIEW
        assert record["Acta_Homologacion"] == MANUAL_REVIEW
        assert set(record.to_dict()) == set(REQUIRED_FIELDS)
