"""
Tests for document URL extraction from request fields.
"""

from app.services.validation import DocumentType, extract_document_urls
from app.services.validation.url_extractor import DOCUMENT_URL_FIELDS


DRIVE = "https://drive.google.com/file/d/abc123/view"


def test_maps_every_known_field():
    fields = {name: f"{DRIVE}?f={name}" for name, _ in DOCUMENT_URL_FIELDS}
    urls = extract_document_urls(fields)

    assert len(urls) == len(DOCUMENT_URL_FIELDS) == 10
    assert urls[DocumentType.PRUEBA_TT].endswith("f=Prueba_T_T")


def test_strips_whitespace():
    urls = extract_document_urls({"Copia_de_cedula": f"  {DRIVE}\n"})
    assert urls == {DocumentType.CEDULA: DRIVE}


def test_skips_blank_and_non_string_values():
    urls = extract_document_urls({
        "Copia_de_cedula": "",
        "Icfes": None,
        "diploma_tecnico": 42,
        "Prueba_T_T": ["https://drive.google.com/x"],
    })
    assert urls == {}


def test_skips_other_hosts():
    urls = extract_document_urls({
        "Copia_de_cedula": "https://example.com/cedula.pdf",
        "Icfes": "no tengo",
        "Titulo_profesional": "https://docs.google.com/document/d/xyz",
    })
    assert urls == {DocumentType.TITULO_PROFESIONAL: "https://docs.google.com/document/d/xyz"}


def test_host_compared_case_insensitively():
    url = "https://DRIVE.Google.com/file/d/abc123/view"
    assert extract_document_urls({"Copia_de_cedula": url}) == {DocumentType.CEDULA: url}


def test_host_only_counts_in_authority():
    urls = extract_document_urls({
        "Copia_de_cedula": "https://evil.example.com/?next=drive.google.com",
        "Icfes": "https://example.com/drive.google.com/file",
        "Prueba_T_T": "drive.google.com/file/d/abc",
        "Titulo_profesional": "https://[broken",
    })
    assert urls == {}


def test_custom_hosts_normalized():
    urls = extract_document_urls(
        {"Copia_de_cedula": "https://files.example.com/1"},
        accepted_hosts=[" Files.Example.com "],
    )
    assert urls == {DocumentType.CEDULA: "https://files.example.com/1"}


def test_custom_hosts():
    urls = extract_document_urls(
        {"Copia_de_cedula": "https://files.example.com/1"},
        accepted_hosts=["files.example.com"],
    )
    assert urls == {DocumentType.CEDULA: "https://files.example.com/1"}


def test_ignores_unrelated_fields_and_none_request():
    assert extract_document_urls({"Nombre": DRIVE}) == {}
    assert extract_document_urls(None) == {}
