"""
Document URL extraction from flat request fields.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Tuple
from urllib.parse import urlsplit

from .models import DocumentType

logger = logging.getLogger(__name__)


# (request field, document type)
DOCUMENT_URL_FIELDS: Tuple[Tuple[str, DocumentType], ...] = (
    ("Copia_de_cedula", DocumentType.CEDULA),
    ("Diploma_y_acta_de_bachiller", DocumentType.DIPLOMA_BACHILLER),
    ("Icfes", DocumentType.ICFES),
    ("diploma_tecnico", DocumentType.DIPLOMA_TECNICO),
    ("diploma_tecnologo", DocumentType.DIPLOMA_TECNOLOGO),
    ("Titulo_profesional", DocumentType.TITULO_PROFESIONAL),
    ("Prueba_T_T", DocumentType.PRUEBA_TT),
    ("Soporte_de_encuesta_momento_0", DocumentType.ENCUESTA_M0),
    ("Acta_de_homologacion", DocumentType.ACTA_HOMOLOGACION),
    ("Recibo_de_pago_derechos_de_grado", DocumentType.RECIBO_PAGO),
)

DEFAULT_ACCEPTED_HOSTS: Tuple[str, ...] = ("drive.google.com", "docs.google.com")


def extract_document_urls(
    request_fields: Optional[Dict[str, Any]],
    accepted_hosts: Optional[Iterable[str]] = None,
) -> Dict[DocumentType, str]:
    """
    Map document types to the shared-file URL the applicant submitted.

    Only string values pointing at an accepted host are kept; free text,
    blanks and links elsewhere are treated as "not attached".
    """
    hosts = tuple(
        host.strip().lower() for host in (accepted_hosts if accepted_hosts is not None else DEFAULT_ACCEPTED_HOSTS)
    )
    urls: Dict[DocumentType, str] = {}

    for field_name, document_type in DOCUMENT_URL_FIELDS:
        value = (request_fields or {}).get(field_name)
        if not value or not isinstance(value, str):
            continue
        value = value.strip()
        if _accepted_host(value, hosts):
            urls[document_type] = value
        else:
            logger.debug(f"[URL] Ignoring {field_name}: not an accepted host")

    logger.info(f"[URL] Found {len(urls)} document URLs")
    return urls


def _accepted_host(url: str, hosts: Tuple[str, ...]) -> bool:
    """True when the URL's own host (not its path or query) is an accepted host or a subdomain of one."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return False
    if not hostname:
        return False
    return any(hostname == host or hostname.endswith("." + host) for host in hosts if host)
