"""
Credential Validator - Text Extraction Service
Reads the text layer of downloaded documents.

Supported inputs:
1. PDF with a text layer - pdfplumber, page by page
2. Plain text exports - read directly
3. Images (PNG/JPEG/TIFF) - recognized, but need an external OCR engine

Every failure is raised as ExtractionError with a categorized kind so the
orchestrator can turn it into a status string.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol

import pdfplumber

from app.services.validation.errors import ExtractionError, ExtractionKind

logger = logging.getLogger(__name__)


MIN_DOCUMENT_BYTES = 100
HTML_MARKERS = (b"<!doctype", b"<html")


class TextExtractionService(Protocol):
    """Anything able to turn a local file into plain text."""

    async def extract(self, local_path: str, document_type: Optional[str] = None) -> str:
        ...


def detect_file_type(header: bytes) -> str:
    """Identify a document by its leading bytes."""
    if header.startswith(b"%PDF"):
        return "PDF"
    if header.startswith(b"\x89PNG"):
        return "PNG"
    if header.startswith(b"\xff\xd8\xff"):
        return "JPEG"
    if header.startswith(b"II*\x00") or header.startswith(b"MM\x00*"):
        return "TIFF"
    if b"\x00" in header:
        return "UNKNOWN"
    try:
        header.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte character cut at the end of the header is still text
        return "TEXT" if e.reason == "unexpected end of data" else "UNKNOWN"
    return "TEXT"


class LocalTextExtractionService:
    """
    Extracts text from files on local disk.

    Parsing runs in worker threads, bounded by a concurrency limit and a
    per-call timeout. Waiting too long for a free slot counts as throttling.
    """

    def __init__(
        self,
        max_bytes: int = 500 * 1024 * 1024,
        timeout_seconds: float = 25.0,
        max_concurrent: int = 4,
    ):
        self.max_bytes = max_bytes
        self.timeout_seconds = timeout_seconds
        self._slots = asyncio.Semaphore(max_concurrent)

    async def extract(self, local_path: str, document_type: Optional[str] = None) -> str:
        label = document_type or "document"
        logger.info(f"[TEXT] Extracting {label} from {local_path}")

        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise ExtractionError(ExtractionKind.THROTTLED, "no extraction slot available")

        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(self._extract_sync, Path(local_path)),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise ExtractionError(ExtractionKind.TIMEOUT, f"exceeded {self.timeout_seconds}s")
        finally:
            self._slots.release()

        logger.info(f"[TEXT] Extracted {len(text)} chars for {label}")
        return text

    # =========================================================================
    # Worker-thread side
    # =========================================================================

    def _extract_sync(self, path: Path) -> str:
        try:
            content = path.read_bytes()
        except FileNotFoundError:
            raise ExtractionError(ExtractionKind.NO_TEXT, f"file not found: {path}")

        file_type = self.validate(content)
        if file_type == "PDF":
            text = self._extract_pdf(path)
        elif file_type == "TEXT":
            text = content.decode("utf-8", errors="replace")
        else:
            raise ExtractionError(ExtractionKind.NO_TEXT, f"{file_type} image needs OCR")

        if not text.strip():
            raise ExtractionError(ExtractionKind.NO_TEXT, f"empty text layer in {path.name}")
        return text

    def validate(self, content: bytes) -> str:
        """Check size and signature. Returns the detected file type."""
        if content[:20].lstrip().lower().startswith(HTML_MARKERS):
            raise ExtractionError(ExtractionKind.HTML_DETECTED, "download returned an HTML page")
        if len(content) < MIN_DOCUMENT_BYTES:
            raise ExtractionError(ExtractionKind.TOO_SMALL, f"{len(content)} bytes")
        if len(content) > self.max_bytes:
            raise ExtractionError(ExtractionKind.TOO_LARGE, f"{len(content)} bytes")

        file_type = detect_file_type(content[:512])
        if file_type == "UNKNOWN":
            raise ExtractionError(ExtractionKind.UNSUPPORTED_TYPE, "unrecognized file signature")

        logger.debug(f"[TEXT] Validated {file_type} ({len(content)} bytes)")
        return file_type

    @staticmethod
    def _extract_pdf(path: Path) -> str:
        """Concatenate the text layer of every page."""
        texts = []
        try:
            with pdfplumber.open(path) as pdf:
                for page in pdf.pages:
                    page_text = page.extract_text()
                    if page_text:
                        texts.append(page_text)
        except Exception as e:
            logger.warning(f"[TEXT] pdfplumber failed on {path.name}: {e}")
            raise ExtractionError(ExtractionKind.UNSUPPORTED_TYPE, f"unreadable PDF: {e}")
        return "\n".join(texts)
