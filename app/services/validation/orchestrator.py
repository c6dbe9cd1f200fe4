"""
Document Type Orchestrator
==========================
Reviews every document of a graduation request and assembles the output
record:

Request fields → URL map → descriptors matched to types →
Tier 1 (identity) → Tier 2 (academic) → Tier 3 (administrative) →
integrity check → repair → record

Documents inside a tier run concurrently and the tier waits for all of
them, up to its own deadline. A late document is cancelled and marked for
manual review; the next tier still runs.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from app.core.utc import elapsed_ms, utc_now

from .dictionary_repository import DictionaryRepository
from .errors import FetchError, StructuralError, status_for_error
from .field_extractor import FieldExtractor
from .match_engine import MatchEngine
from .models import (
    DOCUMENT_STATUS_FIELDS,
    MANUAL_REVIEW,
    NOT_APPLICABLE,
    NOT_ATTACHED,
    PRIORITY_TIERS,
    STRUCTURE_ERROR_STATUS,
    TIMEOUT_STATUS,
    VALID,
    VALID_DOCUMENT,
    DocumentDescriptor,
    DocumentType,
    ExtractedFields,
    OutputRecord,
    PriorityTier,
)
from .url_extractor import extract_document_urls

logger = logging.getLogger(__name__)


DescriptorInput = Union[DocumentDescriptor, Mapping[str, Any]]

IDENTITY_REQUEST_FIELD = "Numero_de_Documento"


@dataclass
class DocumentOutcome:
    """Everything one document task wants written to the record"""
    document_type: DocumentType
    status: str
    extracted: Optional[ExtractedFields] = None
    identity_check: str = NOT_APPLICABLE
    institution_check: str = NOT_APPLICABLE


def digits_only(value: Any) -> str:
    return re.sub(r"\D", "", "" if value is None else str(value))


class DocumentTypeOrchestrator:
    """
    Runs the priority tiers and owns the output record.

    Collaborators are injected so tests can swap the text service or the
    repository without touching the flow.
    """

    def __init__(
        self,
        repository: DictionaryRepository,
        match_engine: MatchEngine,
        field_extractor: FieldExtractor,
        text_service: Any,
        tier_timeout: float = 30.0,
        tiers: Tuple[PriorityTier, ...] = PRIORITY_TIERS,
        min_matches: int = 1,
        accepted_hosts: Optional[Iterable[str]] = None,
    ):
        self.repository = repository
        self.match_engine = match_engine
        self.field_extractor = field_extractor
        self.text_service = text_service
        self.tier_timeout = tier_timeout
        self.tiers = tiers
        self.min_matches = min_matches
        self.accepted_hosts = list(accepted_hosts) if accepted_hosts is not None else None

    # =========================================================================
    # Entry point
    # =========================================================================

    async def process(
        self,
        request_fields: Optional[Mapping[str, Any]],
        descriptors: Optional[Iterable[DescriptorInput]],
        type_to_url: Optional[Mapping[Any, str]] = None,
    ) -> OutputRecord:
        """
        Review every attached document and return a complete record.

        When type_to_url is omitted it is derived from the request fields.
        Never raises for document-level problems; anything unexpected at
        the top level yields the emergency record.
        """
        started = utc_now()
        request_fields = dict(request_fields) if isinstance(request_fields, Mapping) else {}
        applicant = request_fields.get("ID", "unknown")
        logger.info(f"[PROCESS] Starting review for request {applicant}")

        try:
            record = OutputRecord.create(request_fields)
            if type_to_url is None:
                type_to_url = extract_document_urls(request_fields, self.accepted_hosts)
            document_map = self.map_documents(descriptors, type_to_url)

            for tier in self.tiers:
                await self._run_tier(tier, document_map, record, request_fields)
        except Exception as e:
            logger.error(f"[PROCESS] Unexpected failure for request {applicant}: {e}", exc_info=True)
            record = self.emergency_record(request_fields)

        self.repair(record)
        logger.info(f"[PROCESS] Review finished for request {applicant} in {elapsed_ms(started)}ms")
        return record

    # =========================================================================
    # Mapping
    # =========================================================================

    @staticmethod
    def map_documents(
        descriptors: Optional[Iterable[DescriptorInput]],
        type_to_url: Optional[Mapping[Any, str]],
    ) -> Dict[DocumentType, DocumentDescriptor]:
        """Pair each descriptor with the document type whose URL it came from."""
        urls: Dict[DocumentType, str] = {}
        for key, url in (type_to_url or {}).items():
            document_type = DocumentType.parse(key)
            if document_type is None or not isinstance(url, str):
                logger.warning(f"[PROCESS] Ignoring URL for unknown type: {key}")
                continue
            urls[document_type] = url.strip()

        document_map: Dict[DocumentType, DocumentDescriptor] = {}
        for item in descriptors or []:
            descriptor = item if isinstance(item, DocumentDescriptor) else DocumentDescriptor.from_dict(item)
            original_url = (descriptor.original_url or "").strip()
            for document_type, url in urls.items():
                if original_url == url and document_type not in document_map:
                    document_map[document_type] = descriptor
                    break

        logger.info(f"[PROCESS] Mapped {len(document_map)} of {len(urls)} document URLs to files")
        return document_map

    # =========================================================================
    # Tiers
    # =========================================================================

    async def _run_tier(
        self,
        tier: PriorityTier,
        document_map: Dict[DocumentType, DocumentDescriptor],
        record: OutputRecord,
        request_fields: Dict[str, Any],
    ) -> None:
        started = utc_now()
        tasks: Dict[asyncio.Task, DocumentType] = {}

        for document_type, _ in tier.assignments:
            descriptor = document_map.get(document_type)
            if descriptor is None:
                logger.debug(f"[PROCESS] No file for {document_type.value}")
                record.set_document_status(document_type, NOT_ATTACHED)
                continue
            task = asyncio.create_task(
                self._process_document(document_type, descriptor, request_fields),
                name=f"review-{document_type.value}",
            )
            tasks[task] = document_type

        if not tasks:
            return

        logger.info(f"[PROCESS] Tier {tier.number}: reviewing {len(tasks)} documents")
        try:
            done, pending = await asyncio.wait(tasks, timeout=self.tier_timeout)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        for task in done:
            document_type = tasks[task]
            if task.cancelled():
                record.set_document_status(document_type, TIMEOUT_STATUS)
                continue
            error = task.exception()
            if error is not None:
                logger.error(f"[PROCESS] {document_type.value} failed: {error}")
                record.set_document_status(document_type, status_for_error(error))
                continue
            self._commit(record, task.result())

        if pending:
            logger.warning(
                f"[PROCESS] Tier {tier.number} timed out after {self.tier_timeout}s: "
                f"{', '.join(tasks[t].value for t in pending)}"
            )
            for task in pending:
                task.cancel()
                record.set_document_status(tasks[task], TIMEOUT_STATUS)
            await asyncio.gather(*pending, return_exceptions=True)

        logger.info(f"[PROCESS] Tier {tier.number} complete in {elapsed_ms(started)}ms")

    @staticmethod
    def _commit(record: OutputRecord, outcome: DocumentOutcome) -> None:
        record.set_document_status(outcome.document_type, outcome.status)
        if outcome.extracted is not None:
            record.set_tyt_results(outcome.extracted, outcome.identity_check, outcome.institution_check)

    # =========================================================================
    # Single document
    # =========================================================================

    async def _process_document(
        self,
        document_type: DocumentType,
        descriptor: DocumentDescriptor,
        request_fields: Dict[str, Any],
    ) -> DocumentOutcome:
        """Review one document. Returns the outcome instead of raising."""
        if descriptor.failed:
            error = FetchError.from_detail(descriptor.error or "no local file")
            logger.warning(f"[PROCESS] {document_type.value} not downloaded: {error}")
            return DocumentOutcome(document_type, status_for_error(error))

        try:
            text = await self.text_service.extract(descriptor.local_path, document_type.value)
            dictionary = self.repository.get(document_type)
            is_valid = self.match_engine.validate(text, dictionary, self.min_matches)

            if not is_valid:
                logger.info(f"[PROCESS] {document_type.value}: not recognized, manual review")
                return DocumentOutcome(document_type, MANUAL_REVIEW)

            outcome = DocumentOutcome(document_type, VALID_DOCUMENT)
            if document_type == DocumentType.PRUEBA_TT:
                self._review_exam_result(outcome, text, request_fields)
            logger.info(f"[PROCESS] {document_type.value}: valid document")
            return outcome
        except Exception as e:
            logger.error(f"[PROCESS] Error reviewing {document_type.value}: {e}")
            return DocumentOutcome(document_type, status_for_error(e))

    def _review_exam_result(
        self,
        outcome: DocumentOutcome,
        text: str,
        request_fields: Dict[str, Any],
    ) -> None:
        """Extract the TyT fields and cross-check them against the request."""
        extracted = self.field_extractor.extract(text)
        outcome.extracted = extracted

        submitted = digits_only(request_fields.get(IDENTITY_REQUEST_FIELD))
        found = digits_only(extracted.identity_number) if extracted.is_extracted("identity_number") else ""
        outcome.identity_check = VALID if found and found == submitted else MANUAL_REVIEW

        if extracted.is_extracted("institution"):
            institutions = self.repository.get(DocumentType.CUN_INSTITUTIONS)
            plausible = self.match_engine.validate(extracted.institution, institutions)
            outcome.institution_check = VALID if plausible else MANUAL_REVIEW
        else:
            outcome.institution_check = MANUAL_REVIEW

        logger.info(
            f"[TYT] Identity check: {outcome.identity_check}, "
            f"institution check: {outcome.institution_check}"
        )

    # =========================================================================
    # Integrity
    # =========================================================================

    @staticmethod
    def check_integrity(record: OutputRecord) -> List[str]:
        """Required fields that are missing or not strings."""
        return record.missing_fields()

    def repair(self, record: OutputRecord) -> OutputRecord:
        """Fill broken fields with the structure-error status, keeping valid ones."""
        missing = self.check_integrity(record)
        if not missing:
            return record

        logger.error(f"[PROCESS] {StructuralError(missing)}")
        for name in missing:
            record.values[name] = STRUCTURE_ERROR_STATUS
        record.repaired_fields.extend(missing)
        return record

    @staticmethod
    def emergency_record(request_fields: Optional[Mapping[str, Any]] = None) -> OutputRecord:
        """Passthrough data kept, every document sent to manual review."""
        try:
            record = OutputRecord.create(dict(request_fields or {}))
        except Exception as e:
            logger.error(f"[PROCESS] Could not copy request fields into emergency record: {e}")
            record = OutputRecord.create({})
        for status_field in DOCUMENT_STATUS_FIELDS.values():
            record.values[status_field] = MANUAL_REVIEW
        record.emergency = True
        return record

