"""
TyT Field Extractor
===================

Reads five structured fields from the OCR text of a Saber TyT exam result:
identity number, registration code (EK...), institution, academic program
and exam date.

Every field owns an ordered list of named patterns. Patterns run from the
most specific label layout to loose fallbacks; the first capture that
survives post-processing wins. Misses keep the "Extraccion Manual"
sentinel so a human can fill the value in.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Pattern, Tuple

from .models import ExtractedFields
from .text_normalizer import accent_tolerant_pattern, collapse_whitespace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldPattern:
    """One extraction rule. Lower priority runs first."""
    name: str
    priority: int
    regex: Pattern
    canonical: Optional[str] = None  # Catalog spelling returned instead of the capture


def _compile(expression: str) -> Pattern:
    return re.compile(expression, re.IGNORECASE | re.MULTILINE)


# ============================================================================
# LABEL FRAGMENTS
# ============================================================================

IDENTIFICATION = r"Identi[fl]icaci[oó0]n"
CC = r"C\.?\s?C\.?"
REGISTRATION = r"N[uú]mero\s+de\s+registro"
INSTITUTION = r"Instituci[oó]n\s+de\s+educaci[oó]n\s+superior"
PROGRAM = r"Programa\s+Acad[eé]mico"
APPLICATION = r"Aplicaci[oó]n\s+del\s+examen"
SECTION_END = r"(?=\s*\d+\s*\.|\s*Reporte|$)"

DATE = r"\d{1,2}/\d{1,2}/\d{4}"
DATE_TOKEN = re.compile(rf"\b({DATE})\b")
APPLICATION_LABEL = _compile(APPLICATION)
FIELD_LABELS = _compile("|".join((IDENTIFICATION, REGISTRATION, INSTITUTION, PROGRAM, APPLICATION)))
PROXIMITY_WINDOW = 100

MIN_TEXT_FIELD_LENGTH = 10
TRAILING_NUMERAL = re.compile(r"\s*\d+\s*\.\s*$")


# ============================================================================
# PATTERN TABLES
# ============================================================================

IDENTITY_PATTERNS: Tuple[FieldPattern, ...] = (
    FieldPattern("label_cc", 1, _compile(rf"{IDENTIFICATION}\s*:\s*{CC}\s*(\d{{6,12}})(?!\d)")),
    FieldPattern("label", 2, _compile(rf"{IDENTIFICATION}\s*:\s*(\d{{6,12}})(?!\d)")),
    FieldPattern("label_next_line", 3, _compile(rf"{IDENTIFICATION}\s*:?[ \t]*\n\s*(?:{CC}\s*)?(\d{{6,12}})(?!\d)")),
    FieldPattern("bare_cc", 4, _compile(rf"\b{CC}\s*(\d{{6,12}})(?!\d)")),
)

REGISTRATION_PATTERNS: Tuple[FieldPattern, ...] = (
    FieldPattern("label", 1, _compile(rf"{REGISTRATION}\s*:\s*(EK\d{{10,15}})(?!\d)")),
    FieldPattern("label_next_line", 2, _compile(rf"{REGISTRATION}\s*:?[ \t]*\n\s*(EK\d{{10,15}})(?!\d)")),
    FieldPattern("bare", 3, _compile(r"\b(EK\d{10,15})\b")),
)

INSTITUTION_PATTERNS: Tuple[FieldPattern, ...] = (
    FieldPattern("label_block", 1, _compile(rf"{INSTITUTION}\s*:\s*([\s\S]+?)\n\s*Programa")),
    FieldPattern("label_line", 2, _compile(rf"{INSTITUTION}\s*:\s*([^\n\r]+?)(?=\s*Programa|$)")),
    FieldPattern("superior_line", 3, _compile(r"educaci[oó]n\s+superior\s*:\s*([^\n\r]+?)(?=\s*Programa|$)")),
)

INSTITUTION_FALLBACK = FieldPattern(
    "cun_generic", 99, _compile(r"(Corporaci[oó]n\s+Unificada\s+Nacional[^\n\r]*?)(?=\s*Programa|$)")
)

PROGRAM_PATTERNS: Tuple[FieldPattern, ...] = (
    FieldPattern("label_line", 1, _compile(rf"{PROGRAM}\s*:[ \t]*([^\n\r]+?){SECTION_END}")),
    FieldPattern("label_next_line", 2, _compile(rf"{PROGRAM}\s*:[ \t]*\n\s*([^\n\r]+?){SECTION_END}")),
    FieldPattern("label_run", 3, _compile(rf"{PROGRAM}\s*:\s*([^\n\r]{{10,}})")),
)

PROGRAM_FALLBACK = FieldPattern(
    "tecnico_generic", 99, _compile(rf"(T[eé]cnico\s+Profesional\s+[^\n\r]+?){SECTION_END}")
)

DATE_PATTERNS: Tuple[FieldPattern, ...] = (
    FieldPattern("label", 1, _compile(rf"{APPLICATION}\s*:\s*({DATE})")),
    FieldPattern("label_next_line", 2, _compile(rf"{APPLICATION}\s*:?[ \t]*\n\s*({DATE})")),
    FieldPattern("application_any", 3, _compile(rf"Aplicaci[oó]n[^:\n]*:\s*({DATE})")),
)


def catalog_patterns(names: Optional[Iterable[str]], first_priority: int = 10) -> List[FieldPattern]:
    """
    Diacritic-tolerant patterns for a closed vocabulary.

    Longer names are tried first so "Tecnología en Desarrollo de Software"
    wins over "Tecnología en Desarrollo".
    """
    unique: Dict[str, str] = {}
    for name in names or []:
        cleaned = collapse_whitespace(str(name))
        if len(cleaned) > 2:
            unique.setdefault(cleaned.lower(), cleaned)

    ordered = sorted(unique.values(), key=lambda n: (-len(n), n.lower()))
    return [
        FieldPattern(
            f"catalog:{name}",
            first_priority + index,
            _compile(rf"(?<!\w)({accent_tolerant_pattern(name)})(?!\w)"),
            canonical=name,
        )
        for index, name in enumerate(ordered)
    ]


def _after(fallback: FieldPattern, patterns: List[FieldPattern]) -> FieldPattern:
    """Reprioritize a generic fallback so it still runs after every catalog entry."""
    if not patterns:
        return fallback
    return replace(fallback, priority=max(fallback.priority, patterns[-1].priority + 1))


def _overlaps(span: Tuple[int, int], others: List[Tuple[int, int]]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in others)


# ============================================================================
# POST-PROCESSING
# ============================================================================

def _clean_digits(value: str) -> Optional[str]:
    return value.strip() or None


def _clean_registration(value: str) -> Optional[str]:
    return value.strip().upper() or None


def _clean_text_field(value: str) -> Optional[str]:
    cleaned = collapse_whitespace(value)
    cleaned = TRAILING_NUMERAL.sub("", cleaned).strip()
    return cleaned if len(cleaned) > MIN_TEXT_FIELD_LENGTH else None


class FieldExtractor:
    """
    Pattern-cascade extractor for TyT exam results.

    Catalogs are optional closed vocabularies (institution names, program
    names). When supplied they are tried after the labelled layouts and
    before the generic fallbacks.
    """

    def __init__(
        self,
        program_catalog: Optional[Iterable[str]] = None,
        institution_catalog: Optional[Iterable[str]] = None,
    ):
        self.identity_patterns = list(IDENTITY_PATTERNS)
        self.registration_patterns = list(REGISTRATION_PATTERNS)
        institutions = catalog_patterns(institution_catalog)
        programs = catalog_patterns(program_catalog)
        self.institution_patterns = (
            list(INSTITUTION_PATTERNS) + institutions + [_after(INSTITUTION_FALLBACK, institutions)]
        )
        self.program_patterns = (
            list(PROGRAM_PATTERNS) + programs + [_after(PROGRAM_FALLBACK, programs)]
        )
        self.date_patterns = list(DATE_PATTERNS)

    def extract(self, text: Optional[str]) -> ExtractedFields:
        """Extract every field. Never raises; misses keep the sentinel."""
        fields = ExtractedFields()
        if not text or not isinstance(text, str):
            logger.warning("[TYT] No text to extract from")
            return fields

        plan: List[Tuple[str, List[FieldPattern], Callable[[str], Optional[str]]]] = [
            ("identity_number", self.identity_patterns, _clean_digits),
            ("registration_code", self.registration_patterns, _clean_registration),
            ("institution", self.institution_patterns, _clean_text_field),
            ("program", self.program_patterns, _clean_text_field),
        ]

        label_spans = [label.span() for label in FIELD_LABELS.finditer(text)]

        for attribute, patterns, clean in plan:
            try:
                found = self._first_match(text, patterns, clean, label_spans)
            except Exception as e:
                logger.error(f"[TYT] Failed extracting {attribute}: {e}")
                found = None
            if found:
                value, pattern_name = found
                setattr(fields, attribute, value)
                fields.matched_patterns[attribute] = pattern_name

        try:
            date = self._extract_date(text)
        except Exception as e:
            logger.error(f"[TYT] Failed extracting presentation_date: {e}")
            date = None
        if date:
            fields.presentation_date, fields.matched_patterns["presentation_date"] = date

        extracted = [name for name in fields.matched_patterns]
        logger.info(f"[TYT] Extracted {len(extracted)}/5 fields: {', '.join(extracted) or 'none'}")
        return fields

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _first_match(
        text: str,
        patterns: List[FieldPattern],
        clean: Callable[[str], Optional[str]],
        label_spans: Optional[List[Tuple[int, int]]] = None,
    ) -> Optional[Tuple[str, str]]:
        for pattern in sorted(patterns, key=lambda p: p.priority):
            if pattern.canonical is None:
                match = pattern.regex.search(text)
            else:
                # Catalog names must not be read out of a field label
                match = next(
                    (m for m in pattern.regex.finditer(text) if not _overlaps(m.span(1), label_spans or [])),
                    None,
                )
            if not match:
                continue
            value = clean(match.group(1))
            if value:
                return (pattern.canonical or value), pattern.name
        return None

    def _extract_date(self, text: str) -> Optional[Tuple[str, str]]:
        found = self._first_match(text, self.date_patterns, str.strip)
        if found:
            return found

        dates = list(DATE_TOKEN.finditer(text))
        if not dates:
            return None

        label = APPLICATION_LABEL.search(text)
        if label:
            for date in dates:
                offset = date.start() - label.start()
                if 0 <= offset < PROXIMITY_WINDOW:
                    return date.group(1), "proximity"

        return dates[0].group(1), "first_date"
