"""
Dictionary Repository
=====================

Keyword vocabularies per document type.

Each type maps to a text file (one keyword per line, `#` and `//` comment
lines allowed). Files are sanitized and cached for the life of the
repository. Missing, empty or suspiciously small files are completed with
a built-in vocabulary so that matching never runs against nothing.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Any, Iterable

from .models import DictionarySet, DictionarySource, DocumentType

logger = logging.getLogger(__name__)


DICTIONARY_FILES: Dict[str, str] = {
    DocumentType.CEDULA.value: "Diccionario_Documentos_Identidad.txt",
    DocumentType.DIPLOMA_BACHILLER.value: "DiccionarioActayDiplomaBachiller.txt",
    DocumentType.DIPLOMA_TECNICO.value: "DiccionarioActayDiplomaTecnico.txt",
    DocumentType.DIPLOMA_TECNOLOGO.value: "DiccionarioActayDiplomaTecnologo.txt",
    DocumentType.TITULO_PROFESIONAL.value: "DiccionarioActayDiplomaPregrado.txt",
    DocumentType.PRUEBA_TT.value: "DiccionarioTYT.txt",
    DocumentType.ICFES.value: "DiccionarioIcfes.txt",
    DocumentType.RECIBO_PAGO.value: "DiccionarioPagoDerechosDeGrado.txt",
    DocumentType.ENCUESTA_M0.value: "DiccionarioEncuestaSeguimiento.txt",
    DocumentType.ACTA_HOMOLOGACION.value: "DiccionarioActaHomologacion.txt",
    DocumentType.CUN_INSTITUTIONS.value: "DiccionarioCUN.txt",
    DocumentType.PROGRAM_CATALOG.value: "CatalogoProgramas.txt",
}

FALLBACK_VOCABULARIES: Dict[str, List[str]] = {
    DocumentType.CEDULA.value: [
        "cédula", "cedula", "ciudadanía", "ciudadania", "documento", "identidad",
        "registrador", "registro", "civil", "estado", "nacional",
        "república", "republica", "colombia", "número", "numero",
    ],
    DocumentType.DIPLOMA_BACHILLER.value: [
        "bachiller", "académico", "academico", "media", "educación", "educacion",
        "superior", "título", "titulo", "diploma", "grado", "certificado",
        "institucional", "colegio", "instituto",
    ],
    DocumentType.DIPLOMA_TECNICO.value: [
        "técnico", "tecnico", "tecnología", "tecnologia", "formación", "formacion",
        "profesional", "diploma", "certificado", "título", "titulo", "grado",
    ],
    DocumentType.DIPLOMA_TECNOLOGO.value: [
        "tecnólogo", "tecnologo", "tecnología", "tecnologia", "superior",
        "formación", "formacion", "profesional", "diploma", "título", "titulo", "grado",
    ],
    DocumentType.TITULO_PROFESIONAL.value: [
        "profesional", "universitario", "superior", "grado", "título", "titulo",
        "diploma", "educación", "educacion", "universidad", "facultad",
    ],
    DocumentType.PRUEBA_TT.value: [
        "transición", "transicion", "trabajo", "saber", "icfes", "evaluación", "evaluacion",
        "competencias", "prueba", "examen", "resultado", "puntaje",
    ],
    DocumentType.ICFES.value: [
        "icfes", "saber", "once", "11", "evaluación", "evaluacion", "prueba",
        "examen", "resultado", "puntaje", "competencias", "educación", "educacion",
    ],
    DocumentType.RECIBO_PAGO.value: [
        "pago", "recibo", "derechos", "grado", "valor", "cancelado", "pagado",
        "factura", "comprobante", "transacción", "transaccion",
    ],
    DocumentType.ENCUESTA_M0.value: [
        "encuesta", "seguimiento", "momento", "observatorio", "laboral",
        "graduados", "programa", "formación", "formacion", "empleabilidad",
    ],
    DocumentType.ACTA_HOMOLOGACION.value: [
        "homologación", "homologacion", "reconocimiento", "convalidación", "convalidacion",
        "equivalencia", "materias", "asignaturas", "créditos", "creditos",
    ],
    DocumentType.CUN_INSTITUTIONS.value: [
        "corporación", "corporacion", "unificada", "nacional", "cun",
        "educación", "educacion", "superior", "universidad", "institución", "institucion",
    ],
}

GENERIC_FALLBACK: List[str] = ["documento", "válido", "información"]

COMMENT_PREFIXES = ("#", "//")


def sanitize_lines(lines: Iterable[str]) -> List[str]:
    """Trim, drop blanks and comments, lowercase, dedupe keeping order."""
    keywords: List[str] = []
    seen = set()
    for line in lines:
        keyword = line.strip()
        if not keyword or keyword.startswith(COMMENT_PREFIXES):
            continue
        keyword = keyword.lower()
        if keyword in seen:
            continue
        seen.add(keyword)
        keywords.append(keyword)
    return keywords


def _merge(*groups: Iterable[str]) -> List[str]:
    merged: List[str] = []
    seen = set()
    for group in groups:
        for keyword in group:
            if keyword not in seen:
                seen.add(keyword)
                merged.append(keyword)
    return merged


class DictionaryRepository:
    """
    Loads and caches keyword dictionaries.

    The cache is keyed by file name and lives as long as the repository.
    Loads are idempotent, so concurrent first reads only duplicate work.
    """

    def __init__(
        self,
        dictionaries_dir: Path,
        min_entries: int = 5,
        file_mapping: Optional[Dict[str, str]] = None,
        fallback_vocabularies: Optional[Dict[str, List[str]]] = None,
    ):
        self.dictionaries_dir = Path(dictionaries_dir)
        self.min_entries = min_entries
        self.file_mapping = dict(file_mapping if file_mapping is not None else DICTIONARY_FILES)
        self.fallback_vocabularies = dict(
            fallback_vocabularies if fallback_vocabularies is not None else FALLBACK_VOCABULARIES
        )
        self._cache: Dict[str, List[str]] = {}
        self._sources: Dict[str, DictionarySource] = {}
        self._catalogs: Dict[str, List[str]] = {}

    # =========================================================================
    # Public API
    # =========================================================================

    def get(self, document_type: Any) -> List[str]:
        """Keyword list for a document type. Never raises."""
        return list(self.get_set(document_type).keywords)

    def get_set(self, document_type: Any) -> DictionarySet:
        """Keyword list with its provenance. Never raises."""
        type_key = getattr(document_type, "value", document_type)
        type_key = str(type_key)
        file_name = self.file_mapping.get(type_key)

        if not file_name:
            logger.warning(f"[DICT] No dictionary mapping for type: {type_key}")
            return DictionarySet(type_key, [], DictionarySource.FALLBACK)

        try:
            keywords = self.load(file_name)
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.error(f"[DICT] Error loading {file_name}: {e}")
            return DictionarySet(type_key, self.fallback_for(type_key), DictionarySource.FALLBACK, file_name)

        if len(keywords) < self.min_entries:
            logger.warning(
                f"[DICT] Dictionary {file_name} too small ({len(keywords)} entries), merging with fallback"
            )
            merged = _merge(keywords, sanitize_lines(self.fallback_vocabularies.get(type_key, [])))
            self._sources[file_name] = DictionarySource.MERGED
            return DictionarySet(type_key, merged, DictionarySource.MERGED, file_name)

        self._sources[file_name] = DictionarySource.FILE
        return DictionarySet(type_key, list(keywords), DictionarySource.FILE, file_name)

    def load(self, file_name: str) -> List[str]:
        """
        Read and sanitize one dictionary file, using the cache when possible.

        Raises:
            FileNotFoundError: the file does not exist
            ValueError: the file holds no usable keywords
        """
        cached = self._cache.get(file_name)
        if cached is not None:
            logger.debug(f"[DICT] Cache hit: {file_name}")
            return cached

        path = self.dictionaries_dir / file_name
        if not path.is_file():
            raise FileNotFoundError(f"Dictionary file not found: {path}")

        content = path.read_text(encoding="utf-8")
        if not content.strip():
            raise ValueError(f"Dictionary is empty: {file_name}")

        keywords = sanitize_lines(content.splitlines())
        if not keywords:
            raise ValueError(f"No usable keywords in: {file_name}")

        self._cache[file_name] = keywords
        logger.info(f"[DICT] Loaded {file_name} ({len(keywords)} unique keywords)")
        return keywords

    def get_catalog(self, document_type: Any) -> List[str]:
        """
        Entries of a closed vocabulary with their original spelling.

        Used where the entry itself is returned to the caller (program and
        institution names). Empty when the file is unavailable. Never raises.
        """
        type_key = str(getattr(document_type, "value", document_type))
        file_name = self.file_mapping.get(type_key)
        if not file_name:
            return []
        cached = self._catalogs.get(file_name)
        if cached is not None:
            return list(cached)

        path = self.dictionaries_dir / file_name
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"[DICT] Catalog unavailable for {type_key}: {e}")
            return []

        entries: List[str] = []
        seen = set()
        for line in lines:
            entry = " ".join(line.split())
            if not entry or entry.startswith(COMMENT_PREFIXES) or entry.lower() in seen:
                continue
            seen.add(entry.lower())
            entries.append(entry)

        self._catalogs[file_name] = entries
        return list(entries)

    def fallback_for(self, document_type: str) -> List[str]:
        """Built-in vocabulary for a type, or a generic minimal list."""
        logger.warning(f"[DICT] Using fallback dictionary for: {document_type}")
        words = self.fallback_vocabularies.get(document_type)
        if not words:
            logger.error(f"[DICT] No fallback words for: {document_type}")
            return sanitize_lines(GENERIC_FALLBACK)
        return sanitize_lines(words)

    def preload(self) -> Dict[str, str]:
        """
        Warm the cache for every mapped type.

        Returns a map of type -> "loaded" or the error message.
        """
        logger.info("[DICT] Preloading dictionaries...")
        report: Dict[str, str] = {}
        for type_key, file_name in self.file_mapping.items():
            try:
                self.load(file_name)
                report[type_key] = "loaded"
            except (OSError, UnicodeDecodeError, ValueError) as e:
                logger.warning(f"[DICT] Could not preload {type_key}: {e}")
                report[type_key] = str(e)
        logger.info(
            f"[DICT] Preload complete: {sum(1 for v in report.values() if v == 'loaded')}/{len(report)}"
        )
        return report

    def clear_cache(self) -> int:
        """Drop every cached dictionary. Returns how many were removed."""
        removed = len(self._cache)
        self._cache.clear()
        self._catalogs.clear()
        self._sources.clear()
        logger.info(f"[DICT] Cache cleared: {removed} dictionaries removed")
        return removed

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def stats(self) -> Dict[str, Any]:
        """Load health per type. Purely informational."""
        details = {}
        for type_key, file_name in self.file_mapping.items():
            keywords = self._cache.get(file_name)
            source = self._sources.get(file_name)
            details[type_key] = {
                "file_name": file_name,
                "loaded": keywords is not None,
                "word_count": len(keywords) if keywords else 0,
                "source": source.value if source else None,
            }
        return {
            "total_types": len(self.file_mapping),
            "loaded_types": sum(1 for d in details.values() if d["loaded"]),
            "total_cached_words": sum(len(words) for words in self._cache.values()),
            "details": details,
        }

    @staticmethod
    def validate(entries: Any, name: str = "unknown") -> Dict[str, Any]:
        """Report how many entries of a raw dictionary are usable strings."""
        if not isinstance(entries, (list, tuple)) or not entries:
            return {
                "is_valid": False,
                "error": f"Dictionary {name} is empty or not a list",
                "total_entries": len(entries) if isinstance(entries, (list, tuple)) else 0,
                "valid_entries": 0,
                "invalid_entries": 0,
                "valid_percentage": 0.0,
            }

        valid = sum(1 for entry in entries if isinstance(entry, str) and entry.strip())
        percentage = valid / len(entries) * 100
        if percentage < 80:
            logger.warning(f"[DICT] Dictionary {name} has only {percentage:.1f}% valid entries")

        return {
            "is_valid": valid > 0,
            "total_entries": len(entries),
            "valid_entries": valid,
            "invalid_entries": len(entries) - valid,
            "valid_percentage": percentage,
        }
