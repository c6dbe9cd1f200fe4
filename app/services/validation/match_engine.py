"""
Dictionary Match Engine
=======================

Decides whether a text plausibly belongs to a document type by counting
dictionary keywords found in it.

Cascade (stops as soon as enough keywords matched):
1. Exact substring pass over the lowercased text
2. Fuzzy pass for the keywords still missing, per keyword in precedence:
   a. accent-folded substring (cédula ~ cedula)
   b. similar token, positional character overlap (long keywords)
   c. multi-word keyword with most of its parts present
   d. long contiguous slice of the keyword present
3. Tiny curated dictionaries skip the cascade and use the naive counter

Every keyword is judged on its own, so the verdict does not depend on
dictionary order and a verdict for n matches holds for any smaller n.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from .errors import ValidationError
from .models import KeywordMatch, MatchMethod, MatchResult, MatchStrategy
from .text_normalizer import fold_accents, normalize

logger = logging.getLogger(__name__)


@dataclass
class MatchSettings:
    """Matching thresholds. Empirically tuned; calibrate against real corpora."""
    similarity_threshold: float = 0.75
    parts_ratio: float = 0.6
    substring_ratio: float = 0.6
    min_fuzzy_length: int = 6
    small_dictionary_size: int = 5
    min_keyword_length: int = 2
    max_keyword_length: int = 100

    @classmethod
    def from_settings(cls, settings: Any) -> "MatchSettings":
        return cls(
            similarity_threshold=settings.fuzzy_similarity_threshold,
            parts_ratio=settings.fuzzy_parts_ratio,
            substring_ratio=settings.fuzzy_substring_ratio,
            min_fuzzy_length=settings.fuzzy_min_keyword_length,
            small_dictionary_size=settings.small_dictionary_size,
        )


def positional_similarity(word1: str, word2: str) -> float:
    """Share of aligned positions holding the same character."""
    if word1 == word2:
        return 1.0
    longer, shorter = (word1, word2) if len(word1) > len(word2) else (word2, word1)
    if not longer:
        return 0.0
    matches = sum(1 for i, char in enumerate(shorter) if longer[i] == char)
    return matches / len(longer)


class MatchEngine:
    """
    Exact-then-fuzzy keyword matcher.

    Stateless apart from its thresholds; safe to share between concurrent
    document tasks.
    """

    def __init__(self, settings: Optional[MatchSettings] = None):
        self.settings = settings or MatchSettings()

    # =========================================================================
    # Public API
    # =========================================================================

    def validate(self, text: Any, dictionary: Any, min_matches: Any = 1) -> bool:
        """True when text holds enough dictionary keywords. Never raises."""
        return self.match(text, dictionary, min_matches).is_valid

    def match(self, text: Any, dictionary: Any, min_matches: Any = 1) -> MatchResult:
        """Full match result. Internal failures degrade to the naive counter."""
        try:
            result = self._match(text, dictionary, min_matches)
        except Exception as e:
            logger.warning(f"[MATCH] Cascade failed, using naive fallback: {e}")
            return self.naive_match(text, dictionary, min_matches)

        logger.info(
            f"[MATCH] {'VALID' if result.is_valid else 'INVALID'} "
            f"({result.match_count}/{result.required_matches} matches, strategy={result.strategy.value})"
        )
        if result.matched_keywords:
            preview = ", ".join(result.matched_keywords[:5])
            logger.debug(f"[MATCH] Matched: {preview}{'...' if len(result.matched_keywords) > 5 else ''}")
        return result

    def naive_match(self, text: Any, dictionary: Any, min_matches: Any = 1) -> MatchResult:
        """
        Case- and accent-insensitive substring count over raw entries.

        Used for tiny curated dictionaries (tax IDs, codes) and as the
        safety net when the cascade fails.
        """
        try:
            folded_text = fold_accents(normalize(text))
            entries = self._raw_entries(dictionary) if folded_text else []
            required = self._effective_min_matches(min_matches, len(entries))
            if not entries:
                return MatchResult(False, 0, required_matches=required)

            matched: List[KeywordMatch] = []
            for keyword in entries:
                if fold_accents(keyword) in folded_text:
                    matched.append(KeywordMatch(keyword, MatchMethod.NAIVE))
                    if len(matched) >= required:
                        break

            return MatchResult(
                is_valid=len(matched) >= required,
                match_count=len(matched),
                matched_keywords=[m.keyword for m in matched],
                strategy=MatchStrategy.FALLBACK if matched else MatchStrategy.NONE,
                required_matches=required,
                details=matched,
            )
        except Exception as e:
            logger.error(f"[MATCH] Naive fallback failed: {e}")
            return MatchResult(False, 0)

    def sanitize(self, dictionary: Iterable[Any]) -> List[str]:
        """Lowercased, trimmed, deduplicated keywords with some alphanumeric content."""
        sanitized: List[str] = []
        seen = set()
        for item in dictionary:
            if item is None:
                continue
            keyword = normalize(item)
            if not self.settings.min_keyword_length <= len(keyword) <= self.settings.max_keyword_length:
                continue
            if not any(char.isalnum() for char in keyword):
                continue
            if keyword not in seen:
                seen.add(keyword)
                sanitized.append(keyword)
        return sanitized

    def diagnose(self, text: Any, dictionary: Any, min_matches: Any = 1) -> dict:
        """Explain why a text/dictionary pair may be failing validation."""
        diagnosis = {
            "text_valid": isinstance(text, str) and bool(text.strip()),
            "text_length": len(text) if isinstance(text, str) else 0,
            "dictionary_valid": isinstance(dictionary, (list, tuple)) and len(dictionary) > 0,
            "dictionary_length": len(dictionary) if isinstance(dictionary, (list, tuple)) else 0,
            "min_matches_valid": isinstance(min_matches, int) and not isinstance(min_matches, bool) and min_matches >= 1,
            "potential_matches": [],
            "recommendations": [],
        }

        if not diagnosis["text_valid"]:
            diagnosis["recommendations"].append("Text is empty or not a string")
        if not diagnosis["dictionary_valid"]:
            diagnosis["recommendations"].append("Dictionary is empty or not a list")
        if not diagnosis["min_matches_valid"]:
            diagnosis["recommendations"].append("min_matches must be an integer >= 1")

        if diagnosis["text_valid"] and diagnosis["dictionary_valid"]:
            normalized = normalize(text)
            for entry in list(dictionary)[:10]:
                keyword = normalize(entry)
                if keyword and keyword in normalized:
                    diagnosis["potential_matches"].append(keyword)
            if not diagnosis["potential_matches"]:
                diagnosis["recommendations"].append(
                    "No obvious matches between text and the first dictionary entries"
                )

        return diagnosis

    # =========================================================================
    # Cascade
    # =========================================================================

    def _match(self, text: Any, dictionary: Any, min_matches: Any) -> MatchResult:
        normalized = normalize(text)
        if not normalized:
            logger.warning("[MATCH] Empty text after normalization")
            return MatchResult(False, 0)

        if isinstance(dictionary, (str, bytes)) or not isinstance(dictionary, (list, tuple, set, frozenset)):
            raise ValidationError(f"Dictionary must be a list, got {type(dictionary).__name__}")
        if not dictionary:
            logger.warning("[MATCH] Empty dictionary")
            return MatchResult(False, 0)

        keywords = self.sanitize(dictionary)
        if not keywords:
            logger.warning("[MATCH] Sanitization emptied the dictionary, using raw entries")
            keywords = self._raw_entries(dictionary)
            if not keywords:
                return MatchResult(False, 0)

        if len(keywords) < self.settings.small_dictionary_size:
            logger.debug(f"[MATCH] Small dictionary ({len(keywords)} entries), naive counting")
            return self.naive_match(text, dictionary, min_matches)

        required = self._effective_min_matches(min_matches, len(keywords))
        matched: List[KeywordMatch] = []

        for keyword in keywords:
            if keyword in normalized:
                matched.append(KeywordMatch(keyword, MatchMethod.EXACT))
                if len(matched) >= required:
                    break

        if len(matched) < required:
            logger.debug(f"[MATCH] Exact pass insufficient ({len(matched)}/{required}), trying fuzzy")
            matched.extend(self._fuzzy_pass(normalized, keywords, {m.keyword for m in matched}, required - len(matched)))

        if not matched:
            strategy = MatchStrategy.NONE
        elif any(m.method.is_fuzzy for m in matched):
            strategy = MatchStrategy.EXACT_FUZZY
        else:
            strategy = MatchStrategy.EXACT

        return MatchResult(
            is_valid=len(matched) >= required,
            match_count=len(matched),
            matched_keywords=[m.keyword for m in matched],
            strategy=strategy,
            required_matches=required,
            details=matched,
        )

    def _fuzzy_pass(
        self,
        normalized: str,
        keywords: List[str],
        already_matched: set,
        needed: int,
    ) -> List[KeywordMatch]:
        folded_text = fold_accents(normalized)
        words = folded_text.split()
        found: List[KeywordMatch] = []

        for keyword in keywords:
            if len(found) >= needed:
                break
            if keyword in already_matched:
                continue
            keyword_match = self._fuzzy_keyword(keyword, normalized, folded_text, words)
            if keyword_match:
                found.append(keyword_match)

        logger.debug(f"[MATCH] Fuzzy pass added {len(found)} matches")
        return found

    def _fuzzy_keyword(
        self,
        keyword: str,
        normalized: str,
        folded_text: str,
        words: List[str],
    ) -> Optional[KeywordMatch]:
        folded_keyword = fold_accents(keyword)
        long_keyword = len(keyword) >= self.settings.min_fuzzy_length

        if folded_keyword in folded_text:
            return KeywordMatch(keyword, MatchMethod.ACCENTS, found=folded_keyword)

        if long_keyword:
            similar = self._similar_word(folded_keyword, words)
            if similar:
                word, similarity = similar
                return KeywordMatch(keyword, MatchMethod.SIMILAR, found=word, similarity=similarity)

        if " " in keyword:
            parts = [part for part in keyword.split(" ") if len(part) > 2]
            if parts:
                present = [part for part in parts if part in normalized]
                if len(present) >= math.ceil(len(parts) * self.settings.parts_ratio):
                    return KeywordMatch(keyword, MatchMethod.PARTS, found=" ".join(present))

        if long_keyword:
            span = math.ceil(len(folded_keyword) * self.settings.substring_ratio)
            for start in range(len(folded_keyword) - span + 1):
                piece = folded_keyword[start:start + span]
                if piece in folded_text:
                    return KeywordMatch(keyword, MatchMethod.SUBSTRING, found=piece)

        return None

    def _similar_word(self, keyword: str, words: List[str]) -> Optional[Tuple[str, float]]:
        best: Optional[Tuple[str, float]] = None
        for word in words:
            if abs(len(word) - len(keyword)) > 2:
                continue
            similarity = positional_similarity(word, keyword)
            if similarity > self.settings.similarity_threshold and (best is None or similarity > best[1]):
                best = (word, similarity)
        return best

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _raw_entries(dictionary: Any) -> List[str]:
        if isinstance(dictionary, (str, bytes)) or not isinstance(dictionary, (list, tuple, set, frozenset)):
            return []
        entries: List[str] = []
        for item in dictionary:
            keyword = normalize(item)
            if keyword and keyword not in entries:
                entries.append(keyword)
        return entries

    @staticmethod
    def _effective_min_matches(min_matches: Any, available: int) -> int:
        if isinstance(min_matches, bool) or not isinstance(min_matches, (int, float)) or math.isnan(min_matches) or min_matches < 1:
            if min_matches != 1:
                logger.warning(f"[MATCH] Invalid min_matches ({min_matches!r}), using 1")
            required = 1
        elif math.isinf(min_matches):
            required = available or 1
        else:
            required = max(1, int(min_matches))
        if available and required > available:
            logger.debug(f"[MATCH] min_matches {required} exceeds dictionary size {available}, adjusting")
            required = available
        return required
