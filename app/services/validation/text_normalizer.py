"""
Text Normalizer
===============

Small, allocation-light helpers shared by the matcher and the extractor:
lowercasing, accent folding, whitespace collapsing and accent-tolerant
regex construction for Spanish text.
"""

import re
from typing import Any


# One character in, one character out: folded text keeps the same offsets
_ACCENT_TABLE = str.maketrans(
    "áàâãäéèêëíìîïóòôõöúùûüñçÁÀÂÃÄÉÈÊËÍÌÎÏÓÒÔÕÖÚÙÛÜÑÇ",
    "aaaaaeeeeiiiiooooouuuuncAAAAAEEEEIIIIOOOOOUUUUNC",
)

_ACCENT_CLASSES = {
    "a": "[aáàâãä]",
    "e": "[eéèêë]",
    "i": "[iíìîï]",
    "o": "[oóòôõö0]",
    "u": "[uúùûü]",
    "n": "[nñ]",
    "c": "[cç]",
}

_WHITESPACE = re.compile(r"\s+")


def fold_accents(text: str) -> str:
    """Replace accented Latin letters with their base letter."""
    return text.translate(_ACCENT_TABLE)


def normalize(value: Any) -> str:
    """Stringify, lowercase and trim."""
    if value is None:
        return ""
    return str(value).lower().strip()


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def accent_tolerant_pattern(phrase: str) -> str:
    """
    Regex source matching phrase regardless of accents and spacing.

    "Tecnología en Software" -> "t[eé...]cn[oó...]l..." with flexible \\s+
    between words. Meant to be compiled with re.IGNORECASE.
    """
    parts = []
    for char in fold_accents(phrase.strip().lower()):
        if char.isspace():
            if parts and parts[-1] != r"\s+":
                parts.append(r"\s+")
        elif char in _ACCENT_CLASSES:
            parts.append(_ACCENT_CLASSES[char])
        else:
            parts.append(re.escape(char))
    return "".join(parts)
