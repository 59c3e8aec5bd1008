#!/usr/bin/env python3
"""Utility helpers for sanitizing translated values before writing to XML."""

from typing import List, Optional
import re

__all__ = [
    "strip_invalid_xml_chars",
    "find_missing_placeholders",
    "sanitize_translation",
]

# Characters outside the XML 1.0 "Char" production; lxml refuses to store them.
_INVALID_XML_CHARS = re.compile(
    "[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]|[\ud800-\udfff]"
)
# .NET composite format items ({0}, {1:N2}, {Name}) and printf style tokens.
_PLACEHOLDER_PATTERN = re.compile(r"\{[^{}\s]+\}|%\d*\$?[sdif]")
_LEADING_WHITESPACE = re.compile(r"^\s*")
_TRAILING_WHITESPACE = re.compile(r"\s*$")


def _normalize_line_breaks(text: str) -> str:
    if not text:
        return text
    return text.replace("\r\n", "\n").replace("\r", "\n")


def strip_invalid_xml_chars(text: Optional[str]) -> Optional[str]:
    """Remove characters that cannot appear in an XML 1.0 document."""
    if text is None:
        return None
    return _INVALID_XML_CHARS.sub("", text)


def _align_outer_whitespace(text: str, reference_text: Optional[str]) -> str:
    """
    Give the translation the same leading and trailing whitespace as the source.

    The translation service trims values, so whitespace that was significant in
    an xml:space="preserve" record would otherwise be lost.
    """
    if reference_text is None or not reference_text.strip():
        return text
    leading = _LEADING_WHITESPACE.match(reference_text).group(0)
    trailing = _TRAILING_WHITESPACE.search(reference_text).group(0)
    return f"{leading}{text.strip()}{trailing}"


def find_missing_placeholders(source_text: str, translated_text: str) -> List[str]:
    """Return placeholders present in the source but absent from the translation."""
    if not source_text:
        return []
    translated_tokens = set(_PLACEHOLDER_PATTERN.findall(translated_text or ""))
    missing: List[str] = []
    for token in _PLACEHOLDER_PATTERN.findall(source_text):
        if token not in translated_tokens and token not in missing:
            missing.append(token)
    return missing


def sanitize_translation(
    text: Optional[str], reference_text: Optional[str] = None
) -> str:
    """Prepare a translated value so it can be written into a resource record."""
    if not text:
        return ""

    value = _normalize_line_breaks(text)
    value = strip_invalid_xml_chars(value)
    value = _align_outer_whitespace(value, _normalize_line_breaks(reference_text))
    return value
