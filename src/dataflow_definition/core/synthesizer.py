"""Insert or replace a query declaration in a mashup section document."""

from __future__ import annotations

import logging
import re

from dataflow_definition.core.parser import find_query, is_staging_attribute, unquote_identifier
from dataflow_definition.core.scanner import (
    find_matching_open_bracket,
    in_spans,
    last_non_space_before,
    literal_spans,
)

logger = logging.getLogger(__name__)

DEFAULT_SECTION_HEADER = "section Section1;"
LINE_BREAK = "\r\n"

_BARE_IDENTIFIER_RE = re.compile(r"[A-Za-z_]\w*")
_LET_RE = re.compile(r"let\b", re.IGNORECASE)
_SECTION_HEADER_RE = re.compile(r"\bsection\s+(?:#\"(?:[^\"]|\"\")+\"|\w+)\s*;", re.IGNORECASE)
_ATTRIBUTE_KEY_RE = re.compile(r"\[\s*(\w+)")


def normalize_query_name(name: str) -> str:
    """Return ``name`` as it must appear after ``shared``.

    Anything that is not a bare identifier (spaces, parentheses, ...) is
    written in the ``#"..."`` quoted form.
    """
    if name.startswith('#"') and name.endswith('"') and len(name) >= 3:
        return name
    if _BARE_IDENTIFIER_RE.fullmatch(name):
        return name
    escaped = name.replace('"', '""')
    return f'#"{escaped}"'


def wrap_expression(code: str) -> str:
    """Make ``code`` a ``let`` block so every stored query is a complete expression."""
    trimmed = code.strip()
    if _LET_RE.match(trimmed):
        return trimmed
    return f"let\n Source = {trimmed}\n in Source"


def build_query_declaration(name: str, code: str, attribute: str | None = None) -> str:
    declaration = f"shared {normalize_query_name(name)} = {wrap_expression(code)};"
    if attribute and attribute.strip():
        return f"{attribute.strip()}{LINE_BREAK}{declaration}"
    return declaration


def is_bare_section(document: str) -> bool:
    stripped = document.strip()
    return not stripped or _SECTION_HEADER_RE.fullmatch(stripped) is not None


def _attribute_key(attribute: str) -> str | None:
    match = _ATTRIBUTE_KEY_RE.match(attribute.strip())
    return match.group(1).lower() if match else None


def _has_section_attribute(document: str, header_start: int, section_attribute: str) -> bool:
    wanted = section_attribute.strip()
    if wanted in document[:header_start]:
        return True

    # Staging markers are hidden from query attributes, so scan brackets directly.
    close = last_non_space_before(document, header_start)
    if close < 0 or document[close] != "]":
        return False
    opening = find_matching_open_bracket(document, close)
    if opening < 0:
        return False
    existing = _attribute_key(document[opening : close + 1])
    return existing is not None and existing == _attribute_key(wanted)


def _find_section_header(document: str) -> re.Match[str] | None:
    spans = literal_spans(document)
    for match in _SECTION_HEADER_RE.finditer(document):
        if not in_spans(spans, match.start()):
            return match
    return None


def apply_section_attribute(document: str, section_attribute: str | None) -> str:
    """Insert ``section_attribute`` right before the section header if it is not there yet."""
    if not section_attribute or not section_attribute.strip():
        return document

    header = _find_section_header(document)
    if header is None:
        logger.debug("No section header found; section attribute not applied")
        return document
    if _has_section_attribute(document, header.start(), section_attribute):
        return document

    return f"{document[: header.start()]}{section_attribute.strip()}{LINE_BREAK}{document[header.start() :]}"


def upsert_query(
    document: str,
    name: str,
    code: str,
    attribute: str | None = None,
    section_attribute: str | None = None,
) -> str:
    """Return ``document`` with the query ``name`` replaced in place or appended.

    Text outside the replaced declaration is kept byte-for-byte. An empty
    document (or one holding only a section header) gets a section header
    first. A staging marker passed as ``attribute`` is applied at section
    level instead.
    """
    if attribute and is_staging_attribute(attribute.strip()):
        # Staging markers belong to the section, never to a single query.
        if not section_attribute or not section_attribute.strip():
            section_attribute = attribute
        else:
            logger.debug("Dropping staging attribute on query %s; a section attribute was given", name)
        attribute = None

    declaration = build_query_declaration(name, code, attribute)
    existing = find_query(document, unquote_identifier(name))

    if existing is not None:
        result = f"{document[: existing.start]}{declaration}{document[existing.end :]}"
    elif is_bare_section(document):
        header = document.strip() or DEFAULT_SECTION_HEADER
        if section_attribute and section_attribute.strip():
            header = f"{section_attribute.strip()}{LINE_BREAK}{header}"
        return f"{header}{LINE_BREAK}{declaration}"
    else:
        separator = "" if document.endswith("\n") else LINE_BREAK
        result = f"{document}{separator}{declaration}"

    return apply_section_attribute(result, section_attribute)
