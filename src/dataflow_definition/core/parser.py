"""Extract ``shared`` query declarations from a mashup section document."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from dataflow_definition.core.scanner import (
    find_matching_open_bracket,
    in_spans,
    last_non_space_before,
    literal_spans,
)
from dataflow_definition.models import ParsedQuery

logger = logging.getLogger(__name__)

_DECLARATION_RE = re.compile(r'\bshared\s+(#"(?:[^"]|"")+"|\w+)\s*=\s*', re.IGNORECASE)
_DESTINATIONS_MARKER_RE = re.compile(r"\[\s*DataDestinations\b", re.IGNORECASE)
_DESTINATION_QUERY_NAME_RE = re.compile(r'QueryName\s*=\s*"([^"]+)"', re.IGNORECASE)

STAGING_MARKER = "[StagingDefinition"


@dataclass(frozen=True)
class QueryDeclaration:
    """A declaration located in the document text.

    ``start`` is the offset of the attribute (or of ``shared`` when there is
    none) and ``end`` is the offset just past the terminating semicolon.
    """

    name: str
    code: str
    attribute: str
    start: int
    end: int

    def to_parsed_query(self) -> ParsedQuery:
        return ParsedQuery(name=self.name, code=self.code, attribute=self.attribute)


def unquote_identifier(token: str) -> str:
    if token.startswith('#"') and token.endswith('"') and len(token) >= 3:
        return token[2:-1].replace('""', '"')
    return token


def is_staging_attribute(attribute: str) -> bool:
    return attribute.lower().startswith(STAGING_MARKER.lower())


def find_attribute_before(text: str, index: int) -> tuple[int, str] | None:
    """Locate a bracketed attribute that ends right before ``index``.

    Returns ``(start_offset, attribute_text)`` or None. Section-level staging
    markers are never returned as a query attribute.
    """
    close = last_non_space_before(text, index)
    if close < 0 or text[close] != "]":
        return None

    opening = find_matching_open_bracket(text, close)
    if opening < 0:
        logger.debug("Unbalanced attribute before offset %d; treating as no attribute", index)
        return None

    attribute = text[opening : close + 1].strip()
    if is_staging_attribute(attribute):
        return None
    return opening, attribute


def _last_code_semicolon(text: str, start: int, end: int, spans: list[tuple[int, int]]) -> int:
    pos = text.rfind(";", start, end)
    while pos >= 0 and in_spans(spans, pos):
        pos = text.rfind(";", start, pos)
    return pos


def find_declarations(text: str) -> list[QueryDeclaration]:
    spans = literal_spans(text)
    # A "shared" inside a comment or string literal is not a declaration.
    matches = [m for m in _DECLARATION_RE.finditer(text) if not in_spans(spans, m.start())]
    attributes = [find_attribute_before(text, match.start()) for match in matches]

    # An "attribute" that reaches back into the previous declaration's body is
    # really the tail of an unterminated expression.
    for i in range(1, len(matches)):
        found = attributes[i]
        if found is not None and found[0] < matches[i - 1].end():
            logger.debug("Ignoring attribute overlapping declaration at offset %d", matches[i - 1].start())
            attributes[i] = None

    declarations: list[QueryDeclaration] = []
    for i, match in enumerate(matches):
        body_start = match.end()
        if i + 1 < len(matches):
            following = attributes[i + 1]
            boundary = following[0] if following is not None else matches[i + 1].start()
        else:
            boundary = len(text)

        semicolon = _last_code_semicolon(text, body_start, boundary, spans)
        if semicolon >= 0:
            code_end = semicolon + 1
        else:
            code_end = body_start + len(text[body_start:boundary].rstrip())

        code = text[body_start:code_end].strip()
        if code.endswith(";"):
            code = code[:-1].strip()

        found = attributes[i]
        declarations.append(
            QueryDeclaration(
                name=unquote_identifier(match.group(1)),
                code=code,
                attribute=found[1] if found is not None else "",
                start=found[0] if found is not None else match.start(),
                end=code_end,
            )
        )

    return declarations


def parse_queries(text: str) -> list[ParsedQuery]:
    """Return every shared query in document order. A document without any yields []."""
    return [declaration.to_parsed_query() for declaration in find_declarations(text)]


def find_query(text: str, name: str) -> QueryDeclaration | None:
    for declaration in find_declarations(text):
        if declaration.name == name:
            return declaration
    return None


def extract_destination_query_name(attribute: str | None) -> str | None:
    """Name of the query referenced by a ``[DataDestinations ...]`` attribute.

    Example: ``[DataDestinations = {[Definition = [Kind = "Reference",
    QueryName = "Customers_DataDestination"]]}]`` yields
    ``Customers_DataDestination``.
    """
    if not attribute or not _DESTINATIONS_MARKER_RE.search(attribute):
        return None
    match = _DESTINATION_QUERY_NAME_RE.search(attribute)
    return match.group(1) if match else None
