"""Base64 and JSON codec for the parts of a dataflow definition bundle."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any

from dataflow_definition.models import (
    MASHUP_PATH,
    PLATFORM_PATH,
    QUERY_METADATA_PATH,
    DataflowDefinition,
    DecodedDefinition,
    DefinitionPart,
)

logger = logging.getLogger(__name__)

_JSON_PATHS = frozenset({QUERY_METADATA_PATH.lower(), PLATFORM_PATH.lower()})
_KNOWN_PATHS = _JSON_PATHS | {MASHUP_PATH.lower()}


def encode_text(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_text(payload: str) -> str:
    """Decode a base64 payload to UTF-8 text.

    Line breaks and other ASCII whitespace in the payload are ignored. Raises
    ``ValueError`` (``binascii.Error`` and ``UnicodeDecodeError`` are both
    subclasses) when the payload is not valid base64 or not UTF-8.
    """
    compact = "".join(payload.split())
    return base64.b64decode(compact, validate=True).decode("utf-8")


def dump_json(value: Any) -> str:
    """Serialize JSON the same way every time so unchanged data re-encodes byte-identically."""
    return json.dumps(value, indent=2, ensure_ascii=False)


def _load_json_object(text: str) -> dict[str, Any]:
    value = json.loads(text)
    if not isinstance(value, dict):
        raise ValueError(f"expected a JSON object, got {type(value).__name__}")
    return value


def decode_definition(definition: DataflowDefinition | None) -> DecodedDefinition:
    """Decode the well-known parts of a definition.

    A part that cannot be decoded leaves its field unset and adds a
    diagnostic; the remaining parts are still decoded. When a well-known
    path appears more than once, the first occurrence wins and each repeat
    is reported.
    """
    raw_parts = list(definition.parts) if definition is not None else []
    decoded = DecodedDefinition(raw_parts=raw_parts)
    seen: set[str] = set()

    for part in raw_parts:
        role = part.path.lower()
        if role not in _KNOWN_PATHS:
            continue
        if role in seen:
            _report(decoded, f"Part '{part.path}' duplicates an earlier '{role}' part; ignoring it")
            continue
        seen.add(role)
        if not part.payload:
            _report(decoded, f"Part '{part.path}' has an empty payload")
            continue

        try:
            text = decode_text(part.payload)
        except ValueError as exc:
            _report(decoded, f"Failed to decode part '{part.path}': {exc}")
            continue

        if role == MASHUP_PATH.lower():
            decoded.mashup_query = text
            continue

        try:
            value = _load_json_object(text)
        except ValueError as exc:
            _report(decoded, f"Failed to parse JSON in part '{part.path}': {exc}")
            continue

        if role == QUERY_METADATA_PATH.lower():
            decoded.query_metadata = value
        else:
            decoded.platform_metadata = value

    return decoded


def _report(decoded: DecodedDefinition, message: str) -> None:
    logger.warning("%s", message)
    decoded.diagnostics.append(message)


def encode_definition(decoded: DecodedDefinition) -> DataflowDefinition:
    """Rebuild a definition from its decoded view.

    Parts whose decoded value is unset (including undecodable ones) are
    passed through untouched, as are repeats of a well-known path.
    """
    parts: list[DefinitionPart] = []
    seen: set[str] = set()
    for part in decoded.raw_parts:
        role = part.path.lower()
        if role in seen:
            parts.append(part.model_copy())
            continue
        seen.add(role)
        if role == MASHUP_PATH.lower() and decoded.mashup_query is not None:
            parts.append(part.model_copy(update={"payload": encode_text(decoded.mashup_query)}))
        elif role == QUERY_METADATA_PATH.lower() and decoded.query_metadata is not None:
            parts.append(part.model_copy(update={"payload": encode_text(dump_json(decoded.query_metadata))}))
        elif role == PLATFORM_PATH.lower() and decoded.platform_metadata is not None:
            parts.append(part.model_copy(update={"payload": encode_text(dump_json(decoded.platform_metadata))}))
        else:
            parts.append(part.model_copy())
    return DataflowDefinition(parts=parts)


def replace_part_text(definition: DataflowDefinition, path: str, text: str) -> DataflowDefinition:
    """Return a copy of ``definition`` with one part's payload replaced.

    The part is matched case-insensitively and keeps its original path
    spelling. When no part matches, a new one is appended under ``path``.
    """
    payload = encode_text(text)
    wanted = path.lower()
    parts: list[DefinitionPart] = []
    replaced = False
    for part in definition.parts:
        if not replaced and part.path.lower() == wanted:
            parts.append(part.model_copy(update={"payload": payload}))
            replaced = True
        else:
            parts.append(part.model_copy())
    if not replaced:
        parts.append(DefinitionPart(path=path, payload=payload))
    return DataflowDefinition(parts=parts)


def replace_part_json(definition: DataflowDefinition, path: str, value: dict[str, Any]) -> DataflowDefinition:
    return replace_part_text(definition, path, dump_json(value))


def read_part_text(definition: DataflowDefinition, path: str) -> str | None:
    """Decoded text of the part at ``path``, or None when absent or undecodable."""
    part = definition.find_part(path)
    if part is None or not part.payload:
        return None
    try:
        return decode_text(part.payload)
    except ValueError:
        logger.warning("Failed to decode part '%s'", part.path)
        return None


def read_part_json(definition: DataflowDefinition, path: str) -> dict[str, Any] | None:
    text = read_part_text(definition, path)
    if text is None:
        return None
    try:
        return _load_json_object(text)
    except ValueError:
        logger.warning("Failed to parse JSON in part '%s'", path)
        return None
