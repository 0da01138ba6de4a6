"""Definition-level edits: each one decodes the parts it needs, edits them and re-encodes.

Every function returns a new ``DataflowDefinition``; the input is never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from dataflow_definition.config import MetadataDefaults
from dataflow_definition.core.codec import (
    read_part_json,
    read_part_text,
    replace_part_json,
    replace_part_text,
)
from dataflow_definition.core.connections import add_connections
from dataflow_definition.core.metadata import (
    IdFactory,
    ResyncQueries,
    UpsertQuery,
    apply_metadata_operation,
    new_query_id,
    patch_query_metadata,
)
from dataflow_definition.core.parser import parse_queries, unquote_identifier
from dataflow_definition.core.synthesizer import upsert_query
from dataflow_definition.models import (
    MASHUP_PATH,
    QUERY_METADATA_PATH,
    ConnectionBinding,
    DataflowDefinition,
    DecodedDefinition,
    MetadataPatch,
    ParsedQuery,
)

logger = logging.getLogger(__name__)


def _current_document(definition: DataflowDefinition) -> str:
    part = definition.find_part(MASHUP_PATH)
    if part is None or not part.payload:
        return ""
    text = read_part_text(definition, MASHUP_PATH)
    if text is None:
        raise ValueError(f"Part '{part.path}' could not be decoded; refusing to overwrite it")
    return text


def _current_metadata(definition: DataflowDefinition) -> dict[str, Any] | None:
    metadata = read_part_json(definition, QUERY_METADATA_PATH)
    if metadata is None and definition.find_part(QUERY_METADATA_PATH) is not None:
        logger.warning("Rebuilding %s from scratch", QUERY_METADATA_PATH)
    return metadata


def add_query_to_definition(
    definition: DataflowDefinition,
    query_name: str,
    code: str,
    attribute: str | None = None,
    section_attribute: str | None = None,
    defaults: MetadataDefaults | None = None,
    id_factory: IdFactory = new_query_id,
) -> DataflowDefinition:
    """Add or replace one query in the mashup document and register it in the metadata."""
    document = upsert_query(_current_document(definition), query_name, code, attribute, section_attribute)
    updated = replace_part_text(definition, MASHUP_PATH, document)

    metadata = apply_metadata_operation(
        _current_metadata(definition),
        UpsertQuery(name=unquote_identifier(query_name), attribute=attribute),
        defaults=defaults,
        id_factory=id_factory,
    )
    return replace_part_json(updated, QUERY_METADATA_PATH, metadata)


def add_connections_to_definition(
    definition: DataflowDefinition,
    bindings: Iterable[ConnectionBinding],
    defaults: MetadataDefaults | None = None,
) -> DataflowDefinition:
    metadata = add_connections(_current_metadata(definition), bindings, defaults=defaults)
    return replace_part_json(definition, QUERY_METADATA_PATH, metadata)


def sync_mashup_in_definition(
    definition: DataflowDefinition,
    document: str,
    queries: Sequence[ParsedQuery] | None = None,
    defaults: MetadataDefaults | None = None,
    id_factory: IdFactory = new_query_id,
) -> DataflowDefinition:
    """Replace the whole mashup document and make the metadata mirror it exactly."""
    if queries is None:
        queries = parse_queries(document)

    updated = replace_part_text(definition, MASHUP_PATH, document)
    logger.debug("Replaced %s with new document (%d chars)", MASHUP_PATH, len(document))

    metadata = apply_metadata_operation(
        _current_metadata(definition),
        ResyncQueries(queries=queries),
        defaults=defaults,
        id_factory=id_factory,
    )
    return replace_part_json(updated, QUERY_METADATA_PATH, metadata)


def update_query_metadata(definition: DataflowDefinition, query_name: str, patch: MetadataPatch) -> DataflowDefinition:
    metadata = read_part_json(definition, QUERY_METADATA_PATH)
    if metadata is None:
        raise ValueError(f"Dataflow definition does not contain a readable {QUERY_METADATA_PATH}")
    return replace_part_json(definition, QUERY_METADATA_PATH, patch_query_metadata(metadata, query_name, patch))


def list_queries(decoded: DecodedDefinition) -> list[ParsedQuery]:
    """Queries of a decoded definition, empty when it has no mashup document."""
    return parse_queries(decoded.mashup_query or "")
