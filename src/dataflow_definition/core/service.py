"""Fetch, edit and persist a dataflow definition through the store port.

Each operation is a plain read-modify-write. The store exposes no version
token, so two callers editing the same dataflow can overwrite each other.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from dataflow_definition.config import MetadataDefaults, get_metadata_defaults
from dataflow_definition.core.codec import decode_definition
from dataflow_definition.core.definition import (
    add_connections_to_definition,
    add_query_to_definition,
    sync_mashup_in_definition,
    update_query_metadata,
)
from dataflow_definition.core.parser import parse_queries
from dataflow_definition.core.ports.store import ClusterResolver, DefinitionStore
from dataflow_definition.core.validator import validate_document
from dataflow_definition.models import (
    ConnectionBinding,
    ConnectionDetails,
    DataflowDefinition,
    DecodedDefinition,
    DocumentSaveResult,
    MetadataPatch,
)

logger = logging.getLogger(__name__)


async def run_get_decoded(store: DefinitionStore, workspace_id: str, dataflow_id: str) -> DecodedDefinition:
    definition = await store.fetch_definition(workspace_id, dataflow_id)
    return decode_definition(definition)


async def run_add_query(
    store: DefinitionStore,
    workspace_id: str,
    dataflow_id: str,
    query_name: str,
    code: str,
    attribute: str | None = None,
    section_attribute: str | None = None,
    defaults: MetadataDefaults | None = None,
) -> DataflowDefinition:
    if not query_name.strip():
        raise ValueError("query_name is required")
    if not code.strip():
        raise ValueError("code is required")

    definition = await store.fetch_definition(workspace_id, dataflow_id)
    updated = add_query_to_definition(
        definition,
        query_name,
        code,
        attribute=attribute,
        section_attribute=section_attribute,
        defaults=defaults or get_metadata_defaults(),
    )
    await store.persist_definition(workspace_id, dataflow_id, updated)
    logger.info("Upserted query '%s' in dataflow %s", query_name, dataflow_id)
    return updated


async def _resolve_cluster_id(resolver: ClusterResolver | None, connection_id: str) -> str | None:
    if resolver is None:
        return None
    try:
        return await resolver.resolve_cluster_id(connection_id)
    except Exception:
        logger.warning("Cluster lookup failed for connection %s; storing the bare id", connection_id, exc_info=True)
        return None


async def run_add_connections(
    store: DefinitionStore,
    workspace_id: str,
    dataflow_id: str,
    connections: Sequence[tuple[str, ConnectionDetails]],
    resolver: ClusterResolver | None = None,
    defaults: MetadataDefaults | None = None,
) -> list[ConnectionBinding]:
    """Register connections in the dataflow's metadata.

    Cluster ids come from ``resolver``; a failed lookup falls back to the
    bare connection id.
    """
    if not connections:
        raise ValueError("At least one connection ID is required")

    bindings = [
        ConnectionBinding(
            connection_id=connection_id,
            details=details,
            cluster_id=await _resolve_cluster_id(resolver, connection_id),
        )
        for connection_id, details in connections
    ]

    definition = await store.fetch_definition(workspace_id, dataflow_id)
    updated = add_connections_to_definition(definition, bindings, defaults=defaults or get_metadata_defaults())
    await store.persist_definition(workspace_id, dataflow_id, updated)
    logger.info("Added %d connection(s) to dataflow %s", len(bindings), dataflow_id)
    return bindings


async def run_save_document(
    store: DefinitionStore,
    workspace_id: str,
    dataflow_id: str,
    document: str,
    validate_only: bool = False,
    defaults: MetadataDefaults | None = None,
) -> DocumentSaveResult:
    """Validate a complete mashup document and make it the dataflow's whole state."""
    validation = validate_document(document)
    if not validation.is_valid:
        return DocumentSaveResult(stage="validation", validation=validation)

    queries = parse_queries(document)
    if not queries:
        return DocumentSaveResult(stage="parsing", validation=validation)

    if validate_only:
        return DocumentSaveResult(stage="validated", validation=validation, queries=queries)

    definition = await store.fetch_definition(workspace_id, dataflow_id)
    updated = sync_mashup_in_definition(definition, document, queries, defaults=defaults or get_metadata_defaults())
    await store.persist_definition(workspace_id, dataflow_id, updated)
    logger.info("Saved %d queries to dataflow %s", len(queries), dataflow_id)
    return DocumentSaveResult(stage="saved", validation=validation, queries=queries, saved=True)


async def run_update_query_metadata(
    store: DefinitionStore,
    workspace_id: str,
    dataflow_id: str,
    query_name: str,
    patch: MetadataPatch,
) -> DataflowDefinition:
    definition = await store.fetch_definition(workspace_id, dataflow_id)
    updated = update_query_metadata(definition, query_name, patch)
    await store.persist_definition(workspace_id, dataflow_id, updated)
    return updated
