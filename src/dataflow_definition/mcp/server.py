"""FastMCP server exposing dataflow definition tools."""

from __future__ import annotations

from typing import Any

from fastmcp import FastMCP
from pydantic import ValidationError

from dataflow_definition.core.connections import parse_connection_ids
from dataflow_definition.core.definition import list_queries
from dataflow_definition.core.ports.store import ClusterResolver, DefinitionStore
from dataflow_definition.core.service import (
    run_add_connections,
    run_add_query,
    run_get_decoded,
    run_save_document,
    run_update_query_metadata,
)
from dataflow_definition.core.validator import validate_document as _validate_document
from dataflow_definition.models import ConnectionDetails, MetadataPatch
from dataflow_definition.store.memory import StaticClusterResolver


def _failure(exc: Exception) -> dict[str, Any]:
    return {"success": False, "message": str(exc)}


def create_mcp_server(store: DefinitionStore, resolver: ClusterResolver | None = None) -> FastMCP:
    """Create a FastMCP server wired to the given definition store."""

    mcp = FastMCP(
        "dataflow-definition",
        instructions="Read and edit dataflow definitions: mashup queries, query metadata and connections.",
    )

    @mcp.tool()
    async def get_decoded_definition(workspace_id: str, dataflow_id: str) -> dict[str, Any]:
        """Decode a dataflow definition and list its queries."""
        try:
            decoded = await run_get_decoded(store, workspace_id, dataflow_id)
        except (ValueError, FileNotFoundError) as exc:
            return _failure(exc)
        return {
            "success": True,
            "queryMetadata": decoded.query_metadata,
            "mashupQuery": decoded.mashup_query,
            "platformMetadata": decoded.platform_metadata,
            "queries": [q.model_dump() for q in list_queries(decoded)],
            "diagnostics": decoded.diagnostics,
        }

    @mcp.tool()
    async def add_or_update_query(
        workspace_id: str,
        dataflow_id: str,
        query_name: str,
        code: str,
        attribute: str | None = None,
        section_attribute: str | None = None,
    ) -> dict[str, Any]:
        """Add a query to the mashup document, or replace it in place, and register it in the metadata."""
        try:
            await run_add_query(store, workspace_id, dataflow_id, query_name, code, attribute, section_attribute)
        except (ValueError, FileNotFoundError) as exc:
            return _failure(exc)
        return {"success": True, "queryName": query_name, "message": f"Added/updated query '{query_name}'"}

    @mcp.tool()
    async def add_connections(
        workspace_id: str,
        dataflow_id: str,
        connection_ids: str | list[str],
        kind: str,
        path: str,
        cluster_id: str | None = None,
    ) -> dict[str, Any]:
        """Register one or more connections (same kind and path) in the dataflow's metadata.

        ``cluster_id`` binds every connection to that gateway cluster; without
        it the server's resolver (if any) is asked per connection.
        """
        ids = parse_connection_ids(connection_ids)
        details = ConnectionDetails(kind=kind, path=path)
        lookup = StaticClusterResolver({cid: cluster_id for cid in ids}) if cluster_id else resolver
        try:
            bindings = await run_add_connections(
                store, workspace_id, dataflow_id, [(cid, details) for cid in ids], resolver=lookup
            )
        except (ValueError, FileNotFoundError) as exc:
            return _failure(exc)
        return {
            "success": True,
            "connectionIds": ids,
            "clusterIds": {b.connection_id: b.cluster_id for b in bindings},
        }

    @mcp.tool()
    async def validate_document(document: str) -> dict[str, Any]:
        """Check a mashup section document for structural problems."""
        return _validate_document(document).model_dump()

    @mcp.tool()
    async def save_document(
        workspace_id: str, dataflow_id: str, document: str, validate_only: bool = False
    ) -> dict[str, Any]:
        """Validate a complete mashup document and make it the dataflow's whole state."""
        try:
            result = await run_save_document(store, workspace_id, dataflow_id, document, validate_only)
        except (ValueError, FileNotFoundError) as exc:
            return _failure(exc)
        return {"success": result.stage in ("validated", "saved"), **result.model_dump()}

    @mcp.tool()
    async def update_query_metadata(
        workspace_id: str, dataflow_id: str, query_name: str, patch: dict[str, Any]
    ) -> dict[str, Any]:
        """Set loadEnabled, isHidden or destinationSettings on one query's metadata entry."""
        try:
            metadata_patch = MetadataPatch.model_validate(patch)
            await run_update_query_metadata(store, workspace_id, dataflow_id, query_name, metadata_patch)
        except (ValidationError, ValueError, FileNotFoundError) as exc:
            return _failure(exc)
        return {"success": True, "queryName": query_name, "appliedPatch": metadata_patch.model_dump(by_alias=True)}

    return mcp
