from __future__ import annotations

import copy
import json
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from dataflow_definition.config import MetadataDefaults
from dataflow_definition.models import ConnectionBinding, ConnectionDetails

logger = logging.getLogger(__name__)


def build_connection_id(connection_id: str, cluster_id: str | None = None) -> str:
    """Value stored in ``connections[].connectionId``.

    With a cluster id this is the compact JSON object the platform needs to
    bind stored gateway credentials; otherwise the bare id.
    """
    if cluster_id:
        return json.dumps({"ClusterId": cluster_id, "DatasourceId": connection_id}, separators=(",", ":"))
    return connection_id


def connection_exists(connections: Iterable[Any], connection_id: str, stored_value: str) -> bool:
    """True when an entry already references ``connection_id`` in bare or composite form."""
    legacy_fragment = f'"DatasourceId":"{connection_id}"'
    for entry in connections:
        if not isinstance(entry, dict) or "connectionId" not in entry:
            continue
        existing = entry.get("connectionId")
        existing = "" if existing is None else str(existing)
        if existing in (connection_id, stored_value) or legacy_fragment in existing:
            return True
    return False


def add_connections(
    metadata: dict[str, Any] | None,
    bindings: Iterable[ConnectionBinding],
    defaults: MetadataDefaults | None = None,
) -> dict[str, Any]:
    defaults = defaults or MetadataDefaults()
    result = copy.deepcopy(metadata) if metadata else {}
    result.setdefault("documentLocale", defaults.document_locale)

    connections = result.get("connections")
    if not isinstance(connections, list):
        if connections is not None:
            logger.warning("connections is %s, not a list; replacing it", type(connections).__name__)
        connections = []

    added = 0
    for binding in bindings:
        stored_value = build_connection_id(binding.connection_id, binding.cluster_id)
        if connection_exists(connections, binding.connection_id, stored_value):
            logger.debug("Connection %s already registered", binding.connection_id)
            continue
        connections.append(
            {
                "connectionId": stored_value,
                "kind": binding.details.kind,
                "path": binding.details.path,
            }
        )
        added += 1

    result["connections"] = connections
    logger.debug("Added %d connection(s); %d total", added, len(connections))
    return result


def add_connection(
    metadata: dict[str, Any] | None,
    details: ConnectionDetails,
    connection_id: str,
    cluster_id: str | None = None,
    defaults: MetadataDefaults | None = None,
) -> dict[str, Any]:
    binding = ConnectionBinding(connection_id=connection_id, details=details, cluster_id=cluster_id)
    return add_connections(metadata, [binding], defaults=defaults)


def parse_connection_ids(value: str | Sequence[Any] | None) -> list[str]:
    """Normalize a single id, a JSON array string or a sequence into a list of ids."""
    if value is None:
        return []

    items: Sequence[Any]
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                loaded = json.loads(stripped)
            except json.JSONDecodeError:
                loaded = None
            items = loaded if isinstance(loaded, list) else [stripped]
        else:
            items = [stripped]
    else:
        items = value

    ids: list[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        cleaned = item.strip()
        if cleaned and cleaned not in ids:
            ids.append(cleaned)
    return ids
