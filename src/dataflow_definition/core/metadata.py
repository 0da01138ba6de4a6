"""Keep ``queryMetadata.json`` consistent with the queries in the mashup document.

Two modes exist. ``upsert_entry`` is additive: it touches one query (and the
destination query it references) and leaves every other entry alone.
``resync`` treats a query list as the whole truth and rebuilds
``queriesMetadata`` from it. Both go through ``apply_metadata_operation`` so
the chosen mode is always explicit at the call site.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from dataflow_definition.config import MetadataDefaults
from dataflow_definition.core.parser import extract_destination_query_name
from dataflow_definition.models import MetadataPatch, ParsedQuery, QueryMetadataEntry

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


def new_query_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class UpsertQuery:
    name: str
    attribute: str | None = None


@dataclass(frozen=True)
class ResyncQueries:
    queries: Sequence[ParsedQuery]


MetadataOperation = UpsertQuery | ResyncQueries


def _prepare(metadata: dict[str, Any] | None, defaults: MetadataDefaults) -> dict[str, Any]:
    result = copy.deepcopy(metadata) if metadata else {}
    if "documentLocale" not in result:
        result["documentLocale"] = defaults.document_locale
    return result


def _queries_map(metadata: dict[str, Any]) -> dict[str, Any]:
    queries = metadata.get("queriesMetadata")
    if isinstance(queries, dict):
        return queries
    if queries is not None:
        logger.warning("queriesMetadata is %s, not an object; replacing it", type(queries).__name__)
    return {}


def _new_entry(name: str, query_id: str, defaults: MetadataDefaults, hidden: bool = False) -> dict[str, Any]:
    entry = QueryMetadataEntry(
        query_id=query_id,
        query_name=name,
        load_enabled=defaults.load_enabled,
        is_hidden=True if hidden else None,
    )
    return entry.model_dump(by_alias=True, exclude_none=True)


def upsert_entry(
    metadata: dict[str, Any] | None,
    query_name: str,
    referenced_destination: str | None = None,
    defaults: MetadataDefaults | None = None,
    id_factory: IdFactory = new_query_id,
) -> dict[str, Any]:
    """Register ``query_name`` without disturbing other entries.

    An existing entry keeps its ``queryId``; only a missing ``loadEnabled``
    is backfilled. ``referenced_destination`` is marked hidden, created as
    a hidden placeholder when it is not known yet.
    """
    defaults = defaults or MetadataDefaults()
    result = _prepare(metadata, defaults)
    queries = _queries_map(result)

    existing = queries.get(query_name)
    if isinstance(existing, dict):
        existing.setdefault("loadEnabled", defaults.load_enabled)
    else:
        queries[query_name] = _new_entry(query_name, id_factory(), defaults)

    if referenced_destination:
        destination = queries.get(referenced_destination)
        if isinstance(destination, dict):
            destination["isHidden"] = True
        else:
            queries[referenced_destination] = _new_entry(referenced_destination, id_factory(), defaults, hidden=True)

    result["queriesMetadata"] = queries
    return result


def destination_names(queries: Sequence[ParsedQuery]) -> set[str]:
    """Casefolded names referenced by any query's ``[DataDestinations]`` attribute."""
    names: set[str] = set()
    for query in queries:
        referenced = extract_destination_query_name(query.attribute)
        if referenced:
            names.add(referenced.casefold())
    return names


def resync(
    metadata: dict[str, Any] | None,
    queries: Sequence[ParsedQuery],
    defaults: MetadataDefaults | None = None,
    id_factory: IdFactory = new_query_id,
) -> dict[str, Any]:
    """Rebuild ``queriesMetadata`` so it holds exactly the names in ``queries``.

    Ids are reused by name. Names only present in the old metadata are
    dropped. Duplicate names collapse into one entry.
    """
    defaults = defaults or MetadataDefaults()
    result = _prepare(metadata, defaults)
    previous = _queries_map(result)
    hidden = destination_names(queries)

    rebuilt: dict[str, Any] = {}
    for query in queries:
        if query.name in rebuilt:
            logger.warning("Duplicate query name '%s' in resync input; keeping one entry", query.name)

        old = previous.get(query.name)
        query_id = old.get("queryId") if isinstance(old, dict) else None
        rebuilt[query.name] = _new_entry(
            query.name,
            str(query_id) if query_id else id_factory(),
            defaults,
            hidden=query.name.casefold() in hidden,
        )

    result["queriesMetadata"] = rebuilt
    logger.debug("Synced query metadata: %d queries, %d hidden", len(rebuilt), len(hidden))
    return result


def apply_metadata_operation(
    metadata: dict[str, Any] | None,
    operation: MetadataOperation,
    defaults: MetadataDefaults | None = None,
    id_factory: IdFactory = new_query_id,
) -> dict[str, Any]:
    if isinstance(operation, UpsertQuery):
        return upsert_entry(
            metadata,
            operation.name,
            extract_destination_query_name(operation.attribute),
            defaults=defaults,
            id_factory=id_factory,
        )
    if isinstance(operation, ResyncQueries):
        return resync(metadata, operation.queries, defaults=defaults, id_factory=id_factory)
    raise TypeError(f"Unsupported metadata operation: {type(operation).__name__}")


def patch_query_metadata(metadata: dict[str, Any] | None, query_name: str, patch: MetadataPatch) -> dict[str, Any]:
    """Set only the fields present in ``patch`` on an existing query entry."""
    result = copy.deepcopy(metadata) if metadata else {}
    queries = result.get("queriesMetadata")
    if not isinstance(queries, dict):
        raise ValueError("queryMetadata.json does not contain a queriesMetadata section")

    entry = queries.get(query_name)
    if not isinstance(entry, dict):
        raise ValueError(f"Query '{query_name}' not found in queriesMetadata")

    entry.update(patch.model_dump(by_alias=True, exclude_none=True))
    return result
