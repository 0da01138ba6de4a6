"""Commands that read and edit dataflow definitions kept in the local store."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from dataflow_definition.config import get_store_dir
from dataflow_definition.core.connections import parse_connection_ids
from dataflow_definition.core.definition import list_queries
from dataflow_definition.core.ports.store import DefinitionStore
from dataflow_definition.core.service import (
    run_add_connections,
    run_add_query,
    run_get_decoded,
    run_save_document,
    run_update_query_metadata,
)
from dataflow_definition.core.validator import validate_document
from dataflow_definition.models import ConnectionDetails, DocumentValidationResult, MetadataPatch

console = Console()

WorkspaceArg = Annotated[str, typer.Argument(help="Workspace ID.")]
DataflowArg = Annotated[str, typer.Argument(help="Dataflow ID.")]


def _get_store() -> DefinitionStore:
    from dataflow_definition.store.files import FileDefinitionStore

    return FileDefinitionStore(get_store_dir())


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[red]{exc}[/red]")
    raise typer.Exit(1)


def _render_table(title: str, headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
    table = Table(title=title, show_lines=False)
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row))
    console.print(table)


def _print_validation(result: DocumentValidationResult) -> None:
    for error in result.errors:
        console.print(f"[red]error[/red] {error}")
    for warning in result.warnings:
        console.print(f"[yellow]warning[/yellow] {warning}")
    for suggestion in result.suggestions:
        console.print(f"[cyan]suggestion[/cyan] {suggestion}")


def _read_document(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        _fail(FileNotFoundError(f"File not found: {path}"))


def show(workspace_id: WorkspaceArg, dataflow_id: DataflowArg) -> None:
    """Decode a definition and list its queries, metadata and connections."""
    store = _get_store()
    try:
        decoded = asyncio.run(run_get_decoded(store, workspace_id, dataflow_id))
    except (ValueError, FileNotFoundError) as exc:
        _fail(exc)

    for message in decoded.diagnostics:
        console.print(f"[yellow]{message}[/yellow]")

    _render_table(
        "Queries",
        ["name", "attribute", "code_chars"],
        [(q.name, "yes" if q.attribute else "", len(q.code)) for q in list_queries(decoded)],
    )

    metadata = decoded.query_metadata or {}
    entries = metadata.get("queriesMetadata") or {}
    if isinstance(entries, dict):
        _render_table(
            "Query metadata",
            ["name", "queryId", "loadEnabled", "isHidden"],
            [
                (name, e.get("queryId"), e.get("loadEnabled"), e.get("isHidden"))
                for name, e in entries.items()
                if isinstance(e, dict)
            ],
        )

    connections = metadata.get("connections") or []
    if isinstance(connections, list) and connections:
        _render_table(
            "Connections",
            ["connectionId", "kind", "path"],
            [(c.get("connectionId"), c.get("kind"), c.get("path")) for c in connections if isinstance(c, dict)],
        )


def add_query(
    workspace_id: WorkspaceArg,
    dataflow_id: DataflowArg,
    query_name: Annotated[str, typer.Argument(help="Name of the query to add or replace.")],
    code: Annotated[str | None, typer.Option(help="Query expression (a 'let' block or a single expression).")] = None,
    code_file: Annotated[Path | None, typer.Option(help="Read the query expression from a file.")] = None,
    attribute: Annotated[str | None, typer.Option(help="Attribute placed before the declaration.")] = None,
    section_attribute: Annotated[str | None, typer.Option(help="Section-level attribute, e.g. a staging marker.")] = None,
) -> None:
    """Add a query to a dataflow, or replace it in place."""
    if code is not None:
        expression = code
    elif code_file is not None:
        expression = _read_document(code_file)
    else:
        _fail(ValueError("Either --code or --code-file must be provided."))

    store = _get_store()
    try:
        asyncio.run(
            run_add_query(store, workspace_id, dataflow_id, query_name, expression, attribute, section_attribute)
        )
    except (ValueError, FileNotFoundError) as exc:
        _fail(exc)
    console.print(f"[green]Upserted[/green] query '{query_name}' in dataflow {dataflow_id}")


def add_connection(
    workspace_id: WorkspaceArg,
    dataflow_id: DataflowArg,
    connection_ids: Annotated[list[str], typer.Argument(help="Connection ID(s) to register.")],
    kind: Annotated[str, typer.Option(help="Connection type, e.g. SQL or Web.")],
    path: Annotated[str, typer.Option(help="Connection path, e.g. 'server;database'.")],
    cluster_id: Annotated[str | None, typer.Option(help="Gateway cluster ID for credential binding.")] = None,
) -> None:
    """Register connections in a dataflow's query metadata."""
    from dataflow_definition.store.memory import StaticClusterResolver

    ids = parse_connection_ids(connection_ids)
    resolver = StaticClusterResolver({cid: cluster_id for cid in ids}) if cluster_id else None
    details = ConnectionDetails(kind=kind, path=path)

    store = _get_store()
    try:
        asyncio.run(
            run_add_connections(store, workspace_id, dataflow_id, [(cid, details) for cid in ids], resolver=resolver)
        )
    except (ValueError, FileNotFoundError) as exc:
        _fail(exc)
    console.print(f"[green]Registered[/green] {len(ids)} connection(s) in dataflow {dataflow_id}")


def save(
    workspace_id: WorkspaceArg,
    dataflow_id: DataflowArg,
    document_file: Annotated[Path, typer.Argument(help="Mashup section document to save.")],
    validate_only: Annotated[bool, typer.Option(help="Validate and parse without saving.")] = False,
) -> None:
    """Replace a dataflow's mashup document and resync its query metadata."""
    document = _read_document(document_file)
    store = _get_store()
    try:
        result = asyncio.run(run_save_document(store, workspace_id, dataflow_id, document, validate_only))
    except (ValueError, FileNotFoundError) as exc:
        _fail(exc)

    _print_validation(result.validation)
    if result.stage == "validation":
        console.print("[red]Document is not valid.[/red]")
        raise typer.Exit(1)
    if result.stage == "parsing":
        console.print("[red]No shared queries found in the document.[/red]")
        raise typer.Exit(1)

    _render_table("Queries", ["name", "attribute"], [(q.name, q.attribute) for q in result.queries])
    if result.saved:
        console.print(f"[green]Saved[/green] {len(result.queries)} queries to dataflow {dataflow_id}")
    else:
        console.print("[green]Document is valid.[/green]")


def validate(
    document_file: Annotated[Path, typer.Argument(help="Mashup section document to check.")],
) -> None:
    """Check a mashup document for structural problems."""
    result = validate_document(_read_document(document_file))
    _print_validation(result)
    if not result.is_valid:
        raise typer.Exit(1)
    pattern = "Gen2 FastCopy" if result.is_gen2 else "Gen1 Pipeline"
    console.print(f"[green]Valid[/green] ({pattern})")


def patch_metadata(
    workspace_id: WorkspaceArg,
    dataflow_id: DataflowArg,
    query_name: Annotated[str, typer.Argument(help="Query whose metadata entry is patched.")],
    load_enabled: Annotated[bool | None, typer.Option("--load-enabled/--no-load-enabled")] = None,
    hidden: Annotated[bool | None, typer.Option("--hidden/--visible")] = None,
) -> None:
    """Set loadEnabled or isHidden on one query's metadata entry."""
    patch = MetadataPatch(load_enabled=load_enabled, is_hidden=hidden)
    store = _get_store()
    try:
        asyncio.run(run_update_query_metadata(store, workspace_id, dataflow_id, query_name, patch))
    except (ValueError, FileNotFoundError) as exc:
        _fail(exc)
    console.print(f"[green]Patched[/green] metadata for query '{query_name}'")
