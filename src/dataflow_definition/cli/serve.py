import typer
from rich.console import Console

serve_app = typer.Typer(help="Start servers.")
console = Console(stderr=True)


@serve_app.command("mcp")
def mcp(
    transport: str = "stdio",
) -> None:
    """Start the MCP server over the local definition store."""
    from dataflow_definition.config import get_store_dir
    from dataflow_definition.mcp.server import create_mcp_server
    from dataflow_definition.store.files import FileDefinitionStore

    server = create_mcp_server(FileDefinitionStore(get_store_dir()))
    console.print(f"[green]Starting MCP server (transport: {transport})[/green]")
    server.run(transport=transport)  # type: ignore[arg-type]
