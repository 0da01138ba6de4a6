import logging

import typer

from dataflow_definition.cli.definition import add_connection, add_query, patch_metadata, save, show, validate
from dataflow_definition.cli.serve import serve_app
from dataflow_definition.config import get_log_level

app = typer.Typer(
    name="dataflow-definition",
    help="Dataflow definition CLI: edit mashup queries, query metadata and connections.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command("show")(show)
app.command("add-query")(add_query)
app.command("add-connection")(add_connection)
app.command("save")(save)
app.command("validate")(validate)
app.command("patch-metadata")(patch_metadata)
app.add_typer(serve_app, name="serve")


def main() -> None:
    logging.basicConfig(level=get_log_level(), format="%(levelname)s %(name)s: %(message)s")
    app()
