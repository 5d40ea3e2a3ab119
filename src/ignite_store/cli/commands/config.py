"""Show the effective configuration."""

import typer
from rich.table import Table

from ignite_store.cli.app import app
from ignite_store.cli.commands.command_utils import console
from ignite_store.config import get_config
from ignite_store.configurator import resolve_settings
from ignite_store.errors import ConfigurationError


@app.command("config")
def show_config():
    """Validate the vector store settings and print them with defaults applied."""
    app_config = get_config()
    try:
        settings = resolve_settings(app_config.vectorstore)
    except ConfigurationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e.message}")
        raise typer.Exit(1)

    table = Table(title="ignite-store configuration")
    table.add_column("setting", style="cyan")
    table.add_column("value")
    table.add_row("database", app_config.database_name)
    table.add_row("collection", settings.collection_name)
    table.add_row("embedding path", settings.path_name)
    table.add_row("index", settings.index_name)
    table.add_row("top_k", str(settings.top_k))
    table.add_row("max_distance", f"{settings.max_distance:.4f}")
    table.add_row("num_candidates", str(settings.num_candidates))
    table.add_row("initialize_schema", str(settings.initialize_schema))
    table.add_row("embedding provider", app_config.embedding_provider)
    console.print(table)
