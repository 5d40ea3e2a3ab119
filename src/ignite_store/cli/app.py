from typing import Optional

import typer


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:  # pragma: no cover
        import ignite_store

        typer.echo(f"ignite-store version: {ignite_store.__version__}")
        raise typer.Exit()


app = typer.Typer(name="ignite-store", no_args_is_help=True)


@app.callback()
def app_callback(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """ignite-store - embed documents and search them in MongoDB Atlas."""
