"""Commands that add, search and delete documents."""

import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.table import Table

from ignite_store.cli.app import app
from ignite_store.cli.commands.command_utils import console, run_with_store
from ignite_store.document import Document
from ignite_store.vectorstore.base import SearchRequest, VectorStore


def _parse_metadata(pairs: Optional[List[str]]) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Metadata must look like key=value, got {pair!r}")
        metadata[key.strip()] = value
    return metadata


@app.command()
def add(
    paths: List[Path] = typer.Argument(..., help="Text files to embed and store", exists=True),
    meta: Optional[List[str]] = typer.Option(
        None, "--meta", "-m", help="Metadata applied to every document, as key=value"
    ),
):
    """Embed text files and store them. Each file's path is its document id."""
    metadata = _parse_metadata(meta)
    documents = [
        Document(
            content=path.read_text(encoding="utf-8"),
            metadata={**metadata, "source": str(path)},
            id=str(path),
        )
        for path in paths
    ]

    async def _add(store: VectorStore) -> None:
        await store.add(documents)

    run_with_store(_add)
    console.print(f"[green]Added {len(documents)} document(s)[/green]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Text to search for"),
    top_k: Optional[int] = typer.Option(None, "--top-k", "-k", help="Maximum number of results"),
    threshold: Optional[float] = typer.Option(
        None, "--threshold", "-t", help="Minimum similarity in [0, 1]"
    ),
    filter_json: Optional[str] = typer.Option(
        None, "--filter", "-f", help='Metadata filter as JSON, e.g. {"lang": "en"}'
    ),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
):
    """Search stored documents by similarity."""
    try:
        filter_expression = json.loads(filter_json) if filter_json else None
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"Invalid filter JSON: {e}")

    request = SearchRequest(
        query=query,
        top_k=top_k,
        similarity_threshold=threshold,
        filter_expression=filter_expression,
    )

    async def _search(store: VectorStore) -> list[Document]:
        return await store.similarity_search(request)

    results = run_with_store(_search)

    if as_json:
        payload = [
            {"id": doc.id, "score": doc.score, "content": doc.content, "metadata": doc.metadata}
            for doc in results
        ]
        typer.echo(json.dumps(payload, indent=2, default=str))
        return

    if not results:
        console.print("[yellow]No matching documents[/yellow]")
        return

    table = Table(title=f"Results for {query!r}")
    table.add_column("id", style="cyan")
    table.add_column("score", justify="right")
    table.add_column("content")
    for doc in results:
        snippet = doc.content if len(doc.content) <= 80 else doc.content[:77] + "..."
        table.add_row(doc.id, f"{doc.score:.4f}", snippet)
    console.print(table)


@app.command()
def delete(
    ids: List[str] = typer.Argument(..., help="Document ids to delete"),
):
    """Delete documents by id."""

    async def _delete(store: VectorStore) -> int:
        return await store.delete(ids)

    deleted = run_with_store(_delete)
    console.print(f"[green]Deleted {deleted} document(s)[/green]")
