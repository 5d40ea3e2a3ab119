"""Utility functions for CLI commands."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from loguru import logger
from rich.console import Console

from ignite_store.container import StoreContainer
from ignite_store.errors import IgniteStoreError
from ignite_store.vectorstore.base import VectorStore

console = Console()

T = TypeVar("T")

_container_factory: Callable[[], StoreContainer] = StoreContainer.create


def set_container_factory(factory: Optional[Callable[[], StoreContainer]]) -> None:
    """Override how commands obtain their container (tests use this)."""
    global _container_factory
    _container_factory = factory or StoreContainer.create


def run_with_store(operation: Callable[[VectorStore], Awaitable[T]]) -> T:
    """Build the store, run ``operation`` on it and close the client afterwards.

    Store errors are printed and turned into exit code 1.
    """

    async def _run() -> T:
        container = _container_factory()
        try:
            return await operation(container.vector_store())
        finally:
            await container.close()

    try:
        return asyncio.run(_run())
    except IgniteStoreError as e:
        logger.error(f"Command failed: {e}")
        console.print(f"[red]Error ({e.stage}):[/red] {e.message}")
        raise typer.Exit(1)
