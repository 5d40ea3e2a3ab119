"""CLI commands for ignite-store."""

from ignite_store.cli.commands import config, store

__all__ = ["config", "store"]
