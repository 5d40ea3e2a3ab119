"""Main CLI entry point for ignite-store."""  # pragma: no cover

from ignite_store.cli.app import app  # pragma: no cover

# Register commands
from ignite_store.cli.commands import config, store  # noqa: F401  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    app()
