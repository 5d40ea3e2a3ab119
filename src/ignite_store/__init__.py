"""ignite-store - embedding pipeline and MongoDB Atlas vector store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ignite-store")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
