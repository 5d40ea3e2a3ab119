"""Vector store backends.

- InMemoryVectorStore: exact cosine scan, for development and tests
- MongoDBAtlasVectorStore: Atlas ``$vectorSearch`` over a MongoDB collection
"""

from ignite_store.vectorstore.base import SearchRequest, VectorStore, similarity_to_max_distance
from ignite_store.vectorstore.memory import InMemoryVectorStore
from ignite_store.vectorstore.mongodb import MongoDBAtlasVectorStore

__all__ = [
    "InMemoryVectorStore",
    "MongoDBAtlasVectorStore",
    "SearchRequest",
    "VectorStore",
    "similarity_to_max_distance",
]
