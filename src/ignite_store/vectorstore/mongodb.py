"""MongoDB Atlas vector store using the pymongo async driver.

Each record is stored as ``{"_id", "content", "metadata", <path_name>}``.
Searches run a ``$vectorSearch`` aggregation against an Atlas vector search
index and convert the cosine ``vectorSearchScore`` to a distance.

Missing collections follow a declared policy: with ``initialize_schema=True``
the collection and its search index are created on first use; otherwise
searches against a missing collection raise ``NotFoundError``. Writes use the
client's write concern and searches read from the primary, but the Atlas
search index is updated asynchronously, so a freshly written record becomes
searchable once the index has synced.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

from loguru import logger
from pymongo import ReplaceOne
from pymongo.errors import CollectionInvalid, ConnectionFailure, OperationFailure, PyMongoError
from pymongo.operations import SearchIndexModel

from ignite_store.document import Document
from ignite_store.errors import (
    ConfigurationError,
    IgniteStoreError,
    InvalidRequestError,
    NotFoundError,
    StoreUnavailableError,
)
from ignite_store.vectorstore.base import ScoredRecord, VectorStore, score_to_distance
from ignite_store.vectorstore.filters import filter_fields, to_mongo_filter

DEFAULT_DATABASE_NAME = "ignite"
DEFAULT_COLLECTION_NAME = "vector_store"
DEFAULT_PATH_NAME = "embedding"
DEFAULT_INDEX_NAME = "vector_index"
DEFAULT_NUM_CANDIDATES = 200

CONTENT_FIELD = "content"
METADATA_FIELD = "metadata"
SCORE_FIELD = "score"

NAMESPACE_NOT_FOUND = 26
INDEX_ALREADY_EXISTS = 68


@asynccontextmanager
async def translate_errors(operation: str) -> AsyncIterator[None]:
    """Map driver errors to store errors. Connectivity failures become retryable."""
    try:
        yield
    except ConnectionFailure as e:
        raise StoreUnavailableError(f"MongoDB unavailable during {operation}: {e}") from e
    except OperationFailure as e:
        if e.code == NAMESPACE_NOT_FOUND:
            raise NotFoundError(f"Collection not found during {operation}: {e}") from e
        raise IgniteStoreError(f"MongoDB {operation} failed: {e}", details={"code": e.code}) from e
    except PyMongoError as e:
        raise IgniteStoreError(f"MongoDB {operation} failed: {e}") from e


class MongoDBAtlasVectorStore(VectorStore):
    """Vector store backed by a MongoDB Atlas collection."""

    db_system = "mongodb"

    def __init__(
        self,
        client: Any,
        embedding_model,
        *,
        database_name: str = DEFAULT_DATABASE_NAME,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        path_name: str = DEFAULT_PATH_NAME,
        index_name: str = DEFAULT_INDEX_NAME,
        num_candidates: int = DEFAULT_NUM_CANDIDATES,
        metadata_fields_to_filter: Sequence[str] = (),
        initialize_schema: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(embedding_model, collection_name=collection_name, **kwargs)
        if client is None:
            raise ConfigurationError("MongoDB client must not be None")
        if num_candidates < 1:
            raise ConfigurationError(f"num_candidates must be >= 1, got {num_candidates}")
        self.client = client
        self.database_name = database_name
        self.path_name = path_name
        self.index_name = index_name
        self.num_candidates = num_candidates
        self.metadata_fields_to_filter = list(metadata_fields_to_filter)
        self.initialize_schema = initialize_schema
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    @property
    def database(self) -> Any:
        return self.client[self.database_name]

    @property
    def collection(self) -> Any:
        return self.database[self.collection_name]

    def search_index_definition(self) -> dict[str, Any]:
        fields: list[dict[str, Any]] = [
            {
                "type": "vector",
                "path": self.path_name,
                "numDimensions": self.dimensions,
                "similarity": "cosine",
            }
        ]
        fields.extend(
            {"type": "filter", "path": f"{METADATA_FIELD}.{name}"}
            for name in self.metadata_fields_to_filter
        )
        return {"fields": fields}

    async def _collection_exists(self) -> bool:
        async with translate_errors("list collections"):
            names = await self.database.list_collection_names()
        return self.collection_name in names

    async def ensure_schema(self) -> None:
        """Create the collection and vector search index if they are missing.

        Safe to call concurrently, and safe when another process creates the
        collection or index first.
        """
        if self._schema_ready:
            return

        async with self._schema_lock:
            if self._schema_ready:
                return

            if not await self._collection_exists():
                logger.info(f"Creating collection {self.database_name}.{self.collection_name}")
                async with translate_errors("create collection"):
                    try:
                        await self.database.create_collection(self.collection_name)
                    except CollectionInvalid:
                        logger.debug(f"Collection {self.collection_name} already exists")

            async with translate_errors("list search indexes"):
                cursor = await self.collection.list_search_indexes(self.index_name)
                existing = await cursor.to_list(length=None)

            if not existing:
                logger.info(
                    f"Creating vector search index {self.index_name} "
                    f"({self.dimensions} dimensions) on {self.collection_name}"
                )
                model = SearchIndexModel(
                    definition=self.search_index_definition(),
                    name=self.index_name,
                    type="vectorSearch",
                )
                async with translate_errors("create search index"):
                    try:
                        await self.collection.create_search_index(model)
                    except OperationFailure as e:
                        if e.code != INDEX_ALREADY_EXISTS:
                            raise
                        logger.debug(f"Search index {self.index_name} already exists")

            self._schema_ready = True

    async def _prepare(self, operation: str) -> None:
        if self.initialize_schema:
            await self.ensure_schema()
        elif operation == "query" and not await self._collection_exists():
            raise NotFoundError(
                f"Collection {self.database_name}.{self.collection_name} does not exist "
                "and initialize_schema is disabled"
            )

    def _to_record(self, document: Document, vector: list[float]) -> dict[str, Any]:
        return {
            "_id": document.id,
            CONTENT_FIELD: document.content,
            METADATA_FIELD: dict(document.metadata),
            self.path_name: list(vector),
        }

    async def _upsert(self, documents: list[Document], vectors: list[list[float]]) -> None:
        await self._prepare("add")
        operations = [
            ReplaceOne({"_id": document.id}, self._to_record(document, vector), upsert=True)
            for document, vector in zip(documents, vectors, strict=True)
        ]
        async with translate_errors("add"):
            await self.collection.bulk_write(operations, ordered=True)

    async def _delete(self, ids: list[str]) -> int:
        await self._prepare("delete")
        async with translate_errors("delete"):
            result = await self.collection.delete_many({"_id": {"$in": ids}})
        return int(result.deleted_count)

    async def _delete_where(self, filter_expression: dict[str, Any]) -> int:
        await self._prepare("delete")
        async with translate_errors("delete"):
            result = await self.collection.delete_many(to_mongo_filter(filter_expression))
        return int(result.deleted_count)

    def build_pipeline(
        self,
        query_vector: list[float],
        top_k: int,
        max_distance: float,
        filter_expression: Optional[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        vector_search: dict[str, Any] = {
            "index": self.index_name,
            "path": self.path_name,
            "queryVector": list(query_vector),
            "numCandidates": max(self.num_candidates, top_k),
            "limit": top_k,
        }
        mongo_filter = to_mongo_filter(filter_expression)
        if mongo_filter:
            vector_search["filter"] = mongo_filter
        return [
            {"$vectorSearch": vector_search},
            {"$addFields": {SCORE_FIELD: {"$meta": "vectorSearchScore"}}},
            {"$match": {SCORE_FIELD: {"$gte": 1.0 - max_distance}}},
            {"$project": {self.path_name: 0}},
        ]

    async def _query(
        self,
        query_vector: list[float],
        top_k: int,
        max_distance: float,
        filter_expression: Optional[dict[str, Any]],
    ) -> list[ScoredRecord]:
        unindexed = filter_fields(filter_expression) - set(self.metadata_fields_to_filter)
        if unindexed:
            raise InvalidRequestError(
                f"Filter uses metadata fields without a filter index: {sorted(unindexed)}",
                stage="storage",
            )
        await self._prepare("query")

        pipeline = self.build_pipeline(query_vector, top_k, max_distance, filter_expression)
        records: list[ScoredRecord] = []
        async with translate_errors("query"):
            cursor = await self.collection.aggregate(pipeline)
            async for row in cursor:
                records.append(
                    ScoredRecord(
                        document=Document(
                            content=row.get(CONTENT_FIELD, ""),
                            metadata=dict(row.get(METADATA_FIELD) or {}),
                            id=str(row["_id"]),
                        ),
                        distance=score_to_distance(float(row.get(SCORE_FIELD, 0.0))),
                    )
                )
        logger.trace(f"$vectorSearch on {self.collection_name} returned {len(records)} rows")
        return records
