"""In-process vector store with exact cosine search.

Useful for development and tests. Reads always see prior writes.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from ignite_store.document import Document
from ignite_store.vectorstore.base import ScoredRecord, VectorStore, cosine_distance
from ignite_store.vectorstore.filters import matches

DEFAULT_COLLECTION_NAME = "vector_store"


@dataclass
class _StoredRecord:
    document: Document
    vector: list[float]
    sequence: int


class InMemoryVectorStore(VectorStore):
    """Vector store holding every record in a dict keyed by document id."""

    db_system = "memory"

    def __init__(self, embedding_model, *, collection_name: str = DEFAULT_COLLECTION_NAME, **kwargs):
        super().__init__(embedding_model, collection_name=collection_name, **kwargs)
        self._records: dict[str, _StoredRecord] = {}
        self._sequence = 0
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._records

    def get(self, document_id: str) -> Optional[Document]:
        record = self._records.get(document_id)
        return record.document if record else None

    async def _upsert(self, documents: list[Document], vectors: list[list[float]]) -> None:
        async with self._lock:
            for document, vector in zip(documents, vectors, strict=True):
                existing = self._records.get(document.id)
                if existing is not None:
                    sequence = existing.sequence
                else:
                    sequence = self._sequence
                    self._sequence += 1
                self._records[document.id] = _StoredRecord(
                    document=document, vector=list(vector), sequence=sequence
                )

    async def _delete(self, ids: list[str]) -> int:
        async with self._lock:
            removed = 0
            for document_id in ids:
                if self._records.pop(document_id, None) is not None:
                    removed += 1
            return removed

    async def _delete_where(self, filter_expression: dict[str, Any]) -> int:
        async with self._lock:
            doomed = [
                document_id
                for document_id, record in self._records.items()
                if matches(record.document.metadata, filter_expression)
            ]
            for document_id in doomed:
                del self._records[document_id]
            return len(doomed)

    async def _query(
        self,
        query_vector: list[float],
        top_k: int,
        max_distance: float,
        filter_expression: Optional[dict[str, Any]],
    ) -> list[ScoredRecord]:
        async with self._lock:
            records = list(self._records.values())

        scored = [
            ScoredRecord(
                document=record.document,
                distance=cosine_distance(query_vector, record.vector),
                sequence=record.sequence,
            )
            for record in records
            if matches(record.document.metadata, filter_expression)
        ]
        scored.sort(key=lambda record: (record.distance, record.sequence, record.document.id))
        return scored[:top_k]
