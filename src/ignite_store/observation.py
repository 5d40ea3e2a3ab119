"""Observation hooks for embedding calls and vector store operations.

Each observed operation runs inside a logfire span and, when it finishes,
an event is handed to every registered handler. Handlers are fire-and-forget:
a failing handler is logged and never breaks the observed call. A registry
with no handlers is a no-op.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterator, Optional, Protocol, Union

import logfire
from loguru import logger

from ignite_store.embedding.model import EmbeddingModel
from ignite_store.embedding.types import EmbeddingOptions, EmbeddingRequest, EmbeddingResponse
from ignite_store.errors import ConfigurationError


@dataclass
class EmbeddingObservation:
    provider: str
    request: EmbeddingRequest
    response: Optional[EmbeddingResponse] = None
    error: Optional[BaseException] = None
    duration: float = 0.0


@dataclass
class VectorStoreObservation:
    operation: str
    db_system: str
    collection_name: str
    dimensions: int
    query: Optional[str] = None
    top_k: Optional[int] = None
    similarity_threshold: Optional[float] = None
    filter_expression: Optional[dict[str, Any]] = None
    document_count: int = 0
    result_count: int = 0
    error: Optional[BaseException] = None
    duration: float = 0.0


Observation = Union[EmbeddingObservation, VectorStoreObservation]


class ObservationHandler(Protocol):
    def on_observation(self, event: Observation) -> None: ...


@dataclass
class ObservationRegistry:
    handlers: list[ObservationHandler] = field(default_factory=list)

    NOOP: ClassVar["ObservationRegistry"]

    def register(self, handler: ObservationHandler) -> None:
        if self is ObservationRegistry.NOOP:
            raise ConfigurationError("Cannot register handlers on the NOOP registry")
        self.handlers.append(handler)

    def emit(self, event: Observation) -> None:
        for handler in self.handlers:
            try:
                handler.on_observation(event)
            except Exception as e:
                logger.warning(f"Observation handler {handler!r} failed: {e}")

    @contextmanager
    def observe(self, span_name: str, event: Observation, **attributes: Any) -> Iterator[None]:
        started = time.perf_counter()
        try:
            with logfire.span(span_name, **attributes):  # pyright: ignore
                yield
        except BaseException as e:
            event.error = e
            raise
        finally:
            event.duration = time.perf_counter() - started
            self.emit(event)


ObservationRegistry.NOOP = ObservationRegistry()


class ObservedEmbeddingModel(EmbeddingModel):
    """Decorator that observes every ``call`` of the wrapped model."""

    def __init__(self, delegate: EmbeddingModel, registry: ObservationRegistry) -> None:
        if delegate is None:
            raise ConfigurationError("delegate must not be None")
        if registry is None:
            raise ConfigurationError("registry must not be None")
        self.delegate = delegate
        self.registry = registry
        self.provider_name = delegate.provider_name
        self.metadata_mode = delegate.metadata_mode
        self.max_concurrency = delegate.max_concurrency

    @property
    def dimensions(self) -> int:
        return self.delegate.dimensions

    @property
    def options(self) -> EmbeddingOptions:
        return self.delegate.options

    async def call(self, request: EmbeddingRequest) -> EmbeddingResponse:
        event = EmbeddingObservation(provider=self.provider_name, request=request)
        model = self.options.model
        if request is not None and request.options is not None and request.options.model:
            model = request.options.model
        with self.registry.observe(
            f"embedding {self.provider_name}",
            event,
            provider=self.provider_name,
            model=model,
            instructions=len(request.instructions) if request and request.instructions else 0,
        ):
            event.response = await self.delegate.call(request)
        return event.response


def observe_model(
    model: EmbeddingModel, registry: Optional[ObservationRegistry] = None
) -> EmbeddingModel:
    """Wrap ``model`` so its calls are observed; already-observed models are returned as is."""
    if isinstance(model, ObservedEmbeddingModel):
        return model
    return ObservedEmbeddingModel(model, registry or ObservationRegistry.NOOP)
