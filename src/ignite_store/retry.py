"""Bounded exponential backoff for transient embedding and storage failures."""

from typing import Awaitable, Callable, Tuple, Type, TypeVar

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ignite_store.errors import EmbeddingServiceError, StoreUnavailableError

T = TypeVar("T")

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    StoreUnavailableError,
    EmbeddingServiceError,
)


class RetryPolicy:
    """Retry settings shared by models and stores.

    Only ``TRANSIENT_ERRORS`` are retried; anything else, including
    ``InvalidRequestError``, propagates on the first attempt.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        *,
        min_wait: float = 0.5,
        max_wait: float = 10.0,
        multiplier: float = 0.5,
        retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
    ) -> None:
        self.max_attempts = max(1, max_attempts)
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.multiplier = multiplier
        self.retry_on = retry_on

    @classmethod
    def none(cls) -> "RetryPolicy":
        return cls(max_attempts=1)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        logger.warning(
            f"Attempt {retry_state.attempt_number}/{self.max_attempts} failed: {error}; retrying"
        )

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.multiplier, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=self._before_sleep,
        ):
            with attempt:
                return await operation()
        # unreachable due to reraise=True, but keeps type checkers happy
        raise RuntimeError("Retries exhausted")
