"""
Embedders turn a batch of texts into vectors.

The embedder is chosen once per run from the provider's capability:
BatchEmbedder makes one provider call per batch, ItemEmbedder makes one call
per text through a bounded pool. Both wrap every provider call in the same
retry policy.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from vaultrag.config import settings
from vaultrag.core.cancellation import CancellationToken
from vaultrag.core.exceptions import (
    ConfigurationError,
    DatabaseNotInitializedError,
    EmbeddingProviderError,
    OperationAborted,
)
from vaultrag.core.logging import get_logger
from vaultrag.utils.embeddings import EmbeddingProvider

logger = get_logger(__name__)

# Errors that no amount of waiting will fix. Task cancellation must also
# pass straight through: tenacity catches BaseException.
NON_RETRYABLE = (
    ConfigurationError,
    DatabaseNotInitializedError,
    OperationAborted,
    asyncio.CancelledError,
)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "embedding_retry",
        attempt=retry_state.attempt_number,
        error=str(exc),
        error_type=type(exc).__name__,
    )


@dataclass
class RetryPolicy:
    """Exponential backoff with full jitter around a provider call."""
    attempts: int = 3
    starting_delay: float = 0.5
    time_multiple: float = 1.5

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            attempts=settings.retry_attempts,
            starting_delay=settings.retry_starting_delay,
            time_multiple=settings.retry_time_multiple,
        )

    async def call(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_random_exponential(multiplier=self.starting_delay, exp_base=self.time_multiple),
            retry=retry_if_not_exception_type(NON_RETRYABLE),
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(fn, *args)


class Embedder:
    """Protocol for batch embedding."""
    async def embed(self, texts: List[str], cancel: Optional[CancellationToken] = None) -> List[List[float]]:
        raise NotImplementedError


class BatchEmbedder(Embedder):
    def __init__(self, provider: EmbeddingProvider, retry: Optional[RetryPolicy] = None):
        self.provider = provider
        self.retry = retry or RetryPolicy.from_settings()

    async def embed(self, texts: List[str], cancel: Optional[CancellationToken] = None) -> List[List[float]]:
        if not texts:
            return []
        if cancel:
            cancel.raise_if_cancelled()

        vectors = await self.retry.call(self.provider.get_batch_embeddings, texts)
        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"Provider returned {len(vectors)} embeddings for {len(texts)} texts"
            )
        return vectors


class ItemEmbedder(Embedder):
    """
    One provider call per text, at most `concurrency` in flight.

    If any item fails after its retries, the rest of the batch is cancelled
    and the first error propagates.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        retry: Optional[RetryPolicy] = None,
        concurrency: int = 32,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.provider = provider
        self.retry = retry or RetryPolicy.from_settings()
        self.concurrency = concurrency
        self._semaphore = asyncio.Semaphore(concurrency)

    async def _embed_one(self, text: str, cancel: Optional[CancellationToken]) -> List[float]:
        async with self._semaphore:
            if cancel:
                cancel.raise_if_cancelled()
            return await self.retry.call(self.provider.get_embedding, text)

    async def embed(self, texts: List[str], cancel: Optional[CancellationToken] = None) -> List[List[float]]:
        if not texts:
            return []
        if cancel:
            cancel.raise_if_cancelled()

        tasks = [asyncio.create_task(self._embed_one(text, cancel)) for text in texts]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


def make_embedder(
    provider: EmbeddingProvider,
    retry: Optional[RetryPolicy] = None,
    concurrency: Optional[int] = None,
) -> Embedder:
    """Pick the embedder matching the provider's capability."""
    if provider.supports_batch:
        return BatchEmbedder(provider, retry=retry)
    return ItemEmbedder(
        provider,
        retry=retry,
        concurrency=concurrency or settings.embedding_concurrency,
    )
