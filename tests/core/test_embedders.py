"""
Tests for BatchEmbedder / ItemEmbedder and the retry policy.

Tests:
- Transient failures retried within the attempt budget
- Configuration errors never retried
- Bounded concurrency for per-item providers
- Fail-fast cancellation of sibling items
- Cancellation token checkpoints
"""
import asyncio

import pytest

from vaultrag.core.cancellation import CancellationToken
from vaultrag.core.exceptions import (
    APIKeyInvalidError,
    APIKeyNotSetError,
    ConfigurationError,
    EmbeddingProviderError,
    OperationAborted,
    RateLimitExceededError,
)
from vaultrag.core.indexing import BatchEmbedder, ItemEmbedder, RetryPolicy, make_embedder
from vaultrag.utils.embeddings import EmbeddingProvider


# ============================================================================
# Retry Policy
# ============================================================================

class TestRetryPolicy:

    def test_defaults(self):
        policy = RetryPolicy()

        assert policy.attempts == 3
        assert policy.starting_delay == 0.5
        assert policy.time_multiple == 1.5

    @pytest.mark.asyncio
    async def test_returns_value(self, no_wait_retry):
        async def ok(x):
            return x * 2

        assert await no_wait_retry.call(ok, 21) == 42


# ============================================================================
# BatchEmbedder
# ============================================================================

class TestBatchEmbedder:

    @pytest.mark.asyncio
    async def test_one_call_per_batch(self, fake_provider, no_wait_retry):
        embedder = BatchEmbedder(fake_provider, retry=no_wait_retry)

        vectors = await embedder.embed(["alpha", "beta", "gamma"])

        assert len(vectors) == 3
        assert fake_provider.batch_calls == [["alpha", "beta", "gamma"]]

    @pytest.mark.asyncio
    async def test_transient_failures_retried(self, fake_provider, no_wait_retry):
        fake_provider.failures = [EmbeddingProviderError("boom"), EmbeddingProviderError("boom")]
        embedder = BatchEmbedder(fake_provider, retry=no_wait_retry)

        vectors = await embedder.embed(["alpha"])

        assert len(vectors) == 1
        assert len(fake_provider.batch_calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_budget(self, fake_provider, no_wait_retry):
        fake_provider.failures = [EmbeddingProviderError("boom") for _ in range(5)]
        embedder = BatchEmbedder(fake_provider, retry=no_wait_retry)

        with pytest.raises(EmbeddingProviderError):
            await embedder.embed(["alpha"])
        assert len(fake_provider.batch_calls) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_surfaces_distinctly(self, fake_provider, no_wait_retry):
        fake_provider.failures = [RateLimitExceededError("fake") for _ in range(3)]
        embedder = BatchEmbedder(fake_provider, retry=no_wait_retry)

        with pytest.raises(RateLimitExceededError):
            await embedder.embed(["alpha"])
        assert len(fake_provider.batch_calls) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [APIKeyInvalidError("fake"), APIKeyNotSetError("fake")])
    async def test_configuration_errors_not_retried(self, fake_provider, no_wait_retry, error):
        fake_provider.failures = [error]
        embedder = BatchEmbedder(fake_provider, retry=no_wait_retry)

        with pytest.raises(ConfigurationError):
            await embedder.embed(["alpha"])
        assert len(fake_provider.batch_calls) == 1

    @pytest.mark.asyncio
    async def test_count_mismatch_is_provider_error(self, no_wait_retry):
        class ShortProvider(EmbeddingProvider):
            async def get_batch_embeddings(self, texts):
                return [[1.0, 0.0]]

        embedder = BatchEmbedder(ShortProvider("short", dimension=2), retry=no_wait_retry)

        with pytest.raises(EmbeddingProviderError):
            await embedder.embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_empty_batch_skips_provider(self, fake_provider, no_wait_retry):
        assert await BatchEmbedder(fake_provider, retry=no_wait_retry).embed([]) == []
        assert fake_provider.batch_calls == []

    @pytest.mark.asyncio
    async def test_cancelled_token_aborts_before_call(self, fake_provider, no_wait_retry):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationAborted):
            await BatchEmbedder(fake_provider, retry=no_wait_retry).embed(["alpha"], token)
        assert fake_provider.batch_calls == []


# ============================================================================
# ItemEmbedder
# ============================================================================

class SlowProvider(EmbeddingProvider):
    """Per-item provider that records peak concurrency."""

    def __init__(self, fail_on=None):
        super().__init__("slow", dimension=2, supports_batch=False)
        self.in_flight = 0
        self.peak = 0
        self.cancelled = 0
        self.fail_on = fail_on

    async def get_embedding(self, text):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            if text == self.fail_on:
                raise APIKeyInvalidError("slow")
            await asyncio.sleep(0.01 if self.fail_on is None else 5)
            return [1.0, 0.0]
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1


class TestItemEmbedder:

    @pytest.mark.asyncio
    async def test_one_call_per_item_in_order(self, item_provider, no_wait_retry, embed):
        embedder = ItemEmbedder(item_provider, retry=no_wait_retry, concurrency=4)

        vectors = await embedder.embed(["alpha", "beta"])

        assert vectors == [embed("alpha"), embed("beta")]
        assert sorted(item_provider.item_calls) == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, no_wait_retry):
        provider = SlowProvider()
        embedder = ItemEmbedder(provider, retry=no_wait_retry, concurrency=2)

        await embedder.embed([f"t{i}" for i in range(8)])

        assert provider.peak == 2

    @pytest.mark.asyncio
    async def test_failure_cancels_remaining_items(self, no_wait_retry):
        provider = SlowProvider(fail_on="bad")
        embedder = ItemEmbedder(provider, retry=no_wait_retry, concurrency=4)

        with pytest.raises(APIKeyInvalidError):
            await asyncio.wait_for(embedder.embed(["a", "b", "bad", "c"]), timeout=2)

        assert provider.cancelled == 3
        assert provider.in_flight == 0

    @pytest.mark.asyncio
    async def test_item_retries(self, item_provider, no_wait_retry):
        item_provider.failures = [EmbeddingProviderError("flaky")]
        embedder = ItemEmbedder(item_provider, retry=no_wait_retry, concurrency=1)

        vectors = await embedder.embed(["alpha"])

        assert len(vectors) == 1
        assert item_provider.item_calls == ["alpha", "alpha"]

    def test_rejects_zero_concurrency(self, item_provider):
        with pytest.raises(ValueError):
            ItemEmbedder(item_provider, concurrency=0)


# ============================================================================
# Selection
# ============================================================================

class TestMakeEmbedder:

    def test_batch_capable_provider(self, fake_provider):
        assert isinstance(make_embedder(fake_provider), BatchEmbedder)

    def test_per_item_provider(self, item_provider):
        embedder = make_embedder(item_provider, concurrency=7)

        assert isinstance(embedder, ItemEmbedder)
        assert embedder.concurrency == 7
