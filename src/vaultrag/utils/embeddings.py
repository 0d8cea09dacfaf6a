import asyncio
from typing import Callable, Dict, List, Optional

from fastembed import TextEmbedding
from dotenv import load_dotenv
import openai
from openai import AsyncOpenAI

from vaultrag.config import Settings, settings as default_settings
from vaultrag.core.exceptions import (
    APIKeyInvalidError,
    APIKeyNotSetError,
    BaseUrlNotSetError,
    EmbeddingModelNotSetError,
    EmbeddingProviderError,
    RateLimitExceededError,
    UnknownProviderError,
)
from vaultrag.core.logging import get_logger

logger = get_logger(__name__)

load_dotenv()

DEFAULT_EMBEDDING_MODEL = "BAAI/bge-small-en-v1.5"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434/v1"
DIMENSION_PROBE_TEXT = "hello world"

# Widths of the hosted models we know about. Anything else is probed once.
KNOWN_DIMENSIONS: Dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-small-en-v1.5": 384,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
}

# Factory used to build the embedding provider. This indirection allows tests
# to swap in fakes without loading models or calling APIs.
_embedding_provider_factory: Callable[[Optional[Settings]], "EmbeddingProvider"]


class EmbeddingProvider:
    """
    Interface consumed by the embedding pipeline.

    `dimension` is 0 until known; `initialize_dimension()` fills it in by
    embedding a probe string once.
    """
    name: str = "base"

    def __init__(self, model: str, dimension: int = 0, supports_batch: bool = True):
        if not model:
            raise EmbeddingModelNotSetError()
        self.model = model
        self.dimension = dimension or KNOWN_DIMENSIONS.get(model, 0)
        self.supports_batch = supports_batch

    async def get_embedding(self, text: str) -> List[float]:
        raise NotImplementedError

    async def get_batch_embeddings(self, texts: List[str]) -> List[List[float]]:
        raise NotImplementedError

    async def initialize_dimension(self) -> int:
        if self.dimension:
            return self.dimension
        probe = await self.get_embedding(DIMENSION_PROBE_TEXT)
        self.dimension = len(probe)
        logger.info("embedding_dimension_probed", provider=self.name, model=self.model, dimension=self.dimension)
        return self.dimension


class FastEmbedProvider(EmbeddingProvider):
    """FastEmbed (local, free). The ONNX model is loaded on first use."""
    name = "fastembed"

    def __init__(self, model: str = DEFAULT_EMBEDDING_MODEL, dimension: int = 0):
        super().__init__(model, dimension=dimension, supports_batch=True)
        self._embeddings: Optional[TextEmbedding] = None

    def _load(self) -> TextEmbedding:
        if self._embeddings is None:
            self._embeddings = TextEmbedding(model_name=self.model)
            logger.info("fastembed_model_loaded", model=self.model)
        return self._embeddings

    def _embed_sync(self, texts: List[str]) -> List[List[float]]:
        # FastEmbed returns a generator of numpy arrays
        return [embedding.tolist() for embedding in self._load().embed(texts)]

    async def get_batch_embeddings(self, texts: List[str]) -> List[List[float]]:
        try:
            return await asyncio.to_thread(self._embed_sync, texts)
        except (ValueError, RuntimeError, OSError) as e:
            raise EmbeddingProviderError(f"FastEmbed failed: {e}") from e

    async def get_embedding(self, text: str) -> List[float]:
        return (await self.get_batch_embeddings([text]))[0]


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embeddings API and anything speaking its protocol
    (OpenAI-compatible gateways, Ollama's /v1 endpoint).
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: Optional[str] = None,
        dimension: int = 0,
        supports_batch: bool = True,
        provider: str = "openai",
    ):
        super().__init__(model, dimension=dimension, supports_batch=supports_batch)
        self.name = provider
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url or None)

    async def _create(self, texts: List[str]) -> List[List[float]]:
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=texts,
                encoding_format="float"
            )
        except openai.AuthenticationError as e:
            raise APIKeyInvalidError(self.name, str(e)) from e
        except openai.RateLimitError as e:
            raise RateLimitExceededError(self.name, str(e)) from e
        except openai.OpenAIError as e:
            raise EmbeddingProviderError(f"{self.name} embedding request failed: {e}") from e

        embeddings = [item.embedding for item in response.data]
        logger.debug(
            "embedding_created",
            provider=self.name,
            texts=len(texts),
            dimensions=len(embeddings[0]) if embeddings else 0,
        )
        return embeddings

    async def get_embedding(self, text: str) -> List[float]:
        return (await self._create([text]))[0]

    async def get_batch_embeddings(self, texts: List[str]) -> List[List[float]]:
        return await self._create(texts)


def create_embedding_provider(config: Optional[Settings] = None) -> EmbeddingProvider:
    """Build the provider named by `embedding_provider`, validating its configuration."""
    config = config or default_settings
    provider = config.embedding_provider
    model = config.embedding_model
    dimension = config.embedding_dimension

    if not model:
        raise EmbeddingModelNotSetError()

    if provider == "fastembed":
        return FastEmbedProvider(model=model, dimension=dimension)

    if provider == "openai":
        if not config.openai_api_key:
            raise APIKeyNotSetError("openai")
        return OpenAIEmbeddingProvider(
            model=model,
            api_key=config.openai_api_key,
            base_url=config.embedding_base_url or None,
            dimension=dimension,
            supports_batch=True,
            provider="openai",
        )

    if provider == "openai_compatible":
        if not config.embedding_base_url:
            raise BaseUrlNotSetError(provider)
        return OpenAIEmbeddingProvider(
            model=model,
            # Self-hosted gateways often accept any key
            api_key=config.openai_api_key or "not-needed",
            base_url=config.embedding_base_url,
            dimension=dimension,
            supports_batch=config.embedding_supports_batch,
            provider=provider,
        )

    if provider == "ollama":
        return OpenAIEmbeddingProvider(
            model=model,
            api_key="ollama",
            base_url=config.embedding_base_url or DEFAULT_OLLAMA_BASE_URL,
            dimension=dimension,
            supports_batch=config.embedding_supports_batch,
            provider=provider,
        )

    raise UnknownProviderError(provider)


def set_embedding_provider_factory(factory: Callable[[Optional[Settings]], "EmbeddingProvider"]):
    """Override the factory used to create embedding providers."""
    global _embedding_provider_factory
    _embedding_provider_factory = factory


def reset_embedding_provider_factory():
    """Reset the factory to the settings-driven default."""
    set_embedding_provider_factory(create_embedding_provider)


def get_embedding_provider(config: Optional[Settings] = None) -> EmbeddingProvider:
    """Get an embedding provider via the current factory."""
    return _embedding_provider_factory(config)


# Initialize the default factory
reset_embedding_provider_factory()
