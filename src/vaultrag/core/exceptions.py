"""
Error taxonomy for indexing and retrieval.

Configuration errors are fatal and never retried. Rate-limit and transient
provider errors are retried within the backoff budget and then propagate.
Store lifecycle errors point at a bug upstream. Cancellation is signalled
with OperationAborted and reported to callers as an aborted result.
"""


class VaultRAGError(Exception):
    """Base class for all vaultrag errors."""


# ============================================================================
# CONFIGURATION
# ============================================================================

class ConfigurationError(VaultRAGError):
    """The embedding provider or store is misconfigured."""


class APIKeyNotSetError(ConfigurationError):
    def __init__(self, provider: str):
        super().__init__(f"API key for {provider} is not set. Add it to your .env file.")
        self.provider = provider


class APIKeyInvalidError(ConfigurationError):
    def __init__(self, provider: str, detail: str = ""):
        message = f"API key for {provider} was rejected"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.provider = provider


class BaseUrlNotSetError(ConfigurationError):
    def __init__(self, provider: str):
        super().__init__(f"Base URL for {provider} is not set (EMBEDDING_BASE_URL).")
        self.provider = provider


class EmbeddingModelNotSetError(ConfigurationError):
    def __init__(self):
        super().__init__("Embedding model is not set (EMBEDDING_MODEL).")


class UnknownProviderError(ConfigurationError):
    def __init__(self, provider: str):
        super().__init__(f"Unknown embedding provider: {provider}")
        self.provider = provider


class UnknownDimensionError(ConfigurationError):
    def __init__(self, dimension: int, supported):
        super().__init__(
            f"No vector table for dimension {dimension}. "
            f"Supported dimensions: {sorted(supported)}"
        )
        self.dimension = dimension


# ============================================================================
# PROVIDER
# ============================================================================

class EmbeddingProviderError(VaultRAGError):
    """Transient failure talking to the embedding provider."""


class RateLimitExceededError(EmbeddingProviderError):
    def __init__(self, provider: str, detail: str = ""):
        message = f"Rate limit exceeded for {provider}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.provider = provider


# ============================================================================
# STORE / LIFECYCLE
# ============================================================================

class DatabaseNotInitializedError(VaultRAGError):
    def __init__(self):
        super().__init__("Index store is not initialized. Call initialize() first.")


class OperationAborted(VaultRAGError):
    def __init__(self):
        super().__init__("Operation was aborted")


class DocumentReadError(VaultRAGError):
    def __init__(self, path: str, detail: str):
        super().__init__(f"Could not read {path}: {detail}")
        self.path = path
