from __future__ import annotations


class EmbeddingError(RuntimeError):
    """Raised when an embedding provider call fails."""


class ProviderTimeoutError(EmbeddingError):
    """Raised when a provider attempt exceeds its time bound."""


class MalformedResponseError(EmbeddingError):
    """Raised when a provider response is not one same-length vector per input text."""


class MemorySearchError(RuntimeError):
    """Raised when the vector-search collaborator fails."""


class ContractError(ValueError):
    """Raised when request violates documented contract (e.g., empty text batch)."""


class UnknownProviderError(ContractError):
    """Raised when a provider name is not configured."""
