from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from .models import MemoryCandidate, ProviderResponse


class EmbeddingProvider(ABC):
    """Port for an external embedding provider (e.g., Cohere, Mistral)."""

    name: str = ""

    @abstractmethod
    def embed_texts(self, texts: List[str], model: Optional[str] = None, timeout: float = 30.0) -> ProviderResponse:
        """Embed a batch of texts into vectors.

        Raises:
            EmbeddingError: Provider/network failures; the orchestrator decides what to do next.
        """
        raise NotImplementedError


class MemorySearchBackend(ABC):
    """Port for the vector-search collaborator that owns stored memories."""

    @abstractmethod
    def find_similar(
        self,
        user_id: str,
        vector: List[float],
        limit: int,
        min_similarity: float,
        tags: Optional[Sequence[str]] = None,
        importance: Optional[float] = None,
    ) -> List[MemoryCandidate]:
        """Return the user's memories ordered by similarity, descending.

        The backend applies limit, min_similarity and the optional filters itself.

        Raises:
            MemorySearchError: Storage-side failures; callers see them as hard errors.
        """
        raise NotImplementedError
