from __future__ import annotations

from typing import List, Optional

from ...domain.models import ProviderResponse
from ..config import ollama_url
from .base import HttpEmbeddingService


class OllamaEmbeddingService(HttpEmbeddingService):
    """Embedding adapter for Ollama /api/embeddings."""

    def embed_texts(self, texts: List[str], model: Optional[str] = None, timeout: float = 30.0) -> ProviderResponse:
        base = self.base_url or ollama_url()
        model = model or self.spec.model
        rows = []
        # Ollama embeds one prompt per request
        for t in texts:
            data = self._post(f"{base}/api/embeddings", {"model": model, "prompt": t}, timeout=timeout)
            rows.append(data.get("embedding"))
        return self._response(self._vectors(rows, len(texts)), model)
