from __future__ import annotations

from typing import List, Optional

from ...domain.errors import MalformedResponseError
from ...domain.models import ProviderResponse
from .base import HttpEmbeddingService


class GoogleEmbeddingService(HttpEmbeddingService):
    """Embedding adapter for Gemini models/{model}:batchEmbedContents."""

    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def embed_texts(self, texts: List[str], model: Optional[str] = None, timeout: float = 30.0) -> ProviderResponse:
        model = model or self.spec.model
        body = {
            "requests": [
                {"model": f"models/{model}", "content": {"parts": [{"text": t}]}}
                for t in texts
            ]
        }
        data = self._post(
            f"{self.base_url}/models/{model}:batchEmbedContents",
            body,
            timeout=timeout,
            headers={"x-goog-api-key": self._key()},
        )
        items = data.get("embeddings")
        if not isinstance(items, list) or not all(isinstance(it, dict) for it in items):
            raise MalformedResponseError("google: invalid response structure")
        return self._response(self._vectors([it.get("values") for it in items], len(texts)), model)
