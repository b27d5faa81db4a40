from __future__ import annotations

from typing import List, Optional

from ...domain.errors import MalformedResponseError
from ...domain.models import ProviderResponse
from .base import HttpEmbeddingService


class MistralEmbeddingService(HttpEmbeddingService):
    """Embedding adapter for Mistral /v1/embeddings."""

    default_base_url = "https://api.mistral.ai/v1"

    def embed_texts(self, texts: List[str], model: Optional[str] = None, timeout: float = 30.0) -> ProviderResponse:
        model = model or self.spec.model
        data = self._post(
            f"{self.base_url}/embeddings",
            {"model": model, "input": list(texts), "encoding_format": "float"},
            timeout=timeout,
            headers={"Authorization": f"Bearer {self._key()}"},
        )
        items = data.get("data")
        if not isinstance(items, list) or not all(isinstance(it, dict) for it in items):
            raise MalformedResponseError("mistral: invalid response structure")
        items = sorted(items, key=lambda it: it.get("index", 0))
        usage = data.get("usage") or {}
        return self._response(
            self._vectors([it.get("embedding") for it in items], len(texts)),
            str(data.get("model") or model),
            usage.get("total_tokens"),
        )
