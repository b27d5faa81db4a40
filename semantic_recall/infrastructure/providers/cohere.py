from __future__ import annotations

from typing import List, Optional

from ...domain.models import ProviderResponse
from .base import HttpEmbeddingService


class CohereEmbeddingService(HttpEmbeddingService):
    """Embedding adapter for Cohere /v1/embed."""

    default_base_url = "https://api.cohere.com/v1"

    def embed_texts(self, texts: List[str], model: Optional[str] = None, timeout: float = 30.0) -> ProviderResponse:
        model = model or self.spec.model
        data = self._post(
            f"{self.base_url}/embed",
            {"texts": list(texts), "model": model, "input_type": "search_query", "truncate": "END"},
            timeout=timeout,
            headers={"Authorization": f"Bearer {self._key()}"},
        )
        rows = data.get("embeddings")
        # embedding_types requests answer with {"float": [...]}
        if isinstance(rows, dict):
            rows = rows.get("float")
        billed = (data.get("meta") or {}).get("billed_units") or {}
        return self._response(self._vectors(rows, len(texts)), model, billed.get("input_tokens"))
