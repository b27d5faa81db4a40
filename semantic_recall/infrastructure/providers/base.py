from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from ...domain.errors import EmbeddingError, MalformedResponseError, ProviderTimeoutError
from ...domain.interfaces import EmbeddingProvider
from ...domain.models import ProviderResponse, ProviderSpec, validate_vectors
from ..config import api_key as configured_api_key


class HttpEmbeddingService(EmbeddingProvider):
    """Shared plumbing for REST embedding providers.

    Subclasses set ``name`` and ``default_base_url`` and implement ``embed_texts``
    on top of ``_post`` and ``_vectors``. Every transport or status failure is
    raised as an EmbeddingError subclass so callers can fail over uniformly.
    """

    default_base_url = ""

    def __init__(self, spec: ProviderSpec, api_key: Optional[str] = None, base_url: Optional[str] = None) -> None:
        self.spec = spec
        self.name = spec.name
        self._api_key = api_key
        self.base_url = (base_url or self.default_base_url).rstrip("/")

    def _key(self) -> str:
        key = self._api_key or configured_api_key(self.name)
        if not key:
            raise EmbeddingError(f"{self.name.upper()}_API_KEY is required")
        return key

    def _post(self, url: str, body: Dict[str, Any], timeout: float, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        all_headers = {"Content-Type": "application/json"}
        all_headers.update(headers or {})
        try:
            r = requests.post(url, json=body, headers=all_headers, timeout=timeout)
        except requests.Timeout as exc:
            raise ProviderTimeoutError(f"{self.name}: request timed out after {timeout:.2f}s") from exc
        except requests.RequestException as exc:
            raise EmbeddingError(f"{self.name}: request failed: {exc}") from exc
        if not r.ok:
            raise EmbeddingError(f"{self.name} API error: {r.status_code} {r.reason} - {_error_detail(r)}")
        try:
            data = r.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{self.name}: response is not JSON") from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(f"{self.name}: invalid response structure")
        return data

    def _vectors(self, rows: object, expected: int) -> List[List[float]]:
        return validate_vectors(self.name, rows, expected, self.spec.dimensions)

    def _response(self, vectors: List[List[float]], model: str, tokens: object = None) -> ProviderResponse:
        try:
            used = int(tokens) if tokens is not None else None
        except (TypeError, ValueError):
            used = None
        return ProviderResponse(vectors=vectors, model=model, tokens=used)


def _error_detail(r: requests.Response) -> str:
    try:
        data = r.json()
    except ValueError:
        return (r.text or "Unknown error")[:200]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or "Unknown error")
    return "Unknown error"
