from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import requests

from ...domain.errors import MemorySearchError
from ...domain.interfaces import MemorySearchBackend
from ...domain.models import MemoryCandidate
from ..config import qdrant_url
from ..logging import get_logger

logger = get_logger("semantic_recall.qdrant")


def _payload_tags(payload: Dict[str, Any]) -> tuple:
    raw = payload.get("tags") or []
    if isinstance(raw, str):
        raw = [raw]
    return tuple(str(t).strip() for t in raw if isinstance(t, str) and t.strip())


def _to_candidate(hit: Dict[str, Any]) -> MemoryCandidate:
    payload = hit.get("payload") or {}
    importance = payload.get("importance_score")
    return MemoryCandidate(
        id=str(hit.get("id")),
        content=str(payload.get("content") or payload.get("text") or ""),
        similarity=float(hit.get("score", 0.0)),
        tags=_payload_tags(payload),
        importance=float(importance) if isinstance(importance, (int, float)) else None,
        timestamp=payload.get("created_at"),
    )


def build_filter(user_id: str, tags: Optional[Sequence[str]] = None, importance: Optional[float] = None) -> Dict[str, Any]:
    """Qdrant payload filter: the user's own memories, optionally narrowed by tags and importance."""
    must: List[Dict[str, Any]] = [{"key": "user_id", "match": {"value": user_id}}]
    if tags:
        must.append({"key": "tags", "match": {"any": list(tags)}})
    if importance is not None:
        must.append({"key": "importance_score", "range": {"gte": float(importance)}})
    return {"must": must}


class QdrantMemorySearch(MemorySearchBackend):
    """Vector-search collaborator backed by Qdrant REST.

    Expected point payload: ``user_id``, ``content``, ``tags``,
    ``importance_score`` and ``created_at``.
    """

    def __init__(self, collection: str, base_url: Optional[str] = None, timeout: float = 30.0) -> None:
        self.collection = collection
        self.base_url = (base_url or qdrant_url()).rstrip("/")
        self.timeout = float(timeout)

    def find_similar(
        self,
        user_id: str,
        vector: List[float],
        limit: int,
        min_similarity: float,
        tags: Optional[Sequence[str]] = None,
        importance: Optional[float] = None,
    ) -> List[MemoryCandidate]:
        body = {
            "vector": list(vector),
            "limit": int(limit),
            "with_vector": False,
            "with_payload": True,
            "score_threshold": float(min_similarity),
            "filter": build_filter(user_id, tags, importance),
        }
        url = f"{self.base_url}/collections/{self.collection}/points/search"
        try:
            r = requests.post(url, json=body, timeout=self.timeout)
            r.raise_for_status()
            data = r.json() or {}
        except (requests.RequestException, ValueError) as exc:
            logger.error("Memory search failed | collection=%s | error=%s", self.collection, exc)
            raise MemorySearchError(f"Qdrant search failed: {exc}") from exc
        hits = [_to_candidate(it) for it in (data.get("result") or [])]
        return sorted(hits, key=lambda c: c.similarity, reverse=True)
