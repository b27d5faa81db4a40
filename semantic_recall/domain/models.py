from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .errors import MalformedResponseError

DEFAULT_TAG = "general"


@dataclass(frozen=True)
class ProviderSpec:
    """Static description of one interchangeable embedding backend.

    Fields:
        name: Provider identifier (e.g., "cohere").
        model: Default model name sent to the provider.
        dimensions: Declared output dimensionality; None when the provider decides.
        priority: Fallback rank; lower values are tried first.
        cost_per_1k_tokens: Estimated price used by the usage ledger.
        enabled: Disabled providers never enter the fallback chain.
        available_models: Models the provider offers (informational).
        max_text_length: Maximum characters per input text (informational).
    """
    name: str
    model: str
    dimensions: Optional[int] = None
    priority: int = 100
    cost_per_1k_tokens: float = 0.0
    enabled: bool = True
    available_models: Tuple[str, ...] = ()
    max_text_length: Optional[int] = None


@dataclass(frozen=True)
class ProviderResponse:
    """Raw outcome of a single provider call.

    Fields:
        vectors: One embedding per input text, in input order.
        model: Model that produced the vectors.
        tokens: Token usage reported by the provider, if any.
    """
    vectors: List[List[float]]
    model: str
    tokens: Optional[int] = None


@dataclass(frozen=True)
class EmbeddingResult:
    """Outcome of one embedding request, with provenance.

    Fields:
        embeddings: One vector per input text, in input order.
        provider: Provider that produced the fresh vectors ("fallback" when degraded).
        model: Model that produced the fresh vectors.
        dimensions: Length of each vector.
        degraded: True when vectors were synthesized because every provider failed.
        cache_hits: Number of vectors served from the cache.
        attempted: Provider names tried, in order.
    """
    embeddings: List[List[float]]
    provider: str
    model: str
    dimensions: int
    degraded: bool = False
    cache_hits: int = 0
    attempted: Tuple[str, ...] = ()

    @property
    def from_cache(self) -> bool:
        return self.cache_hits == len(self.embeddings) and not self.degraded


@dataclass(frozen=True)
class CacheEntry:
    """Cached embedding with the provider/model that produced it."""
    vector: Tuple[float, ...]
    provider: str
    model: str
    created_at: float


@dataclass(frozen=True)
class ProviderHealthStatus:
    healthy: bool
    response_time_ms: int
    error: Optional[str] = None
    checked_at: Optional[float] = None


@dataclass(frozen=True)
class UsageRecord:
    """Cumulative per-provider usage."""
    requests: int = 0
    cost: float = 0.0
    tokens: int = 0


@dataclass(frozen=True)
class MemoryCandidate:
    """A stored memory returned by the vector-search collaborator.

    Fields:
        id: Record identifier in the store.
        content: Memory text.
        similarity: Similarity to the query in [0, 1].
        tags: Topic tags; the first one is the primary tag.
        importance: Importance score assigned at storage time.
        timestamp: Creation time as reported by the store.
    """
    id: str
    content: str
    similarity: float
    tags: Tuple[str, ...] = ()
    importance: Optional[float] = None
    timestamp: Optional[str] = None

    @property
    def primary_tag(self) -> str:
        return self.tags[0] if self.tags and self.tags[0] else DEFAULT_TAG


class ContextLevel(str, Enum):
    LIGHT = "light"
    BALANCED = "balanced"
    COMPREHENSIVE = "comprehensive"

    @classmethod
    def parse(cls, value: object) -> "ContextLevel":
        """Return the matching level; anything unrecognized means BALANCED."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.BALANCED


@dataclass(frozen=True)
class SearchStats:
    total_found: int
    selected: int
    average_similarity: float
    search_time_ms: int
    provider: str
    model: str
    dimensions: int
    cache_hit: bool
    degraded: bool
    usage: UsageRecord = field(default_factory=UsageRecord)


@dataclass(frozen=True)
class SemanticSearchResult:
    memories: List[MemoryCandidate]
    query_embedding: List[float]
    stats: SearchStats


def mean_similarity(memories: Sequence[MemoryCandidate]) -> float:
    if not memories:
        return 0.0
    return sum(m.similarity for m in memories) / len(memories)


def validate_vectors(
    provider: str,
    rows: object,
    expected_count: int,
    expected_dim: Optional[int] = None,
) -> List[List[float]]:
    """Check a provider payload is one same-length numeric vector per input text.

    Raises:
        MalformedResponseError: Any deviation from that shape.
    """
    if not isinstance(rows, list) or len(rows) != expected_count:
        got = len(rows) if isinstance(rows, list) else type(rows).__name__
        raise MalformedResponseError(f"{provider}: expected {expected_count} vectors, got {got}")
    vectors: List[List[float]] = []
    for row in rows:
        if not isinstance(row, (list, tuple)) or not row:
            raise MalformedResponseError(f"{provider}: invalid embedding format in response")
        try:
            vectors.append([float(x) for x in row])
        except (TypeError, ValueError) as exc:
            raise MalformedResponseError(f"{provider}: non-numeric embedding value") from exc
    dims = {len(v) for v in vectors}
    if len(dims) != 1:
        raise MalformedResponseError(f"{provider}: inconsistent embedding dimensions {sorted(dims)}")
    dim = dims.pop()
    if expected_dim is not None and dim != expected_dim:
        raise MalformedResponseError(f"{provider}: got dimension {dim}, expected {expected_dim}")
    return vectors
