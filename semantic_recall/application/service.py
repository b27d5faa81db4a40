from __future__ import annotations

from concurrent.futures import Executor
from typing import Any, Dict, List, Optional, Sequence

from ..domain.errors import ContractError
from ..domain.models import EmbeddingResult, ProviderHealthStatus, SemanticSearchResult
from ..infrastructure.cache import EmbeddingCache, cache_key
from ..infrastructure.config import EmbeddingCoreConfig
from ..infrastructure.logging import get_logger
from ..infrastructure.timeouts import Deadline
from ..infrastructure.usage import UsageLedger
from .dto import EmbedRequest, SearchRequest
from .use_cases.generate_embeddings import GenerateEmbeddingsUseCase
from .use_cases.probe_providers import ProviderHealthMonitor
from .use_cases.search_memory import SearchMemoryUseCase

logger = get_logger("semantic_recall.service")

COMMON_STUDY_TOPICS = (
    "thermodynamics",
    "organic chemistry",
    "integration",
    "electromagnetism",
    "kinematics",
    "mole concept",
    "differentiation",
    "waves",
    "kinetics",
    "periodic table",
)


class SemanticMemoryService:
    """Entry point for callers: embeddings, memory search, health and usage reporting.

    Built once at startup by ``infrastructure.factory.build_service`` and
    passed around by reference. Owns the worker executor; call ``close()``
    (or use it as a context manager) on shutdown.
    """

    def __init__(
        self,
        config: EmbeddingCoreConfig,
        embeddings: GenerateEmbeddingsUseCase,
        search_memory: Optional[SearchMemoryUseCase],
        health: ProviderHealthMonitor,
        ledger: UsageLedger,
        cache: EmbeddingCache,
        executor: Executor,
    ) -> None:
        self.config = config
        self._embeddings = embeddings
        self._search = search_memory
        self._health = health
        self._ledger = ledger
        self._cache = cache
        self._executor = executor

    def __enter__(self) -> "SemanticMemoryService":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    # --- Embeddings ---
    def generate_embeddings(
        self,
        texts: Sequence[str],
        preferred_provider: Optional[str] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> EmbeddingResult:
        return self._embeddings.execute(
            EmbedRequest(texts=list(texts), preferred_provider=preferred_provider, timeout=timeout, deadline=deadline)
        )

    def preload_topic_embeddings(
        self,
        topics: Optional[Sequence[str]] = None,
        preferred_provider: Optional[str] = None,
    ) -> EmbeddingResult:
        """Warm the cache with embeddings for common study topics."""
        result = self.generate_embeddings(list(topics or COMMON_STUDY_TOPICS), preferred_provider)
        if result.degraded:
            logger.warning("Topic preload degraded | count=%d", len(result.embeddings))
        else:
            logger.info("Topic preload | count=%d | provider=%s", len(result.embeddings), result.provider)
        return result

    # --- Search ---
    def search(
        self,
        user_id: str,
        query: str,
        limit: Optional[int] = None,
        min_similarity: Optional[float] = None,
        tags: Optional[Sequence[str]] = None,
        importance: Optional[float] = None,
        context_level: str = "balanced",
        preferred_provider: Optional[str] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> SemanticSearchResult:
        if self._search is None:
            raise ContractError("No memory search backend configured (set MEMORY_COLLECTION_NAME or pass search_backend)")
        return self._search.execute(
            SearchRequest(
                user_id=user_id,
                query=query,
                limit=self.config.default_limit if limit is None else limit,
                min_similarity=self.config.default_min_similarity if min_similarity is None else min_similarity,
                tags=tags,
                importance=importance,
                context_level=context_level,
                preferred_provider=preferred_provider,
                timeout=timeout,
                deadline=deadline,
            )
        )

    # --- Health ---
    def probe_all_providers(self) -> Dict[str, ProviderHealthStatus]:
        return self._health.probe_all()

    def probe_provider(self, name: str) -> ProviderHealthStatus:
        return self._health.probe(name)

    # --- Usage ---
    def get_usage_statistics(self) -> Dict[str, Any]:
        totals = self._ledger.totals()
        recorded = self._ledger.by_provider()
        names = [s.name for s in self.config.providers]
        names += [n for n in recorded if n not in names]
        by_provider = {}
        for name in names:
            rec = self._ledger.snapshot(name)
            by_provider[name] = {"requests": rec.requests, "cost": rec.cost, "healthy": self._health.is_healthy(name)}
        return {"total": {"requests": totals.requests, "cost": totals.cost}, "by_provider": by_provider}

    def reset_usage(self, provider: Optional[str] = None) -> None:
        self._ledger.reset(provider)

    def export_usage_csv(self) -> str:
        return self._ledger.to_csv([s.name for s in self.config.providers], self._health.statuses())

    def provider_info(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": s.name,
                "model": s.model,
                "models": list(s.available_models),
                "dimensions": s.dimensions,
                "priority": s.priority,
                "enabled": s.enabled,
                "max_text_length": s.max_text_length,
                "cost_per_1k_tokens": s.cost_per_1k_tokens,
            }
            for s in sorted(self.config.providers, key=lambda s: s.priority)
        ]

    # --- Cache ---
    def clear_cache(self) -> None:
        self._cache.clear()

    def get_cache_statistics(self) -> Dict[str, Any]:
        return self._cache.statistics()

    def has_cached_embedding(self, text: str, provider: Optional[str] = None) -> bool:
        return self._cache.contains_valid(cache_key(text, provider))
