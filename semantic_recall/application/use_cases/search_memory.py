from __future__ import annotations

import time
from concurrent.futures import Executor
from functools import partial
from typing import List

from ...domain.errors import ContractError, MemorySearchError, ProviderTimeoutError
from ...domain.interfaces import MemorySearchBackend
from ...domain.models import ContextLevel, MemoryCandidate, SearchStats, SemanticSearchResult, mean_similarity
from ...infrastructure.logging import get_logger
from ...infrastructure.timeouts import Deadline, run_with_deadline
from ...infrastructure.usage import UsageLedger
from ..context_selection import select_for_context
from ..dto import EmbedRequest, SearchRequest
from .generate_embeddings import GenerateEmbeddingsUseCase

logger = get_logger("semantic_recall.search")


def _find_similar(backend: MemorySearchBackend, req: SearchRequest, vector: List[float], budget: float) -> List[MemoryCandidate]:
    return backend.find_similar(
        req.user_id,
        vector,
        int(req.limit),
        float(req.min_similarity),
        list(req.tags) if req.tags else None,
        req.importance,
    )


class SearchMemoryUseCase:
    """Use-case: embed the query, delegate similarity search, apply the context level."""

    def __init__(
        self,
        embeddings: GenerateEmbeddingsUseCase,
        backend: MemorySearchBackend,
        ledger: UsageLedger,
        executor: Executor,
        search_timeout: float = 30.0,
    ) -> None:
        self._emb = embeddings
        self._backend = backend
        self._ledger = ledger
        self._executor = executor
        self.search_timeout = float(search_timeout)

    def execute(self, req: SearchRequest) -> SemanticSearchResult:
        """
        Run one semantic memory search.

        Provider outages never fail the search (the query embedding degrades
        instead); storage-side failures do. The search call is bounded by
        ``req.timeout`` (default ``search_timeout``) and by ``req.deadline``
        when the caller supplies one.

        Raises:
            ContractError: Empty user id or query, or a non-positive limit.
            MemorySearchError: The vector-search collaborator failed, timed out
                or the caller cancelled the deadline.
        """
        if not str(req.user_id or "").strip():
            raise ContractError("user_id cannot be empty")
        if not str(req.query or "").strip():
            raise ContractError("query cannot be empty")
        if int(req.limit) <= 0:
            raise ContractError("limit must be positive")

        started = time.monotonic()
        level = ContextLevel.parse(req.context_level)
        if level.value != str(req.context_level).strip().lower():
            logger.debug("Unrecognized context level | value=%s | using=%s", req.context_level, level.value)

        emb = self._emb.execute(
            EmbedRequest(
                texts=[req.query],
                preferred_provider=req.preferred_provider,
                timeout=req.timeout,
                deadline=req.deadline,
            )
        )
        query_vector = emb.embeddings[0]

        budget = self.search_timeout if req.timeout is None else float(req.timeout)
        deadline = req.deadline or Deadline(budget)
        try:
            candidates = run_with_deadline(
                self._executor,
                partial(_find_similar, self._backend, req, query_vector),
                deadline,
                budget,
            )
        except MemorySearchError:
            raise
        except ProviderTimeoutError as exc:
            logger.error("Semantic search timed out | user=%s | error=%s", req.user_id, exc)
            raise MemorySearchError(f"Semantic search timed out: {exc}") from exc
        except Exception as exc:
            logger.error("Semantic search failed | user=%s | error=%s", req.user_id, exc)
            raise MemorySearchError(f"Semantic search failed: {exc}") from exc

        selected = select_for_context(candidates, level, int(req.limit))
        stats = SearchStats(
            total_found=len(candidates),
            selected=len(selected),
            average_similarity=mean_similarity(selected),
            search_time_ms=int((time.monotonic() - started) * 1000),
            provider=emb.provider,
            model=emb.model,
            dimensions=emb.dimensions,
            cache_hit=emb.from_cache,
            degraded=emb.degraded,
            usage=self._ledger.snapshot(emb.provider),
        )
        logger.info(
            "Memory search | user=%s | level=%s | found=%d | selected=%d | provider=%s | degraded=%s",
            req.user_id, level.value, len(candidates), len(selected), emb.provider, emb.degraded,
        )
        return SemanticSearchResult(memories=selected, query_embedding=query_vector, stats=stats)
