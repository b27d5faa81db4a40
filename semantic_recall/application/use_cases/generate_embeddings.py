from __future__ import annotations

import hashlib
from concurrent.futures import Executor
from functools import partial
from typing import Dict, List, Mapping, Optional

from ...domain.errors import ContractError
from ...domain.interfaces import EmbeddingProvider
from ...domain.models import CacheEntry, EmbeddingResult, ProviderResponse, ProviderSpec, validate_vectors
from ...infrastructure.cache import EmbeddingCache, cache_key, normalize_text
from ...infrastructure.config import EmbeddingCoreConfig
from ...infrastructure.logging import get_logger
from ...infrastructure.timeouts import Deadline, run_with_deadline
from ...infrastructure.usage import UsageLedger, estimate_cost, estimate_tokens
from ..dto import EmbedRequest
from .probe_providers import ProviderHealthMonitor

logger = get_logger("semantic_recall.embeddings")

DEGRADED_PROVIDER = "fallback"
DEGRADED_MODEL = "deterministic-hash"


def degraded_vector(text: str, dimensions: int) -> List[float]:
    """Stand-in vector for a text: same input, same output, values in [-0.5, 0.5)."""
    seed = normalize_text(text).encode("utf-8")
    out: List[float] = []
    counter = 0
    while len(out) < dimensions:
        digest = hashlib.sha256(seed + counter.to_bytes(4, "big")).digest()
        for i in range(0, len(digest), 4):
            out.append(int.from_bytes(digest[i:i + 4], "big") / 2**32 - 0.5)
        counter += 1
    return out[:dimensions]


def _call_provider(provider: EmbeddingProvider, texts: List[str], model: str, budget: float) -> ProviderResponse:
    return provider.embed_texts(texts, model, budget)


class GenerateEmbeddingsUseCase:
    """Use-case: embed texts through the provider fallback chain.

    Cache first, then providers one at a time in try order, each bounded by the
    remaining deadline. Never raises for provider trouble: when every provider
    fails, the result is synthesized and flagged ``degraded``.
    """

    def __init__(
        self,
        providers: Mapping[str, EmbeddingProvider],
        config: EmbeddingCoreConfig,
        cache: EmbeddingCache,
        ledger: UsageLedger,
        health: ProviderHealthMonitor,
        executor: Executor,
    ) -> None:
        self._providers = dict(providers)
        self._config = config
        self._cache = cache
        self._ledger = ledger
        self._health = health
        self._executor = executor
        self._last_dimensions: Optional[int] = None

    def try_order(self, preferred: Optional[str] = None) -> List[ProviderSpec]:
        """Healthy providers by priority, then unhealthy ones; a healthy preferred provider goes first."""
        ranked = sorted(
            (s for s in self._config.providers if s.enabled and s.name in self._providers),
            key=lambda s: s.priority,
        )
        healthy = [s for s in ranked if self._health.is_healthy(s.name)]
        order = healthy + [s for s in ranked if s not in healthy]
        if preferred:
            chosen = next((s for s in order if s.name == preferred), None)
            if chosen is None:
                logger.warning("Preferred provider not available | provider=%s", preferred)
            elif chosen in healthy:
                order.remove(chosen)
                order.insert(0, chosen)
        return order

    def execute(self, req: EmbedRequest) -> EmbeddingResult:
        texts = list(req.texts or [])
        if not texts:
            raise ContractError("Texts array cannot be empty")
        if not all(isinstance(t, str) for t in texts):
            raise ContractError("Texts must be strings")

        attempt_timeout = self._config.request_timeout_seconds if req.timeout is None else float(req.timeout)
        vectors: List[Optional[List[float]]] = [None] * len(texts)
        first_hit: Optional[CacheEntry] = None
        # key -> indices still needing a vector; duplicates share one provider slot
        pending: Dict[str, List[int]] = {}
        for i, text in enumerate(texts):
            key = cache_key(text, req.preferred_provider)
            entry = self._cache.get(key)
            if entry is not None:
                vectors[i] = list(entry.vector)
                first_hit = first_hit or entry
            else:
                pending.setdefault(key, []).append(i)

        hits = len(texts) - sum(len(ix) for ix in pending.values())
        if not pending:
            return EmbeddingResult(
                embeddings=vectors,
                provider=first_hit.provider,
                model=first_hit.model,
                dimensions=len(first_hit.vector),
                cache_hits=hits,
            )

        keys = list(pending)
        batch = [texts[pending[k][0]] for k in keys]
        order = self.try_order(req.preferred_provider)
        # Each attempt gets attempt_timeout; without a caller deadline the chain may use one per provider.
        deadline = req.deadline or Deadline(attempt_timeout * max(1, len(order)))
        attempted: List[str] = []
        for spec in order:
            if deadline.expired:
                logger.warning("Embedding deadline exhausted | attempted=%s", attempted)
                break
            attempted.append(spec.name)
            try:
                resp = run_with_deadline(
                    self._executor,
                    partial(_call_provider, self._providers[spec.name], batch, spec.model),
                    deadline,
                    attempt_timeout,
                )
                fresh = validate_vectors(spec.name, resp.vectors, len(batch), spec.dimensions)
            except Exception as exc:  # noqa: BLE001 - any provider failure advances the chain
                logger.warning("Provider failed | provider=%s | error=%s", spec.name, exc)
                self._health.mark_unhealthy(spec.name, str(exc))
                continue

            model = resp.model or spec.model
            tokens = resp.tokens if resp.tokens is not None else estimate_tokens(batch)
            self._ledger.record(spec.name, tokens=tokens, cost=estimate_cost(spec, batch, tokens))
            created = self._cache.now()
            for key, vec in zip(keys, fresh):
                self._cache.put(key, CacheEntry(vector=tuple(vec), provider=spec.name, model=model, created_at=created))
                for i in pending[key]:
                    vectors[i] = list(vec)
            self._last_dimensions = len(fresh[0])
            logger.info(
                "Embeddings generated | provider=%s | model=%s | fresh=%d | cache_hits=%d",
                spec.name, model, len(batch), hits,
            )
            return EmbeddingResult(
                embeddings=vectors,
                provider=spec.name,
                model=model,
                dimensions=len(fresh[0]),
                cache_hits=hits,
                attempted=tuple(attempted),
            )

        dims = len(first_hit.vector) if first_hit else (self._last_dimensions or self._config.fallback_dimensions)
        logger.error(
            "All embedding providers failed; returning degraded vectors | attempted=%s | count=%d | dims=%d",
            attempted, len(batch), dims,
        )
        for key, text in zip(keys, batch):
            vec = degraded_vector(text, dims)
            for i in pending[key]:
                vectors[i] = list(vec)
        return EmbeddingResult(
            embeddings=vectors,
            provider=DEGRADED_PROVIDER,
            model=DEGRADED_MODEL,
            dimensions=dims,
            degraded=True,
            cache_hits=hits,
            attempted=tuple(attempted),
        )
