from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Mapping, Optional, Type

from ..application.service import SemanticMemoryService
from ..application.use_cases.generate_embeddings import GenerateEmbeddingsUseCase
from ..application.use_cases.probe_providers import ProviderHealthMonitor
from ..application.use_cases.search_memory import SearchMemoryUseCase
from ..domain.interfaces import EmbeddingProvider, MemorySearchBackend
from .cache import EmbeddingCache
from .config import EmbeddingCoreConfig, collection_name
from .logging import get_logger
from .providers.base import HttpEmbeddingService
from .providers.cohere import CohereEmbeddingService
from .providers.google import GoogleEmbeddingService
from .providers.mistral import MistralEmbeddingService
from .providers.ollama import OllamaEmbeddingService
from .qdrant.client import QdrantMemorySearch
from .usage import UsageLedger

logger = get_logger("semantic_recall.factory")

ADAPTERS: Dict[str, Type[HttpEmbeddingService]] = {
    "cohere": CohereEmbeddingService,
    "mistral": MistralEmbeddingService,
    "google": GoogleEmbeddingService,
    "ollama": OllamaEmbeddingService,
}


def build_providers(config: EmbeddingCoreConfig) -> Dict[str, EmbeddingProvider]:
    """Instantiate the HTTP adapter of every configured provider with a known adapter."""
    out: Dict[str, EmbeddingProvider] = {}
    for spec in config.providers:
        adapter = ADAPTERS.get(spec.name)
        if adapter is None:
            logger.warning("No adapter for provider | provider=%s", spec.name)
            continue
        out[spec.name] = adapter(spec)
    return out


def default_search_backend(config: EmbeddingCoreConfig) -> Optional[MemorySearchBackend]:
    name = collection_name()
    if not name:
        return None
    return QdrantMemorySearch(name, timeout=config.request_timeout_seconds)


def build_service(
    config: Optional[EmbeddingCoreConfig] = None,
    search_backend: Optional[MemorySearchBackend] = None,
    providers: Optional[Mapping[str, EmbeddingProvider]] = None,
    clock: Callable[[], float] = time.time,
) -> SemanticMemoryService:
    """Wire the core from explicit collaborators.

    Args:
        config: Defaults to ``EmbeddingCoreConfig.from_env()``.
        search_backend: Defaults to Qdrant when MEMORY_COLLECTION_NAME is set.
        providers: Defaults to the HTTP adapters for ``config.providers``.
        clock: Wall clock for cache timestamps and health checks.
    """
    config = config or EmbeddingCoreConfig.from_env()
    providers = dict(providers) if providers is not None else build_providers(config)
    backend = search_backend if search_backend is not None else default_search_backend(config)

    executor = ThreadPoolExecutor(max_workers=config.max_workers, thread_name_prefix="embed")
    cache = EmbeddingCache(
        ttl_seconds=config.cache_ttl_seconds,
        max_entries=config.cache_max_entries,
        evict_count=config.cache_evict_count,
        clock=clock,
    )
    ledger = UsageLedger()
    health = ProviderHealthMonitor(providers, config.providers, executor, config.probe_timeout_seconds, clock=clock)
    embeddings = GenerateEmbeddingsUseCase(providers, config, cache, ledger, health, executor)
    search = (
        SearchMemoryUseCase(embeddings, backend, ledger, executor, config.request_timeout_seconds)
        if backend is not None
        else None
    )
    return SemanticMemoryService(config, embeddings, search, health, ledger, cache, executor)
