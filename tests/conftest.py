"""
Pytest configuration and fixtures for semantic recall tests.

Provides in-process fake providers, a fake vector-search backend, a
controllable clock and a factory for fully wired services.
"""

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from semantic_recall.application.use_cases.generate_embeddings import GenerateEmbeddingsUseCase
from semantic_recall.application.use_cases.probe_providers import ProviderHealthMonitor
from semantic_recall.domain.errors import EmbeddingError
from semantic_recall.domain.interfaces import EmbeddingProvider, MemorySearchBackend
from semantic_recall.domain.models import MemoryCandidate, ProviderResponse, ProviderSpec
from semantic_recall.infrastructure.cache import EmbeddingCache
from semantic_recall.infrastructure.config import EmbeddingCoreConfig
from semantic_recall.infrastructure.factory import build_service
from semantic_recall.infrastructure.usage import UsageLedger

DIMS = 8
FALLBACK_DIMS = 16


class FakeClock:
    """Wall clock the tests move by hand."""

    def __init__(self, start=1_700_000_000.0):
        self.now = float(start)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeProvider(EmbeddingProvider):
    """In-process provider with switchable failure modes.

    fail: raise EmbeddingError on every call.
    fail_times: raise on the first N calls only.
    delay: sleep before answering (for timeout tests).
    malformed: answer with no vectors.
    dimensions: length of produced vectors.
    """

    def __init__(self, name, dimensions=DIMS, fail=False, fail_times=0, delay=0.0, malformed=False):
        self.name = name
        self.dimensions = dimensions
        self.fail = fail
        self.fail_times = fail_times
        self.delay = delay
        self.malformed = malformed
        self.calls = []
        self._lock = threading.Lock()

    @property
    def call_count(self):
        return len(self.calls)

    def vector_for(self, text):
        base = float(len(text) % 7 + 1)
        return [round(base / (i + 1), 6) for i in range(self.dimensions)]

    def embed_texts(self, texts, model=None, timeout=30.0):
        with self._lock:
            self.calls.append(list(texts))
            attempt = len(self.calls)
        if self.delay:
            time.sleep(self.delay)
        if self.fail or attempt <= self.fail_times:
            raise EmbeddingError(f"{self.name} unavailable")
        if self.malformed:
            return ProviderResponse(vectors=[], model=f"{self.name}-model")
        return ProviderResponse(
            vectors=[self.vector_for(t) for t in texts],
            model=f"{self.name}-model",
            tokens=len(texts),
        )


class FakeSearchBackend(MemorySearchBackend):
    """Returns canned candidates and records every call."""

    def __init__(self, candidates=None, error=None, delay=0.0):
        self.candidates = list(candidates or [])
        self.error = error
        self.delay = delay
        self.calls = []

    def find_similar(self, user_id, vector, limit, min_similarity, tags=None, importance=None):
        self.calls.append(
            {
                "user_id": user_id,
                "vector": list(vector),
                "limit": limit,
                "min_similarity": min_similarity,
                "tags": tags,
                "importance": importance,
            }
        )
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.candidates[:limit])


def make_candidates(similarities, tags=None):
    """Similarity-ordered candidates; ``tags`` gives the tag tuple per candidate."""
    tags = tags or [("general",)] * len(similarities)
    return [
        MemoryCandidate(id=f"m{i}", content=f"memory {i}", similarity=s, tags=tuple(t))
        for i, (s, t) in enumerate(zip(similarities, tags))
    ]


def make_specs(*names, dims=DIMS, costs=None):
    costs = costs or {}
    return tuple(
        ProviderSpec(name=n, model=f"{n}-model", dimensions=dims, priority=i + 1, cost_per_1k_tokens=costs.get(n, 0.0))
        for i, n in enumerate(names)
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def providers():
    """Three healthy fake providers, p1 < p2 < p3 by priority."""
    return {n: FakeProvider(n) for n in ("p1", "p2", "p3")}


@pytest.fixture
def core_config():
    return EmbeddingCoreConfig(
        providers=make_specs("p1", "p2", "p3"),
        fallback_dimensions=FALLBACK_DIMS,
        request_timeout_seconds=5.0,
        probe_timeout_seconds=1.0,
        max_workers=8,
    )


@pytest.fixture
def service_factory(core_config, providers, clock):
    """Factory for wired services; every built service is closed on teardown."""
    built = []

    def _make(config=None, backend=None, provider_map=None, clk=None):
        svc = build_service(
            config=config or core_config,
            search_backend=backend,
            providers=provider_map if provider_map is not None else providers,
            clock=clk or clock,
        )
        built.append(svc)
        return svc

    yield _make
    for svc in built:
        svc.close()


@pytest.fixture
def service(service_factory):
    return service_factory()


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=8)
    yield pool
    pool.shutdown(wait=False)


@pytest.fixture
def use_case_parts(core_config, providers, clock, executor):
    """Hand-wired orchestrator exposing its cache, ledger and health monitor."""
    cache = EmbeddingCache(clock=clock)
    ledger = UsageLedger()
    health = ProviderHealthMonitor(providers, core_config.providers, executor, core_config.probe_timeout_seconds, clock)
    use_case = GenerateEmbeddingsUseCase(providers, core_config, cache, ledger, health, executor)
    return use_case, cache, ledger, health


@pytest.fixture
def clean_environment(monkeypatch, tmp_path):
    """No provider/search env vars and no .env in CWD."""
    for var in list(os.environ):
        if var.startswith(("EMBED_", "MEMORY_")) or var.endswith(("_API_KEY", "_EMBED_MODEL")):
            monkeypatch.delenv(var, raising=False)
    for var in ("QDRANT_URL", "OLLAMA_URL", "SR_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield tmp_path


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "cli: mark test as CLI command test")
    config.addinivalue_line("markers", "env: mark test as environment resolution test")
    config.addinivalue_line("markers", "concurrency: mark test as multi-threaded stress test")
