from __future__ import annotations

import contextlib
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..domain.models import ProviderSpec


def parse_dotenv(dotenv_path: Path) -> Dict[str, str]:
    """Parse a simple .env file (KEY=VALUE per line, '#' comments, quotes stripped)."""
    env: Dict[str, str] = {}
    if dotenv_path.exists():
        with contextlib.suppress(Exception):
            for raw in dotenv_path.read_text(encoding="utf-8", errors="ignore").splitlines():
                s = raw.strip()
                if not s or s.startswith("#") or "=" not in s:
                    continue
                k, v = s.split("=", 1)
                k = k.strip()
                v = v.strip().strip('"').strip("'")
                if k:
                    env[k] = v
    return env


def env_get(key: str) -> Optional[str]:
    """Get environment value from process env, falling back to .env in CWD."""
    v = os.getenv(key)
    if v is not None and v.strip():
        return v.strip()
    local = parse_dotenv(Path(".env"))
    v2 = local.get(key)
    return v2.strip() if v2 is not None and v2.strip() else None


def env_str(name: str, default: str) -> str:
    return env_get(name) or default


def env_float(name: str, default: float) -> float:
    try:
        return float(env_str(name, str(default)))
    except Exception:
        return default


def env_int(name: str, default: int) -> int:
    try:
        return int(env_str(name, str(default)))
    except Exception:
        return default


def qdrant_url() -> str:
    return env_str("QDRANT_URL", "http://localhost:6333").rstrip("/")


def ollama_url() -> str:
    return env_str("OLLAMA_URL", "http://localhost:11434").rstrip("/")


def collection_name() -> Optional[str]:
    return env_get("MEMORY_COLLECTION_NAME")


def api_key(provider: str) -> Optional[str]:
    """API key for a provider, e.g. COHERE_API_KEY for "cohere"."""
    return env_get(f"{provider.upper()}_API_KEY")


BUILTIN_PROVIDERS: Dict[str, ProviderSpec] = {
    "cohere": ProviderSpec(
        name="cohere",
        model="embed-english-v3.0",
        dimensions=1024,
        priority=1,
        cost_per_1k_tokens=0.1,
        available_models=("embed-english-v3.0", "embed-multilingual-v3.0"),
        max_text_length=2048,
    ),
    "mistral": ProviderSpec(
        name="mistral",
        model="mistral-embed",
        dimensions=1024,
        priority=2,
        cost_per_1k_tokens=0.1,
        available_models=("mistral-embed",),
        max_text_length=32000,
    ),
    "google": ProviderSpec(
        name="google",
        model="text-embedding-004",
        dimensions=768,
        priority=3,
        cost_per_1k_tokens=0.0,
        available_models=("text-embedding-004",),
        max_text_length=8192,
    ),
    "ollama": ProviderSpec(
        name="ollama",
        model="mxbai-embed-large",
        dimensions=1024,
        priority=4,
        cost_per_1k_tokens=0.0,
        available_models=("mxbai-embed-large", "nomic-embed-text"),
    ),
}

DEFAULT_PROVIDER_ORDER = ("cohere", "mistral", "google")


@dataclass(frozen=True)
class EmbeddingCoreConfig:
    """Recognized options for the embedding and retrieval core.

    Fields:
        providers: Provider specs; priority decides fallback order.
        cache_ttl_seconds: Age after which a cache entry is a miss.
        cache_max_entries: Size ceiling that triggers the capacity sweep.
        cache_evict_count: Oldest entries removed by one capacity sweep.
        request_timeout_seconds: Default overall budget of one embedding call.
        probe_timeout_seconds: Budget of one health probe.
        fallback_dimensions: Degraded vector length when no dimension is known yet.
        default_limit: Search limit when the caller gives none.
        default_min_similarity: Search threshold when the caller gives none.
        max_workers: Threads available for bounded provider calls.
    """
    providers: Tuple[ProviderSpec, ...] = field(
        default_factory=lambda: tuple(BUILTIN_PROVIDERS[n] for n in DEFAULT_PROVIDER_ORDER)
    )
    cache_ttl_seconds: float = 24 * 60 * 60
    cache_max_entries: int = 1000
    cache_evict_count: int = 500
    request_timeout_seconds: float = 30.0
    probe_timeout_seconds: float = 5.0
    fallback_dimensions: int = 1536
    default_limit: int = 5
    default_min_similarity: float = 0.7
    max_workers: int = 16

    def provider(self, name: str) -> Optional[ProviderSpec]:
        for spec in self.providers:
            if spec.name == name:
                return spec
        return None

    @classmethod
    def from_env(cls) -> "EmbeddingCoreConfig":
        """Build config from env/.env.

        EMBED_PROVIDERS is a comma list of built-in provider names; its order
        overrides the built-in priorities. <NAME>_EMBED_MODEL overrides a model.
        """
        names = [n.strip().lower() for n in env_str("EMBED_PROVIDERS", ",".join(DEFAULT_PROVIDER_ORDER)).split(",")]
        specs = []
        for rank, name in enumerate(n for n in names if n in BUILTIN_PROVIDERS):
            base = BUILTIN_PROVIDERS[name]
            specs.append(replace(base, priority=rank + 1, model=env_str(f"{name.upper()}_EMBED_MODEL", base.model)))
        defaults = cls()
        return cls(
            providers=tuple(specs) or defaults.providers,
            cache_ttl_seconds=env_float("EMBED_CACHE_TTL_SECONDS", defaults.cache_ttl_seconds),
            cache_max_entries=env_int("EMBED_CACHE_MAX_ENTRIES", defaults.cache_max_entries),
            cache_evict_count=env_int("EMBED_CACHE_EVICT_COUNT", defaults.cache_evict_count),
            request_timeout_seconds=env_float("EMBED_REQUEST_TIMEOUT", defaults.request_timeout_seconds),
            probe_timeout_seconds=env_float("EMBED_PROBE_TIMEOUT", defaults.probe_timeout_seconds),
            fallback_dimensions=env_int("EMBED_FALLBACK_DIMENSIONS", defaults.fallback_dimensions),
            default_limit=env_int("MEMORY_SEARCH_LIMIT", defaults.default_limit),
            default_min_similarity=env_float("MEMORY_MIN_SIMILARITY", defaults.default_min_similarity),
            max_workers=env_int("EMBED_MAX_WORKERS", defaults.max_workers),
        )
