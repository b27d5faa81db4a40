from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any, Dict, Optional, Sequence

from ..application.service import SemanticMemoryService
from ..domain.errors import ContractError
from ..domain.interfaces import MemorySearchBackend
from ..domain.models import EmbeddingResult, SemanticSearchResult
from ..infrastructure.factory import build_service
from ..infrastructure.logging import get_logger
from ..infrastructure.qdrant.client import QdrantMemorySearch
from .parsers import build_parser

logger = get_logger("semantic_recall.cli")


def _search_backend(ns) -> Optional[MemorySearchBackend]:
    """Explicit --name wins; otherwise the factory falls back to MEMORY_COLLECTION_NAME."""
    name = getattr(ns, "name", None)
    if name and str(name).strip():
        return QdrantMemorySearch(str(name).strip())
    return None


def run(argv: Optional[Sequence[str]] = None, service: Optional[SemanticMemoryService] = None) -> int:
    ap = build_parser()
    ns = ap.parse_args(list(argv or []))
    if not ns.cmd:
        ap.print_help()
        return 2

    svc = service or build_service(search_backend=_search_backend(ns))
    try:
        return dispatch_commands(ns, svc)
    except ContractError as ex:
        print(json.dumps({"status": "error", "error": str(ex)}))
        return 2
    except Exception as ex:  # keep CLI concise and user-friendly
        print(json.dumps({"status": "error", "error": f"{type(ex).__name__}: {ex}"}))
        return 3
    finally:
        if service is None:
            svc.close()


def dispatch_commands(ns, svc: SemanticMemoryService) -> int:
    """
    Dispatches CLI commands to the service.

    Commands:
    - embed: embed one or more texts through the provider fallback chain
    - search: semantic memory search for one user (Qdrant-backed)
    - probe: explicit provider health probes
    - usage: per-provider request/cost report (JSON or CSV)
    - providers: configured providers, models and priorities
    """
    if ns.cmd == "embed":
        return embed_texts(ns, svc)
    if ns.cmd == "search":
        return search_memories(ns, svc)
    if ns.cmd == "probe":
        return probe_providers(ns, svc)
    if ns.cmd == "usage":
        return usage_report(ns, svc)
    if ns.cmd == "providers":
        print(json.dumps({"status": "ok", "providers": svc.provider_info()}, indent=2))
        return 0

    print(json.dumps({"status": "error", "error": f"Unknown command: {ns.cmd}"}))
    return 2


def _serialize_embedding_result(result: EmbeddingResult, preview: int) -> Dict[str, Any]:
    vectors = result.embeddings if preview <= 0 else [v[:preview] for v in result.embeddings]
    return {
        "provider": result.provider,
        "model": result.model,
        "dimensions": result.dimensions,
        "degraded": result.degraded,
        "cache_hits": result.cache_hits,
        "attempted": list(result.attempted),
        "embeddings": vectors,
    }


def _serialize_search_result(result: SemanticSearchResult) -> Dict[str, Any]:
    return {
        "memories": [asdict(m) for m in result.memories],
        "stats": asdict(result.stats),
    }


def embed_texts(ns, svc: SemanticMemoryService) -> int:
    texts = [str(t) for t in (ns.text or []) if str(t).strip()]
    if not texts:
        print(json.dumps({"status": "error", "error": "At least one non-empty --text is required"}))
        return 2
    result = svc.generate_embeddings(texts, preferred_provider=ns.provider, timeout=ns.timeout)
    payload = {"status": "ok", **_serialize_embedding_result(result, int(ns.preview))}
    print(json.dumps(payload, indent=2))
    return 0


def search_memories(ns, svc: SemanticMemoryService) -> int:
    tags = [t.strip() for t in (ns.tag or []) if t and t.strip()]
    logger.info("CLI search | user=%s | context=%s | k=%s", ns.user, ns.context, ns.k)
    result = svc.search(
        user_id=ns.user,
        query=ns.q,
        limit=ns.k,
        min_similarity=ns.min_similarity,
        tags=tags or None,
        importance=ns.importance,
        context_level=ns.context,
        preferred_provider=ns.provider,
        timeout=ns.timeout,
    )
    print(json.dumps({"status": "ok", **_serialize_search_result(result)}, indent=2))
    return 0


def probe_providers(ns, svc: SemanticMemoryService) -> int:
    if ns.provider:
        statuses = {ns.provider: svc.probe_provider(ns.provider)}
    else:
        statuses = svc.probe_all_providers()
    print(json.dumps({"status": "ok", "providers": {k: asdict(v) for k, v in statuses.items()}}, indent=2))
    return 0


def usage_report(ns, svc: SemanticMemoryService) -> int:
    if ns.csv:
        print(svc.export_usage_csv(), end="")
        return 0
    print(json.dumps({"status": "ok", **svc.get_usage_statistics()}, indent=2))
    return 0


def main() -> int:
    import sys
    return run(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
