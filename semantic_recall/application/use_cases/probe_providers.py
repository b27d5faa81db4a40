from __future__ import annotations

import threading
import time
from concurrent.futures import Executor
from functools import partial
from typing import Callable, Dict, Mapping, Sequence

from ...domain.errors import UnknownProviderError
from ...domain.interfaces import EmbeddingProvider
from ...domain.models import ProviderHealthStatus, ProviderSpec, validate_vectors
from ...infrastructure.logging import get_logger
from ...infrastructure.timeouts import Deadline, run_with_deadline

logger = get_logger("semantic_recall.health")

PROBE_TEXT = "health check"


class ProviderHealthMonitor:
    """Explicit, on-demand health probes for embedding providers.

    Health is advisory: the orchestrator moves unhealthy providers to the end
    of its try order but never drops them. Nothing here runs in the background.
    """

    def __init__(
        self,
        providers: Mapping[str, EmbeddingProvider],
        specs: Sequence[ProviderSpec],
        executor: Executor,
        probe_timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._providers = dict(providers)
        self._specs = {s.name: s for s in specs}
        self._executor = executor
        self.probe_timeout = float(probe_timeout)
        self._clock = clock
        self._statuses: Dict[str, ProviderHealthStatus] = {}
        self._lock = threading.Lock()

    def probe(self, name: str) -> ProviderHealthStatus:
        """Send one minimal embedding request and record the outcome."""
        provider = self._providers.get(name)
        if provider is None:
            raise UnknownProviderError(f"Unknown embedding provider '{name}'")
        spec = self._specs.get(name)
        model = spec.model if spec else None
        started = time.monotonic()
        try:
            resp = run_with_deadline(
                self._executor,
                partial(provider.embed_texts, [PROBE_TEXT], model),
                Deadline(self.probe_timeout),
            )
            validate_vectors(name, resp.vectors, 1, spec.dimensions if spec else None)
        except Exception as exc:  # noqa: BLE001 - any failure means unhealthy
            elapsed = int((time.monotonic() - started) * 1000)
            status = ProviderHealthStatus(healthy=False, response_time_ms=elapsed, error=str(exc), checked_at=self._clock())
            logger.warning("Probe failed | provider=%s | ms=%d | error=%s", name, elapsed, exc)
        else:
            elapsed = int((time.monotonic() - started) * 1000)
            status = ProviderHealthStatus(healthy=True, response_time_ms=elapsed, checked_at=self._clock())
            logger.info("Probe ok | provider=%s | ms=%d", name, elapsed)
        with self._lock:
            self._statuses[name] = status
        return status

    def probe_all(self) -> Dict[str, ProviderHealthStatus]:
        return {name: self.probe(name) for name in self._providers}

    def mark_unhealthy(self, name: str, error: str) -> None:
        with self._lock:
            self._statuses[name] = ProviderHealthStatus(
                healthy=False, response_time_ms=0, error=error, checked_at=self._clock()
            )

    def is_healthy(self, name: str) -> bool:
        with self._lock:
            status = self._statuses.get(name)
        return True if status is None else status.healthy

    def statuses(self) -> Dict[str, ProviderHealthStatus]:
        with self._lock:
            return dict(self._statuses)
