from __future__ import annotations

import csv
import io
import math
import threading
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Sequence

from ..domain.models import ProviderHealthStatus, ProviderSpec, UsageRecord

_CHARS_PER_TOKEN = 4


def estimate_tokens(texts: Sequence[str]) -> int:
    return sum(math.ceil(len(t) / _CHARS_PER_TOKEN) for t in texts)


def estimate_cost(spec: ProviderSpec, texts: Sequence[str], tokens: Optional[int] = None) -> float:
    """Price of one call; reported tokens win over the character estimate."""
    used = tokens if tokens is not None else estimate_tokens(texts)
    return used / 1000.0 * spec.cost_per_1k_tokens


class UsageLedger:
    """Per-provider request counts, tokens and estimated cost.

    Counters only grow, except through reset(). Safe for concurrent writers.
    """

    def __init__(self) -> None:
        self._records: Dict[str, UsageRecord] = {}
        self._lock = threading.Lock()

    def record(self, provider: str, requests: int = 1, tokens: int = 0, cost: float = 0.0) -> UsageRecord:
        with self._lock:
            cur = self._records.get(provider, UsageRecord())
            updated = UsageRecord(
                requests=cur.requests + int(requests),
                cost=cur.cost + float(cost),
                tokens=cur.tokens + int(tokens),
            )
            self._records[provider] = updated
            return updated

    def snapshot(self, provider: str) -> UsageRecord:
        with self._lock:
            return self._records.get(provider, UsageRecord())

    def by_provider(self) -> Dict[str, UsageRecord]:
        with self._lock:
            return dict(self._records)

    def totals(self) -> UsageRecord:
        records = self.by_provider().values()
        return UsageRecord(
            requests=sum(r.requests for r in records),
            cost=sum(r.cost for r in records),
            tokens=sum(r.tokens for r in records),
        )

    def reset(self, provider: Optional[str] = None) -> None:
        with self._lock:
            if provider is None:
                self._records.clear()
            else:
                self._records.pop(provider, None)

    def to_csv(self, providers: Sequence[str], health: Mapping[str, ProviderHealthStatus]) -> str:
        """Export one row per provider: Date,Provider,Requests,Tokens,Cost,Status."""
        today = datetime.now(timezone.utc).date().isoformat()
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(["Date", "Provider", "Requests", "Tokens", "Cost", "Status"])
        for name in providers:
            rec = self.snapshot(name)
            status = health.get(name)
            label = "Unknown" if status is None else ("Healthy" if status.healthy else "Unhealthy")
            writer.writerow([today, name, rec.requests, rec.tokens, f"{rec.cost:.4f}", label])
        return buf.getvalue()
