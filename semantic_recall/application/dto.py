from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..infrastructure.timeouts import Deadline


@dataclass(frozen=True)
class EmbedRequest:
    texts: List[str]
    preferred_provider: Optional[str] = None
    timeout: Optional[float] = None
    deadline: Optional[Deadline] = None


@dataclass(frozen=True)
class SearchRequest:
    user_id: str
    query: str
    limit: int = 5
    min_similarity: float = 0.7
    tags: Optional[Sequence[str]] = None
    importance: Optional[float] = None
    context_level: str = "balanced"
    preferred_provider: Optional[str] = None
    timeout: Optional[float] = None
    deadline: Optional[Deadline] = None
