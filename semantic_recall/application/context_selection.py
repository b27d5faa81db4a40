from __future__ import annotations

from typing import List, Optional, Sequence

from ..domain.models import ContextLevel, MemoryCandidate

LIGHT_COUNT = 2
BALANCED_WINDOW = 4
BALANCED_FLOOR = 2


def select_balanced(candidates: Sequence[MemoryCandidate]) -> List[MemoryCandidate]:
    """Topic-diverse pick from the top of the list.

    Walks the top BALANCED_WINDOW candidates and keeps one whenever its primary
    tag is new, or while fewer than BALANCED_FLOOR are kept. So a window where
    every memory shares one tag still yields two results.
    """
    window = list(candidates[:BALANCED_WINDOW])
    seen = set()
    kept: List[MemoryCandidate] = []
    for memory in window:
        topic = memory.primary_tag
        if topic not in seen or len(kept) < BALANCED_FLOOR:
            seen.add(topic)
            kept.append(memory)
    return kept or window


def select_for_context(
    candidates: Sequence[MemoryCandidate],
    level: object,
    limit: Optional[int] = None,
) -> List[MemoryCandidate]:
    """Apply a context level to similarity-ordered candidates.

    light: top 2. balanced: see select_balanced. comprehensive: everything up
    to ``limit``. Unrecognized levels behave as balanced.
    """
    resolved = ContextLevel.parse(level)
    if resolved is ContextLevel.LIGHT:
        return list(candidates[:LIGHT_COUNT])
    if resolved is ContextLevel.COMPREHENSIVE:
        return list(candidates if limit is None else candidates[:limit])
    return select_balanced(candidates)
