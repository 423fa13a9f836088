"""Filter semantics shared by every store implementation.

Both the similarity query and the plain query must apply exactly the same
filters, and every backend must agree on them, so the predicate and the
fallback ordering live here rather than in each store.
"""

from __future__ import annotations

from context_engineering.models import (
    Entity,
    Pattern,
    ResearchItem,
    StoreHit,
)
from context_engineering.retrieval.protocols import SearchFilter


def matches_filter(entity: Entity, search_filter: SearchFilter) -> bool:
    """Check whether ``entity`` passes ``search_filter``."""
    tags = search_filter.technology_tags
    if tags and not set(tags).intersection(entity.technology_stack):
        return False

    if search_filter.min_success_rate is not None and isinstance(entity, Pattern):
        if entity.success_rate < search_filter.min_success_rate:
            return False

    if search_filter.min_freshness is not None and isinstance(entity, ResearchItem):
        if entity.freshness_score < search_filter.min_freshness:
            return False

    return True


def sort_fallback(hits: list[StoreHit], limit: int) -> list[StoreHit]:
    """Order plain-query hits by the kind's natural order and truncate."""
    return sorted(hits, key=lambda h: h.entity.natural_sort_key())[:limit]


def id_field(kind_value: str) -> str:
    """Payload key holding the record id for an entity kind."""
    return f"{kind_value}_id"
