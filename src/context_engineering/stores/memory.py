"""In-process stores for tests and local runs.

Similarity is plain cosine over the vectors stored on each record. Records
without an embedding are not part of the vector index, exactly like points
without a vector in a real backend. ``vector_index_ready=False`` simulates a
missing index so callers exercise the fallback path.
"""

from __future__ import annotations

import logging
import math

from context_engineering.exceptions import SimilarityUnavailable
from context_engineering.models import Entity, EntityKind, StoreHit, Template
from context_engineering.retrieval.protocols import SearchFilter
from context_engineering.stores.base import matches_filter, sort_fallback

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors (0.0 if degenerate)."""
    if len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryEntityStore:
    """Entity store backed by a Python list."""

    def __init__(
        self,
        kind: EntityKind,
        entities: list[Entity] | None = None,
        vector_index_ready: bool = True,
    ):
        self.kind = kind
        self.vector_index_ready = vector_index_ready
        self._entities: list[Entity] = []
        for entity in entities or []:
            self.add(entity)

    def add(self, entity: Entity) -> None:
        if entity.kind != self.kind:
            raise ValueError(f"Cannot add {entity.kind.value} to {self.kind.value} store")
        self._entities.append(entity)

    def __len__(self) -> int:
        return len(self._entities)

    async def similarity_search(
        self,
        query_vector: list[float],
        search_filter: SearchFilter,
        limit: int,
    ) -> list[StoreHit]:
        if not self.vector_index_ready:
            raise SimilarityUnavailable(
                f"Vector index for {self.kind.value} is not ready", kind=self.kind.value
            )

        hits = [
            StoreHit(entity=e, similarity=cosine_similarity(query_vector, e.embedding))
            for e in self._entities
            if e.embedding and matches_filter(e, search_filter)
        ]
        hits.sort(key=lambda h: (-h.similarity, h.entity.natural_sort_key()))
        return hits[:limit]

    async def filtered_search(
        self,
        search_filter: SearchFilter,
        limit: int,
    ) -> list[StoreHit]:
        hits = [StoreHit(entity=e) for e in self._entities if matches_filter(e, search_filter)]
        return sort_fallback(hits, limit)


class InMemoryTemplateStore:
    """Template store backed by a Python list."""

    def __init__(self, templates: list[Template] | None = None):
        self._templates = list(templates or [])

    def add(self, template: Template) -> None:
        self._templates.append(template)

    async def list_templates(self, feature_types: list[str] | None = None) -> list[Template]:
        if not feature_types:
            return list(self._templates)
        wanted = set(feature_types)
        return [t for t in self._templates if wanted.intersection(t.feature_types)]
