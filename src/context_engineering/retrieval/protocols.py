"""Protocol definitions for the retrieval module.

These protocols define the interfaces that embedding providers and stores
must implement to work with the retrieval pipeline. Handles are constructed
once at startup and injected by reference, so tests can substitute in-memory
fakes without touching the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from context_engineering.models import EntityKind, StoreHit, Template


@dataclass
class SearchFilter:
    """Filters shared by the similarity and the plain query.

    Attributes:
        technology_tags: Entity must carry at least one of these tags.
            An empty list means no tag restriction.
        min_success_rate: Pattern success_rate floor (patterns only).
        min_freshness: Research freshness floor (research only).
    """

    technology_tags: list[str] = field(default_factory=list)
    min_success_rate: float | None = None
    min_freshness: float | None = None


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding providers.

    Implementations raise EmbeddingError on any provider failure.
    """

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats
        """
        ...


@runtime_checkable
class EntityStore(Protocol):
    """Protocol for a store holding one entity kind.

    Implementations must provide both a similarity query and a plain
    filtered query with identical filter semantics.
    """

    kind: EntityKind

    async def similarity_search(
        self,
        query_vector: list[float],
        search_filter: SearchFilter,
        limit: int,
    ) -> list[StoreHit]:
        """Nearest-neighbour search scoped by ``search_filter``.

        Raises:
            SimilarityUnavailable: If the vector index is missing or not ready.
            StoreError: If the store cannot be reached.
        """
        ...

    async def filtered_search(
        self,
        search_filter: SearchFilter,
        limit: int,
    ) -> list[StoreHit]:
        """Plain filtered query sorted by the kind's natural order.

        Raises:
            StoreError: If the store cannot be reached.
        """
        ...


@runtime_checkable
class TemplateStore(Protocol):
    """Protocol for the document template store."""

    async def list_templates(self, feature_types: list[str] | None = None) -> list[Template]:
        """List templates whose feature types intersect ``feature_types``.

        All templates are returned when ``feature_types`` is empty or None.
        """
        ...
