"""Hybrid retrieval with similarity-first search and filtered fallback.

For each entity kind the retriever:
1. Tries a similarity query scoped by technology tags (and threshold)
2. Falls back to a plain filtered query when the vector index is
   unavailable, the call times out, or the similarity query is empty
3. Returns an explicit outcome instead of raising, so one failing store
   never takes down the other two kinds

Outcome variants:
    OK        similarity search answered
    DEGRADED  the filtered query answered (possibly with zero rows)
    FATAL     the store itself failed; items are empty, error is set
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from context_engineering.exceptions import SimilarityUnavailable
from context_engineering.models import EntityKind, StoreHit
from context_engineering.retrieval.protocols import EntityStore, SearchFilter

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    """Which path produced a retrieval outcome."""

    OK = "ok"
    DEGRADED = "degraded"
    FATAL = "fatal"


@dataclass
class RetrievalOutcome:
    """Result of retrieving one entity kind.

    Attributes:
        kind: Entity kind retrieved
        status: OK, DEGRADED or FATAL
        hits: Store hits in deterministic order (empty when FATAL)
        error: The fatal exception, if any
    """

    kind: EntityKind
    status: OutcomeStatus
    hits: list[StoreHit] = field(default_factory=list)
    error: Exception | None = None

    @classmethod
    def ok(cls, kind: EntityKind, hits: list[StoreHit]) -> RetrievalOutcome:
        return cls(kind=kind, status=OutcomeStatus.OK, hits=hits)

    @classmethod
    def degraded(cls, kind: EntityKind, hits: list[StoreHit]) -> RetrievalOutcome:
        return cls(kind=kind, status=OutcomeStatus.DEGRADED, hits=hits)

    @classmethod
    def fatal(cls, kind: EntityKind, error: Exception) -> RetrievalOutcome:
        return cls(kind=kind, status=OutcomeStatus.FATAL, error=error)

    @property
    def used_fallback(self) -> bool:
        return self.status == OutcomeStatus.DEGRADED

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status.value,
            "used_fallback": self.used_fallback,
            "count": len(self.hits),
            "error": str(self.error) if self.error else None,
        }


@dataclass
class RetrievalSettings:
    """Tunables for the hybrid retriever.

    Attributes:
        store_timeout_seconds: Timeout for each store call; expiry on the
            similarity query triggers the fallback
        research_freshness_floor: Minimum freshness for research items
        research_limit: Maximum research items fetched per request
        fallback_page_size: Points fetched per page when a store pages
            through matches on the fallback path
        max_results_limit: Largest max_results a request may ask for
    """

    store_timeout_seconds: float = 10.0
    research_freshness_floor: float = 0.7
    research_limit: int = 10
    fallback_page_size: int = 500
    max_results_limit: int = 50


def _natural_order(hits: list[StoreHit]) -> list[StoreHit]:
    return sorted(hits, key=lambda h: h.entity.natural_sort_key())


class HybridRetriever:
    """Similarity-first retriever over one store per entity kind.

    Stores are injected once and shared across requests; the retriever
    holds no per-request state.
    """

    def __init__(
        self,
        stores: dict[EntityKind, EntityStore],
        settings: RetrievalSettings | None = None,
    ):
        """Initialize hybrid retriever.

        Args:
            stores: One store per entity kind
            settings: Timeouts and limits
        """
        self.stores = stores
        self.settings = settings or RetrievalSettings()

    def build_filter(
        self,
        kind: EntityKind,
        technology_tags: list[str],
        threshold: float | None,
    ) -> SearchFilter:
        """Build the filter both query paths share for ``kind``."""
        search_filter = SearchFilter(technology_tags=list(technology_tags))
        if kind == EntityKind.PATTERN:
            search_filter.min_success_rate = threshold
        elif kind == EntityKind.RESEARCH:
            search_filter.min_freshness = self.settings.research_freshness_floor
        return search_filter

    async def retrieve(
        self,
        kind: EntityKind,
        query_vector: list[float] | None,
        technology_tags: list[str],
        threshold: float | None,
        limit: int,
    ) -> RetrievalOutcome:
        """Retrieve candidates for one entity kind.

        Never raises for store-level failures; they become a FATAL outcome.

        Args:
            kind: Entity kind to retrieve
            query_vector: Embedded feature request (None skips similarity)
            technology_tags: Tag scope for both query paths
            threshold: success_rate floor (patterns only)
            limit: Maximum number of hits

        Returns:
            RetrievalOutcome with deterministically ordered hits
        """
        store = self.stores.get(kind)
        if store is None:
            logger.warning(f"[RETRIEVAL] No store configured for {kind.value}")
            return RetrievalOutcome.degraded(kind, [])

        search_filter = self.build_filter(kind, technology_tags, threshold)

        try:
            hits = await self._similarity(store, kind, query_vector, search_filter, limit)
            if hits:
                logger.info(f"[RETRIEVAL] {kind.value}: {len(hits)} similarity hits")
                return RetrievalOutcome.ok(kind, hits)

            hits = await self._fallback(store, kind, search_filter, limit)
            logger.info(f"[RETRIEVAL] {kind.value}: {len(hits)} fallback hits")
            return RetrievalOutcome.degraded(kind, hits)
        except Exception as e:
            logger.error(f"[RETRIEVAL] {kind.value} store failed: {e}")
            return RetrievalOutcome.fatal(kind, e)

    async def _similarity(
        self,
        store: EntityStore,
        kind: EntityKind,
        query_vector: list[float] | None,
        search_filter: SearchFilter,
        limit: int,
    ) -> list[StoreHit]:
        """Run the similarity query, mapping unavailability to an empty result.

        SimilarityUnavailable and timeouts return [] (the caller falls back);
        any other exception propagates as fatal.
        """
        if not query_vector:
            return []

        try:
            hits = await asyncio.wait_for(
                store.similarity_search(query_vector, search_filter, limit),
                timeout=self.settings.store_timeout_seconds,
            )
        except SimilarityUnavailable as e:
            logger.warning(f"[RETRIEVAL] {kind.value}: similarity unavailable ({e}), falling back")
            return []
        except asyncio.TimeoutError:
            logger.warning(
                f"[RETRIEVAL] {kind.value}: similarity timed out after "
                f"{self.settings.store_timeout_seconds}s, falling back"
            )
            return []

        hits = sorted(
            hits,
            key=lambda h: (-(h.similarity or 0.0), h.entity.natural_sort_key()),
        )
        return hits[:limit]

    async def _fallback(
        self,
        store: EntityStore,
        kind: EntityKind,
        search_filter: SearchFilter,
        limit: int,
    ) -> list[StoreHit]:
        hits = await asyncio.wait_for(
            store.filtered_search(search_filter, limit),
            timeout=self.settings.store_timeout_seconds,
        )
        # Fallback hits carry no similarity value
        hits = [StoreHit(entity=h.entity, similarity=None) for h in hits]
        return _natural_order(hits)[:limit]

    async def retrieve_all(
        self,
        query_vector: list[float] | None,
        technology_tags: list[str],
        threshold: float,
        max_results: int,
        include_research: bool = True,
    ) -> dict[EntityKind, RetrievalOutcome]:
        """Retrieve patterns, rules and research concurrently.

        Rules are capped at half of ``max_results`` (rounded up); research
        uses its own configured limit.
        """
        requests: list[tuple[EntityKind, float | None, int]] = [
            (EntityKind.PATTERN, threshold, max_results),
            (EntityKind.RULE, None, -(-max_results // 2)),
        ]
        if include_research:
            requests.append((EntityKind.RESEARCH, None, self.settings.research_limit))

        outcomes = await asyncio.gather(
            *[
                self.retrieve(kind, query_vector, technology_tags, kind_threshold, limit)
                for kind, kind_threshold, limit in requests
            ]
        )

        results = {outcome.kind: outcome for outcome in outcomes}
        if not include_research:
            results[EntityKind.RESEARCH] = RetrievalOutcome.ok(EntityKind.RESEARCH, [])
        return results
