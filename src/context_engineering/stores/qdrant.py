"""Qdrant-backed entity and template stores.

One collection per entity kind (``{prefix}_patterns``, ``{prefix}_rules``,
``{prefix}_research``) plus ``{prefix}_templates``. Payloads use the record
field names from ``context_engineering.models``.

Key Features:
- Vector similarity search via ``query_points``
- Plain filtered query via paged ``scroll`` with deterministic in-process sort
- Missing or mismatched vectors reported as SimilarityUnavailable
- Malformed payloads skipped with a warning instead of failing the query

Requires:
- qdrant-client package
- Running Qdrant instance

Example:
    from context_engineering.stores.qdrant import QdrantEntityStore, create_qdrant_client

    client = create_qdrant_client(url="http://localhost:6333")
    store = QdrantEntityStore(EntityKind.PATTERN, client, "context_engineering_patterns")
    hits = await store.filtered_search(SearchFilter(technology_tags=["fastapi"]), limit=10)
"""

from __future__ import annotations

import logging
import math
from collections.abc import AsyncIterator
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.http.models import (
    FieldCondition,
    Filter,
    MatchAny,
    Range,
)

from context_engineering.exceptions import (
    SimilarityUnavailable,
    StoreError,
    ValidationError,
)
from context_engineering.models import (
    EntityKind,
    StoreHit,
    Template,
    entity_from_dict,
)
from context_engineering.retrieval.protocols import SearchFilter
from context_engineering.stores.base import id_field, sort_fallback

logger = logging.getLogger(__name__)

COLLECTION_SUFFIXES: dict[EntityKind, str] = {
    EntityKind.PATTERN: "patterns",
    EntityKind.RULE: "rules",
    EntityKind.RESEARCH: "research",
}
TEMPLATE_SUFFIX = "templates"


def create_qdrant_client(
    url: str = "http://localhost:6333",
    api_key: str | None = None,
    timeout: float = 10.0,
) -> AsyncQdrantClient:
    """Create the process-wide async Qdrant client.

    The client takes whole seconds; fractional timeouts round up.
    """
    return AsyncQdrantClient(url=url, api_key=api_key, timeout=math.ceil(timeout))


def build_filter(search_filter: SearchFilter) -> Filter | None:
    """Translate a SearchFilter into a Qdrant payload filter."""
    must_conditions = []

    if search_filter.technology_tags:
        must_conditions.append(
            FieldCondition(
                key="technology_stack",
                match=MatchAny(any=list(search_filter.technology_tags)),
            )
        )

    if search_filter.min_success_rate is not None:
        must_conditions.append(
            FieldCondition(
                key="success_metrics.success_rate",
                range=Range(gte=search_filter.min_success_rate),
            )
        )

    if search_filter.min_freshness is not None:
        must_conditions.append(
            FieldCondition(
                key="freshness_score",
                range=Range(gte=search_filter.min_freshness),
            )
        )

    return Filter(must=must_conditions) if must_conditions else None


async def scroll_pages(
    client: AsyncQdrantClient,
    collection_name: str,
    scroll_filter: Filter | None,
    page_size: int,
) -> AsyncIterator[list[Any]]:
    """Yield every matching point, one scroll page at a time."""
    offset = None
    while True:
        points, offset = await client.scroll(
            collection_name=collection_name,
            scroll_filter=scroll_filter,
            limit=page_size,
            offset=offset,
            with_payload=True,
            with_vectors=False,
        )
        if points:
            yield points
        if offset is None or not points:
            return


class QdrantEntityStore:
    """Qdrant-backed store for one entity kind.

    Attributes:
        kind: Entity kind held by the collection
        collection_name: Qdrant collection name
        page_size: Points fetched per scroll page on the fallback path
    """

    def __init__(
        self,
        kind: EntityKind,
        client: AsyncQdrantClient,
        collection_name: str,
        page_size: int = 500,
    ):
        self.kind = kind
        self.collection_name = collection_name
        self.page_size = page_size
        self._client = client

    @property
    def client(self) -> AsyncQdrantClient:
        return self._client

    def _parse(self, point_id: Any, payload: dict[str, Any] | None) -> Any:
        data = dict(payload or {})
        data.setdefault(id_field(self.kind.value), str(point_id))
        try:
            return entity_from_dict(self.kind, data)
        except ValidationError as e:
            logger.warning(
                f"Skipping malformed {self.kind.value} point {point_id} "
                f"in {self.collection_name}: {e}"
            )
            return None

    async def similarity_search(
        self,
        query_vector: list[float],
        search_filter: SearchFilter,
        limit: int,
    ) -> list[StoreHit]:
        """Search by vector similarity using query_points."""
        try:
            response = await self._client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                query_filter=build_filter(search_filter),
                limit=limit,
                with_payload=True,
            )
        except UnexpectedResponse as e:
            if e.status_code == 400:
                # Collection has no (matching) vector index
                raise SimilarityUnavailable(
                    f"Vector search not available on {self.collection_name}",
                    kind=self.kind.value,
                    cause=e,
                )
            raise StoreError(
                f"Qdrant rejected query on {self.collection_name} (HTTP {e.status_code})",
                kind=self.kind.value,
                cause=e,
            )
        except Exception as e:
            raise StoreError(
                f"Qdrant unreachable while searching {self.collection_name}",
                kind=self.kind.value,
                cause=e,
            )

        hits = []
        for point in response.points:
            entity = self._parse(point.id, point.payload)
            if entity is not None:
                hits.append(StoreHit(entity=entity, similarity=point.score))
        return hits

    async def filtered_search(
        self,
        search_filter: SearchFilter,
        limit: int,
    ) -> list[StoreHit]:
        """Plain filtered query: page through every match, keep the top ``limit``.

        Scroll returns points in id order, so the natural order is applied
        across all pages rather than to the first page only.
        """
        top: list[StoreHit] = []
        try:
            async for points in scroll_pages(
                self._client,
                self.collection_name,
                build_filter(search_filter),
                self.page_size,
            ):
                for point in points:
                    entity = self._parse(point.id, point.payload)
                    if entity is not None:
                        top.append(StoreHit(entity=entity))
                top = sort_fallback(top, limit)
        except Exception as e:
            raise StoreError(
                f"Qdrant unreachable while scanning {self.collection_name}",
                kind=self.kind.value,
                cause=e,
            )
        return top


class QdrantTemplateStore:
    """Qdrant-backed template store (payload-only collection)."""

    def __init__(
        self,
        client: AsyncQdrantClient,
        collection_name: str,
        page_size: int = 100,
    ):
        self.collection_name = collection_name
        self.page_size = page_size
        self._client = client

    @property
    def client(self) -> AsyncQdrantClient:
        return self._client

    async def list_templates(self, feature_types: list[str] | None = None) -> list[Template]:
        scroll_filter = None
        if feature_types:
            scroll_filter = Filter(
                must=[FieldCondition(key="feature_types", match=MatchAny(any=list(feature_types)))]
            )

        points = []
        try:
            async for page in scroll_pages(
                self._client, self.collection_name, scroll_filter, self.page_size
            ):
                points.extend(page)
        except Exception as e:
            raise StoreError(
                f"Qdrant unreachable while listing templates in {self.collection_name}",
                cause=e,
            )

        templates = []
        for point in points:
            data = dict(point.payload or {})
            data.setdefault("template_id", str(point.id))
            try:
                templates.append(Template.from_dict(data))
            except ValidationError as e:
                logger.warning(f"Skipping malformed template {point.id}: {e}")
        return templates
