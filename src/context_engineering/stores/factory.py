"""Construct the process-wide store handles from configuration."""

from __future__ import annotations

import logging

from context_engineering.config import StoreConfig
from context_engineering.exceptions import ConfigurationError
from context_engineering.models import EntityKind
from context_engineering.retrieval.protocols import EntityStore, TemplateStore
from context_engineering.stores.memory import InMemoryEntityStore, InMemoryTemplateStore

logger = logging.getLogger(__name__)


def create_stores(
    config: StoreConfig,
    page_size: int = 500,
) -> tuple[dict[EntityKind, EntityStore], TemplateStore]:
    """Create one entity store per kind plus the template store.

    Args:
        config: Store provider and connection settings
        page_size: Points fetched per scroll page on the fallback path

    Returns:
        Tuple of (entity stores keyed by kind, template store)

    Raises:
        ConfigurationError: If the provider is unknown or its client
            library is not installed.
    """
    if config.provider == "in_memory":
        logger.info("Using in-memory stores")
        stores: dict[EntityKind, EntityStore] = {
            kind: InMemoryEntityStore(kind) for kind in EntityKind
        }
        return stores, InMemoryTemplateStore()

    if config.provider == "qdrant":
        try:
            from context_engineering.stores.qdrant import (
                COLLECTION_SUFFIXES,
                TEMPLATE_SUFFIX,
                QdrantEntityStore,
                QdrantTemplateStore,
                create_qdrant_client,
            )
        except ImportError as e:
            raise ConfigurationError(
                "qdrant-client package not installed. Install with: pip install qdrant-client",
                cause=e,
            )

        client = create_qdrant_client(
            url=config.url,
            api_key=config.api_key,
            timeout=config.timeout_seconds,
        )
        prefix = config.collection_prefix
        stores = {
            kind: QdrantEntityStore(
                kind,
                client,
                f"{prefix}_{suffix}",
                page_size=page_size,
            )
            for kind, suffix in COLLECTION_SUFFIXES.items()
        }
        template_store = QdrantTemplateStore(
            client, f"{prefix}_{TEMPLATE_SUFFIX}", page_size=page_size
        )
        logger.info(f"Using Qdrant stores at {config.url} (prefix={prefix})")
        return stores, template_store

    raise ConfigurationError(f"Unknown store provider: {config.provider}")
