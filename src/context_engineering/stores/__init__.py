"""Store implementations for context-engineering.

- **InMemoryEntityStore / InMemoryTemplateStore**: in-process stores for
  tests and local runs
- **QdrantEntityStore / QdrantTemplateStore**: Qdrant-backed stores
  (``context_engineering.stores.qdrant``, requires qdrant-client)

Use ``create_stores`` to build the handles from a StoreConfig.
"""

from .base import matches_filter, sort_fallback
from .factory import create_stores
from .memory import InMemoryEntityStore, InMemoryTemplateStore, cosine_similarity

__all__ = [
    "InMemoryEntityStore",
    "InMemoryTemplateStore",
    "cosine_similarity",
    "create_stores",
    "matches_filter",
    "sort_fallback",
]
