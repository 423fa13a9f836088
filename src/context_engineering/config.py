"""Unified configuration for context-engineering.

EngineConfig provides a clean way to configure all components:
- Entity/template store provider and connection
- Embedding provider
- Retrieval timeouts and limits
- Document generation (validation commands, universal rules)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal
import logging
import os

from context_engineering.assembly.document import ValidationCommands
from context_engineering.exceptions import ConfigurationError
from context_engineering.retrieval.retriever import RetrievalSettings

logger = logging.getLogger(__name__)


@dataclass
class StoreConfig:
    """Configuration for the entity and template stores."""

    provider: Literal["qdrant", "in_memory"] = "qdrant"
    url: str = "http://localhost:6333"
    api_key: str | None = None
    collection_prefix: str = "context_engineering"
    timeout_seconds: float = 10.0


@dataclass
class EmbeddingConfig:
    """Configuration for embeddings."""

    provider: Literal["ollama"] = "ollama"
    model: str = "nomic-embed-text"
    url: str = "http://localhost:11434"
    dimensions: int = 768
    timeout_seconds: float = 10.0


@dataclass
class DocumentConfig:
    """Configuration for guidance document generation."""

    validation_commands: ValidationCommands = field(default_factory=ValidationCommands)
    universal_rules_path: str | None = None

    def load_universal_rules(self) -> str | None:
        """Read the universal rules preamble, if configured.

        Called once at startup; document generation itself never reads files.
        """
        if not self.universal_rules_path:
            return None
        path = Path(self.universal_rules_path)
        try:
            return path.read_text(encoding="utf-8").strip() or None
        except OSError as e:
            logger.warning(f"Could not load universal rules from {path}: {e}")
            return None


@dataclass
class EngineConfig:
    """Main configuration for context-engineering.

    Create from environment variables:
        config = EngineConfig.from_env()

    Or specify directly:
        config = EngineConfig(
            store=StoreConfig(url="http://qdrant:6333"),
            embedding=EmbeddingConfig(model="nomic-embed-text"),
        )
    """

    store: StoreConfig = field(default_factory=StoreConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    retrieval: RetrievalSettings = field(default_factory=RetrievalSettings)
    document: DocumentConfig = field(default_factory=DocumentConfig)

    def validate(self) -> None:
        """Raise ConfigurationError for unusable settings."""
        if self.store.provider not in ("qdrant", "in_memory"):
            raise ConfigurationError(f"Unknown store provider: {self.store.provider}")
        if self.embedding.provider != "ollama":
            raise ConfigurationError(f"Unknown embedding provider: {self.embedding.provider}")
        if self.embedding.timeout_seconds <= 0 or self.retrieval.store_timeout_seconds <= 0:
            raise ConfigurationError("Timeouts must be positive")
        if not 0.0 <= self.retrieval.research_freshness_floor <= 1.0:
            raise ConfigurationError("research_freshness_floor must be within [0, 1]")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables.

        Environment variables:
        - CONTEXT_ENGINEERING_STORE_PROVIDER: qdrant, in_memory
        - CONTEXT_ENGINEERING_STORE_URL: Qdrant URL (falls back to QDRANT_URL)
        - CONTEXT_ENGINEERING_STORE_API_KEY: Qdrant API key (falls back to QDRANT_API_KEY)
        - CONTEXT_ENGINEERING_COLLECTION_PREFIX: Collection name prefix
        - CONTEXT_ENGINEERING_EMBEDDING_MODEL: Embedding model name
        - CONTEXT_ENGINEERING_EMBEDDING_URL: Ollama URL (falls back to OLLAMA_URL)
        - CONTEXT_ENGINEERING_EMBEDDING_DIMENSIONS: Embedding dimension
        - CONTEXT_ENGINEERING_TIMEOUT: Timeout in seconds for every external call
        - CONTEXT_ENGINEERING_UNIVERSAL_RULES: Path to the universal rules file
        """
        timeout = float(os.getenv("CONTEXT_ENGINEERING_TIMEOUT", "10"))

        return cls(
            store=StoreConfig(
                provider=os.getenv("CONTEXT_ENGINEERING_STORE_PROVIDER", "qdrant"),  # type: ignore
                url=os.getenv(
                    "CONTEXT_ENGINEERING_STORE_URL",
                    os.getenv("QDRANT_URL", "http://localhost:6333"),
                ),
                api_key=os.getenv(
                    "CONTEXT_ENGINEERING_STORE_API_KEY", os.getenv("QDRANT_API_KEY")
                ),
                collection_prefix=os.getenv(
                    "CONTEXT_ENGINEERING_COLLECTION_PREFIX", "context_engineering"
                ),
                timeout_seconds=timeout,
            ),
            embedding=EmbeddingConfig(
                model=os.getenv("CONTEXT_ENGINEERING_EMBEDDING_MODEL", "nomic-embed-text"),
                url=os.getenv(
                    "CONTEXT_ENGINEERING_EMBEDDING_URL",
                    os.getenv("OLLAMA_URL", "http://localhost:11434"),
                ),
                dimensions=int(os.getenv("CONTEXT_ENGINEERING_EMBEDDING_DIMENSIONS", "768")),
                timeout_seconds=timeout,
            ),
            retrieval=RetrievalSettings(store_timeout_seconds=timeout),
            document=DocumentConfig(
                universal_rules_path=os.getenv("CONTEXT_ENGINEERING_UNIVERSAL_RULES"),
            ),
        )

    @classmethod
    def default(cls) -> "EngineConfig":
        """Create a default configuration (same as no-arg constructor)."""
        return cls()
