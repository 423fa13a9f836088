"""Embedding providers for similarity search.

Embeddings convert the feature request into a vector so the stores can
run nearest-neighbour lookups over recorded patterns, rules and research.

Example:
    from context_engineering.embedding import OllamaEmbeddingProvider

    embedder = OllamaEmbeddingProvider(
        base_url="http://localhost:11434",
        model="nomic-embed-text",
    )

    vector = await embedder.embed("user authentication with JWT")
    # Returns: [0.23, 0.87, 0.12, ... 768 numbers]
"""

import logging

from context_engineering.exceptions import ConfigurationError, EmbeddingError

logger = logging.getLogger(__name__)


class OllamaEmbeddingProvider:
    """Ollama-based embedding provider.

    Uses Ollama's embedding models (like nomic-embed-text) to generate
    vector representations of text for semantic search.

    Args:
        base_url: Ollama server URL (default: http://localhost:11434)
        model: Embedding model name (default: nomic-embed-text)
        dimension: Expected embedding dimension (default: 768)
        timeout_seconds: HTTP timeout for a single embedding call
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        dimension: int = 768,
        timeout_seconds: float = 10.0,
    ):
        self.base_url = base_url
        self.model = model
        self.dimension = dimension
        self.timeout_seconds = timeout_seconds
        self._client = None

    @property
    def client(self):
        """Lazy-load the Ollama client."""
        if self._client is None:
            try:
                from ollama import AsyncClient
            except ImportError as e:
                raise ConfigurationError(
                    "ollama package not installed. Install with: pip install ollama",
                    cause=e,
                )
            self._client = AsyncClient(host=self.base_url, timeout=self.timeout_seconds)
        return self._client

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector (list of floats)

        Raises:
            EmbeddingError: If the provider call fails or returns no vector.
        """
        try:
            response = await self.client.embeddings(model=self.model, prompt=text)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Embedding generation failed: model={self.model}, error={e}")
            raise EmbeddingError(
                f"Failed to generate embedding with model '{self.model}' at {self.base_url}",
                cause=e,
            )

        embedding = list(response["embedding"] or [])
        if not embedding:
            raise EmbeddingError(f"No embedding data returned by model '{self.model}'")

        if len(embedding) != self.dimension:
            logger.warning(
                f"Embedding dimension mismatch: expected {self.dimension}, got {len(embedding)}"
            )
        return embedding


__all__ = ["OllamaEmbeddingProvider"]
