# FILE: app/embeddings/service.py
"""
Embedding generation and vector math.

The embedding provider is an external collaborator: one call embeds a batch
of texts and either returns one vector per text or fails as a whole.
"""

import logging
import math
import os
from typing import List, Optional, Sequence

from openai import OpenAI, OpenAIError

from .config import EMBEDDING_MODEL
from .errors import EmbeddingGenerationError

logger = logging.getLogger(__name__)

# Model limit is ~8191 tokens; 1 token ≈ 4 chars
MAX_INPUT_CHARS = 30000


# ============ EMBEDDING GENERATION ============

class EmbeddingClient:
    """Batched embedding generation via the OpenAI embeddings endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = EMBEDDING_MODEL,
        client: Optional[OpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self._client = client

    def _get_client(self) -> OpenAI:
        if self._client is None:
            api_key = self.api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise EmbeddingGenerationError("OPENAI_API_KEY not set")
            self._client = OpenAI(api_key=api_key)
        return self._client

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed a batch of texts.

        Returns one vector per input, in input order.
        Raises EmbeddingGenerationError if the call fails.
        """
        if not texts:
            return []

        inputs = [t[:MAX_INPUT_CHARS] for t in texts]
        client = self._get_client()

        try:
            response = client.embeddings.create(
                model=self.model,
                input=inputs,
                encoding_format="float",
            )
        except OpenAIError as e:
            raise EmbeddingGenerationError(f"Embedding request failed: {e}") from e

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(inputs):
            raise EmbeddingGenerationError(
                f"Expected {len(inputs)} embeddings, got {len(data)}"
            )
        return [list(item.embedding) for item in data]

    def embed_one(self, text: str) -> List[float]:
        return self.embed([text])[0]


def generate_embedding(text: str, client: Optional[EmbeddingClient] = None) -> Optional[List[float]]:
    """
    Generate embedding vector for text.
    Returns None if generation fails.
    """
    if not text or not text.strip():
        return None

    try:
        return (client or get_embedding_client()).embed_one(text)
    except EmbeddingGenerationError as e:
        logger.error(f"[embeddings] Generation error: {e}")
        return None


# ============ SIMILARITY ============

def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors."""
    if len(vec_a) != len(vec_b):
        return 0.0

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = dot_product / (norm_a * norm_b)
    return similarity if math.isfinite(similarity) else 0.0


# Global singleton
_embedding_client: Optional[EmbeddingClient] = None


def get_embedding_client() -> EmbeddingClient:
    global _embedding_client
    if _embedding_client is None:
        _embedding_client = EmbeddingClient()
    return _embedding_client
