# FILE: tests/test_embeddings_service.py
"""
Tests for app/embeddings/service.py
Embedding generation - batched OpenAI calls and cosine similarity.
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
from unittest.mock import Mock, patch, MagicMock
from types import SimpleNamespace
import math

from openai import OpenAIError


def _response(vectors, order=None):
    """Fake embeddings.create() response; `order` shuffles the data items."""
    items = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)]
    if order is not None:
        items = [items[i] for i in order]
    return SimpleNamespace(data=items)


class TestEmbeddingsServiceImports:
    """Test embeddings service module structure."""

    def test_imports_without_error(self):
        """Test module imports cleanly."""
        from app.embeddings import service
        assert service is not None

    def test_core_functions_exist(self):
        """Test core functions are defined."""
        from app.embeddings.service import (
            EmbeddingClient,
            generate_embedding,
            cosine_similarity,
            get_embedding_client,
        )
        assert callable(generate_embedding)
        assert callable(cosine_similarity)
        assert callable(get_embedding_client)
        assert EmbeddingClient is not None


class TestEmbeddingClient:
    """Test batched embedding calls."""

    def test_embed_batch_in_input_order(self):
        """Response items are re-ordered by index."""
        from app.embeddings.service import EmbeddingClient

        openai_client = MagicMock()
        openai_client.embeddings.create.return_value = _response([[1.0], [2.0], [3.0]], order=[2, 0, 1])

        client = EmbeddingClient(client=openai_client, model="text-embedding-3-small")
        vectors = client.embed(["a", "b", "c"])

        assert vectors == [[1.0], [2.0], [3.0]]
        openai_client.embeddings.create.assert_called_once_with(
            model="text-embedding-3-small",
            input=["a", "b", "c"],
            encoding_format="float",
        )

    def test_empty_batch_makes_no_call(self):
        from app.embeddings.service import EmbeddingClient

        openai_client = MagicMock()
        assert EmbeddingClient(client=openai_client).embed([]) == []
        openai_client.embeddings.create.assert_not_called()

    def test_long_input_truncated(self):
        from app.embeddings.service import EmbeddingClient, MAX_INPUT_CHARS

        openai_client = MagicMock()
        openai_client.embeddings.create.return_value = _response([[0.5]])

        EmbeddingClient(client=openai_client).embed(["x" * (MAX_INPUT_CHARS + 50)])

        sent = openai_client.embeddings.create.call_args.kwargs["input"][0]
        assert len(sent) == MAX_INPUT_CHARS

    def test_provider_error_fails_whole_batch(self):
        from app.embeddings.service import EmbeddingClient
        from app.embeddings.errors import EmbeddingGenerationError

        openai_client = MagicMock()
        openai_client.embeddings.create.side_effect = OpenAIError("rate limited")

        with pytest.raises(EmbeddingGenerationError):
            EmbeddingClient(client=openai_client).embed(["a", "b"])

    def test_short_response_is_an_error(self):
        from app.embeddings.service import EmbeddingClient
        from app.embeddings.errors import EmbeddingGenerationError

        openai_client = MagicMock()
        openai_client.embeddings.create.return_value = _response([[1.0]])

        with pytest.raises(EmbeddingGenerationError):
            EmbeddingClient(client=openai_client).embed(["a", "b"])

    def test_missing_api_key(self):
        from app.embeddings.service import EmbeddingClient
        from app.embeddings.errors import EmbeddingGenerationError

        with patch.dict('os.environ', {'OPENAI_API_KEY': ''}):
            with pytest.raises(EmbeddingGenerationError):
                EmbeddingClient().embed(["a"])


class TestEmbeddingGeneration:
    """Test single-text generation helper."""

    def test_empty_text_returns_none(self):
        """Test empty text returns None."""
        from app.embeddings.service import generate_embedding

        assert generate_embedding("") is None
        assert generate_embedding("   ") is None

    def test_none_text_returns_none(self):
        """Test None text handled gracefully."""
        from app.embeddings.service import generate_embedding

        assert generate_embedding(None) is None

    def test_missing_api_key_returns_none(self):
        """Test missing API key returns None gracefully."""
        from app.embeddings.service import EmbeddingClient, generate_embedding

        with patch.dict('os.environ', {'OPENAI_API_KEY': ''}):
            assert generate_embedding("test text", client=EmbeddingClient()) is None

    def test_returns_vector(self):
        from app.embeddings.service import EmbeddingClient, generate_embedding

        openai_client = MagicMock()
        openai_client.embeddings.create.return_value = _response([[0.1, 0.2]])

        assert generate_embedding("hello", client=EmbeddingClient(client=openai_client)) == [0.1, 0.2]


class TestCosineSimilarity:
    """Test cosine similarity calculation."""

    def test_identical_vectors_similarity_one(self):
        """Test identical vectors have similarity 1.0."""
        from app.embeddings.service import cosine_similarity

        vec = [1.0, 2.0, 3.0]
        sim = cosine_similarity(vec, vec)
        assert abs(sim - 1.0) < 0.0001

    def test_orthogonal_vectors_similarity_zero(self):
        """Test orthogonal vectors have similarity 0.0."""
        from app.embeddings.service import cosine_similarity

        assert abs(cosine_similarity([1.0, 0.0], [0.0, 1.0])) < 0.0001

    def test_opposite_vectors_similarity_negative(self):
        """Test opposite vectors have similarity -1.0."""
        from app.embeddings.service import cosine_similarity

        sim = cosine_similarity([1.0, 2.0], [-1.0, -2.0])
        assert abs(sim + 1.0) < 0.0001

    def test_different_length_vectors_return_zero(self):
        """Test mismatched dimensions return 0."""
        from app.embeddings.service import cosine_similarity

        assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0

    def test_zero_vector_returns_zero(self):
        """Test zero vector returns 0 instead of dividing by zero."""
        from app.embeddings.service import cosine_similarity

        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_scale_invariant(self):
        """Test magnitude does not change similarity."""
        from app.embeddings.service import cosine_similarity

        a = [3.0, 4.0]
        b = [6.0, 8.0]
        assert abs(cosine_similarity(a, b) - 1.0) < 0.0001

    def test_high_dimensional_vectors(self):
        """Test 1536-dim vectors (text-embedding-3-small width)."""
        from app.embeddings.service import cosine_similarity

        vec = [math.sin(i) for i in range(1536)]
        assert abs(cosine_similarity(vec, vec) - 1.0) < 0.0001

    def test_non_finite_result_returns_zero(self):
        """Test NaN or overflowing inputs never leak a NaN score."""
        from app.embeddings.service import cosine_similarity

        assert cosine_similarity([float("nan"), 1.0], [1.0, 1.0]) == 0.0
        assert cosine_similarity([1e300, 1e300], [1e300, 1e300]) == 0.0


class TestEmbeddingConfiguration:
    """Test embedding configuration constants."""

    def test_embedding_model_defined(self):
        from app.embeddings.config import EMBEDDING_MODEL
        assert isinstance(EMBEDDING_MODEL, str) and EMBEDDING_MODEL

    def test_embedding_dimensions_defined(self):
        from app.embeddings.config import EMBEDDING_DIMENSIONS
        assert EMBEDDING_DIMENSIONS == 1536

    def test_retrieval_defaults(self):
        from app.embeddings.config import BOOTSTRAP_BATCH_SIZE, DEFAULT_TOP_K, FALLBACK_SAMPLE_SIZE

        assert BOOTSTRAP_BATCH_SIZE == 10
        assert DEFAULT_TOP_K == 3
        assert FALLBACK_SAMPLE_SIZE == 100
