# FILE: app/rag/retriever.py
"""
Knowledge retriever.

Turns raw text into retrievable knowledge (bootstrap + incremental
ingestion) and turns a query embedding into ranked context snippets for the
chat prompt.

Bootstrap is load-once: if the store already has rows nothing is embedded,
even if the corpus changed since.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from app.embeddings.config import (
    BOOTSTRAP_BATCH_SIZE,
    DEFAULT_CATEGORY,
    DEFAULT_TOP_K,
    NO_RELEVANT_DATA_MESSAGE,
    RELEVANCE_THRESHOLD,
    SEARCH_ERROR_MESSAGE,
)
from app.embeddings.errors import EmbeddingStoreError
from app.embeddings.repository import EmbeddingStore, get_embedding_store
from app.embeddings.schemas import SimilarityResult
from app.embeddings.service import EmbeddingClient, get_embedding_client

logger = logging.getLogger(__name__)


class KnowledgeRetriever:
    """Bootstrap, query and extend the knowledge corpus."""

    def __init__(
        self,
        store: EmbeddingStore,
        embedder: EmbeddingClient,
        batch_size: int = BOOTSTRAP_BATCH_SIZE,
        threshold: float = RELEVANCE_THRESHOLD,
    ):
        self.store = store
        self.embedder = embedder
        self.batch_size = batch_size
        self.threshold = threshold

    def initialize(self, corpus: Sequence[str]) -> Dict[str, Any]:
        """
        Embed and store the corpus if the store is empty.

        Batches whose embedding call fails are logged and skipped. Everything
        staged is stored with a single bulk insert at the end.
        """
        stats = {"skipped": False, "batches": 0, "failed_batches": 0, "staged": 0, "stored": 0}

        count = self.store.count_embeddings()
        if count > 0:
            logger.info(f"[retriever] Found {count} existing embeddings in database, skipping initialization")
            stats["skipped"] = True
            return stats

        texts = list(corpus)
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size
        logger.info(f"[retriever] Generating embeddings for {len(texts)} knowledge items...")

        staged: List[Dict[str, Any]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            batch_number = i // self.batch_size + 1
            stats["batches"] += 1

            try:
                vectors = self.embedder.embed(batch)
            except EmbeddingStoreError as e:
                logger.error(f"[retriever] Error creating embeddings for batch {batch_number}/{total_batches}: {e}")
                stats["failed_batches"] += 1
                continue

            staged.extend(
                {"content": content, "category": DEFAULT_CATEGORY, "embedding": vector}
                for content, vector in zip(batch, vectors)
            )
            logger.info(f"[retriever] Generated embeddings for batch {batch_number}/{total_batches}")

        stats["staged"] = len(staged)
        if not staged:
            logger.error("[retriever] No embeddings were generated to store")
            return stats

        stats["stored"] = self.store.bulk_store_embeddings(staged)
        logger.info(f"[retriever] Stored {stats['stored']} embeddings ({self.store.storage_tier.value})")
        return stats

    def format_results(self, results: Sequence[SimilarityResult], limit: int = DEFAULT_TOP_K) -> List[str]:
        """
        Drop matches under the relevance threshold and format the rest.

        Always non-empty: returns the no-data sentinel when nothing survives.
        """
        relevant = [r for r in results if r.similarity >= self.threshold]
        if not relevant:
            return [NO_RELEVANT_DATA_MESSAGE]

        return [
            f"{r.content} (relevance: {r.similarity * 100:.0f}%)"
            for r in relevant[:limit]
        ]

    def query_similar(self, query_embedding: Sequence[float], limit: int = DEFAULT_TOP_K) -> List[str]:
        """Context snippets for a query embedding. Never empty, never raises."""
        try:
            results = self.store.find_similar_documents(query_embedding, limit)
            return self.format_results(results, limit)
        except Exception as e:
            logger.error(f"[retriever] Error querying similar documents: {e}")
            return [SEARCH_ERROR_MESSAGE]

    def add_document(self, text: str, category: str = DEFAULT_CATEGORY) -> Optional[str]:
        """
        Embed and store a single document.

        Failures are logged and swallowed; returns the new id or None.
        """
        try:
            embedding = self.embedder.embed_one(text)
            doc_id = self.store.store_embedding(text, category, embedding)
        except Exception as e:
            logger.error(f"[retriever] Error adding document: {e}")
            return None

        logger.info(f"[retriever] Added new document {doc_id} to category '{category}'")
        return doc_id


# Global singleton
_retriever: Optional[KnowledgeRetriever] = None


def get_retriever() -> KnowledgeRetriever:
    global _retriever
    if _retriever is None:
        _retriever = KnowledgeRetriever(get_embedding_store(), get_embedding_client())
    return _retriever
