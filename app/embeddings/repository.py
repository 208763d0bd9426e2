# FILE: app/embeddings/repository.py
"""
Embedding store: CRUD and similarity search over the embedding table.

The SQL it issues depends on the capability tier the schema manager
established (see migrations.py). The tier is cached for the process lifetime;
it is only probed here if nothing handed it over.

Search ladder:
    NATIVE_VECTOR  cosine operator -> L2 operator -> in-process scan
    FIXED_ARRAY    unnest() cosine -> in-process scan
    TEXT_ENCODED   in-process scan
Anything that still fails yields an empty result.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import SessionLocal, session_scope

from .capability import CapabilityTier, ColumnCapability, probe_capability
from .config import (
    DEFAULT_TOP_K,
    EMBEDDING_COLUMN,
    EMBEDDING_DIMENSIONS,
    EMBEDDING_TABLE,
    FALLBACK_SAMPLE_SIZE,
    FORCE_TIER,
    STRICT_LENGTH,
)
from .errors import EmbeddingStoreError, ValidationError
from .introspection import SqlIntrospector
from .schemas import EmbeddingRecord, SimilarityResult
from .strategies import TierStrategy, build_strategies, quote_ident

logger = logging.getLogger(__name__)


class EmbeddingStore:
    """Durable storage and nearest-neighbour search for text embeddings."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        table: str = EMBEDDING_TABLE,
        force_tier: Optional[str] = FORCE_TIER,
        strict_length: bool = STRICT_LENGTH,
        dimensions: int = EMBEDDING_DIMENSIONS,
        sample_size: int = FALLBACK_SAMPLE_SIZE,
        introspector_factory: Callable[[Session], Any] = SqlIntrospector,
    ):
        self._session_factory = session_factory
        self.table = table
        self.forced_tier = CapabilityTier.parse(force_tier)
        self.strict_length = strict_length
        self.dimensions = dimensions
        self._introspector_factory = introspector_factory
        self._strategies: Dict[CapabilityTier, TierStrategy] = build_strategies(table, sample_size)
        self._capability: Optional[ColumnCapability] = None

        if force_tier and self.forced_tier is None:
            logger.warning(f"[embeddings] Ignoring unknown forced tier {force_tier!r}")

    # ------------------------------------------------------------------
    # Capability
    # ------------------------------------------------------------------

    @property
    def capability(self) -> ColumnCapability:
        if self._capability is None:
            self.refresh_capability()
        return self._capability

    def set_capability(self, capability: ColumnCapability) -> None:
        """Called by the schema manager with the tier it just established."""
        self._capability = capability
        logger.info(
            f"[embeddings] Active tier: {capability.tier.value if capability.tier else 'none'} "
            f"(column type: {capability.raw_type or 'n/a'})"
        )

    def refresh_capability(self) -> ColumnCapability:
        with session_scope(self._session_factory) as session:
            capability = probe_capability(
                self._introspector_factory(session), self.table, EMBEDDING_COLUMN
            )
        self.set_capability(capability)
        return capability

    @property
    def storage_tier(self) -> CapabilityTier:
        """Tier used for writes: the physical column encoding."""
        return self.capability.tier or CapabilityTier.TEXT_ENCODED

    @property
    def query_tier(self) -> CapabilityTier:
        """Tier used for reads: the physical tier, or a lower forced one."""
        tier = self.storage_tier
        if self.forced_tier is not None and self.forced_tier.rank < tier.rank:
            return self.forced_tier
        return tier

    def _search_ladder(self) -> List[TierStrategy]:
        first = self.query_tier
        ladder = [self._strategies[first]]
        if first is not CapabilityTier.TEXT_ENCODED:
            ladder.append(self._strategies[CapabilityTier.TEXT_ENCODED])
        return ladder

    def _check_length(self, embedding: Sequence[float]) -> None:
        if self.strict_length and len(embedding) != self.dimensions:
            raise ValidationError(self.dimensions, len(embedding))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store_embedding(self, content: str, category: str, embedding: Sequence[float]) -> str:
        """Insert one row. Returns the generated id; errors propagate."""
        self._check_length(embedding)
        strategy = self._strategies[self.storage_tier]

        try:
            with session_scope(self._session_factory) as session:
                return strategy.insert(session, content, category, embedding)
        except SQLAlchemyError as e:
            logger.error(f"[embeddings] Error storing embedding: {e}")
            raise

    def bulk_store_embeddings(self, items: Sequence[Dict[str, Any]]) -> int:
        """
        Insert many rows in one transaction.

        Each row runs in its own SAVEPOINT: a failing row is logged and
        skipped, the rest are committed. Returns the number of rows stored.
        """
        if not items:
            logger.warning("[embeddings] No embeddings to store")
            return 0

        strategy = self._strategies[self.storage_tier]
        stored = 0

        with session_scope(self._session_factory) as session:
            for i, item in enumerate(items):
                try:
                    embedding = item["embedding"]
                    self._check_length(embedding)
                    with session.begin_nested():
                        strategy.insert(session, item["content"], item["category"], embedding)
                    stored += 1
                except (SQLAlchemyError, EmbeddingStoreError, KeyError, TypeError, ValueError) as e:
                    logger.error(f"[embeddings] Error inserting item {i}: {e}")

        logger.info(f"[embeddings] Stored {stored}/{len(items)} embeddings ({strategy.tier.value})")
        return stored

    def delete_all_embeddings(self) -> int:
        with session_scope(self._session_factory) as session:
            result = session.execute(text(f"DELETE FROM {quote_ident(self.table)}"))
            deleted = result.rowcount or 0
        logger.info(f"[embeddings] Deleted {deleted} embeddings")
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def count_embeddings(self) -> int:
        with session_scope(self._session_factory) as session:
            count = session.execute(
                text(f"SELECT COUNT(*) FROM {quote_ident(self.table)}")
            ).scalar()
        return int(count or 0)

    def get_embeddings_by_category(self, category: str) -> List[EmbeddingRecord]:
        with session_scope(self._session_factory) as session:
            rows = session.execute(
                text(
                    f'SELECT "id", "content" FROM {quote_ident(self.table)} '
                    f'WHERE "category" = :category'
                ),
                {"category": category},
            ).mappings().all()
        return [EmbeddingRecord(id=str(row["id"]), content=row["content"]) for row in rows]

    def find_similar_documents(
        self,
        query_embedding: Sequence[float],
        limit: int = DEFAULT_TOP_K,
    ) -> List[SimilarityResult]:
        """
        Nearest rows to query_embedding, most similar first.

        Best effort: never raises, returns [] when every strategy fails or
        limit is below 1.
        """
        if limit < 1:
            return []
        try:
            for strategy in self._search_ladder():
                try:
                    with session_scope(self._session_factory) as session:
                        return strategy.search(session, query_embedding, limit)
                except SQLAlchemyError as e:
                    logger.warning(
                        f"[embeddings] {strategy.tier.value} search failed: {e}. Using fallback approach..."
                    )
            return []
        except Exception as e:
            logger.error(f"[embeddings] Error finding similar documents: {e}")
            return []


# Global singleton for easy access
_store: Optional[EmbeddingStore] = None


def get_embedding_store() -> EmbeddingStore:
    global _store
    if _store is None:
        _store = EmbeddingStore()
    return _store
