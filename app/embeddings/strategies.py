# FILE: app/embeddings/strategies.py
"""
Per-tier SQL for the embedding table.

Each strategy knows how to insert a row and how to answer a nearest-neighbour
query for one capability tier. A failing search raises; the repository then
moves down the ladder (see EmbeddingStore.find_similar_documents).

Similarity is reported on one scale for every tier: cosine similarity in
[-1, 1].
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .capability import CapabilityTier
from .codec import format_array_literal, format_vector_literal, parse_vector_text
from .config import EMBEDDING_TABLE, FALLBACK_SAMPLE_SIZE
from .schemas import SimilarityResult
from .service import cosine_similarity

logger = logging.getLogger(__name__)


def quote_ident(name: str) -> str:
    """Double-quote a SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


class TierStrategy(ABC):
    """SQL dialect for one capability tier."""

    tier: CapabilityTier

    # SQL expression wrapping the :embedding bind parameter on insert
    insert_value_sql: str = ":embedding"

    def __init__(self, table: str = EMBEDDING_TABLE):
        self.table = table
        self._table_sql = quote_ident(table)

    @abstractmethod
    def encode(self, embedding: Sequence[float]) -> str:
        """Serialize a vector for this tier's column."""

    @abstractmethod
    def search(self, session: Session, query_embedding: Sequence[float], limit: int) -> List[SimilarityResult]:
        """Nearest rows, most similar first. Raises on failure."""

    def insert(self, session: Session, content: str, category: str, embedding: Sequence[float]) -> str:
        """INSERT one row and return its id."""
        result = session.execute(
            text(
                f"""
                INSERT INTO {self._table_sql} ("id", "content", "category", "embedding")
                VALUES (:id, :content, :category, {self.insert_value_sql})
                RETURNING "id"
                """
            ),
            {
                "id": str(uuid.uuid4()),
                "content": content,
                "category": category,
                "embedding": self.encode(embedding),
            },
        )
        return str(result.scalar_one())

    @staticmethod
    def _to_results(rows) -> List[SimilarityResult]:
        return [
            SimilarityResult(
                id=str(row["id"]),
                content=row["content"],
                similarity=float(row["similarity"] or 0.0),
            )
            for row in rows
        ]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} table={self.table}>"


class NativeVectorStrategy(TierStrategy):
    """pgvector column. Distance computed (and indexed) by the extension."""

    tier = CapabilityTier.NATIVE_VECTOR
    insert_value_sql = "CAST(:embedding AS vector)"

    # Cosine distance first. If this deployment's operator class rejects it,
    # retry with L2 distance; for unit-length vectors cos = 1 - d^2 / 2.
    COSINE_SIMILARITY_SQL = "1 - (\"embedding\" <=> CAST(:embedding AS vector))"
    COSINE_ORDER_SQL = "\"embedding\" <=> CAST(:embedding AS vector)"
    L2_SIMILARITY_SQL = "1 - POWER(\"embedding\" <-> CAST(:embedding AS vector), 2) / 2"
    L2_ORDER_SQL = "\"embedding\" <-> CAST(:embedding AS vector)"

    def encode(self, embedding: Sequence[float]) -> str:
        return format_vector_literal(embedding)

    def search(self, session: Session, query_embedding: Sequence[float], limit: int) -> List[SimilarityResult]:
        params = {"embedding": self.encode(query_embedding), "limit": limit}

        try:
            return self._query(session, self.COSINE_SIMILARITY_SQL, self.COSINE_ORDER_SQL, params)
        except SQLAlchemyError as e:
            logger.warning(f"[embeddings] Cosine distance failed: {e}. Trying Euclidean distance...")
            session.rollback()

        return self._query(session, self.L2_SIMILARITY_SQL, self.L2_ORDER_SQL, params)

    def _query(self, session: Session, similarity_sql: str, order_sql: str, params: Dict) -> List[SimilarityResult]:
        rows = session.execute(
            text(
                f"""
                SELECT "id", "content", {similarity_sql} AS "similarity"
                FROM {self._table_sql}
                ORDER BY {order_sql}
                LIMIT :limit
                """
            ),
            params,
        ).mappings().all()
        return self._to_results(rows)


class FixedArrayStrategy(TierStrategy):
    """double precision[] column. Dot product over norms, computed in SQL."""

    tier = CapabilityTier.FIXED_ARRAY
    insert_value_sql = "CAST(:embedding AS double precision[])"

    def encode(self, embedding: Sequence[float]) -> str:
        return format_array_literal(embedding)

    def search(self, session: Session, query_embedding: Sequence[float], limit: int) -> List[SimilarityResult]:
        rows = session.execute(
            text(
                f"""
                SELECT "id", "content", COALESCE(
                    (
                        SELECT SUM(e1 * e2)
                        FROM unnest("embedding", CAST(:embedding AS double precision[])) AS t(e1, e2)
                    ) / NULLIF(
                        SQRT(
                            (SELECT SUM(e * e) FROM unnest("embedding") AS e) *
                            (SELECT SUM(e * e) FROM unnest(CAST(:embedding AS double precision[])) AS e)
                        ),
                        0
                    ),
                    0
                ) AS "similarity"
                FROM {self._table_sql}
                ORDER BY "similarity" DESC
                LIMIT :limit
                """
            ),
            {"embedding": self.encode(query_embedding), "limit": limit},
        ).mappings().all()
        return self._to_results(rows)


class TextEncodedStrategy(TierStrategy):
    """
    TEXT column, or any column read back as text.

    Reads a bounded sample and ranks it in Python. Also the last resort when
    the SQL-side strategies fail.
    """

    tier = CapabilityTier.TEXT_ENCODED

    def __init__(self, table: str = EMBEDDING_TABLE, sample_size: int = FALLBACK_SAMPLE_SIZE):
        super().__init__(table)
        self.sample_size = sample_size

    def encode(self, embedding: Sequence[float]) -> str:
        return format_vector_literal(embedding)

    def search(self, session: Session, query_embedding: Sequence[float], limit: int) -> List[SimilarityResult]:
        rows = session.execute(
            text(
                f"""
                SELECT "id", "content", CAST("embedding" AS TEXT) AS "embedding"
                FROM {self._table_sql}
                LIMIT :sample_size
                """
            ),
            {"sample_size": self.sample_size},
        ).mappings().all()

        results = []
        for row in rows:
            try:
                stored = parse_vector_text(row["embedding"])
                similarity = cosine_similarity(query_embedding, stored)
            except (TypeError, ValueError) as e:
                # Keep the row visible with zero similarity
                logger.warning(f"[embeddings] Unparseable embedding for row {row['id']}: {e}")
                similarity = 0.0
            results.append(
                SimilarityResult(id=str(row["id"]), content=row["content"], similarity=similarity)
            )

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]


def build_strategies(table: str = EMBEDDING_TABLE, sample_size: int = FALLBACK_SAMPLE_SIZE) -> Dict[CapabilityTier, TierStrategy]:
    return {
        CapabilityTier.NATIVE_VECTOR: NativeVectorStrategy(table),
        CapabilityTier.FIXED_ARRAY: FixedArrayStrategy(table),
        CapabilityTier.TEXT_ENCODED: TextEncodedStrategy(table, sample_size),
    }
