# FILE: tests/conftest.py
"""
Pytest configuration for the Kafi test suite.

Provides:
- sqlite_session_factory: in-memory SQLite with SAVEPOINT support, so the
  text-encoded tier and per-row failure isolation run without PostgreSQL
- SqliteIntrospector: StoreIntrospector backed by PRAGMA table_info
- FakeEmbedder: deterministic embeddings keyed by text
"""
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import math
from typing import Dict, List, Optional, Sequence

import pytest
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.embeddings.capability import CapabilityTier, ColumnCapability, ColumnType
from app.embeddings.errors import EmbeddingGenerationError
from app.embeddings.introspection import StoreIntrospector

TEST_TABLE = "test_embeddings"


class SqliteIntrospector(StoreIntrospector):
    """Introspection for SQLite test databases."""

    def __init__(self, session, vector_available: bool = False):
        self.session = session
        self.vector_available = vector_available

    def ping(self) -> None:
        self.session.execute(text("SELECT 1"))

    def table_exists(self, table: str) -> bool:
        row = self.session.execute(
            text("SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = :table"),
            {"table": table},
        ).first()
        return row is not None

    def column_type(self, table: str, column: str) -> Optional[ColumnType]:
        rows = self.session.execute(text(f'PRAGMA table_info("{table}")')).all()
        for row in rows:
            if row[1] == column:
                return ColumnType(data_type=row[2].lower())
        return None

    def vector_extension_available(self) -> bool:
        return self.vector_available


class FakeEmbedder:
    """
    Deterministic stand-in for EmbeddingClient.

    Vectors come from `vectors` when the text is known, otherwise from a
    stable hash of the text. Batches listed in `fail_batches` (1-based call
    numbers) raise EmbeddingGenerationError.
    """

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, dimensions: int = 8, fail_batches=()):
        self.vectors = vectors or {}
        self.dimensions = dimensions
        self.fail_batches = set(fail_batches)
        self.calls: List[List[str]] = []

    def vector_for(self, content: str) -> List[float]:
        if content in self.vectors:
            return list(self.vectors[content])
        seed = sum(ord(c) * (i + 1) for i, c in enumerate(content))
        raw = [math.sin(seed * (k + 1)) for k in range(self.dimensions)]
        norm = math.sqrt(sum(x * x for x in raw)) or 1.0
        return [x / norm for x in raw]

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if len(self.calls) in self.fail_batches:
            raise EmbeddingGenerationError(f"batch {len(self.calls)} rejected")
        return [self.vector_for(t) for t in texts]

    def embed_one(self, text: str) -> List[float]:
        return self.embed([text])[0]


def unit(index: int, dimensions: int = 8) -> List[float]:
    """Basis vector e_index."""
    vector = [0.0] * dimensions
    vector[index] = 1.0
    return vector


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite: let SQLAlchemy emit BEGIN itself so SAVEPOINT works
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    yield engine
    engine.dispose()


@pytest.fixture
def sqlite_session_factory(sqlite_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=sqlite_engine)


@pytest.fixture
def text_store(sqlite_session_factory):
    """EmbeddingStore on a freshly provisioned TEXT-tier SQLite table."""
    from app.embeddings.migrations import TextEncodedProvisioner
    from app.embeddings.repository import EmbeddingStore

    TextEncodedProvisioner(TEST_TABLE, dimensions=8).provision(sqlite_session_factory)

    store = EmbeddingStore(
        session_factory=sqlite_session_factory,
        table=TEST_TABLE,
        force_tier=None,
        strict_length=False,
        dimensions=8,
        introspector_factory=SqliteIntrospector,
    )
    store.set_capability(ColumnCapability.provisioned(CapabilityTier.TEXT_ENCODED))
    return store


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()
