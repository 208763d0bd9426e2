# FILE: app/embeddings/__init__.py
"""
Embedding store for Kafi's chat assistant.
Provides embedding generation, self-healing schema provisioning and
tier-adaptive vector similarity search.
"""

from .capability import CapabilityTier, ColumnCapability, ColumnType, classify_column_type
from .errors import (
    EmbeddingStoreError,
    ProvisioningError,
    StoreUnavailableError,
    EmbeddingGenerationError,
    ValidationError,
)
from .service import (
    EmbeddingClient,
    generate_embedding,
    cosine_similarity,
    get_embedding_client,
)
from .repository import EmbeddingStore, get_embedding_store
from .migrations import (
    MigrationAction,
    MigrationPlan,
    SchemaManager,
    SchemaReport,
    plan_migration,
    run_schema_migrations,
)
from .schemas import EmbeddingRecord, SimilarityResult

__all__ = [
    # Capability
    "CapabilityTier",
    "ColumnCapability",
    "ColumnType",
    "classify_column_type",
    # Errors
    "EmbeddingStoreError",
    "ProvisioningError",
    "StoreUnavailableError",
    "EmbeddingGenerationError",
    "ValidationError",
    # Generation
    "EmbeddingClient",
    "generate_embedding",
    "cosine_similarity",
    "get_embedding_client",
    # Store
    "EmbeddingStore",
    "get_embedding_store",
    # Schema
    "MigrationAction",
    "MigrationPlan",
    "SchemaManager",
    "SchemaReport",
    "plan_migration",
    "run_schema_migrations",
    # Schemas
    "EmbeddingRecord",
    "SimilarityResult",
]
