# FILE: app/embeddings/config.py
"""
Embedding store configuration.

All tunables in one place. Values come from the environment (loaded from .env
by main.py) with defaults that match the production deployment.
"""

import os
from typing import Optional

# ============================================================================
# DATABASE
# ============================================================================

# Connection URL lives in app/db.py (KAFI_DATABASE_URL)
EMBEDDING_TABLE: str = os.getenv("KAFI_EMBEDDING_TABLE", "ai_embeddings")
EMBEDDING_COLUMN: str = "embedding"

# ============================================================================
# EMBEDDINGS
# ============================================================================

EMBEDDING_MODEL: str = os.getenv("KAFI_EMBEDDING_MODEL", "text-embedding-3-small")
EMBEDDING_DIMENSIONS: int = 1536  # text-embedding-3-small output width

# Reject vectors whose length != EMBEDDING_DIMENSIONS at insert time.
# Off by default: the generator is trusted.
STRICT_LENGTH: bool = os.getenv("KAFI_EMBEDDING_STRICT_LENGTH", "false").lower() in {"1", "true", "yes"}

# Pin the store to a lower tier ("native_vector", "fixed_array", "text_encoded").
# Unset = use whatever the schema manager established.
FORCE_TIER: Optional[str] = os.getenv("KAFI_EMBEDDING_FORCE_TIER") or None

# ============================================================================
# BOOTSTRAP
# ============================================================================

BOOTSTRAP_BATCH_SIZE: int = int(os.getenv("KAFI_EMBEDDING_BATCH_SIZE", "10"))
DEFAULT_CATEGORY: str = "knowledge_base"

# ============================================================================
# RETRIEVAL
# ============================================================================

DEFAULT_TOP_K: int = 3
RELEVANCE_THRESHOLD: float = float(os.getenv("KAFI_RELEVANCE_THRESHOLD", "0.6"))

# Rows read by the in-process similarity scan (unindexed text column)
FALLBACK_SAMPLE_SIZE: int = int(os.getenv("KAFI_FALLBACK_SAMPLE_SIZE", "100"))

NO_RELEVANT_DATA_MESSAGE: str = "There is no relevant data to reference."
NO_DATA_MESSAGE: str = "There is no data to reference."
SEARCH_ERROR_MESSAGE: str = "An error occurred while searching for reference information."
