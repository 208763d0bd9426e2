# FILE: app/embeddings/schemas.py
"""
Pydantic schemas for embedding records and endpoints.
"""

from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field

from .config import DEFAULT_CATEGORY, DEFAULT_TOP_K


class EmbeddingRecord(BaseModel):
    """Stored row without its vector."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    content: str


class SimilarityResult(BaseModel):
    """Single search result with similarity score."""
    id: str
    content: str
    similarity: float  # ≈ cosine similarity, same scale for every tier


class SearchRequest(BaseModel):
    """Request schema for semantic search."""
    query: str = Field(..., min_length=1)
    top_k: int = Field(DEFAULT_TOP_K, ge=1, le=50)


class SearchResponse(BaseModel):
    query: str
    tier: Optional[str]
    results: List[SimilarityResult]
    context: List[str]  # Threshold-filtered snippets, as handed to the chat prompt
    relevant_context: List[str]  # context after the keyword check; [] when nothing was found


class DocumentRequest(BaseModel):
    """Request schema for incremental ingestion."""
    text: str = Field(..., min_length=1)
    category: str = Field(DEFAULT_CATEGORY, min_length=1)


class DocumentResponse(BaseModel):
    accepted: bool


class StatusResponse(BaseModel):
    """Current capability of the embedding column."""
    exists: bool
    tier: Optional[str]
    query_tier: Optional[str]
    raw_type: str
    count: int


class DeleteResponse(BaseModel):
    deleted: int
