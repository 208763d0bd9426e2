# FILE: app/embeddings/router.py
"""
FastAPI routes for embedding operations.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.auth import require_admin_key
from app.rag.relevance import assess_relevance
from app.rag.retriever import KnowledgeRetriever, get_retriever

from .errors import EmbeddingGenerationError
from .repository import EmbeddingStore, get_embedding_store
from .schemas import (
    DeleteResponse,
    DocumentRequest,
    DocumentResponse,
    EmbeddingRecord,
    SearchRequest,
    SearchResponse,
    StatusResponse,
)
from .service import EmbeddingClient, get_embedding_client

router = APIRouter(
    prefix="/embeddings",
    tags=["embeddings"],
    dependencies=[Depends(require_admin_key)],
)


@router.get("/status", response_model=StatusResponse)
def get_embedding_status(store: EmbeddingStore = Depends(get_embedding_store)):
    """Capability tier of the embedding column and the number of stored rows."""
    capability = store.refresh_capability()

    return StatusResponse(
        exists=capability.exists,
        tier=capability.tier.value if capability.tier else None,
        query_tier=store.query_tier.value if capability.tier else None,
        raw_type=capability.raw_type,
        count=store.count_embeddings() if capability.exists else 0,
    )


@router.post("/search", response_model=SearchResponse)
def semantic_search(
    req: SearchRequest,
    store: EmbeddingStore = Depends(get_embedding_store),
    embedder: EmbeddingClient = Depends(get_embedding_client),
    retriever: KnowledgeRetriever = Depends(get_retriever),
):
    """
    Embed the query and return the nearest documents.
    Also returns the thresholded snippets the chat prompt would receive,
    and the subset that mentions a key term of the query.
    """
    try:
        query_embedding = embedder.embed_one(req.query)
    except EmbeddingGenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))

    results = store.find_similar_documents(query_embedding, req.top_k)

    context = retriever.format_results(results, req.top_k)
    return SearchResponse(
        query=req.query,
        tier=store.query_tier.value,
        results=results,
        context=context,
        relevant_context=assess_relevance(req.query, context),
    )


@router.post("/documents", response_model=DocumentResponse)
def add_document(
    req: DocumentRequest,
    retriever: KnowledgeRetriever = Depends(get_retriever),
):
    """Embed and store a single document."""
    doc_id = retriever.add_document(req.text, req.category)
    return DocumentResponse(accepted=doc_id is not None)


@router.get("/categories/{category}", response_model=List[EmbeddingRecord])
def list_category(
    category: str,
    store: EmbeddingStore = Depends(get_embedding_store),
):
    """List stored documents in a category."""
    return store.get_embeddings_by_category(category)


@router.delete("", response_model=DeleteResponse)
def delete_all(store: EmbeddingStore = Depends(get_embedding_store)):
    """Delete every stored embedding. The table itself is kept."""
    return DeleteResponse(deleted=store.delete_all_embeddings())
