"""
Kafi knowledge retrieval.

Bootstraps the shop knowledge corpus into the embedding store and turns
query embeddings into context snippets for the chat assistant.

Core API:
    get_retriever().initialize(load_knowledge_base())
    get_retriever().query_similar(query_embedding, limit)
    get_retriever().add_document(text, category)
    assess_relevance(user_query, snippets)
"""

from .knowledge_base import SHOP_FACTS, load_knowledge_base
from .relevance import assess_relevance, extract_key_terms
from .retriever import KnowledgeRetriever, get_retriever

__all__ = [
    "SHOP_FACTS",
    "load_knowledge_base",
    "assess_relevance",
    "extract_key_terms",
    "KnowledgeRetriever",
    "get_retriever",
]
