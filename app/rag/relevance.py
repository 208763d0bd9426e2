"""
Keyword relevance check applied to retrieved snippets before they reach
the chat prompt (see the relevant_context field of /embeddings/search).
"""

import re
from typing import List

from app.embeddings.config import NO_DATA_MESSAGE, NO_RELEVANT_DATA_MESSAGE, SEARCH_ERROR_MESSAGE

SENTINEL_MESSAGES = {NO_DATA_MESSAGE, NO_RELEVANT_DATA_MESSAGE, SEARCH_ERROR_MESSAGE}

_PUNCTUATION = re.compile(r"[.,?!;:]")


def extract_key_terms(query: str) -> List[str]:
    """Lowercased words longer than two characters, punctuation stripped."""
    return [
        _PUNCTUATION.sub("", word)
        for word in query.lower().split()
        if len(word) > 2
    ]


def assess_relevance(user_query: str, snippets: List[str]) -> List[str]:
    """
    Keep snippets that mention at least one key term of the query.

    Sentinel results mean "nothing found" and yield []. A query without key
    terms keeps every snippet.
    """
    if not snippets or snippets[0] in SENTINEL_MESSAGES:
        return []

    key_terms = [term for term in extract_key_terms(user_query) if term]
    if not key_terms:
        return list(snippets)

    return [
        snippet for snippet in snippets
        if any(term in snippet.lower() for term in key_terms)
    ]
