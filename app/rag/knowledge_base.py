"""
Knowledge corpus bootstrapped into the embedding store.

A fixed set of shop facts, optionally extended with lines produced by
reporting providers (e.g. yearly / monthly / daily analytics summaries).
"""

import logging
from typing import Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)

# A provider returns a block of text; each non-blank line becomes one document.
LinesProvider = Callable[[], Optional[str]]

SHOP_FACTS: List[str] = [
    # General coffee shop information
    "Kafi is open from 7:00 to 22:00 every day, including public holidays.",
    "Kafi was founded in April 2025.",

    # Business strategy
    "Kafi's loyalty program has 3 levels: Silver (1000 points, 5% off), "
    "Gold (2000 points, 10% off) and Diamond (5000 points, 15% off).",
    "Kafi focuses on the digital experience, with a POS app and loyalty points for regular customers.",

    # Operations
    "Kafi built its own POS client, which shows the menu together with the customer's accumulated loyalty points.",
    "Kafi uses an integrated POS system to manage orders and inventory.",
]


def load_knowledge_base(providers: Optional[Iterable[LinesProvider]] = None) -> List[str]:
    """
    Build the corpus: shop facts plus every non-blank line from each provider.

    A provider that raises is logged and skipped.
    """
    corpus = list(SHOP_FACTS)

    for provider in providers or []:
        try:
            block = provider()
        except Exception as e:
            logger.warning(f"[knowledge] Failed to add provider data to knowledge base: {e}")
            continue

        if not block:
            continue
        corpus.extend(line for line in block.split("\n") if line.strip())

    logger.info(f"[knowledge] Loaded {len(corpus)} knowledge items")
    return corpus
