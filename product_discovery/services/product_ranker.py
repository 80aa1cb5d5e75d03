# product_discovery/services/product_ranker.py
import logging
from typing import Dict, List, Optional

from product_discovery.models.internal import ProductMentionContext, RankedProduct
from product_discovery.services import vocabulary

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 5


def infer_brand(product_name: str) -> str:
    """Longest known brand that prefixes the name, else its first word."""
    lowered = product_name.lower().strip()
    prefixes = [b for b in vocabulary.KNOWN_BRANDS if lowered.startswith(b.lower())]
    if prefixes:
        return max(prefixes, key=len)

    for book in vocabulary.CURATED_BOOKS.values():
        if book["name"].lower() == lowered:
            return book["author"]

    words = product_name.split()
    return words[0] if words else ""


def quality_score(contexts: List[ProductMentionContext]) -> float:
    mention_count = len(contexts)
    avg_title_length = sum(len(c.source_title) for c in contexts) / mention_count
    return mention_count * 0.2 + avg_title_length * 0.001


class ProductRanker:
    def __init__(self, top_n: int = DEFAULT_TOP_N):
        self.top_n = top_n

    def rank(self, grouped: Dict[str, List[ProductMentionContext]],
             display_names: Optional[Dict[str, str]] = None) -> List[RankedProduct]:
        """Top-N products by mention_count * quality_score. Ties go to the longer, then alphabetically first, name."""
        display_names = display_names or {}

        candidates = []
        for key, contexts in grouped.items():
            if not contexts:
                continue
            name = display_names.get(key, key)
            candidates.append(RankedProduct(
                product_name=name,
                brand=infer_brand(name),
                mention_count=len(contexts),
                quality_score=quality_score(contexts),
                contexts=list(contexts)
            ))

        candidates.sort(key=lambda p: (-p.rank_score, -len(p.product_name), p.product_name.lower()))
        ranked = candidates[:self.top_n]

        logger.info(
            f"Ranked {len(candidates)} candidates, kept {len(ranked)}: "
            f"{[(p.product_name, round(p.rank_score, 3)) for p in ranked]}"
        )
        return ranked
