# product_discovery/services/product_extractor.py
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from product_discovery.models.internal import ProductMentionContext, ScoredSource, MAX_CONTEXT_CHARS
from product_discovery.services.llm_providers import LLMProviderChain
from product_discovery.services import vocabulary

logger = logging.getLogger(__name__)

PROMPT_CONTENT_CHARS = 2000
BRAND_WINDOW_CHARS = 40
PROMOTIONAL_PHRASES = ["buy now", "shop now", "add to cart", "sale", "discount", "% off", "free shipping", "deal"]

EXTRACTION_SYSTEM = (
    "You are a product extraction expert. Always respond with valid JSON arrays only. No explanations."
)

EXTRACTION_PROMPT = """Extract products from this content:
Title: "{title}"
Content: "{content}"

{focus}

Rules:
- Only concrete products: brand name plus product name (e.g. "CeraVe Hydrating Cleanser")
- Do NOT return generic category words ("moisturizer", "serum", "sunscreen")
- Do NOT return promotional phrases ("buy now", "50% off", "best deals")

Return ONLY a JSON array of product name strings, for example:
["CeraVe Hydrating Cleanser", "La Roche-Posay Toleriane Cleanser"]
If no products are mentioned, return: []"""

CATEGORY_FOCUS = {
    "books": ("Extract BOOKS mentioned in this content: book titles (like \"Atomic Habits\"), "
              "optionally found next to author names (like \"James Clear\")."),
    "beauty": ("Focus on SKINCARE and BEAUTY PRODUCTS: specific product names with brands, "
               "serums, creams, cleansers and makeup."),
}
DEFAULT_FOCUS = "Extract any specific products mentioned: brand names with product names or models."

_BRANDS_ALTERNATION = "|".join(re.escape(b) for b in sorted(vocabulary.KNOWN_BRANDS, key=len, reverse=True))
_NOUNS_ALTERNATION = "|".join(re.escape(n) for n in sorted(vocabulary.PRODUCT_TYPE_NOUNS, key=len, reverse=True))
_BRAND_PRODUCT_PATTERN = re.compile(
    rf"(?<!\w)({_BRANDS_ALTERNATION})(?!\w)[^.\n]{{0,{BRAND_WINDOW_CHARS}}}?\b({_NOUNS_ALTERNATION})\b",
    re.IGNORECASE
)
_TITLE_BY_AUTHOR_PATTERN = re.compile(
    r"\b([A-Z][\w']*(?:\s+[A-Z][\w']*){0,6})\s+by\s+[A-Z][\w.]*(?:\s+[A-Z][\w.]*){0,3}"
)
_QUOTED_BOOK_PATTERN = re.compile(r"\"([^\"]{3,50})\"\s*book", re.IGNORECASE)


@dataclass
class SourceExtraction:
    """Names found in one fetched source"""
    source: ScoredSource
    content: str
    names: List[str] = field(default_factory=list)


def dedupe_names(names: Iterable[str]) -> List[str]:
    seen = set()
    unique = []
    for name in names:
        cleaned = " ".join(str(name).split())
        key = cleaned.lower()
        if cleaned and key not in seen:
            seen.add(key)
            unique.append(cleaned)
    return unique


def is_plausible_product_name(name: str) -> bool:
    lowered = name.lower().strip()
    if len(lowered) < 3 or len(lowered) > 120:
        return False
    if lowered in vocabulary.CATEGORY_KEYWORDS or lowered.rstrip("s") in vocabulary.CATEGORY_KEYWORDS:
        return False
    return not any(phrase in lowered for phrase in PROMOTIONAL_PHRASES)


def curated_book_matches(text: str) -> List[str]:
    lowered = text.lower()
    return [
        book["name"]
        for key, book in vocabulary.CURATED_BOOKS.items()
        if key in lowered or book["author"].lower() in lowered
    ]


def regex_extract(content: str, category_hints: Iterable[str] = ()) -> List[str]:
    """Degraded mode: brand followed by a product-type noun, plus book patterns for book queries."""
    names = []
    for match in _BRAND_PRODUCT_PATTERN.finditer(content):
        names.append(match.group(0))

    if "books" in category_hints:
        names.extend(curated_book_matches(content))
        names.extend(m.group(1) for m in _TITLE_BY_AUTHOR_PATTERN.finditer(content))
        names.extend(m.group(1) for m in _QUOTED_BOOK_PATTERN.finditer(content))

    return dedupe_names(n for n in names if is_plausible_product_name(n))


def mention_context(content: str, name: str, before: int = 300) -> str:
    """Text window around the first mention of `name`, at most MAX_CONTEXT_CHARS long."""
    index = content.lower().find(name.lower())
    if index == -1:
        return content[:MAX_CONTEXT_CHARS]
    start = max(0, index - before)
    return content[start:start + MAX_CONTEXT_CHARS]


def group_mentions(extractions: List[SourceExtraction]) -> Tuple[Dict[str, List[ProductMentionContext]], Dict[str, str]]:
    """
    Group mentions by normalized name, in source order.

    Returns the grouped contexts and the display name (first spelling seen)
    for each normalized key. Must run only after every extraction finished.
    """
    grouped: Dict[str, List[ProductMentionContext]] = {}
    display_names: Dict[str, str] = {}

    for extraction in extractions:
        for name in extraction.names:
            key = name.lower().strip()
            if not key:
                continue
            display_names.setdefault(key, name.strip())
            grouped.setdefault(key, []).append(ProductMentionContext(
                text=mention_context(extraction.content, name),
                source_title=extraction.source.title,
                source_url=extraction.source.url
            ))

    logger.info(f"Grouped {sum(len(v) for v in grouped.values())} mentions into {len(grouped)} products")
    return grouped, display_names


class ProductMentionExtractor:
    """Lists concrete product names in one source: curated titles, then LLM, then regex."""

    def __init__(self, llm_chain: Optional[LLMProviderChain] = None):
        self.llm_chain = llm_chain

    async def extract(self, content: str, source_title: str, category_hints: Iterable[str] = ()) -> List[str]:
        category_hints = list(category_hints)

        if "books" in category_hints:
            curated = curated_book_matches(f"{source_title} {content}")
            if curated:
                logger.info(f"Found {len(curated)} curated books in '{source_title[:50]}'")
                return dedupe_names(curated)

        names = await self._llm_extract(content, source_title, category_hints)
        if names is None:
            names = regex_extract(f"{source_title}\n{content}", category_hints)
            logger.info(f"Regex extraction found {len(names)} products in '{source_title[:50]}'")
        return names

    async def _llm_extract(self, content: str, source_title: str,
                           category_hints: List[str]) -> Optional[List[str]]:
        """None when every provider failed, so the caller can fall back to regex."""
        if self.llm_chain is None or self.llm_chain.is_empty:
            return None

        focus = next((CATEGORY_FOCUS[h] for h in category_hints if h in CATEGORY_FOCUS), DEFAULT_FOCUS)
        prompt = EXTRACTION_PROMPT.format(
            title=source_title, content=content[:PROMPT_CONTENT_CHARS], focus=focus
        )
        result = await self.llm_chain.request_json(prompt, shape="array", system=EXTRACTION_SYSTEM,
                                                   max_tokens=512)
        if not result.ok:
            logger.info(f"LLM extraction failed for '{source_title[:50]}': {result.reason}")
            return None

        names = []
        for item in result.value:
            if isinstance(item, str):
                names.append(item)
            elif isinstance(item, dict) and item.get("name"):
                names.append(str(item["name"]))

        names = dedupe_names(n for n in names if is_plausible_product_name(n))
        logger.info(f"{result.provider} identified {len(names)} products from '{source_title[:50]}'")
        return names
