# product_discovery/services/source_scorer.py
import logging
import re
from datetime import datetime
from typing import Iterable, List, Optional
from urllib.parse import urlparse

from product_discovery.models.internal import (
    IntentType,
    QueryIntent,
    RawSearchHit,
    ScoredSource,
    SourceType,
)
from product_discovery.services import vocabulary

logger = logging.getLogger(__name__)

LISTING_URL_SEGMENTS = ["/collections/", "/collection/", "/category/", "/categories/", "/search", "/shop/"]
LISTING_TITLE_WORDS = ["products", "collection"]
EXPERT_TITLE_WORDS = ["review", "expert", "dermatologist"]
ANALYSIS_TITLE_WORDS = ["summary", "analysis", "comparison", "best"]
LISTING_URL_PENALTY = 0.5
LISTING_TITLE_PENALTY = 0.1

SPECIFIC_PRODUCT_THRESHOLD = 0.4
DEFAULT_THRESHOLD = 0.3
SPECIFIC_PRODUCT_CAP = 8
DEFAULT_CAP = 12

MIN_SCORE = 0.0
MAX_SCORE = 1.0


def extract_domain(url: str) -> str:
    try:
        netloc = urlparse(url).netloc.lower()
    except ValueError:
        return ""
    return netloc[4:] if netloc.startswith("www.") else netloc


def has_listing_url(hit: RawSearchHit) -> bool:
    url = hit.url.lower()
    return any(segment in url for segment in LISTING_URL_SEGMENTS)


def has_listing_title(hit: RawSearchHit) -> bool:
    title = hit.title.lower()
    return any(word in title for word in LISTING_TITLE_WORDS)


def is_listing_page(hit: RawSearchHit) -> bool:
    return has_listing_url(hit) or has_listing_title(hit)


def _domain_adjustment(url: str, category_hints: Iterable[str]) -> float:
    """One adjustment per hit, whichever category list it lands in first."""
    tables = [vocabulary.CATEGORY_DOMAINS[h] for h in category_hints if h in vocabulary.CATEGORY_DOMAINS]
    if any(d in url for table in tables for d in table["high_quality"]):
        return 0.4
    if any(d in url for table in tables for d in table["moderate"]):
        return 0.2
    if any(d in url for table in tables for d in table["blocklist"]):
        return -0.4
    return 0.0


def score(hit: RawSearchHit, intent_type: IntentType, category_hints: Iterable[str] = (),
          now: Optional[datetime] = None) -> float:
    """Trust/relevance of one search hit for the given intent, in [0, 1]."""
    url = hit.url.lower()
    title = hit.title.lower()
    year = (now or datetime.now()).year

    value = 0.5
    value += _domain_adjustment(url, category_hints)

    if any(w in title for w in EXPERT_TITLE_WORDS):
        value += 0.2
    elif any(w in title for w in ANALYSIS_TITLE_WORDS):
        value += 0.1

    if str(year) in title or str(year - 1) in title:
        value += 0.1

    if any(d in url for d in vocabulary.POPULAR_DOMAINS):
        value += 0.05

    # URL and title listing signals stack for single-product queries
    if intent_type == IntentType.SPECIFIC_PRODUCT:
        if has_listing_url(hit):
            value -= LISTING_URL_PENALTY
        if has_listing_title(hit):
            value -= LISTING_TITLE_PENALTY
    elif intent_type == IntentType.BRAND_EXPLORATION and is_listing_page(hit):
        value += 0.2

    return min(max(value, MIN_SCORE), MAX_SCORE)


def classify(hit: RawSearchHit) -> SourceType:
    url = hit.url.lower()
    title = hit.title.lower()
    domain = extract_domain(url)
    path = urlparse(url).path if url else ""

    if any(d in domain for d in vocabulary.ECOMMERCE_DOMAINS) or re.search(r"/(shop|cart|store|buy)(/|$)", path):
        return SourceType.ECOMMERCE
    if any(d in domain for d in vocabulary.FORUM_DOMAINS) or "/forum" in path:
        return SourceType.FORUM

    compact_domain = re.sub(r"[^a-z]", "", domain.split(".")[0]) if domain else ""
    brand_site = any(re.sub(r"[^a-z]", "", b.lower()) == compact_domain for b in vocabulary.KNOWN_BRANDS)
    if brand_site:
        return SourceType.OFFICIAL

    if re.search(r"\b(review|reviews|best|vs|top)\b", title) or "review" in url:
        return SourceType.REVIEW
    return SourceType.BLOG


def filter_sources(hits: List[RawSearchHit], intent: QueryIntent,
                   now: Optional[datetime] = None) -> List[ScoredSource]:
    """Score, drop weak or incomplete hits, sort best-first and cap by intent."""
    specific = intent.type == IntentType.SPECIFIC_PRODUCT
    threshold = SPECIFIC_PRODUCT_THRESHOLD if specific else DEFAULT_THRESHOLD
    cap = SPECIFIC_PRODUCT_CAP if specific else DEFAULT_CAP

    scored = []
    for hit in hits:
        if not hit.title or not hit.url:
            continue
        quality = score(hit, intent.type, intent.category_hints, now=now)
        if quality < threshold:
            logger.debug(f"Dropping source {hit.url[:60]} (score {quality:.2f} < {threshold})")
            continue
        scored.append(ScoredSource(
            title=hit.title,
            url=hit.url,
            snippet=hit.snippet,
            source_type=classify(hit),
            domain=extract_domain(hit.url),
            quality_score=quality
        ))

    # stable sort keeps search-position order among equal scores
    scored.sort(key=lambda s: s.quality_score, reverse=True)
    kept = scored[:cap]
    logger.info(f"Source filtering: {len(kept)}/{len(hits)} kept for {intent.type.value} intent")
    return kept
