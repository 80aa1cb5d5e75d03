# product_discovery/services/result_validator.py
import logging
import re
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from product_discovery.models.internal import IntentType, ProductResult, QueryIntent, ValidationResult
from product_discovery.services import vocabulary

logger = logging.getLogger(__name__)

RELEVANCE_WEIGHT = 0.4
DIVERSITY_WEIGHT = 0.2
FRESHNESS_WEIGHT = 0.2
CREDIBILITY_WEIGHT = 0.2

PRODUCT_TYPES = ["serum", "cream", "cleanser", "moisturizer", "sunscreen", "toner", "book"]
EXPERT_TITLE_WORDS = ["dermatologist", "expert", "professional"]


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def relevance_score(query: str, results: List[ProductResult]) -> float:
    if not results:
        return 0.0

    query_lower = query.lower().strip()
    query_words = query_lower.split()
    total = 0.0
    for result in results:
        relevance = 0.0
        if query_lower and query_lower in result.product_name.lower():
            relevance += 0.4
        if query_lower and result.brand and query_lower in result.brand.lower():
            relevance += 0.3
        if query_words:
            summary_words = result.summary.lower().split()
            matches = sum(1 for w in query_words if any(w in s for s in summary_words))
            relevance += (matches / len(query_words)) * 0.3
        total += relevance

    return _clamp(total / len(results))


def _product_type(name: str) -> str:
    lowered = name.lower()
    return next((t for t in PRODUCT_TYPES if t in lowered), "other")


def diversity_score(results: List[ProductResult]) -> float:
    if not results:
        return 0.0
    if len(results) == 1:
        return 1.0

    brands = {r.brand.lower() for r in results}
    brand_diversity = len(brands) / len(results)

    domains = set()
    for result in results:
        for source in result.sources:
            netloc = urlparse(source.url).netloc
            if netloc:
                domains.add(netloc.lower())
    source_diversity = min(1.0, len(domains) / (len(results) * 2))

    type_variety = 1.0 if len({_product_type(r.product_name) for r in results}) > 1 else 0.0

    return _clamp(brand_diversity * 0.4 + source_diversity * 0.4 + type_variety * 0.2)


def freshness_score(results: List[ProductResult], year: int) -> float:
    if not results:
        return 0.0

    current, prior = str(year), str(year - 1)
    fresh_words = re.compile(r"\b(" + "|".join(vocabulary.FRESHNESS_KEYWORDS + [current]) + r")\b")
    total = 0.0
    for result in results:
        freshness = 0.5
        if current in result.summary or current in result.product_name:
            freshness += 0.3
        if prior in result.summary or prior in result.product_name:
            freshness += 0.2
        if any(fresh_words.search(s.title.lower()) for s in result.sources):
            freshness += 0.2
        total += min(1.0, freshness)

    return _clamp(total / len(results))


def credibility_score(results: List[ProductResult]) -> float:
    if not results:
        return 0.0

    total = 0.0
    for result in results:
        credibility = 0.5
        if result.mention_frequency >= 3:
            credibility += 0.2
        elif result.mention_frequency >= 2:
            credibility += 0.1
        credibility += result.quality_score * 0.3

        has_expert_source = any(
            any(w in s.title.lower() for w in EXPERT_TITLE_WORDS)
            or any(d in s.url.lower() for d in vocabulary.EXPERT_DOMAINS)
            for s in result.sources
        )
        if has_expert_source:
            credibility += 0.2
        total += min(1.0, credibility)

    return _clamp(total / len(results))


def improvement_suggestions(relevance: float, diversity: float, freshness: float,
                            credibility: float, result_count: int, year: int) -> List[str]:
    suggestions = []
    if relevance < 0.6:
        suggestions.append("Consider refining search terms for better relevance")
    if diversity < 0.5:
        suggestions.append("Results show limited brand/source diversity")
    if freshness < 0.5:
        suggestions.append(f'Consider adding "{year}" or "latest" to find more recent information')
    if credibility < 0.6:
        suggestions.append("Results may benefit from more expert sources")
    if result_count < 3:
        suggestions.append("Limited results found - try broader search terms")
    if result_count == 0:
        suggestions.append("No results found - try alternative spellings or related terms")
        suggestions.append("For books, try searching with author name or alternate title")
        suggestions.append("Consider searching for similar products in the same category")
    return suggestions


def quality_band(overall: float) -> str:
    if overall > 0.8:
        return "excellent"
    if overall > 0.6:
        return "good"
    if overall > 0.4:
        return "moderate"
    return "limited"


def explain(query: str, results: List[ProductResult], intent_type: Optional[IntentType],
            overall: float) -> str:
    if not results:
        return (f'No products found for "{query}". This could be due to very specific search terms '
                f"or limited availability of the product in our sources.")

    plural = "s" if len(results) > 1 else ""
    explanation = f'Found {len(results)} product{plural} for "{query}" with {quality_band(overall)} quality.'

    top = results[0]
    if intent_type == IntentType.SPECIFIC_PRODUCT:
        explanation += (f' Searching for the specific product "{top.product_name}" yielded '
                        f"{top.mention_frequency} mentions across expert sources.")
    elif intent_type == IntentType.CATEGORY:
        explanation += f" Category search returned diverse options in the {query} space."
    elif intent_type == IntentType.COMPARISON:
        explanation += " Comparison search found products suitable for side-by-side evaluation."
    elif intent_type == IntentType.BRAND_EXPLORATION:
        explanation += f" Brand search covered {len({r.product_name for r in results})} products from the range."

    if overall < 0.6:
        explanation += " Consider refining your search terms for better results."
    return explanation


def should_trigger_fallback(validation: ValidationResult) -> bool:
    return validation.overall_quality < 0.4 or validation.relevance_score < 0.3


class ResultValidator:
    def validate(self, query: str, results: List[ProductResult], intent: Optional[QueryIntent] = None,
                 now: Optional[datetime] = None) -> ValidationResult:
        year = (now or datetime.now()).year

        relevance = relevance_score(query, results)
        diversity = diversity_score(results)
        freshness = freshness_score(results, year)
        credibility = credibility_score(results)
        overall = _clamp(
            relevance * RELEVANCE_WEIGHT
            + diversity * DIVERSITY_WEIGHT
            + freshness * FRESHNESS_WEIGHT
            + credibility * CREDIBILITY_WEIGHT
        )

        validation = ValidationResult(
            relevance_score=relevance,
            diversity_score=diversity,
            freshness_score=freshness,
            credibility_score=credibility,
            overall_quality=overall,
            suggestions=improvement_suggestions(relevance, diversity, freshness, credibility, len(results), year),
            explanation=explain(query, results, intent.type if intent else None, overall)
        )
        logger.info(f"Validation complete for '{query}': overall quality {overall:.2f}")
        return validation

    def should_trigger_fallback(self, validation: ValidationResult) -> bool:
        return should_trigger_fallback(validation)
