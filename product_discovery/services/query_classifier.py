# product_discovery/services/query_classifier.py
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from product_discovery.models.internal import (
    ConfidenceFactors,
    ExtractedEntities,
    IntentType,
    Language,
    QueryIntent,
)
from product_discovery.services.llm_providers import LLMProviderChain
from product_discovery.services import vocabulary

logger = logging.getLogger(__name__)

DEVANAGARI = re.compile(r"[ऀ-ॿ]")
HINDI_LOCALE_HINT = "भारत indian hindi review"
QUICK_CONFIDENCE_THRESHOLD = 0.8

INTENT_PROMPT = """
Analyze this product search query and classify its intent:

Query: "{query}"

Classify as one of:
1. specific_product - User wants info about ONE specific product (e.g., "Eclipse Solaire", "CeraVe Hydrating Cleanser")
2. category - User wants recommendations in a category (e.g., "best vitamin C serum", "moisturizer for dry skin")
3. comparison - User wants to compare products (e.g., "CeraVe vs Cetaphil", "compare retinol serums")
4. brand_exploration - User wants to explore a brand's products (e.g., "Yuderma products", "The Ordinary range")

Return JSON:
{{
  "type": "specific_product|category|comparison|brand_exploration",
  "confidence": 0.0-1.0,
  "reasoning": "brief explanation",
  "extractedEntities": {{
    "productName": "exact product name if specific_product",
    "brandName": "brand name if mentioned",
    "category": "product category if category search",
    "comparisonTerms": ["term1", "term2"]
  }}
}}
"""

INTENT_SYSTEM = "You are a search intent classifier. Always respond with valid JSON."


@dataclass
class IntentAnalysis:
    """Intermediate result of one analysis pass, before optimized queries are built"""
    type: IntentType
    confidence: float
    entities: ExtractedEntities


def detect_language(query: str) -> Language:
    return Language.HI if DEVANAGARI.search(query) else Language.EN


def extract_category_hints(query: str) -> List[str]:
    lowered = query.lower()
    return [name for name, pattern in vocabulary.CATEGORY_HINT_PATTERNS.items() if pattern.search(lowered)]


def analyze_confidence_factors(query: str) -> ConfidenceFactors:
    lowered = query.lower()

    known_names = [b.lower() for b in vocabulary.KNOWN_BRANDS] + list(vocabulary.CURATED_BOOKS)
    has_known_name = any(name in lowered for name in known_names)
    has_product_type = re.search(r"\b(serum|cream|cleanser|moisturi[sz]er|book|novel|habits)\b", lowered)
    pattern_match = 0.9 if has_known_name else 0.7 if has_product_type else 0.5

    has_intent_words = re.search(r"\b(best|recommend|review|compare|summary|analysis)\b", lowered)
    contextual_clues = 0.8 if has_intent_words else 0.6

    if '"' in query:
        entity_recognition = 0.9
    elif re.search(r"\b[A-Z][a-z]+\b", query):
        entity_recognition = 0.7
    else:
        entity_recognition = 0.5

    return ConfidenceFactors(
        pattern_match=pattern_match,
        contextual_clues=contextual_clues,
        entity_recognition=entity_recognition
    )


def extract_comparison_terms(query: str) -> List[str]:
    terms = re.split(r"\s+(?:vs\.?|versus|compare|difference between)\s+|^(?:compare|difference between)\s+",
                     query.strip(), flags=re.IGNORECASE)
    parts = []
    for term in terms:
        parts.extend(t for t in re.split(r"\s+and\s+", term or "", flags=re.IGNORECASE))
    return [t.strip() for t in parts if t and t.strip()]


def quick_analysis(query: str) -> IntentAnalysis:
    """Pattern pass: specific product, comparison, brand range, else category."""
    lowered = query.lower().strip()
    padded = f" {lowered} "

    specific = [p for p in vocabulary.SPECIFIC_PRODUCT_PATTERNS if p.lower() in lowered]
    if specific:
        product = max(specific, key=len)
        return IntentAnalysis(
            IntentType.SPECIFIC_PRODUCT, 0.9,
            ExtractedEntities(product_name=product, brand_name=vocabulary.find_brand(query))
        )

    if any(c in padded for c in vocabulary.COMPARISON_CONNECTIVES):
        return IntentAnalysis(
            IntentType.COMPARISON, 0.85,
            ExtractedEntities(comparison_terms=extract_comparison_terms(query))
        )

    brand = vocabulary.find_brand(query)
    words = set(re.findall(r"[a-z]+", lowered))
    if brand and any(k in words for k in vocabulary.BRAND_RANGE_KEYWORDS):
        return IntentAnalysis(
            IntentType.BRAND_EXPLORATION, 0.8,
            ExtractedEntities(brand_name=brand)
        )

    return IntentAnalysis(
        IntentType.CATEGORY, 0.6,
        ExtractedEntities(category=vocabulary.find_category(query), brand_name=brand)
    )


def combine_analyses(quick: IntentAnalysis, llm: Optional[IntentAnalysis]) -> IntentAnalysis:
    if llm is None:
        return quick

    entities = quick.entities.merged_with(llm.entities)
    if llm.confidence > quick.confidence and llm.type != quick.type:
        return IntentAnalysis(llm.type, llm.confidence, entities)

    return IntentAnalysis(quick.type, max(quick.confidence, llm.confidence), entities)


def build_optimized_query(query: str, intent_type: IntentType, category_hints: List[str],
                          language: Language) -> str:
    base = query.strip()
    optimized = None

    if "beauty" in category_hints:
        optimized = {
            IntentType.SPECIFIC_PRODUCT:
                f'"{base}" review dermatologist expert opinion -"buy online" -"shop now" -"add to cart"',
            IntentType.CATEGORY:
                f'{base} dermatologist recommended expert review "best" -"buy online" -"collection"',
            IntentType.COMPARISON:
                f'{base} comparison expert review dermatologist opinion -"buy online"',
        }.get(intent_type)
    elif "books" in category_hints:
        optimized = {
            IntentType.SPECIFIC_PRODUCT:
                f'"{base}" book review summary analysis -"buy online" -"shop now" -"add to cart" -"price" -"purchase"',
            IntentType.CATEGORY:
                f'{base} book review recommendation "best books" -"buy online" -"collection" -"shop"',
            IntentType.COMPARISON:
                f'{base} book comparison review analysis -"buy online" -"price"',
        }.get(intent_type)

    if optimized is None:
        optimized = {
            IntentType.SPECIFIC_PRODUCT:
                f'"{base}" review dermatologist recommended -"buy online" -"shop now" -"add to cart" -"collection" -"range"',
            IntentType.COMPARISON:
                f'{base} comparison review "vs" difference -"buy online" -"shop now"',
            IntentType.BRAND_EXPLORATION:
                f'{base} products range collection review -"buy online" -"shop now"',
        }.get(intent_type, f'{base} dermatologist recommended review "best" -"buy online" -"shop now" -"add to cart"')

    if language == Language.HI:
        optimized = f"{optimized} {HINDI_LOCALE_HINT}"
    return optimized


def generate_fallback_queries(query: str, category_hints: List[str], optimized_query: str) -> List[str]:
    normalized = " ".join(query.split())
    fallbacks = [normalized]

    if category_hints:
        hint = category_hints[0]
        fallbacks.append(f"{normalized} {hint} recommendation")
        fallbacks.append(f"best {normalized} {hint}")

        if "books" in category_hints:
            fallbacks.extend([
                f'"{normalized}" book review',
                f"{normalized} summary analysis",
                f"{normalized} author recommendations",
                f"{normalized} book summary",
            ])

    simplified = " ".join(re.sub(r"[^\w\s]", " ", normalized).split())
    if simplified and simplified != normalized:
        fallbacks.append(simplified)

    seen = {optimized_query.lower()}
    unique = []
    for candidate in fallbacks:
        if candidate and candidate.lower() not in seen:
            seen.add(candidate.lower())
            unique.append(candidate)
    return unique


class QueryIntentClassifier:
    """Fast pattern rules, optionally refined by one LLM call."""

    def __init__(self, llm_chain: Optional[LLMProviderChain] = None):
        self.llm_chain = llm_chain

    async def classify(self, query: str) -> QueryIntent:
        logger.info(f"Analyzing query intent for: '{query}'")

        analysis = quick_analysis(query)
        if analysis.confidence < QUICK_CONFIDENCE_THRESHOLD:
            llm_analysis = await self._llm_analysis(query)
            analysis = combine_analyses(analysis, llm_analysis)
        else:
            logger.info(f"High confidence quick analysis: {analysis.type.value}")

        language = detect_language(query)
        category_hints = extract_category_hints(query)
        optimized = build_optimized_query(query, analysis.type, category_hints, language)

        intent = QueryIntent(
            type=analysis.type,
            confidence=analysis.confidence,
            original_query=query,
            optimized_query=optimized,
            fallback_queries=generate_fallback_queries(query, category_hints, optimized),
            category_hints=category_hints,
            language_detected=language,
            extracted_entities=analysis.entities,
            confidence_factors=analyze_confidence_factors(query)
        )
        logger.info(
            f"Final query analysis: {intent.type.value} (confidence: {intent.confidence:.2f}), "
            f"hints: {category_hints}, language: {language.value}"
        )
        return intent

    async def _llm_analysis(self, query: str) -> Optional[IntentAnalysis]:
        if self.llm_chain is None or self.llm_chain.is_empty:
            return None

        result = await self.llm_chain.request_json(
            INTENT_PROMPT.format(query=query), shape="object", system=INTENT_SYSTEM
        )
        if not result.ok:
            logger.info(f"LLM intent analysis unavailable: {result.reason}")
            return None

        data = result.value
        try:
            intent_type = IntentType(str(data.get("type", "")).strip())
            confidence = min(max(float(data.get("confidence", 0.0)), 0.0), 1.0)
        except (ValueError, TypeError):
            logger.warning(f"LLM intent reply has invalid type/confidence: {data}")
            return None

        raw_entities = data.get("extractedEntities") or {}
        if not isinstance(raw_entities, dict):
            raw_entities = {}
        terms = raw_entities.get("comparisonTerms")
        entities = ExtractedEntities(
            product_name=_as_text(raw_entities.get("productName")),
            brand_name=_as_text(raw_entities.get("brandName")),
            category=_as_text(raw_entities.get("category")),
            comparison_terms=[str(t) for t in terms if t] if isinstance(terms, list) and terms else None
        )
        logger.info(f"{result.provider} query analysis: {intent_type.value} ({confidence})")
        return IntentAnalysis(intent_type, confidence, entities)


def _as_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
