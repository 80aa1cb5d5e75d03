# product_discovery/services/product_analyzer.py
import logging
import re
from typing import Any, Dict, List, Optional

from product_discovery.models.internal import (
    ProductAnalysis,
    ProductInsights,
    ProductResult,
    RankedProduct,
    RawSearchHit,
    ResultSource,
)
from product_discovery.services.llm_providers import LLMProviderChain
from product_discovery.services import source_scorer

logger = logging.getLogger(__name__)

PROMPT_CONTEXT_CHARS = 3000
SOURCE_SNIPPET_CHARS = 200
FALLBACK_PROVIDER = "fallback"

ANALYSIS_SYSTEM = "You are a product analyst summarizing expert reviews. Always respond with valid JSON."

ANALYSIS_PROMPT = """
Analyze this product based on expert reviews and recommendations:

Product: "{name}"
Mentions: {mentions}
Sources: {sources}

Content:
{content}

Provide analysis in this JSON format:
{{
  "summary": "Brief 2-3 sentence summary of the product and its reception",
  "insights": {{
    "pros": ["advantage 1", "advantage 2"],
    "cons": ["limitation 1", "limitation 2"],
    "price_range": "price information or 'Price varies'",
    "overall_rating": "expert opinion summary",
    "key_features": ["feature 1", "feature 2"],
    "recommended_by": ["dermatologists", "beauty experts"]
  }}
}}
"""


def fallback_analysis(product: RankedProduct) -> ProductAnalysis:
    return ProductAnalysis(
        summary=f"{product.product_name} mentioned {product.mention_count} times across expert sources.",
        insights=ProductInsights(),
        llm_used=FALLBACK_PROVIDER
    )


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _string(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def parse_analysis(data: Dict[str, Any], provider: str) -> Optional[ProductAnalysis]:
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        return None

    raw = data.get("insights") if isinstance(data.get("insights"), dict) else {}
    defaults = ProductInsights()
    insights = ProductInsights(
        pros=_string_list(raw.get("pros")),
        cons=_string_list(raw.get("cons")),
        price_range=_string(raw.get("price_range"), defaults.price_range),
        overall_rating=_string(raw.get("overall_rating"), defaults.overall_rating),
        key_features=_string_list(raw.get("key_features")),
        recommended_by=_string_list(raw.get("recommended_by"))
    )
    return ProductAnalysis(summary=summary.strip(), insights=insights, llm_used=provider)


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def build_result(product: RankedProduct, analysis: ProductAnalysis) -> ProductResult:
    """Assemble the immutable result for one ranked candidate."""
    sources = []
    seen_urls = set()
    for context in product.contexts:
        if context.source_url in seen_urls:
            continue
        seen_urls.add(context.source_url)
        hit = RawSearchHit(title=context.source_title, url=context.source_url)
        sources.append(ResultSource(
            title=context.source_title,
            url=context.source_url,
            snippet=context.text[:SOURCE_SNIPPET_CHARS],
            type=source_scorer.classify(hit)
        ))

    return ProductResult(
        product_name=product.product_name,
        brand=product.brand,
        summary=analysis.summary,
        image_url=None,
        sources=sources,
        insights=analysis.insights,
        mention_frequency=product.mention_count,
        quality_score=round(product.quality_score, 4),
        api_ref=slugify(product.product_name)
    )


class ProductAnalyzer:
    """Structured summary per ranked candidate. Never raises, degrades to a template."""

    def __init__(self, llm_chain: Optional[LLMProviderChain] = None):
        self.llm_chain = llm_chain

    async def analyze(self, product: RankedProduct) -> ProductAnalysis:
        if self.llm_chain is None or self.llm_chain.is_empty:
            return fallback_analysis(product)

        content = "\n\n".join(c.text for c in product.contexts)[:PROMPT_CONTEXT_CHARS]
        prompt = ANALYSIS_PROMPT.format(
            name=product.product_name,
            mentions=product.mention_count,
            sources=", ".join(dict.fromkeys(c.source_title for c in product.contexts)),
            content=content
        )
        result = await self.llm_chain.request_json(prompt, shape="object", system=ANALYSIS_SYSTEM)
        if result.ok:
            analysis = parse_analysis(result.value, result.provider)
            if analysis is not None:
                logger.info(f"{result.provider} analysis completed for {product.product_name}")
                return analysis
            logger.warning(f"{result.provider} analysis for {product.product_name} had no summary")
        else:
            logger.info(f"LLM analysis failed for {product.product_name}: {result.reason}")

        return fallback_analysis(product)
