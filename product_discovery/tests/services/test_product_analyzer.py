# tests/services/test_product_analyzer.py
import json

from product_discovery.models.internal import ProductMentionContext, RankedProduct, SourceType
from product_discovery.services.llm_providers import LLMProviderChain
from product_discovery.services.product_analyzer import (
    ProductAnalyzer,
    build_result,
    fallback_analysis,
    parse_analysis,
    slugify,
)


def cerave_product():
    byrdie = "https://www.byrdie.com/review/cerave-hydrating-cleanser"
    allure = "https://www.allure.com/gallery/best-gentle-cleansers"
    return RankedProduct(
        product_name="CeraVe Hydrating Cleanser",
        brand="CeraVe",
        mention_count=3,
        quality_score=0.654321,
        contexts=[
            ProductMentionContext(text="a" * 500, source_title="CeraVe review", source_url=byrdie),
            ProductMentionContext(text="second mention", source_title="CeraVe review", source_url=byrdie),
            ProductMentionContext(text="our favourite", source_title="Best gentle cleansers", source_url=allure),
        ]
    )


class TestParsing:
    def test_fallback_template(self):
        analysis = fallback_analysis(cerave_product())

        assert analysis.summary == "CeraVe Hydrating Cleanser mentioned 3 times across expert sources."
        assert analysis.llm_used == "fallback"
        assert analysis.insights.price_range == "Price varies"

    def test_parse_coerces_fields(self):
        analysis = parse_analysis({
            "summary": " Gentle and effective. ",
            "insights": {"pros": "Non-stripping", "cons": None, "price_range": "", "key_features": ["ceramides", ""]}
        }, "openai")

        assert analysis.summary == "Gentle and effective."
        assert analysis.insights.pros == ["Non-stripping"]
        assert analysis.insights.cons == []
        assert analysis.insights.price_range == "Price varies"
        assert analysis.insights.key_features == ["ceramides"]
        assert analysis.llm_used == "openai"

    def test_parse_requires_summary(self):
        assert parse_analysis({"insights": {}}, "gemini") is None
        assert parse_analysis({"summary": "   "}, "gemini") is None

    def test_slugify(self):
        assert slugify("La Roche-Posay Toleriane (200ml)") == "la-roche-posay-toleriane-200ml"


class TestBuildResult:
    def test_sources_deduplicated_by_url(self):
        result = build_result(cerave_product(), fallback_analysis(cerave_product()))

        assert [s.url for s in result.sources] == [
            "https://www.byrdie.com/review/cerave-hydrating-cleanser",
            "https://www.allure.com/gallery/best-gentle-cleansers",
        ]
        assert result.sources[0].snippet == "a" * 200
        assert result.sources[0].type == SourceType.REVIEW
        assert result.mention_frequency == 3
        assert result.quality_score == 0.6543
        assert result.api_ref == "cerave-hydrating-cleanser"
        assert result.api_source == "product_discovery"
        assert result.image_url is None


class TestProductAnalyzer:
    """Test LLM analysis with template fallback"""

    async def test_without_llm_uses_template(self, empty_llm_chain):
        analysis = await ProductAnalyzer(empty_llm_chain).analyze(cerave_product())
        assert analysis.llm_used == "fallback"

    async def test_llm_analysis(self, llm_provider_factory):
        reply = json.dumps({
            "summary": "A gentle, non-foaming cleanser loved by dermatologists.",
            "insights": {
                "pros": ["Gentle", "Hydrating"],
                "cons": ["Does not remove heavy makeup"],
                "price_range": "$15-20",
                "overall_rating": "Highly recommended",
                "key_features": ["Ceramides", "Hyaluronic acid"],
                "recommended_by": ["dermatologists"],
            }
        })
        provider = llm_provider_factory("gemini", [reply])
        analyzer = ProductAnalyzer(LLMProviderChain([provider], max_retries=0))

        product = cerave_product()
        result = build_result(product, await analyzer.analyze(product))

        assert result.summary.startswith("A gentle")
        assert result.insights.pros == ["Gentle", "Hydrating"]
        assert result.insights.price_range == "$15-20"
        assert "CeraVe Hydrating Cleanser" in provider.prompts[0]

    async def test_reply_without_summary_uses_template(self, llm_provider_factory):
        provider = llm_provider_factory("gemini", ['{"insights": {"pros": ["x"]}}'])
        analyzer = ProductAnalyzer(LLMProviderChain([provider], max_retries=0))

        analysis = await analyzer.analyze(cerave_product())

        assert analysis.llm_used == "fallback"
        assert analysis.summary.endswith("across expert sources.")
