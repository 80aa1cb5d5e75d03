# tests/services/test_query_classifier.py
import json

from product_discovery.models.internal import IntentType, Language
from product_discovery.services.llm_providers import LLMProviderChain, OpenAIProvider
from product_discovery.services.query_classifier import (
    HINDI_LOCALE_HINT,
    QueryIntentClassifier,
    extract_category_hints,
    extract_comparison_terms,
    generate_fallback_queries,
    quick_analysis,
)


def llm_reply(intent_type, confidence, **entities):
    return json.dumps({
        "type": intent_type,
        "confidence": confidence,
        "reasoning": "test",
        "extractedEntities": entities,
    })


class TestQuickAnalysis:
    """Test the pattern pass"""

    def test_specific_product(self):
        analysis = quick_analysis("CeraVe Hydrating Cleanser")
        assert analysis.type == IntentType.SPECIFIC_PRODUCT
        assert analysis.confidence == 0.9
        assert analysis.entities.product_name == "CeraVe Hydrating Cleanser"
        assert analysis.entities.brand_name == "CeraVe"

    def test_comparison(self):
        analysis = quick_analysis("CeraVe vs Cetaphil")
        assert analysis.type == IntentType.COMPARISON
        assert analysis.confidence == 0.85
        assert analysis.entities.comparison_terms == ["CeraVe", "Cetaphil"]

    def test_brand_exploration(self):
        analysis = quick_analysis("The Ordinary products")
        assert analysis.type == IntentType.BRAND_EXPLORATION
        assert analysis.entities.brand_name == "The Ordinary"

    def test_category_default(self):
        analysis = quick_analysis("atomic habbit")
        assert analysis.type == IntentType.CATEGORY
        assert analysis.confidence == 0.6

    def test_comparison_terms_split_on_and(self):
        assert extract_comparison_terms("compare retinol and niacinamide") == ["retinol", "niacinamide"]


class TestHintsAndQueries:
    """Test category hints, optimized and fallback queries"""

    def test_category_hints(self):
        assert extract_category_hints("best vitamin c serum") == ["beauty"]
        assert extract_category_hints("atomic habits book") == ["books"]
        assert extract_category_hints("atomic habbit") == []

    def test_fallbacks_exclude_optimized_and_duplicates(self):
        fallbacks = generate_fallback_queries("best  serum!", ["beauty"], "best serum!")
        assert "best serum!" not in fallbacks
        assert fallbacks == [
            "best serum! beauty recommendation",
            "best best serum! beauty",
            "best serum",
        ]

    def test_book_fallbacks(self):
        fallbacks = generate_fallback_queries("atomic habits", ["books"], "x")
        assert fallbacks[0] == "atomic habits"
        assert '"atomic habits" book review' in fallbacks
        assert "atomic habits book summary" in fallbacks


class TestQueryIntentClassifier:
    """Test classification with and without LLM refinement"""

    async def test_specific_product_skips_llm(self, llm_provider_factory):
        provider = llm_provider_factory("gemini", [llm_reply("category", 0.99)])
        classifier = QueryIntentClassifier(LLMProviderChain([provider], max_retries=0))

        intent = await classifier.classify("CeraVe Hydrating Cleanser")

        assert provider.prompts == []
        assert intent.type == IntentType.SPECIFIC_PRODUCT
        assert intent.category_hints == ["beauty"]
        assert intent.optimized_query.startswith('"CeraVe Hydrating Cleanser" review dermatologist')
        assert intent.language_detected == Language.EN

    async def test_no_llm_keeps_quick_result(self, empty_llm_chain):
        intent = await QueryIntentClassifier(empty_llm_chain).classify("atomic habbit")

        assert intent.type == IntentType.CATEGORY
        assert intent.confidence == 0.6
        assert intent.category_hints == []
        assert intent.fallback_queries == ["atomic habbit"]
        assert intent.original_query == "atomic habbit"

    async def test_confident_llm_overrides_type(self, llm_provider_factory):
        provider = llm_provider_factory(
            "gemini", [llm_reply("specific_product", 0.95, productName="Vanicream Gentle Cleanser")]
        )
        classifier = QueryIntentClassifier(LLMProviderChain([provider], max_retries=0))

        intent = await classifier.classify("gentle cleanser for eczema")

        assert len(provider.prompts) == 1
        assert intent.type == IntentType.SPECIFIC_PRODUCT
        assert intent.confidence == 0.95
        assert intent.extracted_entities.product_name == "Vanicream Gentle Cleanser"
        assert intent.extracted_entities.category == "cleanser"

    async def test_weak_llm_does_not_override(self, llm_provider_factory):
        provider = llm_provider_factory("gemini", [llm_reply("specific_product", 0.4)])
        classifier = QueryIntentClassifier(LLMProviderChain([provider], max_retries=0))

        intent = await classifier.classify("gentle cleanser for eczema")

        assert intent.type == IntentType.CATEGORY
        assert intent.confidence == 0.6

    async def test_invalid_llm_reply_ignored(self, llm_provider_factory):
        provider = llm_provider_factory("gemini", [llm_reply("something_else", 0.99)])
        classifier = QueryIntentClassifier(LLMProviderChain([provider], max_retries=0))

        intent = await classifier.classify("gentle cleanser for eczema")

        assert intent.type == IntentType.CATEGORY

    async def test_html_reply_from_provider_ignored(self, html_server):
        provider = OpenAIProvider("key")
        provider.url = str(html_server.make_url("/v1/chat/completions"))
        classifier = QueryIntentClassifier(LLMProviderChain([provider], max_retries=0))
        try:
            intent = await classifier.classify("moisturizer for dry skin")
        finally:
            await provider.close()

        assert intent.type == IntentType.CATEGORY
        assert intent.confidence == 0.6

    async def test_hindi_query(self, empty_llm_chain):
        intent = await QueryIntentClassifier(empty_llm_chain).classify("सबसे अच्छा sunscreen")

        assert intent.language_detected == Language.HI
        assert intent.optimized_query.endswith(HINDI_LOCALE_HINT)
