# tests/services/test_result_validator.py
import pytest
from datetime import datetime

from product_discovery.models.internal import (
    IntentType,
    ProductResult,
    QueryIntent,
    ResultSource,
    SourceType,
    ValidationResult,
)
from product_discovery.services.result_validator import (
    ResultValidator,
    credibility_score,
    diversity_score,
    freshness_score,
    quality_band,
    relevance_score,
    should_trigger_fallback,
)

NOW = datetime(2026, 6, 1)


def make_result(name="CeraVe Hydrating Cleanser", brand="CeraVe", summary="A gentle cleanser.",
                urls=("https://www.byrdie.com/review",), titles=None, mentions=1, quality=0.2):
    titles = titles or ["Review"] * len(urls)
    return ProductResult(
        product_name=name,
        brand=brand,
        summary=summary,
        sources=[ResultSource(title=t, url=u, type=SourceType.REVIEW) for t, u in zip(titles, urls)],
        mention_frequency=mentions,
        quality_score=quality
    )


def validation(overall, relevance):
    return ValidationResult(
        relevance_score=relevance,
        diversity_score=0.5,
        freshness_score=0.5,
        credibility_score=0.5,
        overall_quality=overall
    )


class TestScores:
    """Test the four quality dimensions"""

    def test_relevance(self):
        result = make_result(summary="CeraVe makes a gentle cleanser")
        assert relevance_score("cerave", [result]) == pytest.approx(1.0)
        assert relevance_score("cleanser", [result]) == pytest.approx(0.7)
        assert relevance_score("anything", []) == 0.0

    def test_diversity_single_result(self):
        assert diversity_score([make_result()]) == 1.0

    def test_diversity_same_brand_and_type(self):
        results = [
            make_result(name="CeraVe Hydrating Cleanser"),
            make_result(name="CeraVe Foaming Cleanser"),
        ]
        # brand 0.5 * 0.4 + sources 1/4 * 0.4 + no type variety
        assert diversity_score(results) == pytest.approx(0.3)

    def test_diversity_varied(self):
        results = [
            make_result(name="CeraVe Hydrating Cleanser", urls=("https://a.com/1", "https://b.com/2")),
            make_result(name="The Ordinary Niacinamide Serum", brand="The Ordinary",
                        urls=("https://c.com/1", "https://d.com/2")),
        ]
        assert diversity_score(results) == pytest.approx(1.0)

    def test_freshness(self):
        fresh = make_result(summary="Still the best pick in 2026.", titles=["Latest cleanser picks"])
        stale = make_result(summary="Old favourite.", titles=["Review"])

        assert freshness_score([fresh], NOW.year) == pytest.approx(1.0)
        assert freshness_score([stale], NOW.year) == pytest.approx(0.5)

    def test_freshness_needs_whole_words(self):
        renewed = make_result(summary="Old favourite.", titles=["Renewed formula"])
        assert freshness_score([renewed], NOW.year) == pytest.approx(0.5)

    def test_credibility(self):
        expert = make_result(mentions=3, quality=1.0)
        plain = make_result(urls=("https://example.com/post",), mentions=1, quality=0.0)

        assert credibility_score([expert]) == pytest.approx(1.0)
        assert credibility_score([plain]) == pytest.approx(0.5)


class TestResultValidator:
    """Test combined validation and the fallback trigger"""

    def test_empty_results(self):
        validation = ResultValidator().validate("atomic habbit", [], now=NOW)

        assert validation.overall_quality == 0.0
        assert validation.explanation.startswith('No products found for "atomic habbit"')
        assert "No results found - try alternative spellings or related terms" in validation.suggestions
        assert should_trigger_fallback(validation)

    def test_weighted_overall(self):
        results = [make_result(summary="CeraVe makes a gentle cleanser", mentions=3, quality=1.0)]
        intent = QueryIntent(type=IntentType.SPECIFIC_PRODUCT, confidence=0.9,
                             original_query="cerave", optimized_query="cerave")

        validation = ResultValidator().validate("cerave", results, intent, now=NOW)

        # relevance 1.0, diversity 1.0, freshness 0.5, credibility 1.0
        assert validation.overall_quality == pytest.approx(0.9)
        assert "excellent quality" in validation.explanation
        assert '"CeraVe Hydrating Cleanser" yielded 3 mentions' in validation.explanation
        assert not ResultValidator().should_trigger_fallback(validation)

    @pytest.mark.parametrize("overall,relevance,expected", [
        (0.39, 0.9, True),
        (0.5, 0.29, True),
        (0.5, 0.5, False),
    ])
    def test_trigger(self, overall, relevance, expected):
        assert should_trigger_fallback(validation(overall, relevance)) is expected

    @pytest.mark.parametrize("overall,band", [
        (0.9, "excellent"), (0.7, "good"), (0.5, "moderate"), (0.2, "limited"),
    ])
    def test_quality_band(self, overall, band):
        assert quality_band(overall) == band
