# product_discovery/models/internal.py
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional, Any
from datetime import datetime, timezone
from enum import Enum

MAX_CONTEXT_CHARS = 1000


class IntentType(str, Enum):
    SPECIFIC_PRODUCT = "specific_product"
    CATEGORY = "category"
    COMPARISON = "comparison"
    BRAND_EXPLORATION = "brand_exploration"


class Language(str, Enum):
    EN = "en"
    HI = "hi"


class SourceType(str, Enum):
    REVIEW = "review"
    OFFICIAL = "official"
    FORUM = "forum"
    BLOG = "blog"
    ECOMMERCE = "ecommerce"


class ExtractedEntities(BaseModel):
    model_config = {"frozen": True}

    product_name: Optional[str] = None
    brand_name: Optional[str] = None
    category: Optional[str] = None
    comparison_terms: Optional[List[str]] = None

    def merged_with(self, other: "ExtractedEntities") -> "ExtractedEntities":
        """Return a copy where non-empty fields of `other` win."""
        updates = {k: v for k, v in other.model_dump().items() if v}
        return self.model_copy(update=updates)


class ConfidenceFactors(BaseModel):
    model_config = {"frozen": True}

    pattern_match: float = Field(default=0.5, ge=0.0, le=1.0)
    contextual_clues: float = Field(default=0.6, ge=0.0, le=1.0)
    entity_recognition: float = Field(default=0.5, ge=0.0, le=1.0)


class QueryIntent(BaseModel):
    """Classification of a single query attempt. Re-derived, never mutated."""
    model_config = {"frozen": True}

    type: IntentType
    confidence: float = Field(ge=0.0, le=1.0)
    original_query: str
    optimized_query: str
    fallback_queries: List[str] = Field(default_factory=list)
    category_hints: List[str] = Field(default_factory=list)
    language_detected: Language = Language.EN
    extracted_entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    confidence_factors: ConfidenceFactors = Field(default_factory=ConfidenceFactors)


class RawSearchHit(BaseModel):
    title: str = ""
    url: str = ""
    snippet: str = ""
    position: Optional[int] = None


class SearchOutcome(BaseModel):
    hits: List[RawSearchHit] = Field(default_factory=list)
    query_used: str
    attempts: int = 0


class ScoredSource(BaseModel):
    title: str
    url: str
    snippet: str = ""
    source_type: SourceType = SourceType.BLOG
    domain: str = ""
    quality_score: float = Field(ge=0.0, le=1.0)


class ProductMentionContext(BaseModel):
    text: str
    source_title: str
    source_url: str

    @field_validator("text")
    @classmethod
    def truncate_text(cls, v: str) -> str:
        return v[:MAX_CONTEXT_CHARS]


class RankedProduct(BaseModel):
    product_name: str
    brand: str = ""
    mention_count: int = Field(ge=1)
    quality_score: float = Field(ge=0.0)
    contexts: List[ProductMentionContext]

    @model_validator(mode="after")
    def check_mention_count(self):
        if self.mention_count != len(self.contexts):
            raise ValueError("mention_count must equal the number of contexts")
        return self

    @property
    def rank_score(self) -> float:
        return self.mention_count * self.quality_score


class ProductInsights(BaseModel):
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)
    price_range: str = "Price varies"
    overall_rating: str = "Expert mentioned"
    key_features: List[str] = Field(default_factory=list)
    recommended_by: List[str] = Field(default_factory=list)


class ProductAnalysis(BaseModel):
    summary: str
    insights: ProductInsights = Field(default_factory=ProductInsights)
    llm_used: str = "fallback"


class ResultSource(BaseModel):
    title: str
    url: str
    snippet: str = ""
    type: SourceType = SourceType.BLOG


class ProductResult(BaseModel):
    """Final unit returned to the caller and cached. Never mutated."""
    model_config = {"frozen": True}

    product_name: str
    brand: str
    summary: str
    image_url: Optional[str] = None
    sources: List[ResultSource] = Field(default_factory=list)
    insights: ProductInsights = Field(default_factory=ProductInsights)
    mention_frequency: int = Field(ge=0)
    quality_score: float = Field(ge=0.0)
    api_source: str = "product_discovery"
    api_ref: str = ""


class ValidationResult(BaseModel):
    relevance_score: float = Field(ge=0.0, le=1.0)
    diversity_score: float = Field(ge=0.0, le=1.0)
    freshness_score: float = Field(ge=0.0, le=1.0)
    credibility_score: float = Field(ge=0.0, le=1.0)
    overall_quality: float = Field(ge=0.0, le=1.0)
    suggestions: List[str] = Field(default_factory=list)
    explanation: str = ""


class CacheEntry(BaseModel):
    query: str
    results: List[ProductResult] = Field(default_factory=list)
    validation: Optional[ValidationResult] = None
    query_intent: str = IntentType.CATEGORY.value
    total_sources_analyzed: int = 0
    processing_method: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class LLMResult(BaseModel):
    """Tagged result of one prompt: ok with parsed JSON, or a failure reason."""
    ok: bool
    value: Any = None
    reason: Optional[str] = None
    provider: Optional[str] = None

    @classmethod
    def success(cls, value: Any, provider: str = None) -> "LLMResult":
        return cls(ok=True, value=value, provider=provider)

    @classmethod
    def failure(cls, reason: str, provider: str = None) -> "LLMResult":
        return cls(ok=False, reason=reason, provider=provider)
