# product_discovery/models/__init__.py
"""Data models"""

from .requests import ProductSearchRequest
from .responses import ProductSearchResponse, HealthResponse, ErrorResponse
from .internal import (
    IntentType,
    Language,
    SourceType,
    ExtractedEntities,
    ConfidenceFactors,
    QueryIntent,
    RawSearchHit,
    SearchOutcome,
    ScoredSource,
    ProductMentionContext,
    RankedProduct,
    ProductInsights,
    ProductAnalysis,
    ResultSource,
    ProductResult,
    ValidationResult,
    CacheEntry,
    LLMResult,
)

__all__ = [
    "ProductSearchRequest",
    "ProductSearchResponse",
    "HealthResponse",
    "ErrorResponse",
    "IntentType",
    "Language",
    "SourceType",
    "ExtractedEntities",
    "ConfidenceFactors",
    "QueryIntent",
    "RawSearchHit",
    "SearchOutcome",
    "ScoredSource",
    "ProductMentionContext",
    "RankedProduct",
    "ProductInsights",
    "ProductAnalysis",
    "ResultSource",
    "ProductResult",
    "ValidationResult",
    "CacheEntry",
    "LLMResult",
]
