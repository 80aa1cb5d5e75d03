# product_discovery/models/responses.py
from pydantic import BaseModel, Field
from typing import List, Optional, Dict
from datetime import datetime, timezone

from .internal import ProductResult


class ProductSearchResponse(BaseModel):
    results: List[ProductResult] = Field(default_factory=list)
    query: str = Field(..., description="Query as received")
    total_sources_analyzed: int = Field(default=0, description="Sources fetched and mined for mentions")
    processing_method: str = Field(default="", description="e.g. enhanced_gemini_v2 or cached")
    source: str = Field(..., description="cache | api | error | validation")
    count: int = Field(default=0)
    query_intent: str = Field(default="")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Overall system status")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    services: Dict[str, str] = Field(..., description="Individual service statuses")
    response_time_ms: Optional[float] = Field(None, description="Health check response time")


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Error message")
    results: List[ProductResult] = Field(default_factory=list)
    source: str = "error"
    count: int = 0
