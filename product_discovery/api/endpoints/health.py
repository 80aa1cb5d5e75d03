# product_discovery/api/endpoints/health.py
from fastapi import APIRouter, Depends
import time
import logging

from product_discovery.core.pipeline import ProductSearchPipeline
from product_discovery.models.responses import HealthResponse
from product_discovery.api.dependencies import get_pipeline

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health_check(pipeline: ProductSearchPipeline = Depends(get_pipeline)):
    """Health of the search provider, the LLM providers and the cache"""
    start_time = time.time()

    statuses = await pipeline.health_check()
    overall = statuses.pop("overall", "unknown")
    response_time = (time.time() - start_time) * 1000  # Convert to milliseconds

    if overall != "healthy":
        logger.warning(f"Health check {overall}: {statuses}")

    return HealthResponse(
        status=overall,
        services=statuses,
        response_time_ms=round(response_time, 2)
    )
