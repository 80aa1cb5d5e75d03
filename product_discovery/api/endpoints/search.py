# product_discovery/api/endpoints/search.py
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
import logging

from product_discovery.core.pipeline import ProductSearchPipeline
from product_discovery.models.requests import ProductSearchRequest
from product_discovery.models.responses import ProductSearchResponse, ErrorResponse
from product_discovery.api.dependencies import get_pipeline
from product_discovery.core.exceptions import PipelineException

router = APIRouter()
logger = logging.getLogger(__name__)


def error_response(status_code: int, error: str, source: str = "error") -> JSONResponse:
    body = ErrorResponse(error=error, source=source)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post(
    "/search-products",
    response_model=ProductSearchResponse,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse}
    },
    summary="Discover products for a free-text query",
    description="Classify the query, search the web, mine expert sources for products and rank them."
)
async def search_products(
    request: ProductSearchRequest,
    http_request: Request,
    pipeline: ProductSearchPipeline = Depends(get_pipeline)
):
    """
    - **query**: free-text product query (required)
    - **bypassCache**: run the full pipeline even when a fresh cached result exists
    """
    if request.query is None:
        return error_response(400, "Query is required", source="validation")

    try:
        return await pipeline.search(
            request.query,
            bypass_cache=request.bypass_cache,
            request_id=getattr(http_request.state, "request_id", None)
        )

    except PipelineException as e:
        logger.error(f"Pipeline error for query '{request.query}': {str(e)}")
        return error_response(500, str(e))

    except Exception as e:
        logger.error(f"Unexpected error for query '{request.query}': {str(e)}", exc_info=True)
        return error_response(500, "Internal server error")


@router.delete("/search-products/cache")
async def clear_product_cache(
    query: str = Query(..., min_length=1),
    pipeline: ProductSearchPipeline = Depends(get_pipeline)
):
    """Evict the cached results of one query"""
    try:
        removed = await pipeline.clear_cache(query)
    except PipelineException as e:
        logger.error(f"Cache clear failed for '{query}': {str(e)}")
        return error_response(500, str(e))
    return {"query": query, "removed": removed}
