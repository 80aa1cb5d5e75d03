# product_discovery/api/dependencies.py
import logging
from typing import Optional

from product_discovery.core.pipeline import ProductSearchPipeline

logger = logging.getLogger(__name__)

# Global pipeline instance
_pipeline_instance: Optional[ProductSearchPipeline] = None


def get_pipeline() -> ProductSearchPipeline:
    """Get or create pipeline instance (singleton)"""
    global _pipeline_instance

    if _pipeline_instance is None:
        _pipeline_instance = ProductSearchPipeline.from_settings()
        logger.info("Pipeline instance created")

    return _pipeline_instance


# Startup/shutdown handlers
async def startup_handler():
    """Application startup handler"""
    logger.info("Starting up application...")
    pipeline = get_pipeline()
    try:
        await pipeline.initialize()
    except Exception as e:
        # Cache backend problems surface through /health and per-request cache errors
        logger.error(f"Startup error: {e}")
    logger.info("Application startup completed")


async def shutdown_handler():
    """Application shutdown handler"""
    global _pipeline_instance

    logger.info("Shutting down application...")
    if _pipeline_instance:
        await _pipeline_instance.shutdown()
        _pipeline_instance = None
    logger.info("Application shutdown completed")
