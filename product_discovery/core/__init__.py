# product_discovery/core/__init__.py

# Only exceptions are exported here; import the pipeline directly
# from product_discovery.core.pipeline to avoid circular imports.
from .exceptions import (
    PipelineException,
    ConfigurationError,
    SearchProviderError,
    LLMProviderError,
    CacheException,
    CacheWriteError,
)

__all__ = [
    "PipelineException",
    "ConfigurationError",
    "SearchProviderError",
    "LLMProviderError",
    "CacheException",
    "CacheWriteError",
]
