# product_discovery/core/exceptions.py


class PipelineException(Exception):
    """Exception raised when the search pipeline cannot produce a response"""
    pass


class ConfigurationError(PipelineException):
    """Required configuration (the search provider key) is missing"""
    pass


class SearchProviderError(Exception):
    """Exception raised by a web search provider call"""
    pass


class LLMProviderError(Exception):
    """Exception raised by a text-completion provider call"""

    def __init__(self, message: str, provider: str = None, retryable: bool = False):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable


class CacheException(Exception):
    """Exception raised during cache operations"""
    pass


class CacheWriteError(CacheException):
    """Exception raised when a cache entry cannot be replaced"""
    pass
