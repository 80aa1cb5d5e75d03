# product_discovery/config/settings.py
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Web search provider
    SEARCH_PROVIDER: str = "serpapi"  # serpapi | brave
    SERPAPI_API_KEY: str = ""
    BRAVE_SEARCH_API_KEY: str = ""
    MAX_SEARCH_RESULTS: int = 10
    SEARCH_TIMEOUT: int = 10

    # LLM providers, tried in order: gemini -> openai -> ollama
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OLLAMA_ENABLED: bool = False
    OLLAMA_HOST: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3:8b"
    LLM_TEMPERATURE: float = 0.1
    LLM_MAX_TOKENS: int = 1024
    LLM_TIMEOUT: float = 10.0
    LLM_MAX_RETRIES: int = 1

    # Content fetching
    CONTENT_FETCH_TIMEOUT: float = 5.0
    MAX_CONTENT_LENGTH: int = 10000
    FETCH_USER_AGENT: str = (
        "Mozilla/5.0 (compatible; ProductDiscoveryBot/2.0; "
        "+https://github.com/product-discovery)"
    )

    # Pipeline bounds
    REQUEST_DEADLINE: float = 45.0
    MAX_CONCURRENT_FETCHES: int = 6
    MAX_CONCURRENT_ANALYSES: int = 4
    MAX_RANKED_PRODUCTS: int = 5
    MAX_VALIDATION_RETRIES: int = 1

    # Cache
    PRODUCT_CACHE_BACKEND: str = "redis"  # redis | database
    REDIS_URL: str = "redis://localhost:6379"
    MEMORY_CACHE_SIZE: int = 1000
    CACHE_TTL_PRODUCT_RESULTS: int = 86400

    # Database (only used by the database cache backend)
    DATABASE_URL: str = "sqlite+aiosqlite:///./product_discovery.db"

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("DEBUG", "OLLAMA_ENABLED", mode="before")
    @classmethod
    def parse_bool(cls, v):
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes", "on")
        return v

    @field_validator("SEARCH_PROVIDER", "PRODUCT_CACHE_BACKEND", mode="before")
    @classmethod
    def normalize_choice(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore"
    }


settings = Settings()
logger.debug(
    f"Settings loaded: search_provider={settings.SEARCH_PROVIDER}, "
    f"cache_backend={settings.PRODUCT_CACHE_BACKEND}"
)
