# product_discovery/services/product_cache.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from product_discovery.config.settings import Settings, settings as default_settings
from product_discovery.core.exceptions import CacheException, CacheWriteError
from product_discovery.database import DatabaseManager, ProductSearchCacheRepository, ProductSearchCacheRow
from product_discovery.models.internal import CacheEntry, ProductResult, ValidationResult
from product_discovery.services.cache_service import CacheService

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "product_search"


def normalize_cache_key(query: str) -> str:
    return " ".join(query.split()).lower()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class ProductCacheStore:
    """Cache of full pipeline results, keyed by normalized query text."""

    def __init__(self, ttl_seconds: int = 86400):
        self.ttl_seconds = ttl_seconds

    def _within_ttl(self, created_at: datetime) -> bool:
        age = datetime.now(timezone.utc) - _as_utc(created_at)
        return age < timedelta(seconds=self.ttl_seconds)

    async def initialize(self):
        pass

    async def is_fresh(self, query: str) -> bool:
        return await self.read(query) is not None

    async def read(self, query: str) -> Optional[CacheEntry]:
        raise NotImplementedError

    async def replace(self, query: str, entry: CacheEntry) -> None:
        raise NotImplementedError

    async def delete(self, query: str) -> bool:
        raise NotImplementedError

    async def health_check(self) -> str:
        return "healthy"

    async def close(self):
        pass


class KeyValueProductCache(ProductCacheStore):
    """Whole CacheEntry as one JSON value in CacheService."""

    def __init__(self, cache: CacheService, ttl_seconds: int = 86400):
        super().__init__(ttl_seconds)
        self.cache = cache

    async def read(self, query: str) -> Optional[CacheEntry]:
        key = normalize_cache_key(query)
        payload = await self.cache.get(key, CACHE_NAMESPACE)
        if payload is None:
            return None
        try:
            entry = CacheEntry.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry for '{key}': {e}")
            await self.cache.delete(key, CACHE_NAMESPACE)
            return None

        if not self._within_ttl(entry.created_at):
            return None
        return entry

    async def replace(self, query: str, entry: CacheEntry) -> None:
        key = normalize_cache_key(query)
        await self.cache.delete(key, CACHE_NAMESPACE)
        stored = await self.cache.set(key, entry.model_dump(mode="json"), ttl=self.ttl_seconds,
                                      namespace=CACHE_NAMESPACE)
        if not stored:
            raise CacheWriteError(f"Could not store cache entry for '{key}'")

    async def delete(self, query: str) -> bool:
        return await self.cache.delete(normalize_cache_key(query), CACHE_NAMESPACE)

    async def health_check(self) -> str:
        return await self.cache.health_check()

    async def close(self):
        await self.cache.close()


class DatabaseProductCache(ProductCacheStore):
    """One row per ProductResult in `product_search_cache`, replaced in a single transaction."""

    def __init__(self, db: DatabaseManager, ttl_seconds: int = 86400):
        super().__init__(ttl_seconds)
        self.db = db

    async def initialize(self):
        await self.db.create_tables()

    async def is_fresh(self, query: str) -> bool:
        key = normalize_cache_key(query)
        try:
            async with self.db.get_session_context() as session:
                latest = await ProductSearchCacheRepository(session).latest_created_at(key)
        except SQLAlchemyError as e:
            raise CacheException(f"Cache freshness check failed: {e}") from e
        return latest is not None and self._within_ttl(latest)

    async def read(self, query: str) -> Optional[CacheEntry]:
        key = normalize_cache_key(query)
        try:
            async with self.db.get_session_context() as session:
                rows = await ProductSearchCacheRepository(session).get_rows(key)
        except SQLAlchemyError as e:
            raise CacheException(f"Cache read failed: {e}") from e

        if not rows or not self._within_ttl(max(r.created_at for r in rows)):
            return None

        first = rows[0]
        try:
            return CacheEntry(
                query=first.query_text,
                results=[ProductResult.model_validate(r.result) for r in rows],
                validation=ValidationResult.model_validate(first.validation) if first.validation else None,
                query_intent=first.query_intent or "category",
                total_sources_analyzed=first.total_sources_analyzed or 0,
                processing_method=first.processing_method or "",
                created_at=_as_utc(first.created_at)
            )
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache rows for '{key}': {e}")
            return None

    async def replace(self, query: str, entry: CacheEntry) -> None:
        key = normalize_cache_key(query)
        validation = entry.validation.model_dump(mode="json") if entry.validation else None
        created_at = _as_utc(entry.created_at)
        rows = [
            ProductSearchCacheRow(
                query_key=key,
                query_text=entry.query,
                position=position,
                product_name=result.product_name[:255],
                brand=result.brand[:255] if result.brand else None,
                result=result.model_dump(mode="json"),
                validation=validation,
                query_intent=entry.query_intent,
                total_sources_analyzed=entry.total_sources_analyzed,
                processing_method=entry.processing_method,
                created_at=created_at
            )
            for position, result in enumerate(entry.results)
        ]
        try:
            async with self.db.get_session_context() as session:
                await ProductSearchCacheRepository(session).replace_rows(key, rows)
        except SQLAlchemyError as e:
            raise CacheWriteError(f"Could not replace cache rows for '{key}': {e}") from e

    async def delete(self, query: str) -> bool:
        key = normalize_cache_key(query)
        try:
            async with self.db.get_session_context() as session:
                removed = await ProductSearchCacheRepository(session).delete_rows(key)
        except SQLAlchemyError as e:
            raise CacheException(f"Cache delete failed: {e}") from e
        return removed > 0

    async def health_check(self) -> str:
        return await self.db.health_check()

    async def close(self):
        await self.db.close()


def build_product_cache(config: Settings = None) -> ProductCacheStore:
    config = config or default_settings
    if config.PRODUCT_CACHE_BACKEND == "database":
        logger.info("Using database product cache")
        return DatabaseProductCache(
            DatabaseManager(config.DATABASE_URL, echo=config.DEBUG),
            ttl_seconds=config.CACHE_TTL_PRODUCT_RESULTS
        )

    if config.PRODUCT_CACHE_BACKEND != "redis":
        logger.warning(f"Unknown PRODUCT_CACHE_BACKEND {config.PRODUCT_CACHE_BACKEND!r}, using redis")
    return KeyValueProductCache(
        CacheService(config.REDIS_URL, config.MEMORY_CACHE_SIZE),
        ttl_seconds=config.CACHE_TTL_PRODUCT_RESULTS
    )
