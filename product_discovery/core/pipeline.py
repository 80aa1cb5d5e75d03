# product_discovery/core/pipeline.py
import asyncio
import time
import logging
import weakref
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from product_discovery.config.settings import Settings, settings as default_settings
from product_discovery.core.exceptions import (
    CacheException,
    CacheWriteError,
    ConfigurationError,
    PipelineException,
)
from product_discovery.models.internal import (
    CacheEntry,
    ProductAnalysis,
    ProductResult,
    QueryIntent,
    RankedProduct,
)
from product_discovery.models.responses import ProductSearchResponse
from product_discovery.services.content_fetcher import ContentFetcher
from product_discovery.services.llm_providers import LLMProviderChain
from product_discovery.services.product_analyzer import (
    FALLBACK_PROVIDER,
    ProductAnalyzer,
    build_result,
    fallback_analysis,
)
from product_discovery.services.product_cache import ProductCacheStore, build_product_cache, normalize_cache_key
from product_discovery.services.product_extractor import ProductMentionExtractor, SourceExtraction, group_mentions
from product_discovery.services.product_ranker import ProductRanker
from product_discovery.services.query_classifier import QueryIntentClassifier
from product_discovery.services.result_validator import ResultValidator, should_trigger_fallback
from product_discovery.services.search_executor import SearchExecutor
from product_discovery.services.search_provider import WebSearchProvider, build_search_provider
from product_discovery.services.source_scorer import filter_sources
from product_discovery.services.spell_corrector import SpellCorrector

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


class ProductSearchPipeline:
    """
    classify -> search with fallbacks -> filter sources -> fetch + extract
    -> rank -> analyze -> validate -> cache.

    Fetch/extract and analysis run concurrently with bounded worker counts
    and share one per-request deadline. Work still running at the deadline
    is cancelled and the pipeline continues with what already finished.
    """

    def __init__(self, search_provider: Optional[WebSearchProvider], llm_chain: LLMProviderChain,
                 cache: ProductCacheStore, content_fetcher: Optional[ContentFetcher] = None,
                 config: Settings = None):
        self.config = config or default_settings
        self.search_provider = search_provider
        self.llm_chain = llm_chain
        self.cache = cache
        self.content_fetcher = content_fetcher or ContentFetcher.from_settings(self.config)

        self.spell_corrector = SpellCorrector()
        self.classifier = QueryIntentClassifier(llm_chain)
        self.search_executor = (
            SearchExecutor(search_provider, self.spell_corrector, max_results=self.config.MAX_SEARCH_RESULTS)
            if search_provider else None
        )
        self.extractor = ProductMentionExtractor(llm_chain)
        self.ranker = ProductRanker(top_n=self.config.MAX_RANKED_PRODUCTS)
        self.analyzer = ProductAnalyzer(llm_chain)
        self.validator = ResultValidator()

        # At most one pipeline run per normalized query key in this process
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @classmethod
    def from_settings(cls, config: Settings = None) -> "ProductSearchPipeline":
        config = config or default_settings
        try:
            search_provider = build_search_provider(config)
        except ConfigurationError as e:
            # Startup continues so /health can report it; every search request fails with this error
            logger.error(f"❌ Search provider unavailable: {e}")
            search_provider = None

        return cls(
            search_provider=search_provider,
            llm_chain=LLMProviderChain.from_settings(config),
            cache=build_product_cache(config),
            content_fetcher=ContentFetcher.from_settings(config),
            config=config
        )

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def search(self, query: Optional[str], bypass_cache: bool = False,
                     request_id: Optional[str] = None) -> ProductSearchResponse:
        request_id = request_id or str(uuid4())
        start_time = time.time()
        stripped = (query or "").strip()

        if len(stripped) < MIN_QUERY_LENGTH:
            logger.info(f"Rejecting short query {query!r}", extra={"request_id": request_id})
            return ProductSearchResponse(
                results=[],
                query=query or "",
                processing_method="validation",
                source="validation",
                count=0
            )

        if self.search_executor is None:
            raise ConfigurationError(
                f"Search provider '{self.config.SEARCH_PROVIDER}' is not configured: missing API key"
            )

        logger.info(f"Starting pipeline for query: {stripped[:50]}...", extra={"request_id": request_id})

        key = normalize_cache_key(stripped)
        lock = self._lock_for(key)
        async with lock:
            if not bypass_cache:
                cached = await self._read_cache(stripped, request_id)
                if cached is not None:
                    logger.info(f"Cache hit for query", extra={"request_id": request_id})
                    return ProductSearchResponse(
                        results=cached.results,
                        query=query,
                        total_sources_analyzed=cached.total_sources_analyzed,
                        processing_method="cached",
                        source="cache",
                        count=len(cached.results),
                        query_intent=cached.query_intent
                    )

            try:
                entry = await self._run(stripped, request_id)
            except PipelineException:
                raise
            except Exception as e:
                logger.error(f"Pipeline error: {str(e)}", extra={"request_id": request_id}, exc_info=True)
                raise PipelineException(f"Pipeline processing failed: {str(e)}") from e

            if entry.results:
                await self._write_cache(stripped, entry, request_id)

        logger.info(
            f"Pipeline completed in {time.time() - start_time:.2f}s with {len(entry.results)} results",
            extra={"request_id": request_id}
        )
        return ProductSearchResponse(
            results=entry.results,
            query=query,
            total_sources_analyzed=entry.total_sources_analyzed,
            processing_method=entry.processing_method,
            source="api",
            count=len(entry.results),
            query_intent=entry.query_intent
        )

    async def _run(self, query: str, request_id: str) -> CacheEntry:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.REQUEST_DEADLINE

        intent = await self.classifier.classify(query)
        results, sources_analyzed, analyses = await self._attempt(intent, deadline, request_id)
        validation = self.validator.validate(query, results, intent)

        tried = {query.lower()}
        retries = 0
        while (should_trigger_fallback(validation) and not results
               and retries < self.config.MAX_VALIDATION_RETRIES):
            corrected = next(
                (c for c in self.spell_corrector.corrections_for(query) if c.lower() not in tried), None
            )
            if corrected is None:
                logger.info("Validation suggests fallback, but no unused spell correction is left",
                            extra={"request_id": request_id})
                break

            retries += 1
            tried.add(corrected.lower())
            logger.info(f"Validation fallback {retries}: retrying with '{corrected}'",
                        extra={"request_id": request_id})
            intent = await self.classifier.classify(corrected)
            results, retry_sources, analyses = await self._attempt(intent, deadline, request_id)
            sources_analyzed += retry_sources
            validation = self.validator.validate(corrected, results, intent)

        return CacheEntry(
            query=query,
            results=results,
            validation=validation,
            query_intent=intent.type.value,
            total_sources_analyzed=sources_analyzed,
            processing_method=self._processing_method(analyses)
        )

    async def _attempt(self, intent: QueryIntent, deadline: float,
                       request_id: str) -> Tuple[List[ProductResult], int, List[ProductAnalysis]]:
        outcome = await self.search_executor.execute(intent)
        logger.info(
            f"Search used '{outcome.query_used[:60]}' after {outcome.attempts} attempt(s): {len(outcome.hits)} hits",
            extra={"request_id": request_id}
        )
        if not outcome.hits:
            return [], 0, []

        sources = filter_sources(outcome.hits, intent)
        extractions = await self._fetch_and_extract(sources, intent, deadline, request_id)
        grouped, display_names = group_mentions(extractions)
        ranked = self.ranker.rank(grouped, display_names)
        analyses = await self._analyze(ranked, deadline, request_id)

        results = [build_result(product, analysis) for product, analysis in zip(ranked, analyses)]
        return results, len(extractions), analyses

    async def _fetch_and_extract(self, sources, intent: QueryIntent, deadline: float,
                                 request_id: str) -> List[SourceExtraction]:
        semaphore = asyncio.Semaphore(self.config.MAX_CONCURRENT_FETCHES)

        async def fetch_and_extract(source) -> SourceExtraction:
            async with semaphore:
                content = await self.content_fetcher.fetch(source.url, source.snippet)
                names = await self.extractor.extract(content, source.title, intent.category_hints)
                return SourceExtraction(source=source, content=content, names=names)

        outcomes = await self._run_until_deadline(
            [fetch_and_extract(s) for s in sources], deadline, "fetch_extract", request_id
        )
        # Source order, never completion order
        return [o for o in outcomes if o is not None]

    async def _analyze(self, ranked: List[RankedProduct], deadline: float,
                       request_id: str) -> List[ProductAnalysis]:
        semaphore = asyncio.Semaphore(self.config.MAX_CONCURRENT_ANALYSES)

        async def analyze(product: RankedProduct) -> ProductAnalysis:
            async with semaphore:
                return await self.analyzer.analyze(product)

        outcomes = await self._run_until_deadline(
            [analyze(p) for p in ranked], deadline, "analysis", request_id
        )
        return [
            analysis if analysis is not None else fallback_analysis(product)
            for product, analysis in zip(ranked, outcomes)
        ]

    async def _run_until_deadline(self, coros, deadline: float, stage_name: str,
                                  request_id: str) -> List[Optional[Any]]:
        """Results in input order; None for tasks that failed or missed the deadline."""
        if not coros:
            return []

        tasks = [asyncio.create_task(c) for c in coros]
        timeout = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        if pending:
            logger.warning(
                f"Stage '{stage_name}' hit the request deadline: cancelling {len(pending)}/{len(tasks)} tasks",
                extra={"request_id": request_id}
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes = []
        for task in tasks:
            if task not in done:
                outcomes.append(None)
            elif task.cancelled() or task.exception() is not None:
                reason = "cancelled" if task.cancelled() else repr(task.exception())
                logger.warning(f"Stage '{stage_name}' task failed: {reason}",
                               extra={"request_id": request_id})
                outcomes.append(None)
            else:
                outcomes.append(task.result())
        return outcomes

    @staticmethod
    def _processing_method(analyses: List[ProductAnalysis]) -> str:
        provider = next((a.llm_used for a in analyses if a.llm_used != FALLBACK_PROVIDER), FALLBACK_PROVIDER)
        return f"enhanced_{provider}_v2"

    async def _read_cache(self, query: str, request_id: str) -> Optional[CacheEntry]:
        try:
            if not await self.cache.is_fresh(query):
                return None
            return await self.cache.read(query)
        except CacheException as e:
            logger.warning(f"Cache lookup failed: {e}", extra={"request_id": request_id})
            return None

    async def _write_cache(self, query: str, entry: CacheEntry, request_id: str):
        try:
            await self.cache.replace(query, entry)
        except CacheWriteError as e:
            logger.error(f"Cache write failed, returning uncached results: {e}", extra={"request_id": request_id})

    async def clear_cache(self, query: str) -> bool:
        key = normalize_cache_key(query)
        async with self._lock_for(key):
            try:
                removed = await self.cache.delete(query)
            except CacheException as e:
                raise PipelineException(f"Failed to clear cache: {str(e)}") from e
        logger.info(f"Cache cleared for '{key}': {removed}")
        return removed

    async def health_check(self) -> Dict[str, str]:
        checks = {
            "search_provider": self._check_component_health(
                self.search_provider.health_check(), "search_provider"
            ) if self.search_provider else None,
            "llm_providers": self._check_component_health(self.llm_chain.health_check(), "llm_providers"),
            "cache": self._check_component_health(self.cache.health_check(), "cache"),
        }

        statuses = {}
        for name, check in checks.items():
            statuses[name] = await check if check is not None else "unconfigured"

        unhealthy = [k for k, v in statuses.items() if v not in ["healthy", "degraded"]]
        if not unhealthy:
            overall = "degraded" if "degraded" in statuses.values() else "healthy"
        else:
            overall = "degraded" if len(unhealthy) == 1 and "search_provider" not in unhealthy else "unhealthy"
        return {"overall": overall, **statuses}

    async def _check_component_health(self, health_coro, component_name: str, timeout: float = 5.0) -> str:
        try:
            return await asyncio.wait_for(health_coro, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Health check timeout for {component_name}")
            return "timeout"
        except Exception as e:
            logger.error(f"Health check error for {component_name}: {e}")
            return "unhealthy"

    async def initialize(self):
        await self.cache.initialize()

    async def shutdown(self):
        logger.info("Shutting down pipeline components...")
        closers = [self.llm_chain.close(), self.content_fetcher.close(), self.cache.close()]
        if self.search_provider:
            closers.append(self.search_provider.close())
        results = await asyncio.gather(*closers, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Error during pipeline shutdown: {result}")
        logger.info("Pipeline shutdown completed")
