# product_discovery/tests/conftest.py
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from typing import Callable, Dict, List, Optional, Union

from product_discovery.config.settings import Settings
from product_discovery.core.exceptions import LLMProviderError, SearchProviderError
from product_discovery.core.pipeline import ProductSearchPipeline
from product_discovery.database import DatabaseManager
from product_discovery.models.internal import Language, RawSearchHit
from product_discovery.services.cache_service import CacheService
from product_discovery.services.content_fetcher import ContentFetcher
from product_discovery.services.llm_providers import LLMProvider, LLMProviderChain
from product_discovery.services.product_cache import DatabaseProductCache, KeyValueProductCache
from product_discovery.services.search_provider import WebSearchProvider

# In-memory SQLite shared through StaticPool
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeSearchProvider(WebSearchProvider):
    """Returns scripted hits per exact query; records every call."""

    name = "fake"

    def __init__(self, responses: Optional[Dict[str, List[RawSearchHit]]] = None,
                 default: Optional[List[RawSearchHit]] = None, failing: Optional[List[str]] = None):
        super().__init__()
        self.responses = responses or {}
        self.default = default or []
        self.failing = set(failing or [])
        self.calls: List[tuple] = []

    async def search(self, query, language=Language.EN, max_results=10):
        self.calls.append((query, language))
        if query in self.failing:
            raise SearchProviderError(f"scripted failure for {query}")
        return list(self.responses.get(query, self.default))

    @property
    def queries(self) -> List[str]:
        return [q for q, _ in self.calls]


class ScriptedLLMProvider(LLMProvider):
    """Replies from a list (in order) or a function of the prompt; an Exception instance is raised."""

    def __init__(self, name: str, replies: Union[List, Callable[[str], str]]):
        super().__init__(timeout=1.0)
        self.name = name
        self.replies = replies
        self.prompts: List[str] = []

    async def complete(self, prompt, system=None, temperature=None, max_tokens=None):
        self.prompts.append(prompt)
        if callable(self.replies):
            reply = self.replies(prompt)
        elif self.replies:
            reply = self.replies.pop(0)
        else:
            raise LLMProviderError("no scripted reply left", provider=self.name)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeContentFetcher(ContentFetcher):
    """Serves page text by URL; unknown URLs degrade to the snippet like a failed fetch."""

    def __init__(self, pages: Optional[Dict[str, str]] = None):
        super().__init__(timeout=1.0)
        self.pages = pages or {}
        self.fetched: List[str] = []

    async def fetch(self, url, snippet_fallback=""):
        self.fetched.append(url)
        return self.pages.get(url, snippet_fallback)


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file"""
    return Settings(
        _env_file=None,
        SEARCH_PROVIDER="serpapi",
        SERPAPI_API_KEY="test-serpapi-key",
        GEMINI_API_KEY="",
        OPENAI_API_KEY="",
        OLLAMA_ENABLED=False,
        PRODUCT_CACHE_BACKEND="redis",
        REDIS_URL="memory://",
        REQUEST_DEADLINE=5.0,
        MAX_VALIDATION_RETRIES=1,
    )


@pytest.fixture
def empty_llm_chain():
    return LLMProviderChain([])


@pytest.fixture
def memory_cache():
    return KeyValueProductCache(CacheService(redis_url="memory://", max_memory_size=100), ttl_seconds=3600)


@pytest.fixture
async def db_manager():
    manager = DatabaseManager(TEST_DATABASE_URL)
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
async def test_session(db_manager):
    async with db_manager.session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def database_cache(db_manager):
    return DatabaseProductCache(db_manager, ttl_seconds=3600)


@pytest.fixture
def cerave_hits():
    return [
        RawSearchHit(
            title="CeraVe Hydrating Cleanser Review: A Dermatologist's Take",
            url="https://www.byrdie.com/review/cerave-hydrating-cleanser",
            snippet="The CeraVe Hydrating Cleanser is a gentle, non-foaming wash.",
            position=1
        ),
        RawSearchHit(
            title="Cleansers",
            url="https://shop.example.com/collections/cleansers",
            snippet="Shop all cleansers.",
            position=2
        ),
        RawSearchHit(
            title="Best gentle cleansers, tested",
            url="https://www.allure.com/gallery/best-gentle-cleansers",
            snippet="Our editors compared gentle face washes.",
            position=3
        ),
    ]


@pytest.fixture
def cerave_pages():
    return {
        "https://www.byrdie.com/review/cerave-hydrating-cleanser": (
            "We tested the CeraVe Hydrating Cleanser for four weeks. "
            "Compared with the Cetaphil Gentle Skin Cleanser it felt more moisturizing. "
            "Dermatologists also like the CeraVe Hydrating Cleanser for dry skin."
        ),
        "https://www.allure.com/gallery/best-gentle-cleansers": (
            "Our favourite is the CeraVe Hydrating Cleanser. "
            "Runner up: La Roche-Posay Toleriane Hydrating Gentle Cleanser."
        ),
    }


@pytest.fixture
def make_pipeline(test_settings, memory_cache, empty_llm_chain):
    """Pipeline factory wired with fakes; zero LLM providers unless a chain is given."""

    def _make(search_provider=None, pages=None, llm_chain=None, cache=None, settings=None):
        return ProductSearchPipeline(
            search_provider=search_provider,
            llm_chain=llm_chain or empty_llm_chain,
            cache=cache or memory_cache,
            content_fetcher=FakeContentFetcher(pages),
            config=settings or test_settings
        )

    return _make


@pytest.fixture
def search_provider_factory():
    def _make(responses=None, default=None, failing=None):
        return FakeSearchProvider(responses=responses, default=default, failing=failing)
    return _make


@pytest.fixture
def llm_provider_factory():
    def _make(name, replies):
        return ScriptedLLMProvider(name, replies)
    return _make


@pytest.fixture
def content_fetcher_factory():
    def _make(pages=None):
        return FakeContentFetcher(pages)
    return _make


@pytest.fixture
async def html_server():
    """
    Local HTTP server that answers 200 with a bot-check HTML page, or with a
    JSON array on paths ending in /list
    """

    async def handler(request):
        if request.path.endswith("/list"):
            return web.json_response([1, 2])
        return web.Response(text="<html>Just a moment...</html>", content_type="text/html")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handler)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()
