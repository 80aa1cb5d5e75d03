# product_discovery/services/search_provider.py
import asyncio
import aiohttp
import logging
from typing import List, Optional, Tuple

from product_discovery.config.settings import Settings, settings as default_settings
from product_discovery.core.exceptions import ConfigurationError, SearchProviderError
from product_discovery.models.internal import Language, RawSearchHit

logger = logging.getLogger(__name__)

# language -> (country, interface language)
LOCALES = {
    Language.EN: ("us", "en"),
    Language.HI: ("in", "hi"),
}


def locale_for(language: Language) -> Tuple[str, str]:
    return LOCALES.get(language, LOCALES[Language.EN])


class WebSearchProvider:
    """A single blocking web search call. Raises SearchProviderError on failure."""

    name = "base"

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Lazy initialization of HTTP session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def search(self, query: str, language: Language = Language.EN,
                     max_results: int = 10) -> List[RawSearchHit]:
        raise NotImplementedError

    async def _get_json(self, url: str, params: dict, headers: Optional[dict] = None) -> dict:
        session = await self._get_session()
        try:
            async with session.get(url, params=params, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise SearchProviderError(
                        f"{self.name} returned status {response.status}: {error_text[:200]}"
                    )
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise SearchProviderError(f"{self.name} request timed out after {self.timeout}s") from e
        except ValueError as e:
            # 200 with a non-JSON body, e.g. a bot-check or captive-portal HTML page
            raise SearchProviderError(f"{self.name} returned a non-JSON body: {e}") from e
        except aiohttp.ClientError as e:
            raise SearchProviderError(f"{self.name} request failed: {type(e).__name__}: {e}") from e

        if not isinstance(data, dict):
            raise SearchProviderError(f"{self.name} returned a {type(data).__name__} payload instead of an object")
        return data

    async def health_check(self) -> str:
        return "healthy"

    async def close(self):
        """Close HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None


class SerpApiSearchProvider(WebSearchProvider):
    """Google web search through SerpApi"""

    name = "serpapi"
    url = "https://serpapi.com/search"

    def __init__(self, api_key: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.api_key = api_key

    async def search(self, query, language=Language.EN, max_results=10) -> List[RawSearchHit]:
        country, hl = locale_for(language)
        params = {
            "q": query,
            "api_key": self.api_key,
            "engine": "google",
            "num": min(max_results, 20),
            "hl": hl,
            "gl": country,
            "safe": "active",
            "output": "json"
        }
        data = await self._get_json(self.url, params)
        if data.get("error") and not data.get("organic_results"):
            # SerpApi reports "no results" as an error string with HTTP 200
            logger.info(f"SerpApi: {data.get('error')} for: {query[:50]}")
            return []

        hits = [
            RawSearchHit(
                title=item.get("title", "") or "",
                url=item.get("link", "") or "",
                snippet=item.get("snippet", "") or "",
                position=item.get("position")
            )
            for item in data.get("organic_results", [])
        ]
        logger.info(f"SerpApi search returned {len(hits)} results for: {query[:50]}...")
        return hits


class BraveSearchProvider(WebSearchProvider):
    """Brave Search API"""

    name = "brave"
    url = "https://api.search.brave.com/res/v1/web/search"

    def __init__(self, api_key: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.api_key = api_key

    async def search(self, query, language=Language.EN, max_results=10) -> List[RawSearchHit]:
        country, lang = locale_for(language)
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip",
            "X-Subscription-Token": self.api_key
        }
        params = {
            "q": query,
            "count": min(max_results, 20),  # Brave API max is 20
            "search_lang": lang,
            "country": country.upper(),
            "safesearch": "moderate"
        }
        data = await self._get_json(self.url, params, headers=headers)
        hits = [
            RawSearchHit(
                title=item.get("title", "") or "",
                url=item.get("url", "") or "",
                snippet=item.get("description", "") or "",
                position=index + 1
            )
            for index, item in enumerate(data.get("web", {}).get("results", []))
        ]
        logger.info(f"Brave search returned {len(hits)} results for: {query[:50]}...")
        return hits


def build_search_provider(config: Settings = None) -> WebSearchProvider:
    """Build the configured provider, or raise ConfigurationError when its key is absent."""
    config = config or default_settings
    provider = config.SEARCH_PROVIDER

    if provider == "serpapi":
        if not config.SERPAPI_API_KEY:
            raise ConfigurationError("SERPAPI_API_KEY is not configured")
        return SerpApiSearchProvider(config.SERPAPI_API_KEY, timeout=config.SEARCH_TIMEOUT)

    if provider == "brave":
        if not config.BRAVE_SEARCH_API_KEY:
            raise ConfigurationError("BRAVE_SEARCH_API_KEY is not configured")
        return BraveSearchProvider(config.BRAVE_SEARCH_API_KEY, timeout=config.SEARCH_TIMEOUT)

    raise ConfigurationError(f"Unknown SEARCH_PROVIDER: {provider!r}")
