# product_discovery/services/content_fetcher.py
import asyncio
import aiohttp
import logging
import re
from typing import Optional
from bs4 import BeautifulSoup
import trafilatura

from product_discovery.config.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class ContentFetcher:
    """Best-effort page fetch. Any failure degrades to the search snippet."""

    def __init__(self, timeout: float = 5.0, max_content_length: int = 10000,
                 user_agent: str = None):
        self.timeout = timeout
        self.max_content_length = max_content_length
        self.user_agent = user_agent or default_settings.FETCH_USER_AGENT
        self.session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(cls, config: Settings = None) -> "ContentFetcher":
        config = config or default_settings
        return cls(
            timeout=config.CONTENT_FETCH_TIMEOUT,
            max_content_length=config.MAX_CONTENT_LENGTH,
            user_agent=config.FETCH_USER_AGENT
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Lazy initialization of HTTP session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                    "Accept-Language": "en-US,en;q=0.5",
                }
            )
        return self.session

    async def fetch(self, url: str, snippet_fallback: str = "") -> str:
        html = await self._fetch_html(url)
        if html is None:
            return snippet_fallback

        text = self.extract_text(html)
        if not text:
            logger.info(f"No text extracted from {url[:60]}, using snippet")
            return snippet_fallback
        return text

    async def _fetch_html(self, url: str) -> Optional[str]:
        try:
            session = await self._get_session()
            async with session.get(url) as response:
                if response.status < 200 or response.status >= 300:
                    logger.info(f"Fetch failed with status {response.status} for: {url[:60]}")
                    return None
                return await response.text(errors="replace")
        except asyncio.TimeoutError:
            logger.info(f"Fetch timed out after {self.timeout}s for: {url[:60]}")
            return None
        except (aiohttp.ClientError, UnicodeDecodeError, ValueError) as e:
            logger.info(f"Fetch error for {url[:60]}: {type(e).__name__}: {e}")
            return None

    def extract_text(self, html: str) -> str:
        """Main text via trafilatura, else every visible string via BeautifulSoup."""
        extracted = None
        try:
            extracted = trafilatura.extract(html, include_comments=False, include_tables=True,
                                            include_formatting=False)
        except Exception as e:
            # trafilatura raises assorted lxml errors on malformed markup
            logger.debug(f"trafilatura extraction failed: {e}")

        if not extracted:
            extracted = self._extract_with_beautifulsoup(html)

        return self._clean_content(extracted or "")

    def _extract_with_beautifulsoup(self, html: str) -> str:
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        return soup.get_text(separator=" ")

    def _clean_content(self, content: str) -> str:
        content = re.sub(r"\s+", " ", content).strip()
        return content[:self.max_content_length]

    async def health_check(self) -> str:
        return "healthy"

    async def close(self):
        """Close HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None
