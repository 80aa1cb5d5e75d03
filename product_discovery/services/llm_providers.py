# product_discovery/services/llm_providers.py
import asyncio
import aiohttp
import logging
from typing import List, Optional, Dict, Any

from product_discovery.config.settings import Settings, settings as default_settings
from product_discovery.core.exceptions import LLMProviderError
from product_discovery.models.internal import LLMResult
from product_discovery.services.llm_parsing import extract_json_array, extract_json_object

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class LLMProvider:
    """One text-completion backend. `complete` returns raw reply text or raises LLMProviderError."""

    name = "base"

    def __init__(self, timeout: float = 10.0, temperature: float = 0.1, max_tokens: int = 1024):
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Lazy initialization of HTTP session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Content-Type": "application/json"}
            )
        return self.session

    async def _post_json(self, url: str, payload: Dict[str, Any],
                         headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        session = await self._get_session()
        try:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise LLMProviderError(
                        f"{self.name} API error {response.status}: {error_text[:200]}",
                        provider=self.name,
                        retryable=response.status in RETRYABLE_STATUSES
                    )
                data = await response.json(content_type=None)
        except ValueError as e:
            # 200 with a non-JSON body, e.g. a proxy or captive-portal HTML page
            raise LLMProviderError(
                f"{self.name} returned a non-JSON body: {e}",
                provider=self.name
            ) from e
        except aiohttp.ClientError as e:
            raise LLMProviderError(
                f"{self.name} client error: {type(e).__name__}: {e}",
                provider=self.name,
                retryable=isinstance(e, aiohttp.ClientConnectionError)
            ) from e

        if not isinstance(data, dict):
            raise LLMProviderError(
                f"{self.name} returned a {type(data).__name__} payload instead of an object",
                provider=self.name
            )
        return data

    async def complete(self, prompt: str, system: Optional[str] = None,
                       temperature: Optional[float] = None,
                       max_tokens: Optional[int] = None) -> str:
        raise NotImplementedError

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None


class GeminiProvider(LLMProvider):
    name = "gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model

    async def complete(self, prompt, system=None, temperature=None, max_tokens=None) -> str:
        text = f"{system}\n\n{prompt}" if system else prompt
        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "temperature": self.temperature if temperature is None else temperature,
                "topK": 1,
                "topP": 1,
                "maxOutputTokens": max_tokens or self.max_tokens,
            },
        }
        data = await self._post_json(
            f"{self.base_url}/{self.model}:generateContent",
            payload,
            headers={"x-goog-api-key": self.api_key}
        )
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMProviderError(f"Unexpected Gemini response shape: {e}", provider=self.name) from e


class OpenAIProvider(LLMProvider):
    name = "openai"
    url = "https://api.openai.com/v1/chat/completions"

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model

    async def complete(self, prompt, system=None, temperature=None, max_tokens=None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        data = await self._post_json(
            self.url,
            payload,
            headers={"Authorization": f"Bearer {self.api_key}"}
        )
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMProviderError(f"Unexpected OpenAI response shape: {e}", provider=self.name) from e


class OllamaProvider(LLMProvider):
    name = "ollama"

    def __init__(self, host: str = "http://localhost:11434", model: str = "llama3:8b", **kwargs):
        super().__init__(**kwargs)
        self.host = host.rstrip("/")
        self.model = model

    async def complete(self, prompt, system=None, temperature=None, max_tokens=None) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.temperature if temperature is None else temperature,
                "num_predict": max_tokens or self.max_tokens,
                "top_k": 40,
                "top_p": 0.9,
            },
        }
        if system:
            payload["system"] = system
        data = await self._post_json(f"{self.host}/api/generate", payload)
        response_text = data.get("response")
        if not isinstance(response_text, str) or not response_text.strip():
            raise LLMProviderError("Empty response from Ollama", provider=self.name)
        return response_text


def build_llm_providers(config: Settings = None) -> List[LLMProvider]:
    """Providers in priority order. A provider without a key is left out."""
    config = config or default_settings
    common = {
        "timeout": config.LLM_TIMEOUT,
        "temperature": config.LLM_TEMPERATURE,
        "max_tokens": config.LLM_MAX_TOKENS,
    }
    providers: List[LLMProvider] = []
    if config.GEMINI_API_KEY:
        providers.append(GeminiProvider(config.GEMINI_API_KEY, config.GEMINI_MODEL, **common))
    if config.OPENAI_API_KEY:
        providers.append(OpenAIProvider(config.OPENAI_API_KEY, config.OPENAI_MODEL, **common))
    if config.OLLAMA_ENABLED:
        providers.append(OllamaProvider(config.OLLAMA_HOST, config.OLLAMA_MODEL, **common))

    if providers:
        logger.info(f"LLM providers configured: {[p.name for p in providers]}")
    else:
        logger.warning("No LLM providers configured, all LLM stages will use deterministic fallbacks")
    return providers


class LLMProviderChain:
    """Tries providers in order and returns the first reply that parses."""

    def __init__(self, providers: List[LLMProvider], timeout: float = 10.0, max_retries: int = 1):
        self.providers = list(providers)
        self.timeout = timeout
        self.max_retries = max_retries

    @classmethod
    def from_settings(cls, config: Settings = None) -> "LLMProviderChain":
        config = config or default_settings
        return cls(build_llm_providers(config), timeout=config.LLM_TIMEOUT,
                   max_retries=config.LLM_MAX_RETRIES)

    @property
    def is_empty(self) -> bool:
        return not self.providers

    async def request_json(self, prompt: str, shape: str = "object", system: Optional[str] = None,
                           temperature: Optional[float] = None,
                           max_tokens: Optional[int] = None) -> LLMResult:
        """
        Ask each provider in turn for a JSON reply of the given shape
        ("object" or "array"). Provider, timeout and parse failures all
        fall through to the next provider.
        """
        parse = extract_json_array if shape == "array" else extract_json_object
        reasons = []

        for provider in self.providers:
            try:
                text = await self._call_with_retry(provider, prompt, system, temperature, max_tokens)
            except asyncio.TimeoutError:
                logger.warning(f"{provider.name} timed out after {self.timeout}s")
                reasons.append(f"{provider.name}: timeout")
                continue
            except LLMProviderError as e:
                logger.warning(f"{provider.name} call failed: {e}")
                reasons.append(f"{provider.name}: {e}")
                continue

            result = parse(text, provider.name)
            if result.ok:
                return result
            logger.warning(f"{provider.name} reply could not be parsed: {result.reason}")
            reasons.append(f"{provider.name}: {result.reason}")

        if not self.providers:
            return LLMResult.failure("no LLM providers configured")
        return LLMResult.failure("; ".join(reasons))

    async def _call_with_retry(self, provider: LLMProvider, prompt: str, system: Optional[str],
                               temperature: Optional[float], max_tokens: Optional[int]) -> str:
        for attempt in range(self.max_retries + 1):
            try:
                return await asyncio.wait_for(
                    provider.complete(prompt, system=system, temperature=temperature,
                                      max_tokens=max_tokens),
                    timeout=self.timeout
                )
            except LLMProviderError as e:
                if not e.retryable or attempt >= self.max_retries:
                    raise
                wait_time = min(2 ** attempt, 8)
                logger.info(f"{provider.name} attempt {attempt + 1} failed ({e}), retrying in {wait_time}s")
                await asyncio.sleep(wait_time)
        raise LLMProviderError("retries exhausted", provider=provider.name)

    async def health_check(self) -> str:
        return "healthy" if self.providers else "degraded"

    async def close(self):
        await asyncio.gather(*(p.close() for p in self.providers), return_exceptions=True)
