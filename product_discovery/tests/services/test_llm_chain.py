# tests/services/test_llm_chain.py
import asyncio
import pytest

from product_discovery.core.exceptions import LLMProviderError
from product_discovery.services.llm_parsing import extract_json_array, extract_json_object
from product_discovery.services.llm_providers import (
    LLMProvider,
    LLMProviderChain,
    OllamaProvider,
    OpenAIProvider,
    build_llm_providers,
)


class SlowProvider(LLMProvider):
    name = "slow"

    async def complete(self, prompt, system=None, temperature=None, max_tokens=None):
        await asyncio.sleep(5)
        return "{}"


class TestJsonExtraction:
    """Test JSON extraction from free-form replies"""

    def test_object_inside_markdown_fence(self):
        result = extract_json_object('Sure!\n```json\n{"type": "category", "confidence": 0.7}\n```', "gemini")
        assert result.ok
        assert result.value == {"type": "category", "confidence": 0.7}
        assert result.provider == "gemini"

    def test_array_after_prose(self):
        result = extract_json_array('Products found: ["CeraVe Hydrating Cleanser", "Cetaphil"] - done')
        assert result.ok
        assert result.value == ["CeraVe Hydrating Cleanser", "Cetaphil"]

    def test_skips_undecodable_bracket(self):
        result = extract_json_array('[see below] ["Atomic Habits"]')
        assert result.value == ["Atomic Habits"]

    def test_shape_is_enforced(self):
        assert not extract_json_object('["a", "b"]').ok
        assert extract_json_array('{"a": [1]}').value == [1]

    def test_failures_have_reasons(self):
        assert extract_json_object("").reason == "empty reply"
        assert extract_json_object("{broken").reason == "no JSON object in reply"
        assert extract_json_array("nothing here").reason == "no JSON array in reply"


class TestLLMProviderChain:
    """Test provider fall-through"""

    async def test_first_parseable_reply_wins(self, llm_provider_factory):
        first = llm_provider_factory("gemini", ['{"ok": 1}'])
        second = llm_provider_factory("openai", ['{"ok": 2}'])
        result = await LLMProviderChain([first, second], max_retries=0).request_json("prompt")

        assert result.ok
        assert result.value == {"ok": 1}
        assert second.prompts == []

    async def test_error_falls_through(self, llm_provider_factory):
        first = llm_provider_factory("gemini", [LLMProviderError("quota", provider="gemini")])
        second = llm_provider_factory("openai", ['["a"]'])
        result = await LLMProviderChain([first, second], max_retries=1).request_json("prompt", shape="array")

        assert result.value == ["a"]
        assert result.provider == "openai"
        # not retryable, so a single call
        assert len(first.prompts) == 1

    async def test_unparseable_reply_falls_through(self, llm_provider_factory):
        first = llm_provider_factory("gemini", ["I cannot help with that."])
        second = llm_provider_factory("openai", ['{"type": "category"}'])
        result = await LLMProviderChain([first, second], max_retries=0).request_json("prompt")

        assert result.provider == "openai"

    async def test_retryable_error_is_retried(self, llm_provider_factory):
        provider = llm_provider_factory("ollama", [
            LLMProviderError("busy", provider="ollama", retryable=True),
            '{"ok": true}',
        ])
        result = await LLMProviderChain([provider], max_retries=1).request_json("prompt")

        assert result.ok
        assert len(provider.prompts) == 2

    async def test_timeout_falls_through(self, llm_provider_factory):
        fallback = llm_provider_factory("openai", ['{"ok": true}'])
        chain = LLMProviderChain([SlowProvider(), fallback], timeout=0.05, max_retries=0)

        result = await chain.request_json("prompt")

        assert result.provider == "openai"

    async def test_all_fail(self, llm_provider_factory):
        first = llm_provider_factory("gemini", ["no json"])
        second = llm_provider_factory("openai", [LLMProviderError("down", provider="openai")])
        result = await LLMProviderChain([first, second], max_retries=0).request_json("prompt")

        assert not result.ok
        assert "gemini" in result.reason
        assert "openai" in result.reason

    async def test_empty_chain(self, empty_llm_chain):
        result = await empty_llm_chain.request_json("prompt")

        assert not result.ok
        assert result.reason == "no LLM providers configured"
        assert await empty_llm_chain.health_check() == "degraded"

    def test_providers_need_keys(self, test_settings):
        assert build_llm_providers(test_settings) == []

        configured = test_settings.model_copy(update={"GEMINI_API_KEY": "g", "OLLAMA_ENABLED": True})
        assert [p.name for p in build_llm_providers(configured)] == ["gemini", "ollama"]


class TestHttpProviders:
    """Test provider adapters against unusable 200 replies"""

    async def test_html_reply_falls_through(self, html_server, llm_provider_factory):
        openai = OpenAIProvider("key")
        openai.url = str(html_server.make_url("/v1/chat/completions"))
        fallback = llm_provider_factory("gemini", ['{"ok": true}'])
        try:
            result = await LLMProviderChain([openai, fallback], max_retries=0).request_json("prompt")
        finally:
            await openai.close()

        assert result.ok
        assert result.provider == "gemini"

    async def test_html_reply_raises_provider_error(self, html_server):
        openai = OpenAIProvider("key")
        openai.url = str(html_server.make_url("/v1/chat/completions"))
        try:
            with pytest.raises(LLMProviderError, match="non-JSON") as exc_info:
                await openai.complete("prompt")
        finally:
            await openai.close()

        assert exc_info.value.provider == "openai"
        assert not exc_info.value.retryable

    async def test_non_object_payload(self, html_server):
        ollama = OllamaProvider(host=str(html_server.make_url("/")))
        try:
            with pytest.raises(LLMProviderError, match="list payload"):
                await ollama._post_json(str(html_server.make_url("/api/generate/list")), {})
        finally:
            await ollama.close()
