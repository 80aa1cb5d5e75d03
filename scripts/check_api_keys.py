# scripts/check_api_keys.py
"""Script to validate the search and LLM provider keys in .env"""

import asyncio
import aiohttp
import os
from dotenv import load_dotenv

load_dotenv()

TIMEOUT = aiohttp.ClientTimeout(total=15)


async def check_serpapi():
    """Test SerpApi (Google Search)"""
    api_key = os.getenv("SERPAPI_API_KEY")
    if not api_key:
        return False, "API key not found"

    try:
        async with aiohttp.ClientSession(timeout=TIMEOUT) as session:
            params = {
                "q": "cerave hydrating cleanser review",
                "api_key": api_key,
                "engine": "google",
                "num": 1,
                "output": "json"
            }
            async with session.get("https://serpapi.com/search", params=params) as response:
                if response.status == 200:
                    data = await response.json()
                    if "organic_results" in data:
                        return True, f"OK - {len(data['organic_results'])} results"
                    return False, data.get("error", "No organic results in response")
                elif response.status == 401:
                    return False, "Invalid API key"
                elif response.status == 429:
                    return False, "Rate limit exceeded"
                error_text = await response.text()
                return False, f"HTTP {response.status}: {error_text[:100]}"
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return False, str(e) or type(e).__name__


async def check_brave_api():
    """Test Brave Search API"""
    api_key = os.getenv("BRAVE_SEARCH_API_KEY")
    if not api_key:
        return False, "API key not found"

    try:
        async with aiohttp.ClientSession(timeout=TIMEOUT) as session:
            headers = {
                "Accept": "application/json",
                "X-Subscription-Token": api_key
            }
            params = {"q": "test", "count": 1}
            async with session.get("https://api.search.brave.com/res/v1/web/search",
                                   headers=headers, params=params) as response:
                if response.status == 200:
                    return True, "OK"
                return False, f"HTTP {response.status}"
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return False, str(e) or type(e).__name__


async def check_gemini():
    """Test Gemini generateContent"""
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        return False, "API key not found"

    model = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    url = f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
    payload = {"contents": [{"parts": [{"text": "Reply with OK"}]}],
               "generationConfig": {"maxOutputTokens": 5}}
    try:
        async with aiohttp.ClientSession(timeout=TIMEOUT) as session:
            async with session.post(url, json=payload, headers={"x-goog-api-key": api_key}) as response:
                if response.status == 200:
                    return True, f"OK - {model}"
                return False, f"HTTP {response.status}"
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return False, str(e) or type(e).__name__


async def check_openai():
    """Test OpenAI chat completions"""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return False, "API key not found"

    model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    payload = {"model": model, "messages": [{"role": "user", "content": "Reply with OK"}], "max_tokens": 5}
    try:
        async with aiohttp.ClientSession(timeout=TIMEOUT) as session:
            async with session.post("https://api.openai.com/v1/chat/completions", json=payload,
                                    headers={"Authorization": f"Bearer {api_key}"}) as response:
                if response.status == 200:
                    return True, f"OK - {model}"
                return False, f"HTTP {response.status}"
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return False, str(e) or type(e).__name__


async def check_ollama():
    """Test Ollama connection"""
    if os.getenv("OLLAMA_ENABLED", "false").lower() not in ("1", "true", "yes"):
        return True, "Disabled"

    ollama_host = os.getenv("OLLAMA_HOST", "http://localhost:11434")
    try:
        async with aiohttp.ClientSession(timeout=TIMEOUT) as session:
            async with session.get(f"{ollama_host}/api/tags") as response:
                if response.status == 200:
                    data = await response.json()
                    models = [model["name"] for model in data.get("models", [])]
                    return True, f"Available models: {models}"
                return False, f"HTTP {response.status}"
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return False, str(e) or type(e).__name__


async def main():
    """Check every configured provider"""
    print("🔍 Checking API keys...\n")

    search_provider = os.getenv("SEARCH_PROVIDER", "serpapi")
    search_checks = {
        "serpapi": ("SerpApi (Google Search)", check_serpapi()),
        "brave": ("Brave Search API", check_brave_api()),
    }
    if search_provider not in search_checks:
        print(f"❌ Unknown SEARCH_PROVIDER: {search_provider}")
        return

    checks = [
        search_checks.pop(search_provider),
        ("Gemini", check_gemini()),
        ("OpenAI", check_openai()),
        ("Ollama Service", check_ollama())
    ]
    # Close the coroutine of the unused search provider
    for _, unused in search_checks.values():
        unused.close()

    results = await asyncio.gather(*[check[1] for check in checks])

    print("📊 API Status Check Results:\n")
    for (name, _), (success, message) in zip(checks, results):
        status = "✅" if success else "❌"
        print(f"{status} {name}: {message}")

    search_ok = results[0][0]
    llm_ok = any(success and message != "Disabled" for success, message in results[1:])

    if not search_ok:
        print("\n❌ Search provider is not usable: every search request will fail")
    if not llm_ok:
        print("\n⚠️  No LLM provider is usable: results will use deterministic fallbacks")
    if search_ok and llm_ok:
        print("\n🎉 Search and at least one LLM provider are working!")

    if not (search_ok and llm_ok):
        print("\n💡 Troubleshooting tips:")
        print("- Check your .env file for correct API keys")
        print("- Ensure Ollama is running: ollama serve")
        print("- Verify network connectivity to external APIs")
        print("- Check API key permissions and billing status")


if __name__ == "__main__":
    asyncio.run(main())
