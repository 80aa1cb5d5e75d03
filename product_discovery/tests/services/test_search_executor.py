# tests/services/test_search_executor.py
import pytest
from unittest.mock import AsyncMock, patch

from product_discovery.models.internal import IntentType, Language, QueryIntent, RawSearchHit
from product_discovery.services.search_executor import AttemptState, SearchAttemptMachine, SearchExecutor
from product_discovery.services.search_provider import SerpApiSearchProvider

HIT = RawSearchHit(title="Atomic Habits review", url="https://www.goodreads.com/book/show/40121378")


def make_intent(original="atomic habbit", optimized="optimized query", fallbacks=None, language=Language.EN):
    return QueryIntent(
        type=IntentType.CATEGORY,
        confidence=0.6,
        original_query=original,
        optimized_query=optimized,
        fallback_queries=fallbacks if fallbacks is not None else ["atomic habbit"],
        language_detected=language,
    )


class TestSearchAttemptMachine:
    """Test the attempt state machine"""

    def test_duplicates_dropped(self):
        machine = SearchAttemptMachine(["a", "A ", "b", "", "a"])
        assert machine.queue == ["a", "b"]
        assert machine.max_attempts == 2

    def test_success_stops(self):
        machine = SearchAttemptMachine(["a", "b"])
        assert machine.state == AttemptState.NOT_STARTED

        assert machine.next_query() == "a"
        assert machine.state == AttemptState.TRYING
        machine.record([HIT])

        assert machine.state == AttemptState.SUCCEEDED
        assert machine.next_query() is None
        assert machine.attempts == 1

    def test_exhaustion(self):
        machine = SearchAttemptMachine(["a", "b", "c"], max_attempts=2)
        machine.next_query()
        machine.record([])
        machine.next_query()
        machine.record([])

        assert machine.state == AttemptState.EXHAUSTED
        assert machine.next_query() is None
        assert machine.attempts == 2

    def test_record_outside_trying(self):
        with pytest.raises(RuntimeError):
            SearchAttemptMachine(["a"]).record([HIT])


class TestSearchExecutor:
    """Test search retries over fallbacks and spell corrections"""

    async def test_first_attempt_succeeds(self, search_provider_factory):
        provider = search_provider_factory(responses={"optimized query": [HIT]})
        outcome = await SearchExecutor(provider).execute(make_intent())

        assert outcome.attempts == 1
        assert outcome.query_used == "optimized query"
        assert outcome.hits == [HIT]

    async def test_spell_correction_is_last_resort(self, search_provider_factory):
        provider = search_provider_factory(responses={"atomic habits": [HIT]})
        outcome = await SearchExecutor(provider).execute(make_intent())

        assert provider.queries == ["optimized query", "atomic habbit", "atomic habits"]
        assert outcome.attempts == 3
        assert outcome.query_used == "atomic habits"
        assert outcome.hits == [HIT]

    async def test_attempts_bounded_when_everything_is_empty(self, search_provider_factory):
        provider = search_provider_factory()
        intent = make_intent(fallbacks=["atomic habbit", "atomic habbit summary"])
        outcome = await SearchExecutor(provider).execute(intent)

        assert outcome.hits == []
        # 1 optimized + 2 fallbacks + 1 correction
        assert outcome.attempts == 4
        assert len(provider.calls) == 4

    async def test_duplicate_fallback_not_searched_twice(self, search_provider_factory):
        provider = search_provider_factory()
        intent = make_intent(original="serum", optimized="serum", fallbacks=["serum", "best serum"])
        outcome = await SearchExecutor(provider).execute(intent)

        assert provider.queries == ["serum", "best serum"]
        assert outcome.attempts == 2

    async def test_provider_error_counts_as_empty(self, search_provider_factory):
        provider = search_provider_factory(
            responses={"atomic habbit": [HIT]},
            failing=["optimized query"]
        )
        outcome = await SearchExecutor(provider).execute(make_intent())

        assert outcome.attempts == 2
        assert outcome.query_used == "atomic habbit"

    async def test_language_passed_to_provider(self, search_provider_factory):
        provider = search_provider_factory(default=[HIT])
        await SearchExecutor(provider).execute(make_intent(language=Language.HI))

        assert provider.calls == [("optimized query", Language.HI)]

    async def test_html_reply_counts_as_empty(self, html_server):
        provider = SerpApiSearchProvider("key")
        provider.url = str(html_server.make_url("/search"))
        try:
            outcome = await SearchExecutor(provider).execute(make_intent())
        finally:
            await provider.close()

        assert outcome.hits == []
        # optimized + one fallback + "atomic habits"
        assert outcome.attempts == 3

    async def test_unexpected_provider_exception_counts_as_empty(self, search_provider_factory):
        provider = search_provider_factory()
        with patch.object(provider, "search", AsyncMock(side_effect=[KeyError("web"), [HIT]])):
            outcome = await SearchExecutor(provider).execute(make_intent())

        assert outcome.attempts == 2
        assert outcome.query_used == "atomic habbit"
        assert outcome.hits == [HIT]
