# product_discovery/services/search_executor.py
import logging
from enum import Enum
from typing import List, Optional

from product_discovery.core.exceptions import SearchProviderError
from product_discovery.models.internal import Language, QueryIntent, RawSearchHit, SearchOutcome
from product_discovery.services.search_provider import WebSearchProvider
from product_discovery.services.spell_corrector import SpellCorrector

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    NOT_STARTED = "not_started"
    TRYING = "trying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class SearchAttemptMachine:
    """
    Walks an ordered queue of candidate queries:
    NOT_STARTED -> TRYING(query) -> SUCCEEDED | EXHAUSTED.

    Duplicate candidates are dropped when the queue is built, so the
    number of attempts can never exceed the number of distinct candidates.
    """

    def __init__(self, candidates: List[str], max_attempts: Optional[int] = None):
        seen = set()
        self.queue: List[str] = []
        for candidate in candidates:
            key = (candidate or "").strip().lower()
            if key and key not in seen:
                seen.add(key)
                self.queue.append(candidate.strip())

        self.max_attempts = len(self.queue) if max_attempts is None else min(max_attempts, len(self.queue))
        self.state = AttemptState.NOT_STARTED
        self.attempts = 0
        self.current_query: Optional[str] = None
        self.hits: List[RawSearchHit] = []

    @property
    def done(self) -> bool:
        return self.state in (AttemptState.SUCCEEDED, AttemptState.EXHAUSTED)

    def next_query(self) -> Optional[str]:
        """Advance into TRYING with the next candidate, or into EXHAUSTED."""
        if self.done:
            return None
        if self.attempts >= self.max_attempts:
            self.state = AttemptState.EXHAUSTED
            return None
        self.current_query = self.queue[self.attempts]
        self.attempts += 1
        self.state = AttemptState.TRYING
        return self.current_query

    def record(self, hits: List[RawSearchHit]):
        if self.state != AttemptState.TRYING:
            raise RuntimeError(f"Cannot record hits in state {self.state.value}")
        if hits:
            self.hits = list(hits)
            self.state = AttemptState.SUCCEEDED
        elif self.attempts >= self.max_attempts:
            self.state = AttemptState.EXHAUSTED


class SearchExecutor:
    """Runs web search attempts until one returns hits. Never raises provider errors."""

    def __init__(self, provider: WebSearchProvider, spell_corrector: Optional[SpellCorrector] = None,
                 max_results: int = 10):
        self.provider = provider
        self.spell_corrector = spell_corrector or SpellCorrector()
        self.max_results = max_results

    async def execute(self, intent: QueryIntent) -> SearchOutcome:
        corrections = self.spell_corrector.corrections_for(intent.original_query)
        ceiling = 1 + len(intent.fallback_queries) + len(corrections)
        candidates = [intent.optimized_query, *intent.fallback_queries, *corrections]
        return await self._run(SearchAttemptMachine(candidates, ceiling), intent.language_detected)

    async def _run(self, machine: SearchAttemptMachine, language: Language) -> SearchOutcome:
        while True:
            query = machine.next_query()
            if query is None:
                break

            logger.info(f"Search attempt {machine.attempts}/{machine.max_attempts}: '{query[:80]}'")
            try:
                hits = await self.provider.search(query, language=language, max_results=self.max_results)
            except SearchProviderError as e:
                logger.warning(f"Search provider error on attempt {machine.attempts}: {e}")
                hits = []
            except Exception as e:
                logger.error(f"Search provider {self.provider.name} failed unexpectedly on attempt "
                             f"{machine.attempts}: {type(e).__name__}: {e}")
                hits = []

            machine.record(hits)
            if machine.done:
                break

        if machine.state == AttemptState.SUCCEEDED:
            logger.info(f"Search succeeded after {machine.attempts} attempt(s) with {len(machine.hits)} hits")
        else:
            logger.warning(f"Search exhausted after {machine.attempts} attempt(s), no hits")

        return SearchOutcome(
            hits=machine.hits,
            query_used=machine.current_query or "",
            attempts=machine.attempts
        )
