"""
Near-duplicate matching of a query image against the published catalog.
"""

import asyncio
import functools
import time
from typing import Iterable, List, Optional

import structlog

from mintguard import config
from mintguard.models.catalog import CatalogEntry
from mintguard.models.similarity import MatchOutcome, MatchResult
from mintguard.services.errors import CorpusUnavailable, DecodeError
from mintguard.services.image_hash import HASH_BITS, dhash64, hamming_distance

logger = structlog.get_logger()


def rank_candidates(
    query: str,
    candidates: Iterable[CatalogEntry],
    threshold: float = config.MATCH_THRESHOLD,
    max_results: int = config.MATCH_MAX_RESULTS,
) -> List[MatchResult]:
    """
    Score candidates against the query fingerprint and keep the best.

    Candidates scoring below ``threshold`` are dropped. The rest are ordered
    by descending score; equal scores keep their input order.
    """
    scored = []
    for entry in candidates:
        distance = hamming_distance(query, entry.dhash64)
        score = 1.0 - distance / HASH_BITS
        if score < threshold:
            continue
        scored.append(MatchResult(
            id=entry.id,
            title=entry.title,
            owner=entry.owner,
            user_id=entry.owner,
            image_url=entry.image_url,
            score=score,
            distance=distance,
        ))

    # sorted() is stable, so ties stay in recency order
    scored = sorted(scored, key=lambda match: match.score, reverse=True)
    return scored[:max_results]


class OneShotResponse:
    """Single-assignment cell: the first delivered outcome wins."""

    def __init__(self):
        self._future = asyncio.get_running_loop().create_future()
        self.discarded = 0

    @property
    def delivered(self) -> bool:
        return self._future.done()

    def deliver(self, outcome: MatchOutcome, source: str) -> bool:
        """Store ``outcome`` unless a response was already delivered."""
        if self._future.done():
            self.discarded += 1
            logger.debug("Discarded late similarity response", source=source)
            return False
        self._future.set_result(outcome)
        logger.debug("Similarity response delivered", source=source)
        return True

    async def wait(self) -> MatchOutcome:
        return await self._future


class SimilarityMatcher:
    """
    Compares a query image with recently published fingerprints.

    ``corpus`` is any object with a blocking ``fetch_candidates(limit)`` method
    returning catalog entries newest first and raising ``CorpusUnavailable``
    when the catalog cannot be read.
    """

    def __init__(
        self,
        corpus,
        threshold: float = config.MATCH_THRESHOLD,
        candidate_limit: int = config.MATCH_CANDIDATE_LIMIT,
        max_results: int = config.MATCH_MAX_RESULTS,
        budget_seconds: float = config.MATCH_BUDGET_SECONDS,
    ):
        self.corpus = corpus
        self.threshold = threshold
        self.candidate_limit = candidate_limit
        self.max_results = max_results
        self.budget_seconds = budget_seconds

    async def find_matches(self, image_bytes: bytes) -> MatchOutcome:
        """
        Find published artworks that look like ``image_bytes``.

        Never raises for bad input, catalog failures or budget expiry; those
        all come back as an outcome with no matches. When the budget runs out
        the query fingerprint is also dropped.
        """
        loop = asyncio.get_running_loop()
        response = OneShotResponse()

        def on_budget_expired():
            if response.deliver(MatchOutcome.empty(), source="budget"):
                logger.warning("Similarity budget exceeded", budget_seconds=self.budget_seconds)

        timer = loop.call_later(self.budget_seconds, on_budget_expired)
        task = loop.create_task(self._run(image_bytes))
        task.add_done_callback(functools.partial(self._deliver_result, response))

        try:
            return await response.wait()
        finally:
            timer.cancel()
            if not task.done():
                task.cancel()

    @staticmethod
    def _deliver_result(response: OneShotResponse, task: asyncio.Future) -> None:
        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            logger.error("Similarity check failed", error=str(error), exc_info=error)
            response.deliver(MatchOutcome.empty(), source="error")
            return

        response.deliver(task.result(), source="pipeline")

    async def _run(self, image_bytes: bytes) -> MatchOutcome:
        start_time = time.monotonic()

        try:
            query = await asyncio.to_thread(dhash64, image_bytes)
        except DecodeError:
            logger.info("Query image not decodable, skipping similarity check", size=len(image_bytes))
            return MatchOutcome.empty()

        candidates = await self._fetch_candidates()
        if candidates is None:
            return MatchOutcome.empty(query)

        matches = rank_candidates(query, candidates, self.threshold, self.max_results)

        logger.info("Similarity check completed",
                   query=query,
                   candidates_scanned=len(candidates),
                   matches_found=len(matches),
                   processing_time_ms=(time.monotonic() - start_time) * 1000)
        return MatchOutcome(query=query, matches=matches)

    async def _fetch_candidates(self) -> Optional[List[CatalogEntry]]:
        try:
            return await asyncio.to_thread(self.corpus.fetch_candidates, self.candidate_limit)
        except CorpusUnavailable as e:
            logger.warning("Candidate corpus unavailable", error=str(e))
            return None
        except Exception as e:
            logger.error("Candidate fetch failed", error=str(e), exc_info=True)
            return None
