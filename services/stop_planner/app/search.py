"""Debounced address search where the latest query always wins."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from .errors import PlannerError
from .models import GeocodingCandidate

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    async def forward(self, query: str) -> list[GeocodingCandidate]: ...


@dataclass(frozen=True)
class SearchResult:
    query: str
    candidates: tuple[GeocodingCandidate, ...] = ()
    stale: bool = False
    error: PlannerError | None = None


class SearchSession:
    """Holds the visible search results of one user.

    Each :meth:`search` takes a fresh token and cancels the lookup started by
    the previous call. A lookup whose token is no longer current returns a
    ``stale`` result and leaves :attr:`latest` untouched, whether it
    succeeded or failed.
    """

    def __init__(self, geocoder: Geocoder, debounce_seconds: float = 0.3) -> None:
        self._geocoder = geocoder
        self._debounce = debounce_seconds
        self._token = 0
        self._task: asyncio.Task[list[GeocodingCandidate]] | None = None
        self.latest = SearchResult(query="")

    def _find(self, candidate_id: str) -> GeocodingCandidate | None:
        for candidate in self.latest.candidates:
            if candidate.id == candidate_id:
                return candidate
        return None

    def take(self, candidate_id: str) -> GeocodingCandidate | None:
        """Consume a candidate of the visible results."""

        candidate = self._find(candidate_id)
        if candidate is not None:
            self.latest = SearchResult(query=self.latest.query)
        return candidate

    async def _lookup(self, query: str) -> list[GeocodingCandidate]:
        if self._debounce > 0:
            await asyncio.sleep(self._debounce)
        return await self._geocoder.forward(query)

    async def search(self, query: str) -> SearchResult:
        self._token += 1
        token = self._token
        self._cancel_pending()
        task = asyncio.ensure_future(self._lookup(query))
        self._task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise

        if token != self._token:
            if not task.cancelled():
                # Mark the outcome as retrieved; it is discarded either way.
                task.exception()
            logger.debug("Discarding superseded search %r", query)
            return SearchResult(query=query, stale=True)

        try:
            candidates = task.result()
        except PlannerError as exc:
            logger.warning("Search for %r failed: %s", query, exc.message)
            result = SearchResult(query=query, error=exc)
        else:
            result = SearchResult(query=query, candidates=tuple(candidates))
        self.latest = result
        return result

    def _cancel_pending(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def close(self) -> None:
        self._token += 1
        self._cancel_pending()
