"""
Breadth-first path search over the Wikipedia link graph

The graph is never loaded up front. Each dequeued article is expanded by
asking a LinkProvider for its outbound links, one article at a time, until the
goal is discovered or the depth ceiling stops further expansion.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Protocol, Set

from app.config import MAX_DEPTH, PROGRESS_INTERVAL
from app.exceptions import InvalidInput, PathNotFound, SearchCancelled
from app.graph import project_graph
from app.models import SearchResult
from app.utils import normalize_title

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class LinkProvider(Protocol):
    """Anything that can list the outbound article links of a page"""

    async def get_outbound_links(self, title: str) -> List[str]:
        ...


@dataclass(frozen=True)
class DiscoveryRecord:
    """How a page was first reached: its key, the index of its discoverer, its depth"""
    key: str
    predecessor: Optional[int]
    depth: int


def reconstruct_path(records: List[DiscoveryRecord], index: int) -> List[str]:
    """
    Walk predecessor indices from records[index] back to the start record

    Returns:
        Keys in start-to-record order
    """
    path = []
    current: Optional[int] = index
    while current is not None:
        record = records[current]
        path.append(record.key)
        current = record.predecessor
    return list(reversed(path))


class SearchEngine:
    """
    Finds the shortest hop chain between two articles with a depth-bounded BFS

    The frontier is FIFO, so every record at depth d is dequeued before any
    record at depth d + 1 and the first time the goal is discovered it sits at
    its minimum hop count. A page whose links cannot be fetched is treated as a
    dead end rather than failing the whole search.
    """

    def __init__(self, provider: LinkProvider, max_depth: int = MAX_DEPTH,
                 progress_interval: int = PROGRESS_INTERVAL):
        self.provider = provider
        self.max_depth = max_depth
        self.progress_interval = max(1, progress_interval)
        self._running = False

    async def run(
        self,
        start: str,
        goal: str,
        max_depth: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SearchResult:
        """
        Find a shortest path from start to goal

        Args:
            start: Raw starting page title
            goal: Raw target page title
            max_depth: Depth ceiling, defaults to the engine's
            on_progress: Optional function(visited_count, current_depth, current_key)
            cancel_event: Optional event; once set the search stops, even mid-fetch

        Raises:
            InvalidInput: A title normalizes to "" or max_depth is negative
            PathNotFound: Every page within max_depth hops was checked
            SearchCancelled: cancel_event was set before the search finished
        """
        if self._running:
            raise RuntimeError("SearchEngine.run is already in progress on this engine")

        if max_depth is None:
            max_depth = self.max_depth
        if max_depth < 0:
            raise InvalidInput(f"max_depth must be non-negative, got {max_depth}")

        start_key = normalize_title(start)
        goal_key = normalize_title(goal)
        if not start_key:
            raise InvalidInput(f"Start title {start!r} is empty after normalization")
        if not goal_key:
            raise InvalidInput(f"End title {goal!r} is empty after normalization")

        self._running = True
        try:
            return await self._search(start_key, goal_key, max_depth, on_progress, cancel_event)
        finally:
            self._running = False

    async def _search(self, start_key, goal_key, max_depth, on_progress, cancel_event):
        start_time = time.time()
        logger.info(
            "Starting path search",
            extra={"start": start_key, "goal": goal_key, "max_depth": max_depth}
        )

        records: List[DiscoveryRecord] = [DiscoveryRecord(start_key, None, 0)]
        visited: Set[str] = {start_key}
        frontier: Deque[int] = deque([0])
        dequeued = 0
        provider_failures = 0

        def finish(index: int) -> SearchResult:
            path = reconstruct_path(records, index)
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.info(
                f"Path found: {' → '.join(path)} ({len(visited)} pages checked, {elapsed_ms}ms)"
            )
            return SearchResult(
                start=start_key,
                end=goal_key,
                path=tuple(path),
                visited_count=len(visited),
                elapsed_ms=elapsed_ms,
                max_depth_reached=records[index].depth,
                provider_failures=provider_failures,
                graph=project_graph(records, path, start_key, goal_key),
            )

        while frontier:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Search cancelled after {len(visited)} pages checked")
                raise SearchCancelled(len(visited))

            current_index = frontier.popleft()
            current = records[current_index]
            dequeued += 1

            if on_progress is not None and dequeued % self.progress_interval == 0:
                self._report_progress(on_progress, len(visited), current.depth, current.key)

            if current.key == goal_key:
                return finish(current_index)

            if current.depth >= max_depth:
                continue

            try:
                links = await self._fetch_links(current.key, cancel_event)
            except Exception as e:
                provider_failures += 1
                logger.warning(
                    f"Could not fetch links for '{current.key}', treating it as a dead end",
                    extra={"error_type": type(e).__name__, "error": str(e)}
                )
                links = []

            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Search cancelled after {len(visited)} pages checked")
                raise SearchCancelled(len(visited))

            logger.debug(f"Expanding '{current.key}' at depth {current.depth}: {len(links)} links")

            for link in links:
                key = normalize_title(link)
                if not key or key in visited:
                    continue

                visited.add(key)
                records.append(DiscoveryRecord(key, current_index, current.depth + 1))
                child_index = len(records) - 1
                frontier.append(child_index)

                if key == goal_key:
                    return finish(child_index)

        logger.warning(
            f"No path found within {max_depth} hops",
            extra={"start": start_key, "goal": goal_key, "visited_count": len(visited)}
        )
        raise PathNotFound(start_key, goal_key, max_depth, len(visited))

    async def _fetch_links(self, key: str, cancel_event: Optional[asyncio.Event]) -> Optional[List[str]]:
        """
        Ask the provider for links, giving up as soon as cancel_event is set

        Returns None when cancellation won the race; the in-flight fetch is
        cancelled rather than awaited.
        """
        if cancel_event is None:
            return await self.provider.get_outbound_links(key)

        fetch = asyncio.ensure_future(self.provider.get_outbound_links(key))
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({fetch, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not fetch.done():
                fetch.cancel()

        if fetch.cancelled():
            return None
        return fetch.result()

    @staticmethod
    def _report_progress(on_progress: ProgressCallback, visited_count: int, depth: int, key: str):
        try:
            on_progress(visited_count, depth, key)
        except Exception as e:
            logger.error(f"Progress callback failed: {e}")
