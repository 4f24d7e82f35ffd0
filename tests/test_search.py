"""Tests for the breadth-first path search"""
import asyncio
from collections import deque

import pytest

from app.exceptions import InvalidInput, PathNotFound, SearchCancelled
from app.search import DiscoveryRecord, SearchEngine, reconstruct_path
from conftest import FakeLinkProvider


def shortest_distances(graph, source):
    """Reference BFS over a fully known graph"""
    distances = {source: 0}
    queue = deque([source])
    while queue:
        page = queue.popleft()
        for link in graph.get(page, []):
            if link not in distances:
                distances[link] = distances[page] + 1
                queue.append(link)
    return distances


LATTICE = {
    "A": ["B", "C", "D"],
    "B": ["E", "A"],
    "C": ["F", "G"],
    "D": ["G"],
    "E": ["H"],
    "F": ["H", "C"],
    "G": ["I"],
    "H": ["J"],
    "I": ["J", "B"],
    "J": ["A"],
}


class TestDiamond:
    @pytest.mark.asyncio
    async def test_first_discovered_branch_wins(self, diamond_provider):
        result = await SearchEngine(diamond_provider).run("A", "E")

        assert result.path == ("A", "B", "D", "E")
        assert result.visited_count == 5
        assert result.max_depth_reached == 3

    @pytest.mark.asyncio
    async def test_link_order_decides_tie(self):
        provider = FakeLinkProvider({"A": ["C", "B"], "B": ["D"], "C": ["D"], "D": ["E"]})

        result = await SearchEngine(provider).run("A", "E")

        assert result.path == ("A", "C", "D", "E")
        assert result.visited_count == 5

    @pytest.mark.asyncio
    async def test_goal_is_caught_on_discovery(self, diamond_provider):
        """E is returned as soon as D lists it, E itself is never expanded"""
        await SearchEngine(diamond_provider).run("A", "E")

        assert diamond_provider.calls == ["A", "B", "C", "D"]


class TestTrivialAndInvalid:
    @pytest.mark.asyncio
    async def test_same_title_needs_no_lookup(self, diamond_provider):
        result = await SearchEngine(diamond_provider).run("the_eiffel tower", " The Eiffel  Tower ")

        assert result.path == ("The Eiffel Tower",)
        assert result.visited_count == 1
        assert result.max_depth_reached == 0
        assert diamond_provider.calls == []
        assert len(result.graph.nodes) == 1
        assert result.graph.edges == ()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start,end", [("", "A"), ("A", "   "), ("___", "A")])
    async def test_empty_titles_are_rejected(self, diamond_provider, start, end):
        with pytest.raises(InvalidInput):
            await SearchEngine(diamond_provider).run(start, end)
        assert diamond_provider.calls == []

    @pytest.mark.asyncio
    async def test_negative_depth_is_rejected(self, diamond_provider):
        with pytest.raises(InvalidInput):
            await SearchEngine(diamond_provider).run("A", "E", max_depth=-1)


class TestDepthCeiling:
    CHAIN = {"A": ["B"], "B": ["C"], "C": ["D"], "D": ["E"]}

    @pytest.mark.asyncio
    async def test_goal_beyond_ceiling_is_not_found(self):
        provider = FakeLinkProvider(self.CHAIN)

        with pytest.raises(PathNotFound) as exc_info:
            await SearchEngine(provider).run("A", "E", max_depth=2)

        error = exc_info.value
        assert error.start == "A"
        assert error.goal == "E"
        assert error.max_depth == 2
        assert error.visited_count == 3
        # C sits at the ceiling and is never expanded
        assert provider.calls == ["A", "B"]

    @pytest.mark.asyncio
    async def test_goal_at_ceiling_is_found(self):
        provider = FakeLinkProvider(self.CHAIN)

        result = await SearchEngine(provider).run("A", "E", max_depth=4)

        assert result.path == ("A", "B", "C", "D", "E")
        assert result.max_depth_reached == 4

    @pytest.mark.asyncio
    async def test_zero_depth_never_expands(self):
        provider = FakeLinkProvider(self.CHAIN)

        with pytest.raises(PathNotFound) as exc_info:
            await SearchEngine(provider).run("A", "B", max_depth=0)

        assert exc_info.value.visited_count == 1
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_no_record_deeper_than_ceiling(self):
        provider = FakeLinkProvider(LATTICE)

        result = await SearchEngine(provider).run("A", "J", max_depth=6)

        assert all(node.depth <= 6 for node in result.graph.nodes)

    @pytest.mark.asyncio
    async def test_exhaustion_counts_every_reachable_page(self):
        graph = {"A": ["B", "C"], "B": ["C", "D"], "C": ["A"], "D": ["B"], "Z": ["A"]}
        provider = FakeLinkProvider(graph)

        with pytest.raises(PathNotFound) as exc_info:
            await SearchEngine(provider).run("A", "Z")

        assert exc_info.value.visited_count == len(shortest_distances(graph, "A"))
        assert sorted(provider.calls) == ["A", "B", "C", "D"]


class TestShortestPaths:
    @pytest.mark.asyncio
    async def test_hop_count_matches_reference_bfs(self):
        for source in LATTICE:
            distances = shortest_distances(LATTICE, source)
            for target, distance in distances.items():
                result = await SearchEngine(FakeLinkProvider(LATTICE)).run(source, target)

                assert len(result.path) - 1 == distance
                assert result.path[0] == source
                assert result.path[-1] == target
                for page, next_page in zip(result.path, result.path[1:]):
                    assert next_page in LATTICE[page]

    @pytest.mark.asyncio
    async def test_links_are_normalized_before_dedup(self):
        provider = FakeLinkProvider({
            "Paris": ["eiffel_Tower", "Eiffel Tower", "louvre"],
            "Louvre": ["Mona Lisa"],
        })

        result = await SearchEngine(provider).run("paris", "mona_lisa")

        assert result.path == ("Paris", "Louvre", "Mona Lisa")
        assert result.visited_count == 4
        assert "Eiffel Tower" in provider.calls


class TestProviderFailures:
    @pytest.mark.asyncio
    async def test_failed_page_is_a_dead_end(self):
        provider = FakeLinkProvider({"A": ["B", "C"], "B": ["E"], "C": ["D"], "D": ["E"]}, failing={"B"})

        result = await SearchEngine(provider).run("A", "E")

        assert result.path == ("A", "C", "D", "E")
        assert result.provider_failures == 1

    @pytest.mark.asyncio
    async def test_failure_on_only_route_means_no_path(self):
        provider = FakeLinkProvider({"A": ["B"], "B": ["C"]}, failing={"B"})

        with pytest.raises(PathNotFound):
            await SearchEngine(provider).run("A", "C")


class TestProgressAndCancellation:
    @pytest.mark.asyncio
    async def test_progress_is_throttled(self):
        provider = FakeLinkProvider(LATTICE)
        reports = []

        await SearchEngine(provider, progress_interval=2).run(
            "A", "J", on_progress=lambda *args: reports.append(args)
        )

        dequeued = len(provider.calls)
        assert len(reports) == dequeued // 2
        visited_count, depth, key = reports[0]
        assert visited_count >= 1
        assert key in LATTICE

    @pytest.mark.asyncio
    async def test_failing_progress_callback_does_not_abort(self, diamond_provider):
        def explode(*args):
            raise RuntimeError("renderer crashed")

        result = await SearchEngine(diamond_provider, progress_interval=1).run("A", "E", on_progress=explode)

        assert result.path[-1] == "E"

    @pytest.mark.asyncio
    async def test_cancel_event_stops_search(self):
        cancel = asyncio.Event()

        class CancellingProvider(FakeLinkProvider):
            async def get_outbound_links(self, title):
                cancel.set()
                return await super().get_outbound_links(title)

        provider = CancellingProvider({"A": ["B"], "B": ["C"]})

        with pytest.raises(SearchCancelled) as exc_info:
            await SearchEngine(provider).run("A", "C", cancel_event=cancel)

        assert exc_info.value.visited_count == 1
        assert provider.calls == ["A"]

    @pytest.mark.asyncio
    async def test_cancel_interrupts_slow_fetch(self):
        cancel = asyncio.Event()
        provider = FakeLinkProvider({"A": ["B"], "B": ["C"]}, delays={"A": 2.0})
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, cancel.set)

        started = loop.time()
        with pytest.raises(SearchCancelled) as exc_info:
            await SearchEngine(provider).run("A", "C", cancel_event=cancel)

        assert loop.time() - started < 1.0
        assert exc_info.value.visited_count == 1
        assert provider.calls == ["A"]

    @pytest.mark.asyncio
    async def test_run_is_not_reentrant(self):
        release = asyncio.Event()

        class BlockingProvider(FakeLinkProvider):
            async def get_outbound_links(self, title):
                await release.wait()
                return await super().get_outbound_links(title)

        engine = SearchEngine(BlockingProvider({"A": ["B"]}))
        first = asyncio.create_task(engine.run("A", "B"))
        await asyncio.sleep(0)

        with pytest.raises(RuntimeError):
            await engine.run("A", "B")

        release.set()
        result = await first
        assert result.path == ("A", "B")

        # a finished engine can run again
        assert (await engine.run("A", "A")).path == ("A",)


def test_reconstruct_path_walks_to_root():
    records = [
        DiscoveryRecord("A", None, 0),
        DiscoveryRecord("B", 0, 1),
        DiscoveryRecord("C", 0, 1),
        DiscoveryRecord("D", 2, 2),
    ]

    assert reconstruct_path(records, 3) == ["A", "C", "D"]
    assert reconstruct_path(records, 0) == ["A"]
