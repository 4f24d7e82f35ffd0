"""Pytest configuration and fixtures"""
import asyncio

import pytest
from fastapi.testclient import TestClient

from app.exceptions import ProviderFailure
from app.main import app, get_wikipedia_client, limiter
from app.models import PageInfo, TitleSuggestion


class FakeLinkProvider:
    """In-memory link graph keyed by normalized title, recording every lookup"""

    def __init__(self, graph, failing=(), delays=None):
        self.graph = graph
        self.failing = set(failing)
        self.delays = delays or {}
        self.calls = []

    async def get_outbound_links(self, title):
        self.calls.append(title)
        if title in self.delays:
            await asyncio.sleep(self.delays[title])
        if title in self.failing:
            raise ProviderFailure(f"links for {title} unavailable")
        return list(self.graph.get(title, []))


class FakeWikipediaClient(FakeLinkProvider):
    """Stands in for WikipediaClient in API tests"""

    def __init__(self, graph, failing=(), random_titles=(), suggestions=(), pages=None):
        super().__init__(graph, failing)
        self.random_titles = list(random_titles)
        self.suggestions = list(suggestions)
        self.pages = pages or {}

    async def get_random_title(self):
        if not self.random_titles:
            raise ProviderFailure("Could not fetch random article")
        return self.random_titles.pop(0)

    async def search_titles(self, query, limit=10):
        return [s for s in self.suggestions if query.lower() in s.title.lower()][:limit]

    async def get_page_info(self, title):
        return self.pages.get(title)


DIAMOND = {
    "A": ["B", "C"],
    "B": ["D"],
    "C": ["D"],
    "D": ["E"],
}


@pytest.fixture
def diamond_provider():
    return FakeLinkProvider(DIAMOND)


@pytest.fixture
def fake_client():
    return FakeWikipediaClient(
        {
            "Cat": ["Mammal", "Dog"],
            "Mammal": ["Whale", "Dog"],
            "Dog": ["Wolf"],
            "Wolf": ["Grey wolf"],
        },
        random_titles=["Tea", "Volcano"],
        suggestions=[
            TitleSuggestion(id=1, key="Cat", title="Cat", excerpt="Small domesticated carnivore"),
            TitleSuggestion(id=2, key="Catalonia", title="Catalonia"),
            TitleSuggestion(id=3, key="Dog", title="Dog"),
        ],
        pages={
            "Cat": PageInfo(title="Cat", extract="The cat is a small mammal.",
                            url="https://en.wikipedia.org/wiki/Cat"),
            "Dog": PageInfo(title="Dog", extract="The dog is a domesticated descendant of the wolf.",
                            thumbnail="https://upload.wikimedia.org/dog.jpg",
                            url="https://en.wikipedia.org/wiki/Dog"),
        },
    )


@pytest.fixture
def client(fake_client):
    """Test client for the FastAPI app, wired to the fake Wikipedia client"""
    previous = limiter.enabled
    limiter.enabled = False
    app.dependency_overrides[get_wikipedia_client] = lambda: fake_client
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.enabled = previous
