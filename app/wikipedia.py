"""
Wikipedia API client

Implements the lookups the search and the front end depend on: outbound
article links, random articles, title suggestions and article summaries.
All requests go through one shared httpx.AsyncClient for connection pooling.
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

import httpx

from app.config import (
    EXCLUDED_PREFIXES,
    HTTP_CONNECT_TIMEOUT,
    HTTP_READ_TIMEOUT,
    LINKS_MAX_BATCHES,
    USER_AGENT,
    WIKIPEDIA_API_URL,
    WIKIPEDIA_REST_URL,
)
from app.exceptions import ProviderFailure
from app.models import PageInfo, TitleSuggestion

logger = logging.getLogger(__name__)


def retry_on_failure(max_retries: int = 3, backoff_factor: float = 0.5):
    """
    Decorator to retry async functions on transient failures

    Retries on httpx.TimeoutException, httpx.ConnectError and httpx.ReadError
    with exponential backoff. Anything else, HTTP status errors included, is
    raised straight away.
    """
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as e:
                    if attempt == max_retries - 1:
                        logger.error(f"API call failed after {max_retries} attempts", extra={"error": str(e)})
                        raise

                    # 0.5s, 1s, 2s
                    sleep_time = backoff_factor * (2 ** attempt)
                    logger.warning(
                        "API call failed, retrying",
                        extra={
                            "error_type": type(e).__name__,
                            "retry_delay": sleep_time,
                            "attempt": attempt + 1,
                            "max_retries": max_retries
                        }
                    )
                    await asyncio.sleep(sleep_time)

        return wrapper
    return decorator


_shared_http_client: Optional[httpx.AsyncClient] = None


async def get_shared_http_client() -> httpx.AsyncClient:
    """
    Get or create the shared HTTP client for Wikipedia API requests

    Returns:
        httpx.AsyncClient: The shared HTTP client instance
    """
    global _shared_http_client

    if _shared_http_client is None:
        timeout = httpx.Timeout(
            connect=HTTP_CONNECT_TIMEOUT,
            read=HTTP_READ_TIMEOUT,
            write=5.0,
            pool=5.0
        )
        limits = httpx.Limits(
            max_connections=100,
            max_keepalive_connections=20
        )
        _shared_http_client = httpx.AsyncClient(
            timeout=timeout,
            limits=limits,
            headers={'User-Agent': USER_AGENT},
            http2=True
        )

    return _shared_http_client


async def close_shared_http_client():
    global _shared_http_client
    if _shared_http_client is not None:
        await _shared_http_client.aclose()
        _shared_http_client = None


def is_article_title(title: str) -> bool:
    return not title.startswith(EXCLUDED_PREFIXES)


class WikipediaClient:
    """
    Thin async wrapper over the MediaWiki action API and REST title search

    Use as an async context manager. Without an explicit client it borrows the
    shared one and leaves it open on exit.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None,
                 api_url: str = WIKIPEDIA_API_URL, rest_url: str = WIKIPEDIA_REST_URL,
                 max_batches: int = LINKS_MAX_BATCHES):
        self.client = client
        self.api_url = api_url
        self.rest_url = rest_url
        self.max_batches = max_batches

    async def __aenter__(self):
        if self.client is None:
            self.client = await get_shared_http_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    @retry_on_failure(max_retries=3, backoff_factor=0.5)
    async def _query(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {
            "action": "query",
            "format": "json",
            "formatversion": 2,
            **params
        }
        response = await self.client.get(self.api_url, params=params)
        response.raise_for_status()
        return response.json()

    async def get_outbound_links(self, title: str) -> List[str]:
        """
        Get the article links of a page, in the order the API lists them

        Follows continuation for pages with more than 500 links, up to
        max_batches requests. Links into meta namespaces are dropped. A
        redirect title yields the links of its target page.

        Raises:
            ProviderFailure: The request failed or the response was not JSON
        """
        # A redirect title expands to its target's links; the node key stays the requested title
        params = {
            "titles": title,
            "redirects": 1,
            "prop": "links",
            "pllimit": "max",
            "plnamespace": 0,
        }
        links: List[str] = []

        try:
            for _ in range(self.max_batches):
                data = await self._query(params)
                pages = data.get("query", {}).get("pages", [])
                if not pages or "missing" in pages[0] or "invalid" in pages[0]:
                    logger.info(f"Page '{title}' does not exist")
                    return []

                links.extend(link["title"] for link in pages[0].get("links", []))

                if "continue" not in data:
                    break
                params = {**params, **data["continue"]}
            else:
                logger.warning(f"Stopped fetching links for '{title}' after {self.max_batches} batches")
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderFailure(f"Could not fetch links for '{title}': {e}") from e

        return [link for link in links if is_article_title(link)]

    async def get_random_title(self) -> str:
        """
        Get the title of a random article

        Raises:
            ProviderFailure: The request failed or returned nothing
        """
        try:
            data = await self._query({"list": "random", "rnnamespace": 0, "rnlimit": 1})
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderFailure(f"Could not fetch random article: {e}") from e

        random_pages = data.get("query", {}).get("random", [])
        if not random_pages:
            raise ProviderFailure("Could not fetch random article")
        return random_pages[0]["title"]

    async def search_titles(self, query: str, limit: int = 10) -> List[TitleSuggestion]:
        """Title suggestions for autocompletion; empty on failure"""
        if not query:
            return []

        try:
            response = await self.client.get(
                f"{self.rest_url}/search/title",
                params={"q": query, "limit": limit}
            )
            response.raise_for_status()
            pages = response.json().get("pages") or []
            return [TitleSuggestion.model_validate(page) for page in pages]
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error searching titles for '{query}': {e}")
            return []

    async def get_page_info(self, title: str) -> Optional[PageInfo]:
        """Summary, thumbnail and URL of an article, or None if it can't be found"""
        params = {
            "titles": title,
            "prop": "extracts|pageimages|info",
            "exintro": 1,
            "explaintext": 1,
            "exsentences": 2,
            "piprop": "thumbnail",
            "pithumbsize": 300,
            "inprop": "url",
            "redirects": 1,
        }

        try:
            data = await self._query(params)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching page info for '{title}': {e}")
            return None

        pages = data.get("query", {}).get("pages", [])
        if not pages or "missing" in pages[0] or "invalid" in pages[0]:
            return None

        page = pages[0]
        return PageInfo(
            title=page["title"],
            extract=page.get("extract") or "",
            thumbnail=(page.get("thumbnail") or {}).get("source"),
            url=page.get("fullurl") or f"https://en.wikipedia.org/wiki/{page['title'].replace(' ', '_')}",
        )
