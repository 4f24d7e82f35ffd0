"""
Wikipedia Six Degrees - FastAPI application

Exposes the shortest-path search as a blocking JSON endpoint and as a
Server-Sent Events stream with progress, plus the lookups the front end needs
to pick articles and decorate a found path.
"""
import asyncio
import json
import logging
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.config import (
    API_TITLE,
    API_VERSION,
    CORS_ORIGINS,
    LOG_LEVEL,
    RATE_LIMIT_ENABLED,
    SEARCH_TIMEOUT_SECONDS,
)
from app.exceptions import InvalidInput, PathNotFound, ProviderFailure, SearchCancelled
from app.models import (
    PageInfoResponse,
    ProgressEvent,
    RandomTitlesResponse,
    SearchErrorResponse,
    SearchRequest,
    SearchResponse,
    SuggestionsResponse,
)
from app.search import SearchEngine
from app.wikipedia import WikipediaClient, close_shared_http_client

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

app = FastAPI(title=API_TITLE, version=API_VERSION)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


@app.on_event("shutdown")
async def shutdown_http_client():
    """Close the shared HTTP client on application shutdown"""
    await close_shared_http_client()


async def get_wikipedia_client():
    async with WikipediaClient() as client:
        yield client


def sse(event_type: str, data) -> str:
    return f"data: {json.dumps({'type': event_type, 'data': data})}\n\n"


def success_response(result) -> SearchResponse:
    return SearchResponse(**result.model_dump(), hops=len(result.path) - 1)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/find-path")
@limiter.limit("10/minute")
async def find_path_endpoint(
    request: Request,
    search_request: SearchRequest,
    client: WikipediaClient = Depends(get_wikipedia_client),
):
    """
    Find the shortest path between two Wikipedia pages (non-streaming version)

    Returns a SearchResponse with the path and the explored graph, or a
    SearchErrorResponse when no path exists within max_depth hops or the
    search runs past the timeout.
    """
    logger.info(
        "Starting path search",
        extra={
            "start_term": search_request.start,
            "end_term": search_request.end,
            "timeout": SEARCH_TIMEOUT_SECONDS
        }
    )

    engine = SearchEngine(client)
    # Timing out goes through the cancel event so the pages checked so far are reported
    timeout_event = asyncio.Event()
    timer = asyncio.get_running_loop().call_later(SEARCH_TIMEOUT_SECONDS, timeout_event.set)
    try:
        result = await engine.run(
            search_request.start,
            search_request.end,
            max_depth=search_request.max_depth,
            cancel_event=timeout_event
        )
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PathNotFound as e:
        return SearchErrorResponse(error=str(e), error_type="path_not_found", visited_count=e.visited_count)
    except SearchCancelled as e:
        return SearchErrorResponse(
            error=f"Search timeout exceeded ({SEARCH_TIMEOUT_SECONDS} seconds). Try articles that are closer together.",
            error_type="timeout",
            visited_count=e.visited_count,
        )
    finally:
        timer.cancel()

    return success_response(result)


@app.post("/find-path-stream")
@limiter.limit("5/minute")
async def find_path_stream(
    request: Request,
    search_request: SearchRequest,
    client: WikipediaClient = Depends(get_wikipedia_client),
):
    """
    Stream a path search using Server-Sent Events

    Emits start, progress, complete or error, and finally done. If the client
    disconnects the search is cancelled.
    """
    logger.info(
        "Starting streaming path search",
        extra={"start_term": search_request.start, "end_term": search_request.end}
    )

    async def generate_events():
        event_queue: asyncio.Queue = asyncio.Queue()
        cancel_event = asyncio.Event()
        engine = SearchEngine(client)

        yield sse('start', {
            'start': search_request.start,
            'end': search_request.end,
            'maxDepth': search_request.max_depth
        })

        def on_progress(visited_count, current_depth, current_node):
            event = ProgressEvent(
                visited_count=visited_count,
                current_depth=current_depth,
                current_node=current_node
            )
            event_queue.put_nowait(('progress', event.model_dump(by_alias=True)))

        async def run_search():
            try:
                result = await engine.run(
                    search_request.start,
                    search_request.end,
                    max_depth=search_request.max_depth,
                    on_progress=on_progress,
                    cancel_event=cancel_event
                )
                event_queue.put_nowait(('complete', success_response(result).model_dump(by_alias=True)))
            except InvalidInput as e:
                event_queue.put_nowait(('error', {'message': str(e), 'errorType': 'invalid_input'}))
            except PathNotFound as e:
                event_queue.put_nowait(('error', {
                    'message': str(e),
                    'errorType': 'path_not_found',
                    'visitedCount': e.visited_count
                }))
            except SearchCancelled as e:
                event_queue.put_nowait(('error', {
                    'message': str(e),
                    'errorType': 'cancelled',
                    'visitedCount': e.visited_count
                }))
            except Exception as e:
                logger.error(f"Streaming search failed: {e}", exc_info=True)
                event_queue.put_nowait(('error', {'message': str(e), 'errorType': 'internal'}))
            finally:
                event_queue.put_nowait(None)

        search_task = asyncio.create_task(run_search())

        try:
            while True:
                try:
                    event = await asyncio.wait_for(event_queue.get(), timeout=0.5)
                except asyncio.TimeoutError:
                    yield sse('keepalive', {})
                    continue
                if event is None:
                    break
                yield sse(*event)

            await search_task

        except asyncio.CancelledError:
            logger.info("Client disconnected, cancelling search task")
            cancel_event.set()
            search_task.cancel()
            try:
                await search_task
            except asyncio.CancelledError:
                logger.info("Search task successfully cancelled")
            raise

        yield sse('done', {})

    return StreamingResponse(
        generate_events(),
        media_type='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no'
        }
    )


@app.get("/api/random", response_model=RandomTitlesResponse)
@limiter.limit("30/minute")
async def random_titles(
    request: Request,
    count: int = Query(default=1, ge=1, le=10),
    client: WikipediaClient = Depends(get_wikipedia_client),
):
    """Random article titles, e.g. count=2 for a random challenge"""
    try:
        titles = [await client.get_random_title() for _ in range(count)]
    except ProviderFailure as e:
        logger.error(f"Random article lookup failed: {e}")
        raise HTTPException(status_code=502, detail="Could not fetch random article")
    return RandomTitlesResponse(titles=titles)


@app.get("/api/suggest", response_model=SuggestionsResponse)
@limiter.limit("30/minute")
async def suggest_titles(
    request: Request,
    q: str = Query(..., min_length=2, max_length=255),
    limit: int = Query(default=10, ge=1, le=20),
    client: WikipediaClient = Depends(get_wikipedia_client),
):
    """Title suggestions for the article pickers"""
    pages = await client.search_titles(q.strip(), limit=limit)
    return SuggestionsResponse(pages=pages)


@app.get("/api/page-info", response_model=PageInfoResponse)
@limiter.limit("30/minute")
async def page_info(
    request: Request,
    titles: List[str] = Query(...),
    client: WikipediaClient = Depends(get_wikipedia_client),
):
    """
    Summaries for each step of a path

    Pages are fetched concurrently and returned in request order; a page
    that can't be found is null.
    """
    if len(titles) > 20:
        raise HTTPException(status_code=422, detail="At most 20 titles per request")
    pages = await asyncio.gather(*(client.get_page_info(title) for title in titles))
    return PageInfoResponse(pages=list(pages))


if __name__ == '__main__':
    import os
    import uvicorn
    port = int(os.environ.get('PORT', 8000))
    uvicorn.run(app, host='0.0.0.0', port=port)
