from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Tuple
import re

from app.config import MAX_DEPTH, MAX_DEPTH_LIMIT


class CamelModel(BaseModel):
    """Immutable model serialized with camelCase keys for the front end"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class SearchRequest(BaseModel):
    """Request model for path finding"""
    start: str = Field(..., min_length=1, max_length=255, description="Starting Wikipedia page")
    end: str = Field(..., min_length=1, max_length=255, description="Target Wikipedia page")
    max_depth: int = Field(default=MAX_DEPTH, ge=0, le=MAX_DEPTH_LIMIT, description="Maximum number of hops")

    @field_validator('start', 'end')
    @classmethod
    def validate_search_term(cls, v: str) -> str:
        """
        Strip whitespace and reject markup that has no business in a title
        """
        v = v.strip()

        if len(v) < 1:
            raise ValueError("Search term cannot be empty")

        malicious_patterns = [
            r'<script',
            r'javascript:',
            r'onerror=',
            r'onclick=',
        ]
        for pattern in malicious_patterns:
            if re.search(pattern, v, re.IGNORECASE):
                raise ValueError("Invalid characters detected in search term")

        return v


class GraphNode(CamelModel):
    """Graph node for visualization"""
    id: str
    title: str
    depth: int
    is_start: bool = False
    is_end: bool = False
    is_in_path: bool = False


class GraphEdge(CamelModel):
    """Graph edge for visualization"""
    source: str
    target: str
    is_in_path: bool = False


class GraphData(CamelModel):
    """Subgraph actually explored during one search"""
    nodes: Tuple[GraphNode, ...] = ()
    edges: Tuple[GraphEdge, ...] = ()


class SearchResult(CamelModel):
    """Outcome of one successful search"""
    start: str
    end: str
    path: Tuple[str, ...]
    visited_count: int
    elapsed_ms: int
    max_depth_reached: int
    provider_failures: int = 0
    graph: GraphData


class SearchResponse(SearchResult):
    """Response model for successful path finding"""
    success: bool = True
    hops: int


class SearchErrorResponse(CamelModel):
    """Response model for failed path finding"""
    success: bool = False
    error: str
    error_type: str
    visited_count: int = 0


class ProgressEvent(CamelModel):
    """Snapshot reported while a search is running"""
    visited_count: int
    current_depth: int
    current_node: str


class Thumbnail(CamelModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class TitleSuggestion(CamelModel):
    """One entry of the title search used for autocompletion"""
    id: int
    key: str
    title: str
    excerpt: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[Thumbnail] = None


class PageInfo(CamelModel):
    """Article metadata shown next to each step of a path"""
    title: str
    extract: str = ""
    thumbnail: Optional[str] = None
    url: str


class RandomTitlesResponse(BaseModel):
    titles: List[str]


class SuggestionsResponse(BaseModel):
    pages: List[TitleSuggestion]


class PageInfoResponse(BaseModel):
    pages: List[Optional[PageInfo]]
