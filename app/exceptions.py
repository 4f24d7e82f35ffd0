"""
Errors raised by the path search and its collaborators
"""


class SearchError(Exception):
    """Base class for conditions that end a search"""


class InvalidInput(SearchError):
    """A title normalized to an empty key, or the depth ceiling is negative"""


class PathNotFound(SearchError):
    """The frontier ran dry before the goal was discovered"""

    def __init__(self, start: str, goal: str, max_depth: int, visited_count: int):
        self.start = start
        self.goal = goal
        self.max_depth = max_depth
        self.visited_count = visited_count
        super().__init__(
            f'No path found between "{start}" and "{goal}" within {max_depth} degrees '
            f'({visited_count} pages checked)'
        )


class SearchCancelled(SearchError):
    """The caller cancelled the search before it finished"""

    def __init__(self, visited_count: int):
        self.visited_count = visited_count
        super().__init__(f"Search cancelled after {visited_count} pages checked")


class ProviderFailure(Exception):
    """A Wikipedia lookup failed after retries"""
