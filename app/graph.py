"""
Projection of a finished search into a graph the front end can draw
"""

from typing import TYPE_CHECKING, List, Sequence

from app.models import GraphData, GraphEdge, GraphNode

if TYPE_CHECKING:
    from app.search import DiscoveryRecord


def project_graph(records: Sequence["DiscoveryRecord"], path: List[str], start: str, end: str) -> GraphData:
    """
    Build nodes and edges from every record created during a search

    Every record becomes a node and every record with a predecessor becomes an
    edge from that predecessor, so the graph is exactly the BFS tree that was
    explored. Nothing is fetched.

    Args:
        records: Discovery records in creation order
        path: Reconstructed path keys, start first
        start: Normalized start key
        end: Normalized end key

    Returns:
        GraphData with path membership flagged on nodes and edges
    """
    path_keys = set(path)
    path_steps = set(zip(path, path[1:]))

    nodes = [
        GraphNode(
            id=record.key,
            title=record.key,
            depth=record.depth,
            is_start=record.key == start,
            is_end=record.key == end,
            is_in_path=record.key in path_keys,
        )
        for record in records
    ]

    edges = []
    for record in records:
        if record.predecessor is None:
            continue
        source = records[record.predecessor].key
        edges.append(GraphEdge(
            source=source,
            target=record.key,
            is_in_path=(source, record.key) in path_steps,
        ))

    return GraphData(nodes=tuple(nodes), edges=tuple(edges))
