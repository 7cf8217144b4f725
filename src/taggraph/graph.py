"""Adjacency-indexed relation graph and its query algorithms.

Edges are stored with a direction but every query treats the graph as
undirected. Both incidence indices are kept so lookups from either end
are O(1):
- _outgoing: node ID -> edges whose source is the node
- _incoming: node ID -> edges whose target is the node
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from .constants import (
    DEFAULT_CONNECTION_LIMIT,
    DEFAULT_MIN_CLUSTER_SIZE,
    DEFAULT_TRAVERSAL_DEPTH,
)
from .models import (
    Edge,
    GraphNode,
    GraphStatistics,
    RelationKind,
    VisualizationData,
    VizEdge,
    VizNode,
)

if TYPE_CHECKING:
    from .tag_names import TagNameResolver

logger = logging.getLogger(__name__)


@dataclass
class RelationGraph:
    """In-memory graph of GraphNodes and typed, weighted Edges.

    Built wholesale by GraphBuilder; never patched after publication.
    """

    nodes: dict[str, GraphNode] = field(default_factory=dict)  # id -> GraphNode
    edges: list[Edge] = field(default_factory=list)

    _outgoing: dict[str, list[Edge]] = field(default_factory=dict)
    _incoming: dict[str, list[Edge]] = field(default_factory=dict)

    @classmethod
    def from_elements(
        cls, nodes: Iterable[GraphNode], edges: Iterable[Edge] = ()
    ) -> RelationGraph:
        """Build a graph from nodes and edges (edges to unknown nodes dropped)."""
        graph = cls()
        for node in nodes:
            graph.add_node(node)
        for edge in edges:
            graph.add_edge(edge)
        return graph

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    # --- Mutation (build time only) ---

    def add_node(self, node: GraphNode) -> None:
        """Insert or replace a node. O(1)."""
        self.nodes[node.id] = node
        self._outgoing.setdefault(node.id, [])
        self._incoming.setdefault(node.id, [])

    def add_edge(self, edge: Edge) -> bool:
        """Insert an edge. Amortized O(1).

        Edges referencing a node that is not in the graph are dropped.

        Returns:
            True if the edge was stored
        """
        missing = [nid for nid in (edge.source, edge.target) if nid not in self.nodes]
        if missing:
            logger.warning(
                f"Dropping {edge.kind.value} edge {edge.id}: unknown node(s) {missing}"
            )
            return False

        self.edges.append(edge)
        self._outgoing[edge.source].append(edge)
        self._incoming[edge.target].append(edge)
        return True

    # --- Lookups ---

    def node(self, node_id: str) -> GraphNode | None:
        return self.nodes.get(node_id)

    def get_outgoing_edges(self, node_id: str) -> list[Edge]:
        """O(1) lookup of edges where node is source."""
        return self._outgoing.get(node_id, [])

    def get_incoming_edges(self, node_id: str) -> list[Edge]:
        """O(1) lookup of edges where node is target."""
        return self._incoming.get(node_id, [])

    def edges_for(self, node_id: str) -> list[Edge]:
        """All edges touching a node (outgoing first, then incoming)."""
        return self.get_outgoing_edges(node_id) + self.get_incoming_edges(node_id)

    def _neighbor_ids(self, node_id: str) -> list[str]:
        """Distinct neighbor IDs in edge insertion order.

        Ordered (rather than a set) so traversals are deterministic.
        """
        seen: dict[str, None] = {}
        for edge in self.get_outgoing_edges(node_id):
            if edge.target != node_id:
                seen.setdefault(edge.target)
        for edge in self.get_incoming_edges(node_id):
            if edge.source != node_id:
                seen.setdefault(edge.source)
        return list(seen)

    # --- Queries ---

    def neighbors(self, node_id: str) -> set[GraphNode]:
        """Nodes at the other end of any edge touching node_id."""
        return {self.nodes[nid] for nid in self._neighbor_ids(node_id)}

    def connected_nodes(
        self, node_id: str, max_depth: int = DEFAULT_TRAVERSAL_DEPTH
    ) -> list[GraphNode]:
        """Depth-bounded depth-first traversal from node_id.

        The start node (depth 0) is excluded. Each node is visited at most
        once, so a node first reached through a longer branch is not
        revisited from a shorter one.

        Args:
            node_id: Start node
            max_depth: Maximum hops from the start node

        Returns:
            Nodes in visit order
        """
        if max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        if node_id not in self.nodes or max_depth == 0:
            return []

        visited = {node_id}
        result: list[GraphNode] = []
        # Stack of (node ID, depth, remaining neighbors)
        stack = [(node_id, 0, iter(self._neighbor_ids(node_id)))]

        while stack:
            _, depth, pending = stack[-1]
            next_id = next(pending, None)
            if next_id is None:
                stack.pop()
                continue
            if next_id in visited:
                continue

            visited.add(next_id)
            result.append(self.nodes[next_id])

            if depth + 1 < max_depth:
                stack.append((next_id, depth + 1, iter(self._neighbor_ids(next_id))))

        return result

    def find_path(self, source: str, target: str) -> list[GraphNode] | None:
        """First path found by depth-first search, or None if unreachable.

        The path is not guaranteed to be the shortest.
        """
        if source not in self.nodes or target not in self.nodes:
            return None
        if source == target:
            return [self.nodes[source]]

        visited = {source}
        path = [source]
        stack = [iter(self._neighbor_ids(source))]

        while stack:
            next_id = next(stack[-1], None)
            if next_id is None:
                stack.pop()
                path.pop()
                continue
            if next_id in visited:
                continue

            visited.add(next_id)
            path.append(next_id)
            if next_id == target:
                return [self.nodes[nid] for nid in path]
            stack.append(iter(self._neighbor_ids(next_id)))

        return None

    def strongest_connections(
        self, node_id: str, limit: int = DEFAULT_CONNECTION_LIMIT
    ) -> list[tuple[GraphNode, float]]:
        """A node's connections sorted by edge weight, strongest first.

        Parallel edges to the same neighbor each count as a connection.

        Returns:
            List of (neighbor node, edge weight) tuples
        """
        if limit < 0:
            raise ValueError("limit must be non-negative")

        connections = [
            (edge.other_end(node_id), edge.weight)
            for edge in self.edges_for(node_id)
        ]
        connections.sort(key=lambda x: x[1], reverse=True)
        return [
            (self.nodes[nid], weight)
            for nid, weight in connections[:limit]
            if nid in self.nodes
        ]

    def find_clusters(
        self, min_size: int = DEFAULT_MIN_CLUSTER_SIZE
    ) -> list[list[GraphNode]]:
        """Connected components (breadth-first), dropping those below min_size."""
        visited: set[str] = set()
        clusters: list[list[GraphNode]] = []

        for start_id in self.nodes:
            if start_id in visited:
                continue

            cluster: list[GraphNode] = []
            queue = deque([start_id])
            visited.add(start_id)

            while queue:
                current = queue.popleft()
                cluster.append(self.nodes[current])
                for neighbor in self._neighbor_ids(current):
                    if neighbor not in visited:
                        visited.add(neighbor)
                        queue.append(neighbor)

            if len(cluster) >= min_size:
                clusters.append(cluster)

        return clusters

    @property
    def statistics(self) -> GraphStatistics:
        node_count = len(self.nodes)
        edge_count = len(self.edges)
        average_degree = (2 * edge_count / node_count) if node_count > 0 else 0.0
        distribution = Counter(edge.kind for edge in self.edges)
        return GraphStatistics(
            node_count=node_count,
            edge_count=edge_count,
            average_degree=average_degree,
            edge_kind_distribution=dict(distribution),
        )

    # --- Views and export ---

    def subgraph(self, include_kinds: Iterable[RelationKind]) -> RelationGraph:
        """Same nodes, only the edges of the given kinds."""
        kinds = set(include_kinds)
        return RelationGraph.from_elements(
            self.nodes.values(),
            (edge for edge in self.edges if edge.kind in kinds),
        )

    def export_for_visualization(
        self,
        include_kinds: Iterable[RelationKind] | None = None,
        name_resolver: TagNameResolver | None = None,
    ) -> VisualizationData:
        """Flatten to a renderer-independent node/edge list.

        Args:
            include_kinds: Relation kinds to keep (None = all)
            name_resolver: Optional tag-name lookup for group labels

        Returns:
            VisualizationData with primitive-only metadata
        """
        kinds = set(include_kinds) if include_kinds is not None else set(RelationKind)

        viz_nodes = []
        for node in self.nodes.values():
            metadata: dict = {
                "subtitle": node.subtitle,
                "phonetic": node.phonetic,
                "meaning": node.meaning,
                "tag_count": node.tag_count,
            }
            if name_resolver is not None:
                metadata["group_name"] = name_resolver.for_identifier(node.group)
            viz_nodes.append(VizNode(
                id=node.id,
                label=node.label,
                group=node.group,
                kind=node.kind,
                metadata=metadata,
            ))

        viz_edges = [
            VizEdge(
                source=edge.source,
                target=edge.target,
                weight=edge.weight,
                type=edge.kind.value,
                metadata=dict(edge.metadata),
            )
            for edge in self.edges
            if edge.kind in kinds
        ]

        return VisualizationData(nodes=viz_nodes, edges=viz_edges)

    # --- Debug ---

    def check_index_consistency(self) -> list[str]:
        """Validate that indices match the edge list. Returns list of errors.

        Debug/test utility; an empty list means indices are consistent.
        """
        errors: list[str] = []

        for edge in self.edges:
            if edge.source not in self.nodes or edge.target not in self.nodes:
                errors.append(f"edge {edge.id} references unknown node")

        expected_outgoing: dict[str, list[Edge]] = {}
        expected_incoming: dict[str, list[Edge]] = {}
        for edge in self.edges:
            expected_outgoing.setdefault(edge.source, []).append(edge)
            expected_incoming.setdefault(edge.target, []).append(edge)

        for name, expected, actual in (
            ("_outgoing", expected_outgoing, self._outgoing),
            ("_incoming", expected_incoming, self._incoming),
        ):
            for node_id in set(expected) | set(actual):
                want = {id(e) for e in expected.get(node_id, [])}
                got = {id(e) for e in actual.get(node_id, [])}
                if want != got:
                    errors.append(
                        f"{name}[{node_id}] mismatch: expected {len(want)} edges, got {len(got)}"
                    )

        return errors
