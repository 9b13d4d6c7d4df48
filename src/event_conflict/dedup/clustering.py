"""Graph-based duplicate clustering using networkx connected components.

Nodes are event positions in the input list; edges are exact or
semantic duplicate matches weighted by similarity.  Connected components
become duplicate clusters, so membership is transitive: two events can
share a cluster through a chain of matches without matching each other.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import networkx as nx


@dataclass(frozen=True)
class DuplicateEdge:
    """A pairwise duplicate match between two input positions."""

    index_a: int
    index_b: int
    similarity: float
    method: str  # "exact" or "semantic"


@dataclass
class IndexCluster:
    """A connected component of the duplicate graph.

    Attributes:
        members: Input positions in ascending order.
        best_similarity: Strongest edge weight touching each member.
        methods: Edge methods seen inside the component.
    """

    members: list[int]
    best_similarity: dict[int, float] = field(default_factory=dict)
    methods: set[str] = field(default_factory=set)

    @property
    def method(self) -> str:
        if not self.methods:
            return "single"
        if len(self.methods) > 1:
            return "mixed"
        return next(iter(self.methods))


def cluster_duplicates(edges: list[DuplicateEdge], event_count: int) -> list[IndexCluster]:
    """Group input positions into duplicate clusters.

    Args:
        edges: Pairwise duplicate matches.
        event_count: Number of input events (every position gets a cluster,
            singletons included).

    Returns:
        Clusters ordered by their lowest member position.
    """
    G = nx.Graph()
    G.add_nodes_from(range(event_count))

    for edge in edges:
        # Keep the strongest match if a pair was matched twice
        if G.has_edge(edge.index_a, edge.index_b):
            if G[edge.index_a][edge.index_b]["weight"] >= edge.similarity:
                continue
        G.add_edge(edge.index_a, edge.index_b, weight=edge.similarity, method=edge.method)

    clusters: list[IndexCluster] = []
    for component in nx.connected_components(G):
        members = sorted(component)
        cluster = IndexCluster(members=members)
        for node in members:
            weights = [data["weight"] for _, _, data in G.edges(node, data=True)]
            if weights:
                cluster.best_similarity[node] = min(1.0, max(0.0, max(weights)))
        for _, _, data in G.subgraph(members).edges(data=True):
            cluster.methods.add(data["method"])
        clusters.append(cluster)

    clusters.sort(key=lambda c: c.members[0])
    return clusters
