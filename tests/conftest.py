"""Shared test fixtures and helpers for taggraph tests."""

import pytest

from taggraph.graph import RelationGraph
from taggraph.models import Edge, Entity, GraphNode, RelationKind, Tag, TagType


# --- Helper Functions (not fixtures) ---


def make_entity(
    id: str,
    text: str,
    tags: list[Tag] | None = None,
    phonetic: str | None = None,
    meaning: str | None = None,
) -> Entity:
    """Shorthand for creating an Entity."""
    return Entity(id=id, text=text, phonetic=phonetic, meaning=meaning, tags=tags or [])


def make_tag(
    type: str,
    value: str = "",
    latitude: float | None = None,
    longitude: float | None = None,
) -> Tag:
    """Shorthand for creating a Tag; type accepts ``memory`` or ``custom:key``."""
    return Tag(
        type=TagType.model_validate(type),
        value=value,
        latitude=latitude,
        longitude=longitude,
    )


def make_node(id: str, label: str | None = None) -> GraphNode:
    return GraphNode(id=id, label=label or id)


def make_edge(
    source: str,
    target: str,
    weight: float = 0.5,
    kind: RelationKind = RelationKind.CUSTOM,
) -> Edge:
    return Edge(source=source, target=target, kind=kind, weight=weight)


def make_graph(node_ids: list[str], edges: list[tuple]) -> RelationGraph:
    """Graph from node IDs and (source, target[, weight[, kind]]) tuples."""
    return RelationGraph.from_elements(
        [make_node(nid) for nid in node_ids],
        [make_edge(*args) for args in edges],
    )


def ids(nodes) -> set[str]:
    return {node.id for node in nodes}


# --- Fixtures ---


@pytest.fixture
def chain_graph():
    """a - b - c - d, plus isolated e."""
    return make_graph(
        ["a", "b", "c", "d", "e"],
        [("a", "b", 0.9), ("b", "c", 0.5), ("c", "d", 0.2)],
    )


@pytest.fixture
def vocabulary():
    """Small entity set exercising every edge pass."""
    return [
        make_entity("w1", "color", tags=[make_tag("custom:root", "col"), make_tag("memory", "paint")]),
        make_entity("w2", "colour", tags=[make_tag("custom:root", "col"), make_tag("memory", "paint")]),
        make_entity("w3", "xyz", tags=[make_tag("shape", "zig")]),
        make_entity(
            "w4", "harbor",
            tags=[make_tag("location", "pier", latitude=37.8080, longitude=-122.4177)],
        ),
        make_entity(
            "w5", "quay",
            tags=[make_tag("location", "dock", latitude=37.8089, longitude=-122.4177)],
        ),
    ]
