"""Relation graph engine for tagged entities.

Public API:
- GraphBuilder / BuilderConfig: infer a RelationGraph from an entity snapshot
- RelationGraph: neighbor, traversal, path, cluster and ranking queries
- LayoutSimulator / LayoutConfig: force-directed 2D layout
- GraphService / LayoutLoop: rebuild orchestration and the layout tick loop
- SimilarityScorer, string_similarity, entity_similarity: similarity scoring
"""

from .builder import BuilderConfig, GraphBuilder
from .graph import RelationGraph
from .layout import LayoutConfig, LayoutSimulator, LayoutSnapshot, Vec2
from .models import (
    Edge,
    Entity,
    GraphNode,
    GraphStatistics,
    RelationKind,
    Tag,
    TagType,
    VisualizationData,
)
from .service import BuildState, GraphService, LayoutLoop
from .similarity import SimilarityScorer, edit_distance, entity_similarity, string_similarity
from .tag_names import StaticTagNames, TagNameResolver

__all__ = [
    "BuilderConfig",
    "BuildState",
    "Edge",
    "Entity",
    "GraphBuilder",
    "GraphNode",
    "GraphService",
    "GraphStatistics",
    "LayoutConfig",
    "LayoutLoop",
    "LayoutSimulator",
    "LayoutSnapshot",
    "RelationGraph",
    "RelationKind",
    "SimilarityScorer",
    "StaticTagNames",
    "Tag",
    "TagNameResolver",
    "TagType",
    "Vec2",
    "VisualizationData",
    "edit_distance",
    "entity_similarity",
    "string_similarity",
]
