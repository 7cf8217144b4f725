"""Building relation graphs from entity snapshots.

Four independent pairwise passes each contribute edges:
- similarity: gated multi-factor string similarity above a threshold
- tag-overlap: entities sharing the same set of tag types
- shared-root: entities sharing the same custom "root" tag values
- geo-proximity: entities whose first coordinates are within range

Passes may produce parallel edges for the same pair; they are never merged.
"""

import logging
import math
import time
from collections import defaultdict
from itertools import combinations
from typing import Iterable

from pydantic import BaseModel, Field

from .constants import (
    MAX_PROXIMITY_DISTANCE_M,
    SHARED_ROOT_WEIGHT,
    SIMILARITY_EDGE_THRESHOLD,
    TAG_MEMBERSHIP_WEIGHT,
)
from .geo import entity_distance, proximity_score
from .graph import RelationGraph
from .models import Edge, Entity, GraphNode, RelationKind, tag_node_id
from .similarity import SimilarityScorer

logger = logging.getLogger(__name__)

INFERRED_KINDS = frozenset({
    RelationKind.SIMILARITY,
    RelationKind.TAG_OVERLAP,
    RelationKind.SHARED_ROOT,
    RelationKind.GEO_PROXIMITY,
})


class BuilderConfig(BaseModel):
    """Per-instance knobs for GraphBuilder."""

    similarity_threshold: float = Field(default=SIMILARITY_EDGE_THRESHOLD, ge=0.0, le=1.0)
    shared_root_weight: float = Field(default=SHARED_ROOT_WEIGHT, ge=0.0, le=1.0)
    max_proximity_distance_m: float = Field(default=MAX_PROXIMITY_DISTANCE_M, gt=0.0)
    enabled_kinds: frozenset[RelationKind] = INFERRED_KINDS
    include_tag_nodes: bool = False


class GraphBuilder:
    """Builds a fresh RelationGraph from an entity snapshot.

    Stateless between calls: safe to run off-thread against an immutable
    snapshot while readers use a previously built graph.
    """

    def __init__(
        self,
        config: BuilderConfig | None = None,
        scorer: SimilarityScorer | None = None,
    ):
        self.config = config or BuilderConfig()
        self.scorer = scorer or SimilarityScorer()

    def build(self, entities: Iterable[Entity]) -> RelationGraph:
        """Build a relation graph.

        Args:
            entities: Entity snapshot (invalid records are skipped)

        Returns:
            New RelationGraph containing one node per valid entity
        """
        start = time.perf_counter()
        valid = self._validate(entities)

        graph = RelationGraph()
        for entity in valid:
            graph.add_node(GraphNode.from_entity(entity))

        passes = (
            (RelationKind.SIMILARITY, self._similarity_edges),
            (RelationKind.TAG_OVERLAP, self._tag_overlap_edges),
            (RelationKind.SHARED_ROOT, self._shared_root_edges),
            (RelationKind.GEO_PROXIMITY, self._geo_proximity_edges),
        )
        for kind, edge_pass in passes:
            if kind not in self.config.enabled_kinds:
                continue
            added = sum(graph.add_edge(edge) for edge in edge_pass(valid))
            logger.debug(f"{kind.value} pass added {added} edges")

        if self.config.include_tag_nodes:
            self._add_tag_nodes(graph, valid)

        elapsed = time.perf_counter() - start
        logger.info(
            f"Built graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges "
            f"in {elapsed * 1000:.1f} ms"
        )
        return graph

    def _validate(self, entities: Iterable[Entity]) -> list[Entity]:
        """Drop entities that would corrupt the graph (empty text, duplicate ID)."""
        valid: list[Entity] = []
        seen: set[str] = set()
        for entity in entities:
            if not entity.text.strip():
                logger.warning(f"Skipping entity {entity.id!r}: empty text")
                continue
            if entity.id in seen:
                logger.warning(f"Skipping entity {entity.id!r}: duplicate id")
                continue
            seen.add(entity.id)
            valid.append(entity)
        return valid

    # --- Edge passes ---

    def _similarity_edges(self, entities: list[Entity]) -> list[Edge]:
        edges = []
        for e1, e2 in combinations(entities, 2):
            breakdown = self.scorer.score_factors(e1, e2)
            if breakdown.score >= self.config.similarity_threshold:
                edges.append(Edge(
                    source=e1.id,
                    target=e2.id,
                    kind=RelationKind.SIMILARITY,
                    weight=breakdown.score,
                    metadata=breakdown.as_metadata(),
                ))
        return edges

    def _tag_overlap_edges(self, entities: list[Entity]) -> list[Edge]:
        groups: dict[frozenset[str], list[Entity]] = defaultdict(list)
        for entity in entities:
            if entity.tags:
                groups[entity.tag_type_ids].append(entity)

        edges = []
        for members in groups.values():
            if len(members) < 2:
                continue
            for e1, e2 in combinations(members, 2):
                shared = e1.tag_type_ids & e2.tag_type_ids
                if not shared:
                    continue
                weight = len(shared) / max(len(e1.tags), len(e2.tags))
                edges.append(Edge(
                    source=e1.id,
                    target=e2.id,
                    kind=RelationKind.TAG_OVERLAP,
                    weight=weight,
                    metadata={
                        "shared_tag_types": sorted(shared),
                        "tag_overlap_ratio": weight,
                    },
                ))
        return edges

    def _shared_root_edges(self, entities: list[Entity]) -> list[Edge]:
        groups: dict[tuple[str, ...], list[Entity]] = defaultdict(list)
        for entity in entities:
            roots = entity.root_values
            if roots:
                groups[roots].append(entity)

        edges = []
        for roots, members in groups.items():
            if len(members) < 2:
                continue
            for e1, e2 in combinations(members, 2):
                edges.append(Edge(
                    source=e1.id,
                    target=e2.id,
                    kind=RelationKind.SHARED_ROOT,
                    weight=self.config.shared_root_weight,
                    metadata={
                        "shared_roots": list(roots),
                        "relationship_type": "root_word",
                    },
                ))
        return edges

    def _geo_proximity_edges(self, entities: list[Entity]) -> list[Edge]:
        located = [e for e in entities if e.location_tags]

        edges = []
        for e1, e2 in combinations(located, 2):
            distance = entity_distance(e1, e2)
            if distance is None or not math.isfinite(distance):
                continue
            proximity = proximity_score(distance, self.config.max_proximity_distance_m)
            edges.append(Edge(
                source=e1.id,
                target=e2.id,
                kind=RelationKind.GEO_PROXIMITY,
                weight=proximity,
                metadata={
                    "distance_m": distance,
                    "proximity_score": proximity,
                    "relationship_type": "location_proximity",
                },
            ))
        return edges

    def _add_tag_nodes(self, graph: RelationGraph, entities: list[Entity]) -> None:
        """Add one node per distinct tag and an entity -> tag edge for each use."""
        added = 0
        for entity in entities:
            linked: set[str] = set()
            for tag in entity.tags:
                node_id = tag_node_id(tag)
                if node_id not in graph.nodes:
                    graph.add_node(GraphNode.from_tag(tag))
                if node_id in linked:
                    continue
                linked.add(node_id)
                graph.add_edge(Edge(
                    source=entity.id,
                    target=node_id,
                    kind=RelationKind.CUSTOM,
                    weight=TAG_MEMBERSHIP_WEIGHT,
                    metadata={"relationship_type": "has_tag"},
                ))
                added += 1
        logger.debug(f"Tag membership added {added} edges")
