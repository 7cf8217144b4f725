"""Core data models for the relation graph engine.

Uses Pydantic v2 for validation, ULID for sortable unique edge IDs.
"""

import math
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from ulid import ULID

from .constants import ROOT_TAG_KEY


def generate_id() -> str:
    """Generate a ULID (sortable, unique identifier)."""
    return str(ULID())


# ─────────────────────────────────────────────────────────────────────────────
# Tags and entities (read-only input)
# ─────────────────────────────────────────────────────────────────────────────

TagKind = Literal[
    "memory",    # mnemonic / memory aid
    "location",  # place, usually with coordinates
    "root",      # built-in root tag type
    "shape",     # visually similar words
    "sound",     # phonetically similar words
    "custom",    # open variant, keyed by string
]


class TagType(BaseModel):
    """Tag type: one of a closed set of kinds, or ``custom`` with a string key.

    Accepts ``"memory"``, ``"custom:root"`` or ``{"kind": ..., "key": ...}``
    as input. Display names are resolved elsewhere (see tag_names.py).
    """

    model_config = ConfigDict(frozen=True)

    kind: TagKind
    key: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _parse_shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            if data.startswith("custom:"):
                return {"kind": "custom", "key": data.split(":", 1)[1]}
            return {"kind": data}
        return data

    @model_validator(mode="after")
    def _check_key(self) -> "TagType":
        if self.kind == "custom" and not self.key:
            raise ValueError("custom tag type requires a key")
        if self.kind != "custom" and self.key is not None:
            raise ValueError(f"tag type '{self.kind}' does not take a key")
        return self

    @classmethod
    def custom(cls, key: str) -> "TagType":
        return cls(kind="custom", key=key)

    @property
    def identifier(self) -> str:
        """Stable string form, e.g. ``memory`` or ``custom:root``."""
        return f"custom:{self.key}" if self.kind == "custom" else self.kind

    def __str__(self) -> str:
        return self.identifier


class Tag(BaseModel):
    """A typed, valued annotation on an entity."""

    type: TagType
    value: str
    latitude: float | None = None
    longitude: float | None = None

    @property
    def coordinate(self) -> tuple[float, float] | None:
        """(lat, lon) when both are present and sane, else None.

        A tag missing either half is simply not coordinate-bearing.
        """
        if self.latitude is None or self.longitude is None:
            return None
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            return None
        if not (-90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0):
            return None
        return (self.latitude, self.longitude)

    @property
    def is_root(self) -> bool:
        return self.type.kind == "custom" and self.type.key == ROOT_TAG_KEY


class Entity(BaseModel):
    """A tagged knowledge item (e.g. a vocabulary word)."""

    id: str
    text: str
    phonetic: str | None = None
    meaning: str | None = None
    tags: list[Tag] = Field(default_factory=list)

    @property
    def tag_type_ids(self) -> frozenset[str]:
        """Set of tag type identifiers carried by this entity."""
        return frozenset(tag.type.identifier for tag in self.tags)

    @property
    def root_values(self) -> tuple[str, ...]:
        """Root tag values as a sorted tuple (a multiset key)."""
        return tuple(sorted(tag.value for tag in self.tags if tag.is_root))

    @property
    def location_tags(self) -> list[Tag]:
        """Tags that carry a usable coordinate."""
        return [tag for tag in self.tags if tag.coordinate is not None]


# ─────────────────────────────────────────────────────────────────────────────
# Graph elements
# ─────────────────────────────────────────────────────────────────────────────

NodeKind = Literal["entity", "tag"]

MetadataValue = str | bool | int | float


class RelationKind(str, Enum):
    """Category of an inferred edge."""

    SIMILARITY = "similarity"
    TAG_OVERLAP = "tag-overlap"
    SHARED_ROOT = "shared-root"
    GEO_PROXIMITY = "geo-proximity"
    CUSTOM = "custom"


class GraphNode(BaseModel):
    """A node in the relation graph. Immutable for the lifetime of a build."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    subtitle: str = ""
    kind: NodeKind = "entity"
    tag_type: TagType | None = None
    group: str = "unknown"  # first tag type identifier, used for coloring
    phonetic: str = ""
    meaning: str = ""
    tag_count: int = 0

    @classmethod
    def from_entity(cls, entity: Entity) -> "GraphNode":
        return cls(
            id=entity.id,
            label=entity.text,
            subtitle=entity.meaning or entity.phonetic or "",
            kind="entity",
            group=entity.tags[0].type.identifier if entity.tags else "unknown",
            phonetic=entity.phonetic or "",
            meaning=entity.meaning or "",
            tag_count=len(entity.tags),
        )

    @classmethod
    def from_tag(cls, tag: Tag) -> "GraphNode":
        return cls(
            id=tag_node_id(tag),
            label=tag.value,
            subtitle=tag.type.identifier,
            kind="tag",
            tag_type=tag.type,
            group=tag.type.identifier,
        )


def tag_node_id(tag: Tag) -> str:
    """Identifier of the tag node for a (type, value) pair."""
    return f"tag:{tag.type.identifier}:{tag.value}"


def _coerce_metadata_value(value: Any) -> MetadataValue:
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(sorted(str(v) for v in value))
    return str(value)


class Edge(BaseModel):
    """A weighted, typed relation between two nodes.

    Stored with a direction, traversed as undirected. Never mutated after
    insertion into a graph.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    source: str
    target: str
    kind: RelationKind
    weight: float = Field(ge=0.0, le=1.0)
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                str(k): _coerce_metadata_value(v)
                for k, v in value.items()
                if v is not None
            }
        return value

    def other_end(self, node_id: str) -> str:
        """Return the node on the other end of this edge."""
        return self.target if self.source == node_id else self.source

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id


# ─────────────────────────────────────────────────────────────────────────────
# Query / export results
# ─────────────────────────────────────────────────────────────────────────────


class GraphStatistics(BaseModel):
    """Node/edge counts and relation-kind histogram."""

    node_count: int
    edge_count: int
    average_degree: float
    edge_kind_distribution: dict[RelationKind, int] = Field(default_factory=dict)


class VizNode(BaseModel):
    id: str
    label: str
    group: str
    kind: NodeKind
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)


class VizEdge(BaseModel):
    source: str = Field(serialization_alias="from")
    target: str = Field(serialization_alias="to")
    weight: float
    type: str
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)


class VisualizationData(BaseModel):
    """Renderer-independent ``{nodes, edges}`` structure."""

    nodes: list[VizNode] = Field(default_factory=list)
    edges: list[VizEdge] = Field(default_factory=list)

    def to_dict(self) -> dict:
        """JSON-ready dict with ``from``/``to`` edge keys."""
        return self.model_dump(mode="json", by_alias=True)
