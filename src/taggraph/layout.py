"""Force-directed 2D layout for the relation graph.

Each tick applies, to every node that is not being dragged:
- center force: pull toward the canvas center, proportional to distance
- repulsion: inverse-square push away from every other node
- springs: Hookean pull/push along each incident edge toward a rest length

then damps velocity, integrates position and clamps to the canvas. The
simulation never stops on its own; settling comes from damping alone.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Iterable, Mapping

from pydantic import BaseModel, Field

from .constants import (
    CENTER_STRENGTH,
    DAMPING,
    DEFAULT_CANVAS_HEIGHT,
    DEFAULT_CANVAS_WIDTH,
    MIN_REPULSION_DISTANCE,
    NODE_PADDING,
    NODE_RADIUS,
    REPULSION_STRENGTH,
    SEED_JITTER_MAX,
    SEED_JITTER_MIN,
    SEED_RADIUS_FACTOR,
    SPRING_CONSTANT,
    SPRING_LENGTH,
    TICK_INTERVAL_S,
)
from .models import Edge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Vec2:
    """Immutable 2D vector."""

    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x - other.x, self.y - other.y)

    def __mul__(self, factor: float) -> "Vec2":
        return Vec2(self.x * factor, self.y * factor)

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


ZERO = Vec2()

# Node ID -> (x, y), as handed to renderers
LayoutSnapshot = dict[str, tuple[float, float]]


class LayoutConfig(BaseModel):
    """Physics and canvas parameters."""

    width: float = Field(default=DEFAULT_CANVAS_WIDTH, ge=0.0)
    height: float = Field(default=DEFAULT_CANVAS_HEIGHT, ge=0.0)
    center_strength: float = CENTER_STRENGTH
    repulsion: float = REPULSION_STRENGTH
    min_distance: float = Field(default=MIN_REPULSION_DISTANCE, gt=0.0)
    spring_length: float = SPRING_LENGTH
    spring_constant: float = SPRING_CONSTANT
    damping: float = Field(default=DAMPING, ge=0.0, le=1.0)
    node_radius: float = Field(default=NODE_RADIUS, ge=0.0)
    padding: float = Field(default=NODE_PADDING, ge=0.0)
    seed_radius_factor: float = SEED_RADIUS_FACTOR
    jitter_min: float = SEED_JITTER_MIN
    jitter_max: float = SEED_JITTER_MAX
    tick_interval: float = Field(default=TICK_INTERVAL_S, gt=0.0)


class LayoutSimulator:
    """Incremental force-directed layout over a node/edge list.

    Owns per-node position and velocity. Positions survive graph rebuilds for
    node IDs that persist; new IDs are seeded on a jittered circle and
    removed IDs are forgotten.

    Not thread-safe: drive it from a single thread (see LayoutLoop).
    """

    def __init__(self, config: LayoutConfig | None = None, seed: int | None = None):
        self.config = config or LayoutConfig()
        self.width = self.config.width
        self.height = self.config.height
        self._last_valid_size = (self.width, self.height) if self.has_valid_size else None
        self._rng = random.Random(seed)

        self.positions: dict[str, Vec2] = {}
        self.velocities: dict[str, Vec2] = {}
        self._node_ids: list[str] = []
        self._adjacency: dict[str, list[str]] = {}
        self._pending: list[str] = []  # awaiting a valid canvas size
        self._dragged: set[str] = set()
        self._drag_origin: dict[str, Vec2] = {}

    # --- Canvas ---

    @property
    def has_valid_size(self) -> bool:
        return self.width > 0 and self.height > 0

    @property
    def center(self) -> Vec2:
        return Vec2(self.width / 2, self.height / 2)

    def bounds(self) -> tuple[float, float, float, float]:
        """(min_x, max_x, min_y, max_y) a node center may occupy."""
        margin = self.config.node_radius + self.config.padding
        return (margin, self.width - margin, margin, self.height - margin)

    def _clamp(self, position: Vec2) -> Vec2:
        min_x, max_x, min_y, max_y = self.bounds()
        x = self.width / 2 if max_x < min_x else min(max(position.x, min_x), max_x)
        y = self.height / 2 if max_y < min_y else min(max(position.y, min_y), max_y)
        return Vec2(x, y)

    def resize(self, width: float, height: float) -> None:
        """Change canvas size, rescaling existing positions proportionally."""
        if width < 0 or height < 0:
            raise ValueError("Canvas size must be non-negative")

        self.width = width
        self.height = height
        if not self.has_valid_size:
            return

        if self._last_valid_size is not None:
            old_width, old_height = self._last_valid_size
            sx = width / old_width
            sy = height / old_height
            self.positions = {
                nid: Vec2(p.x * sx, p.y * sy) for nid, p in self.positions.items()
            }
        self._last_valid_size = (width, height)

        self.positions = {nid: self._clamp(p) for nid, p in self.positions.items()}
        if self._pending:
            self._seed(self._pending)
            self._pending = []

    # --- Graph sync ---

    @property
    def node_ids(self) -> list[str]:
        return list(self._node_ids)

    def sync(self, node_ids: Iterable[str], edges: Iterable[Edge]) -> None:
        """Adopt a new node/edge list, keeping state for surviving nodes."""
        ids = list(dict.fromkeys(node_ids))
        id_set = set(ids)

        for nid in list(self.positions):
            if nid not in id_set:
                self.positions.pop(nid, None)
                self.velocities.pop(nid, None)
        self._dragged &= id_set
        self._drag_origin = {k: v for k, v in self._drag_origin.items() if k in id_set}
        self._pending = [nid for nid in self._pending if nid in id_set]

        adjacency: dict[str, list[str]] = {nid: [] for nid in ids}
        for edge in edges:
            if edge.source == edge.target:
                continue
            if edge.source in adjacency and edge.target in adjacency:
                adjacency[edge.source].append(edge.target)
                adjacency[edge.target].append(edge.source)

        self._node_ids = ids
        self._adjacency = adjacency

        new_ids = [
            nid for nid in ids
            if nid not in self.positions and nid not in self._pending
        ]
        if not new_ids:
            return
        if self.has_valid_size:
            self._seed(new_ids)
        else:
            self._pending.extend(new_ids)
            logger.debug(f"Deferring seed of {len(new_ids)} nodes until canvas has a size")

    def _seed(self, new_ids: list[str]) -> None:
        """Place nodes on a jittered circle around the canvas center."""
        count = len(self._node_ids)
        index_of = {nid: i for i, nid in enumerate(self._node_ids)}
        radius = self.config.seed_radius_factor * min(self.width, self.height)
        center = self.center

        for nid in new_ids:
            angle = 2 * math.pi * index_of[nid] / count
            jitter = self._rng.uniform(self.config.jitter_min, self.config.jitter_max)
            r = radius * jitter
            position = Vec2(center.x + r * math.cos(angle), center.y + r * math.sin(angle))
            self.positions[nid] = self._clamp(position)
            self.velocities[nid] = ZERO

        logger.debug(f"Seeded {len(new_ids)} nodes")

    # --- Physics ---

    def tick(self, dt: float | None = None) -> None:
        """Advance the simulation by one step.

        Args:
            dt: Elapsed seconds; forces are scaled relative to the reference
                tick interval so behavior does not depend on cadence.
        """
        if not self._node_ids or not self.has_valid_size:
            return

        cfg = self.config
        step = 1.0 if dt is None else dt / cfg.tick_interval
        if step <= 0:
            return
        damping = cfg.damping ** step

        current = {nid: self.positions[nid] for nid in self._node_ids if nid in self.positions}
        center = self.center
        updated_positions: dict[str, Vec2] = {}
        updated_velocities: dict[str, Vec2] = {}

        for nid, position in current.items():
            if nid in self._dragged:
                continue

            force = (center - position) * cfg.center_strength
            force = force + self._repulsion(nid, position, current)
            force = force + self._springs(nid, position, current)

            velocity = (self.velocities.get(nid, ZERO) + force * step) * damping
            updated_velocities[nid] = velocity
            updated_positions[nid] = self._clamp(position + velocity * step)

        self.positions.update(updated_positions)
        self.velocities.update(updated_velocities)

    def _repulsion(self, nid: str, position: Vec2, current: Mapping[str, Vec2]) -> Vec2:
        cfg = self.config
        fx = fy = 0.0
        for other_id, other in current.items():
            if other_id == nid:
                continue
            dx = position.x - other.x
            dy = position.y - other.y
            distance = math.hypot(dx, dy)
            if distance == 0:
                # Coincident nodes: push apart along x, direction fixed by ID order
                dx, dy, distance = (1.0 if nid > other_id else -1.0), 0.0, 1.0
            magnitude = cfg.repulsion / max(distance, cfg.min_distance) ** 2
            fx += dx / distance * magnitude
            fy += dy / distance * magnitude
        return Vec2(fx, fy)

    def _springs(self, nid: str, position: Vec2, current: Mapping[str, Vec2]) -> Vec2:
        cfg = self.config
        fx = fy = 0.0
        for other_id in self._adjacency.get(nid, []):
            other = current.get(other_id)
            if other is None:
                continue
            dx = other.x - position.x
            dy = other.y - position.y
            distance = math.hypot(dx, dy)
            if distance == 0:
                continue
            magnitude = cfg.spring_constant * (distance - cfg.spring_length)
            fx += dx / distance * magnitude
            fy += dy / distance * magnitude
        return Vec2(fx, fy)

    def kinetic_energy(self) -> float:
        """Sum of 0.5 * |v|^2 over all nodes (unit mass)."""
        return sum(0.5 * v.length() ** 2 for v in self.velocities.values())

    # --- Dragging ---

    def begin_drag(self, node_id: str) -> None:
        """Take a node out of the physics loop."""
        if node_id not in self.positions:
            raise KeyError(f"Unknown layout node: {node_id}")
        self._dragged.add(node_id)
        self._drag_origin[node_id] = self.positions[node_id]
        self.velocities[node_id] = ZERO

    def drag_to(self, node_id: str, x: float, y: float) -> None:
        """Move a dragged node to an absolute position."""
        if node_id not in self._dragged:
            raise KeyError(f"Node is not being dragged: {node_id}")
        self.positions[node_id] = self._clamp(Vec2(x, y))

    def drag_by(self, node_id: str, dx: float, dy: float) -> None:
        """Move a dragged node by a translation measured from the drag start."""
        if node_id not in self._dragged:
            raise KeyError(f"Node is not being dragged: {node_id}")
        origin = self._drag_origin[node_id]
        self.positions[node_id] = self._clamp(Vec2(origin.x + dx, origin.y + dy))

    def end_drag(self, node_id: str) -> None:
        """Return a node to the physics loop with zero velocity."""
        self._dragged.discard(node_id)
        self._drag_origin.pop(node_id, None)
        if node_id in self.positions:
            self.velocities[node_id] = ZERO

    def is_dragging(self, node_id: str) -> bool:
        return node_id in self._dragged

    # --- Output ---

    def snapshot(self) -> LayoutSnapshot:
        """Copy of current positions for renderers."""
        return {nid: p.as_tuple() for nid, p in self.positions.items()}
