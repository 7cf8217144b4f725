"""Graph service - owns graph rebuilds, queries, and the layout tick loop.

GraphService rebuilds the relation graph off-thread whenever the entity
collection changes and publishes the result by reference swap, so readers
always see either the previous graph or the complete new one.

LayoutLoop is the single writer of layout state: external inputs (graph
sync, resize, drag) are queued as commands and applied on the loop thread
at the start of each tick; renderers read immutable published snapshots.
"""

import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Callable, Iterable, Mapping

from .builder import GraphBuilder
from .constants import (
    DEFAULT_CONNECTION_LIMIT,
    DEFAULT_MIN_CLUSTER_SIZE,
    DEFAULT_TRAVERSAL_DEPTH,
    MAX_TICK_SCALE,
    TICK_INTERVAL_S,
)
from .graph import RelationGraph
from .layout import LayoutSimulator
from .models import Entity, GraphNode, GraphStatistics, RelationKind, VisualizationData
from .tag_names import StaticTagNames, TagNameResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildState:
    """Observable rebuild status."""

    is_building: bool = False
    last_build_seconds: float = 0.0
    build_count: int = 0
    generation: int = 0
    last_error: str | None = None


class GraphService:
    """Orchestrates graph rebuilds and exposes the query API.

    Construct one per application and pass it to consumers; there is no
    shared global instance.
    """

    def __init__(
        self,
        builder: GraphBuilder | None = None,
        name_resolver: TagNameResolver | None = None,
    ):
        self.builder = builder or GraphBuilder()
        self.name_resolver = name_resolver or StaticTagNames()

        self._graph = RelationGraph()
        self._state = BuildState()
        self._in_flight = 0
        self._published_generation = 0
        self._lock = threading.Lock()
        # Serializes listener delivery so consumers see graphs in publish order
        self._notify_lock = threading.RLock()
        self._listeners: list[Callable[[RelationGraph], None]] = []
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="taggraph-build")

    # --- Lifecycle ---

    def close(self) -> None:
        """Stop accepting rebuilds; waits for the running one to finish.

        Queued rebuilds are cancelled and no longer count as in flight.
        """
        self._executor.shutdown(wait=True, cancel_futures=True)
        with self._lock:
            self._in_flight = 0
            self._state = replace(self._state, is_building=False)

    def __enter__(self) -> "GraphService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def subscribe(self, listener: Callable[[RelationGraph], None]) -> None:
        """Call listener with every newly published graph (on the build thread).

        Deliveries are serialized and a graph superseded before its turn is
        not delivered, so the last graph a listener sees is the current one.
        Listeners must not block on another thread's rebuild.
        """
        self._listeners.append(listener)

    @property
    def graph(self) -> RelationGraph:
        """The most recently published graph."""
        return self._graph

    @property
    def state(self) -> BuildState:
        return self._state

    # --- Rebuilds ---

    def rebuild(self, entities: Iterable[Entity]) -> RelationGraph:
        """Build synchronously and publish, superseding any pending rebuild."""
        snapshot = self._snapshot(entities)
        generation = self._next_generation()
        graph = self._build_and_publish(snapshot, generation)
        return graph if graph is not None else self._graph

    def entities_changed(self, entities: Iterable[Entity]) -> "Future[RelationGraph | None]":
        """Schedule an off-thread rebuild.

        Only the most recent request publishes; older requests that have not
        started yet are skipped and finished stale ones are discarded.

        Returns:
            Future resolving to the published graph, or None if superseded
        """
        snapshot = self._snapshot(entities)
        generation = self._next_generation()
        return self._executor.submit(self._build_and_publish, snapshot, generation)

    def _snapshot(self, entities: Iterable[Entity]) -> list[Entity]:
        return [entity.model_copy(deep=True) for entity in entities]

    def _next_generation(self) -> int:
        with self._lock:
            self._in_flight += 1
            self._state = replace(
                self._state, generation=self._state.generation + 1, is_building=True
            )
            return self._state.generation

    def _is_stale(self, generation: int) -> bool:
        return generation != self._state.generation

    def _finish(self, **changes) -> None:
        # Caller holds self._lock
        self._in_flight -= 1
        self._state = replace(self._state, is_building=self._in_flight > 0, **changes)

    def _build_and_publish(
        self, snapshot: list[Entity], generation: int
    ) -> RelationGraph | None:
        with self._lock:
            if self._is_stale(generation):
                logger.debug(f"Skipping superseded rebuild #{generation}")
                self._finish()
                return None

        start = time.perf_counter()
        try:
            graph = self.builder.build(snapshot)
        except Exception as e:
            logger.exception(f"Graph rebuild #{generation} failed")
            with self._lock:
                self._finish(last_error=str(e))
            raise
        elapsed = time.perf_counter() - start

        with self._lock:
            if self._is_stale(generation):
                logger.debug(f"Discarding stale rebuild #{generation}")
                self._finish()
                return None
            self._graph = graph
            self._published_generation = generation
            self._finish(
                last_build_seconds=elapsed,
                build_count=self._state.build_count + 1,
                last_error=None,
            )

        logger.debug(f"Published rebuild #{generation} ({elapsed * 1000:.1f} ms)")
        self._notify(graph, generation)
        return graph

    def _notify(self, graph: RelationGraph, generation: int) -> None:
        with self._notify_lock:
            with self._lock:
                superseded = generation != self._published_generation
            if superseded:
                logger.debug(f"Not delivering superseded graph #{generation}")
                return
            for listener in list(self._listeners):
                listener(graph)

    # --- Queries (delegate to the published graph) ---

    def neighbors(self, node_id: str) -> set[GraphNode]:
        return self._graph.neighbors(node_id)

    def connected_nodes(
        self, node_id: str, max_depth: int = DEFAULT_TRAVERSAL_DEPTH
    ) -> list[GraphNode]:
        return self._graph.connected_nodes(node_id, max_depth)

    def find_path(self, source: str, target: str) -> list[GraphNode] | None:
        return self._graph.find_path(source, target)

    def strongest_connections(
        self, node_id: str, limit: int = DEFAULT_CONNECTION_LIMIT
    ) -> list[tuple[GraphNode, float]]:
        return self._graph.strongest_connections(node_id, limit)

    def cluster_nodes(self, min_size: int = DEFAULT_MIN_CLUSTER_SIZE) -> list[list[GraphNode]]:
        return self._graph.find_clusters(min_size)

    @property
    def statistics(self) -> GraphStatistics:
        return self._graph.statistics

    def export_for_visualization(
        self, include_kinds: Iterable[RelationKind] | None = None
    ) -> VisualizationData:
        return self._graph.export_for_visualization(include_kinds, self.name_resolver)


class LayoutLoop:
    """Single-threaded tick scheduler that exclusively owns a LayoutSimulator.

    Use start()/stop() for a live loop, or step() to drive ticks manually
    (tests, offline layout) while the loop is not running.
    """

    def __init__(
        self,
        simulator: LayoutSimulator | None = None,
        interval: float = TICK_INTERVAL_S,
        include_kinds: Iterable[RelationKind] | None = None,
    ):
        self.simulator = simulator or LayoutSimulator()
        self.interval = interval
        self.include_kinds = frozenset(include_kinds) if include_kinds is not None else None
        self._commands: queue.SimpleQueue[Callable[[LayoutSimulator], None]] = queue.SimpleQueue()
        self._positions: Mapping[str, tuple[float, float]] = MappingProxyType({})
        self._tick_count = 0
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # --- Inputs (any thread) ---

    def sync_graph(self, graph: RelationGraph) -> None:
        """Queue adoption of a graph's node/edge list.

        Matches GraphService.subscribe's listener signature.
        """
        if self.include_kinds is not None:
            graph = graph.subgraph(self.include_kinds)
        node_ids = list(graph.nodes)
        edges = list(graph.edges)
        self._commands.put(lambda sim: sim.sync(node_ids, edges))

    def resize(self, width: float, height: float) -> None:
        self._commands.put(lambda sim: sim.resize(width, height))

    def begin_drag(self, node_id: str) -> None:
        self._commands.put(lambda sim: sim.begin_drag(node_id))

    def drag(self, node_id: str, dx: float, dy: float) -> None:
        """Translation is measured from where the drag began."""
        self._commands.put(lambda sim: sim.drag_by(node_id, dx, dy))

    def end_drag(self, node_id: str) -> None:
        self._commands.put(lambda sim: sim.end_drag(node_id))

    # --- Outputs (any thread) ---

    def positions(self) -> Mapping[str, tuple[float, float]]:
        """Latest published positions (read-only)."""
        return self._positions

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # --- Scheduling ---

    def step(self, ticks: int = 1, dt: float | None = None) -> Mapping[str, tuple[float, float]]:
        """Run ticks synchronously on the calling thread."""
        if self.is_running:
            raise RuntimeError("LayoutLoop is running; step() would race the loop thread")
        for _ in range(ticks):
            self._run_once(dt)
        if ticks == 0:
            self._drain_commands()
            self._publish()
        return self._positions

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="taggraph-layout", daemon=True)
        self._thread.start()
        logger.debug("Layout loop started")

    def stop(self, timeout: float = 1.0) -> None:
        """Stop the tick timer and wait for the loop thread to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.debug(f"Layout loop stopped after {self._tick_count} ticks")

    def _run(self) -> None:
        last = time.perf_counter()
        while not self._stop_event.wait(self.interval):
            now = time.perf_counter()
            # Cap catch-up after stalls so one tick never takes a huge step
            dt = min(now - last, self.interval * MAX_TICK_SCALE)
            last = now
            self._run_once(dt)

    def _run_once(self, dt: float | None) -> None:
        self._drain_commands()
        self.simulator.tick(dt)
        self._tick_count += 1
        self._publish()

    def _drain_commands(self) -> None:
        while True:
            try:
                command = self._commands.get_nowait()
            except queue.Empty:
                return
            try:
                command(self.simulator)
            except (KeyError, ValueError) as e:
                logger.warning(f"Ignoring layout command: {e}")

    def _publish(self) -> None:
        self._positions = MappingProxyType(self.simulator.snapshot())
