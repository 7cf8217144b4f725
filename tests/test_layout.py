"""Tests for the force-directed LayoutSimulator."""

import math
import random

import pytest

from taggraph.layout import LayoutConfig, LayoutSimulator, Vec2

from conftest import make_edge


def random_graph(n: int, m: int, seed: int = 1):
    rng = random.Random(seed)
    node_ids = [f"n{i}" for i in range(n)]
    edges = [make_edge(rng.choice(node_ids), rng.choice(node_ids)) for _ in range(m)]
    return node_ids, edges


def in_bounds(sim: LayoutSimulator) -> bool:
    min_x, max_x, min_y, max_y = sim.bounds()
    return all(
        min_x <= p.x <= max_x and min_y <= p.y <= max_y
        for p in sim.positions.values()
    )


class TestSeeding:
    """Initial circular placement."""

    def test_circle_without_jitter(self):
        config = LayoutConfig(width=800, height=600, jitter_min=1.0, jitter_max=1.0)
        sim = LayoutSimulator(config, seed=0)
        sim.sync(["a", "b", "c", "d"], [])

        radius = 0.3 * 600
        for i, nid in enumerate(["a", "b", "c", "d"]):
            angle = 2 * math.pi * i / 4
            expected = (400 + radius * math.cos(angle), 300 + radius * math.sin(angle))
            assert sim.positions[nid].as_tuple() == pytest.approx(expected)
            assert sim.velocities[nid] == Vec2()

    def test_jitter_within_range(self):
        sim = LayoutSimulator(LayoutConfig(width=1000, height=1000), seed=5)
        node_ids = [str(i) for i in range(12)]
        sim.sync(node_ids, [])
        radius = 0.3 * 1000
        for p in sim.positions.values():
            r = (p - sim.center).length()
            assert 0.5 * radius - 1e-9 <= r <= 1.5 * radius + 1e-9

    def test_same_seed_same_positions(self):
        node_ids, edges = random_graph(10, 15)
        a = LayoutSimulator(seed=42)
        b = LayoutSimulator(seed=42)
        a.sync(node_ids, edges)
        b.sync(node_ids, edges)
        assert a.snapshot() == b.snapshot()

    def test_different_seed_different_positions(self):
        node_ids, edges = random_graph(10, 15)
        a = LayoutSimulator(seed=1)
        b = LayoutSimulator(seed=2)
        a.sync(node_ids, edges)
        b.sync(node_ids, edges)
        assert a.snapshot() != b.snapshot()


class TestTick:
    """Per-tick physics."""

    def test_no_nodes_is_noop(self):
        sim = LayoutSimulator(seed=0)
        sim.tick()
        assert sim.snapshot() == {}

    def test_no_edges_still_runs(self):
        sim = LayoutSimulator(seed=0)
        sim.sync(["a", "b"], [])
        before = sim.snapshot()
        sim.tick()
        assert sim.snapshot() != before

    def test_boundedness(self):
        node_ids, edges = random_graph(30, 60)
        sim = LayoutSimulator(LayoutConfig(width=400, height=300), seed=3)
        sim.sync(node_ids, edges)
        for _ in range(300):
            sim.tick()
            assert in_bounds(sim)

    def test_deterministic_with_fixed_seed(self):
        node_ids, edges = random_graph(15, 25)
        runs = []
        for _ in range(2):
            sim = LayoutSimulator(seed=99)
            sim.sync(node_ids, edges)
            for _ in range(200):
                sim.tick()
            runs.append(sim.snapshot())
        assert runs[0] == runs[1]

    def test_reference_dt_matches_default_step(self):
        node_ids, edges = random_graph(8, 10)
        a = LayoutSimulator(seed=4)
        b = LayoutSimulator(seed=4)
        a.sync(node_ids, edges)
        b.sync(node_ids, edges)
        for _ in range(20):
            a.tick()
            b.tick(dt=a.config.tick_interval)
        assert a.snapshot() == b.snapshot()

    def test_spring_pulls_long_edge_together(self):
        config = LayoutConfig(width=1000, height=1000, center_strength=0.0, repulsion=0.0)
        sim = LayoutSimulator(config, seed=0)
        sim.sync(["a", "b"], [make_edge("a", "b")])
        sim.positions = {"a": Vec2(200, 500), "b": Vec2(800, 500)}
        sim.tick()
        assert (sim.positions["b"] - sim.positions["a"]).length() < 600

    def test_spring_pushes_short_edge_apart(self):
        config = LayoutConfig(width=1000, height=1000, center_strength=0.0, repulsion=0.0)
        sim = LayoutSimulator(config, seed=0)
        sim.sync(["a", "b"], [make_edge("a", "b")])
        sim.positions = {"a": Vec2(450, 500), "b": Vec2(550, 500)}
        sim.tick()
        assert (sim.positions["b"] - sim.positions["a"]).length() > 100

    def test_repulsion_separates_unconnected_nodes(self):
        config = LayoutConfig(width=1000, height=1000, center_strength=0.0)
        sim = LayoutSimulator(config, seed=0)
        sim.sync(["a", "b"], [])
        sim.positions = {"a": Vec2(490, 500), "b": Vec2(510, 500)}
        sim.tick()
        assert sim.positions["a"].x < 490
        assert sim.positions["b"].x > 510

    def test_coincident_nodes_separate(self):
        config = LayoutConfig(width=1000, height=1000, center_strength=0.0)
        sim = LayoutSimulator(config, seed=0)
        sim.sync(["a", "b"], [])
        sim.positions = {"a": Vec2(500, 500), "b": Vec2(500, 500)}
        sim.tick()
        assert sim.positions["a"] != sim.positions["b"]
        assert all(math.isfinite(c) for p in sim.positions.values() for c in p.as_tuple())

    def test_center_force_pulls_toward_center(self):
        config = LayoutConfig(width=1000, height=1000, repulsion=0.0)
        sim = LayoutSimulator(config, seed=0)
        sim.sync(["a"], [])
        sim.positions = {"a": Vec2(100, 100)}
        sim.tick()
        assert sim.positions["a"].x > 100
        assert sim.positions["a"].y > 100

    def test_settles(self):
        sim = LayoutSimulator(seed=8)
        sim.sync(["a", "b", "c"], [make_edge("a", "b"), make_edge("b", "c"), make_edge("c", "a")])
        for _ in range(2000):
            sim.tick()
        assert sim.kinetic_energy() < 1e-3


class TestZeroCanvas:
    """Zero-sized canvas defers seeding and physics."""

    def test_sync_defers_seeding(self):
        sim = LayoutSimulator(LayoutConfig(width=0, height=0), seed=0)
        sim.sync(["a", "b"], [])
        assert sim.positions == {}
        sim.tick()
        assert sim.positions == {}

    def test_resize_seeds_pending(self):
        sim = LayoutSimulator(LayoutConfig(width=0, height=0), seed=0)
        sim.sync(["a", "b"], [])
        sim.resize(800, 600)
        assert set(sim.positions) == {"a", "b"}
        assert in_bounds(sim)

    def test_negative_size_rejected(self):
        with pytest.raises(ValueError):
            LayoutSimulator(seed=0).resize(-1, 100)


class TestResize:
    """Canvas resize keeps relative layout."""

    def test_positions_scale_proportionally(self):
        sim = LayoutSimulator(LayoutConfig(width=800, height=600), seed=0)
        sim.sync(["a"], [])
        sim.positions = {"a": Vec2(200, 300)}
        sim.resize(1600, 300)
        assert sim.positions["a"].as_tuple() == pytest.approx((400, 150))

    def test_rescale_after_collapse_to_zero(self):
        sim = LayoutSimulator(LayoutConfig(width=800, height=600), seed=0)
        sim.sync(["a"], [])
        sim.positions = {"a": Vec2(400, 300)}
        sim.resize(0, 0)
        sim.resize(400, 300)
        assert sim.positions["a"].as_tuple() == pytest.approx((200, 150))


class TestSync:
    """State persistence across graph rebuilds."""

    def test_existing_nodes_keep_state(self):
        sim = LayoutSimulator(seed=0)
        sim.sync(["a", "b"], [])
        for _ in range(5):
            sim.tick()
        before = sim.positions["a"]
        sim.sync(["a", "b", "c"], [])
        assert sim.positions["a"] == before
        assert "c" in sim.positions

    def test_removed_nodes_discarded(self):
        sim = LayoutSimulator(seed=0)
        sim.sync(["a", "b"], [])
        sim.sync(["a"], [])
        assert set(sim.positions) == {"a"}
        assert set(sim.velocities) == {"a"}

    def test_edges_to_unknown_nodes_ignored(self):
        sim = LayoutSimulator(seed=0)
        sim.sync(["a"], [make_edge("a", "ghost")])
        sim.tick()
        assert set(sim.positions) == {"a"}


class TestDrag:
    """Manual dragging bypasses physics."""

    def test_dragged_node_frozen_during_ticks(self):
        sim = LayoutSimulator(seed=0)
        sim.sync(["a", "b"], [make_edge("a", "b")])
        sim.begin_drag("a")
        held = sim.positions["a"]
        for _ in range(10):
            sim.tick()
        assert sim.positions["a"] == held
        assert sim.is_dragging("a")

    def test_drag_by_is_relative_to_start(self):
        sim = LayoutSimulator(LayoutConfig(width=1000, height=1000), seed=0)
        sim.sync(["a"], [])
        sim.positions = {"a": Vec2(500, 500)}
        sim.begin_drag("a")
        sim.drag_by("a", 10, 20)
        sim.drag_by("a", 30, -40)
        assert sim.positions["a"] == Vec2(530, 460)

    def test_drag_clamped_to_canvas(self):
        sim = LayoutSimulator(LayoutConfig(width=500, height=500), seed=0)
        sim.sync(["a"], [])
        sim.begin_drag("a")
        sim.drag_to("a", -1000, 10_000)
        assert in_bounds(sim)

    def test_release_zeroes_velocity_and_resumes(self):
        sim = LayoutSimulator(seed=0)
        sim.sync(["a", "b"], [make_edge("a", "b")])
        sim.begin_drag("a")
        sim.drag_to("a", 100, 100)
        sim.end_drag("a")
        assert sim.velocities["a"] == Vec2()
        sim.tick()
        assert sim.positions["a"] != Vec2(100, 100)

    def test_unknown_node_rejected(self):
        sim = LayoutSimulator(seed=0)
        with pytest.raises(KeyError):
            sim.begin_drag("ghost")

    def test_drag_without_begin_rejected(self):
        sim = LayoutSimulator(seed=0)
        sim.sync(["a"], [])
        with pytest.raises(KeyError):
            sim.drag_by("a", 1, 1)
