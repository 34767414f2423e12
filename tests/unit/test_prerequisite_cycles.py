"""Unit tests for the pure prerequisite graph routines."""

import random

from learnpath.engines.prerequisites.cycles import (
    build_adjacency,
    find_cycle,
    reachable_from,
    would_create_cycle,
)


class TestWouldCreateCycle:
    def test_self_loop(self):
        assert would_create_cycle({}, "A", "A") is True

    def test_direct_back_edge(self):
        # A requires B; B requiring A closes A -> B -> A
        adjacency = {"A": {"B"}}
        assert would_create_cycle(adjacency, "B", "A") is True

    def test_transitive_back_edge(self):
        adjacency = {"A": {"B"}, "B": {"C"}}
        assert would_create_cycle(adjacency, "C", "A") is True

    def test_diamond_is_fine(self):
        adjacency = {"A": {"B", "C"}, "B": {"D"}, "C": {"D"}}
        assert would_create_cycle(adjacency, "A", "D") is False
        assert would_create_cycle(adjacency, "B", "C") is False

    def test_unrelated_nodes(self):
        assert would_create_cycle({"A": {"B"}}, "C", "D") is False

    def test_long_chain_does_not_recurse(self):
        n = 5000
        adjacency = {i: {i + 1} for i in range(n)}
        assert would_create_cycle(adjacency, n, 0) is True
        assert would_create_cycle(adjacency, 0, n) is False


class TestReachableFrom:
    def test_excludes_start_on_acyclic_graph(self):
        adjacency = {"A": {"B"}, "B": {"C"}}
        assert reachable_from(adjacency, "A") == {"B", "C"}
        assert reachable_from(adjacency, "C") == set()

    def test_terminates_on_cycle(self):
        adjacency = {"A": {"B"}, "B": {"A"}}
        assert reachable_from(adjacency, "A") == {"A", "B"}


class TestFindCycle:
    def test_acyclic(self):
        assert find_cycle({"A": {"B"}, "B": {"C"}}) is None
        assert find_cycle({}) is None

    def test_reports_cycle_path(self):
        cycle = find_cycle({"A": {"B"}, "B": {"C"}, "C": {"A"}})
        assert cycle is not None
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"A", "B", "C"}

    def test_self_loop(self):
        assert find_cycle({"A": {"A"}}) == ["A", "A"]


def test_guarded_inserts_never_produce_a_cycle():
    """Adding only edges that pass the check keeps any random graph acyclic."""
    rng = random.Random(1234)
    nodes = list(range(30))
    adjacency = {}
    rejected = 0
    for _ in range(400):
        course, required = rng.choice(nodes), rng.choice(nodes)
        if would_create_cycle(adjacency, course, required):
            rejected += 1
            continue
        adjacency.setdefault(course, set()).add(required)
        assert find_cycle(adjacency) is None
    assert rejected > 0


def test_build_adjacency_groups_pairs():
    assert build_adjacency([("A", "B"), ("A", "C"), ("B", "C")]) == {"A": {"B", "C"}, "B": {"C"}}
