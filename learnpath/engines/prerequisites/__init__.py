"""
Prerequisite Engine - acyclic course dependency graph.

Adding an edge walks everything the required course already depends on;
if the dependent course shows up there, the edge would close a cycle and
is rejected.
"""

from learnpath.engines.prerequisites.cycles import (
    build_adjacency,
    reachable_from,
    would_create_cycle,
    find_cycle,
)
from learnpath.engines.prerequisites.graph import (
    PrerequisiteGraph,
    PrerequisiteStatus,
)

__all__ = [
    "build_adjacency",
    "reachable_from",
    "would_create_cycle",
    "find_cycle",
    "PrerequisiteGraph",
    "PrerequisiteStatus",
]
