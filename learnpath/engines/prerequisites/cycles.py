"""
Pure graph routines over the prerequisite relation.

The adjacency mapping goes from a course to the set of courses it requires:
``{course_id: {required_course_id, ...}}``. Traversals are iterative so that
deep chains never hit the interpreter recursion limit.
"""

import uuid
from collections.abc import Hashable, Iterable, Mapping
from typing import Dict, List, Optional, Set, Tuple, TypeVar

Node = TypeVar("Node", bound=Hashable)

Adjacency = Mapping[Node, Iterable[Node]]


def build_adjacency(edges: Iterable[Tuple[uuid.UUID, uuid.UUID]]) -> Dict[uuid.UUID, Set[uuid.UUID]]:
    """Group ``(course_id, required_course_id)`` pairs into an adjacency mapping."""
    adjacency: Dict[uuid.UUID, Set[uuid.UUID]] = {}
    for course_id, required_id in edges:
        adjacency.setdefault(course_id, set()).add(required_id)
    return adjacency


def reachable_from(adjacency: Adjacency, start: Node) -> Set[Node]:
    """
    Every course transitively required by ``start`` (``start`` itself excluded
    unless it sits on a cycle).
    """
    seen: Set[Node] = set()
    stack: List[Node] = list(adjacency.get(start, ()))
    while stack:
        node = stack.pop()
        if node in seen:
            continue
        seen.add(node)
        stack.extend(n for n in adjacency.get(node, ()) if n not in seen)
    return seen


def would_create_cycle(adjacency: Adjacency, course: Node, required: Node) -> bool:
    """
    True if adding the edge ``course -> required`` closes a cycle.

    That happens exactly when ``required`` already depends (directly or
    transitively) on ``course``, or when both are the same node.
    """
    if course == required:
        return True
    if course in adjacency.get(required, ()):
        return True
    return course in reachable_from(adjacency, required)


def find_cycle(adjacency: Adjacency) -> Optional[List[Node]]:
    """
    Return one cycle as a node path ``[a, b, ..., a]``, or None if the graph
    is acyclic. Used to verify stored data; the write path never lets a cycle in.
    """
    WHITE, GREY, BLACK = 0, 1, 2
    colour: Dict[Node, int] = {}

    for root in list(adjacency):
        if colour.get(root, WHITE) != WHITE:
            continue
        # iterators[i] walks the requirements of path[i]
        path: List[Node] = [root]
        iterators = [iter(list(adjacency.get(root, ())))]
        colour[root] = GREY
        while iterators:
            advanced = False
            for nxt in iterators[-1]:
                state = colour.get(nxt, WHITE)
                if state == GREY:
                    return path[path.index(nxt):] + [nxt]
                if state == WHITE:
                    colour[nxt] = GREY
                    path.append(nxt)
                    iterators.append(iter(list(adjacency.get(nxt, ()))))
                    advanced = True
                    break
            if not advanced:
                colour[path.pop()] = BLACK
                iterators.pop()
    return None
