"""Integration tests for the prerequisite graph and course entry gating."""

import uuid

import pytest
from sqlalchemy import text

from learnpath.engines.completion import EnrollmentService
from learnpath.engines.prerequisites import PrerequisiteGraph, find_cycle
from learnpath.kernel.errors import (
    CourseLockedError,
    CycleError,
    DuplicateEdgeError,
    GraphBusyError,
    NotFoundError,
    SelfReferenceError,
)
from learnpath.kernel.events.event_store import EventStore
from learnpath.kernel.models import EventType


@pytest.mark.asyncio
async def test_add_edge_persists_and_logs(db_session, factory, admin):
    intro = await factory.course("Intro")
    advanced = await factory.course("Advanced")
    graph = PrerequisiteGraph(db_session)

    edge = await graph.add_edge(advanced.id, intro.id, actor_id=admin.id)
    await db_session.commit()

    assert edge.course_id == advanced.id
    assert edge.prerequisite_course_id == intro.id
    assert await graph.load_adjacency() == {advanced.id: {intro.id}}
    assert await EventStore(db_session).count_events(
        entity_id=advanced.id, event_type=EventType.PREREQUISITE_ADDED
    ) == 1


@pytest.mark.asyncio
async def test_self_reference_rejected(db_session, factory):
    course = await factory.course()
    with pytest.raises(SelfReferenceError):
        await PrerequisiteGraph(db_session).add_edge(course.id, course.id)


@pytest.mark.asyncio
async def test_cycle_rejected_and_graph_unchanged(db_session, factory):
    a = await factory.course("A")
    b = await factory.course("B")
    c = await factory.course("C")
    graph = PrerequisiteGraph(db_session)
    await graph.add_edge(a.id, b.id)
    await graph.add_edge(b.id, c.id)
    await db_session.commit()

    with pytest.raises(CycleError) as exc_info:
        await graph.add_edge(c.id, a.id)
    assert exc_info.value.to_dict()["detail"] == (
        "Adding this prerequisite would create a circular dependency"
    )

    adjacency = await graph.load_adjacency()
    assert adjacency == {a.id: {b.id}, b.id: {c.id}}
    assert find_cycle(adjacency) is None


@pytest.mark.asyncio
async def test_concurrent_writers_cannot_build_a_cycle(db_session, other_session, factory):
    """
    Two admins each add one half of a cycle. The second writer is turned
    away while the first holds the graph lock, and its retry sees the
    committed edge.
    """
    a = await factory.course()
    b = await factory.course()
    await PrerequisiteGraph(db_session).add_edge(a.id, b.id)

    # Fail fast instead of waiting out the default busy timeout
    await other_session.execute(text("PRAGMA busy_timeout=50"))
    with pytest.raises(GraphBusyError) as exc_info:
        await PrerequisiteGraph(other_session).add_edge(b.id, a.id)
    assert exc_info.value.status_code == 409
    await other_session.rollback()

    await db_session.commit()

    with pytest.raises(CycleError):
        await PrerequisiteGraph(other_session).add_edge(b.id, a.id)
    assert await PrerequisiteGraph(db_session).load_adjacency() == {a.id: {b.id}}


@pytest.mark.asyncio
async def test_duplicate_edge_rejected(db_session, factory):
    a = await factory.course()
    b = await factory.course()
    graph = PrerequisiteGraph(db_session)
    await graph.add_edge(a.id, b.id)
    with pytest.raises(DuplicateEdgeError):
        await graph.add_edge(a.id, b.id)


@pytest.mark.asyncio
async def test_unknown_course(db_session, factory):
    a = await factory.course()
    graph = PrerequisiteGraph(db_session)
    with pytest.raises(NotFoundError):
        await graph.add_edge(a.id, uuid.uuid4())
    with pytest.raises(NotFoundError):
        await graph.prerequisites_of(uuid.uuid4())


@pytest.mark.asyncio
async def test_remove_edge(db_session, factory):
    a = await factory.course()
    b = await factory.course()
    graph = PrerequisiteGraph(db_session)
    await graph.add_edge(a.id, b.id)

    await graph.remove_edge(a.id, b.id)
    assert await graph.load_adjacency() == {}

    history = await EventStore(db_session).get_entity_history("course", a.id)
    assert {event.event_type for event in history} == {
        EventType.PREREQUISITE_ADDED.value,
        EventType.PREREQUISITE_REMOVED.value,
    }
    assert all(event.payload["prerequisite_course_id"] == str(b.id) for event in history)

    with pytest.raises(NotFoundError):
        await graph.remove_edge(a.id, b.id)


@pytest.mark.asyncio
async def test_listings_are_one_hop_and_sorted(db_session, factory):
    top = await factory.course("Top")
    zeta = await factory.course("Zeta basics")
    alpha = await factory.course("Alpha basics")
    root = await factory.course("Root")
    graph = PrerequisiteGraph(db_session)
    await graph.add_edge(top.id, zeta.id)
    await graph.add_edge(top.id, alpha.id)
    await graph.add_edge(alpha.id, root.id)

    prerequisites = await graph.prerequisites_of(top.id)
    assert [p.title for p in prerequisites] == ["Alpha basics", "Zeta basics"]
    # Without a user there is no verdict
    assert prerequisites[0].is_completed is None

    dependents = await graph.dependents_of(alpha.id)
    assert [d.course_id for d in dependents] == [top.id]


@pytest.mark.asyncio
async def test_unlock_follows_immediate_prerequisites(db_session, factory, learner):
    basics = await factory.course("Basics", lessons=1)
    middle = await factory.course("Middle", lessons=1)
    final = await factory.course("Final", lessons=1)
    graph = PrerequisiteGraph(db_session)
    await graph.add_edge(middle.id, basics.id)
    await graph.add_edge(final.id, middle.id)
    await db_session.commit()

    assert await graph.is_unlocked(learner.id, basics.id) is True
    assert await graph.is_unlocked(learner.id, middle.id) is False

    await factory.complete_course(learner, basics)
    assert await graph.is_unlocked(learner.id, middle.id) is True
    # Only the immediate prerequisite (Middle) counts for Final
    assert await graph.is_unlocked(learner.id, final.id) is False

    all_met, statuses = await graph.check_prerequisites(learner.id, middle.id)
    assert all_met is True
    assert statuses[0].lessons_completed == 1
    assert statuses[0].total_lessons == 1


@pytest.mark.asyncio
async def test_enter_course_gates_and_enrolls_once(db_session, factory, learner):
    basics = await factory.course("Basics", lessons=1)
    advanced = await factory.course("Advanced", lessons=1)
    await PrerequisiteGraph(db_session).add_edge(advanced.id, basics.id)
    await db_session.commit()
    service = EnrollmentService(db_session)

    with pytest.raises(CourseLockedError) as exc_info:
        await service.enter_course(learner.id, advanced.id)
    locked = exc_info.value.to_dict()
    assert locked["code"] == "course_locked"
    assert locked["prerequisites"][0]["course_id"] == str(basics.id)
    assert locked["prerequisites"][0]["is_completed"] is False
    assert await service.is_enrolled(learner.id, advanced.id) is False

    await factory.complete_course(learner, basics)
    first = await service.enter_course(learner.id, advanced.id)
    second = await service.enter_course(learner.id, advanced.id)
    assert first.id == second.id
    assert await EventStore(db_session).count_events(
        event_type=EventType.ENROLLMENT_CREATED, user_id=learner.id
    ) == 2  # basics + advanced
