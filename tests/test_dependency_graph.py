# tests/test_dependency_graph.py

from __future__ import annotations

import pytest

from taskhub.exceptions import (
    DependencyCycleError,
    SelfDependencyError,
    TaskBlockedError,
    UnknownDependencyError,
)
from taskhub.schemas.task import TaskSnapshot, TaskStatus
from taskhub.services.dependency_graph import (
    EdgeStatus,
    LayoutOptions,
    analyze,
    build_dependency_graph,
    compute_layout,
    find_critical_path,
    find_cycles,
    get_blocking_status,
    validate_new_dependency,
)
from taskhub.services.task_status import ensure_can_transition

from .fakes import FakeTask


def ids(tasks) -> list[str]:
    return [t.id for t in tasks]


@pytest.fixture()
def fan_out() -> list[FakeTask]:
    """A <- B <- {C, D}: C and D both wait on B, which waits on A."""
    return [
        FakeTask("A"),
        FakeTask("B", ["A"]),
        FakeTask("C", ["B"]),
        FakeTask("D", ["B"]),
    ]


@pytest.fixture()
def two_cycle() -> list[FakeTask]:
    return [FakeTask("A", ["B"]), FakeTask("B", ["A"])]


# --- builder ---------------------------------------------------------------


def test_isolated_tasks_are_excluded(fan_out) -> None:
    tasks = fan_out + [FakeTask("lonely")]
    graph = build_dependency_graph(tasks)

    assert [n.id for n in graph.nodes] == ["A", "B", "C", "D"]
    assert [(e.source, e.target) for e in graph.edges] == [("A", "B"), ("B", "C"), ("B", "D")]


def test_dangling_dependencies_are_dropped() -> None:
    tasks = [FakeTask("A"), FakeTask("B", ["A", "ghost"]), FakeTask("X", ["missing"])]
    graph = build_dependency_graph(tasks)

    assert [n.id for n in graph.nodes] == ["A", "B"]
    assert [(e.source, e.target) for e in graph.edges] == [("A", "B")]


def test_edge_status_follows_source_task() -> None:
    tasks = [
        FakeTask("done", status=TaskStatus.COMPLETED),
        FakeTask("stuck", status=TaskStatus.BLOCKED),
        FakeTask("working", status=TaskStatus.IN_PROGRESS),
        FakeTask("target", ["done", "stuck", "working"]),
    ]
    graph = build_dependency_graph(tasks)

    assert {e.source: e.status for e in graph.edges} == {
        "done": EdgeStatus.SATISFIED,
        "stuck": EdgeStatus.BLOCKED,
        "working": EdgeStatus.PENDING,
    }
    assert graph.edges[0].to_dict() == {"from": "done", "to": "target", "status": "satisfied"}


def test_uuid_and_string_ids_match() -> None:
    from uuid import uuid4

    a, b = uuid4(), uuid4()
    tasks = [TaskSnapshot(id=a), TaskSnapshot(id=b, dependencies=[str(a)])]
    graph = build_dependency_graph(tasks)

    assert [(e.source, e.target) for e in graph.edges] == [(str(a), str(b))]


# --- cycles ----------------------------------------------------------------


def test_two_task_cycle_is_reported(two_cycle) -> None:
    cycles = find_cycles(two_cycle)

    assert len(cycles) == 1
    assert set(cycles[0]) == {"A", "B"}
    assert cycles[0][0] == cycles[0][-1]


def test_self_reference_is_a_cycle() -> None:
    assert find_cycles([FakeTask("A", ["A"])]) == [["A", "A"]]


def test_diamond_cross_edge_is_not_a_cycle() -> None:
    tasks = [
        FakeTask("A"),
        FakeTask("B", ["A"]),
        FakeTask("C", ["A"]),
        FakeTask("D", ["B", "C"]),
    ]
    assert find_cycles(tasks) == []


def test_cycle_path_slice_excludes_lead_in() -> None:
    tasks = [FakeTask("start", ["x"]), FakeTask("x", ["y"]), FakeTask("y", ["x"])]
    assert find_cycles(tasks) == [["x", "y", "x"]]


# --- critical path ---------------------------------------------------------


def test_longest_chain_has_three_tasks(fan_out) -> None:
    path = ids(find_critical_path(fan_out))

    assert len(path) == 3
    assert path in (["A", "B", "C"], ["A", "B", "D"])


def test_longest_chain_prefers_longer_branch() -> None:
    tasks = [
        FakeTask("A"),
        FakeTask("short", ["A"]),
        FakeTask("B", ["A"]),
        FakeTask("C", ["B"]),
        FakeTask("D", ["C"]),
        FakeTask("other_root"),
        FakeTask("E", ["other_root"]),
    ]
    assert ids(find_critical_path(tasks)) == ["A", "B", "C", "D"]


def test_critical_path_terminates_on_cycles(two_cycle) -> None:
    assert find_critical_path(two_cycle) == []


def test_critical_path_with_cycle_below_root() -> None:
    tasks = [FakeTask("root"), FakeTask("x", ["root", "y"]), FakeTask("y", ["x"])]
    path = ids(find_critical_path(tasks))

    assert path == ["root", "x", "y"]
    assert len(set(path)) == len(path)


def test_cycle_tail_is_not_reused_from_another_root() -> None:
    # P and X wait on each other; the long tail hangs off P
    tasks = [
        FakeTask("R1"),
        FakeTask("R2"),
        FakeTask("P", ["R1", "X"]),
        FakeTask("X", ["P", "R2"]),
        FakeTask("L1", ["P"]),
        FakeTask("L2", ["L1"]),
        FakeTask("L3", ["L2"]),
    ]

    assert ids(find_critical_path(tasks)) == ["R2", "X", "P", "L1", "L2", "L3"]


def test_deep_chain_does_not_hit_recursion_limit() -> None:
    size = 5000
    tasks = [FakeTask("t0")] + [FakeTask(f"t{i}", [f"t{i - 1}"]) for i in range(1, size)]

    assert len(find_critical_path(tasks)) == size
    graph = compute_layout(tasks)
    assert graph.max_depth == size - 1
    assert find_cycles(tasks) == []


# --- layout ----------------------------------------------------------------


def test_layout_coordinates(fan_out) -> None:
    graph = compute_layout(fan_out)
    nodes = {n.id: n for n in graph.nodes}

    assert (nodes["A"].depth, nodes["A"].column, nodes["A"].x, nodes["A"].y) == (0, 0, 0, 0)
    assert (nodes["B"].depth, nodes["B"].x) == (1, 300)
    assert (nodes["C"].depth, nodes["C"].column, nodes["C"].y) == (2, 0, 0)
    assert (nodes["D"].depth, nodes["D"].column, nodes["D"].y) == (2, 1, 120)
    assert graph.max_depth == 2
    assert graph.max_column == 1


def test_layout_uses_longest_chain_for_depth() -> None:
    tasks = [
        FakeTask("A"),
        FakeTask("B", ["A"]),
        FakeTask("C", ["B"]),
        FakeTask("E", ["A", "C"]),
    ]
    nodes = {n.id: n for n in compute_layout(tasks).nodes}
    assert nodes["E"].depth == 3


def test_layout_custom_spacing(fan_out) -> None:
    options = LayoutOptions(node_width=10, node_height=5, horizontal_gap=2, vertical_gap=1)
    nodes = {n.id: n for n in compute_layout(fan_out, options).nodes}

    assert nodes["C"].x == 24
    assert nodes["D"].y == 6


def test_layout_is_deterministic(fan_out) -> None:
    first = compute_layout(fan_out).to_dict()
    second = compute_layout(list(fan_out)).to_dict()
    assert first == second


def test_layout_terminates_on_cycles(two_cycle) -> None:
    graph = compute_layout(two_cycle)
    assert sorted(n.id for n in graph.nodes) == ["A", "B"]


def test_empty_layout() -> None:
    graph = compute_layout([FakeTask("A")])
    assert graph.to_dict() == {"nodes": [], "edges": [], "maxDepth": 0, "maxColumn": 0}


# --- blocking status -------------------------------------------------------


def test_blocking_status_counts(fan_out) -> None:
    fan_out[0].status = TaskStatus.COMPLETED
    status = get_blocking_status(fan_out[1], fan_out)

    assert status.blocked_by == 1
    assert status.blocking == 2
    assert status.blocked_by_completed == 1
    assert status.is_blocked is False


def test_blocked_until_every_dependency_completes() -> None:
    tasks = [
        FakeTask("A", status=TaskStatus.COMPLETED),
        FakeTask("B", status=TaskStatus.REVIEW_REQUIRED),
        FakeTask("C", ["A", "B"]),
    ]
    status = get_blocking_status(tasks[2], tasks)
    assert status.is_blocked is True
    assert status.blocked_by_completed == 1

    tasks[1].status = TaskStatus.COMPLETED
    assert get_blocking_status(tasks[2], tasks).is_blocked is False


def test_blocking_status_without_dependencies() -> None:
    task = FakeTask("solo")
    status = get_blocking_status(task, [task])
    assert status.to_dict() == {
        "blockedBy": 0,
        "blocking": 0,
        "isBlocked": False,
        "blockedByCompleted": 0,
    }


# --- dependency edits and status gate ---------------------------------------


def test_validate_rejects_self_dependency(fan_out) -> None:
    with pytest.raises(SelfDependencyError):
        validate_new_dependency("A", "A", fan_out)


def test_validate_rejects_unknown_task(fan_out) -> None:
    with pytest.raises(UnknownDependencyError):
        validate_new_dependency("A", "nope", fan_out)


def test_validate_rejects_cycle(fan_out) -> None:
    with pytest.raises(DependencyCycleError) as exc_info:
        validate_new_dependency("A", "C", fan_out)
    assert exc_info.value.cycle == ["A", "C", "B", "A"]


def test_validate_accepts_new_edge(fan_out) -> None:
    validate_new_dependency("D", "C", fan_out)


def test_cannot_start_while_blocked(fan_out) -> None:
    with pytest.raises(TaskBlockedError) as exc_info:
        ensure_can_transition(fan_out[1], TaskStatus.IN_PROGRESS, fan_out)
    assert exc_info.value.code == "TASK_BLOCKED"


def test_can_start_once_dependencies_complete(fan_out) -> None:
    fan_out[0].status = TaskStatus.COMPLETED
    status = ensure_can_transition(fan_out[1], "IN_PROGRESS", fan_out)
    assert status.is_blocked is False


def test_gate_only_applies_to_starting_work(fan_out) -> None:
    fan_out[1].status = TaskStatus.IN_PROGRESS
    ensure_can_transition(fan_out[1], TaskStatus.REVIEW_REQUIRED, fan_out)


# --- combined --------------------------------------------------------------


def test_analyze_bundles_results(two_cycle) -> None:
    tasks = two_cycle + [FakeTask("R"), FakeTask("S", ["R"])]
    payload = analyze(tasks).to_dict()

    assert payload["criticalPath"] == ["R", "S"]
    assert len(payload["cycles"]) == 1
    assert {n["id"] for n in payload["nodes"]} == {"A", "B", "R", "S"}
