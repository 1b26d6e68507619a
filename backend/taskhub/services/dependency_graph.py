"""Task dependency graph engine.

All functions here operate on an in-memory snapshot of tasks. A task is
any object exposing ``id``, ``status`` and ``dependencies`` (the ids of
the tasks it waits on): ORM rows, ``TaskSnapshot`` models and plain
dataclasses all work. Ids are compared as strings.

Dependency ids that do not resolve to a task in the snapshot are ignored
everywhere. Cyclic input never raises; ``find_cycles`` reports cycles as
data and every other traversal skips edges that lead back onto the
current path.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Sequence

import structlog

from taskhub.exceptions import (
    DependencyCycleError,
    SelfDependencyError,
    UnknownDependencyError,
)
from taskhub.schemas.task import TaskStatus

logger = structlog.get_logger()


class EdgeStatus(str, Enum):
    """Edge state derived from the status of the task being waited on."""

    SATISFIED = "satisfied"
    PENDING = "pending"
    BLOCKED = "blocked"


def _task_id(task: Any) -> str:
    return str(task.id)


def _declared_dependencies(task: Any) -> list[str]:
    seen: set[str] = set()
    ids: list[str] = []
    for dep in getattr(task, "dependencies", None) or []:
        dep_id = str(dep)
        if dep_id not in seen:
            seen.add(dep_id)
            ids.append(dep_id)
    return ids


def _status(task: Any) -> TaskStatus | None:
    try:
        return TaskStatus(task.status)
    except ValueError:
        return None


def is_completed(task: Any) -> bool:
    return _status(task) is TaskStatus.COMPLETED


class DependencyIndex:
    """Adjacency lists over a task snapshot, in input order.

    ``dependencies[id]`` lists the resolved ids a task waits on and
    ``dependents[id]`` the tasks waiting on it. Duplicate task ids keep
    the first occurrence.
    """

    def __init__(self, tasks: Iterable[Any]):
        self.tasks: dict[str, Any] = {}
        for task in tasks:
            self.tasks.setdefault(_task_id(task), task)
        self.order: list[str] = list(self.tasks)

        self.dependencies: dict[str, list[str]] = {}
        self.dependents: dict[str, list[str]] = {tid: [] for tid in self.order}
        for tid in self.order:
            resolved = [
                dep for dep in _declared_dependencies(self.tasks[tid])
                if dep in self.tasks
            ]
            self.dependencies[tid] = resolved
            for dep in resolved:
                self.dependents[dep].append(tid)

    def participates(self, task_id: str) -> bool:
        return bool(self.dependencies[task_id] or self.dependents[task_id])


# =========================================================================
# Graph model
# =========================================================================


@dataclass
class GraphNode:
    id: str
    task: Any
    x: float = 0
    y: float = 0
    depth: int = 0
    column: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "task": self.task,
            "x": self.x,
            "y": self.y,
            "depth": self.depth,
            "column": self.column,
        }


@dataclass
class GraphEdge:
    """``source`` must complete before ``target`` can start."""

    source: str
    target: str
    status: EdgeStatus

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.source, "to": self.target, "status": self.status.value}


@dataclass
class DependencyGraph:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    max_depth: int = 0
    max_column: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "maxDepth": self.max_depth,
            "maxColumn": self.max_column,
        }


def edge_status(source: Any) -> EdgeStatus:
    status = _status(source)
    if status is TaskStatus.COMPLETED:
        return EdgeStatus.SATISFIED
    if status is TaskStatus.BLOCKED:
        return EdgeStatus.BLOCKED
    return EdgeStatus.PENDING


def _build(index: DependencyIndex) -> DependencyGraph:
    nodes = [
        GraphNode(id=tid, task=index.tasks[tid])
        for tid in index.order
        if index.participates(tid)
    ]
    edges = [
        GraphEdge(source=dep, target=tid, status=edge_status(index.tasks[dep]))
        for tid in index.order
        for dep in index.dependencies[tid]
    ]
    return DependencyGraph(nodes=nodes, edges=edges)


def build_dependency_graph(tasks: Sequence[Any]) -> DependencyGraph:
    """Nodes and edges for the tasks that take part in any dependency.

    Tasks with neither dependencies nor dependents are left out. Nodes are
    unpositioned; see ``compute_layout``.
    """
    return _build(DependencyIndex(tasks))


# =========================================================================
# Cycle detection
# =========================================================================


def find_cycles(tasks: Sequence[Any]) -> list[list[str]]:
    """Report dependency cycles found by depth-first search.

    Each cycle is the id path from the task that closes the loop back to
    itself, e.g. ``["a", "b", "a"]``. One cycle is reported per back edge.
    """
    index = DependencyIndex(tasks)
    visited: set[str] = set()
    cycles: list[list[str]] = []

    for start in index.order:
        if start in visited:
            continue
        visited.add(start)
        path = [start]
        position = {start: 0}
        stack = [iter(index.dependencies[start])]

        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                stack.pop()
                del position[path.pop()]
                continue
            if nxt in position:
                cycles.append(path[position[nxt]:] + [nxt])
                continue
            if nxt in visited:
                # Cross edge into an already explored branch
                continue
            visited.add(nxt)
            position[nxt] = len(path)
            path.append(nxt)
            stack.append(iter(index.dependencies[nxt]))

    if cycles:
        logger.warning("dependency_cycle_detected", cycles=len(cycles))
    return cycles


# =========================================================================
# Depth and layout
# =========================================================================


def compute_depths(index: DependencyIndex) -> dict[str, int]:
    """Length of the longest dependency chain ending at each task.

    Iterative post-order walk with a per-task cache. Edges back onto the
    current path are ignored, so cycles terminate.
    """
    depth: dict[str, int] = {}

    for start in index.order:
        if start in depth:
            continue
        path = [start]
        on_path = {start}
        stack = [iter(index.dependencies[start])]

        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                stack.pop()
                node = path.pop()
                on_path.discard(node)
                depth[node] = max(
                    (depth[dep] + 1 for dep in index.dependencies[node] if dep in depth),
                    default=0,
                )
                continue
            if nxt in depth or nxt in on_path:
                continue
            on_path.add(nxt)
            path.append(nxt)
            stack.append(iter(index.dependencies[nxt]))

    return depth


@dataclass(frozen=True)
class LayoutOptions:
    node_width: float = 200
    node_height: float = 80
    horizontal_gap: float = 100
    vertical_gap: float = 40


def _layout(index: DependencyIndex, options: LayoutOptions) -> DependencyGraph:
    graph = _build(index)
    depths = compute_depths(index)
    columns: dict[int, int] = {}

    for node in graph.nodes:
        node.depth = depths[node.id]
        node.column = columns.get(node.depth, 0)
        columns[node.depth] = node.column + 1
        node.x = node.depth * (options.node_width + options.horizontal_gap)
        node.y = node.column * (options.node_height + options.vertical_gap)

    graph.max_depth = max((node.depth for node in graph.nodes), default=0)
    graph.max_column = max((node.column for node in graph.nodes), default=0)
    return graph


def compute_layout(
    tasks: Sequence[Any],
    options: LayoutOptions | None = None,
) -> DependencyGraph:
    """Position participating tasks by depth (x) and order within depth (y).

    The result depends only on input order and dependency structure.
    """
    return _layout(DependencyIndex(tasks), options or LayoutOptions())


# =========================================================================
# Critical path
# =========================================================================


class _PathFrame:
    """One task on the current walk and the best continuation seen so far."""

    __slots__ = ("node", "children", "tail", "tainted")

    def __init__(self, node: str, children: Iterable[str]):
        self.node = node
        self.children = iter(children)
        self.tail: list[str] = []
        # Set once the subtree touched a task on the current path
        self.tainted = False

    def offer(self, chain: list[str]) -> None:
        if len(chain) > len(self.tail):
            self.tail = chain


def _longest_paths(index: DependencyIndex, roots: list[str]) -> dict[str, list[str]]:
    """Longest simple chain of dependents starting at each root.

    Depth-first walk along "tasks blocked by me" that only skips tasks
    already on the current path. A finished task is memoised only when its
    subtree never met the current path. Among equally long continuations the first
    dependent in input order wins.
    """
    cache: dict[str, list[str]] = {}
    result: dict[str, list[str]] = {}

    for root in roots:
        on_path = {root}
        stack = [_PathFrame(root, index.dependents[root])]

        while stack:
            frame = stack[-1]
            nxt = next(frame.children, None)
            if nxt is None:
                stack.pop()
                on_path.discard(frame.node)
                chain = [frame.node] + frame.tail
                if not frame.tainted:
                    cache[frame.node] = chain
                if stack:
                    stack[-1].offer(chain)
                    stack[-1].tainted |= frame.tainted
                else:
                    result[root] = chain
                continue
            if nxt in on_path:
                frame.tainted = True
                continue
            if nxt in cache:
                frame.offer(cache[nxt])
                continue
            on_path.add(nxt)
            stack.append(_PathFrame(nxt, index.dependents[nxt]))

    return result


def find_critical_path(tasks: Sequence[Any]) -> list[Any]:
    """Longest blocking chain, starting from a task with no dependencies.

    Ties go to the chain discovered first: roots in input order, then
    dependents in input order. Tasks that only sit on cycles have no root
    and are never part of the result.
    """
    index = DependencyIndex(tasks)
    roots = [tid for tid in index.order if not index.dependencies[tid]]
    best = _longest_paths(index, roots)

    longest: list[str] = []
    for root in roots:
        if len(best[root]) > len(longest):
            longest = best[root]
    return [index.tasks[tid] for tid in longest]


# =========================================================================
# Blocking status
# =========================================================================


@dataclass(frozen=True)
class BlockingStatus:
    blocked_by: int
    blocking: int
    is_blocked: bool
    blocked_by_completed: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "blockedBy": self.blocked_by,
            "blocking": self.blocking,
            "isBlocked": self.is_blocked,
            "blockedByCompleted": self.blocked_by_completed,
        }


def get_blocking_status(task: Any, all_tasks: Sequence[Any]) -> BlockingStatus:
    """Counters describing what blocks ``task`` and what it blocks.

    Only direct dependencies count. Self-references and ids missing from
    ``all_tasks`` are ignored.
    """
    tid = _task_id(task)
    by_id: dict[str, Any] = {}
    for other in all_tasks:
        by_id.setdefault(_task_id(other), other)

    dependencies = [
        by_id[dep] for dep in _declared_dependencies(task)
        if dep != tid and dep in by_id
    ]
    blocking = sum(
        1 for other_id, other in by_id.items()
        if other_id != tid and tid in _declared_dependencies(other)
    )
    completed = sum(1 for dep in dependencies if is_completed(dep))

    return BlockingStatus(
        blocked_by=len(dependencies),
        blocking=blocking,
        is_blocked=completed < len(dependencies),
        blocked_by_completed=completed,
    )


# =========================================================================
# Dependency edits
# =========================================================================


def validate_new_dependency(
    task_id: Any,
    dependency_id: Any,
    tasks: Sequence[Any],
) -> None:
    """Check that ``task_id`` may start depending on ``dependency_id``.

    Raises ``SelfDependencyError``, ``UnknownDependencyError`` or
    ``DependencyCycleError`` (with the loop the new edge would close).
    """
    task_id, dependency_id = str(task_id), str(dependency_id)
    if task_id == dependency_id:
        raise SelfDependencyError(task_id)

    index = DependencyIndex(tasks)
    for tid in (task_id, dependency_id):
        if tid not in index.tasks:
            raise UnknownDependencyError(tid)

    # The new edge closes a loop if dependency_id already waits on task_id
    parents: dict[str, str | None] = {dependency_id: None}
    queue = deque([dependency_id])
    while queue:
        node = queue.popleft()
        if node == task_id:
            chain = [node]
            while parents[chain[-1]] is not None:
                chain.append(parents[chain[-1]])
            cycle = [task_id] + chain[::-1]
            raise DependencyCycleError(cycle)
        for dep in index.dependencies[node]:
            if dep not in parents:
                parents[dep] = node
                queue.append(dep)


# =========================================================================
# Combined analysis
# =========================================================================


@dataclass
class GraphAnalysis:
    graph: DependencyGraph
    cycles: list[list[str]]
    critical_path: list[str]

    def to_dict(self) -> dict[str, Any]:
        payload = self.graph.to_dict()
        payload["cycles"] = self.cycles
        payload["criticalPath"] = self.critical_path
        return payload


def analyze(tasks: Sequence[Any], options: LayoutOptions | None = None) -> GraphAnalysis:
    """Layout, cycles and critical path for one snapshot."""
    return GraphAnalysis(
        graph=compute_layout(tasks, options),
        cycles=find_cycles(tasks),
        critical_path=[_task_id(task) for task in find_critical_path(tasks)],
    )
