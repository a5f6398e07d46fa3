# dag.py
from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Set, Tuple

from .errors import PlanningError
from .model import Stage


def build_dag(stages: Iterable[Stage]) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Build a DAG from Stage objects.

    Requires:
      - stage.name: str (unique)
      - stage.needs: iterable[str] (names of stages that must finish BEFORE this one)

    Returns (adj, indeg) where adj maps a stage to its dependents.
    """
    stages = list(stages)
    names = [s.name for s in stages]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise PlanningError("Duplicate stage names found", dupes)

    name_set = set(names)
    adj: Dict[str, Set[str]] = {n: set() for n in names}
    indeg: Dict[str, int] = {n: 0 for n in names}

    for stage in stages:
        for need in sorted(stage.needs):
            if need not in name_set:
                raise PlanningError(
                    f"Stage '{stage.name}' needs missing stage '{need}'",
                    sorted(name_set),
                )
            # Edge need -> stage.name (need must finish before stage)
            if stage.name not in adj[need]:
                adj[need].add(stage.name)
                indeg[stage.name] += 1

    return adj, indeg


def topo_levels(adj: Dict[str, Set[str]], indeg: Dict[str, int]) -> List[List[str]]:
    """
    Convert DAG into topological "levels".
    Each level can run in parallel.
    """
    indeg = dict(indeg)  # copy (we mutate it)
    q = deque(sorted(n for n, d in indeg.items() if d == 0))

    levels: List[List[str]] = []
    processed = 0

    while q:
        level_size = len(q)
        level: List[str] = []

        for _ in range(level_size):
            node = q.popleft()
            level.append(node)
            processed += 1

            for child in sorted(adj.get(node, set())):
                indeg[child] -= 1
                if indeg[child] == 0:
                    q.append(child)

        levels.append(level)

    if processed != len(indeg):
        remaining = sorted(n for n, d in indeg.items() if d > 0)
        raise PlanningError("Stage graph has a cycle. Stuck stages", remaining)

    return levels


def topo_order(stages: Iterable[Stage]) -> List[str]:
    """Stable topological order: by level, then by declaration order within a level."""
    stages = list(stages)
    declared = {s.name: i for i, s in enumerate(stages)}
    adj, indeg = build_dag(stages)
    order: List[str] = []
    for level in topo_levels(adj, indeg):
        order.extend(sorted(level, key=declared.__getitem__))
    return order


def ancestors(stages: Iterable[Stage], name: str) -> Set[str]:
    """Every stage `name` depends on, directly or transitively."""
    by_name = {s.name: s for s in stages}
    seen: Set[str] = set()
    stack = list(by_name[name].needs)
    while stack:
        n = stack.pop()
        if n in seen:
            continue
        seen.add(n)
        stack.extend(by_name[n].needs)
    return seen


def validate(stages: Iterable[Stage], *, sink: str | None = None) -> List[str]:
    """
    Check the graph is a DAG and, if `sink` is given, that the sink depends
    (directly or transitively) on every other stage. Returns the topological
    order.
    """
    stages = list(stages)
    order = topo_order(stages)
    if sink is not None:
        if sink not in order:
            raise PlanningError(f"Sink stage '{sink}' is not declared", order)
        unreachable = sorted(set(order) - {sink} - ancestors(stages, sink))
        if unreachable:
            raise PlanningError(f"Stage '{sink}' does not depend on", unreachable)
    return order
