"""Release set propagation and ordering.

Grows the release set to cover dependents of released packages, then
orders it so that when package A depends on package B, B is released
first.
"""

from __future__ import annotations

from .errors import UnorderableReleaseSet
from .models import ReleaseGraph
from .shell import step

DEFAULT_MAX_ORDER_PASSES = 15


def propagate(graph: ReleaseGraph) -> list[str]:
    """Add every package that depends on a package being released.

    A package without commits of its own still needs a release when one of
    its dependencies is released, because its manifest must point at the
    dependency's new version. Passes repeat until one adds nothing.

    Returns:
        The expanded release set (graph.release_set).

    Example:
        C is released, B requires C, A requires B:
        propagate → [C, B, A]
    """
    step("Additional releases due to dependency changes")

    changed = True
    while changed:
        changed = False
        for name, repo in graph.repositories.items():
            if name in graph.release_set or not repo.dependencies:
                continue
            released_dep = next(
                (dep for dep in sorted(repo.dependencies) if dep in graph.release_set),
                None,
            )
            if released_dep is None:
                continue
            if name == graph.root:
                reason = "it is the main repository"
            else:
                reason = f"{released_dep} is released"
            graph.mark_for_release(name, reason)
            print(f"  {name} needs a new release because {reason}")
            changed = True

    return list(graph.release_set)


def _unordered(graph: ReleaseGraph, order: list[str]) -> list[str]:
    return [name for name in graph.release_set if name not in order]


def release_order(graph: ReleaseGraph, *, max_passes: int = DEFAULT_MAX_ORDER_PASSES) -> list[str]:
    """Order the release set so dependencies come before dependents.

    Only dependency edges between members of the release set count;
    dependencies outside it are already released. Each pass walks the set
    in reverse discovery order, leaves first, and appends every package
    whose release-set dependencies are all ordered.

    Args:
        graph: Graph whose release_set is to be ordered.
        max_passes: Number of passes allowed before giving up.

    Returns:
        Package names in release order.

    Raises:
        UnorderableReleaseSet: If a pass makes no progress (a dependency
            cycle inside the release set) or max_passes is reached.

    Example:
        If A depends on B, and B depends on C:
        release_order({A, B, C}) → [C, B, A]
    """
    members = set(graph.release_set)
    pending = list(reversed(graph.release_set))
    order: list[str] = []

    passes = 0
    while pending:
        if passes >= max_passes:
            raise UnorderableReleaseSet(order, _unordered(graph, order), passes)
        passes += 1

        progressed = False
        for name in list(pending):
            deps = graph[name].dependencies or set()
            if all(dep in order for dep in deps if dep in members):
                order.append(name)
                pending.remove(name)
                progressed = True

        if not progressed:
            raise UnorderableReleaseSet(order, _unordered(graph, order), passes)

    return order
