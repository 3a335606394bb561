"""Release pipeline: discover → evaluate → cascade → order → gate → release.

This module orchestrates a releaser run:
1. Discover the root package's transitive dependencies
2. Evaluate which packages have unreleased commits
3. Cascade releases to dependents of released packages
4. Order the release set, dependencies first
5. Print the plan and pass the mode gate
6. Release each package in order

Steps 1-4 only read from the hosting API. Nothing is mutated before the
plan is complete and, in interactive mode, confirmed.
"""

from __future__ import annotations

from collections.abc import Callable

from .evaluator import evaluate_all
from .executor import execute
from .github import HostingClient
from .graph import DEFAULT_MAX_ORDER_PASSES, propagate, release_order
from .manifest import MANIFEST_PATH
from .models import NameFilter, ReleasePlan, ReleaseType, RunMode
from .scanner import DEFAULT_MAX_SCAN_PASSES, discover
from .shell import step


def plan_release(
    client: HostingClient,
    root: str,
    *,
    source_ref: str = "master",
    release_type: ReleaseType = "minor",
    name_filter: NameFilter | None = None,
    manifest_path: str = MANIFEST_PATH,
    max_scan_passes: int = DEFAULT_MAX_SCAN_PASSES,
    max_order_passes: int = DEFAULT_MAX_ORDER_PASSES,
) -> ReleasePlan:
    """Compute what would be released, without changing anything.

    Returns:
        A ReleasePlan whose order is empty when nothing needs a release.
    """
    graph = discover(
        client,
        root,
        source_ref,
        name_filter or NameFilter(),
        manifest_path=manifest_path,
        max_passes=max_scan_passes,
    )
    evaluate_all(client, graph, release_type)
    propagate(graph)
    order = release_order(graph, max_passes=max_order_passes)
    return ReleasePlan(graph=graph, release_type=release_type, order=order)


def render_plan(plan: ReleasePlan) -> str:
    """Describe the plan for the operator, in release order."""
    if not plan.order:
        return "No packages require a release."

    root = plan.graph.root
    lines: list[str] = []
    if root in plan.order:
        others = len(plan.order) - 1
        lines.append(
            f"New {root} {plan.next_version(root)} to be released, "
            f"depending on {others} new:"
        )
    else:
        lines.append(f"{len(plan.order)} dependencies of {root} to be released:")

    for position, name in enumerate(plan.order, start=1):
        repo = plan.repository(name)
        reason = f" ({repo.release_reason})" if repo.release_reason else ""
        lines.append(
            f"  {position}. {name} {plan.next_version(name)} "
            f"from {plan.branch(name)}{reason}"
        )
    return "\n".join(lines)


def should_execute(mode: RunMode, confirm: Callable[[], bool] | None = None) -> bool:
    """The single mutation gate of a run.

    sandbox never executes, interactive asks confirm() once,
    non-interactive always proceeds.
    """
    if mode == "sandbox":
        return False
    if mode == "interactive":
        if confirm is None:
            raise ValueError("interactive mode needs a confirm callback")
        return bool(confirm())
    if mode == "non-interactive":
        return True
    raise ValueError(f"Unknown run mode: {mode!r}")


def run_release(
    client: HostingClient,
    root: str,
    *,
    mode: RunMode = "sandbox",
    confirm: Callable[[], bool] | None = None,
    source_ref: str = "master",
    release_type: ReleaseType = "minor",
    name_filter: NameFilter | None = None,
    manifest_path: str = MANIFEST_PATH,
    max_scan_passes: int = DEFAULT_MAX_SCAN_PASSES,
    max_order_passes: int = DEFAULT_MAX_ORDER_PASSES,
) -> tuple[ReleasePlan, bool]:
    """Execute the full release pipeline.

    Returns:
        Tuple of (plan, whether the plan was executed).
    """
    plan = plan_release(
        client,
        root,
        source_ref=source_ref,
        release_type=release_type,
        name_filter=name_filter,
        manifest_path=manifest_path,
        max_scan_passes=max_scan_passes,
        max_order_passes=max_order_passes,
    )

    step("Release plan")
    print(render_plan(plan))

    if not plan.order or not should_execute(mode, confirm):
        return plan, False

    execute(client, plan, manifest_path=manifest_path)
    return plan, True
