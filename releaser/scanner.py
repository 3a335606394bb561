"""Dependency discovery.

Builds the release graph by repeatedly reading manifests from the hosting
API until a full pass discovers no new package.
"""

from __future__ import annotations

from .constraints import collapse_constraints, resolve_constraint
from .deps import manifest_to_repo_name
from .errors import ConflictingConstraints, DependencyCycleSuspected
from .github import HostingClient
from .manifest import MANIFEST_PATH, get_manifest_name, get_requirements, load_manifest
from .models import NameFilter, ReleaseGraph, Repository
from .shell import step
from .versions import load_inventory

DEFAULT_MAX_SCAN_PASSES = 50


def scan_repository(
    client: HostingClient,
    graph: ReleaseGraph,
    repo: Repository,
    name_filter: NameFilter,
    manifest_path: str = MANIFEST_PATH,
) -> int:
    """Read one repository's manifest and record its dependencies.

    Resolves the repository's required constraint to a concrete ref,
    fetches the manifest at that ref and registers every requirement that
    passes name_filter as a dependency edge.

    Returns:
        Number of repositories that were new to the graph.
    """
    constraint = collapse_constraints(repo.name, repo.required_versions)
    if repo.inventory is None:
        repo.inventory = load_inventory(client, repo.name)
    repo.resolved_ref = resolve_constraint(constraint, repo.inventory, repo.name)

    manifest = load_manifest(
        client.fetch_file(repo.name, repo.resolved_ref, manifest_path).content,
        source=f"{repo.name}@{repo.resolved_ref}:{manifest_path}",
    )
    if repo.manifest_name is None:
        repo.manifest_name = get_manifest_name(manifest)

    new_count = 0
    dependencies: set[str] = set()
    for dep_manifest_name, dep_constraint in get_requirements(manifest).items():
        if not name_filter.matches(dep_manifest_name):
            continue
        dep_name = manifest_to_repo_name(dep_manifest_name)
        if dep_name == repo.name:
            continue
        dependencies.add(dep_name)

        target, created = graph.get_or_add(dep_name)
        if created:
            new_count += 1
        target.manifest_name = target.manifest_name or dep_manifest_name
        target.add_required_version(dep_constraint, repo.name)

    repo.dependencies = dependencies
    deps = f" → [{', '.join(sorted(dependencies))}]" if dependencies else " (no dependencies)"
    print(f"  {repo.name} @ {repo.resolved_ref}{deps}")
    return new_count


def find_conflicts(graph: ReleaseGraph) -> dict[str, list[str]]:
    """Collect every repository required at irreconcilable versions."""
    conflicts: dict[str, list[str]] = {}
    for name, repo in graph.repositories.items():
        try:
            collapse_constraints(name, repo.required_versions)
        except ConflictingConstraints as exc:
            conflicts.update(exc.conflicts)
    return conflicts


def discover(
    client: HostingClient,
    root: str,
    source_ref: str,
    name_filter: NameFilter,
    *,
    manifest_path: str = MANIFEST_PATH,
    max_passes: int = DEFAULT_MAX_SCAN_PASSES,
) -> ReleaseGraph:
    """Discover the transitive dependency graph of a root package.

    Each pass scans every repository whose dependencies are still
    undetermined. The loop ends after a pass that adds no new repository.

    Args:
        client: Hosting API adapter.
        root: Repository name of the package being released.
        source_ref: Ref of the root to release from (e.g. "master").
        name_filter: Which manifest requirements count as dependencies.
        manifest_path: Manifest file path inside each repository.
        max_passes: Ceiling on the number of passes.

    Returns:
        The populated ReleaseGraph.

    Raises:
        DependencyCycleSuspected: If the scan has not converged after
            max_passes.
        ConflictingConstraints: If any repository is required at more than
            one distinct version.
        UnresolvableConstraint: If a required version matches no ref.
    """
    step(f"Discovering dependencies of {root} @ {source_ref}")

    graph = ReleaseGraph(root=root, source_ref=source_ref)
    root_repo, _ = graph.get_or_add(root)
    root_repo.add_required_version(source_ref)

    passes = 0
    while True:
        if passes >= max_passes:
            pending = [name for name, repo in graph.repositories.items() if not repo.scanned]
            raise DependencyCycleSuspected(passes, pending)
        passes += 1

        pending_repos = [repo for repo in graph.repositories.values() if not repo.scanned]
        new_count = 0
        for repo in pending_repos:
            new_count += scan_repository(client, graph, repo, name_filter, manifest_path)

        if new_count == 0:
            break

    conflicts = find_conflicts(graph)
    if conflicts:
        raise ConflictingConstraints(conflicts)

    print(f"  {len(graph.repositories)} packages discovered in {passes} passes")
    return graph
