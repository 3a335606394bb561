"""Release-need evaluation.

Compares each package's required ref against its last published release to
decide whether it has unreleased commits.
"""

from __future__ import annotations

from .github import HostingClient
from .models import ReleaseGraph, ReleaseStats, Repository
from .shell import step
from .versions import latest_versions, load_inventory


def evaluate(client: HostingClient, repo: Repository, release_type: str) -> bool:
    """Decide whether a repository has commits ahead of its last release.

    Compares the ref to be released against the baseline release for
    release_type and records the comparison in repo.stats. That ref is the
    resolved ref, except for a patch release when the m.n.x patch branch
    already exists: patches ship from that branch. A repository that was
    never released always needs its first release.

    Returns:
        True if the repository needs a release on its own account.
    """
    if repo.inventory is None:
        repo.inventory = load_inventory(client, repo.name)
    if repo.resolved_ref is None:
        raise ValueError(f"{repo.name} has not been scanned")
    repo.latest = latest_versions(repo.inventory)
    head = repo.resolved_ref
    if release_type == "patch" and repo.latest.patch_branch in repo.inventory.branches:
        head = repo.latest.patch_branch
    repo.release_ref = head

    if not repo.latest.released:
        repo.stats = ReleaseStats(first_release=True)
        repo.needs_release = True
        print(f"  {repo.name}: never released, first release needed")
        return True

    baseline = repo.latest.baseline(release_type)
    comparison = client.compare_refs(repo.name, baseline, head)
    repo.stats = ReleaseStats(
        ahead_by=comparison.ahead_by,
        behind_by=comparison.behind_by,
        files=[change.summary() for change in comparison.files],
        commit_messages=list(comparison.commit_messages),
    )
    repo.needs_release = comparison.ahead_by > 0

    patched = (
        f"patched with {repo.latest.current_patch}"
        if repo.latest.current_patch
        else "not patched"
    )
    print(
        f"  {repo.name}: {head} vs {baseline} ({patched}) - "
        f"ahead by {comparison.ahead_by}, behind by {comparison.behind_by}"
        + (", needs release" if repo.needs_release else "")
    )
    return repo.needs_release


def evaluate_all(client: HostingClient, graph: ReleaseGraph, release_type: str) -> list[str]:
    """Evaluate every discovered repository independently.

    Repositories with their own unreleased commits are added to
    graph.release_set in discovery order.

    Returns:
        The release set after evaluation.
    """
    step(f"Checking which packages need a {release_type} release")

    for name, repo in graph.repositories.items():
        if repo.needs_release is None:
            evaluate(client, repo, release_type)
        if repo.needs_release:
            graph.mark_for_release(name, "has unreleased changes")
    return list(graph.release_set)
