"""Release execution: branch → manifest → commit → publish.

For each package in release order:
1. Create the maintenance branch (e.g. 1.3.x) from the source ref, unless
   it already exists
2. Rewrite the manifest on that branch to require the new versions of
   every other package in the release set
3. Commit the manifest back, guarded by the blob hash it was read with
4. Publish a release tagged with the package's next version

Creating a branch or release that already exists counts as success, so a
failed run can simply be re-run.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from .deps import pin_requirements
from .errors import ReleaserError, ReleaseStepFailed
from .github import HostingClient
from .manifest import MANIFEST_PATH, dump_manifest, load_manifest
from .models import ReleasePlan, Repository
from .shell import step


@contextmanager
def release_step(package: str, name: str) -> Iterator[None]:
    """Attribute any release failure inside the block to package and step."""
    try:
        yield
    except ReleaseStepFailed:
        raise
    except ReleaserError as exc:
        raise ReleaseStepFailed(package, name, str(exc)) from exc


def release_notes(plan: ReleasePlan, name: str, now: datetime | None = None) -> str:
    """Render the release body from the evaluator's stats."""
    repo = plan.repository(name)
    tag = plan.next_version(name)
    branch = plan.branch(name)
    stats = repo.stats
    when = (now or datetime.now(timezone.utc)).strftime("%a %b %d, %Y %H:%M %Z")

    if stats.first_release:
        lines = [f"`{tag} from {branch} branch, first release`"]
    else:
        lines = [f"`{tag} from {branch} branch with {stats.ahead_by} commits`"]
    if repo.release_reason:
        lines += ["", f"Released because {repo.release_reason}."]
    lines += ["", "### File changes:"]
    lines += [f"* {summary}" for summary in stats.files] or ["* none"]
    lines += ["", "### Commits:"]
    lines += [f"* {message}" for message in stats.commit_messages] or ["* none"]
    lines += ["", f"Released by releaser @ {when}"]
    return "\n".join(lines)


def create_maintenance_branch(client: HostingClient, repo: Repository, branch: str) -> bool:
    """Create the maintenance branch from the ref being released.

    Returns:
        True if a branch was created, False if it already existed.

    Raises:
        RefNotFound: If the source ref's head cannot be resolved.
    """
    if repo.inventory is not None and branch in repo.inventory.branches:
        print(f"  {repo.name}: branch {branch} already exists")
        return False

    source = repo.release_ref or repo.resolved_ref or ""
    sha = client.get_branch_head_sha(repo.name, source)
    created = client.create_branch(repo.name, branch, sha)
    if created:
        print(f"  {repo.name}: created branch {branch} from {source} ({sha[:7]})")
    else:
        print(f"  {repo.name}: branch {branch} already exists")
    return created


def update_manifest(
    client: HostingClient,
    plan: ReleasePlan,
    repo: Repository,
    branch: str,
    manifest_path: str = MANIFEST_PATH,
) -> bool:
    """Point the manifest on branch at the new versions of released deps.

    Unrelated requirements are left untouched. Nothing is written when no
    requirement changes.

    Returns:
        True if the manifest was committed.

    Raises:
        OptimisticWriteConflict: If the manifest changed since it was read.
    """
    file = client.fetch_file(repo.name, branch, manifest_path)
    manifest = load_manifest(file.content, source=f"{repo.name}@{branch}:{manifest_path}")

    versions = {
        name: plan.next_version(name) for name in plan.order if name != repo.name
    }
    changed = pin_requirements(manifest, versions)
    if not changed:
        print(f"  {repo.name}: {manifest_path} needs no changes")
        return False

    for dep_name, (old, new) in changed.items():
        print(f"  {repo.name}: {manifest_path} {dep_name} {old} → {new}")
    client.write_file(
        repo.name,
        manifest_path,
        dump_manifest(manifest),
        file.content_hash,
        branch,
        f"Require released dependencies in {manifest_path}",
    )
    return True


def publish(
    client: HostingClient,
    plan: ReleasePlan,
    repo: Repository,
    branch: str,
    now: datetime | None = None,
) -> bool:
    """Publish the release; an existing release counts as done.

    Returns:
        True if a release was created, False if it already existed.
    """
    tag = plan.next_version(repo.name)
    created = client.publish_release(
        repo.name, tag, branch, tag, release_notes(plan, repo.name, now)
    )
    if created:
        print(f"  Released {repo.name} {tag}")
    else:
        print(f"  {repo.name} {tag} was already released")
    return created


def execute(
    client: HostingClient,
    plan: ReleasePlan,
    *,
    manifest_path: str = MANIFEST_PATH,
    now: datetime | None = None,
) -> None:
    """Release every package of the plan, in order.

    Raises:
        ReleaseStepFailed: On the first failing step; later packages are
            not touched.
    """
    step(f"Releasing {len(plan.order)} packages")

    for name in plan.order:
        repo = plan.repository(name)
        branch = plan.branch(name)
        print(f"\n  {name} {plan.next_version(name)} ({branch})")

        with release_step(name, "create branch"):
            create_maintenance_branch(client, repo, branch)
        with release_step(name, "update manifest"):
            update_manifest(client, plan, repo, branch, manifest_path)
        with release_step(name, "publish release"):
            publish(client, plan, repo, branch, now)
