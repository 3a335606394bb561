"""Version parsing and ref inventory utilities.

Handles conversion between ref names and semver objects, builds a package's
ref inventory from the hosting API, and derives the current/next version
strings used to plan a release.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import semver

from .models import FIRST_RELEASE_BASELINE, LatestVersions, Ref, RefInventory

if TYPE_CHECKING:
    from .github import HostingClient


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"

    Only the first 3 components are used (major.minor.patch).
    Prerelease/build metadata is not supported.
    """
    parts = version_str.split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts[:3]))


def parse_ref_version(name: str) -> semver.Version | None:
    """Parse a tag or release name as a strict major.minor.patch version.

    Returns None for anything else (branch names, "v1.0", "1.2",
    "1.3.0-rc1", "1.3.0+build"), which is expected and not an error.
    """
    try:
        version = semver.Version.parse(name)
    except (ValueError, TypeError):
        return None
    if version.prerelease or version.build:
        return None
    return version


def build_inventory(
    tags: list[str], releases: list[str], branches: list[str]
) -> RefInventory:
    """Merge tag, release and branch names into one ranked inventory.

    Tags and releases that parse as semver are merged (a release usually
    shares its tag's name) and sorted by precedence, highest first; equal
    versions keep their insertion order. Non-semver tags and releases are
    dropped. Branch names are appended afterwards as a fallback pool.
    """
    versioned: list[tuple[semver.Version, Ref]] = []
    seen: set[str] = set()
    for kind, names in (("tag", tags), ("release", releases)):
        for name in names:
            if name in seen:
                continue
            version = parse_ref_version(name)
            if version is None:
                continue
            seen.add(name)
            versioned.append((version, Ref(name=name, kind=kind, version=str(version))))

    # sorted() is stable with reverse=True, so ties keep insertion order
    ranked = [ref for _, ref in sorted(versioned, key=lambda item: item[0], reverse=True)]

    for name in branches:
        if name not in seen:
            seen.add(name)
            ranked.append(Ref(name=name, kind="branch"))

    return RefInventory(refs=ranked)


def load_inventory(client: HostingClient, name: str) -> RefInventory:
    """Fetch and rank all refs of a package."""
    return build_inventory(
        client.fetch_tags(name),
        client.fetch_releases(name),
        client.fetch_branches(name),
    )


def latest_versions(inventory: RefInventory) -> LatestVersions:
    """Derive current and next version strings from an inventory.

    The highest-precedence versioned ref gives (m1, m2, m3). A package
    that was never released uses the 0.1.0 baseline. The current patch is
    the highest m1.m2.x release with x > 0, if any.

    Example:
        refs {1.0.0, 1.1.0, 1.1.1, 1.2.0} → current_minor "1.2.0",
        current_patch None, next_minor "1.3.0", next_major "2.0.0",
        next_patch "1.2.1", next_branch "1.3.x".
    """
    versioned = inventory.versioned
    if versioned and versioned[0].version and "." in versioned[0].name:
        top = semver.Version.parse(versioned[0].version)
        released = True
    else:
        top = semver.Version.parse(FIRST_RELEASE_BASELINE)
        released = False

    major, minor = top.major, top.minor

    patch: int | None = None
    for ref in versioned:
        v = semver.Version.parse(ref.version or "")
        if v.major == major and v.minor == minor and v.patch > 0:
            patch = v.patch if patch is None else max(patch, v.patch)

    current_minor = semver.Version(major, minor, 0)
    return LatestVersions(
        released=released,
        current_major=str(semver.Version(major, 0, 0)),
        current_minor=str(current_minor),
        current_patch=str(semver.Version(major, minor, patch)) if patch else None,
        next_major=str(current_minor.bump_major()),
        next_minor=str(current_minor.bump_minor()),
        next_patch=str(semver.Version(major, minor, patch or 0).bump_patch()),
        next_branch=f"{major}.{minor + 1}.x",
        patch_branch=f"{major}.{minor}.x",
        major_branch=f"{major + 1}.0.x",
    )
