"""Dependency handling utilities.

Provides the manifest-name → repository-name transform, constraint
normalization, and pinning of required versions inside a parsed manifest.
"""

from __future__ import annotations

from typing import Any

from .manifest import get_requirements

DEV_PREFIX = "dev-"


def manifest_to_repo_name(manifest_name: str) -> str:
    """Map a namespaced manifest package name to its repository name.

    The repository name is the last non-empty path segment:
    - "acme/lib-http" → "lib-http"
    - "lib-http" → "lib-http"
    - "acme/lib-http/" → "lib-http"
    - "acme//lib-http" → "lib-http"

    Raises:
        ValueError: If the name has no non-empty segment ("", "/", "//").
    """
    segments = [segment for segment in manifest_name.strip().split("/") if segment]
    if not segments:
        raise ValueError(f"Cannot derive a repository name from {manifest_name!r}")
    return segments[-1]


def normalize_constraint(constraint: str) -> str:
    """Strip the "dev-" branch alias prefix from a constraint.

    Examples:
        "dev-master" → "master"
        "^1.0" → "^1.0"
    """
    constraint = constraint.strip()
    if constraint.startswith(DEV_PREFIX):
        return constraint[len(DEV_PREFIX) :]
    return constraint


def pin_requirements(
    manifest: dict[str, Any],
    versions: dict[str, str],
) -> dict[str, tuple[str, str]]:
    """Pin required versions in a manifest, modifying it in place.

    Only requirements whose repository name appears in versions are
    touched; everything else is left as-is.

    Args:
        manifest: Parsed manifest document.
        versions: Map of repository name → version to require.

    Returns:
        Map of manifest package name → (old constraint, new version) for
        every requirement that actually changed.
    """
    changed: dict[str, tuple[str, str]] = {}
    requirements = get_requirements(manifest)
    for dep_name, constraint in requirements.items():
        try:
            repo_name = manifest_to_repo_name(dep_name)
        except ValueError:
            continue
        new_version = versions.get(repo_name)
        if new_version is None or constraint == new_version:
            continue
        manifest["require"][dep_name] = new_version
        changed[dep_name] = (constraint, new_version)
    return changed
