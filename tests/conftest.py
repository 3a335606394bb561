"""Shared test fixtures."""

from __future__ import annotations

import hashlib
import json
from typing import Any

import pytest

from releaser.errors import FileNotFound, OptimisticWriteConflict, RefNotFound
from releaser.models import ComparisonResult, FileContent

MANIFEST = "composer.json"


def manifest_bytes(name: str, require: dict[str, str] | None = None) -> bytes:
    """Render a composer.json document."""
    doc: dict[str, Any] = {"name": name}
    if require is not None:
        doc["require"] = require
    return (json.dumps(doc, indent=4) + "\n").encode()


def blob_hash(content: bytes) -> str:
    return hashlib.sha1(content).hexdigest()


class FakeHosting:
    """In-memory HostingClient.

    Branch heads are fake shas derived from the branch name; creating a
    branch copies the files of the branch whose head it points at.
    """

    def __init__(self) -> None:
        self.tags: dict[str, list[str]] = {}
        self.releases: dict[str, list[str]] = {}
        self.branches: dict[str, list[str]] = {}
        self.files: dict[tuple[str, str, str], bytes] = {}
        self.comparisons: dict[tuple[str, str, str], ComparisonResult] = {}
        self.created_branches: list[tuple[str, str, str]] = []
        self.writes: list[tuple[str, str, str, bytes]] = []
        self.published: list[tuple[str, str, str, str]] = []
        self.calls: list[tuple[str, ...]] = []

    def add_package(
        self,
        name: str,
        *,
        manifest_name: str | None = None,
        require: dict[str, str] | None = None,
        tags: list[str] | None = None,
        releases: list[str] | None = None,
        branches: list[str] | None = None,
    ) -> None:
        self.tags[name] = list(tags or [])
        self.releases[name] = list(releases if releases is not None else tags or [])
        self.branches[name] = list(branches or ["master"])
        content = manifest_bytes(manifest_name or f"acme/{name}", require or {})
        for branch in self.branches[name]:
            self.files[(name, branch, MANIFEST)] = content
        for tag in self.tags[name]:
            self.files[(name, tag, MANIFEST)] = content

    def set_ahead(
        self,
        name: str,
        base: str,
        head: str,
        ahead_by: int,
        messages: list[str] | None = None,
    ) -> None:
        self.comparisons[(name, base, head)] = ComparisonResult(
            ahead_by=ahead_by, commit_messages=messages or []
        )

    def manifest(self, name: str, ref: str) -> dict[str, Any]:
        return json.loads(self.files[(name, ref, MANIFEST)])

    # HostingClient protocol

    def fetch_tags(self, package: str) -> list[str]:
        self.calls.append(("fetch_tags", package))
        return list(self.tags.get(package, []))

    def fetch_releases(self, package: str) -> list[str]:
        self.calls.append(("fetch_releases", package))
        return list(self.releases.get(package, []))

    def fetch_branches(self, package: str) -> list[str]:
        self.calls.append(("fetch_branches", package))
        return list(self.branches.get(package, []))

    def fetch_file(self, package: str, ref: str, path: str) -> FileContent:
        self.calls.append(("fetch_file", package, ref, path))
        content = self.files.get((package, ref, path))
        if content is None:
            raise FileNotFound(f"{package}: {path} not found at {ref}")
        return FileContent(content=content, content_hash=blob_hash(content))

    def compare_refs(self, package: str, base_ref: str, head_ref: str) -> ComparisonResult:
        self.calls.append(("compare_refs", package, base_ref, head_ref))
        return self.comparisons.get(
            (package, base_ref, head_ref), ComparisonResult(ahead_by=0)
        )

    def get_branch_head_sha(self, package: str, branch: str) -> str:
        self.calls.append(("get_branch_head_sha", package, branch))
        if branch not in self.branches.get(package, []) and branch not in self.tags.get(
            package, []
        ):
            raise RefNotFound(f"{package}: cannot resolve head of {branch}")
        return f"sha-{branch}"

    def create_branch(self, package: str, branch: str, sha: str) -> bool:
        self.calls.append(("create_branch", package, branch, sha))
        if branch in self.branches.setdefault(package, []):
            return False
        source = sha.removeprefix("sha-")
        self.branches[package].append(branch)
        for (pkg, ref, path), content in list(self.files.items()):
            if pkg == package and ref == source:
                self.files[(package, branch, path)] = content
        self.created_branches.append((package, branch, sha))
        return True

    def write_file(
        self,
        package: str,
        path: str,
        content: bytes,
        expected_hash: str,
        branch: str,
        message: str,
    ) -> None:
        self.calls.append(("write_file", package, path, branch))
        current = self.files.get((package, branch, path), b"")
        if blob_hash(current) != expected_hash:
            raise OptimisticWriteConflict(f"{package}: {path} on {branch} changed")
        self.files[(package, branch, path)] = content
        self.writes.append((package, path, branch, content))

    def publish_release(
        self, package: str, tag: str, target: str, title: str, body: str
    ) -> bool:
        self.calls.append(("publish_release", package, tag, target))
        if tag in self.releases.setdefault(package, []):
            return False
        self.releases[package].append(tag)
        self.tags.setdefault(package, []).append(tag)
        self.published.append((package, tag, target, body))
        return True


@pytest.fixture
def hosting() -> FakeHosting:
    """An empty in-memory hosting API."""
    return FakeHosting()


@pytest.fixture
def chain_hosting() -> FakeHosting:
    """app → lib → core, all released at 1.4.0, nothing ahead."""
    fake = FakeHosting()
    fake.add_package(
        "app", require={"acme/lib": "dev-master", "vendor/other": "^2.0"}, tags=["1.4.0"]
    )
    fake.add_package("lib", require={"acme/core": "dev-master"}, tags=["1.4.0"])
    fake.add_package("core", require={"php": ">=8.1"}, tags=["1.4.0"])
    return fake
