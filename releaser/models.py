"""Data models for releaser.

These Pydantic models represent the core data structures passed between
the scan, evaluation, scheduling and execution phases of a release run.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

ReleaseType = Literal["major", "minor", "patch"]
RunMode = Literal["sandbox", "interactive", "non-interactive"]
RefKind = Literal["tag", "release", "branch"]

RELEASE_TYPES: tuple[str, ...] = ("major", "minor", "patch")
RUN_MODES: tuple[str, ...] = ("sandbox", "interactive", "non-interactive")

# Baseline used when a package has never been released
FIRST_RELEASE_BASELINE = "0.1.0"


class Ref(BaseModel):
    """A named pointer into a package's history.

    Attributes:
        name: Ref name as reported by the hosting API (e.g. "1.2.0", "master").
        kind: Where the ref came from.
        version: Normalized semver string when the name parses as one,
                 None for branches.
    """

    name: str
    kind: RefKind
    version: str | None = None


class RefInventory(BaseModel):
    """All tags, releases and branches of one package.

    Versioned refs come first, highest precedence first. Branches follow
    as an unordered fallback pool.
    """

    refs: list[Ref] = Field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [ref.name for ref in self.refs]

    @property
    def versioned(self) -> list[Ref]:
        return [ref for ref in self.refs if ref.version is not None]

    @property
    def branches(self) -> set[str]:
        return {ref.name for ref in self.refs if ref.kind == "branch"}

    @property
    def released(self) -> bool:
        return bool(self.versioned)

    def has(self, name: str) -> bool:
        return any(ref.name == name for ref in self.refs)


class LatestVersions(BaseModel):
    """Current and next version strings derived from a ref inventory."""

    released: bool
    current_major: str
    current_minor: str
    current_patch: str | None
    next_major: str
    next_minor: str
    next_patch: str
    next_branch: str
    patch_branch: str
    major_branch: str

    def baseline(self, release_type: str) -> str:
        """Release to compare against when deciding if a release is needed."""
        if release_type == "major":
            return self.current_major
        if release_type == "minor":
            return self.current_minor
        if release_type == "patch":
            return self.current_patch or self.current_minor
        return FIRST_RELEASE_BASELINE

    def next_version(self, release_type: str) -> str:
        """Version string the next release of this type will be tagged with."""
        if release_type == "major":
            return self.next_major
        if release_type == "patch":
            return self.next_patch
        return self.next_minor

    def branch_for(self, release_type: str) -> str:
        """Maintenance branch a release of this type is cut from."""
        if release_type == "major":
            return self.major_branch
        if release_type == "patch":
            return self.patch_branch
        return self.next_branch


class FileChange(BaseModel):
    """One changed file in a ref comparison."""

    status: str
    filename: str
    additions: int = 0
    deletions: int = 0

    def summary(self) -> str:
        return f"{self.status} {self.filename} -{self.deletions} +{self.additions}"


class ComparisonResult(BaseModel):
    """Outcome of comparing a head ref against a base ref."""

    ahead_by: int
    behind_by: int = 0
    status: str = ""
    files: list[FileChange] = Field(default_factory=list)
    commit_messages: list[str] = Field(default_factory=list)


class FileContent(BaseModel):
    """Raw file content plus the hash needed to write it back.

    Attributes:
        content: Decoded file bytes.
        content_hash: Blob hash of the content; must be presented unchanged
                      when the file is written back.
    """

    content: bytes
    content_hash: str


class ReleaseStats(BaseModel):
    """Evidence collected while deciding whether a package needs a release.

    Used to render release notes.
    """

    ahead_by: int = 0
    behind_by: int = 0
    files: list[str] = Field(default_factory=list)
    commit_messages: list[str] = Field(default_factory=list)
    first_release: bool = False


class NameFilter(BaseModel):
    """Include/exclude substring rules for manifest dependency names.

    A name passes if it contains at least one include substring (or the
    include list is empty) and none of the exclude substrings.
    """

    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)

    def matches(self, name: str) -> bool:
        if self.include and not any(part in name for part in self.include):
            return False
        return not any(part in name for part in self.exclude)


class Repository(BaseModel):
    """One package discovered during a release run.

    Attributes:
        name: Hosting-system repository name, unique within the graph.
        manifest_name: Fully-qualified manifest package name (vendor/name).
        required_versions: Constraint string → names of the packages that
                           requested it. The root's own source ref has no
                           requesters.
        dependencies: Names of repositories this one requires. None until its
                      manifest has been scanned; an empty set once scanned
                      with nothing matching.
        inventory: Tags, releases and branches, loaded once.
        resolved_ref: Concrete ref the required constraint resolved to.
        release_ref: Ref whose commits the next release ships. The resolved
                     ref, or an existing patch branch for patch releases.
        latest: Version arithmetic derived from the inventory.
        stats: Release-need evidence from the evaluator.
        needs_release: Own-change verdict from the evaluator.
        release_reason: Why the package ended up in the release set.
    """

    name: str
    manifest_name: str | None = None
    required_versions: dict[str, set[str]] = Field(default_factory=dict)
    dependencies: set[str] | None = None
    inventory: RefInventory | None = None
    resolved_ref: str | None = None
    release_ref: str | None = None
    latest: LatestVersions | None = None
    stats: ReleaseStats = Field(default_factory=ReleaseStats)
    needs_release: bool | None = None
    release_reason: str | None = None

    @property
    def scanned(self) -> bool:
        return self.dependencies is not None

    def add_required_version(self, constraint: str, requester: str | None = None) -> None:
        requesters = self.required_versions.setdefault(constraint, set())
        if requester is not None:
            requesters.add(requester)


class ReleaseGraph(BaseModel):
    """Every repository discovered in one run, plus the release set."""

    root: str
    source_ref: str
    repositories: dict[str, Repository] = Field(default_factory=dict)
    release_set: list[str] = Field(default_factory=list)

    def __contains__(self, name: object) -> bool:
        return name in self.repositories

    def __getitem__(self, name: str) -> Repository:
        return self.repositories[name]

    def names(self) -> list[str]:
        return list(self.repositories)

    def get_or_add(self, name: str) -> tuple[Repository, bool]:
        """Return the repository called name, creating it if needed.

        Returns:
            Tuple of (repository, whether it was newly created).
        """
        if name in self.repositories:
            return self.repositories[name], False
        repo = Repository(name=name)
        self.repositories[name] = repo
        return repo, True

    def mark_for_release(self, name: str, reason: str) -> None:
        if name not in self.repositories:
            raise KeyError(f"{name} is not part of the dependency graph")
        if name not in self.release_set:
            self.release_set.append(name)
            self.repositories[name].release_reason = reason


class ReleasePlan(BaseModel):
    """An ordered release set, ready to print or execute."""

    graph: ReleaseGraph
    release_type: ReleaseType
    order: list[str] = Field(default_factory=list)

    def repository(self, name: str) -> Repository:
        return self.graph[name]

    def next_version(self, name: str) -> str:
        latest = self.graph[name].latest
        if latest is None:
            raise ValueError(f"{name} has not been evaluated")
        return latest.next_version(self.release_type)

    def branch(self, name: str) -> str:
        latest = self.graph[name].latest
        if latest is None:
            raise ValueError(f"{name} has not been evaluated")
        return latest.branch_for(self.release_type)
