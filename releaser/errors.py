"""Error taxonomy for a release run.

Every error here aborts the whole run. The CLI turns them into a message on
stderr and a non-zero exit code.
"""

from __future__ import annotations

from collections.abc import Iterable


class ReleaserError(RuntimeError):
    """Base class for all release failures."""


class TransportFailure(ReleaserError):
    """The hosting API could not complete a call."""


class FileNotFound(ReleaserError):
    """A requested file does not exist at the given ref."""


class NotAFile(ReleaserError):
    """A requested path exists but is a directory."""


class RefNotFound(ReleaserError):
    """A branch, tag or commit could not be resolved."""


class InvalidManifest(ReleaserError):
    """A manifest file is not valid JSON or has the wrong shape."""


class UnresolvableConstraint(ReleaserError):
    """A version constraint matches no known ref of a package."""

    def __init__(self, package: str, constraint: str) -> None:
        super().__init__(f"{package}: no ref matches constraint {constraint!r}")
        self.package = package
        self.constraint = constraint


class ConflictingConstraints(ReleaserError):
    """One or more packages are required at irreconcilable versions.

    Attributes:
        conflicts: Map of package name → the distinct constraints requested.
    """

    def __init__(self, conflicts: dict[str, list[str]]) -> None:
        issues = " and ".join(
            f"{name} ({', '.join(versions)})" for name, versions in conflicts.items()
        )
        super().__init__(f"Multiple dependency versions required: {issues}")
        self.conflicts = conflicts


class DependencyCycleSuspected(ReleaserError):
    """Dependency discovery did not converge within its pass ceiling."""

    def __init__(self, passes: int, pending: Iterable[str]) -> None:
        self.passes = passes
        self.pending = sorted(pending)
        super().__init__(
            f"Dependency scan did not converge after {passes} passes; "
            f"still pending: {', '.join(self.pending) or '<none>'}"
        )


class UnorderableReleaseSet(ReleaserError):
    """No release order could be found for the release set.

    Attributes:
        ordered: Packages that were ordered before giving up.
        remaining: Packages that could not be ordered.
    """

    def __init__(self, ordered: list[str], remaining: list[str], passes: int) -> None:
        self.ordered = ordered
        self.remaining = remaining
        self.passes = passes
        super().__init__(
            f"Could not order release set after {passes} passes. "
            f"Ordered: [{', '.join(ordered)}]; "
            f"unordered: [{', '.join(remaining)}]"
        )


class OptimisticWriteConflict(ReleaserError):
    """A file changed between being read and written back."""


class ReleaseStepFailed(ReleaserError):
    """A release step failed for one package.

    The original error is chained as ``__cause__``.
    """

    def __init__(self, package: str, step: str, reason: str) -> None:
        super().__init__(f"{package}: {step} failed: {reason}")
        self.package = package
        self.step = step


class InvalidConfig(ReleaserError):
    """The configuration file is unreadable or has invalid values."""
