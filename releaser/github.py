"""Hosting API adapter.

The release core talks to the hosting system through the HostingClient
protocol. GitHubClient implements it on top of ``gh api`` so that
authentication, pagination and HTTP handling stay in the gh CLI.
"""

from __future__ import annotations

import base64
import json
import os
import re
import subprocess
import time
from typing import Any, Protocol
from urllib.parse import quote

from .errors import (
    FileNotFound,
    NotAFile,
    OptimisticWriteConflict,
    RefNotFound,
    TransportFailure,
)
from .models import ComparisonResult, FileChange, FileContent
from .shell import gh

GH_TIMEOUT_SECONDS = 60.0
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 2.0

_HTTP_STATUS = re.compile(r"HTTP (\d{3})")
_TRANSIENT_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "tls handshake timeout",
    "network is unreachable",
)


class HostingClient(Protocol):
    """Operations the release core needs from the hosting system."""

    def fetch_tags(self, package: str) -> list[str]: ...

    def fetch_releases(self, package: str) -> list[str]: ...

    def fetch_branches(self, package: str) -> list[str]: ...

    def fetch_file(self, package: str, ref: str, path: str) -> FileContent: ...

    def compare_refs(
        self, package: str, base_ref: str, head_ref: str
    ) -> ComparisonResult: ...

    def get_branch_head_sha(self, package: str, branch: str) -> str: ...

    def create_branch(self, package: str, branch: str, sha: str) -> bool:
        """Create a branch; return False if it already exists."""
        ...

    def write_file(
        self,
        package: str,
        path: str,
        content: bytes,
        expected_hash: str,
        branch: str,
        message: str,
    ) -> None:
        """Write a file; raise OptimisticWriteConflict on a hash mismatch."""
        ...

    def publish_release(
        self, package: str, tag: str, target: str, title: str, body: str
    ) -> bool:
        """Publish a release; return False if the tag already exists."""
        ...


class GhApiError(TransportFailure):
    """A gh api call failed.

    Attributes:
        status: HTTP status reported by gh, if any.
        output: Combined stdout/stderr of the failed call.
    """

    def __init__(self, path: str, status: int | None, output: str) -> None:
        detail = output.strip().splitlines()[-1] if output.strip() else "no output"
        super().__init__(f"gh api {path} failed: {detail}")
        self.path = path
        self.status = status
        self.output = output

    @property
    def already_exists(self) -> bool:
        text = self.output.lower()
        return "already exists" in text or "already_exists" in text

    @property
    def transient(self) -> bool:
        if self.status is not None and (self.status == 429 or self.status >= 500):
            return True
        text = self.output.lower()
        return any(marker in text for marker in _TRANSIENT_MARKERS)


class GitHubClient:
    """HostingClient backed by the GitHub REST API through ``gh api``.

    Args:
        owner: User or organization owning every released repository.
        token: Token exported to gh as GH_TOKEN; falls back to gh's own
               authentication when None.
        timeout: Seconds allowed per call.
        retries: Attempts for read calls that fail transiently.
        retry_delay: Seconds between read attempts.
    """

    def __init__(
        self,
        owner: str,
        token: str | None = None,
        *,
        timeout: float = GH_TIMEOUT_SECONDS,
        retries: int = GH_READ_RETRY_ATTEMPTS,
        retry_delay: float = GH_READ_RETRY_DELAY_SECONDS,
    ) -> None:
        self.owner = owner
        self.token = token
        self.timeout = timeout
        self.retries = max(1, retries)
        self.retry_delay = retry_delay

    def _repo_path(self, package: str, *parts: str) -> str:
        return "/".join(["repos", self.owner, package, *parts])

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        if self.token:
            env["GH_TOKEN"] = self.token
        return env

    def _call(self, path: str, *args: str) -> str:
        try:
            result = gh("api", path, *args, env=self._env(), timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            raise GhApiError(path, None, f"timed out after {exc.timeout}s") from exc
        except FileNotFoundError as exc:
            raise TransportFailure("gh CLI not found; install it from https://cli.github.com") from exc

        if result.returncode == 0:
            return result.stdout
        output = f"{result.stdout}\n{result.stderr}"
        match = _HTTP_STATUS.search(result.stderr)
        raise GhApiError(path, int(match.group(1)) if match else None, output)

    def _read(self, path: str, *args: str) -> str:
        """Run a read-only call, retrying transient failures."""
        for attempt in range(self.retries):
            try:
                return self._call(path, *args)
            except GhApiError as exc:
                if attempt == self.retries - 1 or not exc.transient:
                    raise
                time.sleep(self.retry_delay)
        raise AssertionError("unreachable")

    def _read_json(self, path: str, *args: str) -> Any:
        output = self._read(path, *args)
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise TransportFailure(f"gh api {path} returned invalid JSON") from exc

    def _list_names(self, path: str, field: str) -> list[str]:
        output = self._read(path, "--paginate", "--jq", f".[].{field}")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def fetch_tags(self, package: str) -> list[str]:
        return self._list_names(self._repo_path(package, "tags"), "name")

    def fetch_releases(self, package: str) -> list[str]:
        return self._list_names(self._repo_path(package, "releases"), "tag_name")

    def fetch_branches(self, package: str) -> list[str]:
        return self._list_names(self._repo_path(package, "branches"), "name")

    def fetch_file(self, package: str, ref: str, path: str) -> FileContent:
        api_path = self._repo_path(package, "contents", quote(path))
        try:
            data = self._read_json(api_path, "-X", "GET", "-f", f"ref={ref}")
        except GhApiError as exc:
            if exc.status == 404:
                raise FileNotFound(f"{package}: {path} not found at {ref}") from exc
            raise

        if isinstance(data, list) or data.get("type") != "file":
            raise NotAFile(f"{package}: {path} at {ref} is not a file")
        if data.get("encoding") != "base64":
            raise TransportFailure(
                f"{package}: unexpected encoding {data.get('encoding')!r} for {path}"
            )
        return FileContent(
            content=base64.b64decode(data.get("content", "")),
            content_hash=data["sha"],
        )

    def compare_refs(self, package: str, base_ref: str, head_ref: str) -> ComparisonResult:
        basehead = f"{quote(base_ref, safe='/')}...{quote(head_ref, safe='/')}"
        data = self._read_json(self._repo_path(package, "compare", basehead))
        return ComparisonResult(
            ahead_by=int(data.get("ahead_by", 0)),
            behind_by=int(data.get("behind_by", 0)),
            status=data.get("status", ""),
            files=[
                FileChange(
                    status=f.get("status", ""),
                    filename=f.get("filename", ""),
                    additions=int(f.get("additions", 0)),
                    deletions=int(f.get("deletions", 0)),
                )
                for f in data.get("files") or []
            ],
            commit_messages=[
                (c.get("commit", {}).get("message") or "").splitlines()[0]
                for c in data.get("commits") or []
                if c.get("commit", {}).get("message")
            ],
        )

    def get_branch_head_sha(self, package: str, branch: str) -> str:
        api_path = self._repo_path(package, "commits", quote(branch, safe=""))
        try:
            sha = self._read(api_path, "--jq", ".sha").strip()
        except GhApiError as exc:
            if exc.status in (404, 422):
                raise RefNotFound(f"{package}: cannot resolve head of {branch}") from exc
            raise
        if not sha:
            raise RefNotFound(f"{package}: cannot resolve head of {branch}")
        return sha

    def create_branch(self, package: str, branch: str, sha: str) -> bool:
        try:
            self._call(
                self._repo_path(package, "git", "refs"),
                "-X",
                "POST",
                "-f",
                f"ref=refs/heads/{branch}",
                "-f",
                f"sha={sha}",
            )
        except GhApiError as exc:
            if exc.already_exists:
                return False
            raise
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
        try:
            self._call(
                self._repo_path(package, "contents", quote(path)),
                "-X",
                "PUT",
                "-f",
                f"message={message}",
                "-f",
                f"content={base64.b64encode(content).decode('ascii')}",
                "-f",
                f"sha={expected_hash}",
                "-f",
                f"branch={branch}",
            )
        except GhApiError as exc:
            if exc.status == 409 or "does not match" in exc.output:
                raise OptimisticWriteConflict(
                    f"{package}: {path} on {branch} changed since it was read"
                ) from exc
            raise

    def publish_release(
        self, package: str, tag: str, target: str, title: str, body: str
    ) -> bool:
        try:
            self._call(
                self._repo_path(package, "releases"),
                "-X",
                "POST",
                "-f",
                f"tag_name={tag}",
                "-f",
                f"target_commitish={target}",
                "-f",
                f"name={title}",
                "-f",
                f"body={body}",
                "-F",
                "draft=false",
                "-F",
                "prerelease=false",
            )
        except GhApiError as exc:
            if exc.already_exists:
                return False
            raise
        return True
