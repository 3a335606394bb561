"""Tests for releaser.github."""

from __future__ import annotations

import base64
import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from releaser.errors import (
    FileNotFound,
    NotAFile,
    OptimisticWriteConflict,
    RefNotFound,
    TransportFailure,
)
from releaser.github import GhApiError, GitHubClient


def _ok(stdout: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(["gh"], 0, stdout=stdout, stderr="")


def _fail(stderr: str, stdout: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(["gh"], 1, stdout=stdout, stderr=stderr)


@pytest.fixture
def client() -> GitHubClient:
    return GitHubClient("acme", "secret", retry_delay=0)


class TestGhApiError:
    def test_transient_status(self) -> None:
        assert GhApiError("p", 502, "").transient
        assert GhApiError("p", 429, "").transient
        assert not GhApiError("p", 404, "Not Found").transient

    def test_transient_message(self) -> None:
        assert GhApiError("p", None, "dial tcp: connection reset by peer").transient

    def test_already_exists(self) -> None:
        assert GhApiError("p", 422, '{"code":"already_exists"}').already_exists
        assert GhApiError("p", 422, "Reference already exists").already_exists
        assert not GhApiError("p", 422, "Validation Failed").already_exists


class TestReads:
    @patch("releaser.github.gh")
    def test_fetch_tags(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _ok("1.4.0\n1.3.0\n\n")

        assert client.fetch_tags("lib") == ["1.4.0", "1.3.0"]
        args = mock_gh.call_args.args
        assert args[:2] == ("api", "repos/acme/lib/tags")
        assert "--paginate" in args
        assert mock_gh.call_args.kwargs["env"]["GH_TOKEN"] == "secret"

    @patch("releaser.github.gh")
    def test_fetch_releases_uses_tag_name(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _ok("1.4.0\n")

        assert client.fetch_releases("lib") == ["1.4.0"]
        assert ".[].tag_name" in mock_gh.call_args.args

    @patch("releaser.github.gh")
    def test_fetch_file(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        content = b'{"name": "acme/lib"}\n'
        mock_gh.return_value = _ok(
            json.dumps(
                {
                    "type": "file",
                    "encoding": "base64",
                    "content": base64.b64encode(content).decode(),
                    "sha": "abc123",
                }
            )
        )

        result = client.fetch_file("lib", "1.4.x", "composer.json")

        assert result.content == content
        assert result.content_hash == "abc123"
        assert "ref=1.4.x" in mock_gh.call_args.args

    @patch("releaser.github.gh")
    def test_fetch_file_missing(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _fail("gh: Not Found (HTTP 404)")

        with pytest.raises(FileNotFound):
            client.fetch_file("lib", "master", "composer.json")
        assert mock_gh.call_count == 1

    @patch("releaser.github.gh")
    def test_fetch_directory(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _ok(json.dumps([{"type": "file", "name": "a"}]))

        with pytest.raises(NotAFile):
            client.fetch_file("lib", "master", "src")

    @patch("releaser.github.gh")
    def test_compare_refs(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _ok(
            json.dumps(
                {
                    "ahead_by": 2,
                    "behind_by": 1,
                    "status": "diverged",
                    "files": [
                        {"status": "modified", "filename": "src/A.php", "additions": 3, "deletions": 1}
                    ],
                    "commits": [
                        {"commit": {"message": "Fix parser\n\nLong description"}},
                        {"commit": {"message": "Add cache"}},
                    ],
                }
            )
        )

        result = client.compare_refs("lib", "1.4.0", "master")

        assert mock_gh.call_args.args[1] == "repos/acme/lib/compare/1.4.0...master"
        assert result.ahead_by == 2
        assert result.behind_by == 1
        assert result.files[0].summary() == "modified src/A.php -1 +3"
        assert result.commit_messages == ["Fix parser", "Add cache"]

    @patch("releaser.github.gh")
    def test_head_sha(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _ok("deadbeef\n")

        assert client.get_branch_head_sha("lib", "master") == "deadbeef"

    @patch("releaser.github.gh")
    def test_head_sha_unknown_ref(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _fail("gh: No commit found for SHA: nope (HTTP 422)")

        with pytest.raises(RefNotFound):
            client.get_branch_head_sha("lib", "nope")

    @patch("releaser.github.gh")
    def test_retries_transient(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.side_effect = [
            _fail("gh: Bad Gateway (HTTP 502)"),
            _fail("connection reset by peer"),
            _ok("master\n"),
        ]

        assert client.fetch_branches("lib") == ["master"]
        assert mock_gh.call_count == 3

    @patch("releaser.github.gh")
    def test_gives_up_after_retries(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _fail("gh: Service Unavailable (HTTP 503)")

        with pytest.raises(GhApiError) as excinfo:
            client.fetch_tags("lib")
        assert excinfo.value.status == 503
        assert mock_gh.call_count == 3

    @patch("releaser.github.gh")
    def test_timeout(self, mock_gh: MagicMock) -> None:
        mock_gh.side_effect = subprocess.TimeoutExpired(["gh"], 60)
        client = GitHubClient("acme", retries=1)

        with pytest.raises(TransportFailure, match="timed out"):
            client.fetch_tags("lib")

    @patch("releaser.github.gh")
    def test_gh_missing(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.side_effect = FileNotFoundError("gh")

        with pytest.raises(TransportFailure, match="gh CLI not found"):
            client.fetch_tags("lib")


class TestWrites:
    @patch("releaser.github.gh")
    def test_create_branch(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _ok("{}")

        assert client.create_branch("lib", "1.5.x", "deadbeef") is True
        args = mock_gh.call_args.args
        assert "ref=refs/heads/1.5.x" in args
        assert "sha=deadbeef" in args

    @patch("releaser.github.gh")
    def test_create_existing_branch(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _fail("gh: Reference already exists (HTTP 422)")

        assert client.create_branch("lib", "1.5.x", "deadbeef") is False

    @patch("releaser.github.gh")
    def test_writes_are_not_retried(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _fail("gh: Bad Gateway (HTTP 502)")

        with pytest.raises(GhApiError):
            client.create_branch("lib", "1.5.x", "deadbeef")
        assert mock_gh.call_count == 1

    @patch("releaser.github.gh")
    def test_write_file(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _ok("{}")

        content = b"{}\n"
        client.write_file("lib", "composer.json", content, "abc123", "1.5.x", "Pin deps")

        args = mock_gh.call_args.args
        encoded = base64.b64encode(content).decode()
        assert args[1] == "repos/acme/lib/contents/composer.json"
        assert f"content={encoded}" in args
        assert "sha=abc123" in args
        assert "branch=1.5.x" in args

    @patch("releaser.github.gh")
    def test_write_conflict(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _fail("gh: composer.json does not match abc123 (HTTP 409)")

        with pytest.raises(OptimisticWriteConflict):
            client.write_file("lib", "composer.json", b"{}", "abc123", "1.5.x", "Pin deps")

    @patch("releaser.github.gh")
    def test_publish_release(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _ok("{}")

        assert client.publish_release("lib", "1.5.0", "1.5.x", "1.5.0", "notes") is True
        args = mock_gh.call_args.args
        assert "tag_name=1.5.0" in args
        assert "target_commitish=1.5.x" in args
        assert "draft=false" in args

    @patch("releaser.github.gh")
    def test_publish_existing_release(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = _fail(
            '{"errors":[{"resource":"Release","code":"already_exists","field":"tag_name"}]}\n'
            "gh: Validation Failed (HTTP 422)"
        )

        assert client.publish_release("lib", "1.5.0", "1.5.x", "1.5.0", "notes") is False
