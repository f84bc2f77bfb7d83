"""Tests for the GitHub API client."""

import base64

import httpx
import pytest

from ghgit import GitHubClient, get_token
from ghgit.client import USER_AGENT

from conftest import OWNER, REPO, VALID_TOKEN, blob_sha


def recording_client(responses: dict[str, httpx.Response], seen: list[httpx.Request]) -> GitHubClient:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return responses.get(request.url.path, httpx.Response(404, json={"message": "Not Found"}))

    return GitHubClient(token=VALID_TOKEN, transport=httpx.MockTransport(handler))


class TestGetToken:
    def test_explicit_token_wins(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "from-env")
        assert get_token("explicit") == "explicit"

    def test_env_token(self, monkeypatch):
        monkeypatch.setenv("GH_TOKEN", "from-env")
        assert get_token() == "from-env"

    def test_no_token(self):
        assert get_token() is None


class TestRequests:
    def test_headers(self):
        seen: list[httpx.Request] = []
        client = recording_client({"/user": httpx.Response(200, json={"login": "octo"})}, seen)
        assert client.get_user().login == "octo"
        request = seen[0]
        assert request.headers["Authorization"] == f"token {VALID_TOKEN}"
        assert request.headers["User-Agent"] == USER_AGENT
        assert request.headers["Accept"] == "application/vnd.github.v3+json"

    def test_error_status_raises(self):
        client = recording_client({}, [])
        with pytest.raises(httpx.HTTPStatusError):
            client.get_user()

    def test_list_repositories_params(self):
        seen: list[httpx.Request] = []
        repo = {"name": "site", "full_name": "octo/site", "owner": {"login": "octo"}, "default_branch": "main"}
        client = recording_client({"/user/repos": httpx.Response(200, json=[repo])}, seen)
        repos = client.list_repositories()
        assert repos[0].owner.login == "octo"
        assert seen[0].url.params["sort"] == "updated"
        assert seen[0].url.params["per_page"] == "100"

    def test_no_automatic_retry_by_default(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("down", request=request)

        client = GitHubClient(token=VALID_TOKEN, transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.ConnectError):
            client.get_user()
        assert len(attempts) == 1


class TestGitData:
    def test_blob_content_variants(self, github, client):
        data = "héllo wörld\n".encode("utf-8") * 10
        github.seed({"a.txt": data})
        sha = blob_sha(data)
        assert client.get_blob_bytes(OWNER, REPO, sha) == data
        assert client.get_blob_content(OWNER, REPO, sha) == data.decode("utf-8")
        raw = client.get_blob_content_raw(OWNER, REPO, sha)
        assert "\n" not in raw
        assert base64.b64decode(raw) == data

    def test_tree_listing(self, github, client):
        commit = github.seed({"src/a.ts": "a", "b.txt": "b"})
        tree = client.get_tree(OWNER, REPO, commit)
        assert {e.path for e in tree.blobs()} == {"src/a.ts", "b.txt"}
        assert any(e.type == "tree" for e in tree.tree)

    def test_branches(self, github, client):
        head = github.seed({"a": "a"})
        github.branches["dev"] = head
        assert client.list_branches(OWNER, REPO) == ["main", "dev"]
        assert client.get_branch(OWNER, REPO, "dev").commit.sha == head

    def test_create_repository(self, github, client):
        repo = client.create_repository("fresh", "desc", private=True)
        assert repo.name == "fresh"
        assert github.created_repos == [
            {"name": "fresh", "description": "desc", "private": True, "auto_init": True}
        ]
