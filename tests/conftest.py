"""Shared fixtures: an in-memory GitHub served through httpx.MockTransport."""

import base64
import hashlib
import json
import os
import re

import httpx
import pytest
from ghgit import GitHubClient

VALID_TOKEN = "ghp_" + "a" * 36
OWNER = "octo"
REPO = "site"


def blob_sha(data: bytes) -> str:
    return hashlib.sha1(b"blob %d\x00" % len(data) + data).hexdigest()


class FakeGitHub:
    """Minimal Git Data API backed by dicts."""

    def __init__(self, owner: str = OWNER, repo: str = REPO, default_branch: str = "main"):
        self.owner = owner
        self.repo = repo
        self.default_branch = default_branch
        self.login = owner
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, list[dict]] = {}
        self.commits: dict[str, dict] = {}
        self.branches: dict[str, str] = {}
        self.created_repos: list[dict] = []
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], int] = {}
        self.failing_blobs: set[str] = set()
        self.hidden_paths: set[str] = set()  # Left out of tree listings, which then report truncation
        self.extra_repos: list[dict] = []
        self._counter = 0

    # ============ Seeding ============

    def add_blob(self, data: bytes) -> str:
        sha = blob_sha(data)
        self.blobs[sha] = data
        return sha

    def add_tree(self, entries: list[dict]) -> str:
        flat = sorted(entries, key=lambda e: e["path"])
        sha = hashlib.sha1(json.dumps(flat, sort_keys=True).encode()).hexdigest()
        self.trees[sha] = flat
        return sha

    def add_commit(self, tree: str, parents: list[str], message: str = "init") -> str:
        self._counter += 1
        sha = hashlib.sha1(f"commit-{self._counter}-{tree}".encode()).hexdigest()
        self.commits[sha] = {"tree": tree, "parents": parents, "message": message}
        return sha

    def seed(
        self, files: dict[str, str | bytes], branch: str | None = None, modes: dict[str, str] | None = None
    ) -> str:
        """Create a commit holding files and point a branch at it."""
        modes = modes or {}
        entries = []
        for path, content in files.items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            entries.append({"path": path, "mode": modes.get(path, "100644"), "type": "blob", "sha": self.add_blob(data)})
        commit = self.add_commit(self.add_tree(entries), [])
        self.branches[branch or self.default_branch] = commit
        return commit

    def fail(self, method: str, path: str, status: int = 500) -> None:
        self.failures[(method, path)] = status

    # ============ Inspection ============

    def head_files(self, branch: str | None = None) -> dict[str, bytes]:
        commit = self.commits[self.branches[branch or self.default_branch]]
        return {e["path"]: self.blobs[e["sha"]] for e in self.trees[commit["tree"]]}

    def head_modes(self, branch: str | None = None) -> dict[str, str]:
        commit = self.commits[self.branches[branch or self.default_branch]]
        return {e["path"]: e["mode"] for e in self.trees[commit["tree"]]}

    def methods(self) -> list[str]:
        return [f"{method} {path}" for method, path in self.calls]

    # ============ Transport ============

    def repository_json(self, name: str | None = None, description: str | None = None) -> dict:
        name = name or self.repo
        return {
            "html_url": f"https://github.com/{self.owner}/{name}",
            "description": description,
            "name": name,
            "full_name": f"{self.owner}/{name}",
            "owner": {"login": self.owner},
            "private": False,
            "default_branch": self.default_branch,
        }

    def _tree_listing(self, sha: str) -> list[dict]:
        entries = []
        dirs = set()
        for entry in self.trees[sha]:
            if entry["path"] in self.hidden_paths:
                continue
            parts = entry["path"].split("/")
            for i in range(1, len(parts)):
                dirs.add("/".join(parts[:i]))
            entries.append({**entry, "size": len(self.blobs[entry["sha"]])})
        for d in dirs:
            entries.append({"path": d, "mode": "040000", "type": "tree", "sha": "0" * 40})
        return sorted(entries, key=lambda e: e["path"])

    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        self.calls.append((method, path))

        if (method, path) in self.failures:
            return httpx.Response(self.failures[(method, path)], json={"message": "boom"})
        if request.headers.get("Authorization") != f"token {VALID_TOKEN}":
            return httpx.Response(401, json={"message": "Bad credentials"})

        body = json.loads(request.content) if request.content else {}
        prefix = f"/repos/{self.owner}/{self.repo}"

        if path == "/user":
            return httpx.Response(200, json={"login": self.login, "id": 1})
        if path == "/user/repos" and method == "GET":
            return httpx.Response(200, json=[self.repository_json(), *self.extra_repos])
        if path == "/user/repos" and method == "POST":
            self.created_repos.append(body)
            return httpx.Response(201, json=self.repository_json(body["name"]))
        if path == prefix:
            return httpx.Response(200, json=self.repository_json())
        if path == f"{prefix}/branches":
            return httpx.Response(200, json=[{"name": name} for name in self.branches])

        m = re.fullmatch(rf"{prefix}/branches/(.+)", path)
        if m:
            name = m.group(1)
            if name not in self.branches:
                return httpx.Response(404, json={"message": "Branch not found"})
            return httpx.Response(200, json={"name": name, "commit": {"sha": self.branches[name]}})

        m = re.fullmatch(rf"{prefix}/git/commits/(\w+)", path)
        if m:
            commit = self.commits[m.group(1)]
            return httpx.Response(200, json={
                "sha": m.group(1),
                "tree": {"sha": commit["tree"]},
                "message": commit["message"],
                "parents": [{"sha": p} for p in commit["parents"]],
            })

        m = re.fullmatch(rf"{prefix}/git/trees/(\w+)", path)
        if m and method == "GET":
            sha = m.group(1)
            if sha in self.commits:
                sha = self.commits[sha]["tree"]
            return httpx.Response(200, json={
                "sha": sha, "tree": self._tree_listing(sha), "truncated": bool(self.hidden_paths),
            })

        m = re.fullmatch(rf"{prefix}/git/blobs/(\w+)", path)
        if m and method == "GET":
            sha = m.group(1)
            if sha in self.failing_blobs:
                return httpx.Response(502, json={"message": "Bad gateway"})
            encoded = base64.b64encode(self.blobs[sha]).decode()
            wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
            return httpx.Response(200, json={"sha": sha, "content": wrapped, "encoding": "base64"})

        if path == f"{prefix}/git/blobs" and method == "POST":
            assert body["encoding"] == "base64"
            return httpx.Response(201, json={"sha": self.add_blob(base64.b64decode(body["content"]))})

        if path == f"{prefix}/git/trees" and method == "POST":
            entries = []
            for entry in body["tree"]:
                sha = entry.get("sha") or self.add_blob(entry["content"].encode("utf-8"))
                assert sha in self.blobs
                entries.append({"path": entry["path"], "mode": entry["mode"], "type": "blob", "sha": sha})
            return httpx.Response(201, json={"sha": self.add_tree(entries)})

        if path == f"{prefix}/git/commits" and method == "POST":
            sha = self.add_commit(body["tree"], body["parents"], body["message"])
            return httpx.Response(201, json={
                "sha": sha,
                "tree": {"sha": body["tree"]},
                "message": body["message"],
                "parents": [{"sha": p} for p in body["parents"]],
            })

        m = re.fullmatch(rf"{prefix}/git/refs/heads/(.+)", path)
        if m and method == "PATCH":
            name = m.group(1)
            if name not in self.branches:
                return httpx.Response(422, json={"message": "Reference does not exist"})
            self.branches[name] = body["sha"]
            return httpx.Response(200, json={"ref": f"refs/heads/{name}", "object": {"sha": body["sha"]}})

        if path == f"{prefix}/git/refs" and method == "POST":
            name = body["ref"].removeprefix("refs/heads/")
            if name in self.branches:
                return httpx.Response(422, json={"message": "Reference already exists"})
            self.branches[name] = body["sha"]
            return httpx.Response(201, json={"ref": body["ref"], "object": {"sha": body["sha"]}})

        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real tokens and settings out of tests."""
    for name in ("GH_TOKEN", "GITHUB_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.startswith("ZIPBRIDGE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def github():
    """An empty fake GitHub with one repository."""
    return FakeGitHub()


@pytest.fixture
def client_factory(github):
    def make(token: str = VALID_TOKEN) -> GitHubClient:
        return GitHubClient(token=token, transport=httpx.MockTransport(github.handle))

    return make


@pytest.fixture
def client(client_factory):
    return client_factory()
