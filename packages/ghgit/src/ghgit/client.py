"""GitHub API client."""

import base64
import logging
import os
import subprocess
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from .models import Branch, GitBlob, GitCommit, GitHubUser, GitRef, GitTree, Repository

logger = logging.getLogger(__name__)

USER_AGENT = "GitHub-Bridge-Extension"

# Retry configuration. One attempt means failures surface immediately.
DEFAULT_MAX_RETRIES = 1
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds

# Retryable exceptions
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.NetworkError,
)


def get_token_from_gh_cli() -> str | None:
    """
    Get GitHub token from gh cli.

    Returns:
        Token string or None if gh cli not available/authenticated
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("Using token from gh cli")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.debug("gh cli not available: %s", e)
    return None


def get_token(token: str | None = None, use_gh_cli: bool = False) -> str | None:
    """
    Get GitHub token from various sources.

    Priority:
    1. Explicitly provided token
    2. Environment variable GH_TOKEN / GITHUB_TOKEN
    3. gh cli (`gh auth token`) - only if use_gh_cli=True

    Args:
        token: Explicitly provided token
        use_gh_cli: Whether to use gh cli credentials (requires user consent)

    Returns:
        GitHub token or None
    """
    if token:
        logger.debug("Using explicitly provided token")
        return token

    env_token = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if env_token:
        logger.info("Using token from environment variable")
        return env_token

    if use_gh_cli:
        return get_token_from_gh_cli()

    return None


def create_retry_decorator(max_retries: int = DEFAULT_MAX_RETRIES):
    """Create a retry decorator with specified max attempts."""
    return retry(
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        stop=stop_after_attempt(max(1, max_retries)),
        wait=wait_exponential(multiplier=1, min=DEFAULT_MIN_WAIT, max=DEFAULT_MAX_WAIT),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def decode_base64(content: str) -> bytes:
    """Decode base64 payload as returned by GitHub (may contain newlines)."""
    return base64.b64decode("".join(content.split()))


class GitHubClient:
    """GitHub REST and Git Data API client."""

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        use_gh_cli: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub personal access token (optional)
            base_url: Custom base URL (defaults to GitHub API)
            timeout: Request timeout in seconds
            use_gh_cli: Use gh cli credentials (requires user consent)
            max_retries: Maximum number of attempts on network errors (default: 1)
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.transport = transport
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }

        resolved_token = get_token(token, use_gh_cli=use_gh_cli)

        if resolved_token:
            self.headers["Authorization"] = f"token {resolved_token}"
            logger.debug("GitHub client initialized with token")
        else:
            logger.warning("GitHub client initialized without token (rate limited)")
        logger.info("GitHub client ready, base_url=%s, max_retries=%d", self.base_url, max_retries)

    @property
    def authenticated(self) -> bool:
        return "Authorization" in self.headers

    def _request(
        self, method: str, endpoint: str, **kwargs: Any
    ) -> httpx.Response:
        """Make HTTP request to GitHub API."""
        url = f"{self.base_url}{endpoint}"

        @create_retry_decorator(self.max_retries)
        def do_request() -> httpx.Response:
            logger.debug("Request: %s %s", method, url)
            with httpx.Client(
                timeout=self.timeout, headers=self.headers, transport=self.transport
            ) as client:
                response = client.request(method, url, **kwargs)
                logger.debug(
                    "Response: %s %s (status=%d)",
                    method,
                    endpoint,
                    response.status_code,
                )
                response.raise_for_status()
                return response

        return do_request()

    def _json(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        return self._request(method, endpoint, **kwargs).json()

    @staticmethod
    def _repo_path(owner: str, repo: str) -> str:
        return f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"

    # ============ Account & repositories ============

    def get_user(self) -> GitHubUser:
        """Get the authenticated user."""
        logger.info("Fetching authenticated user")
        return GitHubUser(**self._json("GET", "/user"))

    def list_repositories(self) -> list[Repository]:
        """List repositories of the authenticated user, most recently updated first."""
        logger.info("Fetching repositories")
        data = self._json("GET", "/user/repos", params={"sort": "updated", "per_page": 100})
        logger.debug("Repository listing: %d items", len(data))
        return [Repository(**item) for item in data]

    def get_repository(self, owner: str, repo: str) -> Repository:
        """Get a single repository."""
        logger.info("Fetching repository: %s/%s", owner, repo)
        return Repository(**self._json("GET", self._repo_path(owner, repo)))

    def create_repository(
        self, name: str, description: str | None = None, private: bool = False
    ) -> Repository:
        """
        Create a repository for the authenticated user.

        The repository is initialized with a README so that it has a default
        branch to commit onto.
        """
        logger.info("Creating repository: %s (private=%s)", name, private)
        payload = {
            "name": name,
            "description": description or "",
            "private": private,
            "auto_init": True,
        }
        return Repository(**self._json("POST", "/user/repos", json=payload))

    # ============ Branches ============

    def list_branches(self, owner: str, repo: str) -> list[str]:
        """List branch names of a repository."""
        logger.info("Fetching branches: %s/%s", owner, repo)
        data = self._json(
            "GET", f"{self._repo_path(owner, repo)}/branches", params={"per_page": 100}
        )
        return [item["name"] for item in data]

    def get_branch(self, owner: str, repo: str, branch: str) -> Branch:
        """Get branch detail including its head commit."""
        logger.info("Fetching branch: %s/%s@%s", owner, repo, branch)
        endpoint = f"{self._repo_path(owner, repo)}/branches/{quote(branch, safe='/')}"
        return Branch(**self._json("GET", endpoint))

    # ============ Git data ============

    def get_commit(self, owner: str, repo: str, sha: str) -> GitCommit:
        """Get a commit object."""
        logger.debug("Fetching commit: %s/%s %s", owner, repo, sha)
        return GitCommit(**self._json("GET", f"{self._repo_path(owner, repo)}/git/commits/{sha}"))

    def get_tree(self, owner: str, repo: str, sha: str, recursive: bool = True) -> GitTree:
        """
        Get a tree object.

        Args:
            owner: Repository owner
            repo: Repository name
            sha: Tree (or commit) SHA
            recursive: Flatten all subtrees into one listing

        Returns:
            GitTree listing
        """
        logger.info("Fetching tree: %s/%s %s recursive=%s", owner, repo, sha, recursive)
        params = {"recursive": "1"} if recursive else {}
        tree = GitTree(
            **self._json("GET", f"{self._repo_path(owner, repo)}/git/trees/{sha}", params=params)
        )
        if tree.truncated:
            logger.warning("Tree listing for %s/%s %s was truncated by GitHub", owner, repo, sha)
        logger.debug("Tree fetched: %d entries", len(tree.tree))
        return tree

    def get_blob(self, owner: str, repo: str, sha: str) -> GitBlob:
        """Get a blob object."""
        logger.debug("Fetching blob: %s/%s %s", owner, repo, sha)
        return GitBlob(**self._json("GET", f"{self._repo_path(owner, repo)}/git/blobs/{sha}"))

    def get_blob_bytes(self, owner: str, repo: str, sha: str) -> bytes:
        """Get blob content as raw bytes."""
        blob = self.get_blob(owner, repo, sha)
        if blob.encoding == "base64":
            return decode_base64(blob.content)
        return blob.content.encode("utf-8")

    def get_blob_content(self, owner: str, repo: str, sha: str) -> str:
        """Get blob content decoded as UTF-8 text (invalid sequences replaced)."""
        return self.get_blob_bytes(owner, repo, sha).decode("utf-8", errors="replace")

    def get_blob_content_raw(self, owner: str, repo: str, sha: str) -> str:
        """Get blob content as base64 text without embedded whitespace."""
        blob = self.get_blob(owner, repo, sha)
        if blob.encoding == "base64":
            return "".join(blob.content.split())
        return base64.b64encode(blob.content.encode("utf-8")).decode("ascii")

    def create_blob(self, owner: str, repo: str, content_b64: str) -> str:
        """Create a blob from base64 content, return its SHA."""
        logger.debug("Creating blob: %s/%s (%d base64 chars)", owner, repo, len(content_b64))
        data = self._json(
            "POST",
            f"{self._repo_path(owner, repo)}/git/blobs",
            json={"content": content_b64, "encoding": "base64"},
        )
        return data["sha"]

    def create_tree(self, owner: str, repo: str, entries: list[dict[str, Any]]) -> str:
        """Create a tree from a full entry list, return its SHA."""
        logger.info("Creating tree: %s/%s (%d entries)", owner, repo, len(entries))
        data = self._json("POST", f"{self._repo_path(owner, repo)}/git/trees", json={"tree": entries})
        return data["sha"]

    def create_commit(
        self, owner: str, repo: str, message: str, tree: str, parents: list[str]
    ) -> GitCommit:
        """Create a commit object."""
        logger.info("Creating commit: %s/%s tree=%s parents=%s", owner, repo, tree, parents)
        payload = {"message": message, "tree": tree, "parents": parents}
        return GitCommit(**self._json("POST", f"{self._repo_path(owner, repo)}/git/commits", json=payload))

    def update_ref(self, owner: str, repo: str, branch: str, sha: str) -> GitRef:
        """Move an existing branch to a commit (fast-forward only)."""
        logger.info("Updating ref heads/%s -> %s", branch, sha)
        endpoint = f"{self._repo_path(owner, repo)}/git/refs/heads/{quote(branch, safe='/')}"
        return GitRef(**self._json("PATCH", endpoint, json={"sha": sha, "force": False}))

    def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> GitRef:
        """Create a new branch pointing at a commit."""
        logger.info("Creating ref heads/%s -> %s", branch, sha)
        payload = {"ref": f"refs/heads/{branch}", "sha": sha}
        return GitRef(**self._json("POST", f"{self._repo_path(owner, repo)}/git/refs", json=payload))
