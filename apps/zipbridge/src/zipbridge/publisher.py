"""Single-commit publishing through the Git Data API."""

import logging
from typing import Any, Iterable, Protocol, Sequence

import httpx
from ghgit import GitHubClient, TreeEntry

from .encoding import prepare_content
from .errors import PublishError, TruncatedTreeError, describe_error
from .models import CommitRequest, LocalFile, PublishResult

logger = logging.getLogger(__name__)

FILE_MODE = "100644"

# Step name -> completed fraction, in execution order
STEPS: dict[str, float] = {
    "started": 0.1,
    "resolved_head": 0.2,
    "fetched_commit": 0.4,
    "created_tree": 0.6,
    "created_commit": 0.8,
    "updated_ref": 1.0,
}


class StepCallback(Protocol):
    def __call__(self, step: str, fraction: float) -> None: ...


def build_tree_entries(
    existing: Iterable[TreeEntry],
    pushed: dict[str, dict[str, Any]],
    deletions: set[str],
    clear_existing: bool = False,
) -> list[dict[str, Any]]:
    """
    Merge an existing tree listing with pushed entries.

    Existing blobs are kept by SHA unless deleted; pushed entries replace
    existing ones on the same path and inherit their mode, so an executable
    stays executable. With clear_existing only pushed entries are returned.

    Args:
        existing: Recursive listing of the base tree
        pushed: Path -> tree entry for every pushed file
        deletions: Paths to drop from the existing tree
        clear_existing: Ignore the existing tree entirely

    Returns:
        One entry per path, sorted by path
    """
    merged: dict[str, dict[str, Any]] = {}
    if not clear_existing:
        for entry in existing:
            if entry.type != "blob" or entry.path in deletions:
                continue
            merged[entry.path] = {
                "path": entry.path,
                "mode": entry.mode,
                "type": "blob",
                "sha": entry.sha,
            }
    for path, entry in pushed.items():
        if path in merged:
            entry = {**entry, "mode": merged[path]["mode"]}
        merged[path] = entry
    return [merged[path] for path in sorted(merged)]


class Publisher:
    """Pushes an approved file selection as one commit."""

    def __init__(self, client: GitHubClient):
        self.client = client

    def _pushed_entries(
        self, owner: str, repo: str, files: Iterable[LocalFile]
    ) -> dict[str, dict[str, Any]]:
        entries: dict[str, dict[str, Any]] = {}
        for file in files:
            if file.is_directory:
                continue
            payload, encoding = prepare_content(file.content, file.path)
            entry: dict[str, Any] = {"path": file.path, "mode": FILE_MODE, "type": "blob"}
            if encoding == "base64":
                # Tree entries only carry text, binary content goes through a blob
                entry["sha"] = self.client.create_blob(owner, repo, payload)
            else:
                entry["content"] = payload
            entries[file.path] = entry
        return entries

    def publish(
        self,
        owner: str,
        repo: str,
        default_branch: str,
        files: Sequence[LocalFile],
        request: CommitRequest,
        on_step: StepCallback | None = None,
        html_url: str | None = None,
    ) -> PublishResult:
        """
        Create one commit on the target branch from the selected files.

        Only files whose path is in request.files_to_push are sent. The branch
        ref is written last, so a failure at any earlier step leaves the branch
        untouched (objects created so far are left unreferenced).

        Args:
            owner: Repository owner
            repo: Repository name
            default_branch: Base used when the target branch does not exist
            files: Extracted files
            request: Approved selection and commit details
            on_step: Called with (step, fraction) after every step
            html_url: Repository web URL, used to build PublishResult.branch_url

        Returns:
            PublishResult with the new commit SHA

        Raises:
            PublishError: naming the failed step
        """
        branch = request.target_branch
        selected = [f for f in files if f.path in request.files_to_push]
        logger.info(
            "Publishing %d files to %s/%s@%s (clear_existing=%s, deletions=%d)",
            len(selected), owner, repo, branch, request.clear_existing,
            len(request.effective_deletions),
        )

        def report(step: str) -> None:
            logger.debug("Step %s (%d%%)", step, int(STEPS[step] * 100))
            if on_step is not None:
                on_step(step, STEPS[step])

        step = "started"
        try:
            report(step)

            step = "resolved_head"
            branch_exists = True
            try:
                head_sha = self.client.get_branch(owner, repo, branch).commit.sha
            except httpx.HTTPStatusError as e:
                if e.response.status_code != 404:
                    raise
                logger.info("Branch %s does not exist, basing on %s", branch, default_branch)
                branch_exists = False
                head_sha = self.client.get_branch(owner, repo, default_branch).commit.sha
            report(step)

            step = "fetched_commit"
            base_tree_sha = self.client.get_commit(owner, repo, head_sha).tree.sha
            report(step)

            step = "created_tree"
            existing: list[TreeEntry] = []
            if not request.clear_existing:
                listing = self.client.get_tree(owner, repo, base_tree_sha, recursive=True)
                if listing.truncated:
                    raise TruncatedTreeError(base_tree_sha)
                existing = listing.tree
            entries = build_tree_entries(
                existing,
                self._pushed_entries(owner, repo, selected),
                request.effective_deletions,
                clear_existing=request.clear_existing,
            )
            tree_sha = self.client.create_tree(owner, repo, entries)
            report(step)

            step = "created_commit"
            commit = self.client.create_commit(owner, repo, request.message, tree_sha, [head_sha])
            report(step)

            step = "updated_ref"
            if branch_exists:
                self.client.update_ref(owner, repo, branch, commit.sha)
            else:
                self.client.create_ref(owner, repo, branch, commit.sha)
            report(step)
        except (httpx.HTTPError, ValueError, TruncatedTreeError) as e:
            logger.error("Publish failed at %s: %s", step, describe_error(e))
            raise PublishError(step, e) from e

        logger.info("Published %s to %s/%s@%s", commit.sha, owner, repo, branch)
        return PublishResult(
            branch=branch,
            parent_sha=head_sha,
            tree_sha=tree_sha,
            commit_sha=commit.sha,
            created_branch=not branch_exists,
            branch_url=f"{html_url}/tree/{branch}" if html_url else None,
        )
