"""Reconciliation of extracted files against a remote branch tree."""

import logging
import time
from typing import Callable, Iterable, Sequence

import httpx
from ghgit import GitHubClient, TreeEntry

from .encoding import decode_utf8, has_null_byte, is_image_path, normalize_content
from .errors import TruncatedTreeError
from .models import (
    BinaryComparisonPolicy,
    ChangeStatus,
    ChangeSummary,
    CommitRequest,
    FileChange,
    LocalFile,
    ReconcileOptions,
)

logger = logging.getLogger(__name__)

BlobFetcher = Callable[[str], bytes]

# Failures that degrade a single comparison to "modified"
COMPARISON_ERRORS = (httpx.HTTPError, ValueError)


def _local_bytes(file: LocalFile) -> bytes:
    if isinstance(file.content, str):
        return file.content.encode("utf-8")
    return file.content


def _local_text(file: LocalFile) -> str | None:
    """Text view of local content, None when it must be compared as bytes."""
    if isinstance(file.content, str):
        return file.content
    if has_null_byte(file.content):
        return None
    return decode_utf8(file.content)


def _compare(
    file: LocalFile, remote: TreeEntry, fetch_blob: BlobFetcher, options: ReconcileOptions
) -> ChangeStatus:
    if is_image_path(file.path):
        if options.binary_comparison_policy is BinaryComparisonPolicy.SKIP:
            return ChangeStatus.UNCHANGED
        same = fetch_blob(remote.sha) == _local_bytes(file)
        return ChangeStatus.UNCHANGED if same else ChangeStatus.MODIFIED

    remote_bytes = fetch_blob(remote.sha)
    local_text = _local_text(file)
    if local_text is None:
        same = remote_bytes == file.content
    else:
        remote_text = remote_bytes.decode("utf-8", errors="replace")
        same = normalize_content(remote_text) == normalize_content(local_text)
    return ChangeStatus.UNCHANGED if same else ChangeStatus.MODIFIED


def classify(
    files: Sequence[LocalFile],
    remote_entries: Iterable[TreeEntry],
    fetch_blob: BlobFetcher,
    options: ReconcileOptions | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ChangeSummary:
    """
    Classify every path as new, modified, deleted or unchanged.

    Args:
        files: Local files (later duplicates of a path win)
        remote_entries: Recursive tree listing; non-blob entries are ignored
        fetch_blob: Returns the raw bytes of a remote blob by SHA
        options: Comparison policy and pacing
        sleep: Pause function, replaced in tests

    Returns:
        ChangeSummary whose buckets partition the union of local and remote paths
    """
    options = options or ReconcileOptions()
    remote = {entry.path: entry for entry in remote_entries if entry.type == "blob"}
    local = {file.path: file for file in files}
    logger.debug("Comparing %d local files with %d remote blobs", len(local), len(remote))

    buckets: dict[ChangeStatus, list[FileChange]] = {status: [] for status in ChangeStatus}

    for processed, (path, file) in enumerate(local.items(), start=1):
        entry = remote.get(path)
        if entry is None:
            status = ChangeStatus.NEW
        else:
            try:
                status = _compare(file, entry, fetch_blob, options)
            except COMPARISON_ERRORS as e:
                logger.warning("Could not compare %s, assuming modified: %s", path, e)
                status = ChangeStatus.MODIFIED
        logger.debug("%s: %s", path, status.value)
        buckets[status].append(FileChange(path=path, status=status, local=file, remote=entry))

        if options.pause_every > 0 and processed % options.pause_every == 0:
            logger.debug("Processed %d files, pausing", processed)
            sleep(options.pause_seconds)

    for path, entry in remote.items():
        if path not in local:
            buckets[ChangeStatus.DELETED].append(
                FileChange(path=path, status=ChangeStatus.DELETED, remote=entry)
            )

    summary = ChangeSummary(
        **{status.value: sorted(changes, key=lambda c: c.path) for status, changes in buckets.items()}
    )
    logger.info("File changes: %s", summary.counts())
    return summary


def default_request(
    summary: ChangeSummary,
    message: str,
    branch: str,
    clear_existing: bool = False,
    options: ReconcileOptions | None = None,
) -> CommitRequest:
    """
    Initial selection: new and modified files are pushed, unchanged ones
    according to the options, and no deletion is selected.
    """
    options = options or ReconcileOptions()
    to_push = set(summary.paths(ChangeStatus.NEW)) | set(summary.paths(ChangeStatus.MODIFIED))
    if options.default_select_unchanged:
        to_push |= set(summary.paths(ChangeStatus.UNCHANGED))
    return CommitRequest(
        message=message,
        target_branch=branch,
        clear_existing=clear_existing,
        files_to_push=to_push,
    )


class Reconciler:
    """Reconciles extracted files against a branch of a GitHub repository."""

    def __init__(
        self,
        client: GitHubClient,
        options: ReconcileOptions | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.options = options or ReconcileOptions()
        self.sleep = sleep

    def fetch_remote_tree(
        self, owner: str, repo: str, branch: str, default_branch: str | None = None
    ) -> list[TreeEntry]:
        """
        List blobs of the branch head, recursively.

        A missing branch falls back to default_branch when one is given. A
        truncated listing raises TruncatedTreeError, since files missing from
        it would be reported as new instead of compared.
        """
        try:
            head = self.client.get_branch(owner, repo, branch)
        except httpx.HTTPStatusError as e:
            if e.response.status_code != 404 or not default_branch or default_branch == branch:
                raise
            logger.info("Branch %s not found, comparing against %s", branch, default_branch)
            head = self.client.get_branch(owner, repo, default_branch)
        tree = self.client.get_tree(owner, repo, head.commit.sha, recursive=True)
        if tree.truncated:
            raise TruncatedTreeError(tree.sha)
        return tree.blobs()

    def reconcile(
        self,
        owner: str,
        repo: str,
        branch: str,
        files: Sequence[LocalFile],
        default_branch: str | None = None,
    ) -> ChangeSummary:
        """Classify local files against the current tree of a branch."""
        logger.info("Reconciling %d files with %s/%s@%s", len(files), owner, repo, branch)
        entries = self.fetch_remote_tree(owner, repo, branch, default_branch)

        def fetch_blob(sha: str) -> bytes:
            return self.client.get_blob_bytes(owner, repo, sha)

        return classify(files, entries, fetch_blob, self.options, sleep=self.sleep)
