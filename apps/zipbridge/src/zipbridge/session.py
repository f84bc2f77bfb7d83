"""Upload session state and the analyze/push workflow."""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from ghgit import Repository

from .models import (
    ChangeStatus,
    ChangeSummary,
    CommitRequest,
    PublishResult,
    ReconcileOptions,
    UploadedArchive,
)
from .publisher import Publisher, StepCallback
from .reconcile import Reconciler, default_request

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_PREFIX = "Upload project from Bolt.new: "
RECOMMENDED_MESSAGE_LENGTH = 72


def default_commit_message(archive_name: str) -> str:
    name = archive_name[:-4] if archive_name.lower().endswith(".zip") else archive_name
    return f"{DEFAULT_MESSAGE_PREFIX}{name}"


def filter_repositories(repositories: Iterable[Repository], term: str | None) -> list[Repository]:
    """Keep repositories whose name or description contains term, ignoring case."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(repositories)
    return [
        repo for repo in repositories
        if needle in repo.name.lower() or needle in (repo.description or "").lower()
    ]


@dataclass
class UploadSession:
    """Everything one upload flow needs, passed explicitly to each step."""

    token: str
    username: str | None = None
    repository: Repository | None = None
    branch: str | None = None
    archive: UploadedArchive | None = None
    summary: ChangeSummary | None = None
    request: CommitRequest | None = None
    options: ReconcileOptions = field(default_factory=ReconcileOptions)

    @property
    def owner(self) -> str:
        return self.require_repository().owner.login

    @property
    def target_branch(self) -> str:
        return self.branch or self.require_repository().default_branch

    def require_repository(self) -> Repository:
        if self.repository is None:
            raise ValueError("No repository selected")
        return self.repository

    def select_repository(self, repository: Repository, branch: str | None = None) -> None:
        """Select a repository and reset everything derived from the previous one."""
        self.repository = repository
        self.branch = branch or repository.default_branch
        self.summary = None
        self.request = None

    def load(self, archive: UploadedArchive) -> None:
        self.archive = archive
        self.summary = None
        self.request = None

    def toggle(self, path: str, selected: bool) -> None:
        """Apply a checkbox toggle, routed by the path's classification."""
        if self.summary is None or self.request is None:
            raise ValueError("Files have not been analyzed yet")
        status = self.summary.status_of(path)
        if status is None:
            raise ValueError(f"Unknown path: {path}")
        if status is ChangeStatus.DELETED:
            self.request.set_delete(path, selected)
        else:
            self.request.set_push(path, selected)


def analyze(session: UploadSession, reconciler: Reconciler, clear_existing: bool = False) -> ChangeSummary:
    """Reconcile the loaded archive with the selected branch and seed the selection."""
    if session.archive is None:
        raise ValueError("No archive loaded")
    repository = session.require_repository()
    summary = reconciler.reconcile(
        session.owner,
        repository.name,
        session.target_branch,
        session.archive.files,
        default_branch=repository.default_branch,
    )
    session.summary = summary
    session.request = default_request(
        summary,
        message=default_commit_message(session.archive.name),
        branch=session.target_branch,
        clear_existing=clear_existing,
        options=session.options,
    )
    return summary


def push(session: UploadSession, publisher: Publisher, on_step: StepCallback | None = None) -> PublishResult:
    """Publish the session's current selection as one commit."""
    if session.archive is None or session.request is None:
        raise ValueError("Nothing to push, analyze the archive first")
    request = session.request
    request.message = request.message.strip()
    if not request.message:
        raise ValueError("Please enter a commit message")
    if len(request.message) > RECOMMENDED_MESSAGE_LENGTH:
        logger.warning(
            "Commit message is %d characters (%d recommended)",
            len(request.message), RECOMMENDED_MESSAGE_LENGTH,
        )
    repository = session.require_repository()
    return publisher.publish(
        session.owner,
        repository.name,
        repository.default_branch,
        session.archive.files,
        request,
        on_step=on_step,
        html_url=repository.html_url,
    )
