"""zipbridge data models."""

from enum import Enum

from ghgit import TreeEntry
from pydantic import BaseModel, ConfigDict, Field, model_validator


class LocalFile(BaseModel):
    """File extracted from an uploaded archive."""

    model_config = ConfigDict(frozen=True)

    path: str  # Repo-relative, '/'-separated, no leading slash
    content: str | bytes
    is_directory: bool = False

    @property
    def is_text(self) -> bool:
        return isinstance(self.content, str)

    @property
    def size(self) -> int:
        if isinstance(self.content, str):
            return len(self.content.encode("utf-8"))
        return len(self.content)


class UploadedArchive(BaseModel):
    """Archive as loaded by the user, with its extracted files."""

    name: str
    size: int
    files: list[LocalFile] = Field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]


class ChangeStatus(str, Enum):
    NEW = "new"
    MODIFIED = "modified"
    DELETED = "deleted"
    UNCHANGED = "unchanged"


class FileChange(BaseModel):
    """Classification of one path."""

    path: str
    status: ChangeStatus
    local: LocalFile | None = None  # None for deleted paths
    remote: TreeEntry | None = None  # None for new paths


class ChangeSummary(BaseModel):
    """Result of one reconciliation pass, buckets sorted by path."""

    new: list[FileChange] = Field(default_factory=list)
    modified: list[FileChange] = Field(default_factory=list)
    deleted: list[FileChange] = Field(default_factory=list)
    unchanged: list[FileChange] = Field(default_factory=list)

    def bucket(self, status: ChangeStatus) -> list[FileChange]:
        return getattr(self, status.value)

    def paths(self, status: ChangeStatus) -> list[str]:
        return [change.path for change in self.bucket(status)]

    def counts(self) -> dict[str, int]:
        return {status.value: len(self.bucket(status)) for status in ChangeStatus}

    def status_of(self, path: str) -> ChangeStatus | None:
        for status in ChangeStatus:
            if any(change.path == path for change in self.bucket(status)):
                return status
        return None

    @property
    def is_empty(self) -> bool:
        return not any(self.bucket(status) for status in ChangeStatus)

    @property
    def has_changes(self) -> bool:
        return bool(self.new or self.modified or self.deleted)


class BinaryComparisonPolicy(str, Enum):
    """How shared image paths are compared."""

    SKIP = "skip"  # Assume unchanged when present remotely
    BYTE_COMPARE = "byte-compare"


class ReconcileOptions(BaseModel):
    """Reconciliation and default selection settings."""

    default_select_unchanged: bool = True
    binary_comparison_policy: BinaryComparisonPolicy = BinaryComparisonPolicy.SKIP
    pause_every: int = 10
    pause_seconds: float = 0.1


class CommitRequest(BaseModel):
    """User-approved commit: message, branch and the editable file selections."""

    message: str
    target_branch: str
    clear_existing: bool = False
    files_to_push: set[str] = Field(default_factory=set)
    files_to_delete: set[str] = Field(default_factory=set)

    @model_validator(mode="after")
    def _check_disjoint(self) -> "CommitRequest":
        overlap = self.files_to_push & self.files_to_delete
        if overlap:
            raise ValueError(f"Paths both pushed and deleted: {sorted(overlap)}")
        return self

    def set_push(self, path: str, selected: bool) -> None:
        """Toggle a path in the push set."""
        if selected:
            self.files_to_delete.discard(path)
            self.files_to_push.add(path)
        else:
            self.files_to_push.discard(path)

    def set_delete(self, path: str, selected: bool) -> None:
        """Toggle a path in the delete set."""
        if selected:
            self.files_to_push.discard(path)
            self.files_to_delete.add(path)
        else:
            self.files_to_delete.discard(path)

    @property
    def effective_deletions(self) -> set[str]:
        # Clearing drops everything not pushed, individual deletions are moot
        if self.clear_existing:
            return set()
        return set(self.files_to_delete)


class PublishResult(BaseModel):
    """Outcome of a successful publish."""

    branch: str
    parent_sha: str
    tree_sha: str
    commit_sha: str
    created_branch: bool = False
    branch_url: str | None = None  # Web view of the branch, when the repository URL is known
