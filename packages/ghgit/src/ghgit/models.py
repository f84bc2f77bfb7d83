"""GitHub API data models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class GitHubUser(BaseModel):
    """Authenticated user."""

    model_config = ConfigDict(extra="ignore")

    login: str
    id: int | None = None
    name: str | None = None
    html_url: str | None = None


class RepositoryOwner(BaseModel):
    """Repository owner (user or organization)."""

    model_config = ConfigDict(extra="ignore")

    login: str


class Repository(BaseModel):
    """Repository summary."""

    model_config = ConfigDict(extra="ignore")

    name: str
    full_name: str
    owner: RepositoryOwner
    private: bool = False
    default_branch: str = "main"
    description: str | None = None
    html_url: str | None = None
    updated_at: str | None = None


class BranchCommit(BaseModel):
    """Commit pointer embedded in a branch response."""

    model_config = ConfigDict(extra="ignore")

    sha: str
    url: str | None = None


class Branch(BaseModel):
    """Branch detail with its head commit."""

    model_config = ConfigDict(extra="ignore")

    name: str
    commit: BranchCommit
    protected: bool = False


class TreeEntry(BaseModel):
    """Single entry of a (recursive) tree listing."""

    model_config = ConfigDict(extra="ignore")

    path: str
    mode: str
    type: Literal["blob", "tree", "commit"]
    sha: str
    size: int | None = None  # Only present for blobs


class GitTree(BaseModel):
    """Tree object listing."""

    model_config = ConfigDict(extra="ignore")

    sha: str
    tree: list[TreeEntry] = Field(default_factory=list)
    truncated: bool = False

    def blobs(self) -> list[TreeEntry]:
        """Return blob entries only."""
        return [entry for entry in self.tree if entry.type == "blob"]


class GitBlob(BaseModel):
    """Blob object as returned by the Git Data API."""

    model_config = ConfigDict(extra="ignore")

    sha: str
    content: str = ""
    encoding: str = "base64"
    size: int | None = None


class TreePointer(BaseModel):
    """Tree reference inside a commit."""

    model_config = ConfigDict(extra="ignore")

    sha: str


class GitCommit(BaseModel):
    """Commit object."""

    model_config = ConfigDict(extra="ignore")

    sha: str
    tree: TreePointer
    message: str = ""
    parents: list[TreePointer] = Field(default_factory=list)


class RefObject(BaseModel):
    """Object a ref points at."""

    model_config = ConfigDict(extra="ignore")

    sha: str
    type: str = "commit"


class GitRef(BaseModel):
    """Git reference."""

    model_config = ConfigDict(extra="ignore")

    ref: str
    object: RefObject
