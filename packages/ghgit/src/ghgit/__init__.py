"""GitHub REST and Git Data API client utilities."""

from .client import GitHubClient, get_token
from .models import (
    Branch,
    GitBlob,
    GitCommit,
    GitHubUser,
    GitRef,
    GitTree,
    Repository,
    TreeEntry,
)

__all__ = [
    "GitHubClient",
    "GitHubUser",
    "Repository",
    "Branch",
    "TreeEntry",
    "GitTree",
    "GitBlob",
    "GitCommit",
    "GitRef",
    "get_token",
]
