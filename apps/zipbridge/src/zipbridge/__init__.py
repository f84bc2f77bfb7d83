"""Zip-upload a project into a GitHub repository as one commit."""

from .actions import ActionDispatcher
from .config import Settings
from .extractor import extract_archive, load_archive
from .models import (
    BinaryComparisonPolicy,
    ChangeStatus,
    ChangeSummary,
    CommitRequest,
    FileChange,
    LocalFile,
    PublishResult,
    ReconcileOptions,
    UploadedArchive,
)
from .publisher import Publisher, build_tree_entries
from .reconcile import Reconciler, classify, default_request
from .session import UploadSession, analyze, push

__all__ = [
    "ActionDispatcher",
    "Settings",
    "extract_archive",
    "load_archive",
    "LocalFile",
    "UploadedArchive",
    "ChangeStatus",
    "FileChange",
    "ChangeSummary",
    "BinaryComparisonPolicy",
    "ReconcileOptions",
    "CommitRequest",
    "PublishResult",
    "Publisher",
    "build_tree_entries",
    "Reconciler",
    "classify",
    "default_request",
    "UploadSession",
    "analyze",
    "push",
]
