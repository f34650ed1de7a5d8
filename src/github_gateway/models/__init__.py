"""
Data models for the GitHub gateway.
"""

from .commit import CommitRequest, CommitResult, FileEntry, TreeEntry
from .requests import (
    CreateBranchRequest,
    CreatePullRequestRequest,
    CreateRepoRequest,
    DeleteRepoRequest,
)

__all__ = [
    "CommitRequest",
    "CommitResult",
    "FileEntry",
    "TreeEntry",
    "CreateBranchRequest",
    "CreatePullRequestRequest",
    "CreateRepoRequest",
    "DeleteRepoRequest",
]
