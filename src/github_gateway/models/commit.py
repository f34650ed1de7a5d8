"""
Commit assembly models.

These are transient values; all durable state lives on GitHub.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class FileEntry(BaseModel):
    """One file to write in a commit."""

    path: str = Field(..., min_length=1, description="Repository-relative file path")
    content: str = Field(..., description="Raw file content")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        v = v.strip().lstrip("/")
        if not v:
            raise ValueError("File path cannot be empty")
        return v


class CommitRequest(BaseModel):
    """A request to commit several files to one branch as a single commit."""

    message: str = Field(..., min_length=1, description="Commit message")
    branch: Optional[str] = Field(
        default=None, description="Target branch (defaults to the configured branch)"
    )
    files: list[FileEntry] = Field(..., min_length=1, description="Files to commit")

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Commit message is required")
        return v


class TreeEntry(BaseModel):
    """A tree entry pointing a path at a freshly created blob."""

    path: str
    mode: Literal["100644"] = "100644"
    type: Literal["blob"] = "blob"
    sha: str


class CommitResult(BaseModel):
    sha: str
    message: str
    url: Optional[str] = None
    branch: str
