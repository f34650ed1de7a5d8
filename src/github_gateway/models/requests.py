"""Request bodies for the passthrough endpoints."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateRepoRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Repository name")
    description: str = Field(default="", description="Repository description")
    private: bool = Field(default=False, description="Create a private repository")
    auto_init: bool = Field(
        default=True, alias="autoInit", description="Create an initial commit"
    )


class CreateBranchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="New branch name")
    from_branch: Optional[str] = Field(
        default=None, alias="from", description="Branch to start from"
    )


class CreatePullRequestRequest(BaseModel):
    title: str = Field(..., min_length=1, description="Pull request title")
    head: str = Field(..., min_length=1, description="Branch with the changes")
    base: Optional[str] = Field(default=None, description="Branch to merge into")
    body: str = Field(default="", description="Pull request description")


class DeleteRepoRequest(BaseModel):
    confirm: Optional[str] = Field(
        default=None, description="Must equal the repository name"
    )
