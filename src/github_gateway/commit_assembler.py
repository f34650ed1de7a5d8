"""
Multi-file commit assembly on top of the GitHub Git Data API.

A commit is assembled from blobs, a tree and a commit object, and only then
made visible by moving the branch reference. The reference update is the
last step, so any earlier failure leaves the branch untouched.
"""

import asyncio
import base64
import logging
from typing import Awaitable, TypeVar

from .errors import (
    BlobCreationFailed,
    CommitCreationFailed,
    CommitError,
    GitHubAPIError,
    HostError,
    HostUnavailable,
    RefNotFound,
    RefUpdateConflict,
    TreeCreationFailed,
    ValidationError,
)
from .github import GitHubClient
from .models import CommitRequest, CommitResult, FileEntry, TreeEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CommitAssembler:
    """Builds one new commit containing several files on a branch."""

    def __init__(
        self,
        client: GitHubClient,
        default_branch: str = "main",
        use_base_tree: bool = True,
    ):
        self.client = client
        self.default_branch = default_branch
        self.use_base_tree = use_base_tree

    async def commit(self, owner: str, repo: str, request: CommitRequest) -> CommitResult:
        """
        Commit all files in ``request`` to its branch.

        Args:
            owner: Repository owner
            repo: Repository name
            request: Branch, message and files

        Returns:
            The new commit

        Raises:
            ValidationError: If the request has no files or no message
            CommitError: Subclass naming the step that failed
            HostUnavailable: On timeout or transport failure
        """
        if not request.files:
            raise ValidationError("Files array is required")
        if not request.message or not request.message.strip():
            raise ValidationError("Commit message is required")

        branch = request.branch or self.default_branch
        ref = f"heads/{branch}"
        context = {"owner": owner, "repo": repo, "branch": branch, "file_count": len(request.files)}
        logger.info("Creating commit", extra={"json_data": context})

        ref_data = await self._step("get_ref", RefNotFound, self.client.get_ref(owner, repo, ref))
        current_commit_sha = ref_data["object"]["sha"]

        current_commit = await self._step(
            "get_commit", RefNotFound, self.client.get_commit(owner, repo, current_commit_sha)
        )
        current_tree_sha = current_commit["tree"]["sha"]

        entries = await self._create_blobs(owner, repo, request.files)

        if self.use_base_tree:
            new_tree = await self._step(
                "create_tree",
                TreeCreationFailed,
                self.client.create_tree(
                    owner, repo, [e.model_dump() for e in entries], base_tree=current_tree_sha
                ),
            )
        else:
            new_tree = await self._create_full_tree(owner, repo, current_tree_sha, entries)

        new_commit = await self._step(
            "create_commit",
            CommitCreationFailed,
            self.client.create_commit(
                owner, repo, request.message, new_tree["sha"], [current_commit_sha]
            ),
        )

        await self._update_ref(owner, repo, ref, new_commit["sha"])

        logger.info(
            "Commit created successfully",
            extra={"json_data": {**context, "sha": new_commit["sha"]}},
        )
        return CommitResult(
            sha=new_commit["sha"],
            message=new_commit.get("message", request.message),
            url=new_commit.get("html_url"),
            branch=branch,
        )

    async def _step(
        self, step: str, error_cls: type[CommitError], call: Awaitable[T]
    ) -> T:
        """Await one Host call, mapping failures onto the commit taxonomy."""
        try:
            return await call
        except HostUnavailable as e:
            e.step = step
            raise
        except GitHubAPIError as e:
            if error_cls is RefNotFound and e.status != 404:
                raise HostError(details=e.details, step=step) from e
            raise error_cls(details=e.details, step=step) from e

    async def _create_blobs(
        self, owner: str, repo: str, files: list[FileEntry]
    ) -> list[TreeEntry]:
        """Create one blob per file concurrently, preserving request order."""

        async def create(entry: FileEntry) -> TreeEntry:
            encoded = base64.b64encode(entry.content.encode("utf-8")).decode("ascii")
            try:
                blob = await self.client.create_blob(owner, repo, encoded, encoding="base64")
            except HostUnavailable as e:
                e.step = "create_blob"
                raise
            except GitHubAPIError as e:
                raise BlobCreationFailed(
                    details=f"{entry.path}: {e.details}", step="create_blob"
                ) from e
            return TreeEntry(path=entry.path, sha=blob["sha"])

        # First failure propagates; sibling results are discarded.
        return list(await asyncio.gather(*(create(entry) for entry in files)))

    async def _create_full_tree(
        self, owner: str, repo: str, base_tree_sha: str, entries: list[TreeEntry]
    ) -> dict:
        """Merge ``entries`` into the full current tree and submit it without base_tree."""
        current = await self._step(
            "get_tree",
            TreeCreationFailed,
            self.client.get_tree(owner, repo, base_tree_sha, recursive=True),
        )
        if current.get("truncated"):
            raise TreeCreationFailed(
                details="Current tree is too large to merge locally", step="get_tree"
            )

        merged: dict[str, dict] = {}
        for item in current.get("tree", []):
            if item.get("type") == "tree":
                continue
            merged[item["path"]] = {
                "path": item["path"],
                "mode": item["mode"],
                "type": item["type"],
                "sha": item["sha"],
            }
        for entry in entries:
            merged[entry.path] = entry.model_dump()

        return await self._step(
            "create_tree",
            TreeCreationFailed,
            self.client.create_tree(owner, repo, list(merged.values())),
        )

    async def _update_ref(self, owner: str, repo: str, ref: str, sha: str) -> None:
        try:
            await self.client.update_ref(owner, repo, ref, sha, force=False)
        except HostUnavailable as e:
            e.step = "update_ref"
            raise
        except GitHubAPIError as e:
            # Non-forced updates are rejected with 422 when not a fast-forward.
            if e.status == 422:
                logger.warning(
                    "Branch moved during commit",
                    extra={"json_data": {"owner": owner, "repo": repo, "ref": ref}},
                )
                raise RefUpdateConflict(details=e.upstream_message, step="update_ref") from e
            raise HostError(
                "Failed to update branch", details=e.details, step="update_ref"
            ) from e


async def commit_with_retries(
    assembler: CommitAssembler,
    owner: str,
    repo: str,
    request: CommitRequest,
    max_retries: int = 0,
    backoff_s: float = 0.5,
) -> CommitResult:
    """
    Run ``assembler.commit`` and re-run it after a ref update conflict.

    Each attempt re-reads the branch head. Only ``RefUpdateConflict`` is
    retried, at most ``max_retries`` extra times with exponential backoff.
    """
    attempt = 0
    while True:
        try:
            return await assembler.commit(owner, repo, request)
        except RefUpdateConflict:
            if attempt >= max_retries:
                raise
            delay = backoff_s * (2**attempt)
            attempt += 1
            logger.info(
                f"Retrying commit after conflict (attempt {attempt}/{max_retries})",
                extra={"json_data": {"owner": owner, "repo": repo, "delay_s": delay}},
            )
            if delay:
                await asyncio.sleep(delay)
