"""
Pytest configuration and shared fixtures.
"""

import asyncio
import base64
import hashlib
import itertools
from typing import Any, Callable, Optional

import pytest

from github_gateway.config import GatewaySettings
from github_gateway.errors import GitHubAPIError


class FakeGitHubHost:
    """In-memory stand-in for the GitHub Git Data API.

    Records every call in ``calls`` and only accepts fast-forward ref updates
    unless ``force`` is set, like GitHub does.
    """

    def __init__(self, files: Optional[dict[str, str]] = None, branch: str = "main"):
        self.calls: list[tuple[str, Any]] = []
        self.blobs: dict[str, str] = {}
        self.trees: dict[str, dict[str, dict]] = {}
        self.commits: dict[str, dict] = {}
        self.refs: dict[str, str] = {}
        self.failures: dict[str, Callable[..., Optional[Exception]]] = {}
        self._ids = itertools.count(1)

        tree_sha = self._store_tree(
            {path: self._entry(path, self._store_blob(content)) for path, content in (files or {}).items()}
        )
        self.refs[f"heads/{branch}"] = self._store_commit("initial", tree_sha, [])

    # helpers

    def _sha(self, kind: str) -> str:
        return hashlib.sha1(f"{kind}-{next(self._ids)}".encode()).hexdigest()

    @staticmethod
    def _entry(path: str, sha: str) -> dict:
        return {"path": path, "mode": "100644", "type": "blob", "sha": sha}

    def _store_blob(self, content: str) -> str:
        sha = self._sha("blob")
        self.blobs[sha] = content
        return sha

    def _store_tree(self, entries: dict[str, dict]) -> str:
        sha = self._sha("tree")
        self.trees[sha] = entries
        return sha

    def _store_commit(self, message: str, tree: str, parents: list[str]) -> str:
        sha = self._sha("commit")
        self.commits[sha] = {"message": message, "tree": tree, "parents": parents}
        return sha

    async def _enter(self, name: str, *args) -> None:
        self.calls.append((name, args))
        # Yield so concurrent operations interleave
        await asyncio.sleep(0)
        hook = self.failures.get(name)
        if hook is not None:
            error = hook(*args)
            if error is not None:
                raise error

    def fail(self, name: str, error: Exception, when: Optional[Callable[..., bool]] = None) -> None:
        """Make primitive ``name`` raise ``error`` (optionally only when ``when(*args)``)."""
        self.failures[name] = lambda *args: error if when is None or when(*args) else None

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def head(self, branch: str = "main") -> str:
        return self.refs[f"heads/{branch}"]

    def files_at(self, commit_sha: str) -> dict[str, str]:
        tree = self.trees[self.commits[commit_sha]["tree"]]
        return {path: self.blobs[entry["sha"]] for path, entry in tree.items()}

    def _is_ancestor(self, ancestor: str, sha: str) -> bool:
        pending = [sha]
        while pending:
            current = pending.pop()
            if current == ancestor:
                return True
            pending.extend(self.commits.get(current, {}).get("parents", []))
        return False

    # primitives

    async def get_ref(self, owner: str, repo: str, ref: str) -> dict:
        await self._enter("get_ref", owner, repo, ref)
        if ref not in self.refs:
            raise GitHubAPIError(404, "Not Found")
        return {"ref": f"refs/{ref}", "object": {"sha": self.refs[ref], "type": "commit"}}

    async def get_commit(self, owner: str, repo: str, commit_sha: str) -> dict:
        await self._enter("get_commit", owner, repo, commit_sha)
        commit = self.commits.get(commit_sha)
        if commit is None:
            raise GitHubAPIError(404, "Not Found")
        return {"sha": commit_sha, "tree": {"sha": commit["tree"]}, "message": commit["message"]}

    async def create_blob(self, owner: str, repo: str, content: str, encoding: str = "base64") -> dict:
        await self._enter("create_blob", owner, repo, content, encoding)
        decoded = base64.b64decode(content).decode("utf-8") if encoding == "base64" else content
        return {"sha": self._store_blob(decoded)}

    async def get_tree(self, owner: str, repo: str, tree_sha: str, recursive: bool = False) -> dict:
        await self._enter("get_tree", owner, repo, tree_sha, recursive)
        entries = list(self.trees[tree_sha].values())
        dirs = {path.rsplit("/", 1)[0] for path in self.trees[tree_sha] if "/" in path}
        entries += [{"path": d, "mode": "040000", "type": "tree", "sha": self._sha("tree")} for d in sorted(dirs)]
        return {"sha": tree_sha, "tree": entries, "truncated": False}

    async def create_tree(self, owner: str, repo: str, tree: list[dict], base_tree: Optional[str] = None) -> dict:
        await self._enter("create_tree", owner, repo, tree, base_tree)
        entries = dict(self.trees[base_tree]) if base_tree else {}
        for item in tree:
            if item["type"] != "blob":
                raise GitHubAPIError(422, "tree entries must be blobs")
            entries[item["path"]] = dict(item)
        return {"sha": self._store_tree(entries)}

    async def create_commit(self, owner: str, repo: str, message: str, tree: str, parents: list[str]) -> dict:
        await self._enter("create_commit", owner, repo, message, tree, parents)
        sha = self._store_commit(message, tree, list(parents))
        return {"sha": sha, "message": message, "html_url": f"https://github.com/{owner}/{repo}/commit/{sha}"}

    async def update_ref(self, owner: str, repo: str, ref: str, sha: str, force: bool = False) -> dict:
        await self._enter("update_ref", owner, repo, ref, sha, force)
        current = self.refs.get(ref)
        if current is None:
            raise GitHubAPIError(422, "Reference does not exist")
        if not force and not self._is_ancestor(current, sha):
            raise GitHubAPIError(422, "Update is not a fast forward")
        self.refs[ref] = sha
        return {"ref": f"refs/{ref}", "object": {"sha": sha}}

    async def aclose(self) -> None:
        pass


@pytest.fixture
def make_host() -> Callable[..., FakeGitHubHost]:
    """Factory for fake hosts with custom starting files."""
    return FakeGitHubHost


@pytest.fixture
def fake_host() -> FakeGitHubHost:
    """A repository whose main branch holds README.md and src/app.py."""
    return FakeGitHubHost(files={"README.md": "# demo", "src/app.py": "print('hi')"})


@pytest.fixture
def settings(tmp_path) -> GatewaySettings:
    """Settings isolated from the developer's environment."""
    return GatewaySettings(
        _env_file=None,
        api_key="test-api-key",
        github_token="ghp_" + "a" * 36,
        github_org=None,
        log_dir=None,
        rate_limit_max_requests=0,
        environment="testing",
    )


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authentication headers for API requests."""
    return {"X-API-Key": "test-api-key"}
