"""GitHub REST API client"""

import logging
import re
from typing import Any, Optional

import httpx

from .. import __version__
from ..config import GatewaySettings
from ..errors import GitHubAPIError, HostUnavailable, ServiceNotConfiguredError

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class GitHubClient:
    """Async GitHub API client.

    Wraps one ``httpx.AsyncClient``. Every call is bounded by ``timeout``;
    timeouts and transport failures raise ``HostUnavailable`` and non-2xx
    answers raise ``GitHubAPIError``.
    """

    def __init__(
        self,
        token: Optional[str],
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        if token and not self._is_valid_github_token(token):
            logger.warning("GitHub token format appears invalid")

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": f"github-gateway/{__version__}",
            },
        )

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GitHubClient":
        return cls(
            token=settings.github_token,
            base_url=settings.github_api_url,
            timeout=settings.github_timeout_s,
            transport=transport,
        )

    @staticmethod
    def _is_valid_github_token(token: str) -> bool:
        """Validate GitHub token format"""
        patterns = [
            r"^ghp_[a-zA-Z0-9]{36}$",  # Personal access tokens (classic)
            r"^github_pat_[a-zA-Z0-9_]{82}$",  # Fine-grained personal access tokens
            r"^ghs_[a-zA-Z0-9]{36}$",  # GitHub App installation tokens
            r"^ghu_[a-zA-Z0-9]{36}$",  # GitHub App user tokens
            r"^gho_[a-zA-Z0-9]{36}$",  # OAuth access tokens
        ]
        return any(re.match(pattern, token.strip()) for pattern in patterns)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        if not self.token:
            raise ServiceNotConfiguredError("GITHUB_TOKEN not configured")

        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.TimeoutException as e:
            logger.warning(f"GitHub request timed out: {method} {path}")
            raise HostUnavailable(details=f"Timed out calling {method} {path}") from e
        except httpx.TransportError as e:
            logger.warning(f"GitHub transport error: {method} {path}: {e}")
            raise HostUnavailable(details=str(e) or type(e).__name__) from e

        if not response.is_success:
            self._raise_for_response(response)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _raise_for_response(response: httpx.Response) -> None:
        message = response.reason_phrase or "error"
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("message"):
            message = payload["message"]

        reset = response.headers.get("X-RateLimit-Reset")
        if response.status_code in (401, 403) and response.headers.get("X-RateLimit-Remaining") == "0":
            message = "GitHub API rate limit exceeded"

        raise GitHubAPIError(
            response.status_code,
            message,
            rate_limit_reset=int(reset) if reset and reset.isdigit() else None,
        )

    # Git Data API

    async def get_ref(self, owner: str, repo: str, ref: str) -> dict:
        """Get a reference such as ``heads/main``."""
        return await self._request("GET", f"/repos/{owner}/{repo}/git/ref/{ref}")

    async def get_commit(self, owner: str, repo: str, commit_sha: str) -> dict:
        return await self._request(
            "GET", f"/repos/{owner}/{repo}/git/commits/{commit_sha}"
        )

    async def create_blob(
        self, owner: str, repo: str, content: str, encoding: str = "base64"
    ) -> dict:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={"content": content, "encoding": encoding},
        )

    async def get_tree(
        self, owner: str, repo: str, tree_sha: str, recursive: bool = False
    ) -> dict:
        params = {"recursive": "1"} if recursive else None
        return await self._request(
            "GET", f"/repos/{owner}/{repo}/git/trees/{tree_sha}", params=params
        )

    async def create_tree(
        self,
        owner: str,
        repo: str,
        tree: list[dict[str, Any]],
        base_tree: Optional[str] = None,
    ) -> dict:
        body: dict[str, Any] = {"tree": tree}
        if base_tree:
            body["base_tree"] = base_tree
        return await self._request("POST", f"/repos/{owner}/{repo}/git/trees", json=body)

    async def create_commit(
        self, owner: str, repo: str, message: str, tree: str, parents: list[str]
    ) -> dict:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        )

    async def update_ref(
        self, owner: str, repo: str, ref: str, sha: str, force: bool = False
    ) -> dict:
        """Move a reference. With ``force=False`` GitHub only accepts fast-forwards."""
        return await self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/{ref}",
            json={"sha": sha, "force": force},
        )

    async def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> dict:
        return await self._request(
            "POST", f"/repos/{owner}/{repo}/git/refs", json={"ref": ref, "sha": sha}
        )

    # Repositories

    async def create_repo(
        self,
        name: str,
        description: str = "",
        private: bool = False,
        auto_init: bool = True,
        org: Optional[str] = None,
    ) -> dict:
        path = f"/orgs/{org}/repos" if org else "/user/repos"
        return await self._request(
            "POST",
            path,
            json={
                "name": name,
                "description": description,
                "private": private,
                "auto_init": auto_init,
            },
        )

    async def get_repo(self, owner: str, repo: str) -> dict:
        return await self._request("GET", f"/repos/{owner}/{repo}")

    async def list_branches(self, owner: str, repo: str) -> list[dict]:
        return await self._request("GET", f"/repos/{owner}/{repo}/branches")

    async def list_commits(self, owner: str, repo: str, per_page: int = 10) -> list[dict]:
        return await self._request(
            "GET", f"/repos/{owner}/{repo}/commits", params={"per_page": per_page}
        )

    async def delete_repo(self, owner: str, repo: str) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}")

    # Pull requests

    async def create_pull_request(
        self, owner: str, repo: str, title: str, head: str, base: str, body: str = ""
    ) -> dict:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "head": head, "base": base, "body": body},
        )

    # Account

    async def get_rate_limit(self) -> dict:
        return await self._request("GET", "/rate_limit")

    async def get_authenticated_user(self) -> dict:
        return await self._request("GET", "/user")
