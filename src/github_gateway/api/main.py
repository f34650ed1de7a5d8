"""
GitHub Gateway API Service
Authenticates callers with a shared API key and forwards repository, commit,
branch and pull request operations to the GitHub REST API.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader

from .. import __version__
from ..commit_assembler import CommitAssembler, commit_with_retries
from ..config import GatewaySettings
from ..errors import GatewayError, GitHubAPIError, HostError, ValidationError
from ..github import GitHubClient
from ..models import (
    CommitRequest,
    CreateBranchRequest,
    CreatePullRequestRequest,
    CreateRepoRequest,
    DeleteRepoRequest,
)
from ..utils.error_responses import (
    ErrorBody,
    UnhandledErrorMiddleware,
    setup_error_handlers,
)
from ..utils.jsonl_logger import log_with_context
from ..utils.request_id_middleware import RequestIDMiddleware
from ..utils.security_middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from ..utils.status_codes import HTTPStatus, validate_api_key

logger = logging.getLogger(__name__)

PROCESS_START = time.monotonic()

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_settings(request: Request) -> GatewaySettings:
    return request.app.state.settings


def get_github_client(request: Request) -> GitHubClient:
    return request.app.state.github


def get_assembler(request: Request) -> CommitAssembler:
    return request.app.state.assembler


def require_api_key(
    request: Request, api_key: Optional[str] = Depends(api_key_header)
) -> str:
    """Validate the X-API-Key header before any GitHub call."""
    try:
        return validate_api_key(api_key, request.app.state.settings.api_key)
    except GatewayError:
        logger.warning(
            "Unauthorized API access attempt",
            extra={
                "json_data": {
                    "ip": request.client.host if request.client else None,
                    "path": request.url.path,
                }
            },
        )
        raise


def _iso_from_epoch(epoch: Optional[int]) -> str:
    if not epoch:
        return datetime.now(timezone.utc).isoformat()
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()


async def _forward(operation: str, call):
    """Await a GitHub call, wrapping upstream failures under ``operation``."""
    try:
        return await call
    except GitHubAPIError as e:
        logger.error(f"Failed to {operation}: {e.details}")
        raise HostError(f"Failed to {operation}", details=e.details) from e


def create_app(
    settings: GatewaySettings, client: Optional[GitHubClient] = None
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Process configuration
        client: GitHub client to use; one is built from ``settings`` if omitted

    Returns:
        Configured FastAPI app
    """
    owns_client = client is None
    github = client or GitHubClient.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_with_context(
            logger,
            logging.INFO,
            "GitHub gateway starting",
            org=settings.github_org or "Personal account",
            endpoints=["/health", "/api/repos/*", "/api/rate-limit"],
        )
        yield
        if owns_client:
            await github.aclose()

    app = FastAPI(
        title="GitHub Gateway",
        description="Authenticated passthrough to the GitHub REST API",
        version=__version__,
        lifespan=lifespan,
        responses={
            401: {"model": ErrorBody},
            500: {"model": ErrorBody},
        },
    )
    app.state.settings = settings
    app.state.github = github
    app.state.assembler = CommitAssembler(
        github,
        default_branch=settings.default_branch,
        use_base_tree=settings.use_base_tree,
    )

    # Outermost middleware is added last
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max_requests,
        window_s=settings.rate_limit_window_s,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    setup_error_handlers(app)
    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    @app.get("/health", tags=["health"])
    async def health(github: GitHubClient = Depends(get_github_client)):
        """Health check endpoint; verifies the GitHub credential."""
        uptime = time.monotonic() - PROCESS_START
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            user = await github.get_authenticated_user()
        except GatewayError as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(
                status_code=HTTPStatus.SERVICE_UNAVAILABLE,
                content={
                    "status": "unhealthy",
                    "uptime": uptime,
                    "timestamp": timestamp,
                    "github": {"connected": False, "error": str(e)},
                },
            )

        return {
            "status": "healthy",
            "uptime": uptime,
            "timestamp": timestamp,
            "github": {
                "connected": True,
                "user": user.get("login"),
                "rateLimit": "available",
            },
        }

    @app.post("/api/repos/create", tags=["repos"], dependencies=[Depends(require_api_key)])
    async def create_repository(
        payload: CreateRepoRequest,
        settings: GatewaySettings = Depends(get_settings),
        github: GitHubClient = Depends(get_github_client),
    ):
        """Create a repository in the configured organization or user account."""
        log_with_context(
            logger, logging.INFO, "Creating repository", name=payload.name, org=settings.github_org
        )
        repo = await _forward(
            "create repository",
            github.create_repo(
                payload.name,
                description=payload.description,
                private=payload.private,
                auto_init=payload.auto_init,
                org=settings.github_org,
            ),
        )
        log_with_context(
            logger,
            logging.INFO,
            "Repository created successfully",
            name=repo.get("name"),
            url=repo.get("html_url"),
        )
        return {
            "success": True,
            "repository": {
                "name": repo.get("name"),
                "fullName": repo.get("full_name"),
                "url": repo.get("html_url"),
                "cloneUrl": repo.get("clone_url"),
                "sshUrl": repo.get("ssh_url"),
                "defaultBranch": repo.get("default_branch"),
            },
        }

    @app.post(
        "/api/repos/{owner}/{repo}/commit",
        tags=["commits"],
        dependencies=[Depends(require_api_key)],
        responses={404: {"model": ErrorBody}, 409: {"model": ErrorBody}, 503: {"model": ErrorBody}},
    )
    async def commit_files(
        owner: str,
        repo: str,
        payload: CommitRequest,
        settings: GatewaySettings = Depends(get_settings),
        assembler: CommitAssembler = Depends(get_assembler),
    ):
        """Commit several files to a branch as one new commit."""
        result = await commit_with_retries(
            assembler,
            owner,
            repo,
            payload,
            max_retries=settings.commit_conflict_retries,
            backoff_s=settings.commit_retry_backoff_s,
        )
        return {"success": True, "commit": result.model_dump()}

    @app.get(
        "/api/repos/{owner}/{repo}/status",
        tags=["repos"],
        dependencies=[Depends(require_api_key)],
    )
    async def repository_status(
        owner: str, repo: str, github: GitHubClient = Depends(get_github_client)
    ):
        """Repository details, branches and the ten most recent commits."""
        repository, branches, commits = await _forward(
            "get repository status",
            asyncio.gather(
                github.get_repo(owner, repo),
                github.list_branches(owner, repo),
                github.list_commits(owner, repo, per_page=10),
            ),
        )
        now = datetime.now(timezone.utc).isoformat()
        recent = []
        for c in commits:
            commit = c.get("commit") or {}
            author = commit.get("author") or {}
            recent.append(
                {
                    "sha": (c.get("sha") or "")[:7],
                    "message": commit.get("message", ""),
                    "author": author.get("name") or "Unknown",
                    "date": author.get("date") or now,
                }
            )
        return {
            "success": True,
            "repository": {
                "name": repository.get("name"),
                "fullName": repository.get("full_name"),
                "description": repository.get("description"),
                "url": repository.get("html_url"),
                "private": repository.get("private"),
                "defaultBranch": repository.get("default_branch"),
                "createdAt": repository.get("created_at"),
                "updatedAt": repository.get("updated_at"),
            },
            "branches": [
                {"name": b.get("name"), "protected": b.get("protected", False)}
                for b in branches
            ],
            "recentCommits": recent,
        }

    @app.post(
        "/api/repos/{owner}/{repo}/branch",
        tags=["branches"],
        dependencies=[Depends(require_api_key)],
    )
    async def create_branch(
        owner: str,
        repo: str,
        payload: CreateBranchRequest,
        settings: GatewaySettings = Depends(get_settings),
        github: GitHubClient = Depends(get_github_client),
    ):
        """Create a branch pointing at the head of another branch."""
        source = payload.from_branch or settings.default_branch
        ref = await _forward("create branch", github.get_ref(owner, repo, f"heads/{source}"))
        sha = (ref.get("object") or {}).get("sha")
        if not sha:
            raise HostError(
                "Failed to create branch", details=f"No commit SHA for branch {source}"
            )
        await _forward(
            "create branch", github.create_ref(owner, repo, f"refs/heads/{payload.name}", sha)
        )
        log_with_context(
            logger, logging.INFO, "Branch created successfully", owner=owner, repo=repo, branch=payload.name
        )
        return {"success": True, "branch": {"name": payload.name, "from": source, "sha": sha}}

    @app.post(
        "/api/repos/{owner}/{repo}/pr",
        tags=["pulls"],
        dependencies=[Depends(require_api_key)],
    )
    async def create_pull_request(
        owner: str,
        repo: str,
        payload: CreatePullRequestRequest,
        settings: GatewaySettings = Depends(get_settings),
        github: GitHubClient = Depends(get_github_client),
    ):
        """Open a pull request."""
        pr = await _forward(
            "create pull request",
            github.create_pull_request(
                owner,
                repo,
                title=payload.title,
                head=payload.head,
                base=payload.base or settings.default_branch,
                body=payload.body,
            ),
        )
        log_with_context(
            logger, logging.INFO, "Pull request created", owner=owner, repo=repo, number=pr.get("number")
        )
        return {
            "success": True,
            "pullRequest": {
                "number": pr.get("number"),
                "title": pr.get("title"),
                "url": pr.get("html_url"),
                "state": pr.get("state"),
                "head": (pr.get("head") or {}).get("ref"),
                "base": (pr.get("base") or {}).get("ref"),
            },
        }

    @app.delete(
        "/api/repos/{owner}/{repo}",
        tags=["repos"],
        dependencies=[Depends(require_api_key)],
    )
    async def delete_repository(
        owner: str,
        repo: str,
        payload: Optional[DeleteRepoRequest] = None,
        github: GitHubClient = Depends(get_github_client),
    ):
        """Delete a repository; the body must confirm the repository name."""
        if payload is None or payload.confirm != repo:
            raise ValidationError(
                "Repository name confirmation required",
                details='Send { "confirm": "repository-name" } to delete',
            )
        await _forward("delete repository", github.delete_repo(owner, repo))
        log_with_context(logger, logging.WARNING, "Repository deleted", owner=owner, repo=repo)
        return {"success": True, "message": f"Repository {owner}/{repo} deleted successfully"}

    @app.get("/api/rate-limit", tags=["account"], dependencies=[Depends(require_api_key)])
    async def rate_limit(github: GitHubClient = Depends(get_github_client)):
        """GitHub rate limit status for the core and GraphQL APIs."""
        data = await _forward("get rate limit", github.get_rate_limit())
        resources = data.get("resources", {})
        core = resources.get("core", {})
        graphql = resources.get("graphql") or {}
        return {
            "success": True,
            "rateLimit": {
                "core": {
                    "limit": core.get("limit", 0),
                    "remaining": core.get("remaining", 0),
                    "reset": _iso_from_epoch(core.get("reset")),
                },
                "graphql": {
                    "limit": graphql.get("limit", 0),
                    "remaining": graphql.get("remaining", 0),
                    "reset": _iso_from_epoch(graphql.get("reset")),
                },
            },
        }
