"""GitHub integration for the gateway"""

from .client import GitHubClient

__all__ = ["GitHubClient"]
