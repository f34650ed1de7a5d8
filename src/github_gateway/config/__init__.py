"""
Configuration for the GitHub gateway.

Settings are loaded once at process start and passed explicitly to the
HTTP layer and the GitHub client.
"""

from .settings import GatewaySettings, get_settings

__all__ = ["GatewaySettings", "get_settings"]
