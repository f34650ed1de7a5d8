"""HTTP gateway forwarding authenticated requests to the GitHub REST API."""

__version__ = "1.0.0"
