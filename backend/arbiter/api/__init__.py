"""HTTP API for Arbiter."""

from .server import create_app

__all__ = ["create_app"]
