"""HTTP surface of the subscription service."""

from .app import create_app

__all__ = ["create_app"]
