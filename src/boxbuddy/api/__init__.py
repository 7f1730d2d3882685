"""HTTP command API for the lockbox controller."""

from boxbuddy.api.app import create_app

__all__ = ["create_app"]
