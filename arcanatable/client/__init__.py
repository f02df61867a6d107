"""Client-side session adapter for ArcanaTable rooms."""

from .session import ClientSession

__all__ = ["ClientSession"]
