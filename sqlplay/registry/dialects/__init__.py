"""File templates for each supported dialect."""

from . import postgresql, sqlite

__all__ = ["postgresql", "sqlite"]
