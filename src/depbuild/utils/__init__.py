"""Utility modules for depbuild."""

from .project import env_search_roots, get_search_roots, parse_file_uri

__all__ = [
    "get_search_roots",
    "env_search_roots",
    "parse_file_uri",
]
