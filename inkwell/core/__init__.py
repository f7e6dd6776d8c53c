"""Core types: errors, public models, and the component container."""

from inkwell.core.errors import ErrorKind, InkwellError
from inkwell.core.models import Category, Post, SearchResult, TokenValidation, User

__all__ = [
    "ErrorKind",
    "InkwellError",
    "User",
    "Category",
    "Post",
    "SearchResult",
    "TokenValidation",
]
