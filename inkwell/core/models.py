"""
Public projections of the stored entities.

These are what repositories return. Sensitive columns (password hash,
token blacklist date) never appear here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Record(BaseModel):
    """Common columns of every entity table."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class User(Record):
    """A user, with the role name joined in."""

    first_name: str | None = ""
    last_name: str | None = ""
    email: str
    role: str | None = None


class Category(Record):
    name: str
    description: str | None = None


class Post(Record):
    """A post, with author and category names joined in."""

    author: int | None = None
    author_first_name: str | None = None
    author_last_name: str | None = None
    title: str
    description: str | None = ""
    content: str
    category: int | None = None
    category_name: str | None = None
    slug: str
    template: str | None = "default"
    published: bool = False
    tags: list[str] = Field(default_factory=list)


class SearchResult(BaseModel, Generic[T]):
    """
    One page of search results.

    total_count is computed before limit/offset, so it covers every
    matching row rather than just this page.
    """

    items: list[T]
    total_count: int


class TokenValidation(BaseModel):
    """Outcome of checking a decoded token against the user store."""

    valid: bool
    user_id: int | None = None
