"""Services - gated entry points, one per entity."""

from inkwell.services.base import EntityService
from inkwell.services.categories import CategoryService
from inkwell.services.posts import PostService
from inkwell.services.users import UserService

__all__ = [
    "EntityService",
    "UserService",
    "CategoryService",
    "PostService",
]
