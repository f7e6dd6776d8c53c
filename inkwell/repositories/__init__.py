"""
Entity repositories, one per table.

Initialize in dependency order: users (and roles), categories, posts.
"""

from inkwell.repositories.base import Repository
from inkwell.repositories.categories import CategoryRepository
from inkwell.repositories.posts import PostRepository
from inkwell.repositories.users import UserRepository

__all__ = [
    "Repository",
    "UserRepository",
    "CategoryRepository",
    "PostRepository",
]
