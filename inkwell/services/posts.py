"""
Post service.

Readers below the author tier only ever see published posts. Authors
write their own posts; editors and admins may write anyone's.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from inkwell.auth.gate import Operation
from inkwell.auth.roles import Role
from inkwell.core.errors import ForbiddenError
from inkwell.core.models import Post, SearchResult
from inkwell.repositories.posts import PostRepository
from inkwell.services.base import EntityService

logger = logging.getLogger(__name__)


class PostService(EntityService[Post]):
    operations = {
        "search": Operation.POSTS_SEARCH,
        "find": Operation.POSTS_FIND,
        "create": Operation.POSTS_CREATE,
        "update": Operation.POSTS_UPDATE,
        "delete": Operation.POSTS_DELETE,
    }

    repository: PostRepository

    async def search(
        self,
        actor_id: int | None,
        filters: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> SearchResult[Post]:
        filters = dict(filters or {})
        if not await self.gate.can(Role.AUTHOR, actor_id):
            filters["published"] = True
        return await super().search(actor_id, filters, **options)

    async def find(self, actor_id: int | None, record_id: int, *, include_deleted: bool = False) -> Post:
        await self.gate.authorize(Operation.POSTS_FIND, actor_id)
        paranoid = await self._paranoid(actor_id, include_deleted)
        return await self.repository.find_one_by_id(
            record_id,
            paranoid=paranoid,
            published_only=not await self.gate.can(Role.AUTHOR, actor_id),
        )

    async def create(self, actor_id: int | None, payload: Mapping[str, Any]) -> Post:
        ctx = await self.gate.authorize(Operation.POSTS_CREATE, actor_id)

        values = dict(payload or {})
        # Only editors may attribute a post to someone else
        if not ctx.is_editor or values.get("author") is None:
            values["author"] = ctx.user_id

        return await self.repository.create(values)

    async def update(self, actor_id: int | None, record_id: int, payload: Mapping[str, Any]) -> bool:
        ctx = await self.gate.authorize(Operation.POSTS_UPDATE, actor_id)

        if not ctx.is_editor:
            post = await self.repository.find_one_by_id(record_id, published_only=False)
            if post.author != ctx.user_id:
                logger.info(f"User {actor_id} denied update of post {record_id}")
                raise ForbiddenError("You may only update your own posts")
            if "author" in (payload or {}) and payload["author"] != ctx.user_id:
                raise ForbiddenError("Only editors may reassign a post")

        return await self.repository.update(record_id, payload)
