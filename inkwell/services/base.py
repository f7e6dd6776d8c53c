"""
Base class for entity services.

A service is the caller-facing face of one repository: every call names
the acting user, goes through the Access Gate, and only then reaches the
repository. Subclasses map the five CRUD actions to gated operations and
override an action when it needs an ownership rule on top of the tier.

Example:
    class CategoryService(EntityService[Category]):
        operations = {
            "search": Operation.CATEGORIES_SEARCH,
            ...
        }

    await categories.create(actor_id, {"name": "News"})
"""

from __future__ import annotations

from typing import Any, ClassVar, Generic, Mapping, TypeVar

from inkwell.auth.gate import AccessGate, Operation
from inkwell.auth.roles import Role
from inkwell.core.errors import ForbiddenError
from inkwell.core.models import Record, SearchResult
from inkwell.repositories.base import Repository

M = TypeVar("M", bound=Record)


class EntityService(Generic[M]):
    """Gated CRUD over one repository."""

    operations: ClassVar[dict[str, Operation]]

    def __init__(self, repository: Repository[M], gate: AccessGate):
        self.repository = repository
        self.gate = gate

    async def _paranoid(self, actor_id: int | None, include_deleted: bool) -> bool:
        """Only admins may read soft-deleted rows."""
        if include_deleted and not await self.gate.can(Role.ADMIN, actor_id):
            raise ForbiddenError("Only admins may read deleted records")
        return not include_deleted

    async def search(
        self,
        actor_id: int | None,
        filters: Mapping[str, Any] | None = None,
        *,
        include_deleted: bool = False,
        limit: int | None = None,
        offset: int | None = None,
        order_by: str | None = None,
    ) -> SearchResult[M]:
        await self.gate.authorize(self.operations["search"], actor_id)
        paranoid = await self._paranoid(actor_id, include_deleted)
        return await self.repository.search(
            filters,
            paranoid=paranoid,
            limit=limit,
            offset=offset,
            order_by=order_by,
        )

    async def find(self, actor_id: int | None, record_id: int, *, include_deleted: bool = False) -> M:
        await self.gate.authorize(self.operations["find"], actor_id)
        paranoid = await self._paranoid(actor_id, include_deleted)
        return await self.repository.find_one_by_id(record_id, paranoid=paranoid)

    async def create(self, actor_id: int | None, payload: Mapping[str, Any]) -> M:
        return await self.gate.run(
            self.operations["create"],
            actor_id,
            lambda: self.repository.create(payload),
        )

    async def update(self, actor_id: int | None, record_id: int, payload: Mapping[str, Any]) -> bool:
        return await self.gate.run(
            self.operations["update"],
            actor_id,
            lambda: self.repository.update(record_id, payload),
        )

    async def delete(self, actor_id: int | None, record_id: int) -> bool:
        return await self.gate.run(
            self.operations["delete"],
            actor_id,
            lambda: self.repository.soft_delete(record_id),
        )
