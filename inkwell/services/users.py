"""
User service.

Adds the account flows to the gated CRUD. Non-admins may edit their own
profile, but role, email and password only change through admins or
the dedicated password/email flows.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from inkwell.auth.gate import Operation
from inkwell.core.errors import ForbiddenError
from inkwell.core.models import User
from inkwell.repositories.users import UserRepository
from inkwell.services.base import EntityService

logger = logging.getLogger(__name__)

# Fields a user may not set on their own profile
PROTECTED_FIELDS = frozenset({"role", "email", "password"})


class UserService(EntityService[User]):
    operations = {
        "search": Operation.USERS_SEARCH,
        "find": Operation.USERS_FIND,
        "create": Operation.USERS_CREATE,
        "update": Operation.USERS_UPDATE,
        "delete": Operation.USERS_DELETE,
    }

    repository: UserRepository

    async def register(self, payload: Mapping[str, Any]) -> str:
        """Open to anyone. Returns a token for the new account."""
        return await self.repository.register(payload)

    async def login(self, email: str, password: str) -> str:
        return await self.repository.login(email, password)

    async def update(self, actor_id: int | None, record_id: int, payload: Mapping[str, Any]) -> bool:
        ctx = await self.gate.authorize(Operation.USERS_UPDATE, actor_id)

        if not ctx.is_admin:
            if not ctx.is_self(record_id):
                logger.info(f"User {actor_id} denied update of user {record_id}")
                raise ForbiddenError("You may only update your own account")

            protected = sorted(PROTECTED_FIELDS.intersection(payload or {}))
            if protected:
                raise ForbiddenError(f"Cannot change {', '.join(protected)} here")

        return await self.repository.update(record_id, payload)

    async def whoami(self, actor_id: int | None) -> User:
        ctx = await self.gate.authorize(Operation.USERS_WHOAMI, actor_id)
        return await self.repository.find_one_by_id(ctx.user_id)

    async def change_password(self, actor_id: int | None, current_password: str, new_password: str) -> bool:
        ctx = await self.gate.authorize(Operation.USERS_CHANGE_PASSWORD, actor_id)
        return await self.repository.change_password(ctx.user_id, current_password, new_password)

    async def change_email(self, actor_id: int | None, password: str, email: str) -> bool:
        ctx = await self.gate.authorize(Operation.USERS_CHANGE_EMAIL, actor_id)
        return await self.repository.change_email(ctx.user_id, password, email)

    async def logout(self, actor_id: int | None) -> bool:
        """Revoke every token the caller holds, including the current one."""
        ctx = await self.gate.authorize(Operation.USERS_LOGOUT, actor_id)
        return await self.repository.revoke_tokens(ctx.user_id)
