"""
Roles and the Role Authority.

The hierarchy is an explicit ordered tuple, highest privilege first.
A user satisfies a minimum role when their role name appears in the
prefix of the hierarchy that ends at that role. Role ids are never
compared: they are seed-assigned anchors, not a privilege ordering.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from inkwell.core.errors import NotFoundError

if TYPE_CHECKING:
    from inkwell.auth.context import AuthContext, UserLookup

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Platform-wide user role."""

    ADMIN = "Admin"          # Everything, including user management
    EDITOR = "Editor"        # Any post, any author
    AUTHOR = "Author"        # Own posts, sees unpublished content
    COMMENTER = "Commenter"  # Default for registered users


ROLE_HIERARCHY: tuple[Role, ...] = (
    Role.ADMIN,
    Role.EDITOR,
    Role.AUTHOR,
    Role.COMMENTER,
)

LOWEST_ROLE = ROLE_HIERARCHY[-1]


def roles_at_least(minimum: Role) -> tuple[Role, ...]:
    """All roles that satisfy ``minimum``, highest first."""
    return ROLE_HIERARCHY[: ROLE_HIERARCHY.index(minimum) + 1]


def parse_role(name: str | Role | None) -> Role | None:
    """Role for a stored role name, None if unknown."""
    if name is None:
        return None
    try:
        return Role(name)
    except ValueError:
        return None


def role_satisfies(role: str | Role | None, minimum: Role) -> bool:
    """Check whether ``role`` is ``minimum`` or above."""
    return parse_role(role) in roles_at_least(minimum)


class RoleAuthority:
    """
    Answers "does this user hold at least role X?".

    Unknown and soft-deleted users hold no role, so every check on them
    answers False instead of raising.
    """

    def __init__(self, lookup: UserLookup):
        self.lookup = lookup

    async def role_of(self, user_id: int | None) -> Role | None:
        """The user's role, or None for unknown/deleted users."""
        if user_id is None:
            return None
        try:
            user = await self.lookup.find_one_by_id(user_id)
        except NotFoundError:
            return None

        role = parse_role(user.role)
        if role is None and user.role is not None:
            logger.warning(f"User {user_id} has unrecognized role '{user.role}'")
        return role

    async def has_role(self, user_id: int | None, minimum: Role) -> bool:
        return role_satisfies(await self.role_of(user_id), minimum)

    async def is_admin(self, user_id: int | None) -> bool:
        return await self.has_role(user_id, Role.ADMIN)

    async def is_editor(self, user_id: int | None) -> bool:
        return await self.has_role(user_id, Role.EDITOR)

    async def is_author(self, user_id: int | None) -> bool:
        return await self.has_role(user_id, Role.AUTHOR)

    async def context_for(self, user_id: int | None) -> AuthContext:
        """Resolve the caller's role once for several checks."""
        from inkwell.auth.context import AuthContext

        if user_id is None:
            return AuthContext.anonymous()
        return AuthContext(user_id=user_id, role=await self.role_of(user_id))
