"""
Auth context - who is calling, and what they may do.

A lightweight object built once per operation so that several role
checks (e.g. "editor?" then "owner?") cost a single user lookup.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from inkwell.auth.roles import Role, role_satisfies
from inkwell.core.models import User


class UserLookup(Protocol):
    """
    What the auth components need from the user store.

    UserRepository implements this.
    """

    async def find_one_by_id(self, user_id: int, *, paranoid: bool = True) -> User:
        """Active user by id; raises NotFoundError."""
        ...

    async def verify_token(self, user_id: int, issued_at: datetime) -> bool:
        """Whether a token issued at ``issued_at`` is still honoured."""
        ...


@dataclass
class AuthContext:
    """
    Authorization context for one operation.

    Usage:
        ctx = await authority.context_for(user_id)
        if ctx.is_editor:
            ...
    """

    user_id: int | None = None
    role: Role | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    def has_role(self, minimum: Role) -> bool:
        return role_satisfies(self.role, minimum)

    @property
    def is_admin(self) -> bool:
        return self.has_role(Role.ADMIN)

    @property
    def is_editor(self) -> bool:
        return self.has_role(Role.EDITOR)

    @property
    def is_author(self) -> bool:
        return self.has_role(Role.AUTHOR)

    def is_self(self, user_id: int) -> bool:
        return self.user_id is not None and self.user_id == user_id

    @classmethod
    def anonymous(cls) -> AuthContext:
        """Create an anonymous context (no user)."""
        return cls()
