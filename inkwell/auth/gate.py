"""
Access Gate - approve or deny an operation before it touches the store.

Every named operation has a Policy in POLICIES. Callers go through
``gate.run(...)`` (or ``gate.authorize(...)`` when they need the resolved
context for ownership rules):

    post = await gate.run(
        Operation.POSTS_DELETE,
        actor_id,
        lambda: posts.soft_delete(post_id),
    )

A denial raises before ``call`` is invoked, so it has no side effects.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from inkwell.auth.context import AuthContext
from inkwell.auth.roles import Role, RoleAuthority
from inkwell.core.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

R = TypeVar("R")


# =============================================================================
# Operations
# =============================================================================


class Operation(str, Enum):
    """Every gated operation, named ``<entity>.<action>``."""

    USERS_SEARCH = "users.search"
    USERS_FIND = "users.find"
    USERS_CREATE = "users.create"
    USERS_UPDATE = "users.update"
    USERS_DELETE = "users.delete"
    USERS_WHOAMI = "users.whoami"
    USERS_CHANGE_PASSWORD = "users.change_password"
    USERS_CHANGE_EMAIL = "users.change_email"
    USERS_LOGOUT = "users.logout"

    CATEGORIES_SEARCH = "categories.search"
    CATEGORIES_FIND = "categories.find"
    CATEGORIES_CREATE = "categories.create"
    CATEGORIES_UPDATE = "categories.update"
    CATEGORIES_DELETE = "categories.delete"

    POSTS_SEARCH = "posts.search"
    POSTS_FIND = "posts.find"
    POSTS_CREATE = "posts.create"
    POSTS_UPDATE = "posts.update"
    POSTS_DELETE = "posts.delete"


# =============================================================================
# Policy
# =============================================================================


class Policy:
    """
    What an operation demands of its caller.

    Args:
        min_role: Lowest role allowed, None for any role.
        require_auth: Deny anonymous callers. Implied by ``min_role``.
    """

    def __init__(self, min_role: Role | None = None, require_auth: bool = True):
        self.min_role = min_role
        self.require_auth = require_auth or min_role is not None

    def check(self, ctx: AuthContext) -> tuple[bool, str | None]:
        """
        Check if context satisfies this policy.

        Returns: (allowed, error_message)
        """
        if not self.require_auth:
            return True, None

        # Deleted or unknown users resolve to no role
        if ctx.is_anonymous or ctx.role is None:
            return False, "Authentication required"

        if self.min_role and not ctx.has_role(self.min_role):
            return False, f"Requires {self.min_role.value} role or higher"

        return True, None

    def __repr__(self) -> str:
        role = self.min_role.value if self.min_role else None
        return f"Policy(min_role={role!r}, require_auth={self.require_auth})"


PUBLIC = Policy(require_auth=False)
AUTHENTICATED = Policy()
AUTHOR = Policy(min_role=Role.AUTHOR)
EDITOR = Policy(min_role=Role.EDITOR)
ADMIN = Policy(min_role=Role.ADMIN)


POLICIES: dict[Operation, Policy] = {
    Operation.USERS_SEARCH: PUBLIC,
    Operation.USERS_FIND: PUBLIC,
    Operation.USERS_CREATE: ADMIN,
    # Ownership checked by UserService
    Operation.USERS_UPDATE: AUTHENTICATED,
    Operation.USERS_DELETE: ADMIN,
    Operation.USERS_WHOAMI: AUTHENTICATED,
    Operation.USERS_CHANGE_PASSWORD: AUTHENTICATED,
    Operation.USERS_CHANGE_EMAIL: AUTHENTICATED,
    Operation.USERS_LOGOUT: AUTHENTICATED,

    Operation.CATEGORIES_SEARCH: PUBLIC,
    Operation.CATEGORIES_FIND: PUBLIC,
    Operation.CATEGORIES_CREATE: ADMIN,
    Operation.CATEGORIES_UPDATE: ADMIN,
    Operation.CATEGORIES_DELETE: ADMIN,

    Operation.POSTS_SEARCH: PUBLIC,
    Operation.POSTS_FIND: PUBLIC,
    # Ownership checked by PostService
    Operation.POSTS_CREATE: AUTHOR,
    Operation.POSTS_UPDATE: AUTHOR,
    Operation.POSTS_DELETE: ADMIN,
}


# =============================================================================
# Gate
# =============================================================================


class AccessGate:
    """Applies the policy table using the Role Authority."""

    def __init__(self, authority: RoleAuthority, policies: dict[Operation, Policy] | None = None):
        self.authority = authority
        self.policies = policies if policies is not None else POLICIES

    def policy_for(self, operation: Operation) -> Policy:
        try:
            return self.policies[operation]
        except KeyError:
            raise KeyError(f"No policy registered for {operation.value}") from None

    async def authorize(self, operation: Operation, actor_id: int | None) -> AuthContext:
        """
        Resolve the caller and check the operation's policy.

        Raises:
            UnauthorizedError: Anonymous (or inactive) caller on an
                authenticated operation.
            ForbiddenError: Role below the operation's tier.
        """
        policy = self.policy_for(operation)
        ctx = await self.authority.context_for(actor_id)

        allowed, error = policy.check(ctx)
        if allowed:
            return ctx

        logger.info(f"Denied {operation.value} for user {actor_id}: {error}")
        if ctx.is_anonymous or ctx.role is None:
            raise UnauthorizedError(error)
        raise ForbiddenError(error)

    async def run(
        self,
        operation: Operation,
        actor_id: int | None,
        call: Callable[[], Awaitable[R]],
    ) -> R:
        """Authorize, then await ``call``."""
        await self.authorize(operation, actor_id)
        return await call()

    async def can(self, tier: Role, actor_id: int | None) -> bool:
        """Soft check: does the caller hold at least ``tier``? Never raises."""
        return await self.authority.has_role(actor_id, tier)
