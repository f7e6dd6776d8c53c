"""
FastAPI dependencies for route handlers.

    @router.delete("/posts/{post_id}")
    async def delete_post(
        post_id: int,
        actor_id: int = Depends(require_user),
        core: Core = Depends(get_core),
    ):
        return await core.posts.delete(actor_id, post_id)

``get_actor`` is for routes open to anonymous readers, ``require_user``
for routes that need a valid token.
"""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from inkwell.core.errors import UnauthorizedError
from inkwell.core.provider import Core

# Doesn't fail if no token; require_user decides
optional_bearer = HTTPBearer(auto_error=False)


def get_core(request: Request) -> Core:
    """The Core built at startup (see inkwell.api.app)."""
    return request.app.state.core


async def get_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
    core: Core = Depends(get_core),
) -> int | None:
    """
    User id from the bearer token, None when no token is sent.

    Raises:
        InvalidTokenError: A token was sent but is expired, tampered,
            revoked, or belongs to a deleted user.
    """
    if not credentials:
        return None
    return await core.credentials.authenticate(credentials.credentials)


async def require_user(actor_id: int | None = Depends(get_actor)) -> int:
    if actor_id is None:
        raise UnauthorizedError()
    return actor_id
