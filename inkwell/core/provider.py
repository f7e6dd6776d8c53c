"""
Core container - builds and wires every component once.

    core = create_core()
    await core.init()
    token = await core.users.login("a@x.com", "secret")
    ...
    await core.close()

The credential engine and the user repository need each other (hashing
on one side, token validation lookups on the other), so the engine's
``lookup`` is attached after both exist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from inkwell.auth.credentials import CredentialEngine
from inkwell.auth.gate import AccessGate
from inkwell.auth.roles import RoleAuthority
from inkwell.config import Settings, get_settings
from inkwell.config_loader import SeedData, load_seed
from inkwell.core.utils import Clock, utc_now
from inkwell.repositories import CategoryRepository, PostRepository, UserRepository
from inkwell.services import CategoryService, PostService, UserService
from inkwell.storage.base import Database
from inkwell.storage.postgres import PostgresDatabase

logger = logging.getLogger(__name__)


@dataclass
class Core:
    """Everything a transport layer needs."""

    settings: Settings
    db: Database
    credentials: CredentialEngine
    authority: RoleAuthority
    gate: AccessGate
    user_repository: UserRepository
    category_repository: CategoryRepository
    post_repository: PostRepository
    users: UserService
    categories: CategoryService
    posts: PostService

    async def init(self) -> None:
        """Create tables in foreign key order: users, categories, posts."""
        logger.info("Initializing storage")
        await self.user_repository.init()
        await self.category_repository.init()
        await self.post_repository.init()
        logger.info("Storage ready")

    async def close(self) -> None:
        await self.db.close()


def create_database(settings: Settings) -> PostgresDatabase:
    return PostgresDatabase(
        settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout=settings.database_command_timeout,
    )


def create_core(
    settings: Settings | None = None,
    db: Database | None = None,
    seed: SeedData | None = None,
    clock: Clock = utc_now,
) -> Core:
    """
    Wire the components.

    Args:
        settings: Defaults to ``get_settings()``.
        db: Defaults to a PostgresDatabase built from settings.
        seed: Defaults to ``load_seed()``.
        clock: Shared by token issuance and revocation.
    """
    settings = settings or get_settings()
    db = db or create_database(settings)
    seed = seed or load_seed(settings.seed_file or None)

    credentials = CredentialEngine(settings, clock=clock)
    user_repository = UserRepository(db, credentials, seed=seed, clock=clock)
    credentials.lookup = user_repository

    category_repository = CategoryRepository(db, seed=seed, clock=clock)
    post_repository = PostRepository(db, clock=clock)

    authority = RoleAuthority(user_repository)
    gate = AccessGate(authority)

    return Core(
        settings=settings,
        db=db,
        credentials=credentials,
        authority=authority,
        gate=gate,
        user_repository=user_repository,
        category_repository=category_repository,
        post_repository=post_repository,
        users=UserService(user_repository, gate),
        categories=CategoryService(category_repository, gate),
        posts=PostService(post_repository, gate),
    )
