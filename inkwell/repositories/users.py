"""
User repository.

Besides the generic CRUD, owns the account flows: registration, login,
password and email changes, and token revocation. Passwords are hashed
through the CredentialEngine and never leave this module.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any, Mapping

from inkwell.auth.credentials import CredentialEngine
from inkwell.auth.roles import LOWEST_ROLE, parse_role
from inkwell.config_loader import SeedData, load_seed
from inkwell.core.errors import (
    InvalidCredentialsError,
    InvalidPayloadError,
    NotFoundError,
)
from inkwell.core.models import User
from inkwell.core.utils import Clock, utc_now
from inkwell.repositories.base import Repository
from inkwell.storage.base import Database
from inkwell.storage.query import Field, FieldSet, Where, like_pattern

logger = logging.getLogger(__name__)

# Concatenation used by both the trigram index and free-text search
SEARCH_EXPRESSION = (
    "(COALESCE(users.first_name, '') || ' ' || COALESCE(users.last_name, '') "
    "|| ' ' || users.email)"
)


def normalize_email(email: Any) -> str:
    return str(email).lower()


def _role_name(value: Any) -> str:
    role = parse_role(value)
    if role is None:
        raise InvalidPayloadError(f"Unknown role '{value}'", fields=["role"])
    return role.value


class UserRepository(Repository[User]):
    table = "users"
    model = User

    columns = (
        "users.id, users.first_name, users.last_name, users.email, "
        "user_roles.name AS role, "
        "users.created_at, users.updated_at, users.deleted_at"
    )
    source = "users LEFT JOIN user_roles ON users.role = user_roles.id"

    fields = FieldSet(
        Field("first_name", default=""),
        Field("last_name", default=""),
        Field("email", required=True, normalize=normalize_email),
        Field("password", required=True),
        # Role given by name, stored as the id of that name
        Field(
            "role",
            default=LOWEST_ROLE.value,
            nullable=False,
            normalize=_role_name,
            placeholder="(SELECT id FROM user_roles WHERE name = {})",
        ),
    )

    system_fields = FieldSet(
        Field("deleted_at"),
        Field("token_blacklist_date"),
    )

    sortable = {
        "id": "users.id",
        "first_name": "users.first_name",
        "last_name": "users.last_name",
        "email": "users.email",
        "role": "user_roles.name",
        "created_at": "users.created_at",
        "updated_at": "users.updated_at",
    }

    filter_keys = frozenset({"search_text"})

    unique_constraints = {"users_email_key": "email"}

    def __init__(
        self,
        db: Database,
        credentials: CredentialEngine,
        seed: SeedData | None = None,
        clock: Clock = utc_now,
    ):
        super().__init__(db, clock)
        self.credentials = credentials
        self._seed = seed
        self._dummy_hash: str | None = None

    # =========================================================================
    # Schema
    # =========================================================================

    def schema(self) -> list[str]:
        return [
            """
            CREATE TABLE IF NOT EXISTS user_roles (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                CONSTRAINT user_roles_name_key UNIQUE (name)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS users (
                id SERIAL PRIMARY KEY,
                first_name TEXT DEFAULT '',
                last_name TEXT DEFAULT '',
                email TEXT NOT NULL,
                password TEXT NOT NULL,
                role INTEGER NOT NULL REFERENCES user_roles(id),
                created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                deleted_at TIMESTAMPTZ DEFAULT NULL,
                token_blacklist_date TIMESTAMPTZ DEFAULT NULL,
                CONSTRAINT users_email_key UNIQUE (email)
            )
            """,
            """
            CREATE INDEX IF NOT EXISTS users_search_trgm_idx ON users USING gin (
                (COALESCE(first_name, '') || ' ' || COALESCE(last_name, '') || ' ' || email)
                gin_trgm_ops
            )
            """,
        ]

    async def seed(self, db: Database) -> None:
        seed = self._seed or load_seed()
        for role_id, name in seed.role_rows():
            await db.execute(
                "INSERT INTO user_roles (id, name) VALUES ($1, $2) ON CONFLICT DO NOTHING",
                role_id,
                name,
            )
        # Explicit ids leave the serial behind; move it past them
        await db.execute(
            "SELECT setval(pg_get_serial_sequence('user_roles', 'id'), "
            "(SELECT MAX(id) FROM user_roles))"
        )
        logger.debug(f"Seeded {len(seed.roles)} roles")

    # =========================================================================
    # CRUD hooks
    # =========================================================================

    async def prepare_create(self, values: dict[str, Any]) -> dict[str, Any]:
        values["password"] = await self.credentials.hash(values["password"])
        return values

    async def prepare_update(self, values: dict[str, Any]) -> dict[str, Any]:
        if "password" in values:
            values["password"] = await self.credentials.hash(values["password"])
        return values

    def apply_filters(self, where: Where, filters: Mapping[str, Any]) -> None:
        search_text = filters.get("search_text")
        if search_text:
            where.add(f"{SEARCH_EXPRESSION} ILIKE {{}}", like_pattern(search_text))

    # =========================================================================
    # Passwords
    # =========================================================================

    async def _password_matches(self, user_id: int, plaintext: str, password_hash: str) -> bool:
        try:
            return await self.credentials.verify(plaintext, password_hash)
        except ValueError:
            logger.error(f"User {user_id} has a malformed password hash")
            return False

    async def _burn_verify(self, plaintext: str) -> None:
        """Spend the same hashing work as a real check against no account."""
        if self._dummy_hash is None:
            self._dummy_hash = await self.credentials.hash(secrets.token_hex(16))
        await self.credentials.verify(plaintext, self._dummy_hash)

    async def _check_password(self, user_id: int, plaintext: str) -> None:
        """
        Raises:
            NotFoundError: No active user with this id.
            InvalidCredentialsError: Wrong password.
        """
        row = await self.db.fetchrow(
            "SELECT id, password FROM users WHERE id = $1 AND deleted_at IS NULL",
            user_id,
        )
        if row is None:
            raise NotFoundError()
        if not plaintext or not await self._password_matches(user_id, plaintext, row["password"]):
            raise InvalidCredentialsError("Invalid password")

    # =========================================================================
    # Account flows
    # =========================================================================

    async def register(self, payload: Mapping[str, Any]) -> str:
        """
        Create a user with the lowest role and log them in.

        Any ``role`` in the payload is ignored.

        Returns:
            A bearer token for the new user.
        """
        values = dict(payload or {})
        values["role"] = LOWEST_ROLE.value
        await self.create(values)
        return await self.login(values["email"], values["password"])

    async def login(self, email: str, password: str) -> str:
        """
        Exchange credentials for a bearer token.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password; the
                two cases are indistinguishable to the caller.
        """
        if not email or not password:
            raise InvalidCredentialsError()

        row = await self.db.fetchrow(
            "SELECT id, password FROM users WHERE email = $1 AND deleted_at IS NULL",
            normalize_email(email),
        )

        if row is None:
            await self._burn_verify(password)
            raise InvalidCredentialsError()

        if not await self._password_matches(row["id"], password, row["password"]):
            raise InvalidCredentialsError()

        logger.info(f"User {row['id']} logged in")
        return self.credentials.issue_token(row["id"])

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> bool:
        """
        Raises:
            InvalidCredentialsError: ``current_password`` is wrong.
            InvalidPayloadError: ``new_password`` is empty.
        """
        await self._check_password(user_id, current_password)
        return await self.update(user_id, {"password": new_password})

    async def change_email(self, user_id: int, password: str, email: str) -> bool:
        """
        Raises:
            InvalidCredentialsError: ``password`` is wrong.
            ConflictError: ``email`` belongs to another user.
        """
        await self._check_password(user_id, password)
        return await self.update(user_id, {"email": email})

    # =========================================================================
    # Tokens
    # =========================================================================

    async def verify_token(self, user_id: int, issued_at: datetime) -> bool:
        """
        Whether a token issued at ``issued_at`` is still honoured.

        True only for an active user whose blacklist date, if any, is
        strictly before the issue instant.
        """
        row = await self.db.fetchrow(
            "SELECT deleted_at, token_blacklist_date FROM users WHERE id = $1",
            user_id,
        )
        if row is None or row["deleted_at"] is not None:
            return False

        blacklisted_at = row["token_blacklist_date"]
        return blacklisted_at is None or blacklisted_at < issued_at

    async def revoke_tokens(self, user_id: int) -> bool:
        """Invalidate every token issued to the user up to now."""
        await self.write_update(
            self.db,
            user_id,
            {"token_blacklist_date": self.clock()},
            fields=self.system_fields,
        )
        logger.info(f"Revoked tokens for user {user_id}")
        return True
