"""Category repository."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from inkwell.config_loader import SeedData, load_seed
from inkwell.core.models import Category
from inkwell.core.utils import Clock, utc_now
from inkwell.repositories.base import Repository
from inkwell.storage.base import Database
from inkwell.storage.query import Field, FieldSet, Where, like_pattern

logger = logging.getLogger(__name__)


class CategoryRepository(Repository[Category]):
    table = "categories"
    model = Category

    columns = (
        "categories.id, categories.name::text AS name, categories.description, "
        "categories.created_at, categories.updated_at, categories.deleted_at"
    )
    source = "categories"

    fields = FieldSet(
        Field("name", required=True),
        Field("description"),
    )

    sortable = {
        "id": "categories.id",
        "name": "categories.name",
        "created_at": "categories.created_at",
        "updated_at": "categories.updated_at",
    }

    filter_keys = frozenset({"search_text"})

    unique_constraints = {"categories_name_key": "name"}

    def __init__(self, db: Database, seed: SeedData | None = None, clock: Clock = utc_now):
        super().__init__(db, clock)
        self._seed = seed

    def schema(self) -> list[str]:
        return [
            """
            CREATE TABLE IF NOT EXISTS categories (
                id SERIAL PRIMARY KEY,
                name CITEXT NOT NULL,
                description TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                deleted_at TIMESTAMPTZ DEFAULT NULL,
                CONSTRAINT categories_name_key UNIQUE (name)
            )
            """,
            """
            CREATE INDEX IF NOT EXISTS categories_name_trgm_idx
                ON categories USING gin ((name::text) gin_trgm_ops)
            """,
        ]

    async def seed(self, db: Database) -> None:
        seed = self._seed or load_seed()
        for category in seed.categories:
            await db.execute(
                "INSERT INTO categories (name, description) VALUES ($1, $2) "
                "ON CONFLICT (name) DO NOTHING",
                category.name,
                category.description,
            )
        logger.debug(f"Seeded {len(seed.categories)} categories")

    def apply_filters(self, where: Where, filters: Mapping[str, Any]) -> None:
        search_text = filters.get("search_text")
        if search_text:
            where.add("categories.name::text ILIKE {}", like_pattern(search_text))
