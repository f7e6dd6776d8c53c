"""
Post repository.

Posts carry a tag set stored in ``tags``. Tags are written in the same
transaction as the post row: on create they are inserted, and on update
a ``tags`` key replaces the whole set (omitting it leaves tags alone).

Unpublished posts are hidden from reads unless the caller asks for them.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from inkwell.core.errors import ConflictError, InvalidPayloadError
from inkwell.core.models import Post, SearchResult
from inkwell.repositories.base import Repository
from inkwell.storage.base import Database
from inkwell.storage.query import Field, FieldSet, Where, build_insert, like_pattern

logger = logging.getLogger(__name__)

SEARCH_EXPRESSION = (
    "(posts.title || ' ' || COALESCE(posts.description, '') || ' ' || posts.content)"
)


def normalize_slug(slug: Any) -> str:
    return str(slug).lower()


def normalize_tags(tags: Any) -> list[str]:
    """Strip, drop blanks and duplicates, keep first-seen order."""
    if tags is None:
        return []
    if isinstance(tags, str) or not isinstance(tags, (list, tuple, set, frozenset)):
        raise InvalidPayloadError("tags must be a list of strings", fields=["tags"])

    result: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            raise InvalidPayloadError("tags must be a list of strings", fields=["tags"])
        tag = tag.strip()
        if tag and tag not in result:
            result.append(tag)
    return result


class PostRepository(Repository[Post]):
    table = "posts"
    model = Post

    columns = (
        "posts.id, posts.author, "
        "users.first_name AS author_first_name, users.last_name AS author_last_name, "
        "posts.title, posts.description, posts.content, "
        "posts.category, categories.name::text AS category_name, "
        "posts.slug::text AS slug, posts.template, posts.published, "
        "posts.created_at, posts.updated_at, posts.deleted_at, "
        "ARRAY(SELECT tags.name FROM tags WHERE tags.post = posts.id ORDER BY tags.name) AS tags"
    )
    source = (
        "posts "
        "LEFT JOIN categories ON posts.category = categories.id "
        "LEFT JOIN users ON posts.author = users.id"
    )

    fields = FieldSet(
        Field("author", required=True),
        Field("title", required=True),
        Field("description", default=""),
        Field("content", required=True),
        Field("category", required=True),
        Field("slug", required=True, normalize=normalize_slug),
        Field("template", default="default", nullable=False),
        Field("published", default=False, nullable=False, normalize=bool),
    )

    sortable = {
        "id": "posts.id",
        "title": "posts.title",
        "slug": "posts.slug",
        "template": "posts.template",
        "published": "posts.published",
        "author": "posts.author",
        "category": "posts.category",
        "category_name": "categories.name",
        "created_at": "posts.created_at",
        "updated_at": "posts.updated_at",
    }

    filter_keys = frozenset({"search_text", "template", "category", "published", "author", "tag"})

    unique_constraints = {"posts_slug_key": "slug"}

    def schema(self) -> list[str]:
        return [
            """
            CREATE TABLE IF NOT EXISTS posts (
                id SERIAL PRIMARY KEY,
                author INTEGER NOT NULL REFERENCES users(id),
                title TEXT NOT NULL,
                description TEXT DEFAULT '',
                content TEXT NOT NULL,
                category INTEGER NOT NULL REFERENCES categories(id),
                slug CITEXT NOT NULL,
                template TEXT NOT NULL DEFAULT 'default',
                published BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                deleted_at TIMESTAMPTZ DEFAULT NULL,
                CONSTRAINT posts_slug_key UNIQUE (slug)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS tags (
                post INTEGER NOT NULL REFERENCES posts(id),
                name TEXT NOT NULL,
                PRIMARY KEY (post, name)
            )
            """,
            """
            CREATE INDEX IF NOT EXISTS posts_search_trgm_idx ON posts USING gin (
                (title || ' ' || COALESCE(description, '') || ' ' || content) gin_trgm_ops
            )
            """,
            "CREATE INDEX IF NOT EXISTS tags_name_idx ON tags (name)",
        ]

    # =========================================================================
    # Tags
    # =========================================================================

    async def _insert_tags(self, db: Database, post_id: int, tags: list[str]) -> None:
        if not tags:
            return
        await db.execute(
            "INSERT INTO tags (post, name) SELECT $1, UNNEST($2::text[]) "
            "ON CONFLICT DO NOTHING",
            post_id,
            tags,
        )

    async def _replace_tags(self, db: Database, post_id: int, tags: list[str]) -> None:
        await db.execute("DELETE FROM tags WHERE post = $1", post_id)
        await self._insert_tags(db, post_id, tags)

    # =========================================================================
    # Filters
    # =========================================================================

    def visibility_where(self, paranoid: bool, published: bool | None) -> Where:
        where = self.base_where(paranoid)
        if published is not None:
            where.add("posts.published = {}", published)
        return where

    def apply_filters(self, where: Where, filters: Mapping[str, Any]) -> None:
        published = filters.get("published")
        if published is not None:
            where.add("posts.published = {}", bool(published))

        search_text = filters.get("search_text")
        if search_text:
            where.add(f"{SEARCH_EXPRESSION} ILIKE {{}}", like_pattern(search_text))

        for key in ("template", "category", "author"):
            value = filters.get(key)
            if value is not None:
                where.add(f"posts.{key} = {{}}", value)

        tag = filters.get("tag")
        if tag:
            where.add(
                "EXISTS (SELECT 1 FROM tags WHERE tags.post = posts.id AND tags.name = {})",
                tag,
            )

    # =========================================================================
    # Operations
    # =========================================================================

    async def create(self, payload: Mapping[str, Any]) -> Post:
        """
        Insert a post and its tags in one transaction.

        Raises:
            InvalidPayloadError: Missing/unknown fields, or author/category
                that does not exist.
            ConflictError: Slug already in use.
        """
        payload = dict(payload or {})
        tags = normalize_tags(payload.pop("tags", None))
        values = self.fields.for_create(payload)
        sql, params = build_insert(self.table, self.fields, values)

        try:
            async with self.db.transaction() as tx:
                post_id = await tx.fetchval(sql, *params)
                await self._insert_tags(tx, post_id, tags)
        except ConflictError as exc:
            raise self.conflict(exc) from exc

        logger.info(f"Created post {post_id} with {len(tags)} tags")
        return await self.find_one_by_id(post_id, published_only=False)

    async def find_one_by_id(
        self,
        record_id: int,
        *,
        paranoid: bool = True,
        published_only: bool = True,
    ) -> Post:
        """
        Raises:
            NotFoundError: No row, soft-deleted under ``paranoid``, or
                unpublished under ``published_only``.
        """
        where = self.visibility_where(paranoid, True if published_only else None)
        where.add("posts.id = {}", record_id)
        return await self.fetch_one(where)

    async def search(
        self,
        filters: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> SearchResult[Post]:
        """
        Post search.

        ``published`` defaults to True (published posts only); pass False
        for unpublished only, or None to include both.
        """
        filters = dict(filters or {})
        filters.setdefault("published", True)
        return await super().search(filters, **options)

    async def update(self, record_id: int, payload: Mapping[str, Any]) -> bool:
        """
        Partial update. A ``tags`` key replaces the tag set in the same
        transaction as the row update.
        """
        payload = dict(payload or {})
        if not payload:
            raise InvalidPayloadError("Invalid update payload provided")

        replace_tags = "tags" in payload
        tags = normalize_tags(payload.pop("tags", None))
        values = self.fields.for_update(payload) if payload else {}

        async with self.db.transaction() as tx:
            await self.write_update(tx, record_id, values)
            if replace_tags:
                await self._replace_tags(tx, record_id, tags)
        return True
