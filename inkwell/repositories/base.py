"""
Entity repository base.

One subclass per table. A subclass declares:

- ``table``, ``model``: the table it owns and the projection it returns
- ``columns`` / ``source``: the SELECT list and FROM clause (with joins)
- ``fields``: the writable fields (create/update whitelist)
- ``sortable``: public sort key -> column expression
- ``filter_keys``: search filters it understands (see ``apply_filters``)
- ``unique_constraints``: constraint name -> public field name
- ``schema()`` / ``seed()``: DDL and reference rows for ``init()``

Reads are paranoid by default: soft-deleted rows are invisible unless
``paranoid=False`` is passed.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Generic, Mapping, TypeVar

from inkwell.core.errors import (
    ConflictError,
    InvalidPayloadError,
    NoRecordsUpdatedError,
    NotFoundError,
)
from inkwell.core.models import Record, SearchResult
from inkwell.core.utils import Clock, utc_now
from inkwell.storage.base import Database, Row, affected_rows
from inkwell.storage.query import (
    Field,
    FieldSet,
    Where,
    build_insert,
    build_update,
    paginate,
    parse_order_by,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Record)

# Key for pg_advisory_xact_lock; serializes init() across processes
SCHEMA_LOCK_ID = 7_340_031

EXTENSIONS = ("citext", "pg_trgm")


class Repository(Generic[M]):
    """Generic CRUD over one soft-deletable table."""

    table: ClassVar[str]
    model: ClassVar[type[Record]]
    columns: ClassVar[str]
    source: ClassVar[str]
    fields: ClassVar[FieldSet]
    sortable: ClassVar[Mapping[str, str]]
    filter_keys: ClassVar[frozenset[str]] = frozenset()
    unique_constraints: ClassVar[Mapping[str, str]] = {}

    # Written by the repository itself, never by callers
    system_fields: ClassVar[FieldSet] = FieldSet(Field("deleted_at"))

    def __init__(self, db: Database, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    # =========================================================================
    # Initialization
    # =========================================================================

    def schema(self) -> list[str]:
        """DDL statements, each idempotent."""
        raise NotImplementedError

    async def seed(self, db: Database) -> None:
        """Insert reference rows if absent."""
        pass

    async def init(self) -> None:
        """
        Create the table, indexes and reference rows.

        Safe to run on every startup and from several processes at once:
        everything runs in one transaction holding an advisory lock.
        """
        async with self.db.transaction() as tx:
            await tx.execute("SELECT pg_advisory_xact_lock($1)", SCHEMA_LOCK_ID)
            for extension in EXTENSIONS:
                await tx.execute(f"CREATE EXTENSION IF NOT EXISTS {extension}")
            for statement in self.schema():
                await tx.execute(statement)
            await self.seed(tx)
        logger.info(f"Initialized table '{self.table}'")

    # =========================================================================
    # Helpers
    # =========================================================================

    @property
    def select_sql(self) -> str:
        return f"SELECT {self.columns} FROM {self.source}"

    def to_model(self, row: Row) -> M:
        return self.model.model_validate(dict(row))  # type: ignore[return-value]

    def base_where(self, paranoid: bool = True) -> Where:
        where = Where()
        if paranoid:
            where.add(f"{self.table}.deleted_at IS NULL")
        return where

    def conflict(self, exc: ConflictError) -> ConflictError:
        """Name the field behind a violated unique constraint."""
        if exc.field is not None:
            return exc
        field = self.unique_constraints.get(exc.constraint or "")
        return ConflictError(field=field, constraint=exc.constraint)

    async def fetch_one(self, where: Where, db: Database | None = None) -> M:
        row = await (db or self.db).fetchrow(
            f"{self.select_sql}{where.sql()}",
            *where.params.values,
        )
        if row is None:
            raise NotFoundError()
        return self.to_model(row)

    async def write_update(
        self,
        db: Database,
        record_id: int,
        values: Mapping[str, Any],
        fields: FieldSet | None = None,
    ) -> bool:
        """
        Run an UPDATE against one active row.

        Raises:
            NoRecordsUpdatedError: No active row has this id.
            ConflictError: A unique constraint was violated.
        """
        sql, params = build_update(
            self.table,
            fields or self.fields,
            values,
            record_id,
            condition="deleted_at IS NULL",
        )
        try:
            status = await db.execute(sql, *params)
        except ConflictError as exc:
            raise self.conflict(exc) from exc

        if affected_rows(status) == 0:
            raise NoRecordsUpdatedError()
        return True

    # =========================================================================
    # Hooks
    # =========================================================================

    async def prepare_create(self, values: dict[str, Any]) -> dict[str, Any]:
        """Last chance to transform validated create values."""
        return values

    async def prepare_update(self, values: dict[str, Any]) -> dict[str, Any]:
        """Last chance to transform validated update values."""
        return values

    def apply_filters(self, where: Where, filters: Mapping[str, Any]) -> None:
        """Add predicates for recognized filters. Keys are already checked."""
        pass

    # =========================================================================
    # Operations
    # =========================================================================

    async def create(self, payload: Mapping[str, Any]) -> M:
        """
        Insert a row and return its public projection.

        Raises:
            InvalidPayloadError: Missing, empty or unknown fields.
            ConflictError: A unique field is already in use.
        """
        values = await self.prepare_create(self.fields.for_create(payload))
        sql, params = build_insert(self.table, self.fields, values)

        try:
            record_id = await self.db.fetchval(sql, *params)
        except ConflictError as exc:
            raise self.conflict(exc) from exc

        logger.info(f"Created {self.table} record {record_id}")
        return await self.find_one_by_id(record_id)

    async def find_one_by_id(self, record_id: int, *, paranoid: bool = True) -> M:
        """
        Raises:
            NotFoundError: No row, or the row is soft-deleted and ``paranoid``.
        """
        where = self.base_where(paranoid).add(f"{self.table}.id = {{}}", record_id)
        return await self.fetch_one(where)

    async def search(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        paranoid: bool = True,
        limit: int | None = None,
        offset: int | None = None,
        order_by: str | None = None,
    ) -> SearchResult[M]:
        """
        Filtered, sorted, paginated listing.

        ``total_count`` covers every matching row, not just this page.

        Raises:
            InvalidPayloadError: Unknown filter or sort key, negative limit/offset.
        """
        filters = dict(filters or {})
        unknown = sorted(set(filters) - self.filter_keys)
        if unknown:
            raise InvalidPayloadError(f"Unknown filters: {', '.join(unknown)}", fields=unknown)

        sort = parse_order_by(order_by, self.sortable, tiebreaker=f"{self.table}.id")

        where = self.base_where(paranoid)
        self.apply_filters(where, filters)
        count_args = list(where.params.values)
        page = paginate(where.params, limit, offset)

        total = await self.db.fetchval(
            f"SELECT COUNT(*) FROM {self.source}{where.sql()}",
            *count_args,
        )
        rows = await self.db.fetch(
            f"{self.select_sql}{where.sql()}{sort.sql()}{page}",
            *where.params.values,
        )
        return SearchResult[self.model](  # type: ignore[name-defined]
            items=[self.to_model(row) for row in rows],
            total_count=int(total or 0),
        )

    async def update(self, record_id: int, payload: Mapping[str, Any]) -> bool:
        """
        Partial update of an active row; bumps ``updated_at``.

        Raises:
            InvalidPayloadError: Empty payload or unknown fields.
            NoRecordsUpdatedError: No active row has this id.
            ConflictError: A unique field is already in use.
        """
        values = await self.prepare_update(self.fields.for_update(payload))
        return await self.write_update(self.db, record_id, values)

    async def soft_delete(self, record_id: int) -> bool:
        """Mark the row deleted as of now. It disappears from default reads."""
        await self.write_update(
            self.db,
            record_id,
            {"deleted_at": self.clock()},
            fields=self.system_fields,
        )
        logger.info(f"Soft-deleted {self.table} record {record_id}")
        return True
