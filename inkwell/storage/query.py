"""
SQL building helpers.

Repositories describe their columns once, as a FieldSet, and every
dynamic statement is assembled from that description:

- only whitelisted field names become column references,
- every value becomes a positional ``$n`` parameter,
- sort keys are looked up in a per-repository table, never interpolated.

Identifiers in the generated SQL therefore always come from code, and
values always come from parameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping

from inkwell.core.errors import InvalidPayloadError

_MISSING: Any = object()


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


# =============================================================================
# Fields
# =============================================================================


@dataclass(frozen=True)
class Field:
    """
    A public field name and the column it writes to.

    Attributes:
        name: Key accepted in create/update payloads.
        column: Column name, defaults to ``name``.
        required: Must be present and non-empty on create, and cannot be
            cleared on update.
        default: Value written on create when the field is omitted or None.
        nullable: Whether an update may set the column to NULL.
        normalize: Applied to non-null values before writing.
        placeholder: SQL wrapped around the parameter, e.g. a subquery.
        creatable: Accepted by create.
        updatable: Accepted by update.
    """

    name: str
    column: str | None = None
    required: bool = False
    default: Any = _MISSING
    nullable: bool = True
    normalize: Callable[[Any], Any] | None = None
    placeholder: str = "{}"
    creatable: bool = True
    updatable: bool = True

    @property
    def column_name(self) -> str:
        return self.column or self.name

    def render(self, param: str) -> str:
        return self.placeholder.format(param)

    def prepare(self, value: Any) -> Any:
        if value is not None and self.normalize is not None:
            return self.normalize(value)
        return value


class FieldSet:
    """The writable fields of one table."""

    def __init__(self, *fields: Field):
        self._fields: dict[str, Field] = {f.name: f for f in fields}

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __getitem__(self, name: str) -> Field:
        return self._fields[name]

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields.values())

    @property
    def names(self) -> list[str]:
        return list(self._fields)

    def _reject_unknown(self, payload: Mapping[str, Any], allowed: Callable[[Field], bool]) -> None:
        unknown = sorted(
            key for key in payload
            if key not in self._fields or not allowed(self._fields[key])
        )
        if unknown:
            raise InvalidPayloadError(f"Unknown fields: {', '.join(unknown)}", fields=unknown)

    def for_create(self, payload: Mapping[str, Any] | None) -> dict[str, Any]:
        """
        Validate a create payload and fill in defaults.

        Raises:
            InvalidPayloadError: Unknown fields, or required fields missing/empty.
        """
        payload = dict(payload or {})
        self._reject_unknown(payload, lambda f: f.creatable)

        values: dict[str, Any] = {}
        missing: list[str] = []

        for field in self._fields.values():
            if not field.creatable:
                continue

            value = payload.get(field.name, _MISSING)
            if value is _MISSING or value is None:
                if field.required:
                    missing.append(field.name)
                    continue
                if field.default is not _MISSING:
                    value = field.default
                elif value is _MISSING:
                    continue
            elif field.required and _is_empty(value):
                missing.append(field.name)
                continue

            values[field.name] = field.prepare(value)

        if missing:
            raise InvalidPayloadError(
                f"Missing required fields: {', '.join(missing)}",
                fields=missing,
            )
        return values

    def for_update(self, payload: Mapping[str, Any] | None) -> dict[str, Any]:
        """
        Validate a partial update payload.

        Raises:
            InvalidPayloadError: Empty payload, unknown fields, or a required
                field being cleared.
        """
        if not payload:
            raise InvalidPayloadError("Invalid update payload provided")

        self._reject_unknown(payload, lambda f: f.updatable)

        values: dict[str, Any] = {}
        for name, value in payload.items():
            field = self._fields[name]
            if field.required and _is_empty(value):
                raise InvalidPayloadError(f"{name} cannot be empty", fields=[name])
            if value is None and not field.nullable:
                raise InvalidPayloadError(f"{name} cannot be null", fields=[name])
            values[name] = field.prepare(value)
        return values


# =============================================================================
# Parameters and clauses
# =============================================================================


class Params:
    """Accumulates positional parameters and hands out ``$n`` placeholders."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


class Where:
    """
    AND-joined predicate built from templates.

    Each ``{}`` in a template is replaced by the placeholder of the
    matching value:

        where.add("email = {}", email)
        where.add("created_at BETWEEN {} AND {}", start, end)
    """

    def __init__(self, params: Params | None = None):
        self.params = params or Params()
        self.clauses: list[str] = []

    def add(self, template: str, *values: Any) -> Where:
        placeholders = [self.params.add(value) for value in values]
        self.clauses.append(template.format(*placeholders))
        return self

    def sql(self) -> str:
        if not self.clauses:
            return ""
        return " WHERE " + " AND ".join(self.clauses)


def like_pattern(text: str) -> str:
    """Substring pattern for ILIKE with the LIKE wildcards escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def paginate(params: Params, limit: int | None = None, offset: int | None = None) -> str:
    """
    LIMIT/OFFSET clause.

    Omitted entirely when not given, so there is no implicit limit.
    """
    if limit is not None and limit < 0:
        raise InvalidPayloadError("limit must not be negative", fields=["limit"])
    if offset is not None and offset < 0:
        raise InvalidPayloadError("offset must not be negative", fields=["offset"])

    sql = ""
    if limit is not None:
        sql += f" LIMIT {params.add(limit)}"
    if offset:
        sql += f" OFFSET {params.add(offset)}"
    return sql


# =============================================================================
# Sorting
# =============================================================================


@dataclass(frozen=True)
class SortKey:
    """A resolved, whitelisted ORDER BY column."""

    column: str
    descending: bool = False
    tiebreaker: str | None = None

    def sql(self) -> str:
        direction = "DESC" if self.descending else "ASC"
        sql = f" ORDER BY {self.column} {direction}"
        if self.tiebreaker and self.tiebreaker != self.column:
            sql += f", {self.tiebreaker} ASC"
        return sql


def parse_order_by(
    raw: str | None,
    sortable: Mapping[str, str],
    default: str = "id",
    tiebreaker: str | None = None,
) -> SortKey:
    """
    Resolve a sort key such as ``"title"`` or ``"-created_at"``.

    Args:
        raw: Public sort key, ``-`` prefix for descending. None for default.
        sortable: Public key -> SQL column expression.
        default: Key used when ``raw`` is empty.
        tiebreaker: Column appended to keep paging stable.

    Raises:
        InvalidPayloadError: The key is not in ``sortable``.
    """
    key = raw or default
    descending = key.startswith("-")
    name = key[1:] if descending else key

    if name not in sortable:
        raise InvalidPayloadError(
            f"Cannot sort by '{name}'. Allowed: {', '.join(sorted(sortable))}",
            fields=["order_by"],
        )
    return SortKey(column=sortable[name], descending=descending, tiebreaker=tiebreaker)


# =============================================================================
# Statements
# =============================================================================


def build_insert(
    table: str,
    fields: FieldSet,
    values: Mapping[str, Any],
    returning: str = "id",
) -> tuple[str, list[Any]]:
    """INSERT for already validated values (see FieldSet.for_create)."""
    params = Params()
    columns: list[str] = []
    placeholders: list[str] = []

    for name, value in values.items():
        field = fields[name]
        columns.append(field.column_name)
        placeholders.append(field.render(params.add(value)))

    sql = (
        f"INSERT INTO {table} ({', '.join(columns)}) "
        f"VALUES ({', '.join(placeholders)}) RETURNING {returning}"
    )
    return sql, params.values


def build_update(
    table: str,
    fields: FieldSet,
    values: Mapping[str, Any],
    record_id: Any,
    id_column: str = "id",
    timestamp_column: str = "updated_at",
    condition: str | None = None,
) -> tuple[str, list[Any]]:
    """
    UPDATE touching only the given columns plus the timestamp bump.

    Values must already be validated (see FieldSet.for_update).
    ``condition`` is a static predicate ANDed onto the id match.
    """
    params = Params()
    assignments = [f"{timestamp_column} = CURRENT_TIMESTAMP"]

    for name, value in values.items():
        field = fields[name]
        assignments.append(f"{field.column_name} = {field.render(params.add(value))}")

    sql = (
        f"UPDATE {table} SET {', '.join(assignments)} "
        f"WHERE {id_column} = {params.add(record_id)}"
    )
    if condition:
        sql += f" AND {condition}"
    return sql, params.values
