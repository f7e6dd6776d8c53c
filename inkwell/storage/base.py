"""
Storage abstraction layer.

Repositories talk to the relational store through this interface only.
The production implementation is PostgresDatabase (asyncpg); tests swap
in an in-memory recorder.

All statements are parameterized: values travel as positional ``$n``
arguments and are never formatted into SQL text.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Mapping, Sequence

Row = Mapping[str, Any]


class Database(ABC):
    """
    Async access to a relational store.

    Implementations must translate store-specific constraint violations
    into ConflictError / InvalidPayloadError before they leave this layer.
    """

    @abstractmethod
    async def execute(self, sql: str, *args: Any) -> str:
        """Run a statement, return its status tag (e.g. ``UPDATE 1``)."""
        pass

    @abstractmethod
    async def fetch(self, sql: str, *args: Any) -> Sequence[Row]:
        """Run a query, return all rows."""
        pass

    @abstractmethod
    async def fetchrow(self, sql: str, *args: Any) -> Row | None:
        """Run a query, return the first row or None."""
        pass

    @abstractmethod
    async def fetchval(self, sql: str, *args: Any) -> Any:
        """Run a query, return the first column of the first row."""
        pass

    @abstractmethod
    def transaction(self) -> AsyncContextManager[Database]:
        """
        Open a transaction on a single connection.

        Usage:
            async with db.transaction() as tx:
                await tx.execute(...)
                await tx.execute(...)
        """
        pass

    async def close(self) -> None:
        """Release pooled connections."""
        pass


def affected_rows(status: str) -> int:
    """
    Parse the row count out of a command status tag.

    ``"UPDATE 3"`` -> 3, ``"INSERT 0 1"`` -> 1. Tags without a count give 0.
    """
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0
