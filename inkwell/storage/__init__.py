"""
Storage abstractions.

- Database: async interface used by every repository
- PostgresDatabase: asyncpg-backed implementation with a bounded pool
- query: parameterized statement builders
"""

from inkwell.storage.base import Database, Row, affected_rows
from inkwell.storage.postgres import PostgresDatabase, translate_error

__all__ = [
    "Database",
    "Row",
    "affected_rows",
    "PostgresDatabase",
    "translate_error",
]
