# FILE: app/embeddings/introspection.py
"""
Schema introspection for the embedding table.

StoreIntrospector is the seam the schema manager depends on, so migration
planning can be exercised against a fake without a live database.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from .capability import ColumnType
from .errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def is_connection_error(exc: BaseException) -> bool:
    """
    True if the error means the connection to the store was lost.

    Driver OperationalErrors are not enough on their own: PostgreSQL reports a
    missing extension control file through the same class.
    """
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


class StoreIntrospector(ABC):
    """Read-only questions the schema manager asks the store."""

    @abstractmethod
    def ping(self) -> None:
        """Raise StoreUnavailableError if the store cannot be reached."""

    @abstractmethod
    def table_exists(self, table: str) -> bool:
        ...

    @abstractmethod
    def column_type(self, table: str, column: str) -> Optional[ColumnType]:
        """Declared type of a column, or None if the column does not exist."""

    @abstractmethod
    def vector_extension_available(self) -> bool:
        """Whether the pgvector extension can be installed on this server."""


class SqlIntrospector(StoreIntrospector):
    """PostgreSQL introspection through information_schema."""

    def __init__(self, session: Session):
        self.session = session

    def ping(self) -> None:
        try:
            self.session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Embedding store unreachable: {e}") from e

    def table_exists(self, table: str) -> bool:
        row = self._execute(
            """
            SELECT EXISTS (
                SELECT 1 FROM information_schema.tables
                WHERE table_schema = current_schema()
                AND table_name = :table
            )
            """,
            {"table": table},
        ).scalar()
        return bool(row)

    def column_type(self, table: str, column: str) -> Optional[ColumnType]:
        row = self._execute(
            """
            SELECT data_type, udt_name
            FROM information_schema.columns
            WHERE table_schema = current_schema()
            AND table_name = :table
            AND column_name = :column
            """,
            {"table": table, "column": column},
        ).first()
        if row is None:
            return None
        return ColumnType(data_type=row[0], udt_name=row[1])

    def vector_extension_available(self) -> bool:
        try:
            row = self._execute(
                "SELECT EXISTS (SELECT 1 FROM pg_available_extensions WHERE name = 'vector')"
            ).scalar()
        except SQLAlchemyError as e:
            logger.warning(f"[schema] Could not check for pgvector availability: {e}")
            self.session.rollback()
            return False
        return bool(row)

    def _execute(self, sql: str, params: Optional[dict] = None):
        try:
            return self.session.execute(text(sql), params or {})
        except SQLAlchemyError as e:
            if is_connection_error(e):
                raise StoreUnavailableError(f"Embedding store unreachable: {e}") from e
            raise
