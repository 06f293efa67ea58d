import asyncio
import logging
from typing import Any, Dict, List, Optional, Union
from sqlalchemy import Select, event, func, inspect, literal_column, select, table, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from ..domain.models import jsonable_row
from ..exceptions import CleanupError, ConnectionError, QueryError

logger = logging.getLogger(__name__)


def describe_error(exc: BaseException) -> str:
    """
    Human readable cause. SQLAlchemy wraps driver errors and appends a
    documentation link; the driver's own message is what operators need.
    """
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig) or type(exc.orig).__name__
    return str(exc) or type(exc).__name__


def sample_query(table_name: str) -> Select:
    """One arbitrary row, with ordering and row limit rendered per dialect (rand() and LIMIT on MySQL, TOP 1 on SQL Server)."""
    return select(literal_column("*")).select_from(table(table_name)).order_by(func.random()).limit(1)


class SQLAlchemySession:
    """An open AsyncConnection plus the throwaway engine that produced it."""

    def __init__(self, connection: AsyncConnection, engine: AsyncEngine, db_alias: str = "unknown"):
        self._conn = connection
        self._engine = engine
        self.db_alias = db_alias

    async def list_tables(self) -> List[str]:
        try:
            # Inspector only reports base tables; views come from get_view_names
            names = await self._conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        except SQLAlchemyError as e:
            raise QueryError(f"Failed to list tables: {describe_error(e)}") from e
        return sorted(names)

    async def sample_row(self, table_name: str) -> Optional[Dict[str, Any]]:
        try:
            result = await self._conn.execute(sample_query(table_name))
            row = result.mappings().first()
        except SQLAlchemyError as e:
            raise QueryError(f"Failed to sample {table_name}: {describe_error(e)}") from e
        return jsonable_row(dict(row)) if row is not None else None

    async def ping(self) -> Any:
        try:
            result = await self._conn.execute(text("SELECT 1"))
            return result.scalar()
        except SQLAlchemyError as e:
            raise QueryError(describe_error(e)) from e

    async def close(self) -> None:
        try:
            await self._conn.close()
        except Exception as e:
            raise CleanupError(f"Failed to close connection to {self.db_alias}: {describe_error(e)}") from e
        finally:
            await self._engine.dispose()


class SQLAlchemyConnector:
    """
    Generic async SQLAlchemy Connector that can be specialized for Postgres
    if needed, or used directly for compliant async dialects
    (sqlite+aiosqlite, mysql+aiomysql, ...).
    Every connect() builds a fresh NullPool engine: connections are owned by
    one probe and never pooled or reused.
    """
    def __init__(self, url: Union[str, URL], db_alias: str = "unknown"):
        self.url = self.prepare_url(make_url(url))
        self.db_alias = db_alias

    def prepare_url(self, url: URL) -> URL:
        return url

    def connect_args(self) -> Dict[str, Any]:
        return {}

    @staticmethod
    def _enforce_read_only_listener(conn, cursor, statement, parameters, context, executemany):
        """
        Event Hook (Interceptor).
        Blocks any SQL that doesn't start with a whitelist keyword.
        """
        sql = statement.strip().upper()

        # Whitelist: Only allow safe starting keywords
        allowed_starts = (
            "SELECT",
            "WITH",
            "EXPLAIN",
            "SHOW",
            "SET",  # Needed for session configuration
        )

        if not any(sql.startswith(keyword) for keyword in allowed_starts):
            raise PermissionError(
                f"SAFETY BLOCK: Operation blocked! Only read-only queries are allowed. "
                f"Attempted: {sql[:50]}..."
            )

    def register_listeners(self, engine: AsyncEngine) -> None:
        event.listen(engine.sync_engine, "before_cursor_execute", self._enforce_read_only_listener)

    def create_engine(self) -> AsyncEngine:
        try:
            engine = create_async_engine(self.url, poolclass=NullPool, connect_args=self.connect_args())
        except Exception as e:
            raise ConnectionError(f"Failed to create engine: {e}") from e
        self.register_listeners(engine)
        return engine

    async def connect(self) -> SQLAlchemySession:
        engine = self.create_engine()
        logger.debug("Connecting to %s", self.url.render_as_string(hide_password=True))
        try:
            connection = await engine.connect()
        except asyncio.CancelledError:
            # Abandoned by a timeout guard
            await engine.dispose()
            raise
        except Exception as e:
            await engine.dispose()
            raise ConnectionError(describe_error(e)) from e
        return SQLAlchemySession(connection, engine, self.db_alias)
