from typing import Union
from sqlalchemy.engine import URL, make_url
from ..domain.interfaces import DatabaseConnector
from ..domain.models import DatabaseTarget
from .base import SQLAlchemyConnector
from .postgres import PostgresConnector

# Sync drivers SQLAlchemy's asyncio extension cannot use, mapped to async ones
_ASYNC_DRIVERS = {
    "sqlite": "sqlite+aiosqlite",
    "sqlite+pysqlite": "sqlite+aiosqlite",
}


def get_connector(target: Union[DatabaseTarget, str, URL], alias: str = "unknown",
                  require_tls: bool = True) -> DatabaseConnector:
    """
    Factory function to create the appropriate connector instance.
    Accepts either a DatabaseTarget or a bare connection string / URL.
    """
    if isinstance(target, DatabaseTarget):
        url = target.url
        alias = target.name
    else:
        url = make_url(target)

    if url.get_backend_name() in ("postgresql", "postgres"):
        return PostgresConnector(url, alias, require_tls=require_tls)
    if url.drivername in _ASYNC_DRIVERS:
        return SQLAlchemyConnector(url.set(drivername=_ASYNC_DRIVERS[url.drivername]), alias)
    # Default fallback to SQLAlchemy generic; the URL must name an async driver
    return SQLAlchemyConnector(url, alias)
