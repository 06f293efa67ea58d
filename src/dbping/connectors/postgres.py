import logging
import ssl
from typing import Any, Dict, Union
from sqlalchemy import event, text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine
from .base import SQLAlchemyConnector

logger = logging.getLogger(__name__)

# libpq-only parameters that asyncpg rejects as unexpected keyword arguments
_LIBPQ_PARAMS = (
    "sslmode",
    "sslrootcert",
    "sslcert",
    "sslkey",
    "channel_binding",
    "target_session_attrs",
    "connect_timeout",
)


def relaxed_tls_context() -> ssl.SSLContext:
    """
    Encrypted transport without certificate authority validation.
    Managed instances ship certificates we cannot verify independently.
    """
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class PostgresConnector(SQLAlchemyConnector):
    """
    PostgreSQL specific implementation.
    Runs on the asyncpg driver, requires TLS (accepting self-signed
    certificates) and puts every session in READ ONLY mode.
    """
    def __init__(self, url: Union[str, URL], db_alias: str = "unknown", require_tls: bool = True):
        self.require_tls = require_tls
        super().__init__(url, db_alias)

    def prepare_url(self, url: URL) -> URL:
        return url.set(drivername="postgresql+asyncpg").difference_update_query(_LIBPQ_PARAMS)

    def connect_args(self) -> Dict[str, Any]:
        if self.require_tls:
            return {"ssl": relaxed_tls_context()}
        return {}

    @staticmethod
    def _set_readonly_transaction_listener(connection) -> None:
        """
        Transaction-Level Read-Only Mode.
        Sets the session to READ ONLY immediately after connection.
        """
        try:
            connection.execute(text("SET SESSION CHARACTERISTICS AS TRANSACTION READ ONLY"))
            # Only transactions begun after this one pick up the new default
            connection.commit()
        except Exception as e:
            # The statement guard stays the primary protection
            logger.warning("Failed to set READ ONLY session: %s", e)
            connection.rollback()

    def register_listeners(self, engine: AsyncEngine) -> None:
        super().register_listeners(engine)
        event.listen(engine.sync_engine, "engine_connect", self._set_readonly_transaction_listener)
