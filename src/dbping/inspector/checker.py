import logging
from functools import partial
from typing import Callable, Optional
from ..connectors.base import describe_error
from ..connectors.factory import get_connector
from ..domain.interfaces import DatabaseConnector, DatabaseSession, TableMemo
from ..domain.models import DatabaseTarget, ProbeOutcome
from .crawler import TableSelector
from .timeout import TimeoutGuard, guard

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_MS = 5000
INTROSPECT_TIMEOUT_MS = 3000
SAMPLE_TIMEOUT_MS = 5000
LIVENESS_TIMEOUT_MS = 3000

CONNECTED = "Connected successfully"
NO_TABLES = "Connected successfully, no tables found"

ConnectorFactory = Callable[[DatabaseTarget], DatabaseConnector]


class DatabaseProbe:
    """
    One end-to-end check of a single database:
    connect -> (select table -> sample one row) -> SELECT 1 -> close.

    Every step is raced against its own budget. run() never raises: any
    failure before the close becomes an error outcome, and the connection
    is closed whichever way the probe ended. A failed close is only logged.
    """
    def __init__(
        self,
        memo: TableMemo,
        connector_factory: Optional[ConnectorFactory] = None,
        sample_tables: bool = True,
        require_tls: bool = True,
        connect_timeout_ms: float = CONNECT_TIMEOUT_MS,
        introspect_timeout_ms: float = INTROSPECT_TIMEOUT_MS,
        sample_timeout_ms: float = SAMPLE_TIMEOUT_MS,
        liveness_timeout_ms: float = LIVENESS_TIMEOUT_MS,
    ):
        self.selector = TableSelector(memo)
        self.connector_factory = connector_factory or partial(get_connector, require_tls=require_tls)
        self.sample_tables = sample_tables
        self.connect_timeout_ms = connect_timeout_ms
        self.introspect_timeout_ms = introspect_timeout_ms
        self.sample_timeout_ms = sample_timeout_ms
        self.liveness_timeout_ms = liveness_timeout_ms

    async def run(self, target: DatabaseTarget) -> ProbeOutcome:
        logger.debug("Probing %s (%s)", target.name, target.masked_uri)
        scope = TimeoutGuard()
        session: Optional[DatabaseSession] = None
        try:
            connector = self.connector_factory(target)
            session = await scope.guard(
                connector.connect(), self.connect_timeout_ms, on_abandoned=self._release_late_session
            )
            return await self._check(scope, session, target)
        except Exception as e:
            message = describe_error(e)
            logger.warning("Probe of %s failed: %s", target.name, message)
            return ProbeOutcome.error(target.name, message)
        finally:
            # Lagging queries must settle before their connection goes away
            await scope.drain()
            if session is not None:
                await self._close(session, target)

    async def _check(self, scope: TimeoutGuard, session: DatabaseSession, target: DatabaseTarget) -> ProbeOutcome:
        table = None
        item = None

        if self.sample_tables:
            table = self.selector.remembered(target.index)
            if table is None:
                tables = await scope.guard(session.list_tables(), self.introspect_timeout_ms)
                if not tables:
                    return ProbeOutcome.success(target.name, NO_TABLES)
                table = self.selector.choose(target.index, tables)
            item = await scope.guard(session.sample_row(table), self.sample_timeout_ms)

        await scope.guard(session.ping(), self.liveness_timeout_ms)

        if table is None:
            message = CONNECTED
        elif item is None:
            message = f"{CONNECTED}, table {table} is empty"
        else:
            message = f"{CONNECTED}, sampled {table}"
        return ProbeOutcome.success(target.name, message, table=table, item=item)

    async def _close(self, session: DatabaseSession, target: DatabaseTarget) -> None:
        try:
            await guard(session.close(), self.liveness_timeout_ms)
        except Exception as e:
            logger.warning("Cleanup failed for %s: %s", target.name, describe_error(e), exc_info=True)

    @staticmethod
    async def _release_late_session(session: DatabaseSession) -> None:
        await session.close()
