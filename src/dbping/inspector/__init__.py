import logging
from typing import Optional
from ..config import AppConfig
from ..domain.interfaces import TableMemo
from ..domain.models import AggregateReport, ErrorResponse
from ..exceptions import ConfigurationError, OrchestrationError
from .aggregator import ProbeAggregator
from .checker import ConnectorFactory, DatabaseProbe
from .memo import InMemoryTableMemo, YamlTableMemo

logger = logging.getLogger(__name__)


def build_memo(config: AppConfig) -> TableMemo:
    if config.memo_path is not None:
        return YamlTableMemo(config.memo_path, initial=config.preset_tables())
    return InMemoryTableMemo(config.preset_tables())


class InspectorFacade:
    """
    Facade Pattern: Unified "check now" entry point.
    Keeps one memo for its whole lifetime so table choices survive
    between calls.
    """
    def __init__(self, config: AppConfig, memo: Optional[TableMemo] = None,
                 connector_factory: Optional[ConnectorFactory] = None):
        self.config = config
        self.targets = config.get_targets()
        if memo is None:
            self.memo = build_memo(config)
        else:
            self.memo = memo
            for index, table in config.preset_tables().items():
                self.memo.set(index, table)

        probe = DatabaseProbe(
            self.memo,
            connector_factory=connector_factory,
            sample_tables=config.sample_tables,
            require_tls=config.require_tls,
            connect_timeout_ms=config.connect_timeout_ms,
            introspect_timeout_ms=config.introspect_timeout_ms,
            sample_timeout_ms=config.sample_timeout_ms,
            liveness_timeout_ms=config.liveness_timeout_ms,
        )
        self.aggregator = ProbeAggregator(probe, self.memo)

    async def run_diagnostics(self) -> AggregateReport:
        return await self.aggregator.aggregate(self.targets)

    async def check_now(self) -> dict:
        """The report envelope, or {ok: false, error} when nothing could be checked."""
        try:
            report = await self.run_diagnostics()
        except (ConfigurationError, OrchestrationError) as e:
            logger.error("Connectivity check aborted: %s", e)
            return ErrorResponse(error=str(e)).to_response()
        return report.to_response()


__all__ = [
    "InspectorFacade",
    "DatabaseProbe",
    "ProbeAggregator",
    "InMemoryTableMemo",
    "YamlTableMemo",
    "build_memo",
]
