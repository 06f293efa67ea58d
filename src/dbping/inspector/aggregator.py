import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence
from ..connectors.base import describe_error
from ..domain.interfaces import TableMemo
from ..domain.models import AggregateReport, DatabaseTarget, ProbeOutcome, ProbeSummary
from ..exceptions import ConfigurationError, OrchestrationError
from .checker import DatabaseProbe

logger = logging.getLogger(__name__)

NO_TARGETS = "No database URLs configured"


@dataclass(frozen=True)
class Settled:
    """Tagged result of one probe task: an outcome, or the error it raised."""
    target: DatabaseTarget
    outcome: Optional[ProbeOutcome] = None
    error: Optional[BaseException] = None

    def resolve(self) -> ProbeOutcome:
        if self.outcome is not None:
            return self.outcome
        return ProbeOutcome.error(self.target.name, describe_error(self.error))


class ProbeAggregator:
    """
    Fans one probe per target out concurrently and waits for all of them.
    One probe failing never cancels its siblings; results keep target order.
    """
    def __init__(self, probe: DatabaseProbe, memo: TableMemo):
        self.probe = probe
        self.memo = memo

    async def _settle(self, target: DatabaseTarget) -> Settled:
        try:
            return Settled(target, outcome=await self.probe.run(target))
        except Exception as e:
            logger.error("Probe of %s escaped its boundary", target.name, exc_info=True)
            return Settled(target, error=e)

    async def aggregate(self, targets: Sequence[DatabaseTarget]) -> AggregateReport:
        if not targets:
            raise ConfigurationError(NO_TARGETS)

        logger.info("Starting connectivity check for %d databases", len(targets))
        started = time.perf_counter()
        try:
            settled = await asyncio.gather(*(self._settle(target) for target in targets))
            elapsed_ms = (time.perf_counter() - started) * 1000

            results = [s.resolve() for s in settled]
            report = AggregateReport(
                results=results,
                summary=ProbeSummary.from_results(results, elapsed_ms),
                stored_tables={str(index): table for index, table in sorted(self.memo.snapshot().items())},
            )
        except Exception as e:
            raise OrchestrationError(f"Connectivity check failed: {e}") from e

        summary = report.summary
        logger.info(
            "Connectivity check finished: %d/%d healthy, %d items retrieved (%.2fms)",
            summary.successful, summary.total, summary.items_retrieved, summary.execution_time_ms,
        )
        return report
