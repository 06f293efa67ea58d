import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar
from ..exceptions import ProbeTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")
AbandonedCallback = Callable[[Any], Awaitable[None]]


class TimeoutGuard:
    """
    Races operations against deadlines inside one scope (one probe).

    A guarded operation runs as its own task. When the deadline wins the
    caller gets ProbeTimeoutError straight away and the task is detached
    into the abandoned set. Leaving the scope cancels whatever is still
    running there and awaits every abandoned task, discarding its outcome.
    If an abandoned operation managed to succeed anyway, `on_abandoned`
    receives the late result so the caller can release it (e.g. close a
    connection that finished opening after its deadline).

        async with TimeoutGuard() as guard:
            conn = await guard.guard(connector.connect(), 5000, on_abandoned=close)
    """

    def __init__(self):
        self._abandoned: List[Tuple[asyncio.Future, Optional[AbandonedCallback]]] = []

    async def __aenter__(self) -> "TimeoutGuard":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.drain()
        return False

    @property
    def abandoned(self) -> int:
        return len(self._abandoned)

    async def guard(self, operation: Awaitable[T], timeout_ms: float,
                    on_abandoned: Optional[AbandonedCallback] = None) -> T:
        task = asyncio.ensure_future(operation)
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            self._abandoned.append((task, on_abandoned))
            raise
        if task in done:
            return task.result()

        self._abandoned.append((task, on_abandoned))
        raise ProbeTimeoutError()

    async def drain(self) -> None:
        """Settle every abandoned operation. Never raises."""
        pending, self._abandoned = self._abandoned, []
        if not pending:
            return

        for task, _ in pending:
            task.cancel()
        settled = await asyncio.gather(*(task for task, _ in pending), return_exceptions=True)

        for (_, callback), result in zip(pending, settled):
            if callback is None or isinstance(result, BaseException):
                continue
            try:
                await callback(result)
            except Exception as e:
                logger.warning("Releasing a late result failed: %s", e)


async def guard(operation: Awaitable[T], timeout_ms: float) -> T:
    """Race `operation` against `timeout_ms`; raise ProbeTimeoutError if the timer wins."""
    async with TimeoutGuard() as scope:
        return await scope.guard(operation, timeout_ms)
