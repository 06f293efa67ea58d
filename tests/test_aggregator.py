import asyncio
from datetime import datetime, timezone
import pytest
from conftest import FakeConnector, FakeSession, fake_factory
from dbping.domain.models import DatabaseTarget, ProbeStatus
from dbping.exceptions import ConfigurationError, ConnectionError, OrchestrationError
from dbping.inspector.aggregator import ProbeAggregator
from dbping.inspector.checker import DatabaseProbe
from dbping.inspector.memo import InMemoryTableMemo


def targets(*names):
    return [
        DatabaseTarget(name=name, connection_uri=f"postgresql://u:p@{name}.example.com/db", index=i)
        for i, name in enumerate(names)
    ]


def make_aggregator(connectors, memo=None, **kwargs):
    memo = memo if memo is not None else InMemoryTableMemo()
    probe = DatabaseProbe(memo, connector_factory=fake_factory(connectors), **kwargs)
    return ProbeAggregator(probe, memo)


async def test_one_unreachable_of_three():
    connectors = {
        "lockin": FakeConnector(FakeSession(tables=["users"], rows={"users": [{"id": 1}]})),
        "medium": FakeConnector(connect_error=ConnectionError("connection refused")),
        "taskmaestro": FakeConnector(FakeSession(tables=["tasks"])),
    }
    report = await make_aggregator(connectors).aggregate(targets("lockin", "medium", "taskmaestro"))

    assert [r.name for r in report.results] == ["lockin", "medium", "taskmaestro"]
    assert report.summary.total == 3
    assert report.summary.successful == 2
    assert report.summary.failed == 1
    assert report.summary.items_retrieved == 1
    assert report.ok is True

    failed = report.results[1]
    assert failed.status == ProbeStatus.ERROR
    assert failed.message


async def test_empty_targets_rejected_without_probing():
    connector = FakeConnector()
    with pytest.raises(ConfigurationError, match="No database URLs configured"):
        await make_aggregator({"a": connector}).aggregate([])
    assert connector.connects == 0


async def test_all_failing_is_not_ok():
    connectors = {name: FakeConnector(connect_error=ConnectionError("down")) for name in ("a", "b")}
    report = await make_aggregator(connectors).aggregate(targets("a", "b"))

    assert report.ok is False
    assert report.summary.successful == 0
    assert report.summary.failed == 2
    assert len(report.results) == 2


async def test_results_keep_input_order_not_completion_order():
    connectors = {
        "slow": FakeConnector(FakeSession(delays={"ping": 0.1})),
        "fast": FakeConnector(FakeSession()),
    }
    report = await make_aggregator(connectors, sample_tables=False).aggregate(targets("slow", "fast"))
    assert [r.name for r in report.results] == ["slow", "fast"]


async def test_probes_run_concurrently():
    names = [f"db{i}" for i in range(5)]
    connectors = {name: FakeConnector(FakeSession(delays={"ping": 0.2})) for name in names}
    loop = asyncio.get_running_loop()
    started = loop.time()

    report = await make_aggregator(connectors, sample_tables=False).aggregate(targets(*names))

    assert loop.time() - started < 0.8
    assert report.summary.successful == 5
    assert report.summary.execution_time_ms >= 150


async def test_invariants_hold_for_mixed_outcomes():
    connectors = {
        "ok_with_row": FakeConnector(FakeSession(tables=["t"], rows={"t": [{"id": 1}]})),
        "ok_empty": FakeConnector(FakeSession(tables=[])),
        "timeout": FakeConnector(connect_delay=5),
        "refused": FakeConnector(connect_error=ConnectionError("refused")),
    }
    names = list(connectors)
    started = datetime.now(timezone.utc)
    report = await make_aggregator(connectors, connect_timeout_ms=50).aggregate(targets(*names))

    summary = report.summary
    assert summary.total == len(names) == len(report.results)
    assert summary.successful + summary.failed == summary.total
    assert summary.items_retrieved <= summary.successful
    assert report.ok == (summary.successful > 0)
    assert all(r.timestamp >= started for r in report.results)


async def test_stored_tables_reflect_memo():
    connectors = {
        "a": FakeConnector(FakeSession(tables=["_m", "orders"])),
        "b": FakeConnector(FakeSession(tables=[])),
    }
    memo = InMemoryTableMemo()
    report = await make_aggregator(connectors, memo).aggregate(targets("a", "b"))
    assert report.stored_tables == {"0": "orders"}


async def test_escaping_probe_failure_is_captured_per_target():
    class ExplodingProbe:
        async def run(self, target):
            if target.name == "bad":
                raise RuntimeError("bug in probe")
            return await real.run(target)

    memo = InMemoryTableMemo()
    real = DatabaseProbe(memo, connector_factory=fake_factory({"good": FakeConnector()}), sample_tables=False)
    report = await ProbeAggregator(ExplodingProbe(), memo).aggregate(targets("good", "bad"))

    assert [r.status for r in report.results] == [ProbeStatus.SUCCESS, ProbeStatus.ERROR]
    assert report.results[1].message == "bug in probe"


async def test_orchestration_failure_is_distinct():
    class BrokenMemo(InMemoryTableMemo):
        def snapshot(self):
            raise RuntimeError("memo backend unavailable")

    memo = BrokenMemo()
    probe = DatabaseProbe(memo, connector_factory=fake_factory({"a": FakeConnector()}), sample_tables=False)

    with pytest.raises(OrchestrationError, match="memo backend unavailable"):
        await ProbeAggregator(probe, memo).aggregate(targets("a"))


async def test_report_serializes_to_wire_shape():
    connectors = {"a": FakeConnector(FakeSession(tables=["users"], rows={"users": [{"id": 1}]}))}
    report = await make_aggregator(connectors).aggregate(targets("a"))
    payload = report.to_response()

    assert payload["ok"] is True
    assert set(payload) == {"ok", "results", "summary", "timestamp", "storedTables"}
    assert set(payload["summary"]) == {"total", "successful", "failed", "itemsRetrieved", "executionTimeMs"}
    entry = payload["results"][0]
    assert entry["status"] == "success"
    assert entry["selectedTable"] == "users"
    assert entry["selectedItem"] == {"id": 1}
    assert isinstance(entry["timestamp"], str)
