import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional
import pytest
from sqlalchemy import create_engine, text


class FakeSession:
    """Scriptable stand-in for an open database connection."""
    def __init__(
        self,
        tables: Optional[List[str]] = None,
        rows: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        delays: Optional[Dict[str, float]] = None,
        errors: Optional[Dict[str, Exception]] = None,
        close_error: Optional[Exception] = None,
    ):
        self.tables = tables or []
        self.rows = rows or {}
        self.delays = delays or {}
        self.errors = errors or {}
        self.close_error = close_error
        self.calls: List[str] = []
        self.closed = False

    async def _step(self, name: str) -> None:
        self.calls.append(name)
        if name in self.delays:
            await asyncio.sleep(self.delays[name])
        if name in self.errors:
            raise self.errors[name]

    async def list_tables(self) -> List[str]:
        await self._step("list_tables")
        return list(self.tables)

    async def sample_row(self, table_name: str) -> Optional[Dict[str, Any]]:
        await self._step("sample_row")
        rows = self.rows.get(table_name)
        return dict(rows[0]) if rows else None

    async def ping(self) -> int:
        await self._step("ping")
        return 1

    async def close(self) -> None:
        self.calls.append("close")
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeConnector:
    def __init__(self, session: Optional[FakeSession] = None, connect_error: Optional[Exception] = None,
                 connect_delay: float = 0, db_alias: str = "fake"):
        self.session = session or FakeSession()
        self.connect_error = connect_error
        self.connect_delay = connect_delay
        self.db_alias = db_alias
        self.connects = 0

    async def connect(self) -> FakeSession:
        self.connects += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        return self.session


def fake_factory(connectors: Dict[str, FakeConnector]):
    """Connector factory resolving targets by name."""
    return lambda target: connectors[target.name]


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Path:
    """
    A file database with an internal table, an empty table, a populated
    table and a view. Seeded with a plain sync engine because the probe's
    connector refuses anything but reads.
    """
    db_path = tmp_path / "probe.db"
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE _migrations (id INTEGER PRIMARY KEY, name TEXT)"))
        conn.execute(text("CREATE TABLE orders (id INTEGER PRIMARY KEY, total REAL)"))
        conn.execute(text("CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT, avatar BLOB)"))
        conn.execute(text("CREATE VIEW active_users AS SELECT * FROM users"))
        conn.execute(text("INSERT INTO _migrations (name) VALUES ('init')"))
        conn.execute(
            text("INSERT INTO users (email, avatar) VALUES (:email, :avatar)"),
            {"email": "ada@example.com", "avatar": b"\x01\x02"},
        )
    engine.dispose()
    return db_path


@pytest.fixture
def empty_sqlite_db(tmp_path: Path) -> Path:
    db_path = tmp_path / "empty.db"
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.begin() as conn:
        conn.execute(text("CREATE VIEW only_a_view AS SELECT 1 AS one"))
    engine.dispose()
    return db_path
