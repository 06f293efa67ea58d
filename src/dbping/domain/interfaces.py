from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class DatabaseSession(Protocol):
    """
    One open connection owned by a single probe.
    Never shared across probes or reused across runs.
    """
    async def list_tables(self) -> List[str]:
        """Base tables (no views) in the default schema, sorted by name."""
        ...

    async def sample_row(self, table_name: str) -> Optional[Dict[str, Any]]:
        """One arbitrary row of `table_name`, or None when it is empty."""
        ...

    async def ping(self) -> Any:
        """Trivial liveness statement."""
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class DatabaseConnector(Protocol):
    """Black box over the database client: connect / query / close."""
    db_alias: str

    async def connect(self) -> DatabaseSession:
        ...


@runtime_checkable
class TableMemo(Protocol):
    """Advisory store: target index -> previously chosen table name."""
    def get(self, index: int) -> Optional[str]:
        ...

    def set(self, index: int, table_name: str) -> None:
        ...

    def snapshot(self) -> Mapping[int, str]:
        ...
