from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import to_jsonable_python
from pydantic.alias_generators import to_camel
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def jsonable_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    A sampled row reduced to JSON-native values. Binary columns become hex,
    driver types pydantic cannot encode (asyncpg Range, BitString, ...)
    fall back to their string form.
    """
    cleaned = {}
    for key, value in row.items():
        if isinstance(value, memoryview):
            value = bytes(value)
        cleaned[str(key)] = to_jsonable_python(value, bytes_mode="hex", fallback=str)
    return cleaned


@dataclass(frozen=True)
class DatabaseTarget:
    """
    One monitored database. The URI is parsed on demand, inside the probe,
    so a malformed one fails that probe only; reports and logs only ever
    see the masked rendering.
    """
    name: str
    connection_uri: str = field(repr=False)
    index: int = 0

    @property
    def url(self) -> URL:
        return make_url(self.connection_uri)

    @property
    def masked_uri(self) -> str:
        try:
            return self.url.render_as_string(hide_password=True)
        except (ArgumentError, ValueError):
            return "<unparseable URI>"


class _Frozen(BaseModel):
    """Immutable, camelCase on the wire."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ProbeStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class ProbeOutcome(_Frozen):
    name: str
    status: ProbeStatus
    message: str
    selected_table: Optional[str] = None
    selected_item: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("selected_item", mode="before")
    @classmethod
    def _json_native_item(cls, value):
        if isinstance(value, dict):
            return jsonable_row(value)
        return value

    @property
    def ok(self) -> bool:
        return self.status == ProbeStatus.SUCCESS

    @classmethod
    def success(cls, name: str, message: str, table: Optional[str] = None,
                item: Optional[Dict[str, Any]] = None) -> "ProbeOutcome":
        return cls(name=name, status=ProbeStatus.SUCCESS, message=message,
                   selected_table=table, selected_item=item)

    @classmethod
    def error(cls, name: str, message: str) -> "ProbeOutcome":
        return cls(name=name, status=ProbeStatus.ERROR, message=message)


class ProbeSummary(_Frozen):
    total: int
    successful: int
    failed: int
    items_retrieved: int
    execution_time_ms: float

    @classmethod
    def from_results(cls, results: List[ProbeOutcome], execution_time_ms: float) -> "ProbeSummary":
        successful = sum(1 for r in results if r.ok)
        return cls(
            total=len(results),
            successful=successful,
            failed=len(results) - successful,
            items_retrieved=sum(1 for r in results if r.ok and r.selected_item is not None),
            execution_time_ms=round(execution_time_ms, 2),
        )


class AggregateReport(_Frozen):
    """Full result of one aggregation run"""
    results: List[ProbeOutcome]
    summary: ProbeSummary
    timestamp: datetime = Field(default_factory=utcnow)
    stored_tables: Dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.summary.successful > 0

    def to_response(self) -> dict:
        payload = self.model_dump(mode="json", by_alias=True)
        payload["ok"] = self.ok
        return payload


class ErrorResponse(_Frozen):
    """Top-level failure: nothing was probed, or orchestration broke."""
    error: str
    timestamp: datetime = Field(default_factory=utcnow)

    def to_response(self) -> dict:
        payload = self.model_dump(mode="json", by_alias=True)
        payload["ok"] = False
        return payload
