import os
import re
from typing import Dict, List, Mapping, Optional
from pathlib import Path
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, ValidationError, field_validator
from .domain.models import DatabaseTarget
from .exceptions import ConfigurationError

_ENV_URL = re.compile(r"^DB(\d+)_URL$")


class DatabaseConfig(BaseModel):
    name: Optional[str] = None
    connection_string: Optional[str] = None
    # Pre-chosen table to sample; skips introspection for this database
    table: Optional[str] = None

    @field_validator("name", "connection_string", "table", mode="before")
    @classmethod
    def _blank_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DBPING_")

    databases: List[DatabaseConfig] = []

    sample_tables: bool = True
    require_tls: bool = True
    connect_timeout_ms: int = 5000
    introspect_timeout_ms: int = 3000
    sample_timeout_ms: int = 5000
    liveness_timeout_ms: int = 3000

    # Optional YAML file the table memo is mirrored to
    memo_path: Optional[Path] = None

    log_level: str = "INFO"
    json_logs: bool = False

    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_yaml(cls, config_path: Path) -> "AppConfig":
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                raw_config = yaml.safe_load(f) or {}
            return cls(**raw_config)
        except (ValidationError, yaml.YAMLError, TypeError) as e:
            raise ConfigurationError(f"Invalid configuration format: {e}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        DB1_URL / DB1_NAME / DB1_TABLE, DB2_URL, ... in slot order.
        Slots without a URL are skipped.
        """
        environ = os.environ if environ is None else environ
        slots = sorted(int(m.group(1)) for m in map(_ENV_URL.match, environ) if m)
        databases = [
            DatabaseConfig(
                name=environ.get(f"DB{slot}_NAME"),
                connection_string=environ.get(f"DB{slot}_URL"),
                table=environ.get(f"DB{slot}_TABLE"),
            )
            for slot in slots
        ]
        try:
            return cls(databases=databases)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration format: {e}")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "AppConfig":
        if config_path is not None:
            return cls.from_yaml(config_path)
        return cls.from_env()

    def get_targets(self) -> List[DatabaseTarget]:
        """Configured databases in order, without the ones lacking a URL."""
        configured = [db for db in self.databases if db.connection_string]
        return [
            DatabaseTarget(
                name=db.name or f"Database {index + 1}",
                connection_uri=db.connection_string,
                index=index,
            )
            for index, db in enumerate(configured)
        ]

    def preset_tables(self) -> Dict[int, str]:
        """Pre-chosen tables keyed by the index get_targets() assigns."""
        configured = [db for db in self.databases if db.connection_string]
        return {index: db.table for index, db in enumerate(configured) if db.table}
