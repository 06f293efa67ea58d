import logging
from pathlib import Path
from typing import Dict, Mapping, Optional
import yaml

logger = logging.getLogger(__name__)


class InMemoryTableMemo:
    """
    Process-wide table choices, keyed by target index.
    Writes from concurrent probes never share a key, so no locking.
    """
    def __init__(self, initial: Optional[Mapping[int, str]] = None):
        self._tables: Dict[int, str] = dict(initial or {})

    def get(self, index: int) -> Optional[str]:
        return self._tables.get(index)

    def set(self, index: int, table_name: str) -> None:
        self._tables[index] = table_name

    def snapshot(self) -> Mapping[int, str]:
        return dict(self._tables)

    def __len__(self) -> int:
        return len(self._tables)


class YamlTableMemo(InMemoryTableMemo):
    """
    Same memo mirrored to a YAML file, so choices survive restarts and the
    operator can copy them into configuration. The file is advisory: a
    failed read or write is logged and the in-memory copy keeps working.
    """
    def __init__(self, path: Path, initial: Optional[Mapping[int, str]] = None):
        self.path = Path(path)
        stored = self._load()
        stored.update(initial or {})
        super().__init__(stored)

    def _load(self) -> Dict[int, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                raw = yaml.safe_load(f) or {}
            return {int(index): str(table) for index, table in raw.items()}
        except (OSError, yaml.YAMLError, AttributeError, ValueError) as e:
            logger.warning("Ignoring unreadable table memo %s: %s", self.path, e)
            return {}

    def set(self, index: int, table_name: str) -> None:
        changed = self.get(index) != table_name
        super().set(index, table_name)
        if changed:
            self._dump()

    def _dump(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                yaml.safe_dump(dict(sorted(self.snapshot().items())), f, default_flow_style=False)
        except OSError as e:
            logger.warning("Could not persist table memo to %s: %s", self.path, e)
