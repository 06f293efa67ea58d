from typing import Optional, Sequence
from ..domain.interfaces import TableMemo

# Internal / migration tables (_prisma_migrations, _sqlx_migrations, ...)
RESERVED_PREFIX = "_"


def select_table(tables: Sequence[str], memo: Optional[str] = None) -> Optional[str]:
    """
    Pick the table to sample.

    A memoized choice always wins and is not re-validated against the
    current schema. Otherwise the first table not starting with the
    reserved prefix, falling back to the first table when every name is
    reserved. None when there is nothing to choose from.
    """
    if memo is not None:
        return memo
    if not tables:
        return None

    candidates = [name for name in tables if not name.startswith(RESERVED_PREFIX)]
    if candidates:
        return candidates[0]
    return tables[0]


class TableSelector:
    """
    SRP: Responsible only for choosing and remembering the sampled table.
    """
    def __init__(self, memo: TableMemo):
        self.memo = memo

    def remembered(self, index: int) -> Optional[str]:
        return self.memo.get(index)

    def choose(self, index: int, tables: Sequence[str]) -> Optional[str]:
        table = select_table(tables, self.memo.get(index))
        if table is not None:
            self.memo.set(index, table)
        return table
