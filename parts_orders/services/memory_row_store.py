from __future__ import annotations

from copy import deepcopy
from typing import Any

from parts_orders.errors import RowStoreError
from parts_orders.services.row_store import ORDER_HEADER


class InMemoryRowStore:
    def __init__(self, tables: dict[str, list[list[Any]]] | None = None) -> None:
        self.tables: dict[str, list[list[Any]]] = deepcopy(tables) if tables else {}
        self.writes: list[tuple[str, int, int, Any]] = []

    @classmethod
    def with_orders(cls, rows: list[list[Any]], *, table: str = 'Orders', header: list[str] | None = None) -> InMemoryRowStore:
        return cls({table: [list(header or ORDER_HEADER), *[list(row) for row in rows]]})

    def _rows(self, table: str) -> list[list[Any]]:
        rows = self.tables.get(table)
        if rows is None:
            raise RowStoreError(f'Sheet not found: {table}')
        return rows

    def read_all(self, table: str) -> list[list[Any]]:
        return [list(row) for row in self._rows(table)]

    def find_row_by_key(self, table: str, column: int, value: str) -> int | None:
        rows = self._rows(table)
        for row_index, row in enumerate(rows[1:], start=2):
            if column < len(row) and str(row[column]).strip() == value:
                return row_index
        return None

    def write_cell(self, table: str, row_index: int, column: int, value: Any) -> None:
        rows = self._rows(table)
        if row_index < 1 or row_index > len(rows):
            raise RowStoreError(f'Row {row_index} out of range for {table}')
        row = rows[row_index - 1]
        if column >= len(row):
            row.extend([''] * (column + 1 - len(row)))
        row[column] = value
        self.writes.append((table, row_index, column, value))

    def append_row(self, table: str, row: list[Any]) -> int:
        rows = self._rows(table)
        rows.append(list(row))
        return len(rows)
