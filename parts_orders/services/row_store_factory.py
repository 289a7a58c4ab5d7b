from __future__ import annotations

from functools import lru_cache

from parts_orders.config import settings
from parts_orders.services.memory_row_store import InMemoryRowStore
from parts_orders.services.row_store import ORDER_HEADER
from parts_orders.services.sheets_row_store import GoogleSheetsRowStore


@lru_cache(maxsize=1)
def get_row_store():
    backend = settings.row_store.strip().lower()
    if backend == 'memory':
        return InMemoryRowStore({settings.orders_sheet_name: [list(ORDER_HEADER)]})
    return GoogleSheetsRowStore()
