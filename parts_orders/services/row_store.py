from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from parts_orders.errors import MissingColumnsError, RowStoreError

ORDER_NUMBER = 'Order #'
DATE = 'Date'
DEPARTMENT = 'Department'
STUDENT_NAME = 'Name'
PART_ID = 'Part ID'
PART_NAME = 'Part Name'
CATEGORY = 'Category'
QUANTITY = 'Quantity Requested'
PRIORITY = 'Priority'
UNIT_COST = 'Unit Cost'
TOTAL_COST = 'Total Cost'
SUPPLIER = 'Supplier'
SUPPLIER_LINK = 'Supplier Link'
PRODUCT_CODE = 'Product Code'
STATUS = 'Status'
NOTES = 'Notes'
JUSTIFICATION = 'Justification'
CSV_FILE_LINK = 'CSV File Link'
REMOTE_ID = 'Monday ID'
REMOTE_SUBITEM_ID = 'Monday Subitem ID'

# Column order used when a new Orders table is created.
ORDER_HEADER = [
    ORDER_NUMBER,
    DATE,
    DEPARTMENT,
    STUDENT_NAME,
    PART_ID,
    PART_NAME,
    CATEGORY,
    QUANTITY,
    PRIORITY,
    UNIT_COST,
    TOTAL_COST,
    SUPPLIER,
    SUPPLIER_LINK,
    PRODUCT_CODE,
    STATUS,
    NOTES,
    JUSTIFICATION,
    CSV_FILE_LINK,
    REMOTE_ID,
    REMOTE_SUBITEM_ID,
]

PUSH_REQUIRED_COLUMNS = (ORDER_NUMBER, REMOTE_ID)
PULL_REQUIRED_COLUMNS = (REMOTE_ID, STATUS)


class RowStore(Protocol):
    """Tabular store holding one header row followed by data rows.

    Row indices are 1-based and include the header (first data row is 2).
    Columns are 0-based positions resolved through a ColumnMap.
    """

    def read_all(self, table: str) -> list[list[Any]]: ...

    def find_row_by_key(self, table: str, column: int, value: str) -> int | None: ...

    def write_cell(self, table: str, row_index: int, column: int, value: Any) -> None: ...

    def append_row(self, table: str, row: list[Any]) -> int: ...


@dataclass(frozen=True)
class ColumnMap:
    positions: dict[str, int]
    width: int

    @classmethod
    def from_header(cls, header: list[Any]) -> ColumnMap:
        positions: dict[str, int] = {}
        for i, name in enumerate(header):
            label = str(name if name is not None else '').strip()
            if label:
                positions.setdefault(label, i)
        return cls(positions=positions, width=len(header))

    def get(self, name: str) -> int | None:
        return self.positions.get(name)

    def index(self, name: str) -> int:
        pos = self.positions.get(name)
        if pos is None:
            raise RowStoreError(f'Column not found: {name}')
        return pos

    def require(self, table: str, *names: str) -> None:
        missing = [name for name in names if name not in self.positions]
        if missing:
            raise MissingColumnsError(table, missing)


@dataclass(frozen=True)
class OrderLineKey:
    order_number: str
    line_seq: int


@dataclass
class OrderLine:
    order_number: str
    row_index: int = 0
    line_seq: int = 0
    date: Any = None
    department: str = ''
    student_name: str = ''
    part_id: str = ''
    part_name: str = ''
    category: str = ''
    quantity: int = 0
    priority: str = 'Medium'
    unit_cost: Decimal = Decimal('0')
    total_cost: Decimal = Decimal('0')
    supplier: str = ''
    supplier_link: str = ''
    product_code: str = ''
    status: str = 'Pending'
    notes: str = ''
    justification: str = ''
    csv_file_link: str = ''
    remote_id: str = ''

    @property
    def key(self) -> OrderLineKey:
        return OrderLineKey(self.order_number, self.line_seq)

    @property
    def is_synced(self) -> bool:
        return bool(self.remote_id)


def _cell(row: list[Any], pos: int | None) -> Any:
    if pos is None or pos >= len(row):
        return None
    return row[pos]


def _text(value: Any, default: str = '') -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _int(value: Any) -> int:
    try:
        return int(Decimal(_text(value).replace(',', '')))
    except (InvalidOperation, ValueError, OverflowError):
        return 0


def _decimal(value: Any) -> Decimal:
    raw = _text(value).replace(',', '').lstrip('$')
    try:
        parsed = Decimal(raw)
    except InvalidOperation:
        return Decimal('0')
    return parsed if parsed.is_finite() else Decimal('0')


def _is_blank(row: list[Any]) -> bool:
    return all(_text(value) == '' for value in row)


def parse_order_line(row: list[Any], columns: ColumnMap, *, row_index: int) -> OrderLine:
    def get(name: str) -> Any:
        return _cell(row, columns.get(name))

    return OrderLine(
        order_number=_text(get(ORDER_NUMBER)),
        row_index=row_index,
        date=get(DATE),
        department=_text(get(DEPARTMENT)),
        student_name=_text(get(STUDENT_NAME)),
        part_id=_text(get(PART_ID)),
        part_name=_text(get(PART_NAME)),
        category=_text(get(CATEGORY)),
        quantity=_int(get(QUANTITY)),
        priority=_text(get(PRIORITY), 'Medium'),
        unit_cost=_decimal(get(UNIT_COST)),
        total_cost=_decimal(get(TOTAL_COST)),
        supplier=_text(get(SUPPLIER)),
        supplier_link=_text(get(SUPPLIER_LINK)),
        product_code=_text(get(PRODUCT_CODE)),
        status=_text(get(STATUS), 'Pending'),
        notes=_text(get(NOTES)),
        justification=_text(get(JUSTIFICATION)),
        csv_file_link=_text(get(CSV_FILE_LINK)),
        remote_id=_text(get(REMOTE_ID)),
    )


class OrdersSheet:
    """One read snapshot of the Orders table with key-addressed writes.

    The header is resolved once per load. Writes address lines by
    (order number, line sequence); the row index stays an adapter detail.
    """

    def __init__(self, store: RowStore, table: str, columns: ColumnMap, lines: list[OrderLine]) -> None:
        self.store = store
        self.table = table
        self.columns = columns
        self.lines = lines
        self._by_key = {line.key: line for line in lines}

    @classmethod
    def load(cls, store: RowStore, table: str, *, required: tuple[str, ...] = PUSH_REQUIRED_COLUMNS) -> OrdersSheet:
        rows = store.read_all(table)
        if not rows:
            raise MissingColumnsError(table, list(required))
        columns = ColumnMap.from_header(rows[0])
        columns.require(table, *required)

        lines: list[OrderLine] = []
        seq_by_order: dict[str, int] = defaultdict(int)
        for row_index, row in enumerate(rows[1:], start=2):
            if _is_blank(row):
                continue
            line = parse_order_line(row, columns, row_index=row_index)
            # Lines with no order number are keyed under ''.
            seq_by_order[line.order_number] += 1
            line.line_seq = seq_by_order[line.order_number]
            lines.append(line)
        return cls(store, table, columns, lines)

    def unsynced_lines(self) -> list[OrderLine]:
        return [line for line in self.lines if not line.is_synced]

    def remote_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for line in self.lines:
            if line.remote_id:
                seen.setdefault(line.remote_id, None)
        return list(seen)

    def locate(self, key: OrderLineKey) -> OrderLine:
        line = self._by_key.get(key)
        if line is None:
            raise RowStoreError(f'Order line not found: {key.order_number} #{key.line_seq}')
        return line

    def lines_for_order(self, order_number: str) -> list[OrderLine]:
        return [line for line in self.lines if line.order_number == order_number]

    def write_remote_id(self, key: OrderLineKey, remote_id: str) -> None:
        line = self.locate(key)
        self.store.write_cell(self.table, line.row_index, self.columns.index(REMOTE_ID), remote_id)
        line.remote_id = remote_id

    def write_status(self, key: OrderLineKey, status: str) -> None:
        line = self.locate(key)
        self.store.write_cell(self.table, line.row_index, self.columns.index(STATUS), status)
        line.status = status
