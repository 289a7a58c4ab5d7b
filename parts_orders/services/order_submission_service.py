from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from parts_orders.models import OrderLineStatus
from parts_orders.services.order_type_service import (
    CSV_JUSTIFICATION,
    CSV_ORDER_PART_ID,
    CSV_SUPPLIER,
    CUSTOM_PART_PREFIX,
    CUSTOM_PRODUCT_CODE,
)
from parts_orders.services.row_store import (
    CATEGORY,
    CSV_FILE_LINK,
    DATE,
    DEPARTMENT,
    JUSTIFICATION,
    NOTES,
    ORDER_NUMBER,
    PART_ID,
    PART_NAME,
    PRIORITY,
    PRODUCT_CODE,
    QUANTITY,
    STATUS,
    STUDENT_NAME,
    SUPPLIER,
    SUPPLIER_LINK,
    TOTAL_COST,
    UNIT_COST,
    ColumnMap,
    OrdersSheet,
    RowStore,
)

logger = logging.getLogger(__name__)

CSV_QUICK_ORDER_URL = 'https://wcproducts.com/apps/quick-order'
ORDER_NUMBER_RE = re.compile(r'^ORD-(\d{8})-(\d+)$')
CUSTOM_REQUEST_ID_RE = re.compile(r'^CUSTOM-(\d+)')
CUSTOM_REQUEST_CATEGORY = 'Custom Request'
CUSTOM_REQUEST_NOTES = 'CUSTOM REQUEST'


@dataclass(frozen=True)
class OrderItemInput:
    part_id: str
    part_name: str
    quantity: int
    unit_cost: Decimal
    category: str = ''
    supplier: str = ''
    supplier_link: str = ''
    product_code: str = ''


@dataclass(frozen=True)
class OrderSubmission:
    student_name: str
    department: str = ''
    priority: str = 'Medium'
    notes: str = ''
    justification: str = ''
    csv_file_link: str = ''
    items: list[OrderItemInput] = field(default_factory=list)


@dataclass(frozen=True)
class CustomRequestSubmission:
    student_name: str
    part_name: str
    department: str = ''
    priority: str = 'Medium'
    estimated_cost: Decimal = Decimal('0')
    supplier: str = ''
    supplier_link: str = ''
    justification: str = ''


@dataclass(frozen=True)
class SubmittedOrder:
    order_number: str
    row_indices: list[int]


@dataclass(frozen=True)
class SubmittedCustomRequest:
    order_number: str
    request_id: str
    row_index: int


def next_order_number(existing: list[str], today: date) -> str:
    """ORD-YYYYMMDD-NNN, one past the highest sequence already used today."""
    day = today.strftime('%Y%m%d')
    max_sequence = 0
    for value in existing:
        match = ORDER_NUMBER_RE.match(str(value or '').strip())
        if match and match.group(1) == day:
            max_sequence = max(max_sequence, int(match.group(2)))
    return f'ORD-{day}-{max_sequence + 1:03d}'


def next_custom_request_id(part_ids: list[str]) -> str:
    """CUSTOM-NNN, one past the highest custom request number in the table."""
    max_number = 0
    for value in part_ids:
        match = CUSTOM_REQUEST_ID_RE.match(str(value or '').strip())
        if match:
            max_number = max(max_number, int(match.group(1)))
    return f'{CUSTOM_PART_PREFIX}{max_number + 1:03d}'


def _build_row(columns: ColumnMap, values: dict[str, Any]) -> list[Any]:
    row: list[Any] = [''] * columns.width
    for name, value in values.items():
        pos = columns.get(name)
        if pos is not None:
            row[pos] = value
    return row


def _rows_for_submission(order_number: str, submitted_at: str, submission: OrderSubmission) -> list[dict[str, Any]]:
    common = {
        ORDER_NUMBER: order_number,
        DATE: submitted_at,
        DEPARTMENT: submission.department,
        STUDENT_NAME: submission.student_name,
        PRIORITY: submission.priority or 'Medium',
        STATUS: OrderLineStatus.PENDING.value,
        NOTES: submission.notes,
    }
    if submission.csv_file_link:
        return [
            {
                **common,
                PART_ID: CSV_ORDER_PART_ID,
                PART_NAME: 'WCP CSV Order',
                CATEGORY: 'WCP Import',
                QUANTITY: 1,
                UNIT_COST: '0',
                TOTAL_COST: '0',
                SUPPLIER: CSV_SUPPLIER,
                SUPPLIER_LINK: CSV_QUICK_ORDER_URL,
                PRODUCT_CODE: CSV_ORDER_PART_ID,
                JUSTIFICATION: CSV_JUSTIFICATION,
                CSV_FILE_LINK: submission.csv_file_link,
            }
        ]

    rows = []
    for item in submission.items:
        quantity = max(int(item.quantity), 0)
        rows.append(
            {
                **common,
                PART_ID: item.part_id,
                PART_NAME: item.part_name,
                CATEGORY: item.category,
                QUANTITY: quantity,
                UNIT_COST: str(item.unit_cost),
                TOTAL_COST: str(item.unit_cost * quantity),
                SUPPLIER: item.supplier,
                SUPPLIER_LINK: item.supplier_link,
                PRODUCT_CODE: item.product_code,
                JUSTIFICATION: submission.justification,
            }
        )
    return rows


def submit_order(
    store: RowStore,
    table: str,
    submission: OrderSubmission,
    *,
    now: datetime | None = None,
) -> SubmittedOrder:
    if not submission.student_name.strip():
        raise ValueError('Student name is required')
    if not submission.csv_file_link and not submission.items:
        raise ValueError('Order must contain at least one item')

    sheet = OrdersSheet.load(store, table, required=(ORDER_NUMBER, STATUS))
    submitted = now or datetime.now()
    order_number = next_order_number([line.order_number for line in sheet.lines], submitted.date())
    submitted_at = submitted.strftime('%Y-%m-%d %H:%M:%S')

    row_indices = [
        store.append_row(table, _build_row(sheet.columns, values))
        for values in _rows_for_submission(order_number, submitted_at, submission)
    ]
    logger.info('Submitted order %s with %s lines', order_number, len(row_indices))
    return SubmittedOrder(order_number=order_number, row_indices=row_indices)


def submit_custom_request(
    store: RowStore,
    table: str,
    request: CustomRequestSubmission,
    *,
    now: datetime | None = None,
) -> SubmittedCustomRequest:
    """Append a single-line request for a part that is not in the catalog.

    The line gets its own order number and a CUSTOM-NNN part id with the
    N/A product code, which is what marks the order as a custom request.
    """
    if not request.student_name.strip():
        raise ValueError('Student name is required')
    if not request.part_name.strip():
        raise ValueError('Part name is required')

    sheet = OrdersSheet.load(store, table, required=(ORDER_NUMBER, PART_ID, STATUS))
    submitted = now or datetime.now()
    order_number = next_order_number([line.order_number for line in sheet.lines], submitted.date())
    request_id = next_custom_request_id([line.part_id for line in sheet.lines])

    values = {
        ORDER_NUMBER: order_number,
        DATE: submitted.strftime('%Y-%m-%d %H:%M:%S'),
        DEPARTMENT: request.department,
        STUDENT_NAME: request.student_name,
        PART_ID: request_id,
        PART_NAME: request.part_name,
        CATEGORY: CUSTOM_REQUEST_CATEGORY,
        QUANTITY: 1,
        PRIORITY: request.priority or 'Medium',
        UNIT_COST: str(request.estimated_cost),
        TOTAL_COST: str(request.estimated_cost),
        SUPPLIER: request.supplier,
        SUPPLIER_LINK: request.supplier_link,
        PRODUCT_CODE: CUSTOM_PRODUCT_CODE,
        STATUS: OrderLineStatus.PENDING.value,
        NOTES: CUSTOM_REQUEST_NOTES,
        JUSTIFICATION: request.justification,
    }
    row_index = store.append_row(table, _build_row(sheet.columns, values))
    logger.info('Submitted custom request %s as order %s', request_id, order_number)
    return SubmittedCustomRequest(order_number=order_number, request_id=request_id, row_index=row_index)


def update_order_status(store: RowStore, table: str, order_number: str, status: str) -> int:
    """Set the local status on every line of one order. Returns the number of cells written."""
    valid = {member.value for member in OrderLineStatus}
    if status not in valid:
        raise ValueError(f'Invalid status: {status}')

    sheet = OrdersSheet.load(store, table, required=(ORDER_NUMBER, STATUS))
    if store.find_row_by_key(table, sheet.columns.index(ORDER_NUMBER), order_number) is None:
        raise ValueError(f'Order {order_number} not found')

    written = 0
    for line in sheet.lines_for_order(order_number):
        if line.status == status:
            continue
        sheet.write_status(line.key, status)
        written += 1
    return written
