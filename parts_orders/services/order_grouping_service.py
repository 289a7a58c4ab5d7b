from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from parts_orders.services.row_store import OrderLine

logger = logging.getLogger(__name__)


@dataclass
class LogicalOrder:
    order_number: str
    date: Any
    department: str
    student_name: str
    priority: str
    lines: list[OrderLine] = field(default_factory=list)


def group_order_lines(lines: list[OrderLine]) -> dict[str, LogicalOrder]:
    """
    Group flat order lines into logical orders keyed by order number.

    Order-level metadata comes from the first line seen for each order number;
    lines keep their input order. Lines without an order number are dropped.
    """
    grouped: dict[str, LogicalOrder] = {}
    for line in lines:
        order_number = (line.order_number or '').strip()
        if not order_number:
            logger.warning('Dropping order line at row %s: missing order number', line.row_index)
            continue
        order = grouped.get(order_number)
        if order is None:
            order = LogicalOrder(
                order_number=order_number,
                date=line.date,
                department=line.department,
                student_name=line.student_name,
                priority=line.priority,
            )
            grouped[order_number] = order
        order.lines.append(line)

    logger.debug('Grouped %s lines into %s orders', len(lines), len(grouped))
    return grouped
