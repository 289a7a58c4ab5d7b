from __future__ import annotations

import unittest
from datetime import date, datetime
from decimal import Decimal

from parts_orders.models import OrderType
from parts_orders.services.memory_row_store import InMemoryRowStore
from parts_orders.services.order_submission_service import (
    CustomRequestSubmission,
    OrderItemInput,
    OrderSubmission,
    next_custom_request_id,
    next_order_number,
    submit_custom_request,
    submit_order,
    update_order_status,
)
from parts_orders.services.order_type_service import classify_order_type
from parts_orders.services.row_store import ORDER_HEADER, OrdersSheet


def _existing(order_number: str, status: str = 'Pending', part_id: str = '') -> list[str]:
    row = [''] * len(ORDER_HEADER)
    row[ORDER_HEADER.index('Order #')] = order_number
    row[ORDER_HEADER.index('Part ID')] = part_id
    row[ORDER_HEADER.index('Status')] = status
    return row


class NextOrderNumberTests(unittest.TestCase):
    def test_first_order_of_the_day(self) -> None:
        self.assertEqual(next_order_number(['ORD-20250126-009'], date(2025, 1, 27)), 'ORD-20250127-001')

    def test_continues_after_highest_sequence(self) -> None:
        existing = ['ORD-20250127-002', 'ORD-20250127-010', 'junk', '']
        self.assertEqual(next_order_number(existing, date(2025, 1, 27)), 'ORD-20250127-011')


class NextCustomRequestIdTests(unittest.TestCase):
    def test_first_custom_request(self) -> None:
        self.assertEqual(next_custom_request_id([]), 'CUSTOM-001')
        self.assertEqual(next_custom_request_id(['FAST-001', 'CSV-ORDER', '']), 'CUSTOM-001')

    def test_continues_after_highest_number(self) -> None:
        self.assertEqual(next_custom_request_id(['CUSTOM-002', 'FAST-001', 'CUSTOM-010']), 'CUSTOM-011')


class SubmitOrderTests(unittest.TestCase):
    def test_one_row_per_item(self) -> None:
        store = InMemoryRowStore.with_orders([_existing('ORD-20250127-002')])
        submission = OrderSubmission(
            student_name='Sam',
            department='Build',
            priority='High',
            justification='Drive rebuild',
            items=[
                OrderItemInput(part_id='FAST-001', part_name='Bolt', quantity=2, unit_cost=Decimal('12.50')),
                OrderItemInput(part_id='ELEC-004', part_name='Motor', quantity=1, unit_cost=Decimal('45')),
            ],
        )

        submitted = submit_order(store, 'Orders', submission, now=datetime(2025, 1, 27, 10, 30))

        self.assertEqual(submitted.order_number, 'ORD-20250127-003')
        self.assertEqual(submitted.row_indices, [3, 4])

        lines = OrdersSheet.load(store, 'Orders').lines_for_order('ORD-20250127-003')
        self.assertEqual([line.part_id for line in lines], ['FAST-001', 'ELEC-004'])
        self.assertEqual(lines[0].total_cost, Decimal('25.00'))
        self.assertEqual(lines[0].status, 'Pending')
        self.assertEqual(lines[0].priority, 'High')
        self.assertEqual(lines[0].date, '2025-01-27 10:30:00')
        self.assertEqual([line.line_seq for line in lines], [1, 2])
        self.assertFalse(any(line.is_synced for line in lines))

    def test_csv_order_is_a_single_line(self) -> None:
        store = InMemoryRowStore.with_orders([])
        submission = OrderSubmission(student_name='Alex', csv_file_link='https://drive.example.com/order.csv')

        submitted = submit_order(store, 'Orders', submission, now=datetime(2025, 2, 1, 9, 0))

        self.assertEqual(submitted.row_indices, [2])
        line = OrdersSheet.load(store, 'Orders').lines[0]
        self.assertEqual(line.part_id, 'CSV-ORDER')
        self.assertEqual(line.product_code, 'CSV-ORDER')
        self.assertEqual(line.supplier, 'WCP')
        self.assertEqual(line.csv_file_link, 'https://drive.example.com/order.csv')

    def test_requires_student_and_items(self) -> None:
        store = InMemoryRowStore.with_orders([])

        with self.assertRaises(ValueError):
            submit_order(store, 'Orders', OrderSubmission(student_name=' ', items=[]))
        with self.assertRaises(ValueError):
            submit_order(store, 'Orders', OrderSubmission(student_name='Sam', items=[]))
        self.assertEqual(len(store.tables['Orders']), 1)


class SubmitCustomRequestTests(unittest.TestCase):
    def test_writes_one_custom_line(self) -> None:
        store = InMemoryRowStore.with_orders(
            [_existing('ORD-20250127-004', part_id='CUSTOM-002'), _existing('ORD-20250127-001', part_id='FAST-001')]
        )
        request = CustomRequestSubmission(
            student_name='Riley',
            part_name='Slip ring',
            department='Electrical',
            estimated_cost=Decimal('30.00'),
            supplier='Amazon',
            supplier_link='https://example.com/slip-ring',
            justification='Turret wiring',
        )

        submitted = submit_custom_request(store, 'Orders', request, now=datetime(2025, 1, 27, 14, 5))

        self.assertEqual(submitted.order_number, 'ORD-20250127-005')
        self.assertEqual(submitted.request_id, 'CUSTOM-003')
        self.assertEqual(submitted.row_index, 4)

        lines = OrdersSheet.load(store, 'Orders').lines_for_order('ORD-20250127-005')
        self.assertEqual(len(lines), 1)
        line = lines[0]
        self.assertEqual(line.part_id, 'CUSTOM-003')
        self.assertEqual(line.part_name, 'Slip ring')
        self.assertEqual(line.category, 'Custom Request')
        self.assertEqual(line.quantity, 1)
        self.assertEqual(line.priority, 'Medium')
        self.assertEqual(line.unit_cost, Decimal('30.00'))
        self.assertEqual(line.total_cost, Decimal('30.00'))
        self.assertEqual(line.product_code, 'N/A')
        self.assertEqual(line.status, 'Pending')
        self.assertEqual(line.notes, 'CUSTOM REQUEST')
        self.assertEqual(line.supplier_link, 'https://example.com/slip-ring')
        self.assertFalse(line.is_synced)
        self.assertEqual(classify_order_type(lines), OrderType.CUSTOM)

    def test_requires_student_and_part_name(self) -> None:
        store = InMemoryRowStore.with_orders([])

        with self.assertRaises(ValueError):
            submit_custom_request(store, 'Orders', CustomRequestSubmission(student_name='', part_name='Slip ring'))
        with self.assertRaises(ValueError):
            submit_custom_request(store, 'Orders', CustomRequestSubmission(student_name='Riley', part_name=' '))
        self.assertEqual(len(store.tables['Orders']), 1)


class UpdateOrderStatusTests(unittest.TestCase):
    def test_updates_every_line_of_the_order(self) -> None:
        store = InMemoryRowStore.with_orders(
            [
                _existing('ORD-1'),
                _existing('ORD-2'),
                _existing('ORD-1', status='Cancelled'),
            ]
        )

        written = update_order_status(store, 'Orders', 'ORD-1', 'Cancelled')

        self.assertEqual(written, 1)
        status_col = ORDER_HEADER.index('Status')
        self.assertEqual([row[status_col] for row in store.tables['Orders'][1:]], ['Cancelled', 'Pending', 'Cancelled'])

    def test_unknown_order(self) -> None:
        store = InMemoryRowStore.with_orders([_existing('ORD-1')])

        with self.assertRaises(ValueError):
            update_order_status(store, 'Orders', 'ORD-9', 'Ordered')

    def test_invalid_status(self) -> None:
        store = InMemoryRowStore.with_orders([_existing('ORD-1')])

        with self.assertRaises(ValueError):
            update_order_status(store, 'Orders', 'ORD-1', 'Lost')


if __name__ == '__main__':
    unittest.main()
