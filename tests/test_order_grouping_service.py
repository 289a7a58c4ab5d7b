from __future__ import annotations

import unittest

from parts_orders.services.order_grouping_service import group_order_lines
from parts_orders.services.row_store import OrderLine


class OrderGroupingServiceTests(unittest.TestCase):
    def test_lines_grouped_by_order_number_in_input_order(self) -> None:
        lines = [
            OrderLine(order_number='A', row_index=1),
            OrderLine(order_number='B', row_index=2),
            OrderLine(order_number='A', row_index=3),
        ]

        grouped = group_order_lines(lines)

        self.assertEqual(list(grouped), ['A', 'B'])
        self.assertEqual([line.row_index for line in grouped['A'].lines], [1, 3])
        self.assertEqual([line.row_index for line in grouped['B'].lines], [2])

    def test_metadata_comes_from_first_line(self) -> None:
        lines = [
            OrderLine(order_number='A', row_index=2, department='Build', student_name='Sam', priority='High', date='2025-01-27'),
            OrderLine(order_number='A', row_index=3, department='Software', student_name='Alex', priority='Low', date='2025-02-01'),
        ]

        order = group_order_lines(lines)['A']

        self.assertEqual(order.department, 'Build')
        self.assertEqual(order.student_name, 'Sam')
        self.assertEqual(order.priority, 'High')
        self.assertEqual(order.date, '2025-01-27')

    def test_line_without_order_number_is_dropped_with_warning(self) -> None:
        lines = [
            OrderLine(order_number='', row_index=5),
            OrderLine(order_number='A', row_index=6),
        ]

        with self.assertLogs('parts_orders.services.order_grouping_service', level='WARNING') as logs:
            grouped = group_order_lines(lines)

        self.assertEqual(list(grouped), ['A'])
        self.assertIn('row 5', logs.output[0])

    def test_empty_input(self) -> None:
        self.assertEqual(group_order_lines([]), {})


if __name__ == '__main__':
    unittest.main()
