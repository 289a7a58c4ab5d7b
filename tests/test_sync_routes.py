from __future__ import annotations

import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from parts_orders.db import get_db
from parts_orders.errors import SyncConfigError
from parts_orders.main import app
from parts_orders.models import Base
from parts_orders.routers.sync import get_store, get_sync_engine
from parts_orders.services.memory_row_store import InMemoryRowStore
from parts_orders.services.order_sync_service import OrderSyncEngine, SyncPacing
from parts_orders.services.row_store import ORDER_HEADER, ORDER_NUMBER, STATUS


class _Board:
    def __init__(self) -> None:
        self.created = 0

    def create_main_item(self, order, order_type) -> str:
        self.created += 1
        return f'main-{self.created}'

    def create_subitem(self, parent_id, line, order_type) -> str:
        self.created += 1
        return f'sub-{self.created}'

    def fetch_statuses(self, remote_ids):
        return {remote_id: 'Ordered and Waiting' for remote_id in remote_ids}


class SyncRoutesTests(unittest.TestCase):
    def setUp(self) -> None:
        engine = create_engine('sqlite://', connect_args={'check_same_thread': False}, poolclass=StaticPool)
        Base.metadata.create_all(engine)
        self.db = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
        self.addCleanup(engine.dispose)
        self.addCleanup(self.db.close)

        self.store = InMemoryRowStore.with_orders([])
        self.board = _Board()

        def override_db():
            yield self.db

        def override_engine() -> OrderSyncEngine:
            return OrderSyncEngine(
                store=self.store,
                client=self.board,
                db=self.db,
                pacing=SyncPacing(subitem_delay_seconds=0, order_delay_seconds=0),
                sleep=lambda _seconds: None,
            )

        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_store] = lambda: self.store
        app.dependency_overrides[get_sync_engine] = override_engine
        self.addCleanup(app.dependency_overrides.clear)
        self.client = TestClient(app)

    def _submit(self, **overrides) -> dict:
        payload = {
            'student_name': 'Sam',
            'department': 'Build',
            'items': [{'part_id': 'FAST-001', 'part_name': 'Bolt', 'quantity': 2, 'unit_cost': '1.25'}],
        }
        payload.update(overrides)
        return self.client.post('/orders', json=payload)

    def test_health(self) -> None:
        self.assertEqual(self.client.get('/health').json(), {'status': 'ok'})

    def test_submit_then_sync(self) -> None:
        created = self._submit()
        self.assertEqual(created.status_code, 201)
        self.assertTrue(created.json()['order_number'].startswith('ORD-'))
        self.assertEqual(created.json()['lines'], 1)

        response = self.client.post('/sync/run')

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual((body['created'], body['updated'], body['errors']), (1, 1, 0))
        self.assertTrue(body['success'])

        runs = self.client.get('/sync/runs').json()
        self.assertEqual(len(runs), 1)
        self.assertEqual(runs[0]['kind'], 'FULL')
        self.assertEqual(runs[0]['created'], 1)

    def test_push_and_pull_endpoints(self) -> None:
        self._submit()

        self.assertEqual(self.client.post('/sync/push').json()['created'], 1)
        self.assertEqual(self.client.post('/sync/pull').json()['updated'], 1)
        self.assertEqual(len(self.client.get('/sync/runs', params={'limit': 1}).json()), 1)

    def test_missing_columns_is_bad_gateway(self) -> None:
        self.store.tables['Orders'] = [[ORDER_NUMBER, STATUS]]

        response = self.client.post('/sync/push')

        self.assertEqual(response.status_code, 502)
        self.assertIn('Monday ID', response.json()['detail'])

    def test_missing_board_config_is_unavailable(self) -> None:
        del app.dependency_overrides[get_sync_engine]
        with patch('parts_orders.routers.sync.build_sync_engine', side_effect=SyncConfigError('MONDAY_API_TOKEN is required')):
            response = self.client.post('/sync/run')

        self.assertEqual(response.status_code, 503)

    def test_submit_without_items_is_rejected(self) -> None:
        response = self._submit(items=[])

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.store.tables['Orders'], [list(ORDER_HEADER)])

    def test_custom_request(self) -> None:
        response = self.client.post(
            '/orders/custom',
            json={'student_name': 'Riley', 'part_name': 'Slip ring', 'estimated_cost': '30'},
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['request_id'], 'CUSTOM-001')
        self.assertTrue(response.json()['order_number'].startswith('ORD-'))
        self.assertEqual(self.client.post('/sync/push').json()['created'], 1)

    def test_custom_request_without_part_name_is_rejected(self) -> None:
        response = self.client.post('/orders/custom', json={'student_name': 'Riley', 'part_name': ' '})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.store.tables['Orders'], [list(ORDER_HEADER)])

    def test_status_update(self) -> None:
        order_number = self._submit().json()['order_number']

        response = self.client.patch(f'/orders/{order_number}/status', json={'status': 'Ordered'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'order_number': order_number, 'updated': 1})
        self.assertEqual(self.store.tables['Orders'][1][ORDER_HEADER.index(STATUS)], 'Ordered')

    def test_status_update_errors(self) -> None:
        self.assertEqual(self.client.patch('/orders/ORD-9/status', json={'status': 'Ordered'}).status_code, 404)
        self.assertEqual(self.client.patch('/orders/ORD-9/status', json={'status': 'Lost'}).status_code, 422)


if __name__ == '__main__':
    unittest.main()
