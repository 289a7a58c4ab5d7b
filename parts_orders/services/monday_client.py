from __future__ import annotations

import http.client
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from parts_orders.errors import MondayApiError, MondayRateLimitError, SyncConfigError
from parts_orders.models import OrderType
from parts_orders.services.order_grouping_service import LogicalOrder
from parts_orders.services.order_type_service import render_subitem_columns, subitem_fields_for
from parts_orders.services.retry import exponential_backoff, rate_limit_backoff, with_retry
from parts_orders.services.row_store import OrderLine

logger = logging.getLogger(__name__)

INITIAL_STATUS_LABEL = 'Need to Order'

STATUS_MAPPING = {
    'Need to Order': 'Requested',
    'Ordered and Waiting': 'Ordered',
    'Product Arrived': 'Received',
    'Cannot Currently Order': 'Cancelled',
}

DEFAULT_MAIN_COLUMNS = {
    'status': 'status',
    'priority': 'text_mkx8wrtc',
    'orderType': 'text_mkx8vbtc',
    'department': 'text_mkx8mnp',
    'studentName': 'text_mkx812a8',
    'dateSubmitted': 'date_mkx83bc6',
}

DEFAULT_SUBITEM_COLUMNS = {
    'partName': 'text_mkx8naek',
    'quantity': 'numeric_mkx8t4fc',
    'totalCost': 'numeric_mkx86w0v',
    'productCode': 'text_mkx8jape',
    'supplier': 'text_mkx8czzy',
    'supplierLink': 'link_mkx89c62',
    'justification': 'text_mkx8exde',
    'notes': 'long_text_mkx8kp09',
    'csvFileLink': 'link_mkx86fgc',
}

CREATE_ITEM_MUTATION = """
mutation ($boardId: ID!, $itemName: String!, $columnValues: JSON!) {
  create_item (board_id: $boardId, item_name: $itemName, column_values: $columnValues) {
    id
    name
  }
}
"""

CREATE_SUBITEM_MUTATION = """
mutation ($parentItemId: ID!, $itemName: String!, $columnValues: JSON!) {
  create_subitem (parent_item_id: $parentItemId, item_name: $itemName, column_values: $columnValues) {
    id
    name
  }
}
"""

ITEM_STATUS_QUERY = """
query ($itemIds: [ID!]!) {
  items (ids: $itemIds) {
    id
    column_values {
      id
      text
    }
  }
}
"""

# Google Sheets serial dates count days from this epoch.
SHEETS_EPOCH = date(1899, 12, 30)
DATE_FORMATS = ('%m/%d/%Y %H:%M:%S', '%m/%d/%Y %H:%M', '%m/%d/%Y')


def map_remote_status(text: str) -> str:
    return STATUS_MAPPING.get(text, text)


def format_board_date(value: Any, *, today: date | None = None) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (SHEETS_EPOCH + timedelta(days=int(value))).isoformat()
    raw = str(value or '').strip()
    if raw:
        try:
            return datetime.fromisoformat(raw.replace('Z', '+00:00')).date().isoformat()
        except ValueError:
            pass
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(raw, fmt).date().isoformat()
            except ValueError:
                continue
        logger.warning('Unrecognized order date %r, using today', raw)
    return (today or date.today()).isoformat()


@dataclass(frozen=True)
class MondayBoardConfig:
    api_token: str
    board_id: str
    api_url: str = 'https://api.monday.com/v2'
    api_version: str = '2024-10'
    timeout_seconds: int = 30
    main_columns: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MAIN_COLUMNS))
    subitem_columns: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SUBITEM_COLUMNS))
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    status_batch_size: int = 10
    status_batch_delay_seconds: float = 0.5

    @classmethod
    def from_settings(cls, settings) -> MondayBoardConfig:
        if not settings.monday_api_token:
            raise SyncConfigError('MONDAY_API_TOKEN is required')
        if not settings.monday_board_id:
            raise SyncConfigError('MONDAY_BOARD_ID is required')
        return cls(
            api_token=settings.monday_api_token,
            board_id=str(settings.monday_board_id),
            api_url=settings.monday_api_url,
            api_version=settings.monday_api_version,
            timeout_seconds=settings.monday_timeout_seconds,
            main_columns={**DEFAULT_MAIN_COLUMNS, **settings.monday_main_columns},
            subitem_columns={**DEFAULT_SUBITEM_COLUMNS, **settings.monday_subitem_columns},
            max_retries=settings.sync_max_retries,
            retry_delay_seconds=settings.sync_retry_delay_ms / 1000,
            status_batch_size=settings.sync_status_batch_size,
            status_batch_delay_seconds=settings.sync_status_batch_delay_ms / 1000,
        )


class MondayClient:
    """GraphQL client for the order tracking board. Every call is retried with backoff."""

    def __init__(self, config: MondayBoardConfig, *, sleep: Callable[[float], None] = time.sleep) -> None:
        if not config.api_token:
            raise SyncConfigError('MONDAY_API_TOKEN is required')
        if not config.board_id:
            raise SyncConfigError('MONDAY_BOARD_ID is required')
        if config.status_batch_size < 1:
            raise SyncConfigError('Status batch size must be at least 1')
        self.config = config
        self.sleep = sleep
        self.headers = {
            'Authorization': config.api_token,
            'API-Version': config.api_version,
            'Content-Type': 'application/json',
        }

    def _send(self, payload: dict) -> tuple[int, str]:
        req = Request(
            url=self.config.api_url,
            data=json.dumps(payload).encode('utf-8'),
            headers=self.headers,
            method='POST',
        )
        try:
            with urlopen(req, timeout=self.config.timeout_seconds) as response:
                return response.status, response.read().decode('utf-8')
        except HTTPError as exc:
            body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            return exc.code, body
        except URLError as exc:
            raise MondayApiError(f'Monday API network error: {exc.reason}') from exc
        except TimeoutError as exc:
            raise MondayApiError('Monday API request timed out') from exc
        except (OSError, http.client.HTTPException) as exc:
            raise MondayApiError(f'Monday API transport error: {exc!r}') from exc

    def _execute_once(self, query: str, variables: dict) -> dict:
        status, body = self._send({'query': query, 'variables': variables})
        if status == 429:
            raise MondayRateLimitError('Monday API rate limited (HTTP 429)', status_code=status)
        if status < 200 or status >= 300:
            raise MondayApiError(f'Monday API error {status}: {body[:500]}', status_code=status)
        try:
            parsed = json.loads(body)
        except ValueError as exc:
            raise MondayApiError('Monday API returned invalid JSON', status_code=status) from exc
        if parsed.get('errors'):
            raise MondayApiError(f"Monday API returned errors: {parsed['errors']}", status_code=status)
        if parsed.get('error_message'):
            raise MondayApiError(f"Monday API returned error: {parsed['error_message']}", status_code=status)
        return parsed.get('data') or {}

    def execute(self, query: str, variables: dict, *, operation: str) -> dict:
        delay = self.config.retry_delay_seconds
        return with_retry(
            lambda: self._execute_once(query, variables),
            operation=operation,
            max_attempts=self.config.max_retries,
            backoff=exponential_backoff(delay),
            rate_limited_backoff=rate_limit_backoff(delay),
            is_rate_limited=lambda exc: isinstance(exc, MondayRateLimitError),
            retry_on=(MondayApiError,),
            sleep=self.sleep,
        )

    def create_main_item(self, order: LogicalOrder, order_type: OrderType) -> str:
        columns = self.config.main_columns
        column_values = {
            columns['status']: {'label': INITIAL_STATUS_LABEL},
            columns['priority']: order.priority or 'Medium',
            columns['orderType']: order_type.value,
            columns['department']: order.department or '',
            columns['studentName']: order.student_name or '',
            columns['dateSubmitted']: {'date': format_board_date(order.date)},
        }
        data = self.execute(
            CREATE_ITEM_MUTATION,
            {
                'boardId': self.config.board_id,
                'itemName': order.order_number,
                'columnValues': json.dumps(column_values),
            },
            operation=f'create_item {order.order_number}',
        )
        item_id = (data.get('create_item') or {}).get('id')
        if not item_id:
            raise MondayApiError(f'create_item returned no id for order {order.order_number}')
        logger.info('Created main item %s for order %s', item_id, order.order_number)
        return str(item_id)

    def create_subitem(self, parent_id: str, line: OrderLine, order_type: OrderType) -> str:
        fields = subitem_fields_for(line, order_type)
        column_values = render_subitem_columns(line, fields, self.config.subitem_columns)
        data = self.execute(
            CREATE_SUBITEM_MUTATION,
            {
                'parentItemId': parent_id,
                'itemName': line.part_id or 'Unknown',
                'columnValues': json.dumps(column_values),
            },
            operation=f'create_subitem {line.part_id or "Unknown"}',
        )
        subitem_id = (data.get('create_subitem') or {}).get('id')
        if not subitem_id:
            raise MondayApiError(f'create_subitem returned no id for part {line.part_id}')
        logger.debug('Created subitem %s under %s', subitem_id, parent_id)
        return str(subitem_id)

    def fetch_statuses(self, remote_ids: list[str]) -> dict[str, str]:
        """Return raw board status text keyed by item id."""
        statuses: dict[str, str] = {}
        if not remote_ids:
            return statuses
        status_column = self.config.main_columns['status']
        batch_size = self.config.status_batch_size
        for i in range(0, len(remote_ids), batch_size):
            chunk = remote_ids[i : i + batch_size]
            data = self.execute(
                ITEM_STATUS_QUERY,
                {'itemIds': chunk},
                operation=f'items status batch {i // batch_size + 1}',
            )
            for item in data.get('items') or []:
                item_id = item.get('id')
                if not item_id:
                    continue
                for column in item.get('column_values') or []:
                    if column.get('id') == status_column:
                        statuses[str(item_id)] = column.get('text') or INITIAL_STATUS_LABEL
                        break
            if i + batch_size < len(remote_ids):
                self.sleep(self.config.status_batch_delay_seconds)
        return statuses
