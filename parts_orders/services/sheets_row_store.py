from __future__ import annotations

import http.client
import json
import logging
import re
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from parts_orders.config import settings
from parts_orders.errors import RowStoreError, SyncConfigError

logger = logging.getLogger(__name__)

UPDATED_ROW_RE = re.compile(r'![A-Z]+(\d+)')


def column_letter(column: int) -> str:
    """0-based column position to A1 letters (0 -> A, 26 -> AA)."""
    letters = ''
    n = column + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord('A') + rem) + letters
    return letters


def _sheet_range(table: str, cells: str | None = None) -> str:
    name = "'" + table.replace("'", "''") + "'"
    return f'{name}!{cells}' if cells else name


class GoogleSheetsRowStore:
    """Row store over the Google Sheets v4 values API."""

    def __init__(
        self,
        *,
        spreadsheet_id: str | None = None,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout_seconds: int | None = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id or settings.orders_spreadsheet_id
        self.access_token = access_token or settings.google_sheets_access_token
        if not self.spreadsheet_id:
            raise SyncConfigError('ORDERS_SPREADSHEET_ID is required when ROW_STORE=sheets')
        if not self.access_token:
            raise SyncConfigError('GOOGLE_SHEETS_ACCESS_TOKEN is required when ROW_STORE=sheets')
        self.base_url = (base_url or settings.google_sheets_api_base_url).rstrip('/')
        self.timeout_seconds = timeout_seconds or settings.google_sheets_timeout_seconds

    def _request(self, method: str, a1_range: str, *, suffix: str = '', query: dict | None = None, payload: dict | None = None) -> dict:
        url = f'{self.base_url}/v4/spreadsheets/{self.spreadsheet_id}/values/{quote(a1_range, safe="")}{suffix}'
        if query:
            url = f'{url}?{urlencode(query)}'
        req = Request(
            url=url,
            data=json.dumps(payload).encode('utf-8') if payload is not None else None,
            headers={
                'Authorization': f'Bearer {self.access_token}',
                'Content-Type': 'application/json',
            },
            method=method,
        )
        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                return json.loads(response.read().decode('utf-8') or '{}')
        except HTTPError as exc:
            body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            raise RowStoreError(f'Sheets API error {exc.code} on {a1_range}: {body}') from exc
        except URLError as exc:
            raise RowStoreError(f'Sheets API network error on {a1_range}: {exc.reason}') from exc
        except (OSError, http.client.HTTPException) as exc:
            raise RowStoreError(f'Sheets API transport error on {a1_range}: {exc!r}') from exc

    def read_all(self, table: str) -> list[list[Any]]:
        response = self._request(
            'GET',
            _sheet_range(table),
            query={'valueRenderOption': 'UNFORMATTED_VALUE', 'dateTimeRenderOption': 'FORMATTED_STRING'},
        )
        return [list(row) for row in response.get('values', [])]

    def find_row_by_key(self, table: str, column: int, value: str) -> int | None:
        rows = self.read_all(table)
        for row_index, row in enumerate(rows[1:], start=2):
            if column < len(row) and str(row[column]).strip() == value:
                return row_index
        return None

    def write_cell(self, table: str, row_index: int, column: int, value: Any) -> None:
        a1_range = _sheet_range(table, f'{column_letter(column)}{row_index}')
        self._request(
            'PUT',
            a1_range,
            query={'valueInputOption': 'USER_ENTERED'},
            payload={'range': a1_range, 'majorDimension': 'ROWS', 'values': [[value]]},
        )
        logger.debug('Wrote %s!%s%s', table, column_letter(column), row_index)

    def append_row(self, table: str, row: list[Any]) -> int:
        response = self._request(
            'POST',
            _sheet_range(table),
            suffix=':append',
            query={'valueInputOption': 'USER_ENTERED', 'insertDataOption': 'INSERT_ROWS'},
            payload={'majorDimension': 'ROWS', 'values': [row]},
        )
        updated_range = str((response.get('updates') or {}).get('updatedRange') or '')
        match = UPDATED_ROW_RE.search(updated_range)
        if not match:
            raise RowStoreError(f'Sheets API did not report the appended row for {table}')
        return int(match.group(1))
