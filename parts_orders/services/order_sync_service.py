from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from parts_orders.errors import SyncError
from parts_orders.models import OrderSyncState, OrderType, SyncRunKind
from parts_orders.services.monday_client import map_remote_status
from parts_orders.services.order_grouping_service import LogicalOrder, group_order_lines
from parts_orders.services.order_type_service import classify_order_type
from parts_orders.services.row_store import (
    PULL_REQUIRED_COLUMNS,
    PUSH_REQUIRED_COLUMNS,
    OrderLine,
    OrdersSheet,
    RowStore,
)
from parts_orders.services.sync_log_service import log_sync_event, record_sync_run

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


class RemoteBoard(Protocol):
    def create_main_item(self, order: LogicalOrder, order_type: OrderType) -> str: ...

    def create_subitem(self, parent_id: str, line: OrderLine, order_type: OrderType) -> str: ...

    def fetch_statuses(self, remote_ids: list[str]) -> dict[str, str]: ...


@dataclass(frozen=True)
class SyncPacing:
    subitem_delay_seconds: float = 0.2
    order_delay_seconds: float = 1.0

    @classmethod
    def from_settings(cls, settings) -> SyncPacing:
        return cls(
            subitem_delay_seconds=settings.sync_subitem_delay_ms / 1000,
            order_delay_seconds=settings.sync_order_delay_ms / 1000,
        )


@dataclass(frozen=True)
class PushResult:
    created: int = 0
    failed: int = 0


@dataclass(frozen=True)
class PullResult:
    updated: int = 0


@dataclass(frozen=True)
class SyncResult:
    created: int = 0
    updated: int = 0
    errors: int = 0
    success: bool = True
    message: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


class OrderSyncEngine:
    """
    Reconciles the Orders table with the tracking board.

    Push creates one main item per logical order and one subitem per line,
    writing each subitem id into the line's remote-id cell. A line with a
    remote id is never pushed again. The main item id is recorded per order
    number before any subitem is created, so an order that failed partway
    resumes on the same main item instead of creating a second one.

    Pull maps board statuses onto the lines that reference them.
    """

    def __init__(
        self,
        *,
        store: RowStore,
        client: RemoteBoard,
        db: Session,
        orders_table: str = 'Orders',
        pacing: SyncPacing | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.client = client
        self.db = db
        self.orders_table = orders_table
        self.pacing = pacing or SyncPacing()
        self.sleep = sleep

    def _recorded_main_item(self, order_number: str) -> OrderSyncState | None:
        return self.db.execute(
            select(OrderSyncState).where(OrderSyncState.order_number == order_number)
        ).scalar_one_or_none()

    def _record_main_item(self, order_number: str, remote_item_id: str, order_type: OrderType) -> None:
        self.db.add(
            OrderSyncState(
                order_number=order_number,
                remote_item_id=remote_item_id,
                order_type=order_type,
            )
        )
        self.db.commit()

    def _push_order(self, sheet: OrdersSheet, order: LogicalOrder) -> None:
        state = self._recorded_main_item(order.order_number)
        if state is not None:
            parent_id = state.remote_item_id
            order_type = state.order_type
            logger.info('Resuming order %s on existing item %s', order.order_number, parent_id)
            log_sync_event(
                self.db,
                action='ORDER_RESUMED',
                order_number=order.order_number,
                metadata={'remote_item_id': parent_id, 'pending_lines': len(order.lines)},
            )
        else:
            order_type = classify_order_type(order.lines)
            parent_id = self.client.create_main_item(order, order_type)
            self._record_main_item(order.order_number, parent_id, order_type)

        for index, line in enumerate(order.lines):
            if index:
                self.sleep(self.pacing.subitem_delay_seconds)
            subitem_id = self.client.create_subitem(parent_id, line, order_type)
            sheet.write_remote_id(line.key, subitem_id)

        log_sync_event(
            self.db,
            action='ORDER_PUSHED',
            order_number=order.order_number,
            metadata={
                'remote_item_id': parent_id,
                'order_type': order_type.value,
                'lines': len(order.lines),
            },
        )
        self.db.commit()

    def push_orders(self) -> PushResult:
        sheet = OrdersSheet.load(self.store, self.orders_table, required=PUSH_REQUIRED_COLUMNS)
        pending = sheet.unsynced_lines()
        if not pending:
            logger.info('No new orders to sync')
            return PushResult()

        orders = group_order_lines(pending)
        logger.info('Pushing %s orders (%s lines)', len(orders), len(pending))

        created = 0
        failed = 0
        for position, order in enumerate(orders.values()):
            if position:
                self.sleep(self.pacing.order_delay_seconds)
            try:
                self._push_order(sheet, order)
            except Exception as exc:
                failed += 1
                logger.exception('Failed to sync order %s', order.order_number)
                self.db.rollback()
                log_sync_event(
                    self.db,
                    action='ORDER_PUSH_FAILED',
                    order_number=order.order_number,
                    metadata={'error': str(exc), 'error_type': type(exc).__name__},
                )
                self.db.commit()
                continue
            created += 1
            logger.info('Synced order %s', order.order_number)

        logger.info('Push complete: created=%s, failed=%s', created, failed)
        return PushResult(created=created, failed=failed)

    def pull_statuses(self) -> PullResult:
        sheet = OrdersSheet.load(self.store, self.orders_table, required=PULL_REQUIRED_COLUMNS)
        remote_ids = sheet.remote_ids()
        if not remote_ids:
            logger.info('No synced lines to refresh')
            return PullResult()

        remote_statuses = self.client.fetch_statuses(remote_ids)
        mapped = {remote_id: map_remote_status(text) for remote_id, text in remote_statuses.items()}

        updated = 0
        for line in sheet.lines:
            if not line.remote_id:
                continue
            new_status = mapped.get(line.remote_id)
            if new_status is None or new_status == line.status:
                continue
            sheet.write_status(line.key, new_status)
            updated += 1

        logger.info('Pull complete: updated=%s of %s remote items', updated, len(remote_ids))
        return PullResult(updated=updated)

    def run_sync(self) -> SyncResult:
        push = self.push_orders()
        pull = self.pull_statuses()
        return SyncResult(created=push.created, updated=pull.updated, errors=push.failed)


def run_recorded_pass(engine: OrderSyncEngine, kind: SyncRunKind = SyncRunKind.FULL) -> SyncResult:
    """Run one pass, record it as a SyncRun, and report pass-level failures as a result."""
    started_at = _now()
    push = PushResult()
    pull = PullResult()
    try:
        if kind in (SyncRunKind.PUSH, SyncRunKind.FULL):
            push = engine.push_orders()
        if kind in (SyncRunKind.PULL, SyncRunKind.FULL):
            pull = engine.pull_statuses()
    except SyncError as exc:
        logger.error('%s sync aborted: %s', kind.value, exc)
        engine.db.rollback()
        result = SyncResult(
            created=push.created,
            updated=pull.updated,
            errors=push.failed + 1,
            success=False,
            message=str(exc),
        )
    else:
        result = SyncResult(created=push.created, updated=pull.updated, errors=push.failed)

    record_sync_run(
        engine.db,
        kind=kind,
        started_at=started_at,
        created=result.created,
        updated=result.updated,
        failed=result.errors,
        success=result.success,
        message=result.message,
    )
    engine.db.commit()
    return result


def run_manual_sync(engine: OrderSyncEngine) -> SyncResult:
    return run_recorded_pass(engine, SyncRunKind.FULL)
