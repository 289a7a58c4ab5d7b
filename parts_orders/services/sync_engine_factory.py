from __future__ import annotations

from sqlalchemy.orm import Session

from parts_orders.config import settings
from parts_orders.services.monday_client import MondayBoardConfig, MondayClient
from parts_orders.services.order_sync_service import OrderSyncEngine, RemoteBoard, SyncPacing
from parts_orders.services.row_store import RowStore
from parts_orders.services.row_store_factory import get_row_store


def build_sync_engine(db: Session, *, store: RowStore | None = None, client: RemoteBoard | None = None) -> OrderSyncEngine:
    if client is None:
        client = MondayClient(MondayBoardConfig.from_settings(settings))
    return OrderSyncEngine(
        store=store or get_row_store(),
        client=client,
        db=db,
        orders_table=settings.orders_sheet_name,
        pacing=SyncPacing.from_settings(settings),
    )
