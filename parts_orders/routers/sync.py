from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from parts_orders.config import settings
from parts_orders.db import get_db
from parts_orders.errors import RowStoreError, SyncConfigError
from parts_orders.models import OrderLineStatus, SyncRunKind
from parts_orders.services.order_submission_service import (
    CustomRequestSubmission,
    OrderItemInput,
    OrderSubmission,
    submit_custom_request,
    submit_order,
    update_order_status,
)
from parts_orders.services.order_sync_service import OrderSyncEngine, run_recorded_pass
from parts_orders.services.row_store import RowStore
from parts_orders.services.row_store_factory import get_row_store
from parts_orders.services.sync_engine_factory import build_sync_engine
from parts_orders.services.sync_log_service import list_recent_runs

router = APIRouter(tags=['sync'])


def get_store() -> RowStore:
    try:
        return get_row_store()
    except SyncConfigError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def get_sync_engine(db: Session = Depends(get_db), store: RowStore = Depends(get_store)) -> OrderSyncEngine:
    try:
        return build_sync_engine(db, store=store)
    except SyncConfigError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def _run(engine: OrderSyncEngine, kind: SyncRunKind) -> dict:
    result = run_recorded_pass(engine, kind)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.message)
    return result.as_dict()


@router.post('/sync/push')
def sync_push(engine: OrderSyncEngine = Depends(get_sync_engine)) -> dict:
    return _run(engine, SyncRunKind.PUSH)


@router.post('/sync/pull')
def sync_pull(engine: OrderSyncEngine = Depends(get_sync_engine)) -> dict:
    return _run(engine, SyncRunKind.PULL)


@router.post('/sync/run')
def sync_run(engine: OrderSyncEngine = Depends(get_sync_engine)) -> dict:
    return _run(engine, SyncRunKind.FULL)


@router.get('/sync/runs')
def sync_runs(limit: int = 20, db: Session = Depends(get_db)) -> list[dict]:
    return [
        {
            'id': run.id,
            'kind': run.kind.value,
            'success': run.success,
            'created': run.created,
            'updated': run.updated,
            'failed': run.failed,
            'message': run.message,
            'started_at': run.started_at.isoformat(),
            'finished_at': run.finished_at.isoformat(),
        }
        for run in list_recent_runs(db, limit=max(1, min(limit, 200)))
    ]


class OrderItemIn(BaseModel):
    part_id: str
    part_name: str
    quantity: int = Field(ge=1)
    unit_cost: Decimal = Decimal('0')
    category: str = ''
    supplier: str = ''
    supplier_link: str = ''
    product_code: str = ''


class OrderIn(BaseModel):
    student_name: str
    department: str = ''
    priority: str = 'Medium'
    notes: str = ''
    justification: str = ''
    csv_file_link: str = ''
    items: list[OrderItemIn] = []


class CustomRequestIn(BaseModel):
    student_name: str
    part_name: str
    department: str = ''
    priority: str = 'Medium'
    estimated_cost: Decimal = Field(default=Decimal('0'), ge=0)
    supplier: str = ''
    supplier_link: str = ''
    justification: str = ''


class StatusUpdateIn(BaseModel):
    status: OrderLineStatus


@router.post('/orders', status_code=201)
def create_order(payload: OrderIn, store: RowStore = Depends(get_store)) -> dict:
    submission = OrderSubmission(
        student_name=payload.student_name,
        department=payload.department,
        priority=payload.priority,
        notes=payload.notes,
        justification=payload.justification,
        csv_file_link=payload.csv_file_link,
        items=[OrderItemInput(**item.model_dump()) for item in payload.items],
    )
    try:
        submitted = submit_order(store, settings.orders_sheet_name, submission)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RowStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {'order_number': submitted.order_number, 'lines': len(submitted.row_indices)}


@router.post('/orders/custom', status_code=201)
def create_custom_request(payload: CustomRequestIn, store: RowStore = Depends(get_store)) -> dict:
    try:
        submitted = submit_custom_request(
            store, settings.orders_sheet_name, CustomRequestSubmission(**payload.model_dump())
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RowStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {'order_number': submitted.order_number, 'request_id': submitted.request_id}


@router.patch('/orders/{order_number}/status')
def set_order_status(order_number: str, payload: StatusUpdateIn, store: RowStore = Depends(get_store)) -> dict:
    try:
        written = update_order_status(store, settings.orders_sheet_name, order_number, payload.status.value)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RowStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {'order_number': order_number, 'updated': written}
