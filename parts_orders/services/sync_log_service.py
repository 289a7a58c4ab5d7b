from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from parts_orders.models import SyncEvent, SyncRun, SyncRunKind


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def log_sync_event(
    db: Session,
    *,
    action: str,
    order_number: str | None = None,
    metadata: dict | None = None,
) -> None:
    db.add(
        SyncEvent(
            action=action,
            order_number=order_number,
            meta=metadata or {},
        )
    )


def record_sync_run(
    db: Session,
    *,
    kind: SyncRunKind,
    started_at: datetime,
    created: int = 0,
    updated: int = 0,
    failed: int = 0,
    success: bool = True,
    message: str | None = None,
) -> SyncRun:
    row = SyncRun(
        kind=kind,
        success=success,
        created=created,
        updated=updated,
        failed=failed,
        message=message,
        started_at=started_at,
        finished_at=_now(),
    )
    db.add(row)
    db.flush()
    return row


def list_recent_runs(db: Session, *, limit: int = 20) -> list[SyncRun]:
    return list(
        db.execute(select(SyncRun).order_by(SyncRun.id.desc()).limit(limit)).scalars().all()
    )
