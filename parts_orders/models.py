from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum as SQLEnum,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER primary keys.
PK = BigInteger().with_variant(Integer, 'sqlite')


class Base(DeclarativeBase):
    pass


class OrderLineStatus(str, Enum):
    PENDING = 'Pending'
    REQUESTED = 'Requested'
    ORDERED = 'Ordered'
    RECEIVED = 'Received'
    CANCELLED = 'Cancelled'


class OrderType(str, Enum):
    DIRECTORY = 'Directory Order'
    CUSTOM = 'Custom Request'
    CSV = 'CSV Order'


class SyncRunKind(str, Enum):
    PUSH = 'PUSH'
    PULL = 'PULL'
    FULL = 'FULL'


class OrderSyncState(Base):
    """Remote main item recorded per order number, written as soon as the item exists."""

    __tablename__ = 'order_sync_states'
    __table_args__ = (
        UniqueConstraint('order_number', name='order_sync_states_order_number_key'),
    )

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    order_number: Mapped[str] = mapped_column(Text, nullable=False)
    remote_item_id: Mapped[str] = mapped_column(Text, nullable=False)
    order_type: Mapped[OrderType] = mapped_column(
        SQLEnum(OrderType, name='order_type', values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SyncRun(Base):
    __tablename__ = 'sync_runs'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    kind: Mapped[SyncRunKind] = mapped_column(SQLEnum(SyncRunKind, name='sync_run_kind'), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    message: Mapped[str | None] = mapped_column(Text)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SyncEvent(Base):
    __tablename__ = 'sync_events'

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    order_number: Mapped[str | None] = mapped_column(Text)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict, server_default='{}')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
