from __future__ import annotations

import argparse
import sys

import uvicorn

from parts_orders.config import configure_logging, settings
from parts_orders.db import SessionLocal, engine
from parts_orders.errors import SyncError
from parts_orders.models import Base, SyncRunKind
from parts_orders.services.order_sync_service import SyncResult, run_recorded_pass
from parts_orders.services.sync_engine_factory import build_sync_engine
from parts_orders.services.sync_scheduler import ScheduledJob, SyncScheduler

KINDS = {
    'push': SyncRunKind.PUSH,
    'pull': SyncRunKind.PULL,
    'run': SyncRunKind.FULL,
}


def run_pass(kind: SyncRunKind) -> SyncResult:
    with SessionLocal() as db:
        return run_recorded_pass(build_sync_engine(db), kind)


def build_scheduler(*, push_minutes: int, pull_minutes: int) -> SyncScheduler:
    return SyncScheduler(
        [
            ScheduledJob('push', push_minutes * 60, lambda: run_pass(SyncRunKind.PUSH)),
            ScheduledJob('pull', pull_minutes * 60, lambda: run_pass(SyncRunKind.PULL)),
        ]
    )


def main() -> None:
    parser = argparse.ArgumentParser(description='Sync the Orders sheet with the Monday.com ordering board.')
    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('push', help='Create board items for orders without a Monday ID.')
    sub.add_parser('pull', help='Copy board statuses back onto synced order lines.')
    sub.add_parser('run', help='Push then pull.')
    sub.add_parser('init-db', help='Create the sync ledger tables.')
    schedule = sub.add_parser('schedule', help='Run push and pull periodically until interrupted.')
    schedule.add_argument('--push-minutes', type=int, default=settings.sync_push_interval_minutes)
    schedule.add_argument('--pull-minutes', type=int, default=settings.sync_pull_interval_minutes)
    serve = sub.add_parser('serve', help='Serve the manual sync HTTP API.')
    serve.add_argument('--host', default='127.0.0.1')
    serve.add_argument('--port', type=int, default=8000)
    args = parser.parse_args()

    configure_logging()

    if args.command == 'init-db':
        Base.metadata.create_all(engine)
        print('Sync tables created.')
        return

    if args.command == 'serve':
        uvicorn.run('parts_orders.main:app', host=args.host, port=args.port, log_level=settings.log_level.lower())
        return

    if args.command == 'schedule':
        scheduler = build_scheduler(push_minutes=args.push_minutes, pull_minutes=args.pull_minutes)
        try:
            scheduler.run_forever()
        except KeyboardInterrupt:
            print('Scheduler stopped.')
        return

    try:
        result = run_pass(KINDS[args.command])
    except SyncError as exc:
        print(f'Sync failed: {exc}', file=sys.stderr)
        sys.exit(1)

    if not result.success:
        print(f'Sync failed: {result.message}', file=sys.stderr)
        sys.exit(1)
    print(f'Monday sync complete: created={result.created}, updated={result.updated}, errors={result.errors}')


if __name__ == '__main__':
    main()
