from fastapi import FastAPI

from parts_orders.config import configure_logging
from parts_orders.routers import sync

configure_logging()

app = FastAPI(title='Parts Orders Sync')

app.include_router(sync.router)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}
