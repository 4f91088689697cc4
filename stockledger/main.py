from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text

from stockledger.core.config import settings
from stockledger.core.errors import StockLedgerError
from stockledger.core.observability import (
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    stock_ledger_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from stockledger.db.session import engine
from stockledger.routers import alerts, locations, stock

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Multi-location stock ledger and allocation engine.\n\n"
        "Quick test flow:\n"
        "1. `POST /locations` (or seed SHELF, WAREHOUSE and ONLINE).\n"
        "2. `POST /stock/batches` to receive goods into a location.\n"
        "3. `POST /stock/deductions` to sell; the shelf is restocked from the warehouse automatically.\n"
        "4. `GET /stock/{product_id}/reorder-status` and `GET /alerts` to review reorder decisions."
    ),
    swagger_ui_parameters={
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "stock", "description": "Receipts, sale deductions, transfers, replenishment and stock levels."},
        {"name": "alerts", "description": "Reorder alerts derived from stock levels and sales velocity."},
        {"name": "locations", "description": "Warehouse, display and online stock locations."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(StockLedgerError, stock_ledger_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(stock.router)
app.include_router(alerts.router)
app.include_router(locations.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        return {"ok": False}
    return {"ok": True}
