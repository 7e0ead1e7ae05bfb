from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from restoledger.core.config import get_settings
from restoledger.core.exceptions import LedgerError
from restoledger.db.session import SessionLocal
from restoledger.events.bootstrap import setup_event_handlers
from restoledger.events.bus import event_bus
from restoledger.routers.alerts import router as alerts_router
from restoledger.routers.analysis import router as analysis_router
from restoledger.routers.inventory import router as inventory_router
from restoledger.routers.orders import router as orders_router
from restoledger.routers.sales import router as sales_router
from restoledger.routers.waste import router as waste_router

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    teardown = setup_event_handlers(event_bus, SessionLocal)
    yield
    teardown()
    event_bus.shutdown()


app = FastAPI(
    title=settings.APP_NAME,
    description="Inventory and cost ledger for restaurants - stock, purchases, sales, waste and menu profitability.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    """Domain errors carry their own status code."""
    if exc.status_code >= 500:
        logger.error(f"Ledger error: {exc.message}", exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Global exception handler for unhandled errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected server errors with structured response."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later.",
            "request_id": request.headers.get("X-Request-ID"),
        }
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sales_router, prefix="/api")
app.include_router(orders_router, prefix="/api")
app.include_router(waste_router, prefix="/api")
app.include_router(inventory_router, prefix="/api")
app.include_router(analysis_router, prefix="/api")
app.include_router(alerts_router, prefix="/api")


@app.get("/")
def read_root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "docs": "/docs",
    }
