"""
FastAPI Application Entry Point

Restaurant QR Point-of-Sale - order lifecycle and realtime synchronization.

Endpoints:
    - GET  /api/table/{table_number}: Table QR (lazily issues the first token)
    - POST /api/table/{table_number}/regenerate: New QR version, old tokens revoked
    - GET  /api/table/decode/{token}: Resolve a scanned token to its table
    - GET  /api/menu: Available menu items
    - POST /api/orders: Checkout from a table token
    - GET  /api/orders: Full order list for cashier/kitchen
    - PUT  /api/orders/{order_id}/status: Advance an order's status
    - GET  /api/admin/users/online: Staff currently connected
    - WS   /ws: Realtime channel (join-cashier, join-kitchen, join-admin, user-online)
    - GET  /health: System health check

Author: Khalil Bannouri
Version: 4.0.0
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from restopos.core.config import get_settings, setup_logging
from restopos.core.exceptions import POSError, TokenInvalid
from restopos.database import async_session_maker, engine, get_db, init_db
from restopos.models import MenuItem
from restopos.schemas import (
    DecodedTableResponse,
    ErrorResponse,
    HealthResponse,
    MenuItemResponse,
    OnlineUsersResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderResponse,
    OrderStatusResponse,
    OrderStatusUpdate,
    TableInfoResponse,
    TableQRResponse,
)
from restopos.seed import seed_sample_data
from restopos.services.orders import OrderService
from restopos.services.realtime import RealtimeHub, serve_websocket
from restopos.services.table_token import TableTokenCodec, get_token_codec
from restopos.services.tables import TableService

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    if settings.is_development and settings.seed_sample_data:
        async with async_session_maker() as session:
            await seed_sample_data(session, settings.seed_table_count)

    missing = settings.validate_production_config()
    if missing:
        logger.warning(f"⚠️ Missing production config: {missing}")

    # One realtime hub for the whole process
    app.state.realtime = RealtimeHub(outbox_size=settings.realtime_outbox_size)
    logger.info("✅ Realtime hub ready")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await app.state.realtime.close()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Table QR ordering with realtime cashier, kitchen and admin screens. "
        "Customers order with a per-table token; staff advance orders "
        "pending -> preparing -> ready -> completed."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_realtime(request: Request) -> RealtimeHub:
    return request.app.state.realtime


def get_table_service(
    db: AsyncSession = Depends(get_db),
    codec: TableTokenCodec = Depends(get_token_codec),
) -> TableService:
    return TableService(db, codec)


def get_order_service(
    db: AsyncSession = Depends(get_db),
    codec: TableTokenCodec = Depends(get_token_codec),
    realtime: RealtimeHub = Depends(get_realtime),
) -> OrderService:
    return OrderService(db, realtime.broadcaster, codec)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍽️ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
        "realtime": "/ws",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeHub = Depends(get_realtime),
) -> HealthResponse:
    """Verify the database and realtime layer are operational."""

    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    return HealthResponse(
        status="operational" if db_status == "healthy" else "degraded",
        database=db_status,
        realtime_connections=realtime.registry.connection_count,
        online_users=len(realtime.presence.list_online()),
        timestamp=datetime.now(),
    )


# =============================================================================
# TABLE QR ENDPOINTS
# =============================================================================

@app.get(
    "/api/table/decode/{token}",
    response_model=DecodedTableResponse,
    responses={400: {"model": ErrorResponse}},
    tags=["Tables"],
    summary="Resolve a scanned table token",
)
async def decode_table_token(
    token: str,
    tables: TableService = Depends(get_table_service),
) -> DecodedTableResponse:
    """Called by the customer screen right after scanning."""
    try:
        table, _ = await tables.verify_token(token)
    except TokenInvalid as e:
        logger.info(f"Rejected table token: {e.reason}")
        raise

    return DecodedTableResponse(
        table_number=table.table_number,
        capacity=table.capacity,
        location=table.location,
    )


@app.get(
    "/api/table/{table_number}",
    response_model=TableInfoResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Tables"],
    summary="Table QR code",
)
async def get_table_qr(
    table_number: int,
    tables: TableService = Depends(get_table_service),
) -> TableInfoResponse:
    """Current QR of a table; the first request issues the version-1 token."""
    qr = await tables.get_qr(table_number)
    return TableInfoResponse(
        table_number=qr.table_number,
        qr_code=qr.qr_code,
        qr_version=qr.qr_version,
        qr_url=qr.qr_url,
        has_existing_qr=qr.had_existing_qr,
    )


@app.post(
    "/api/table/{table_number}/regenerate",
    response_model=TableQRResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Tables"],
    summary="Regenerate table QR code",
)
async def regenerate_table_qr(
    table_number: int,
    tables: TableService = Depends(get_table_service),
) -> TableQRResponse:
    """Issue a new QR version; every earlier token for the table stops working."""
    qr = await tables.regenerate_qr(table_number)
    return TableQRResponse(
        table_number=qr.table_number,
        qr_code=qr.qr_code,
        qr_version=qr.qr_version,
        qr_url=qr.qr_url,
    )


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@app.get(
    "/api/menu",
    response_model=list[MenuItemResponse],
    tags=["Menu"],
)
async def list_menu(db: AsyncSession = Depends(get_db)) -> list[MenuItemResponse]:
    """Menu items currently available for ordering."""
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.available.is_(True))
        .order_by(MenuItem.category, MenuItem.name)
    )
    return [MenuItemResponse.model_validate(item) for item in result.scalars().all()]


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderCreateResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Create Order",
)
async def create_order(
    order_data: OrderCreate,
    orders: OrderService = Depends(get_order_service),
) -> OrderCreateResponse:
    """
    Place an order from the customer screen.

    The table token must be fresh and still the table's current QR.
    Cashier and kitchen receive ``new-order`` once the order is committed.
    """
    logger.info(f"Creating order for table {order_data.table_number}: {len(order_data.items)} item(s)")
    order = await orders.create_order(order_data)

    return OrderCreateResponse(
        success=True,
        order_id=order.id,
        message="Order placed successfully",
    )


@app.get(
    "/api/orders",
    response_model=list[OrderResponse],
    responses={400: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    status: Optional[str] = Query(None),
    orders: OrderService = Depends(get_order_service),
) -> list[dict[str, Any]]:
    """All orders with their items, newest first. Used to (re)load staff screens."""
    return await orders.list_orders(status)


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    orders: OrderService = Depends(get_order_service),
) -> dict[str, Any]:
    """Get a specific order by ID."""
    return await orders.get_order(order_id)


@app.put(
    "/api/orders/{order_id}/status",
    response_model=OrderStatusResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Update Order Status",
)
async def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    orders: OrderService = Depends(get_order_service),
) -> OrderStatusResponse:
    """Advance an order one step; cashier and kitchen receive ``order-updated``."""
    order = await orders.update_status(order_id, body.status)
    return OrderStatusResponse(success=True, order=OrderResponse.from_order(order))


# =============================================================================
# ADMIN ENDPOINTS
# =============================================================================

@app.get(
    "/api/admin/users/online",
    response_model=OnlineUsersResponse,
    tags=["Admin"],
)
async def online_users(realtime: RealtimeHub = Depends(get_realtime)) -> OnlineUsersResponse:
    """Staff user ids with a live realtime connection."""
    return OnlineUsersResponse(users=realtime.presence.list_online())


# =============================================================================
# REALTIME
# =============================================================================

@app.websocket("/ws")
async def realtime_socket(websocket: WebSocket) -> None:
    await serve_websocket(websocket, websocket.app.state.realtime)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(POSError)
async def pos_error_handler(request: Request, exc: POSError) -> JSONResponse:
    """Domain errors become structured responses; the process keeps running."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")

    detail = None
    if settings.debug and not isinstance(exc, TokenInvalid):
        detail = exc.detail

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message, detail=detail).model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
