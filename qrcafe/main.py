"""
FastAPI Application Entry Point

QR Cafe Ordering System - table-side ordering with a live staff board.

Endpoints:
    - POST /api/orders: Customer order submission
    - GET /api/orders: Staff snapshot of recent orders
    - GET /api/orders/{order_id}: Single order (staff)
    - PATCH /api/orders/{order_id}/status: Advance an order (staff)
    - GET /api/menu: Available menu items
    - POST /api/auth/login: Staff login
    - WS /ws/staff: Realtime order events for staff views
    - GET /health: System health check

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import sys
import json
import logging
from datetime import datetime
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from qrcafe.core.config import get_settings, setup_logging
from qrcafe.core.exceptions import AuthenticationError, OrderingError
from qrcafe.core.security import create_access_token, decode_access_token, require_staff
from qrcafe.database import get_db, init_db, engine, async_session_maker
from qrcafe.models import MenuItem, OrderStatus
from qrcafe.schemas import (
    OrderCreate,
    OrderEnvelope,
    OrderListResponse,
    OrderResponse,
    StatusUpdate,
    LoginRequest,
    LoginResponse,
    StaffIdentity,
    MenuResponse,
    MenuItemResponse,
    ErrorResponse,
    HealthResponse,
)
from qrcafe.services.auth import authenticate, ensure_admin_account
from qrcafe.services.lifecycle import OrderLifecycleEngine
from qrcafe.services.realtime import STAFF_ROOM, StaffConnection, get_broadcaster
from qrcafe.services.store import OrderStore

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

    await ensure_admin_account(async_session_maker)

    broadcaster = get_broadcaster()
    await broadcaster.start()
    logger.info(f"✅ Realtime fan-out: {broadcaster.provider_name}")

    if settings.use_redis_fanout:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Unsafe production config: {missing}")

    logger.info("✅ Application ready!")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await broadcaster.stop()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Table-side ordering: customers submit orders from a table code, "
        "staff follow and advance them on a live board."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_order_engine(db: AsyncSession = Depends(get_db)) -> OrderLifecycleEngine:
    """Lifecycle engine bound to the request's database session."""
    return OrderLifecycleEngine(OrderStore(db), get_broadcaster())


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"☕ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "menu": "/api/menu",
        "orders": "/api/orders",
        "staff_events": "/ws/staff",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify the database and realtime fan-out are operational."""

    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    broadcaster = get_broadcaster()
    realtime_status = "healthy" if await broadcaster.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, realtime_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        realtime=realtime_status,
        staff_connections=broadcaster.connection_count,
        timestamp=datetime.now(),
    )


# =============================================================================
# AUTH & MENU ENDPOINTS
# =============================================================================

@app.post(
    "/api/auth/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse}},
    tags=["Auth"],
    summary="Staff Login",
)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    account = await authenticate(db, credentials.username, credentials.password)
    if account is None:
        raise AuthenticationError("Invalid credentials")

    return LoginResponse(
        token=create_access_token(account.id, account.username),
        admin=StaffIdentity(id=account.id, username=account.username),
    )


@app.get(
    "/api/menu",
    response_model=MenuResponse,
    tags=["Menu"],
    summary="Available Menu Items",
)
async def list_menu(db: AsyncSession = Depends(get_db)) -> MenuResponse:
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.available.is_(True))
        .order_by(MenuItem.category, MenuItem.name)
    )
    return MenuResponse(
        menu_items=[MenuItemResponse.model_validate(item) for item in result.scalars().all()],
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    status_code=201,
    response_model=OrderEnvelope,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Submit Table Order",
)
async def create_order(
    order_data: OrderCreate,
    orders: OrderLifecycleEngine = Depends(get_order_engine),
) -> OrderEnvelope:
    """
    Submit the customer's cart as a new pending order.

    The total is recomputed from the line items; a submitted total that
    disagrees is rejected.
    """
    logger.info(f"Order submission from table {order_data.table_number}")

    order = await orders.create_order(
        customer_name=order_data.customer_name,
        customer_phone=order_data.customer_phone,
        table_number=order_data.table_number,
        line_items=order_data.line_items,
        notes=order_data.notes,
        client_total=order_data.total,
    )
    return OrderEnvelope(order=OrderResponse.model_validate(order))


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    responses={401: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Recent Orders (Staff)",
)
async def list_orders(
    limit: int = Query(settings.recent_orders_limit, ge=1, le=200),
    orders: OrderLifecycleEngine = Depends(get_order_engine),
    staff: dict = Depends(require_staff),
) -> OrderListResponse:
    """Newest orders first; staff views use this as their snapshot."""
    recent = await orders.list_recent(limit)
    return OrderListResponse(
        total=len(recent),
        orders=[OrderResponse.model_validate(order) for order in recent],
    )


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderEnvelope,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    orders: OrderLifecycleEngine = Depends(get_order_engine),
    staff: dict = Depends(require_staff),
) -> OrderEnvelope:
    order = await orders.get_order(order_id)
    return OrderEnvelope(order=OrderResponse.model_validate(order))


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=OrderEnvelope,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    tags=["Orders"],
    summary="Advance Order Status (Staff)",
)
async def update_order_status(
    order_id: str,
    update: StatusUpdate,
    orders: OrderLifecycleEngine = Depends(get_order_engine),
    staff: dict = Depends(require_staff),
) -> OrderEnvelope:
    logger.info(f"{staff.get('username')} requests {order_id} → {update.status.value}")
    order = await orders.transition(order_id, OrderStatus(update.status.value))
    return OrderEnvelope(order=OrderResponse.model_validate(order))


# =============================================================================
# STAFF REALTIME CHANNEL
# =============================================================================

@app.websocket("/ws/staff")
async def staff_events(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
) -> None:
    """
    Push order events to a staff view.

    The client sends ``{"type": "join-staff"}`` and gets a single
    ``joined`` acknowledgement; after that only server events flow.
    No history is replayed, views fetch GET /api/orders themselves.
    """
    try:
        claims = decode_access_token(token)
    except AuthenticationError:
        await websocket.close(code=4401)
        return

    await websocket.accept()

    broadcaster = get_broadcaster()
    connection = StaffConnection(
        websocket,
        max_pending=settings.staff_queue_size,
        username=claims.get("username"),
    )
    joined = False

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            raw = frame.get("text")
            if raw is None:
                logger.debug(f"Ignoring binary frame from {connection}")
                continue
            try:
                message = json.loads(raw)
            except ValueError:
                logger.debug(f"Ignoring non-JSON frame from {connection}")
                continue

            kind = message.get("type") if isinstance(message, dict) else None

            if kind == "join-staff" and not joined:
                await connection.send({"type": "joined", "room": STAFF_ROOM})
                broadcaster.register(connection)
                joined = True
            elif kind == "ping":
                connection.offer({"type": "pong"})
            else:
                logger.debug(f"Ignoring '{kind}' from {connection}")

    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.unregister(connection)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    """Render the ordering error taxonomy."""
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.error, detail=exc.message).model_dump(),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are user errors (400)."""
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="Validation failed", detail=problems).model_dump(),
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


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("qrcafe.main:app", host=settings.api_host, port=settings.api_port)
