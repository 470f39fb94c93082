"""
FastAPI Application Entry Point

OrderDesk - multi-tenant restaurant ordering backend.
Supports both Mock services (development) and Real APIs (production).

Endpoints:
    - /api/public/{slug}/menu, /api/orders, /api/checkout: storefront
    - /api/orders/status, /api/orders/status-check, /api/orders/{id}/stream: tracking
    - /api/webhooks/stripe: payment events
    - /api/auth/*: staff sessions
    - /api/admin/*: dashboard, menu, store and reports
    - GET /health: System health check

Run:
    uvicorn orderdesk.main:create_app --factory --reload
    python -m orderdesk.main
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from orderdesk import __version__
from orderdesk.api import ROUTERS
from orderdesk.core.config import Settings, get_settings, setup_logging
from orderdesk.database import Database
from orderdesk.exceptions import OrderDeskError
from orderdesk.models import utcnow
from orderdesk.schemas import HealthResponse
from orderdesk.services.cache import BaseViewCache, create_view_cache
from orderdesk.services.fanout import StatusFanout
from orderdesk.services.payment import BasePaymentService, create_payment_service
from orderdesk.services.realtime import BaseRealtimeService, create_realtime_service

logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    settings: Settings = app.state.settings

    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {__version__}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await app.state.database.create_all()
    logger.info("✅ Database initialized")

    logger.info(f"✅ Payment Service: {app.state.payment_service.provider_name}")
    logger.info(f"✅ Realtime: {type(app.state.realtime).__name__}")
    logger.info(f"✅ View cache: {type(app.state.cache).__name__}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await app.state.realtime.close()
    await app.state.cache.close()
    await app.state.database.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    payment_service: Optional[BasePaymentService] = None,
    realtime: Optional[BaseRealtimeService] = None,
    cache: Optional[BaseViewCache] = None,
) -> FastAPI:
    """
    Build the application with its collaborators on app.state.

    Anything not passed in is built from settings, so tests can swap in
    in-memory services and a throwaway database.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Multi-tenant restaurant ordering: storefront API, Stripe checkout, "
            "webhook-driven order status and live status fan-out."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    realtime = realtime or create_realtime_service(settings)

    app.state.settings = settings
    app.state.database = database or Database(settings.database_url, echo=settings.database_echo)
    app.state.payment_service = payment_service or create_payment_service(settings)
    app.state.realtime = realtime
    app.state.cache = cache or create_view_cache(settings)
    app.state.fanout = StatusFanout(realtime)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in ROUTERS:
        app.include_router(router)

    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        response_model=HealthResponse,
        tags=["Health"],
        summary="System Health Check",
    )
    register_exception_handlers(app)

    return app


# =============================================================================
# HEALTH
# =============================================================================

async def health_check(request: Request) -> HealthResponse:
    """Verify all system components are operational."""
    state = request.app.state

    db_status = "healthy"
    try:
        async with state.database.session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    realtime_status = "healthy" if await state.realtime.health_check() else "unhealthy"
    payment_status = "healthy" if await state.payment_service.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, realtime_status, payment_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        realtime=realtime_status,
        payment_service=payment_status,
        timestamp=utcnow(),
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    settings: Settings = app.state.settings

    @app.exception_handler(OrderDeskError)
    async def orderdesk_exception_handler(request: Request, exc: OrderDeskError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{exc.error} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message, "detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": first,
                "detail": "; ".join(
                    f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in errors
                ),
            },
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

    _settings = get_settings()
    uvicorn.run(
        "orderdesk.main:create_app", factory=True, host=_settings.api_host, port=_settings.api_port
    )
