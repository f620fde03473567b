"""
TicketPay Booking API - Main Application Entry Point

Event ticket checkout with a PayU hosted-payment round-trip:
- Signed payment initiation and hash-verified gateway callbacks
- Idempotent reconciliation under duplicate callback delivery
- Single-use referral codes and promotional coupons
- Structured logging with request correlation, Prometheus metrics
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ticketpay.api.middleware import RequestLoggingMiddleware
from ticketpay.api.router import api_router
from ticketpay.api.routes import payments
from ticketpay.core.config import get_gateway_config, get_settings
from ticketpay.core.exceptions import TicketPayError
from ticketpay.core.logging import get_logger, setup_logging
from ticketpay.core.metrics import metrics_endpoint
from ticketpay.services.cache_service import close_redis, get_cache_stats, get_redis

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    # Built once here; handlers receive the same object through Depends.
    gateway = get_gateway_config()
    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        gateway=gateway.payment_url,
        merchant_key=gateway.merchant_key,
    )

    if await get_redis():
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without coupon cache")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Event ticket booking API with PayU payment reconciliation",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)
app.include_router(payments.router)


@app.exception_handler(TicketPayError)
async def ticketpay_error_handler(request: Request, exc: TicketPayError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": exc.message},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": await get_cache_stats(),
    }


@app.get("/metrics", include_in_schema=False)
def metrics():
    return metrics_endpoint()
