from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import logging
import uuid

from . import __version__
from .config import settings
from .database import create_tables
from .utils.errors import register_exception_handlers, error_body
from .utils.logging_config import setup_logging, set_request_context, clear_request_context
from .utils.rate_limiter import limiter

from .routers import cron, admin, deposit, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(level=settings.log_level, json_format=settings.log_json)
    logger.info(f"Starting venue-backend ({settings.environment})")
    
    create_tables()
    
    if not settings.cron_secret:
        logger.warning("CRON_SECRET is not set; scheduler endpoints will refuse every call")
    if not settings.admin_allowed_domain:
        logger.warning("ADMIN_ALLOWED_DOMAIN is not set; admin endpoints will refuse every call")
    
    yield
    
    logger.info("Shutting down venue-backend")


app = FastAPI(
    title="Venue Reservation Backend",
    description="Booking lifecycle, notifications and deposit evidence access",
    version=__version__,
    lifespan=lifespan
)

# Rate limiter state
app.state.limiter = limiter


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


# Add other middleware AFTER CORS
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)


# Rate limit handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content=error_body("RATE_LIMIT_EXCEEDED", "Too many requests, try again later",
                           getattr(request.state, "request_id", None)),
    )


# Include routers
app.include_router(cron.router)
app.include_router(admin.router)
app.include_router(deposit.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {
        "message": "Venue Reservation Backend",
        "version": __version__,
        "docs": "/docs",
        "status": "running",
    }
