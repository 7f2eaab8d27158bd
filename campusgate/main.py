# campusgate/main.py
"""
FastAPI application entry point.
Includes security middleware, error mapping, change tracking and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from campusgate.routers import movements, occupancy, visits, vendors, users, health, changes
from campusgate.database import SessionLocal, create_tables
from campusgate.config import settings
from campusgate.errors import GateAccessError
from campusgate.services.change_notifier import change_notifier, install_change_tracking
from campusgate.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Campus Gate Access API",
    description="Student, guest and vendor movements through the campus gate.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (gate terminals and dashboards on the campus LAN) ───────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(GateAccessError)
async def gate_error_handler(request: Request, exc: GateAccessError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.kind} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "ValidationError", "detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(movements.router, prefix="/api/v1", tags=["🚶 Movements"])
app.include_router(occupancy.router, prefix="/api/v1", tags=["🏫 Occupancy"])
app.include_router(visits.router,    prefix="/api/v1", tags=["🎫 Guest Visits"])
app.include_router(vendors.router,   prefix="/api/v1", tags=["🚚 Vendors"])
app.include_router(users.router,     prefix="/api/v1", tags=["👤 Directory"])
app.include_router(changes.router,   prefix="/api/v1", tags=["🔄 Changes"])
app.include_router(health.router,    prefix="/api/v1", tags=["💚 Health"])

# Every committed write through the app's sessions feeds the change debouncer
install_change_tracking(SessionLocal, change_notifier)


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Campus gate backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    change_notifier.attach()
    logger.info(f"🔄 Change feed debounce: {settings.CHANGE_DEBOUNCE_MS}ms")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    change_notifier.detach()
    logger.info("🛑 Campus gate backend shutting down...")
