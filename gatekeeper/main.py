# gatekeeper/main.py
"""
FastAPI application entry point.
Admin API for users, doors and the access event log, plus the MQTT
consumer that turns door hardware messages into access decisions.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from gatekeeper.routers import doors, events, health, users
from gatekeeper.database import SessionLocal, create_tables
from gatekeeper.config import settings
from gatekeeper.services.access_engine import AccessEngine
from gatekeeper.services.mqtt_bus import MQTTBus
from gatekeeper.utils.logger import get_logger
import time
import asyncio

logger = get_logger(__name__)

app = FastAPI(
    title="Gatekeeper Access Control API",
    description="Door access decisions over MQTT + admin API.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (admin dashboard origins) ──────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth for admin endpoints.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/health", "/api/admin/health", "/docs", "/redoc", "/openapi.json"}
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


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "db_error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(users.router,  prefix="/api/admin", tags=["Users"])
app.include_router(doors.router,  prefix="/api/admin", tags=["Doors"])
app.include_router(events.router, prefix="/api/admin", tags=["Events"])
app.include_router(health.router, prefix="/api/admin", tags=["Health"])
app.include_router(health.router, prefix="/api",       tags=["Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("Gatekeeper backend starting up...")
    create_tables()
    logger.info("Database tables ready")

    if not settings.ENABLE_MQTT_CONSUMER:
        logger.warning("MQTT consumer disabled: no access decisions will be made")
        return

    bus = MQTTBus()
    engine = AccessEngine.from_settings(SessionLocal, bus)
    bus.start(asyncio.get_running_loop(), engine.handle_message)
    app.state.mqtt_bus = bus
    app.state.access_engine = engine
    logger.info(
        f"MQTT consumer started: {settings.MQTT_BROKER_HOST}:{settings.MQTT_BROKER_PORT} "
        f"base='{settings.MQTT_TOPIC_BASE}' default_door={settings.DEFAULT_DOOR_ID}"
    )


@app.on_event("shutdown")
async def shutdown():
    logger.info("Gatekeeper backend shutting down...")
    bus = getattr(app.state, "mqtt_bus", None)
    if bus is not None:
        bus.stop()
    engine = getattr(app.state, "access_engine", None)
    if engine is not None:
        engine.close()
