"""
Parcel Server - Main FastAPI Application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy import text

from parcel_server.core.auth import build_token_verifier
from parcel_server.core.config import settings
from parcel_server.core.logging import setup_logging, get_logger
from parcel_server.core.middleware import setup_middleware, setup_exception_handlers
from parcel_server.api.routes import router as api_router
from parcel_server.db.database import engine, Base
from parcel_server.domain.services.payment_gateway import build_payment_gateway

# Setup logging before anything else
setup_logging(
    level="DEBUG" if settings.DEBUG else "INFO",
    json_format=not settings.DEBUG,
    app_name=settings.APP_NAME
)

logger = get_logger(__name__)


def _parse_allowed_origins(raw: str) -> list[str]:
    """Parse comma-separated CORS origins string into a clean list."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


_OPENAPI_TAGS = [
    {"name": "parcels", "description": "Parcel submission, lookup and deletion."},
    {"name": "payments", "description": "Payment intents and the atomic payment ledger."},
    {"name": "trackings", "description": "Append-only parcel tracking events."},
    {"name": "users", "description": "User accounts, roles and search."},
    {"name": "riders", "description": "Rider applications and approval."},
    {"name": "Health", "description": "Liveness and readiness probes."},
]


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Courier backend: parcels, payments, tracking, users and rider onboarding.",
    openapi_tags=_OPENAPI_TAGS,
)

# External collaborators, built once and shared by every request
app.state.token_verifier = build_token_verifier(settings)
app.state.payment_gateway = build_payment_gateway(settings)

setup_middleware(app)
setup_exception_handlers(app)

allowed_origins = _parse_allowed_origins(settings.ALLOWED_ORIGINS)

if not allowed_origins and settings.DEBUG:
    allowed_origins = [
        "http://localhost",
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Correlation-ID"],
    )

app.include_router(api_router)


@app.on_event("startup")
async def startup() -> None:
    """Initialize database tables on startup"""
    logger.info(
        "Starting application",
        extra_data={"app_name": settings.APP_NAME, "auth_mode": settings.AUTH_MODE}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


@app.on_event("shutdown")
async def shutdown() -> None:
    """Cleanup on shutdown"""
    logger.info("Shutting down application")
    await engine.dispose()
    logger.info("Database connections disposed")


@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root() -> str:
    return "Parcel server is running!"


@app.get(
    "/health",
    summary="Liveness probe",
    description="The process is up. Does not touch the database.",
    tags=["Health"],
)
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@app.get(
    "/health/ready",
    summary="Readiness probe",
    description="Checks that the database answers a trivial query.",
    responses={
        200: {"description": "Database reachable"},
        503: {"description": "Database unreachable"},
    },
    tags=["Health"],
)
async def readiness_check():
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Readiness check failed", extra_data={"error": str(e)}, exc_info=True)
        return JSONResponse(status_code=503, content={"status": "degraded", "db": "error"})
    return {"status": "healthy", "db": "ok"}
