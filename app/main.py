import logging
import os
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import admin, cards, orders
from app.config import settings
from app.db_init import init_db, seed_card_pool
from app.models.database import SessionLocal
from app.services.errors import CardInventoryError
from app.services.expiry_sweeper import ExpirySweeper

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("app.startup")


def _is_localhost(host: str | None) -> bool:
    return host in {"localhost", "127.0.0.1"}


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def _strip_wrapping_quotes(value: str) -> str:
    stripped = value.strip()
    if len(stripped) >= 2 and stripped[0] == stripped[-1] and stripped[0] in {"'", '"'}:
        return stripped[1:-1].strip()
    return stripped


def _get_effective_cors_origins(cors_raw: str) -> list[str]:
    return [_strip_wrapping_quotes(origin) for origin in cors_raw.split(",") if origin.strip()]


def _is_railway_runtime() -> bool:
    return any(
        os.getenv(env_name)
        for env_name in (
            "RAILWAY_PROJECT_ID",
            "RAILWAY_SERVICE_ID",
            "RAILWAY_ENVIRONMENT",
            "RAILWAY_ENVIRONMENT_NAME",
            "RAILWAY_PUBLIC_DOMAIN",
        )
    )


def _validate_database_url_for_runtime(database_url: str) -> None:
    parsed = urlparse(database_url)
    scheme = parsed.scheme
    host = parsed.hostname
    db_name = parsed.path.lstrip("/")
    postgres_schemes = {"postgres", "postgresql", "postgresql+psycopg"}

    if not scheme:
        raise RuntimeError("DATABASE_URL is missing URL scheme (expected postgresql:// or postgresql+psycopg://).")
    if scheme == "sqlite":
        return
    if scheme not in postgres_schemes:
        raise RuntimeError(
            f"DATABASE_URL has unsupported scheme '{scheme}' "
            "(expected postgresql:// or postgresql+psycopg://)."
        )
    if not host:
        raise RuntimeError("DATABASE_URL is missing host.")
    if not db_name:
        raise RuntimeError("DATABASE_URL is missing database name in path.")
    if _is_railway_runtime() and _is_localhost(host):
        raise RuntimeError(
            "Invalid DATABASE_URL for Railway runtime: host is localhost/127.0.0.1 "
            f"(host={host}, database={db_name}). "
            "Use Railway Postgres reference, e.g. DATABASE_URL=${{Postgres.DATABASE_URL}}."
        )


def _db_url_diagnostics(database_url: str) -> str:
    parsed = urlparse(database_url)
    host = parsed.hostname or "<missing>"
    port = parsed.port or "<missing>"
    db_name = parsed.path.lstrip("/") or "<missing>"
    scheme = parsed.scheme or "<missing>"

    tips = []
    if _is_localhost(host):
        tips.append("Host points to localhost; in Railway use Postgres service reference in DATABASE_URL.")
    if scheme in {"postgres", "postgresql"}:
        tips.append("URL scheme is fine; app normalizes it to postgresql+psycopg internally.")
    if scheme == "sqlite":
        tips.append("SQLite serializes all writers; use PostgreSQL for concurrent card reservations.")
    if not tips:
        tips.append("URL structure looks valid; check network access, DB credentials, and DB service status.")

    return f"scheme={scheme}, host={host}, port={port}, database={db_name}; tips={' | '.join(tips)}"


def _validate_required_env_for_runtime() -> None:
    errors = []
    is_railway = _is_railway_runtime()

    jwt_secret = settings.JWT_SECRET.strip()
    if not jwt_secret:
        errors.append("JWT_SECRET is required.")
    elif is_railway and jwt_secret == "change-me-in-production":
        errors.append(
            "JWT_SECRET uses insecure default value in Railway runtime. "
            "Set JWT_SECRET in Railway Variables."
        )

    origins = _get_effective_cors_origins(settings.CORS_ORIGINS)
    if not origins:
        errors.append("CORS_ORIGINS must contain at least one comma-separated origin URL.")
    else:
        invalid_origins = [origin for origin in origins if not _is_http_url(origin)]
        if invalid_origins:
            errors.append(f"CORS_ORIGINS contains invalid URL(s): {', '.join(invalid_origins)}")

    if settings.RESERVATION_TTL_MINUTES <= 0:
        errors.append("RESERVATION_TTL_MINUTES must be positive.")
    elif settings.RESERVATION_TTL_MINUTES > settings.MAX_RESERVATION_TTL_MINUTES:
        errors.append("RESERVATION_TTL_MINUTES must not exceed MAX_RESERVATION_TTL_MINUTES.")
    if settings.MAX_CARDS_PER_BUYER <= 0:
        errors.append("MAX_CARDS_PER_BUYER must be positive.")

    if errors:
        raise RuntimeError("Startup environment validation failed: " + " | ".join(errors))


@asynccontextmanager
async def lifespan(app: FastAPI):
    database_url = "<unavailable>"
    logger.info("Application startup initiated.")
    try:
        database_url = settings.DATABASE_URL
        logger.info("DATABASE_URL diagnostics at startup: %s", _db_url_diagnostics(database_url))
        _validate_database_url_for_runtime(database_url)
        _validate_required_env_for_runtime()
        init_db()
    except Exception as exc:
        diagnostics = (
            _db_url_diagnostics(database_url)
            if database_url != "<unavailable>"
            else "DATABASE_URL unavailable (missing or unreadable)."
        )
        logger.exception(
            "Database initialization failed: %s. DATABASE_URL diagnostics: %s",
            str(exc),
            diagnostics,
        )
        raise

    if settings.SEED_CARD_POOL:
        db = SessionLocal()
        try:
            seed_card_pool(db, settings.CARD_POOL_SIZE)
        finally:
            db.close()

    sweeper = None
    if settings.RESERVATION_SWEEP_INTERVAL_SECONDS > 0:
        sweeper = ExpirySweeper(SessionLocal, settings.RESERVATION_SWEEP_INTERVAL_SECONDS)
        sweeper.start()

    logger.info("Application startup completed successfully.")
    yield

    if sweeper is not None:
        await sweeper.stop()


app = FastAPI(
    title="Bingo Cards API",
    description=(
        "Card inventory for bingo games: browse available cards, reserve them during checkout, "
        "confirm purchases. Admin endpoints require a bearer token with the `admin` role."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Cards", "description": "Browse, reserve, purchase and release cards."},
        {"name": "Orders", "description": "A buyer's purchase orders."},
        {"name": "Admin", "description": "Inventory management and payment review (requires admin token)."},
    ],
)


@app.exception_handler(CardInventoryError)
async def card_inventory_error_handler(request: Request, exc: CardInventoryError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_effective_cors_origins(settings.CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(cards.router, prefix="/api/cards", tags=["Cards"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.get("/")
def root():
    return {"status": "ok", "service": "Bingo Cards API"}


@app.get("/health")
def health():
    return {"status": "ok"}
