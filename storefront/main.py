"""
Storefront API
Catalog, order workflow and user listing behind one FastAPI application
"""

from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from storefront.api import categories, orders, products, users
from storefront.api.errors import register_exception_handlers
from storefront.core import RequestLoggingMiddleware, ServiceHealth, get_logger, request_metrics, setup_logging
from storefront.core_settings import get_settings
from storefront.infrastructure import db

settings = get_settings()
SERVICE_DESCRIPTION = "Catalog, order and user API for the storefront"
PROJECT_ROOT = Path(__file__).resolve().parent.parent

setup_logging(
    service_name=settings.SERVICE_NAME,
    level=settings.LOG_LEVEL,
    environment=settings.ENVIRONMENT,
    version=settings.SERVICE_VERSION,
)

logger = get_logger(__name__)

def run_migrations():
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    command.upgrade(config, "head")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    logger.info(f"Starting {settings.SERVICE_NAME} version {settings.SERVICE_VERSION}")

    if settings.RUN_MIGRATIONS:
        try:
            logger.info("Running database migrations")
            run_migrations()
            logger.info("Database migrations completed")
        except Exception as e:
            logger.error(f"Migration error: {e}")

    try:
        db.init_models()
        logger.info("Database models initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database models: {e}")
        raise

    Path(settings.MEDIA_ROOT).mkdir(parents=True, exist_ok=True)
    logger.info(f"{settings.SERVICE_NAME} started successfully")

    yield

    logger.info(f"Shutting down {settings.SERVICE_NAME}")

app = FastAPI(
    title=settings.SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware, metrics=request_metrics)

register_exception_handlers(app)

health_service = ServiceHealth(
    settings.SERVICE_NAME,
    settings.SERVICE_VERSION,
    engine_provider=lambda: db.engine,
    media_root=settings.MEDIA_ROOT,
    request_metrics=request_metrics,
)
app.include_router(health_service.create_health_router())

app.include_router(categories.router)
app.include_router(products.router)
app.include_router(orders.router)
app.include_router(users.router)

if settings.MEDIA_BASE_URL.startswith("/"):
    app.mount(
        settings.MEDIA_BASE_URL,
        StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False),
        name="media",
    )

@app.get("/")
async def root():
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs"
    }

@app.get("/info")
async def info():
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "description": SERVICE_DESCRIPTION,
        "environment": settings.ENVIRONMENT,
        "endpoints": {
            "health": "/health",
            "ready": "/health/ready",
            "live": "/health/live",
            "metrics": "/metrics",
            "docs": "/api/docs"
        }
    }
