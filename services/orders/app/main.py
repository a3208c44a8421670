"""
Orders Microservice
Order placement, confirmation and shipping orchestration
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import os

from shared.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger, register_error_handlers
from .api.routes import router as orders_router
from .core_settings import get_settings
from .infrastructure.db import engine, init_models

# Service configuration
SERVICE_NAME = "order-service"
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "1.0.0")
SERVICE_DESCRIPTION = "Order orchestration microservice"

setup_logging(
    service_name=SERVICE_NAME,
    level=get_settings().LOG_LEVEL
)

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    settings = get_settings()
    logger.info(f"Starting {SERVICE_NAME} version {SERVICE_VERSION}")
    if settings.ORDER_CANCEL_ANY_STATUS:
        logger.warning("ORDER_CANCEL_ANY_STATUS is on: shipped and delivered orders can be cancelled")
    if not settings.M2M_TOKEN_URL:
        logger.warning("M2M_TOKEN_URL not set: only services that allow anonymous callers can be reached")

    try:
        init_models()
        logger.info("Database models initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database models: {e}")
        raise
    logger.info(f"{SERVICE_NAME} started successfully")

    yield

    logger.info(f"Shutting down {SERVICE_NAME}")

app = FastAPI(
    title=SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=SERVICE_VERSION,
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
app.add_middleware(RequestLoggingMiddleware)
register_error_handlers(app)

health_service = ServiceHealth(SERVICE_NAME, SERVICE_VERSION, engine=engine, required_tables=["orders"])
app.include_router(health_service.create_health_router())

app.include_router(orders_router)

@app.get("/")
async def root():
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs"
    }

@app.get("/info")
async def info():
    """Service information endpoint"""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "description": SERVICE_DESCRIPTION,
        "environment": os.getenv("ENVIRONMENT", "development"),
        "endpoints": {
            "health": "/health",
            "ready": "/health/ready",
            "live": "/health/live",
            "metrics": "/metrics",
            "docs": "/api/docs"
        }
    }
