import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from sku_service.api.http.errors import register_exception_handlers
from sku_service.api.middleware import TelemetryMiddleware
from sku_service.api.router import api_router
from sku_service.core.config import settings
from sku_service.core.db import dispose_engine
from sku_service.core.logs import configure_logging
from sku_service.core.telemetry import setup_telemetry
from sku_service.infrastructure.migrator import run_migrations

logger = logging.getLogger(__name__)

API_TITLE = "SKU Management API"
API_DESCRIPTION = "API for managing Stock Keeping Units (SKUs) in the retail product catalog"
API_CONTACT = {"name": "Retail Platform Team", "email": "platform@retailer.com"}
API_LICENSE = {"name": "Proprietary", "url": "https://retailer.com/terms"}
API_EXTERNAL_DOCS = {"description": "SKU Service Documentation", "url": "https://docs.retailer.com/sku-service"}
API_SERVERS = [
    {"url": "http://localhost:8080", "description": "Local development"},
    {"url": "https://api.retailer.com", "description": "Production"},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Запуск: логирование, телеметрия, миграции. Остановка: пул и экспортеры"""
    configure_logging(settings.log_level)
    telemetry = setup_telemetry(
        settings.service_name,
        settings.service_version,
        otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        metric_export_interval_ms=settings.otel_metric_export_interval_ms,
    )
    if settings.run_migrations_on_startup:
        await run_migrations(settings.database_url)

    logger.info("%s %s started", settings.service_name, settings.service_version)
    yield

    await dispose_engine()
    telemetry.shutdown()
    logger.info("%s stopped", settings.service_name)


def build_openapi(app: FastAPI) -> dict:
    """OpenAPI-документ с метаданными сервиса"""
    if app.openapi_schema:
        return app.openapi_schema

    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        contact=API_CONTACT,
        license_info=API_LICENSE,
        servers=API_SERVERS,
    )
    schema["externalDocs"] = API_EXTERNAL_DOCS
    app.openapi_schema = schema
    return schema


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=settings.service_version,
        lifespan=lifespan,
    )

    app.add_middleware(TelemetryMiddleware)
    register_exception_handlers(app)

    # Подключаем роутеры
    app.include_router(api_router)

    @app.get("/", include_in_schema=False)
    async def root():
        """Корневой эндпоинт"""
        return {
            "message": API_TITLE,
            "version": settings.service_version,
            "docs": "/docs",
            "health": "/health",
        }

    app.openapi = lambda: build_openapi(app)
    return app


app = create_app()
