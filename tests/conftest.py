"""
Shared test fixtures for the SKU service tests.

This module provides:
- A migrated SQLite database per test (aiosqlite driver)
- Async sessions, repository and service fixtures
- A FastAPI TestClient wired to the test database
- In-memory OpenTelemetry exporters for span and metric assertions
"""
import asyncio
import os
from typing import Any, Dict, Optional

# Модули приложения читают настройки при импорте
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from sku_service.core.db import build_engine, build_sessionmaker, get_db
from sku_service.core.telemetry import Telemetry, set_telemetry
from sku_service.db.repositories.sku_repository import SkuRepository
from sku_service.domains.skus.schemas import SkuRequest
from sku_service.domains.skus.services import SkuService
from sku_service.infrastructure.migrator import run_migrations
from sku_service.main import app


# =============================================================================
# Request factories
# =============================================================================


def make_sku_payload(
    name: str = "2x4x8 Pressure Treated Lumber",
    category: str = "LBR",
    upc: Optional[str] = "012345678901",
    **overrides: Any,
) -> Dict[str, Any]:
    """JSON body for POST /api/v1/skus."""
    payload: Dict[str, Any] = {
        "upc": upc,
        "name": name,
        "description": "Ground contact pressure treated lumber",
        "brand": "WeatherShield",
        "category": category,
        "subcategory": "PRESSURE_TREATED",
        "price": 8.99,
        "cost": 5.50,
        "unit_of_measure": "EACH",
        "quantity_per_unit": 1,
        "weight": 12.5,
        "dimensions": {"length": 96.0, "width": 3.5, "height": 1.5},
        "tags": ["outdoor", "treated", "lumber"],
        "attributes": {"treatment_type": "ACQ", "grade": "#2"},
    }
    payload.update(overrides)
    return payload


def make_sku_request(**kwargs: Any) -> SkuRequest:
    return SkuRequest(**make_sku_payload(**kwargs))


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'skus.db'}"


@pytest.fixture
async def engine(database_url):
    await run_migrations(database_url)
    engine = build_engine(database_url)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def repository(session) -> SkuRepository:
    return SkuRepository(session)


@pytest.fixture
def service(session) -> SkuService:
    return SkuService(session)


# =============================================================================
# HTTP fixtures
# =============================================================================


@pytest.fixture
def client(database_url):
    """TestClient без lifespan: схема создается здесь, сессии идут в тестовую базу."""
    asyncio.run(run_migrations(database_url))
    engine = build_engine(database_url)
    factory = build_sessionmaker(engine)

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


@pytest.fixture
def created_sku(client) -> Dict[str, Any]:
    response = client.post("/api/v1/skus", json=make_sku_payload())
    assert response.status_code == 201
    return response.json()


# =============================================================================
# Telemetry fixtures
# =============================================================================


class TelemetryCapture:
    """Telemetry wired to in-memory exporters."""

    def __init__(self):
        self.span_exporter = InMemorySpanExporter()
        self.metric_reader = InMemoryMetricReader()
        tracer_provider = TracerProvider()
        tracer_provider.add_span_processor(SimpleSpanProcessor(self.span_exporter))
        meter_provider = MeterProvider(metric_readers=[self.metric_reader])
        self.telemetry = Telemetry(tracer_provider, meter_provider)

    def spans(self, name: Optional[str] = None):
        finished = self.span_exporter.get_finished_spans()
        return [span for span in finished if name is None or span.name == name]

    def data_points(self, metric_name: str):
        points = []
        data = self.metric_reader.get_metrics_data()
        if data is None:
            return points
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    if metric.name == metric_name:
                        points.extend(metric.data.data_points)
        return points


@pytest.fixture
def telemetry():
    capture = TelemetryCapture()
    set_telemetry(capture.telemetry)
    yield capture
    set_telemetry(None)