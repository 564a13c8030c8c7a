from sku_service.api.http.health import router as health_router
from sku_service.api.http.skus import router as skus_router

__all__ = [
    "health_router",
    "skus_router",
]
