from sku_service.db.repositories.sku_repository import SkuRepository

__all__ = [
    "SkuRepository",
]
