from sku_service.db.models.sku import Sku, SkuSequence

__all__ = [
    "Sku",
    "SkuSequence",
]
