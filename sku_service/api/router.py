from fastapi import APIRouter
from sku_service.api.http import health_router, skus_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(skus_router)
