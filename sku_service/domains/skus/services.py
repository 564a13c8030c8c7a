import logging
import math
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from sku_service.core.config import settings
from sku_service.core.db import unit_of_work
from sku_service.core.errors import DuplicateSkuError, SkuNotFoundError, ValidationError
from sku_service.core.telemetry import current_span, traced
from sku_service.db.repositories.sku_repository import SkuRepository
from sku_service.domains.skus.entities import CATEGORY_CODES, Sku
from sku_service.domains.skus.schemas import SkuRequest, SkuSearchCriteria, SkuUpdateRequest

logger = logging.getLogger(__name__)


def page_count(total: int, per_page: int) -> int:
    return math.ceil(total / per_page) if per_page else 0


class SkuService:
    """Сервис для работы с SKU"""

    def __init__(
        self,
        session: AsyncSession,
        retailer_prefix: Optional[str] = None,
        max_batch_size: Optional[int] = None,
    ):
        self.session = session
        self.sku_repository = SkuRepository(session)
        self.retailer_prefix = retailer_prefix or settings.sku_retailer_prefix
        self.max_batch_size = max_batch_size or settings.max_batch_size

    @traced("sku.create")
    async def create_sku(self, request: SkuRequest, actor: Optional[str] = None) -> Sku:
        """Создание нового SKU"""
        span = current_span()
        span.set_attribute("sku.category", request.category)
        if request.brand:
            span.set_attribute("sku.brand", request.brand)

        async with unit_of_work(self.session):
            if request.upc and await self.sku_repository.exists_by_upc(request.upc):
                raise DuplicateSkuError(f"SKU with UPC {request.upc} already exists")

            sku_code = await self._next_code(request.category)
            sku = Sku.create_sku(sku_code, request.to_fields())
            created_sku = await self.sku_repository.create(sku)

        span.set_attribute("sku.code", created_sku.sku_code)
        span.add_event("sku.persisted", {"sku.id": str(created_sku.id)})
        logger.info("Created SKU with code: %s (by %s)", created_sku.sku_code, actor or "system")
        return created_sku

    @traced("sku.batch.create")
    async def create_skus_batch(self, requests: List[SkuRequest], actor: Optional[str] = None) -> List[Sku]:
        """
        Пакетное создание SKU: либо создаются все, либо ни одного.
        UPC проверяются и внутри пакета, и против уже сохраненных SKU.
        """
        current_span().set_attribute("batch.size", len(requests))

        if not requests:
            raise ValidationError("Batch must contain at least one SKU")
        if len(requests) > self.max_batch_size:
            raise ValidationError(f"Batch size cannot exceed {self.max_batch_size}")

        seen_upcs = set()
        for request in requests:
            if not request.upc:
                continue
            if request.upc in seen_upcs:
                raise DuplicateSkuError(f"Duplicate UPC in batch: {request.upc}")
            seen_upcs.add(request.upc)

        async with unit_of_work(self.session):
            skus = []
            for request in requests:
                if request.upc and await self.sku_repository.exists_by_upc(request.upc):
                    raise DuplicateSkuError(f"SKU with UPC {request.upc} already exists")
                sku_code = await self._next_code(request.category)
                skus.append(Sku.create_sku(sku_code, request.to_fields()))

            created_skus = await self.sku_repository.create_many(skus)

        logger.info("Created batch of %d SKUs (by %s)", len(created_skus), actor or "system")
        return created_skus

    @traced("sku.get")
    async def get_sku_by_id(self, sku_id: uuid.UUID) -> Sku:
        """Получение SKU по идентификатору"""
        sku = await self.sku_repository.get_by_id(sku_id)
        if not sku:
            raise SkuNotFoundError(f"SKU not found with id: {sku_id}")
        return sku

    @traced("sku.get.code")
    async def get_sku_by_code(self, sku_code: str) -> Sku:
        """Получение SKU по коду"""
        sku = await self.sku_repository.get_by_code(sku_code)
        if not sku:
            raise SkuNotFoundError(f"SKU not found with code: {sku_code}")
        return sku

    @traced("sku.get.upc")
    async def get_sku_by_upc(self, upc: str) -> Sku:
        """Получение SKU по UPC"""
        sku = await self.sku_repository.get_by_upc(upc)
        if not sku:
            raise SkuNotFoundError(f"SKU not found with UPC: {upc}")
        return sku

    @traced("sku.list")
    async def list_skus(
        self,
        page: int = 1,
        per_page: int = 20,
        sort_by: str = "created_at",
        direction: str = "desc",
    ) -> Tuple[List[Sku], int]:
        """Страница всех SKU и общее количество"""
        skus = await self.sku_repository.list(
            limit=per_page, offset=(page - 1) * per_page, sort_by=sort_by, direction=direction
        )
        total = await self.sku_repository.count()
        return skus, total

    @traced("sku.filter")
    async def filter_skus(
        self,
        category: Optional[str] = None,
        status: Optional[str] = None,
        brand: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        page: int = 1,
        per_page: int = 20,
        sort_by: str = "created_at",
        direction: str = "desc",
    ) -> Tuple[List[Sku], int]:
        """Фильтрация SKU"""
        self._check_price_range(min_price, max_price)
        skus = await self.sku_repository.find_by_filters(
            category=category,
            status=status,
            brand=brand,
            min_price=min_price,
            max_price=max_price,
            limit=per_page,
            offset=(page - 1) * per_page,
            sort_by=sort_by,
            direction=direction,
        )
        total = await self.sku_repository.count_by_filters(
            category=category, status=status, brand=brand, min_price=min_price, max_price=max_price
        )
        return skus, total

    @traced("sku.search")
    async def search_skus(
        self,
        criteria: SkuSearchCriteria,
        page: int = 1,
        per_page: int = 20,
        sort_by: str = "name",
        direction: str = "asc",
    ) -> Tuple[List[Sku], int]:
        """Поиск SKU по критериям"""
        self._check_price_range(criteria.min_price, criteria.max_price)
        skus = await self.sku_repository.search(
            criteria, limit=per_page, offset=(page - 1) * per_page, sort_by=sort_by, direction=direction
        )
        total = await self.sku_repository.count_search(criteria)
        return skus, total

    @traced("sku.update")
    async def update_sku(
        self,
        sku_id: uuid.UUID,
        request: SkuRequest,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Sku:
        """Полная замена изменяемых полей SKU"""
        current_span().set_attribute("sku.id", str(sku_id))

        async with unit_of_work(self.session):
            sku = await self._load_for_change(sku_id, expected_version)
            if request.upc and request.upc != sku.upc:
                await self._ensure_upc_free(request.upc, sku.id)

            sku.replace_fields(request.to_fields())
            updated_sku = await self.sku_repository.update(sku)

        logger.info("Updated SKU: %s to version %d (by %s)", updated_sku.sku_code, updated_sku.version, actor or "system")
        return updated_sku

    @traced("sku.partial.update")
    async def partial_update_sku(
        self,
        sku_id: uuid.UUID,
        request: SkuUpdateRequest,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Sku:
        """Частичное обновление SKU"""
        current_span().set_attribute("sku.id", str(sku_id))

        async with unit_of_work(self.session):
            sku = await self._load_for_change(sku_id, expected_version)
            if request.upc and request.upc != sku.upc:
                await self._ensure_upc_free(request.upc, sku.id)

            sku.apply_changes(request.to_changes())
            updated_sku = await self.sku_repository.update(sku)

        logger.info("Partially updated SKU: %s to version %d (by %s)", updated_sku.sku_code, updated_sku.version, actor or "system")
        return updated_sku

    @traced("sku.delete")
    async def delete_sku(
        self,
        sku_id: uuid.UUID,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Sku:
        """Мягкое удаление: SKU получает статус DISCONTINUED"""
        span = current_span()
        span.set_attribute("sku.id", str(sku_id))

        async with unit_of_work(self.session):
            sku = await self.sku_repository.get_by_id(sku_id)
            if not sku:
                raise SkuNotFoundError(f"SKU not found with id: {sku_id}")
            sku.check_version(expected_version)

            if not sku.discontinue():
                logger.info("SKU %s is already discontinued", sku.sku_code)
                return sku
            deleted_sku = await self.sku_repository.update(sku)

        span.add_event("sku.soft.deleted", {"sku.code": deleted_sku.sku_code})
        logger.info("Soft deleted SKU: %s (by %s)", deleted_sku.sku_code, actor or "system")
        return deleted_sku

    @traced("sku.categories")
    async def categories(self) -> Dict[str, str]:
        """Известные коды категорий"""
        return dict(CATEGORY_CODES)

    async def _next_code(self, category: str) -> str:
        prefix = Sku.code_prefix(self.retailer_prefix, category)
        sequence = await self.sku_repository.next_sequence(prefix)
        return Sku.build_code(prefix, sequence)

    async def _load_for_change(self, sku_id: uuid.UUID, expected_version: Optional[int]) -> Sku:
        sku = await self.sku_repository.get_by_id(sku_id)
        if not sku:
            raise SkuNotFoundError(f"SKU not found with id: {sku_id}")
        sku.check_version(expected_version)
        sku.ensure_mutable()
        return sku

    async def _ensure_upc_free(self, upc: str, sku_id: uuid.UUID) -> None:
        if await self.sku_repository.exists_by_upc(upc, exclude_id=sku_id):
            raise DuplicateSkuError(f"SKU with UPC {upc} already exists")

    @staticmethod
    def _check_price_range(min_price: Optional[Decimal], max_price: Optional[Decimal]) -> None:
        if min_price is not None and max_price is not None and min_price > max_price:
            raise ValidationError(
                "min_price cannot be greater than max_price",
                errors={"min_price": "must not exceed max_price"},
            )
