from typing import Optional, List
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_, cast, exists, Integer, Text
from sqlalchemy.dialects.postgresql import ARRAY, array
from sqlalchemy.exc import IntegrityError
import uuid

from sku_service.core.db import store_errors
from sku_service.core.errors import InternalError, VersionConflictError
from sku_service.core.telemetry import traced
from sku_service.db.models.sku import Sku as SkuModel, SkuSequence as SkuSequenceModel
from sku_service.domains.skus.entities import Dimensions, Sku
from sku_service.domains.skus.schemas import SkuSearchCriteria


SORTABLE_FIELDS = {
    "created_at": SkuModel.created_at,
    "updated_at": SkuModel.updated_at,
    "name": SkuModel.name,
    "sku_code": SkuModel.sku_code,
    "category": SkuModel.category,
    "brand": SkuModel.brand,
    "status": SkuModel.status,
    "price": SkuModel.price,
}


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _present(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


class SkuRepository:
    """Репозиторий для работы с SKU"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @traced("repository.sku.create")
    async def create(self, sku: Sku) -> Sku:
        """Сохранение нового SKU"""
        db_sku = SkuModel(id=sku.id, sku_code=sku.sku_code, **self._values(sku))
        self.session.add(db_sku)
        with store_errors():
            await self.session.flush()
        return self._to_domain(db_sku)

    @traced("repository.sku.create_many")
    async def create_many(self, skus: List[Sku]) -> List[Sku]:
        """Сохранение нескольких SKU одной пачкой"""
        db_skus = [SkuModel(id=sku.id, sku_code=sku.sku_code, **self._values(sku)) for sku in skus]
        self.session.add_all(db_skus)
        with store_errors():
            await self.session.flush()
        return [self._to_domain(db_sku) for db_sku in db_skus]

    @traced("repository.sku.get_by_id")
    async def get_by_id(self, sku_id: uuid.UUID) -> Optional[Sku]:
        """Получение SKU по идентификатору"""
        return await self._fetch_one(select(SkuModel).where(SkuModel.id == sku_id))

    @traced("repository.sku.get_by_code")
    async def get_by_code(self, sku_code: str) -> Optional[Sku]:
        """Получение SKU по внешнему коду"""
        return await self._fetch_one(select(SkuModel).where(SkuModel.sku_code == sku_code))

    @traced("repository.sku.get_by_upc")
    async def get_by_upc(self, upc: str) -> Optional[Sku]:
        """Получение SKU по UPC"""
        return await self._fetch_one(select(SkuModel).where(SkuModel.upc == upc))

    @traced("repository.sku.exists_by_upc")
    async def exists_by_upc(self, upc: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
        """Проверка занятости UPC (исключая сам обновляемый SKU)"""
        stmt = select(SkuModel.id).where(SkuModel.upc == upc)
        if exclude_id is not None:
            stmt = stmt.where(SkuModel.id != exclude_id)
        result = await self._execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    @traced("repository.sku.list")
    async def list(
        self,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "created_at",
        direction: str = "desc",
    ) -> List[Sku]:
        """Страница всех SKU"""
        return await self._fetch_page(select(SkuModel), limit, offset, sort_by, direction)

    @traced("repository.sku.count")
    async def count(self) -> int:
        result = await self._execute(select(func.count(SkuModel.id)))
        return result.scalar()

    @traced("repository.sku.find_by_filters")
    async def find_by_filters(
        self,
        category: Optional[str] = None,
        status: Optional[str] = None,
        brand: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "created_at",
        direction: str = "desc",
    ) -> List[Sku]:
        """Фильтрация по точным значениям и диапазону цены"""
        criteria = SkuSearchCriteria(
            category=category, status=status, brand=brand, min_price=min_price, max_price=max_price
        )
        return await self.search(criteria, limit, offset, sort_by, direction)

    @traced("repository.sku.count_by_filters")
    async def count_by_filters(
        self,
        category: Optional[str] = None,
        status: Optional[str] = None,
        brand: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
    ) -> int:
        criteria = SkuSearchCriteria(
            category=category, status=status, brand=brand, min_price=min_price, max_price=max_price
        )
        return await self.count_search(criteria)

    @traced("repository.sku.search")
    async def search(
        self,
        criteria: SkuSearchCriteria,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "name",
        direction: str = "asc",
    ) -> List[Sku]:
        """Поиск SKU по критериям"""
        stmt = select(SkuModel).where(*self._conditions(criteria))
        return await self._fetch_page(stmt, limit, offset, sort_by, direction)

    @traced("repository.sku.count_search")
    async def count_search(self, criteria: SkuSearchCriteria) -> int:
        """Подсчет результатов поиска"""
        result = await self._execute(
            select(func.count(SkuModel.id)).where(*self._conditions(criteria))
        )
        return result.scalar()

    @traced("repository.sku.update")
    async def update(self, sku: Sku) -> Sku:
        """
        Обновление с оптимистической блокировкой: строка меняется только
        если ее версия совпадает с прочитанной, версия растет на единицу.
        """
        values = self._values(sku)
        values["version"] = SkuModel.version + 1
        stmt = (
            update(SkuModel)
            .where(SkuModel.id == sku.id, SkuModel.version == sku.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        if result.rowcount == 0:
            raise VersionConflictError(
                f"SKU {sku.sku_code} was modified concurrently; reload and retry"
            )
        sku.version += 1
        return sku

    @traced("repository.sku.next_sequence")
    async def next_sequence(self, prefix: str) -> int:
        """
        Следующий номер в последовательности префикса. Строка счетчика
        блокируется до конца транзакции; при первом обращении счетчик
        засевается максимальным номером среди существующих кодов.
        """
        for _ in range(3):
            counter = await self._locked_sequence(prefix)
            if counter is None:
                seed = await self.max_sequence_for_prefix(prefix)
                counter = SkuSequenceModel(prefix=prefix, last_value=seed)
                try:
                    async with self.session.begin_nested():
                        self.session.add(counter)
                except IntegrityError:
                    # счетчик успел создать параллельный запрос
                    continue
            counter.last_value += 1
            with store_errors():
                await self.session.flush()
            return counter.last_value

        raise InternalError(f"Could not allocate a sequence number for {prefix}")

    @traced("repository.sku.max_sequence_for_prefix")
    async def max_sequence_for_prefix(self, prefix: str) -> int:
        """Максимальный номер среди кодов вида PREFIX-NNNNNNN"""
        sequence = cast(func.substr(SkuModel.sku_code, len(prefix) + 2), Integer)
        result = await self._execute(
            select(func.coalesce(func.max(sequence), 0)).where(SkuModel.sku_code.like(f"{prefix}-%"))
        )
        return int(result.scalar() or 0)

    async def _locked_sequence(self, prefix: str) -> Optional[SkuSequenceModel]:
        result = await self._execute(
            select(SkuSequenceModel)
            .where(SkuSequenceModel.prefix == prefix)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _execute(self, stmt):
        with store_errors():
            return await self.session.execute(stmt)

    async def _fetch_one(self, stmt) -> Optional[Sku]:
        result = await self._execute(stmt.execution_options(populate_existing=True))
        db_sku = result.scalar_one_or_none()
        return self._to_domain(db_sku) if db_sku else None

    async def _fetch_page(self, stmt, limit: int, offset: int, sort_by: str, direction: str) -> List[Sku]:
        column = SORTABLE_FIELDS.get(sort_by, SkuModel.created_at)
        ordering = column.asc() if direction == "asc" else column.desc()
        result = await self._execute(
            stmt.order_by(ordering, SkuModel.id.asc())
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(db_sku) for db_sku in result.scalars().all()]

    def _conditions(self, criteria: SkuSearchCriteria) -> List:
        """Условия поиска; пустые строки игнорируются"""
        conditions = []

        if _present(criteria.query):
            pattern = _like_pattern(criteria.query.strip().lower())
            conditions.append(
                or_(
                    func.lower(SkuModel.name).like(pattern, escape="\\"),
                    func.lower(SkuModel.description).like(pattern, escape="\\"),
                )
            )

        if _present(criteria.category):
            conditions.append(SkuModel.category == criteria.category)

        if _present(criteria.subcategory):
            conditions.append(SkuModel.subcategory == criteria.subcategory)

        if _present(criteria.brand):
            conditions.append(SkuModel.brand == criteria.brand)

        if _present(criteria.status):
            conditions.append(SkuModel.status == criteria.status)

        if criteria.min_price is not None:
            conditions.append(SkuModel.price >= criteria.min_price)

        if criteria.max_price is not None:
            conditions.append(SkuModel.price <= criteria.max_price)

        tags = [tag for tag in (criteria.tags or []) if _present(tag)]
        if tags:
            conditions.append(self._any_tag(tags))

        return conditions

    def _any_tag(self, tags: List[str]):
        """Совпадение по любому из тегов среди элементов JSON-массива"""
        if self.session.get_bind().dialect.name == "postgresql":
            return SkuModel.tags.op("?|", is_comparison=True)(cast(array(tags), ARRAY(Text)))

        elements = func.json_each(SkuModel.tags).table_valued("value")
        return exists(
            select(elements.c.value)
            .select_from(elements)
            .where(elements.c.value.in_(tags))
            .correlate(SkuModel)
        )

    def _values(self, sku: Sku) -> dict:
        """Изменяемые колонки из доменной сущности"""
        dimensions = sku.dimensions or Dimensions()
        return {
            "upc": sku.upc,
            "name": sku.name,
            "description": sku.description,
            "brand": sku.brand,
            "category": sku.category,
            "subcategory": sku.subcategory,
            "price": sku.price,
            "cost": sku.cost,
            "unit_of_measure": sku.unit_of_measure,
            "quantity_per_unit": sku.quantity_per_unit,
            "weight": sku.weight,
            "dimension_length": dimensions.length,
            "dimension_width": dimensions.width,
            "dimension_height": dimensions.height,
            "status": sku.status,
            "tags": sku.tags,
            "attributes": sku.attributes,
            "created_at": sku.created_at,
            "updated_at": sku.updated_at,
            "version": sku.version,
        }

    def _to_domain(self, db_sku: SkuModel) -> Sku:
        """Преобразование модели БД в доменную сущность"""
        dimensions = Dimensions(
            length=db_sku.dimension_length,
            width=db_sku.dimension_width,
            height=db_sku.dimension_height,
        )
        return Sku(
            id=db_sku.id,
            sku_code=db_sku.sku_code,
            upc=db_sku.upc,
            name=db_sku.name,
            description=db_sku.description,
            brand=db_sku.brand,
            category=db_sku.category,
            subcategory=db_sku.subcategory,
            price=db_sku.price,
            cost=db_sku.cost,
            unit_of_measure=db_sku.unit_of_measure,
            quantity_per_unit=db_sku.quantity_per_unit,
            weight=db_sku.weight,
            dimensions=None if dimensions.is_empty() else dimensions,
            status=db_sku.status,
            tags=db_sku.tags,
            attributes=db_sku.attributes,
            created_at=db_sku.created_at,
            updated_at=db_sku.updated_at,
            version=db_sku.version,
        )
