import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sku_service.core.errors import ConflictError, VersionConflictError


# Коды категорий товаров
CATEGORY_CODES: Dict[str, str] = {
    "LBR": "Lumber & Building Materials",
    "PLB": "Plumbing",
    "ELC": "Electrical",
    "HRD": "Hardware",
    "PNT": "Paint",
    "GAR": "Garden & Outdoor",
    "APL": "Appliances",
    "FLR": "Flooring",
    "KIT": "Kitchen & Bath",
    "TOL": "Tools",
}

SEQUENCE_DIGITS = 7


class SkuStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DISCONTINUED = "DISCONTINUED"


@dataclass
class Dimensions:
    """Габариты товара в дюймах"""
    length: Optional[Decimal] = None
    width: Optional[Decimal] = None
    height: Optional[Decimal] = None

    def is_empty(self) -> bool:
        return self.length is None and self.width is None and self.height is None


# Поля, которые клиент может менять
MUTABLE_FIELDS = (
    "upc",
    "name",
    "description",
    "brand",
    "category",
    "subcategory",
    "price",
    "cost",
    "unit_of_measure",
    "quantity_per_unit",
    "weight",
    "dimensions",
    "tags",
    "attributes",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Sku:
    """Сущность SKU (складской учетной единицы)"""

    def __init__(
        self,
        id: uuid.UUID,
        sku_code: str,
        name: str,
        category: str,
        upc: Optional[str] = None,
        description: Optional[str] = None,
        brand: Optional[str] = None,
        subcategory: Optional[str] = None,
        price: Optional[Decimal] = None,
        cost: Optional[Decimal] = None,
        unit_of_measure: Optional[str] = None,
        quantity_per_unit: Optional[int] = None,
        weight: Optional[Decimal] = None,
        dimensions: Optional[Dimensions] = None,
        status: str = SkuStatus.ACTIVE.value,
        tags: Optional[List[str]] = None,
        attributes: Optional[Dict[str, str]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        version: int = 1,
    ):
        self.id = id
        self.sku_code = sku_code
        self.upc = upc
        self.name = name
        self.description = description
        self.brand = brand
        self.category = category
        self.subcategory = subcategory
        self.price = price
        self.cost = cost
        self.unit_of_measure = unit_of_measure
        self.quantity_per_unit = quantity_per_unit
        self.weight = weight
        self.dimensions = dimensions
        self.status = status
        self.tags = tags
        self.attributes = attributes
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or self.created_at
        self.version = version

    @classmethod
    def create_sku(cls, sku_code: str, fields: Dict[str, Any]) -> "Sku":
        """Создание нового SKU со статусом ACTIVE"""
        values = {name: fields.get(name) for name in MUTABLE_FIELDS}
        return cls(
            id=uuid.uuid4(),
            sku_code=sku_code,
            status=SkuStatus.ACTIVE.value,
            version=1,
            **values,
        )

    @staticmethod
    def code_prefix(retailer_prefix: str, category: str) -> str:
        return f"{retailer_prefix}-{category}"

    @staticmethod
    def build_code(prefix: str, sequence: int) -> str:
        """THD-LBR + 12 -> THD-LBR-0000012"""
        return f"{prefix}-{sequence:0{SEQUENCE_DIGITS}d}"

    @property
    def is_discontinued(self) -> bool:
        return self.status == SkuStatus.DISCONTINUED.value

    def check_version(self, expected_version: Optional[int]) -> None:
        """Проверка ожидаемой версии (If-Match)"""
        if expected_version is not None and expected_version != self.version:
            raise VersionConflictError(
                f"SKU {self.sku_code} is at version {self.version}, expected {expected_version}"
            )

    def ensure_mutable(self) -> None:
        if self.is_discontinued:
            raise ConflictError(f"SKU {self.sku_code} is discontinued and cannot be modified")

    def replace_fields(self, fields: Dict[str, Any]) -> None:
        """Полная замена изменяемых полей: отсутствующие становятся пустыми"""
        self.ensure_mutable()
        for name in MUTABLE_FIELDS:
            setattr(self, name, fields.get(name))
        self.touch()

    def apply_changes(self, changes: Dict[str, Any]) -> None:
        """Частичное обновление: применяются только заданные поля"""
        self.ensure_mutable()
        for name, value in changes.items():
            if value is None:
                continue
            if name == "status":
                self.status = SkuStatus(value).value
            elif name in MUTABLE_FIELDS:
                setattr(self, name, value)
        self.touch()

    def discontinue(self) -> bool:
        """Мягкое удаление. Возвращает False, если SKU уже снят с продажи"""
        if self.is_discontinued:
            return False
        self.status = SkuStatus.DISCONTINUED.value
        self.touch()
        return True

    def touch(self) -> None:
        self.updated_at = utc_now()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Sku):
            return False
        return self.id == other.id

    def __repr__(self) -> str:
        return f"Sku(id={self.id}, sku_code={self.sku_code}, version={self.version})"
