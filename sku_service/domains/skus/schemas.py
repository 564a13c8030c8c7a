from pydantic import BaseModel, Field, field_validator, ConfigDict, PlainSerializer
from typing import Annotated, Any, Dict, List, Literal, Optional
from decimal import Decimal
from datetime import datetime
import re
import uuid

from sku_service.domains.skus.entities import Dimensions, Sku


UPC_PATTERN = re.compile(r"^\d{12}$")
CATEGORY_PATTERN = re.compile(r"^[A-Z]{3}$")

# Десятичные значения отдаются в JSON числами, а не строками
DecimalNumber = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Money = Annotated[
    Decimal,
    Field(gt=0, max_digits=10, decimal_places=2),
    PlainSerializer(float, return_type=float, when_used="json"),
]
Tag = Annotated[str, Field(max_length=50)]


def _validate_upc(v: Optional[str]) -> Optional[str]:
    if v is not None and not UPC_PATTERN.match(v):
        raise ValueError("UPC must be exactly 12 digits")
    return v


def _validate_category(v: Optional[str]) -> Optional[str]:
    if v is not None and not CATEGORY_PATTERN.match(v):
        raise ValueError("Category must be a 3-letter uppercase code")
    return v


class DimensionsDto(BaseModel):
    """Габариты товара в дюймах"""
    length: Optional[Money] = Field(None, description="Length in inches", examples=[12.5])
    width: Optional[Money] = Field(None, description="Width in inches", examples=[8.0])
    height: Optional[Money] = Field(None, description="Height in inches", examples=[4.0])

    def to_entity(self) -> Dimensions:
        return Dimensions(length=self.length, width=self.width, height=self.height)


class DimensionsResponse(BaseModel):
    length: Optional[DecimalNumber] = None
    width: Optional[DecimalNumber] = None
    height: Optional[DecimalNumber] = None


class SkuRequest(BaseModel):
    """Схема для создания и полной замены SKU"""
    upc: Optional[str] = Field(None, description="Universal Product Code (12 digits)", examples=["012345678901"])
    name: str = Field(..., max_length=255, description="Product name", examples=["2x4x8 Pressure Treated Lumber"])
    description: Optional[str] = Field(None, max_length=4000, description="Detailed product description")
    brand: Optional[str] = Field(None, max_length=100, examples=["WeatherShield"])
    category: str = Field(..., description="Product category code", examples=["LBR"])
    subcategory: Optional[str] = Field(None, max_length=50, examples=["PRESSURE_TREATED"])
    price: Optional[Money] = Field(None, description="Retail price", examples=[8.99])
    cost: Optional[Money] = Field(None, description="Wholesale cost", examples=[5.50])
    unit_of_measure: Optional[str] = Field(
        None, max_length=20, description="EACH, SQFT, LINEAR_FT, CUBIC_FT, LB or GAL", examples=["EACH"]
    )
    quantity_per_unit: Optional[int] = Field(None, ge=1, examples=[1])
    weight: Optional[Money] = Field(None, description="Weight in pounds", examples=[12.5])
    dimensions: Optional[DimensionsDto] = None
    tags: Optional[List[Tag]] = Field(None, examples=[["outdoor", "treated", "lumber"]])
    attributes: Optional[Dict[str, str]] = Field(None, examples=[{"treatment_type": "ACQ", "grade": "#2"}])

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name is required')
        return v.strip()

    @field_validator('upc')
    @classmethod
    def validate_upc(cls, v):
        return _validate_upc(v)

    @field_validator('category')
    @classmethod
    def validate_category(cls, v):
        return _validate_category(v)

    def to_fields(self) -> Dict[str, Any]:
        """Поля для доменной сущности"""
        fields = self.model_dump(exclude={"dimensions"})
        fields["dimensions"] = self.dimensions.to_entity() if self.dimensions else None
        return fields


class SkuUpdateRequest(BaseModel):
    """Схема для частичного обновления SKU"""
    upc: Optional[str] = None
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=4000)
    brand: Optional[str] = Field(None, max_length=100)
    category: Optional[str] = None
    subcategory: Optional[str] = Field(None, max_length=50)
    price: Optional[Money] = None
    cost: Optional[Money] = None
    unit_of_measure: Optional[str] = Field(None, max_length=20)
    quantity_per_unit: Optional[int] = Field(None, ge=1)
    weight: Optional[Money] = None
    dimensions: Optional[DimensionsDto] = None
    tags: Optional[List[Tag]] = None
    attributes: Optional[Dict[str, str]] = None
    status: Optional[Literal["ACTIVE", "INACTIVE"]] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Name cannot be blank')
        return v.strip() if v else v

    @field_validator('upc')
    @classmethod
    def validate_upc(cls, v):
        return _validate_upc(v)

    @field_validator('category')
    @classmethod
    def validate_category(cls, v):
        return _validate_category(v)

    def to_changes(self) -> Dict[str, Any]:
        """Только заданные поля; null означает «не менять»"""
        changes = self.model_dump(exclude={"dimensions"}, exclude_none=True)
        if self.dimensions is not None:
            changes["dimensions"] = self.dimensions.to_entity()
        return changes


class BatchSkuRequest(BaseModel):
    """Схема для пакетного создания SKU"""
    skus: List[SkuRequest] = Field(..., min_length=1, max_length=100)


class SkuSearchCriteria(BaseModel):
    """Критерии поиска SKU"""
    query: Optional[str] = Field(None, description="Search in name or description")
    category: Optional[str] = None
    subcategory: Optional[str] = None
    brand: Optional[str] = None
    status: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    tags: Optional[List[str]] = Field(None, description="Any of the tags")


class SkuResponse(BaseModel):
    """Схема для ответа с данными SKU"""
    id: uuid.UUID
    sku_code: str
    upc: Optional[str] = None
    name: str
    description: Optional[str] = None
    brand: Optional[str] = None
    category: str
    subcategory: Optional[str] = None
    price: Optional[DecimalNumber] = None
    cost: Optional[DecimalNumber] = None
    unit_of_measure: Optional[str] = None
    quantity_per_unit: Optional[int] = None
    weight: Optional[DecimalNumber] = None
    dimensions: Optional[DimensionsResponse] = None
    status: str
    tags: Optional[List[str]] = None
    attributes: Optional[Dict[str, str]] = None
    created_at: datetime
    updated_at: datetime
    version: int

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_entity(cls, sku: Sku) -> "SkuResponse":
        dimensions = None
        if sku.dimensions is not None and not sku.dimensions.is_empty():
            dimensions = DimensionsResponse(
                length=sku.dimensions.length,
                width=sku.dimensions.width,
                height=sku.dimensions.height,
            )
        return cls(
            id=sku.id,
            sku_code=sku.sku_code,
            upc=sku.upc,
            name=sku.name,
            description=sku.description,
            brand=sku.brand,
            category=sku.category,
            subcategory=sku.subcategory,
            price=sku.price,
            cost=sku.cost,
            unit_of_measure=sku.unit_of_measure,
            quantity_per_unit=sku.quantity_per_unit,
            weight=sku.weight,
            dimensions=dimensions,
            status=sku.status,
            tags=sku.tags,
            attributes=sku.attributes,
            created_at=sku.created_at,
            updated_at=sku.updated_at,
            version=sku.version,
        )


class SkuListResponse(BaseModel):
    """Схема для страницы списка SKU"""
    skus: List[SkuResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details"""
    type: str = Field(..., examples=["https://api.retailer.com/problems/not-found"])
    title: str = Field(..., examples=["SKU Not Found"])
    status: int = Field(..., examples=[404])
    detail: Optional[str] = None
    instance: Optional[str] = None
    trace_id: Optional[str] = Field(None, description="Correlation ID for tracing")
    timestamp: datetime
    errors: Optional[Dict[str, Any]] = None
