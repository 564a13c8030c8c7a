from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, Text, Integer, Numeric, DateTime, JSON, Uuid, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from sku_service.core.db import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# jsonb в PostgreSQL, обычный JSON в остальных СУБД
JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class Sku(Base):
    __tablename__ = "skus"
    __table_args__ = (
        Index("idx_sku_code", "sku_code", unique=True),
        Index("idx_sku_upc", "upc", unique=True),
        Index("idx_sku_category", "category"),
        Index("idx_sku_status", "status"),
        Index("idx_sku_brand", "brand"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sku_code = Column(String(50), nullable=False)
    upc = Column(String(12), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    brand = Column(String(100), nullable=True)
    category = Column(String(50), nullable=False)
    subcategory = Column(String(50), nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    cost = Column(Numeric(10, 2), nullable=True)
    unit_of_measure = Column(String(20), nullable=True)
    quantity_per_unit = Column(Integer, nullable=True)
    weight = Column(Numeric(10, 2), nullable=True)
    dimension_length = Column(Numeric(10, 2), nullable=True)
    dimension_width = Column(Numeric(10, 2), nullable=True)
    dimension_height = Column(Numeric(10, 2), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")
    tags = Column(JsonColumn, nullable=True)
    attributes = Column(JsonColumn, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())
    version = Column(Integer, nullable=False, default=1)


class SkuSequence(Base):
    """Счетчик последовательности кодов SKU для префикса вида THD-LBR"""
    __tablename__ = "sku_sequences"

    prefix = Column(String(40), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
