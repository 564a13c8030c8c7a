"""
Tests for the SKU domain entity.
"""
from decimal import Decimal
import uuid

import pytest

from sku_service.core.errors import ConflictError, VersionConflictError
from sku_service.domains.skus.entities import Dimensions, Sku, SkuStatus


def make_sku(**fields) -> Sku:
    values = {"name": "Copper Pipe 1/2in", "category": "PLB", "upc": "111111111111"}
    values.update(fields)
    return Sku.create_sku("THD-PLB-0000001", values)


class TestSkuCode:
    """Tests for code building."""

    def test_build_code_pads_sequence(self):
        assert Sku.build_code("THD-LBR", 12) == "THD-LBR-0000012"

    def test_code_prefix(self):
        assert Sku.code_prefix("THD", "ELC") == "THD-ELC"


class TestSkuLifecycle:
    """Tests for creation, updates and soft delete."""

    def test_create_sku_defaults(self):
        sku = make_sku()
        assert isinstance(sku.id, uuid.UUID)
        assert sku.status == SkuStatus.ACTIVE.value
        assert sku.version == 1
        assert sku.created_at == sku.updated_at

    def test_replace_fields_clears_absent(self):
        sku = make_sku(brand="Mueller", price=Decimal("12.99"))
        sku.replace_fields({"name": "Copper Pipe 3/4in", "category": "PLB"})
        assert sku.name == "Copper Pipe 3/4in"
        assert sku.brand is None
        assert sku.price is None
        assert sku.upc is None

    def test_replace_fields_keeps_identity(self):
        sku = make_sku()
        original_id, original_code, created_at = sku.id, sku.sku_code, sku.created_at
        sku.replace_fields({"name": "Other", "category": "HRD"})
        assert sku.id == original_id
        assert sku.sku_code == original_code
        assert sku.created_at == created_at
        assert sku.status == SkuStatus.ACTIVE.value

    def test_apply_changes_skips_none(self):
        sku = make_sku(brand="Mueller")
        sku.apply_changes({"brand": None, "price": Decimal("3.50")})
        assert sku.brand == "Mueller"
        assert sku.price == Decimal("3.50")

    def test_apply_changes_status(self):
        sku = make_sku()
        sku.apply_changes({"status": "INACTIVE"})
        assert sku.status == "INACTIVE"

    def test_apply_changes_dimensions(self):
        sku = make_sku()
        sku.apply_changes({"dimensions": Dimensions(length=Decimal("10"))})
        assert sku.dimensions.length == Decimal("10")

    def test_discontinue(self):
        sku = make_sku()
        assert sku.discontinue() is True
        assert sku.is_discontinued

    def test_discontinue_twice_is_noop(self):
        sku = make_sku()
        sku.discontinue()
        updated_at = sku.updated_at
        assert sku.discontinue() is False
        assert sku.updated_at == updated_at

    def test_discontinued_sku_is_immutable(self):
        sku = make_sku()
        sku.discontinue()
        with pytest.raises(ConflictError):
            sku.apply_changes({"name": "Renamed"})
        with pytest.raises(ConflictError):
            sku.replace_fields({"name": "Renamed", "category": "PLB"})

    def test_check_version(self):
        sku = make_sku()
        sku.check_version(None)
        sku.check_version(1)
        with pytest.raises(VersionConflictError):
            sku.check_version(2)

    def test_equality_by_id(self):
        sku = make_sku()
        same = Sku(id=sku.id, sku_code="X", name="Y", category="HRD")
        assert sku == same
        assert sku != make_sku()
