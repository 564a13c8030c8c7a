"""
Tests for request/response schemas.
"""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from conftest import make_sku_payload
from sku_service.domains.skus.entities import Sku
from sku_service.domains.skus.schemas import (
    BatchSkuRequest, SkuRequest, SkuResponse, SkuUpdateRequest
)


class TestSkuRequest:
    """Tests for create/replace validation."""

    def test_valid_payload(self):
        request = SkuRequest(**make_sku_payload())
        assert request.price == Decimal("8.99")
        assert request.dimensions.length == Decimal("96.0")

    @pytest.mark.parametrize("upc", ["12345", "01234567890a", "0123456789012"])
    def test_invalid_upc(self, upc):
        with pytest.raises(ValidationError, match="UPC must be exactly 12 digits"):
            SkuRequest(**make_sku_payload(upc=upc))

    @pytest.mark.parametrize("category", ["lbr", "LB", "LBRX"])
    def test_invalid_category(self, category):
        with pytest.raises(ValidationError, match="3-letter uppercase"):
            SkuRequest(**make_sku_payload(category=category))

    def test_blank_name(self):
        with pytest.raises(ValidationError, match="Name is required"):
            SkuRequest(**make_sku_payload(name="   "))

    def test_price_must_be_positive(self):
        with pytest.raises(ValidationError):
            SkuRequest(**make_sku_payload(price=0))

    def test_price_scale(self):
        with pytest.raises(ValidationError):
            SkuRequest(**make_sku_payload(price=1.999))

    def test_tag_length(self):
        with pytest.raises(ValidationError):
            SkuRequest(**make_sku_payload(tags=["x" * 51]))

    def test_to_fields(self):
        fields = SkuRequest(**make_sku_payload()).to_fields()
        assert fields["category"] == "LBR"
        assert fields["dimensions"].height == Decimal("1.5")


class TestSkuUpdateRequest:
    """Tests for partial update validation."""

    def test_only_set_fields(self):
        changes = SkuUpdateRequest(price=9.99).to_changes()
        assert changes == {"price": Decimal("9.99")}

    def test_discontinued_status_rejected(self):
        with pytest.raises(ValidationError):
            SkuUpdateRequest(status="DISCONTINUED")

    def test_inactive_status_accepted(self):
        assert SkuUpdateRequest(status="INACTIVE").to_changes() == {"status": "INACTIVE"}


class TestBatchSkuRequest:

    def test_empty_batch(self):
        with pytest.raises(ValidationError):
            BatchSkuRequest(skus=[])

    def test_oversized_batch(self):
        payloads = [make_sku_payload(upc=None) for _ in range(101)]
        with pytest.raises(ValidationError):
            BatchSkuRequest(skus=payloads)


class TestSkuResponse:

    def test_decimals_serialize_as_numbers(self):
        sku = Sku.create_sku("THD-LBR-0000001", SkuRequest(**make_sku_payload()).to_fields())
        body = SkuResponse.from_entity(sku).model_dump(mode="json")
        assert body["price"] == 8.99
        assert body["dimensions"] == {"length": 96.0, "width": 3.5, "height": 1.5}
        assert body["sku_code"] == "THD-LBR-0000001"
        assert body["version"] == 1
