"""
Tests for the SKU repository against a migrated SQLite database.
"""
from decimal import Decimal

import pytest

from conftest import make_sku_request
from sku_service.core.errors import DuplicateSkuError, VersionConflictError
from sku_service.domains.skus.entities import Sku
from sku_service.domains.skus.schemas import SkuSearchCriteria


def new_sku(code: str, **kwargs) -> Sku:
    return Sku.create_sku(code, make_sku_request(**kwargs).to_fields())


async def seed(repository, *skus):
    created = await repository.create_many(list(skus))
    await repository.session.commit()
    return created


class TestCreateAndGet:

    @pytest.mark.asyncio
    async def test_create_and_get_by_keys(self, repository):
        sku = new_sku("THD-LBR-0000001")
        await repository.create(sku)
        await repository.session.commit()

        by_id = await repository.get_by_id(sku.id)
        assert by_id.sku_code == "THD-LBR-0000001"
        assert by_id.price == Decimal("8.99")
        assert by_id.dimensions.length == Decimal("96.00")
        assert by_id.tags == ["outdoor", "treated", "lumber"]
        assert by_id.attributes == {"treatment_type": "ACQ", "grade": "#2"}
        assert (await repository.get_by_code("THD-LBR-0000001")).id == sku.id
        assert (await repository.get_by_upc("012345678901")).id == sku.id

    @pytest.mark.asyncio
    async def test_missing_returns_none(self, repository):
        assert await repository.get_by_code("THD-LBR-9999999") is None

    @pytest.mark.asyncio
    async def test_duplicate_upc_maps_to_conflict(self, repository):
        await seed(repository, new_sku("THD-LBR-0000001"))
        with pytest.raises(DuplicateSkuError):
            await repository.create(new_sku("THD-LBR-0000002"))

    @pytest.mark.asyncio
    async def test_exists_by_upc_excludes_self(self, repository):
        sku = new_sku("THD-LBR-0000001")
        await seed(repository, sku)
        assert await repository.exists_by_upc("012345678901")
        assert not await repository.exists_by_upc("012345678901", exclude_id=sku.id)
        assert not await repository.exists_by_upc("999999999999")


class TestQueries:

    @pytest.fixture
    async def catalog(self, repository):
        return await seed(
            repository,
            new_sku("THD-LBR-0000001", name="Cedar Board", upc="000000000001", price=12.00, tags=["outdoor"]),
            new_sku("THD-LBR-0000002", name="Pine Stud", upc="000000000002", price=4.50, brand="Acme", tags=["framing"]),
            new_sku("THD-PLB-0000001", name="Copper Pipe", category="PLB", upc="000000000003",
                    price=20.00, description="Type L copper", tags=["pipe", "outdoor"]),
        )

    @pytest.mark.asyncio
    async def test_list_and_count(self, repository, catalog):
        page = await repository.list(limit=2, offset=0, sort_by="name", direction="asc")
        assert [sku.name for sku in page] == ["Cedar Board", "Copper Pipe"]
        assert await repository.count() == 3

    @pytest.mark.asyncio
    async def test_find_by_filters(self, repository, catalog):
        skus = await repository.find_by_filters(category="LBR", min_price=Decimal("5"))
        assert [sku.name for sku in skus] == ["Cedar Board"]
        assert await repository.count_by_filters(category="LBR") == 2
        assert await repository.count_by_filters(brand="Acme") == 1

    @pytest.mark.asyncio
    async def test_blank_filters_ignored(self, repository, catalog):
        assert await repository.count_by_filters(category="", brand="  ") == 3

    @pytest.mark.asyncio
    async def test_search_query_is_case_insensitive(self, repository, catalog):
        criteria = SkuSearchCriteria(query="COPPER")
        skus = await repository.search(criteria)
        assert [sku.name for sku in skus] == ["Copper Pipe"]

    @pytest.mark.asyncio
    async def test_search_matches_description(self, repository, catalog):
        assert await repository.count_search(SkuSearchCriteria(query="type l")) == 1

    @pytest.mark.asyncio
    async def test_search_tags_any(self, repository, catalog):
        skus = await repository.search(SkuSearchCriteria(tags=["outdoor", "nothing"]))
        assert sorted(sku.name for sku in skus) == ["Cedar Board", "Copper Pipe"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tag", ["садовый", 'a"b', "back\\slash", "50%_off"])
    async def test_search_tags_with_escaped_characters(self, repository, tag):
        await seed(repository, new_sku("THD-LBR-0000001", tags=["plain", tag]))
        skus = await repository.search(SkuSearchCriteria(tags=[tag]))
        assert [sku.tags for sku in skus] == [["plain", tag]]

    @pytest.mark.asyncio
    async def test_search_tags_need_exact_element(self, repository, catalog):
        assert await repository.count_search(SkuSearchCriteria(tags=["out"])) == 0

    @pytest.mark.asyncio
    async def test_search_tags_skip_untagged(self, repository):
        await seed(repository, new_sku("THD-LBR-0000001", tags=None))
        assert await repository.count_search(SkuSearchCriteria(tags=["outdoor"])) == 0

    @pytest.mark.asyncio
    async def test_search_combines_with_and(self, repository, catalog):
        criteria = SkuSearchCriteria(tags=["outdoor"], category="PLB", max_price=Decimal("25"))
        assert await repository.count_search(criteria) == 1

    @pytest.mark.asyncio
    async def test_search_wildcards_are_literal(self, repository, catalog):
        assert await repository.count_search(SkuSearchCriteria(query="%")) == 0


class TestOptimisticUpdate:

    @pytest.mark.asyncio
    async def test_update_increments_version(self, repository):
        sku = new_sku("THD-LBR-0000001")
        await seed(repository, sku)

        loaded = await repository.get_by_id(sku.id)
        loaded.apply_changes({"name": "Renamed"})
        updated = await repository.update(loaded)
        assert updated.version == 2
        assert (await repository.get_by_id(sku.id)).name == "Renamed"

    @pytest.mark.asyncio
    async def test_stale_update_conflicts(self, repository):
        sku = new_sku("THD-LBR-0000001")
        await seed(repository, sku)

        first = await repository.get_by_id(sku.id)
        second = await repository.get_by_id(sku.id)
        first.apply_changes({"name": "First"})
        await repository.update(first)

        second.apply_changes({"name": "Second"})
        with pytest.raises(VersionConflictError):
            await repository.update(second)


class TestSequences:

    @pytest.mark.asyncio
    async def test_sequence_starts_at_one(self, repository):
        assert await repository.next_sequence("THD-LBR") == 1
        assert await repository.next_sequence("THD-LBR") == 2
        assert await repository.next_sequence("THD-PLB") == 1

    @pytest.mark.asyncio
    async def test_sequence_continues_after_existing_codes(self, repository):
        await seed(repository, new_sku("THD-LBR-0000041"))
        assert await repository.max_sequence_for_prefix("THD-LBR") == 41
        assert await repository.next_sequence("THD-LBR") == 42
