"""
Tests for the schema migrator.
"""
import uuid

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import create_async_engine

from sku_service.infrastructure.migrator import current_revision, run_migrations


async def table_names(database_url):
    engine = create_async_engine(database_url)
    try:
        async with engine.connect() as conn:
            return await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
    finally:
        await engine.dispose()


class TestRunMigrations:
    """Tests for ordered, idempotent schema migration."""

    @pytest.mark.asyncio
    async def test_empty_database_has_no_revision(self, database_url):
        assert await current_revision(database_url) is None

    @pytest.mark.asyncio
    async def test_upgrade_to_head(self, database_url):
        assert await run_migrations(database_url) == "0002"
        tables = await table_names(database_url)
        assert {"skus", "sku_sequences", "schema_migrations"} <= tables

    @pytest.mark.asyncio
    async def test_second_run_is_noop(self, database_url):
        await run_migrations(database_url)
        assert await run_migrations(database_url) == "0002"
        assert await current_revision(database_url) == "0002"

    @pytest.mark.asyncio
    async def test_indexes_created(self, database_url):
        await run_migrations(database_url)
        engine = create_async_engine(database_url)
        try:
            async with engine.connect() as conn:
                indexes = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_indexes("skus"))
        finally:
            await engine.dispose()

        by_name = {index["name"]: index for index in indexes}
        assert by_name["idx_sku_code"]["unique"]
        assert by_name["idx_sku_upc"]["unique"]
        assert {"idx_sku_category", "idx_sku_status", "idx_sku_brand"} <= set(by_name)

    @pytest.mark.asyncio
    async def test_sequences_seeded_from_existing_codes(self, database_url):
        await run_migrations(database_url, revision="0001")

        engine = create_async_engine(database_url)
        try:
            async with engine.begin() as conn:
                for code in ("THD-LBR-0000007", "THD-LBR-0000003", "THD-PLB-0000011"):
                    await conn.execute(
                        text("INSERT INTO skus (id, sku_code, name, category) VALUES (:id, :code, :name, :category)"),
                        {"id": uuid.uuid4().hex, "code": code, "name": code, "category": code[4:7]},
                    )

            await run_migrations(database_url)

            async with engine.connect() as conn:
                rows = await conn.execute(text("SELECT prefix, last_value FROM sku_sequences ORDER BY prefix"))
                assert rows.all() == [("THD-LBR", 7), ("THD-PLB", 11)]
        finally:
            await engine.dispose()
