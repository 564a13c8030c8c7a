"""
Применение миграций схемы из кода приложения.

Ревизии лежат в `infrastructure/migrations/versions` и применяются строго
по порядку, каждая не более одного раза; история хранится в таблице
`schema_migrations`. Повторный запуск ничего не меняет.
"""
import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from sku_service.core.config import settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"
VERSION_TABLE = "schema_migrations"


def alembic_config(database_url: Optional[str] = None) -> Config:
    """Конфигурация Alembic без alembic.ini"""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    # ConfigParser интерпретирует %, а он встречается в паролях
    config.set_main_option("sqlalchemy.url", (database_url or settings.database_url).replace("%", "%%"))
    return config


def _upgrade(connection, config: Config, revision: str) -> None:
    config.attributes["connection"] = connection
    command.upgrade(config, revision)


def _current(connection) -> Optional[str]:
    context = MigrationContext.configure(connection, opts={"version_table": VERSION_TABLE})
    return context.get_current_revision()


async def run_migrations(database_url: Optional[str] = None, revision: str = "head") -> Optional[str]:
    """Применение всех неприменённых ревизий до `revision`; возвращает текущую ревизию"""
    url = database_url or settings.database_url
    config = alembic_config(url)
    engine = create_async_engine(url, poolclass=NullPool)
    try:
        async with engine.begin() as conn:
            before = await conn.run_sync(_current)
            await conn.run_sync(_upgrade, config, revision)
            after = await conn.run_sync(_current)
    finally:
        await engine.dispose()

    if before == after:
        logger.info("Database schema is up to date (revision %s)", after)
    else:
        logger.info("Migrated database schema from %s to %s", before or "<empty>", after)
    return after


async def current_revision(database_url: Optional[str] = None) -> Optional[str]:
    """Текущая ревизия схемы или None для пустой базы"""
    engine = create_async_engine(database_url or settings.database_url, poolclass=NullPool)
    try:
        async with engine.connect() as conn:
            return await conn.run_sync(_current)
    finally:
        await engine.dispose()
