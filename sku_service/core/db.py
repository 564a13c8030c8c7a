import logging
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator, Optional

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from sku_service.core.config import settings
from sku_service.core.errors import DuplicateSkuError, InternalError

logger = logging.getLogger(__name__)

# Базовый класс для моделей
Base = declarative_base()


def build_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Асинхронный движок с ограниченным пулом соединений"""
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        # у SQLite нет сетевых соединений, пул не нужен
        sqlite_engine = create_async_engine(url, echo=settings.db_echo, poolclass=NullPool)
        _enable_sqlite_savepoints(sqlite_engine)
        return sqlite_engine
    return create_async_engine(
        url,
        echo=settings.db_echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
    )


def _enable_sqlite_savepoints(sqlite_engine: AsyncEngine) -> None:
    """Драйвер sqlite3 сам управляет BEGIN и ломает SAVEPOINT; берем это на себя"""

    @event.listens_for(sqlite_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine()

SessionLocal = build_sessionmaker(engine)


# Функция для dependency injection в FastAPI
async def get_db():
    async with SessionLocal() as session:
        yield session


async def dispose_engine() -> None:
    """Закрытие пула соединений при остановке приложения"""
    await engine.dispose()


@contextmanager
def store_errors() -> Iterator[None]:
    """Перевод ошибок SQLAlchemy в ошибки сервиса"""
    try:
        yield
    except IntegrityError as exc:
        logger.warning("Constraint violation: %s", exc.orig)
        raise DuplicateSkuError("SKU conflicts with an existing record") from exc
    except SQLAlchemyError as exc:
        raise InternalError("Store operation failed") from exc


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Одна транзакция на вызов сервиса: commit при успехе,
    rollback при любой ошибке.
    """
    with store_errors():
        if session.in_transaction():
            # транзакцию уже открыло чтение в этой же сессии
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            await session.commit()
        else:
            async with session.begin():
                yield session
