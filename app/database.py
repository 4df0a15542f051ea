"""데이터베이스 엔진 및 세션 설정 모듈.

Database engine and session configuration module.
Sets up the async SQLAlchemy engine and session factory for the record store
that holds orders, stages and stage assignments, plus the store liveness check
used by the health endpoint.
"""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.utils.exceptions import StoreError

logger = logging.getLogger(__name__)

# 비동기 데이터베이스 엔진 — Async database engine (asyncpg driver)
# pool_pre_ping=True: 커넥션 풀에서 꺼낸 연결의 유효성을 사전 확인 (Validates connections before use)
engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# 비동기 세션 팩토리 — Async session factory
# expire_on_commit=False: 저장소가 쓰기마다 커밋하므로 커밋 후에도 속성 접근 필요
# (Repositories commit per write; loaded rows must stay readable afterwards)
async_session: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """SQLAlchemy 선언적 베이스 클래스.

    Declarative base class for the order, stage and assignment models.
    """
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """요청 단위 비동기 세션을 제공합니다.

    FastAPI dependency that yields an async database session.
    Repositories commit each write on their own, so the session carries
    no pending state across a request.

    Yields:
        AsyncSession: SQLAlchemy 비동기 세션 인스턴스 (Async session instance)
    """
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def ping_store(db: AsyncSession) -> None:
    """레코드 저장소 연결을 확인합니다.

    Run a trivial query against the record store.

    Raises:
        StoreError: 저장소에 연결할 수 없을 때 (When the store is unreachable)
    """
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Record store ping failed: %s", exc)
        raise StoreError(f"Record store unreachable: {exc}") from exc
