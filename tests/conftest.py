"""테스트 인프라 — 인메모리 SQLite DB, 세션, httpx 클라이언트 픽스처.

Test infrastructure — In-memory SQLite DB, session, and httpx client fixtures.
Each test gets a fresh schema on a single shared connection (StaticPool),
so repository commits are visible to every read in the same test.
"""

from collections.abc import AsyncGenerator
from datetime import date

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models import *  # noqa: F401,F403 — register all models with metadata
from app.models.assignment import OrderStageAssignment
from app.models.order import Order, OrderDetail, OrderStage

# ---------------------------------------------------------------------------
# 테스트 DB 설정
# ---------------------------------------------------------------------------
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SCHEDULING = "/api/v1/scheduling"


# ---------------------------------------------------------------------------
# Function-scoped: 엔진, 세션, 클라이언트
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """테스트용 async 엔진. 테스트마다 스키마를 새로 생성합니다."""
    eng = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """각 테스트에 격리된 DB 세션을 제공합니다."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI 테스트 클라이언트 — DB 세션을 오버라이드합니다."""
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# 헬퍼: 테스트용 데이터 생성
# ---------------------------------------------------------------------------
async def make_order(
    db: AsyncSession,
    code: str,
    stage_names: list[str],
    order_status: str = "working",
    customer_name: str = "Test Customer",
) -> tuple[Order, list[OrderStage]]:
    """주문 1건 + 상세 1건 + 단계들을 생성합니다."""
    order = Order(code=code, customer_name=customer_name, order_status=order_status, work_types=["kitchen"])
    db.add(order)
    await db.flush()

    detail = OrderDetail(order_id=order.id, assigned_to="Workshop")
    db.add(detail)
    await db.flush()

    stages: list[OrderStage] = []
    for name in stage_names:
        stage = OrderStage(order_detail_id=detail.detail_id, stage_name=name)
        db.add(stage)
        stages.append(stage)
    await db.commit()
    for stage in stages:
        await db.refresh(stage)
    await db.refresh(order)
    return order, stages


async def make_assignment(
    db: AsyncSession,
    stage_id: int,
    employee_name: str,
    work_date: date,
    note: str | None = None,
) -> OrderStageAssignment:
    """배정을 DB에 직접 생성합니다 (상태 동기화 없이)."""
    assignment = OrderStageAssignment(
        order_stage_id=stage_id,
        employee_name=employee_name,
        work_date=work_date,
        note=note,
    )
    db.add(assignment)
    await db.commit()
    await db.refresh(assignment)
    return assignment


@pytest_asyncio.fixture
async def working_order(db: AsyncSession) -> tuple[Order, list[OrderStage]]:
    """진행 중 주문 — 재단/용접/도장 단계."""
    return await make_order(db, "ORD-100", ["cutting", "welding", "painting"], customer_name="Acme Kitchens")


@pytest_asyncio.fixture
async def stage(working_order) -> OrderStage:
    """진행 중 주문의 첫 번째 단계."""
    return working_order[1][0]
