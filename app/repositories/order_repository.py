"""작업 주문 레포지토리 — 주문 → 생산 정보 → 단계 트리 조회.

Order Repository — Materializes Order → OrderDetail → OrderStage trees.
"""

from typing import Sequence

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.order import Order, OrderDetail
from app.repositories.base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """작업 주문 레포지토리.

    Read-only order queries used by the scheduler.

    Extends:
        BaseRepository[Order]
    """

    def __init__(self) -> None:
        super().__init__(Order)

    async def get_by_status_with_stages(
        self,
        db: AsyncSession,
        order_status: str,
    ) -> Sequence[Order]:
        """주문 상태가 정확히 일치하는 주문을 단계 트리와 함께 조회합니다.

        Retrieve orders whose status equals order_status exactly, eager-loading
        the details and their stages. Newest orders first.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            order_status: 주문 상태 (Exact order status, e.g. "working")

        Returns:
            Sequence[Order]: 주문 목록, 없으면 빈 목록 (Orders, empty when none)
        """
        query: Select = (
            select(Order)
            .where(Order.order_status == order_status)
            .options(selectinload(Order.details).selectinload(OrderDetail.stages))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def get_detail_with_order(
        self,
        db: AsyncSession,
        detail_id: int,
    ) -> OrderDetail | None:
        """생산 정보를 상위 주문과 함께 조회합니다.

        Retrieve an order detail together with its parent order.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            detail_id: 생산 정보 ID (Order detail id)

        Returns:
            OrderDetail | None: 생산 정보 또는 None (Detail or None)
        """
        query: Select = (
            select(OrderDetail)
            .where(OrderDetail.detail_id == detail_id)
            .options(selectinload(OrderDetail.order))
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()


# 싱글턴 인스턴스 — Singleton instance
order_repository: OrderRepository = OrderRepository()
