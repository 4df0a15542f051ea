"""생산 단계 레포지토리 — 단계 조회 및 상태 쓰기 담당.

Order Stage Repository — Point reads of stages and status writes.
"""

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.order import OrderStage
from app.repositories.base import BaseRepository


class StageRepository(BaseRepository[OrderStage]):
    """생산 단계 레포지토리.

    Stage repository. Reads bypass the session identity map so a status
    decision is always taken against the row as currently stored.

    Extends:
        BaseRepository[OrderStage]
    """

    def __init__(self) -> None:
        super().__init__(OrderStage)

    async def get_fresh(
        self,
        db: AsyncSession,
        stage_id: int,
    ) -> OrderStage | None:
        """저장소의 현재 값으로 단계를 다시 읽습니다.

        Read a stage, overwriting any copy already held by the session.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            stage_id: 단계 ID (Stage id)

        Returns:
            OrderStage | None: 단계 또는 None (Stage or None)
        """
        query: Select = (
            select(OrderStage)
            .where(OrderStage.id == stage_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_ids(
        self,
        db: AsyncSession,
        stage_ids: set[int],
    ) -> Sequence[OrderStage]:
        """여러 단계를 ID 집합으로 조회합니다.

        Retrieve every stage whose id is in the given set.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            stage_ids: 단계 ID 집합 (Set of stage ids)

        Returns:
            Sequence[OrderStage]: 단계 목록, 없으면 빈 목록 (Stages, empty when none)
        """
        if not stage_ids:
            return []
        query: Select = (
            select(OrderStage)
            .where(OrderStage.id.in_(stage_ids))
            .order_by(OrderStage.id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def set_status(
        self,
        db: AsyncSession,
        stage_id: int,
        status: str,
    ) -> OrderStage | None:
        """단계 상태를 쓰고 updated_at을 갱신합니다.

        Write a stage status and touch its updated_at timestamp.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            stage_id: 단계 ID (Stage id)
            status: 새 상태 값 (New status value)

        Returns:
            OrderStage | None: 갱신된 단계 또는 None (Updated stage or None)
        """
        return await self.update(
            db,
            stage_id,
            {"status": status, "updated_at": datetime.now(timezone.utc)},
        )


# 싱글턴 인스턴스 — Singleton instance
stage_repository: StageRepository = StageRepository()
