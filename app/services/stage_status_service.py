"""단계 상태 동기화 서비스 — 배정 존재 여부로 단계 상태를 맞춤.

Stage Status Service — Keeps an order stage's status in step with whether any
assignment references it. Called as a side effect of assignment create/delete.

Only two transitions belong to this service:
    not_started → scheduled      (첫 배정 추가 / first assignment added)
    scheduled   → not_started    (마지막 배정 삭제 / last assignment removed)
in_progress, completed, delayed and on_hold are owned by other collaborators
and are never written here.

Both operations are best-effort: a store failure is logged and swallowed so the
assignment mutation that triggered it still succeeds.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.order import OrderStage, STAGE_NOT_STARTED, STAGE_SCHEDULED
from app.repositories.stage_repository import stage_repository
from app.utils.exceptions import StoreError

logger = logging.getLogger(__name__)


class StageStatusService:
    """단계 상태 동기화 서비스.

    Stage status synchronizer. Every method returns the stage status after the
    call, or None when the stage could not be read.
    """

    async def mark_scheduled_if_needed(
        self,
        db: AsyncSession,
        stage_id: int,
    ) -> str | None:
        """배정이 추가된 단계를 scheduled로 표시합니다.

        Move a not_started stage to scheduled after an assignment insert.
        Idempotent: a stage already scheduled is not written again.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            stage_id: 배정이 추가된 단계 ID (Stage that just gained an assignment)

        Returns:
            str | None: 호출 후 단계 상태 (Stage status after the call, None if unreadable)
        """
        try:
            stage: OrderStage | None = await stage_repository.get_fresh(db, stage_id)
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("[Stage Update] Could not read stage %s", stage_id)
            return None

        if stage is None:
            logger.warning("[Stage Update] Stage %s not found, status left untouched", stage_id)
            return None

        if stage.status != STAGE_NOT_STARTED:
            # scheduled이면 이미 완료, 상위 상태는 외부 소유 (already scheduled, or externally owned)
            return stage.status

        try:
            await stage_repository.set_status(db, stage_id, STAGE_SCHEDULED)
        except StoreError as exc:
            logger.error("[Stage Update] Error updating stage %s status: %s", stage_id, exc.detail)
            return stage.status

        logger.info("[Stage Update] Stage %s set to '%s'", stage_id, STAGE_SCHEDULED)
        return STAGE_SCHEDULED

    async def reset_if_orphaned(
        self,
        db: AsyncSession,
        stage_id: int,
    ) -> str | None:
        """남은 배정이 없으면 단계를 not_started로 되돌립니다.

        Reset a scheduled stage to not_started once no assignment references it.
        A stage that still has assignments on any date is left as is.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            stage_id: 배정이 삭제된 단계 ID, 삭제 전에 확보한 값
                      (Stage id captured from the deleted row before deletion)

        Returns:
            str | None: 호출 후 단계 상태 (Stage status after the call, None if unreadable)
        """
        from app.repositories.assignment_repository import assignment_repository

        try:
            remaining: int = await assignment_repository.count_by_stage(db, stage_id)
            stage: OrderStage | None = await stage_repository.get_fresh(db, stage_id)
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("[Stage Update] Could not check remaining assignments for stage %s", stage_id)
            return None

        if stage is None:
            logger.warning("[Stage Update] Stage %s not found, status left untouched", stage_id)
            return None

        if remaining > 0:
            logger.debug(
                "[Stage Update] Stage %s still has %d assignments, not resetting status",
                stage_id,
                remaining,
            )
            return stage.status

        if stage.status != STAGE_SCHEDULED:
            return stage.status

        try:
            await stage_repository.set_status(db, stage_id, STAGE_NOT_STARTED)
        except StoreError as exc:
            logger.error("[Stage Update] Error resetting stage %s status: %s", stage_id, exc.detail)
            return stage.status

        logger.info("[Stage Update] No assignments left for stage %s, reset to '%s'", stage_id, STAGE_NOT_STARTED)
        return STAGE_NOT_STARTED


# 싱글턴 인스턴스 — Singleton instance
stage_status_service: StageStatusService = StageStatusService()
