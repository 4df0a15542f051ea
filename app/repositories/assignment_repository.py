"""단계 배정 레포지토리 — 배정 CRUD 및 조회 담당.

Stage Assignment Repository — Validated CRUD and range queries on assignments.
Every successful insert/delete triggers the stage status synchronizer.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Sequence

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.assignment import OrderStageAssignment
from app.repositories.base import BaseRepository
from app.services.stage_status_service import stage_status_service
from app.utils.exceptions import NotFoundError, StoreError, ValidationError

logger = logging.getLogger(__name__)

# 업데이트 허용 필드 — Mutable fields accepted by update()
UPDATABLE_FIELDS: frozenset[str] = frozenset({
    "order_stage_id",
    "employee_name",
    "work_date",
    "note",
    "is_done",
    "created_at",
    "employee_rate",
})

# 비울 수 없는 필드 — Fields that must stay set
REQUIRED_FIELDS: tuple[str, ...] = ("order_stage_id", "employee_name", "work_date")


class AssignmentRepository(BaseRepository[OrderStageAssignment]):
    """단계 배정 레포지토리.

    Assignment repository with validation and stage status side effects.

    Extends:
        BaseRepository[OrderStageAssignment]
    """

    def __init__(self) -> None:
        super().__init__(OrderStageAssignment)

    async def _ensure_cell_free(
        self,
        db: AsyncSession,
        stage_id: int | None,
        work_date: date,
        employee_name: str,
        exclude_id: int | None = None,
    ) -> None:
        """셀에 같은 직원이 이미 배정되어 있으면 거부합니다.

        Reject a write that would put the same employee twice in one
        (stage, date) cell. exclude_id is the row being updated.

        Raises:
            ValidationError: 셀에 같은 이름이 있을 때 (Name already in the cell)
        """
        if not stage_id:
            return
        for row in await self.list_by_stage_and_date(db, stage_id, work_date):
            if row.id != exclude_id and row.employee_name == employee_name:
                raise ValidationError(
                    f"{employee_name} is already assigned to stage {stage_id} on {work_date.isoformat()}"
                )

    async def create(
        self,
        db: AsyncSession,
        obj_data: dict[str, Any],
    ) -> OrderStageAssignment:
        """배정을 생성하고 단계를 scheduled로 동기화합니다.

        Validate and insert an assignment, then mark its stage scheduled.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            obj_data: 배정 데이터 — order_stage_id, employee_name, work_date 등
                      (Assignment fields)

        Returns:
            OrderStageAssignment: 생성된 배정, ID 포함 (Persisted assignment with id)

        Raises:
            ValidationError: 필수 필드 누락 또는 셀 중복 시
                             (Missing employee_name/work_date, or name already in the cell)
            StoreError: 저장소 호출 실패 시 (When the store rejects the insert)
        """
        employee_name: str = (obj_data.get("employee_name") or "").strip()
        work_date: date | None = obj_data.get("work_date")

        missing: list[str] = []
        if not employee_name:
            missing.append("employee_name")
        if not work_date:
            missing.append("work_date")
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        await self._ensure_cell_free(db, obj_data.get("order_stage_id"), work_date, employee_name)

        sanitized: dict[str, Any] = {
            "order_stage_id": obj_data.get("order_stage_id"),
            "employee_name": employee_name,
            "work_date": work_date,
            "note": obj_data.get("note") or None,
            "is_done": obj_data.get("is_done") if obj_data.get("is_done") is not None else False,
            "created_at": obj_data.get("created_at") or datetime.now(timezone.utc),
            "employee_rate": obj_data.get("employee_rate"),
        }

        assignment: OrderStageAssignment = await super().create(db, sanitized)
        logger.info(
            "Created assignment %s: stage=%s employee=%s date=%s",
            assignment.id,
            assignment.order_stage_id,
            assignment.employee_name,
            assignment.work_date,
        )

        if assignment.order_stage_id:
            await stage_status_service.mark_scheduled_if_needed(db, assignment.order_stage_id)

        return assignment

    async def update(
        self,
        db: AsyncSession,
        record_id: int,
        update_data: dict[str, Any],
    ) -> OrderStageAssignment:
        """허용된 필드만 골라 배정을 업데이트합니다.

        Update an assignment with only the whitelisted fields. When nothing
        remains after filtering, the current row is returned without a write.
        Moving an assignment to another stage re-synchronizes both stages.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            record_id: 배정 ID (Assignment id)
            update_data: 부분 업데이트 딕셔너리 (Partial update fields)

        Returns:
            OrderStageAssignment: 현재/갱신된 배정 (Current or updated assignment)

        Raises:
            ValidationError: 필수 필드를 비우거나 셀 중복이 생길 때
                             (Required field cleared, or name already in the target cell)
            NotFoundError: 배정이 없을 때 (When no row matches)
            StoreError: 저장소 호출 실패 시 (When the store rejects the update)
        """
        sanitized: dict[str, Any] = {
            field: value for field, value in update_data.items() if field in UPDATABLE_FIELDS
        }

        current: OrderStageAssignment | None = await self.get_by_id(db, record_id)
        if current is None:
            raise NotFoundError(f"Assignment {record_id} not found")

        if not sanitized:
            logger.debug("No valid fields to update for assignment %s", record_id)
            return current

        # 필수 필드는 비우거나 None으로 바꿀 수 없음 — required fields cannot be cleared
        if "employee_name" in sanitized:
            sanitized["employee_name"] = (sanitized["employee_name"] or "").strip()
        cleared: list[str] = [
            name for name in REQUIRED_FIELDS if name in sanitized and not sanitized[name]
        ]
        if cleared:
            raise ValidationError(f"Missing required fields: {', '.join(cleared)}")

        target_stage_id: int = sanitized.get("order_stage_id", current.order_stage_id)
        target_date: date = sanitized.get("work_date", current.work_date)
        target_name: str = sanitized.get("employee_name", current.employee_name)
        if (target_stage_id, target_date, target_name) != (
            current.order_stage_id,
            current.work_date,
            current.employee_name,
        ):
            await self._ensure_cell_free(db, target_stage_id, target_date, target_name, exclude_id=record_id)

        previous_stage_id: int = current.order_stage_id
        updated: OrderStageAssignment | None = await super().update(db, record_id, sanitized)
        if updated is None:
            raise NotFoundError(f"Assignment {record_id} not found")

        logger.info("Updated assignment %s: %s", record_id, sorted(sanitized))

        if updated.order_stage_id != previous_stage_id:
            if updated.order_stage_id:
                await stage_status_service.mark_scheduled_if_needed(db, updated.order_stage_id)
            if previous_stage_id:
                await stage_status_service.reset_if_orphaned(db, previous_stage_id)

        return updated

    async def delete(
        self,
        db: AsyncSession,
        record_id: int,
    ) -> bool:
        """배정을 삭제하고 고아가 된 단계를 not_started로 되돌립니다.

        Delete an assignment, then reset its stage if no assignment is left.
        The stage id is captured before the row is removed.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            record_id: 배정 ID (Assignment id)

        Returns:
            bool: 항상 True (Always True once the row is gone)

        Raises:
            NotFoundError: 배정이 없을 때 (When no row matches)
            StoreError: 저장소 호출 실패 시 (When the store rejects the delete)
        """
        assignment: OrderStageAssignment | None = await self.get_by_id(db, record_id)
        if assignment is None:
            raise NotFoundError(f"Assignment {record_id} not found")

        stage_id: int = assignment.order_stage_id

        await super().delete(db, record_id)
        logger.info("Deleted assignment %s", record_id)

        if stage_id:
            await stage_status_service.reset_if_orphaned(db, stage_id)
        return True

    async def list_by_date_range(
        self,
        db: AsyncSession,
        date_from: date,
        date_to: date,
    ) -> Sequence[OrderStageAssignment]:
        """근무일 범위(양 끝 포함)로 배정을 조회합니다.

        Retrieve every assignment with date_from <= work_date <= date_to.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            date_from: 시작일, 포함 (Range start, inclusive)
            date_to: 종료일, 포함 (Range end, inclusive)

        Returns:
            Sequence[OrderStageAssignment]: 배정 목록, 없으면 빈 목록 (Assignments, empty when none)
        """
        query: Select = (
            select(OrderStageAssignment)
            .where(
                OrderStageAssignment.work_date >= date_from,
                OrderStageAssignment.work_date <= date_to,
            )
            .order_by(OrderStageAssignment.work_date, OrderStageAssignment.id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def list_by_stage_and_date(
        self,
        db: AsyncSession,
        stage_id: int,
        work_date: date,
    ) -> Sequence[OrderStageAssignment]:
        """한 캘린더 셀(단계, 날짜)의 배정을 조회합니다.

        Retrieve the assignments of one calendar cell, as currently stored.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            stage_id: 단계 ID (Stage id)
            work_date: 근무일 (Work date)

        Returns:
            Sequence[OrderStageAssignment]: 셀의 배정 목록 (Assignments of the cell)
        """
        query: Select = (
            select(OrderStageAssignment)
            .where(
                OrderStageAssignment.order_stage_id == stage_id,
                OrderStageAssignment.work_date == work_date,
            )
            .order_by(OrderStageAssignment.id)
            .execution_options(populate_existing=True)
        )
        try:
            result = await db.execute(query)
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StoreError(f"Read of cell (stage {stage_id}, {work_date}) failed: {exc}") from exc
        return result.scalars().all()

    async def count_by_stage(
        self,
        db: AsyncSession,
        stage_id: int,
    ) -> int:
        """단계에 남아 있는 배정 수를 셉니다.

        Count assignments currently stored for a stage, across all dates.
        """
        return await self.count(db, {"order_stage_id": stage_id})


# 싱글턴 인스턴스 — Singleton instance
assignment_repository: AssignmentRepository = AssignmentRepository()
