"""배정 조정 서비스 — 캘린더 셀의 직원 집합을 원하는 상태로 수렴.

Reconciliation Service — Converges the persisted assignments of a calendar
cell (stage, date) to a desired employee set.

Two modes:
    create: 빈 셀 가정, 날짜 × 직원 조합을 모두 생성 (fan-out, no diffing)
    edit:   저장소에서 셀을 다시 읽고 추가/삭제/메모 갱신 작업을 계산 (re-read and diff)

The store has no multi-statement transactions. Intents run one at a time in
order; the first failure stops the batch and is raised as
PartialReconciliationError carrying the intents already applied. Nothing is
rolled back. All validation happens before the first write.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Sequence

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.assignment import OrderStageAssignment
from app.models.order import OrderDetail, OrderStage
from app.repositories.assignment_repository import assignment_repository
from app.repositories.order_repository import order_repository
from app.repositories.stage_repository import stage_repository
from app.utils.exceptions import PartialReconciliationError, ValidationError

logger = logging.getLogger(__name__)

# 작업 종류 — Intent kinds
INTENT_ADD: str = "add"
INTENT_REMOVE: str = "remove"
INTENT_UPDATE_NOTE: str = "update_note"

MODE_CREATE: str = "create"
MODE_EDIT: str = "edit"


@dataclass
class AssignmentIntent:
    """셀에 대한 단일 작업 의도.

    One planned operation against a cell. assignment_id is the existing row
    for remove/update_note, and the generated row once an add has been applied.
    """

    kind: str
    employee_name: str
    work_date: date
    assignment_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "employee_name": self.employee_name,
            "work_date": self.work_date.isoformat(),
            "assignment_id": self.assignment_id,
        }


@dataclass
class ReconciliationResult:
    """조정 결과 — 반영된 작업 목록.

    Result of a reconciliation run: the intents applied, in execution order.
    """

    stage_id: int
    mode: str
    applied: list[AssignmentIntent] = field(default_factory=list)

    def _count(self, kind: str) -> int:
        return sum(1 for intent in self.applied if intent.kind == kind)

    @property
    def created(self) -> int:
        return self._count(INTENT_ADD)

    @property
    def removed(self) -> int:
        return self._count(INTENT_REMOVE)

    @property
    def updated(self) -> int:
        return self._count(INTENT_UPDATE_NOTE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage_id": self.stage_id,
            "mode": self.mode,
            "created": self.created,
            "removed": self.removed,
            "updated": self.updated,
            "applied": [intent.to_dict() for intent in self.applied],
        }


def normalize_note(note: str | None) -> str | None:
    """빈 메모는 None으로 저장합니다 (Blank notes are stored as None)."""
    if note is None:
        return None
    note = note.strip()
    return note or None


def normalize_employees(employees: Iterable[str]) -> list[str]:
    """직원 이름을 정리하고 중복을 제거합니다 (입력 순서 유지).

    Strip names, drop blanks and de-duplicate while keeping input order.
    """
    seen: set[str] = set()
    names: list[str] = []
    for raw in employees:
        name: str = (raw or "").strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


def expand_dates(start_date: date | None, end_date: date | None = None, multi_day: bool = False) -> list[date]:
    """대상 날짜 목록을 계산합니다.

    Expand the target date into the inclusive day sequence [start_date, end_date]
    when multi_day is set; otherwise the single start date.

    Raises:
        ValidationError: 날짜가 없거나 종료일이 시작일보다 앞설 때
                         (No date, or end date before start date)
    """
    if start_date is None:
        raise ValidationError("A work date is required")
    if not multi_day:
        return [start_date]
    if end_date is None:
        raise ValidationError("End date is required for multi-day assignments")
    if end_date < start_date:
        raise ValidationError("End date must be on or after the start date")

    return [start_date + timedelta(days=offset) for offset in range((end_date - start_date).days + 1)]


def plan_cell(
    existing: Sequence[OrderStageAssignment],
    desired_employees: Iterable[str],
    note: str | None,
    work_date: date,
) -> list[AssignmentIntent]:
    """셀의 추가/삭제/메모 갱신 작업을 계산합니다 (순수 함수).

    Diff the existing rows of a cell against the desired employee set, keyed
    by employee name. Output order: adds, then removes, then note updates.
    Rows repeating an employee name beyond the first are removed so the cell
    converges to a set.

    Args:
        existing: 저장소에서 다시 읽은 셀의 배정 (Cell rows as re-read from the store)
        desired_employees: 원하는 직원 이름들 (Desired employee names)
        note: 셀 공통 메모 (Shared note for the cell)
        work_date: 셀 날짜 (Cell date)

    Returns:
        list[AssignmentIntent]: 실행할 작업 목록 (Intents to execute)
    """
    desired: list[str] = normalize_employees(desired_employees)
    desired_set: set[str] = set(desired)
    target_note: str | None = normalize_note(note)

    first_by_name: dict[str, OrderStageAssignment] = {}
    duplicates: list[OrderStageAssignment] = []
    for row in existing:
        if row.employee_name in first_by_name:
            duplicates.append(row)
        else:
            first_by_name[row.employee_name] = row

    adds: list[AssignmentIntent] = [
        AssignmentIntent(INTENT_ADD, name, work_date)
        for name in desired if name not in first_by_name
    ]
    removes: list[AssignmentIntent] = [
        AssignmentIntent(INTENT_REMOVE, row.employee_name, work_date, row.id)
        for name, row in first_by_name.items() if name not in desired_set
    ]
    removes.extend(
        AssignmentIntent(INTENT_REMOVE, row.employee_name, work_date, row.id) for row in duplicates
    )
    updates: list[AssignmentIntent] = [
        AssignmentIntent(INTENT_UPDATE_NOTE, name, work_date, first_by_name[name].id)
        for name in desired
        if name in first_by_name and normalize_note(first_by_name[name].note) != target_note
    ]
    return adds + removes + updates


class ReconciliationService:
    """배정 조정 서비스.

    Assignment reconciliation engine for calendar cells.
    """

    async def _resolve_stage(
        self,
        db: AsyncSession,
        stage_id: int | None,
        order_id: int | None = None,
    ) -> OrderStage:
        """대상 단계가 유효한지 검증합니다.

        Verify the target stage exists, hangs off an order detail and, when
        order_id is given, belongs to that order.

        Raises:
            ValidationError: 단계가 없거나 유효하지 않을 때 (Unresolved or invalid stage)
        """
        if not stage_id:
            raise ValidationError("A target stage is required")

        stage: OrderStage | None = await stage_repository.get_fresh(db, stage_id)
        if stage is None:
            raise ValidationError(f"Stage {stage_id} does not exist")
        if not stage.order_detail_id:
            raise ValidationError(
                f"Stage {stage_id} is not linked to an order. Please select a different order or stage."
            )

        if order_id is not None:
            detail: OrderDetail | None = await order_repository.get_detail_with_order(db, stage.order_detail_id)
            if detail is None or detail.order_id != order_id:
                raise ValidationError(f"Stage {stage_id} does not belong to order {order_id}")
        return stage

    async def _execute(
        self,
        db: AsyncSession,
        stage_id: int,
        intents: list[AssignmentIntent],
        note: str | None,
        mode: str,
    ) -> ReconciliationResult:
        """작업을 순서대로 하나씩 실행합니다.

        Execute intents sequentially. The first failure aborts the batch and is
        raised with the intents already applied.

        Raises:
            PartialReconciliationError: 작업 도중 실패 시 (When an intent fails)
        """
        result: ReconciliationResult = ReconciliationResult(stage_id=stage_id, mode=mode)

        for intent in intents:
            try:
                if intent.kind == INTENT_ADD:
                    created: OrderStageAssignment = await assignment_repository.create(
                        db,
                        {
                            "order_stage_id": stage_id,
                            "employee_name": intent.employee_name,
                            "work_date": intent.work_date,
                            "note": note,
                            "is_done": False,
                            "employee_rate": None,
                        },
                    )
                    intent.assignment_id = created.id
                elif intent.kind == INTENT_REMOVE:
                    await assignment_repository.delete(db, intent.assignment_id)
                else:
                    await assignment_repository.update(db, intent.assignment_id, {"note": note})
            except (HTTPException, SQLAlchemyError) as exc:
                if isinstance(exc, HTTPException):
                    status_code: int = exc.status_code
                    reason: str = str(exc.detail)
                else:
                    status_code = status.HTTP_502_BAD_GATEWAY
                    reason = str(exc)
                logger.error(
                    "Reconciliation of stage %s stopped at %s %s on %s after %d applied: %s",
                    stage_id,
                    intent.kind,
                    intent.employee_name,
                    intent.work_date,
                    len(result.applied),
                    reason,
                )
                raise PartialReconciliationError(
                    message=(
                        f"Failed to {intent.kind.replace('_', ' ')} assignment for "
                        f"{intent.employee_name} on {intent.work_date.isoformat()}: {reason}"
                    ),
                    status_code=status_code,
                    applied=[applied.to_dict() for applied in result.applied],
                    failed=intent.to_dict(),
                ) from exc

            result.applied.append(intent)

        logger.info(
            "Reconciled stage %s (%s): %d created, %d removed, %d updated",
            stage_id,
            mode,
            result.created,
            result.removed,
            result.updated,
        )
        return result

    async def create_cells(
        self,
        db: AsyncSession,
        stage_id: int | None,
        start_date: date | None,
        desired_employees: Iterable[str],
        note: str | None = None,
        end_date: date | None = None,
        multi_day: bool = False,
        order_id: int | None = None,
    ) -> ReconciliationResult:
        """생성 모드 — 날짜 × 직원 조합마다 새 배정을 만듭니다.

        Create mode: fan out one new assignment per date × employee. The target
        cells are assumed empty; no diff against stored rows is made.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            stage_id: 대상 단계 ID (Target stage)
            start_date: 시작일 (Target date, or multi-day start)
            desired_employees: 직원 이름들 (Employee names, de-duplicated here)
            note: 공통 메모 (Shared note)
            end_date: 다일 배정 종료일 (Multi-day end date, inclusive)
            multi_day: 다일 배정 여부 (Whether to expand over [start_date, end_date])
            order_id: 선택된 주문 ID, 선택 (Selected order, checked against the stage)

        Returns:
            ReconciliationResult: 생성된 배정 목록 (Applied add intents)

        Raises:
            ValidationError: 쓰기 전 검증 실패 시 (Before any write)
            PartialReconciliationError: 생성 도중 실패 시 (When a create fails midway)
        """
        dates: list[date] = expand_dates(start_date, end_date, multi_day)
        employees: list[str] = normalize_employees(desired_employees)
        intents: list[AssignmentIntent] = [
            AssignmentIntent(INTENT_ADD, name, day) for day in dates for name in employees
        ]
        if not intents:
            raise ValidationError("No assignments were generated. Select at least one employee.")

        await self._resolve_stage(db, stage_id, order_id)

        logger.info(
            "Creating %d assignments for stage %s over %d day(s)",
            len(intents),
            stage_id,
            len(dates),
        )
        return await self._execute(db, stage_id, intents, normalize_note(note), MODE_CREATE)

    async def reconcile_cell(
        self,
        db: AsyncSession,
        stage_id: int | None,
        work_date: date | None,
        desired_employees: Iterable[str],
        note: str | None = None,
        order_id: int | None = None,
    ) -> ReconciliationResult:
        """수정 모드 — 셀의 저장된 배정을 원하는 직원 집합으로 수렴시킵니다.

        Edit mode: re-read the cell from the store (the caller's snapshot may be
        stale), then add missing employees, remove dropped ones and rewrite the
        note where it differs. An empty desired set empties the cell.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            stage_id: 셀의 단계 ID (Cell stage)
            work_date: 셀의 날짜 (Cell date)
            desired_employees: 원하는 직원 이름들 (Desired employee names)
            note: 공통 메모 (Shared note)
            order_id: 선택된 주문 ID, 선택 (Selected order, checked against the stage)

        Returns:
            ReconciliationResult: 반영된 작업 목록 (Applied intents)

        Raises:
            ValidationError: 쓰기 전 검증 실패 시 (Before any write)
            PartialReconciliationError: 작업 도중 실패 시 (When an intent fails midway)
        """
        if work_date is None:
            raise ValidationError("A work date is required")
        desired: list[str] = normalize_employees(desired_employees)

        await self._resolve_stage(db, stage_id, order_id)

        existing: Sequence[OrderStageAssignment] = await assignment_repository.list_by_stage_and_date(
            db, stage_id, work_date
        )
        intents: list[AssignmentIntent] = plan_cell(existing, desired, note, work_date)

        logger.info(
            "Reconciling stage %s on %s: existing=%s desired=%s planned=%s",
            stage_id,
            work_date,
            [a.employee_name for a in existing],
            desired,
            [(i.kind, i.employee_name) for i in intents],
        )
        return await self._execute(db, stage_id, intents, normalize_note(note), MODE_EDIT)


# 싱글턴 인스턴스 — Singleton instance
reconciliation_service: ReconciliationService = ReconciliationService()
