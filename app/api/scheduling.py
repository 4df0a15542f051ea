"""스케줄링 라우터 — 주간 캘린더, 단계 배정, 셀 조정 API.

Scheduling Router — Weekly calendar, stage assignment CRUD and calendar
cell reconciliation endpoints.
"""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_roster, get_view_state
from app.config import settings
from app.database import get_db
from app.models.assignment import OrderStageAssignment
from app.repositories.assignment_repository import assignment_repository
from app.repositories.order_repository import order_repository
from app.schemas.scheduling import (
    AssignmentCreate,
    AssignmentResponse,
    AssignmentUpdate,
    CalendarResponse,
    CellCreateRequest,
    CellReconcileRequest,
    DateRangeQuery,
    EmployeeResponse,
    MessageResponse,
    OrderResponse,
    ReconciliationResponse,
)
from app.services.calendar_service import build_card_response, build_entry_response
from app.services.reconciliation_service import ReconciliationResult, reconciliation_service
from app.services.view_state import EmployeeRoster, SchedulingViewState
from app.utils.exceptions import NotFoundError, ValidationError

router: APIRouter = APIRouter()


@router.get("/calendar", response_model=CalendarResponse)
async def get_calendar(
    db: Annotated[AsyncSession, Depends(get_db)],
    view: Annotated[SchedulingViewState, Depends(get_view_state)],
) -> dict:
    """주간 캘린더를 조회합니다.

    Load the week containing reference_date, apply the filters (and a deep-linked
    order, when it is a loaded working order) and group entries into day cards.

    Args:
        db: 비동기 데이터베이스 세션 (Async database session)
        view: 쿼리로 구성된 화면 상태 (View state built from the query)

    Returns:
        dict: 주간 캘린더 (Weekly calendar)
    """
    await view.calendar.load(db)
    link_applied: bool = view.apply_deep_link()

    days: list[dict] = [
        {
            "day": day,
            "is_today": view.is_current_day(day),
            "cards": [build_card_response(card) for card in cards],
        }
        for day, cards in view.cards_by_day().items()
    ]

    return {
        "week_start": view.week_start,
        "week_end": view.week_end,
        "week_range_text": view.week_range_text,
        "days": days,
        "entries": [build_entry_response(entry) for entry in view.visible_entries()],
        "orders": list(view.calendar.orders),
        "filters": view.filters.to_dict(),
        "link_applied": link_applied,
    }


@router.get("/employees", response_model=list[EmployeeResponse])
async def list_employees(
    roster: Annotated[EmployeeRoster, Depends(get_roster)],
) -> list[dict]:
    """고정 직원 명단을 조회합니다 (List the fixed employee roster)."""
    return [{"id": e.id, "name": e.name, "role": e.role} for e in roster.employees]


@router.get("/orders", response_model=list[OrderResponse])
async def list_working_orders(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list:
    """진행 중 주문을 단계 트리와 함께 조회합니다.

    List working orders with their detail/stage tree, for the assignment form.
    """
    return list(await order_repository.get_by_status_with_stages(db, settings.WORKING_ORDER_STATUS))


@router.get("/assignments", response_model=list[AssignmentResponse])
async def list_assignments(
    db: Annotated[AsyncSession, Depends(get_db)],
    date_from: Annotated[date, Query()],
    date_to: Annotated[date, Query()],
) -> list:
    """근무일 범위(양 끝 포함)로 배정을 조회합니다.

    List assignments with date_from <= work_date <= date_to.
    """
    try:
        window: DateRangeQuery = DateRangeQuery(date_from=date_from, date_to=date_to)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    return list(await assignment_repository.list_by_date_range(db, window.date_from, window.date_to))


@router.get("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrderStageAssignment:
    """배정 한 건을 조회합니다 (Get one assignment)."""
    assignment: OrderStageAssignment | None = await assignment_repository.get_by_id(db, assignment_id)
    if assignment is None:
        raise NotFoundError(f"Assignment {assignment_id} not found")
    return assignment


@router.post("/assignments", response_model=AssignmentResponse, status_code=201)
async def create_assignment(
    data: AssignmentCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrderStageAssignment:
    """배정 한 건을 생성합니다.

    Create a single assignment; its stage is marked scheduled as a side effect.
    """
    return await assignment_repository.create(db, data.model_dump())


@router.patch("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: int,
    data: AssignmentUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrderStageAssignment:
    """배정을 부분 수정합니다 (Partially update an assignment)."""
    return await assignment_repository.update(db, assignment_id, data.model_dump(exclude_unset=True))


@router.delete("/assignments/{assignment_id}", response_model=MessageResponse)
async def delete_assignment(
    assignment_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """배정을 삭제합니다.

    Delete an assignment; its stage is reset to not_started if it was the last one.
    """
    await assignment_repository.delete(db, assignment_id)
    return {"message": f"Assignment {assignment_id} deleted"}


@router.post("/cells", response_model=ReconciliationResponse, status_code=201)
async def create_cells(
    data: CellCreateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """생성 모드 — 새 셀(들)에 직원들을 배정합니다.

    Create mode: one assignment per employee for the date, or for every day of
    [work_date, end_date] when multi_day is set.

    Args:
        data: 생성 요청 (Create-mode request)
        db: 비동기 데이터베이스 세션 (Async database session)

    Returns:
        dict: 조정 결과 (Reconciliation result)
    """
    result: ReconciliationResult = await reconciliation_service.create_cells(
        db,
        data.order_stage_id,
        data.work_date,
        data.employees,
        data.note,
        end_date=data.end_date,
        multi_day=data.multi_day,
        order_id=data.order_id,
    )
    return result.to_dict()


@router.put("/cells/{stage_id}/{work_date}", response_model=ReconciliationResponse)
async def reconcile_cell(
    stage_id: int,
    work_date: date,
    data: CellReconcileRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """수정 모드 — 셀을 원하는 직원 집합으로 맞춥니다.

    Edit mode: converge the cell (stage_id, work_date) to the desired employees
    and shared note. A partial failure responds with the applied intents.

    Args:
        stage_id: 셀 단계 ID (Cell stage)
        work_date: 셀 날짜 (Cell date)
        data: 원하는 직원 집합과 메모 (Desired employees and note)
        db: 비동기 데이터베이스 세션 (Async database session)

    Returns:
        dict: 조정 결과 (Reconciliation result)
    """
    result: ReconciliationResult = await reconciliation_service.reconcile_cell(
        db,
        stage_id,
        work_date,
        data.employees,
        data.note,
        order_id=data.order_id,
    )
    return result.to_dict()
