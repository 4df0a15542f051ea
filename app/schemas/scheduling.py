"""스케줄링 Pydantic 요청/응답 스키마 정의.

Scheduling Pydantic request/response schema definitions.
Covers stage assignments, calendar cell reconciliation, the weekly calendar
view and the working-order tree used by the assignment form.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from pydantic import BaseModel, ConfigDict, Field, model_validator

StageStatus = Literal["not_started", "scheduled", "in_progress", "completed", "delayed", "on_hold"]


# === 단계 배정 (Assignment) 스키마 ===

class AssignmentCreate(BaseModel):
    """단계 배정 단건 생성 요청 스키마.

    Single stage assignment creation request. employee_name and work_date are
    checked by the repository so a blank name is reported as a validation error.
    """

    order_stage_id: int  # 대상 단계 ID (Target stage)
    employee_name: str = ""  # 직원 이름 (Employee name from the roster)
    work_date: date | None = None  # 근무 날짜 (Work date)
    note: str | None = None  # 메모 (Note)
    is_done: bool = False  # 완료 여부 (Completion flag)
    employee_rate: Decimal | None = None  # 시급, 예약 필드 (Reserved hourly rate)


class AssignmentUpdate(BaseModel):
    """단계 배정 부분 수정 요청 스키마.

    Partial update; only fields explicitly sent are applied (exclude_unset).
    """

    order_stage_id: int | None = None
    employee_name: str | None = None
    work_date: date | None = None
    note: str | None = None
    is_done: bool | None = None
    created_at: datetime | None = None
    employee_rate: Decimal | None = None


class AssignmentResponse(BaseModel):
    """단계 배정 응답 스키마 (Stage assignment response)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    order_stage_id: int
    employee_name: str
    work_date: date
    note: str | None
    is_done: bool
    employee_rate: Decimal | None
    created_at: datetime | None


class CalendarEntryResponse(AssignmentResponse):
    """캘린더 항목 응답 — 배정 + 단계/주문 요약.

    Calendar entry: an assignment with its resolved stage and order summary.
    Stage and order fields are null when the join cannot be resolved.
    """

    stage_name: str | None = None
    stage_status: str | None = None
    order_id: int | None = None
    order_code: str | None = None
    customer_name: str | None = None


# === 셀 조정 (Cell reconciliation) 스키마 ===

class CellCreateRequest(BaseModel):
    """생성 모드 요청 — 날짜 × 직원 조합 생성.

    Create-mode request. With multi_day the cells of every day in
    [work_date, end_date] are created.
    """

    order_stage_id: int | None = None  # 대상 단계 ID (Target stage)
    order_id: int | None = None  # 선택된 주문, 단계 소속 검증용 (Selected order, checked against the stage)
    work_date: date | None = None  # 대상/시작 날짜 (Target or start date)
    end_date: date | None = None  # 다일 배정 종료일 (Multi-day end date)
    multi_day: bool = False  # 다일 배정 여부 (Multi-day toggle)
    employees: list[str] = Field(default_factory=list)  # 직원 이름 목록 (Employee names)
    note: str | None = None  # 셀 공통 메모 (Shared note)


class CellReconcileRequest(BaseModel):
    """수정 모드 요청 — 셀의 원하는 직원 집합.

    Edit-mode request: the desired employee set and shared note for one cell.
    An empty employee list empties the cell.
    """

    order_id: int | None = None
    employees: list[str] = Field(default_factory=list)
    note: str | None = None


class AssignmentIntentResponse(BaseModel):
    """반영된 작업 한 건 (One applied intent)."""

    kind: Literal["add", "remove", "update_note"]
    employee_name: str
    work_date: date
    assignment_id: int | None


class ReconciliationResponse(BaseModel):
    """조정 결과 응답 스키마.

    Reconciliation result with per-kind counts and the applied intents in order.
    """

    stage_id: int
    mode: Literal["create", "edit"]
    created: int
    removed: int
    updated: int
    applied: list[AssignmentIntentResponse]


# === 주문/단계 (Order tree) 스키마 ===

class StageResponse(BaseModel):
    """생산 단계 응답 스키마 (Order stage response)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    order_detail_id: int | None
    stage_name: str
    status: str
    planned_start_date: datetime | None = None
    planned_finish_date: datetime | None = None
    actual_start_date: datetime | None = None
    actual_finish_date: datetime | None = None
    notes: str | None = None


class OrderDetailResponse(BaseModel):
    """주문 생산 정보 응답 스키마 (Order detail with stages)."""

    model_config = ConfigDict(from_attributes=True)

    detail_id: int
    order_id: int
    assigned_to: str | None = None
    due_date: date | None = None
    process_stage: str | None = None
    stages: list[StageResponse] = Field(default_factory=list)


class OrderResponse(BaseModel):
    """작업 주문 응답 스키마 (Working order with its detail/stage tree)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    customer_name: str
    address: str | None = None
    order_status: str
    work_types: list[str] | None = None
    details: list[OrderDetailResponse] = Field(default_factory=list)


# === 캘린더 (Calendar) 스키마 ===

class CalendarCard(BaseModel):
    """캘린더 카드 — 한 셀(단계, 날짜)의 배정 묶음.

    One calendar card: the assignments of one (stage, date) cell.
    The first assignment is the card's primary one.
    """

    order_stage_id: int
    work_date: date
    employees: list[str]
    note: str | None
    assignment_ids: list[int]
    stage_name: str | None
    stage_status: str | None
    order_id: int | None
    order_code: str | None


class CalendarDay(BaseModel):
    """캘린더 하루 (One calendar day with its cards)."""

    day: date
    is_today: bool
    cards: list[CalendarCard]


class CalendarFilters(BaseModel):
    """활성 필터 (Active filters echoed back)."""

    order_id: int | None
    employees: list[str]
    statuses: list[str]


class CalendarResponse(BaseModel):
    """주간 캘린더 응답 스키마.

    Weekly calendar response: the visible week, filtered entries grouped into
    day cards, the working orders for the form and the active filters.
    """

    week_start: date
    week_end: date
    week_range_text: str
    days: list[CalendarDay]
    entries: list[CalendarEntryResponse]
    orders: list[OrderResponse]
    filters: CalendarFilters
    link_applied: bool = False


class EmployeeResponse(BaseModel):
    """직원 명단 항목 (Roster entry)."""

    id: int
    name: str
    role: str


class DateRangeQuery(BaseModel):
    """날짜 범위 쿼리 (Inclusive date range)."""

    date_from: date
    date_to: date

    @model_validator(mode="after")
    def _check_order(self) -> "DateRangeQuery":
        if self.date_to < self.date_from:
            raise ValueError("date_to must be on or after date_from")
        return self


class MessageResponse(BaseModel):
    """범용 메시지 응답 스키마.

    Generic message response schema for simple confirmations such as deletes.
    """

    message: str  # 사람이 읽을 수 있는 결과 메시지 (Human-readable result message)
    detail: dict[str, Any] | None = None
