"""스케줄링 화면 상태 컨트롤러 — 주간 이동, 필터, 배정 폼 상태.

Scheduling View-State Controller — Holds the visible week, the active filters
and the assignment form (modal) state, and drives the reconciliation engine
from a form submission followed by a calendar refetch.

Form state machine:
    closed → open(create, date)                 open_create()
    closed → open(edit, assignment, siblings)   open_edit()
    open(*) → closed                            cancel() / successful submit()
    open(*) → open(*) + error                   failed submit(), input is kept for retry
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Iterable, Sequence

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.assignment import OrderStageAssignment
from app.models.order import Order, OrderStage, STAGE_STATUSES
from app.services.calendar_service import CalendarAggregator, CalendarEntry
from app.services.reconciliation_service import ReconciliationResult, reconciliation_service
from app.utils.exceptions import PartialReconciliationError, ValidationError

logger = logging.getLogger(__name__)

MODAL_CLOSED: str = "closed"
MODAL_CREATE: str = "create"
MODAL_EDIT: str = "edit"


@dataclass(frozen=True)
class Employee:
    """명단의 직원 한 명 (One roster entry)."""

    id: int
    name: str
    role: str = ""


class EmployeeRoster:
    """고정 직원 명단 — 읽기 전용 조회 테이블.

    Fixed employee roster, injected into the controller as a read-only lookup.
    Assignment rows store the name only; the roster is not enforced as a foreign key.
    """

    def __init__(self, names: Iterable[str]) -> None:
        self._employees: tuple[Employee, ...] = tuple(
            Employee(id=index, name=name) for index, name in enumerate(names, start=1)
        )

    @classmethod
    def from_settings(cls) -> "EmployeeRoster":
        return cls(settings.EMPLOYEE_ROSTER)

    @property
    def employees(self) -> tuple[Employee, ...]:
        return self._employees

    def names(self) -> list[str]:
        return [e.name for e in self._employees]

    def get(self, employee_id: int) -> Employee | None:
        for employee in self._employees:
            if employee.id == employee_id:
                return employee
        return None

    def __contains__(self, name: object) -> bool:
        return any(e.name == name for e in self._employees)

    def __len__(self) -> int:
        return len(self._employees)


@dataclass
class ScheduleFilters:
    """활성 필터 — 차원 간 AND, 차원 내 OR.

    Active filters. Dimensions combine with AND; values within the employee or
    status dimension combine with OR. Empty dimensions are inactive.
    """

    order_id: int | None = None
    employees: set[str] = field(default_factory=set)
    statuses: set[str] = field(default_factory=set)

    @property
    def is_any_active(self) -> bool:
        return self.order_id is not None or bool(self.employees) or bool(self.statuses)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "employees": sorted(self.employees),
            "statuses": sorted(self.statuses),
        }


@dataclass
class ModalState:
    """배정 폼 상태 (Assignment form state)."""

    mode: str = MODAL_CLOSED
    selected_date: date | None = None
    assignment: OrderStageAssignment | None = None
    siblings: list[OrderStageAssignment] = field(default_factory=list)
    error: str | None = None

    @property
    def is_open(self) -> bool:
        return self.mode != MODAL_CLOSED


def start_of_week(day: date, week_start_day: int) -> date:
    """day가 속한 주의 시작일 (First day of the week containing day; 0=Monday)."""
    return day - timedelta(days=(day.weekday() - week_start_day) % 7)


class SchedulingViewState:
    """스케줄링 화면 상태 컨트롤러.

    Scheduling view-state controller. One instance backs one calendar view.

    Attributes:
        reference_date: 표시 주를 결정하는 기준일 (Date whose week is visible)
        week_start_day: 주 시작 요일, 0=월요일 (First weekday, 0=Monday)
        roster: 직원 명단 (Injected employee roster)
        filters: 활성 필터 (Active filters)
        modal: 배정 폼 상태 (Assignment form state)
        calendar: 현재 주의 집계기 (Aggregator for the visible week)
    """

    def __init__(
        self,
        reference_date: date | None = None,
        week_start_day: int | None = None,
        roster: EmployeeRoster | None = None,
        today: date | None = None,
    ) -> None:
        self._today: date = today or date.today()
        self.reference_date: date = reference_date or self._today
        self.week_start_day: int = settings.WEEK_START_DAY if week_start_day is None else week_start_day
        self.roster: EmployeeRoster = roster or EmployeeRoster.from_settings()
        self.filters: ScheduleFilters = ScheduleFilters()
        self.modal: ModalState = ModalState()
        self.calendar: CalendarAggregator = CalendarAggregator(self.week_start, self.week_end)
        self._link_order_id: int | None = None
        self._link_consumed: bool = False

    # ------------------------------------------------------------------
    # 주간 이동 — Week navigation
    # ------------------------------------------------------------------
    @property
    def week_start(self) -> date:
        return start_of_week(self.reference_date, self.week_start_day)

    @property
    def week_end(self) -> date:
        return self.week_start + timedelta(days=6)

    @property
    def week_days(self) -> list[date]:
        return [self.week_start + timedelta(days=offset) for offset in range(7)]

    @property
    def week_range_text(self) -> str:
        start, end = self.week_start, self.week_end
        if start.year != end.year:
            return f"{start:%b %d, %Y} - {end:%b %d, %Y}"
        return f"{start:%b %d} - {end:%b %d, %Y}"

    def is_current_day(self, day: date) -> bool:
        return day == self._today

    def _move_to(self, reference_date: date) -> None:
        self.reference_date = reference_date
        # 새 주는 새 스냅샷 — a new window needs a fresh load
        self.calendar = CalendarAggregator(self.week_start, self.week_end)

    def go_to_previous_week(self) -> None:
        self._move_to(self.reference_date - timedelta(days=7))

    def go_to_next_week(self) -> None:
        self._move_to(self.reference_date + timedelta(days=7))

    def go_to_today(self) -> None:
        self._move_to(self._today)

    async def load(self, db: AsyncSession) -> CalendarAggregator:
        """현재 주의 데이터를 로드하고 대기 중인 딥링크를 적용합니다.

        Load the visible week, then apply a pending deep link if its order is loaded.
        """
        await self.calendar.load(db)
        self.apply_deep_link()
        return self.calendar

    # ------------------------------------------------------------------
    # 필터 — Filters
    # ------------------------------------------------------------------
    def set_order_filter(self, order_id: int | None) -> None:
        self.filters.order_id = order_id

    def set_employee_filter(self, employees: Iterable[str]) -> None:
        self.filters.employees = {name for name in employees if name}

    def set_status_filter(self, statuses: Iterable[str]) -> None:
        selected: set[str] = set(statuses)
        unknown: set[str] = selected - set(STAGE_STATUSES)
        if unknown:
            raise ValidationError(f"Unknown stage status filter: {', '.join(sorted(unknown))}")
        self.filters.statuses = selected

    def reset_filters(self) -> None:
        self.filters = ScheduleFilters()

    def filter_assignments(
        self,
        assignments: Sequence[OrderStageAssignment],
        resolve_order: Callable[[OrderStageAssignment], Order | None],
        resolve_stage: Callable[[OrderStageAssignment], OrderStage | None],
    ) -> list[OrderStageAssignment]:
        """활성 필터를 모두 만족하는 배정만 남깁니다.

        Keep the assignments that pass every active filter. With an order or
        status filter active, an assignment whose order or stage cannot be
        resolved is excluded. No active filter returns every assignment.

        Args:
            assignments: 배정 목록 (Assignments to filter)
            resolve_order: 배정 → 주문 조회 함수 (Assignment to order lookup)
            resolve_stage: 배정 → 단계 조회 함수 (Assignment to stage lookup)

        Returns:
            list[OrderStageAssignment]: 필터를 통과한 배정 (Passing assignments)
        """
        filters: ScheduleFilters = self.filters
        if not filters.is_any_active:
            return list(assignments)

        passing: list[OrderStageAssignment] = []
        for assignment in assignments:
            if filters.order_id is not None:
                order: Order | None = resolve_order(assignment)
                if order is None or order.id != filters.order_id:
                    continue
            if filters.employees and assignment.employee_name not in filters.employees:
                continue
            if filters.statuses:
                stage: OrderStage | None = resolve_stage(assignment)
                if stage is None or stage.status not in filters.statuses:
                    continue
            passing.append(assignment)
        return passing

    def visible_entries(self) -> list[CalendarEntry]:
        """현재 필터를 적용한 조인 항목 (Joined entries passing the current filters)."""
        passing: list[OrderStageAssignment] = self.filter_assignments(
            self.calendar.assignments,
            self.calendar.resolve_order,
            self.calendar.resolve_stage,
        )
        return [self.calendar.join(a) for a in passing]

    def cards_by_day(self) -> dict[date, list[list[CalendarEntry]]]:
        """요일별 카드 — 같은 (단계, 날짜)의 항목을 한 카드로 묶습니다.

        Group visible entries per day into cards, one card per (stage, date) cell.
        The first entry of a card is its primary assignment.
        """
        days: dict[date, list[list[CalendarEntry]]] = {day: [] for day in self.week_days}
        cards: dict[tuple[int, date], list[CalendarEntry]] = {}
        for entry in self.visible_entries():
            key: tuple[int, date] = (entry.assignment.order_stage_id, entry.assignment.work_date)
            if key not in cards:
                cards[key] = []
                if entry.assignment.work_date in days:
                    days[entry.assignment.work_date].append(cards[key])
            cards[key].append(entry)
        return days

    # ------------------------------------------------------------------
    # 딥링크 — Deep link (?orderId=...)
    # ------------------------------------------------------------------
    def receive_deep_link(self, order_id: int | None) -> None:
        """외부 링크의 주문 ID를 대기열에 둡니다 (Queue an order id from an external link)."""
        if order_id is not None and not self._link_consumed:
            self._link_order_id = order_id

    @property
    def pending_deep_link(self) -> int | None:
        return self._link_order_id

    def apply_deep_link(self) -> bool:
        """로드된 주문에 있으면 딥링크를 한 번만 주문 필터로 적용합니다.

        Apply the queued link as the order filter exactly once, and only when the
        order is in the loaded set. The link is cleared once applied.

        Returns:
            bool: 이번 호출에서 적용되었는지 (Whether the link was applied by this call)
        """
        if self._link_consumed or self._link_order_id is None:
            return False

        order: Order | None = self.calendar.find_order(self._link_order_id)
        if order is None:
            return False

        self.set_order_filter(order.id)
        self._link_order_id = None
        self._link_consumed = True
        logger.info("Auto-selected order %s (%s) from link", order.id, order.code)
        return True

    # ------------------------------------------------------------------
    # 배정 폼 — Assignment form
    # ------------------------------------------------------------------
    def open_create(self, day: date) -> None:
        if self.modal.is_open:
            raise ValidationError("An assignment form is already open")
        self.modal = ModalState(mode=MODAL_CREATE, selected_date=day)

    def open_edit(
        self,
        assignment: OrderStageAssignment,
        siblings: Sequence[OrderStageAssignment] = (),
    ) -> None:
        if self.modal.is_open:
            raise ValidationError("An assignment form is already open")
        self.modal = ModalState(
            mode=MODAL_EDIT,
            selected_date=assignment.work_date,
            assignment=assignment,
            siblings=list(siblings),
        )

    def cancel(self) -> None:
        self.modal = ModalState()

    def form_employees(self) -> list[str]:
        """수정 폼의 초기 직원 목록 — 주 배정 + 같은 셀의 형제 배정.

        Initial employee selection of the edit form: the primary assignment
        followed by its siblings in the same cell.
        """
        if self.modal.assignment is None:
            return []
        rows: list[OrderStageAssignment] = [self.modal.assignment, *self.modal.siblings]
        return list(dict.fromkeys(row.employee_name for row in rows))

    async def submit(
        self,
        db: AsyncSession,
        stage_id: int | None,
        employees: Iterable[str],
        note: str | None = None,
        work_date: date | None = None,
        end_date: date | None = None,
        multi_day: bool = False,
        order_id: int | None = None,
    ) -> ReconciliationResult:
        """폼 제출 — 조정 엔진 실행 후 캘린더를 다시 읽습니다.

        Submit the open form: run the reconciliation engine in the form's mode,
        then refetch the calendar and close the form. On failure the form stays
        open with a readable error; the calendar is still refetched unless the
        failure was a validation error raised before any write.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            stage_id: 대상 단계 ID (Target stage)
            employees: 원하는 직원 이름들 (Desired employees)
            note: 공통 메모 (Shared note)
            work_date: 대상 날짜, 없으면 폼의 선택 날짜 (Target date, defaults to the form's date)
            end_date: 다일 생성 종료일 (Multi-day end date, create mode only)
            multi_day: 다일 생성 여부 (Multi-day toggle, create mode only)
            order_id: 선택된 주문 ID (Selected order)

        Returns:
            ReconciliationResult: 반영된 작업 (Applied intents)

        Raises:
            ValidationError: 폼이 닫혀 있거나 입력이 잘못되었을 때 (Closed form or invalid input)
            PartialReconciliationError: 일부만 반영되었을 때 (Partially applied batch)
        """
        if not self.modal.is_open:
            raise ValidationError("No assignment form is open")

        target_date: date | None = work_date or self.modal.selected_date
        self.modal.error = None

        try:
            if self.modal.mode == MODAL_EDIT:
                result: ReconciliationResult = await reconciliation_service.reconcile_cell(
                    db, stage_id, target_date, employees, note, order_id=order_id
                )
            else:
                result = await reconciliation_service.create_cells(
                    db,
                    stage_id,
                    target_date,
                    employees,
                    note,
                    end_date=end_date,
                    multi_day=multi_day,
                    order_id=order_id,
                )
        except ValidationError as exc:
            self.modal.error = str(exc.detail)
            raise
        except PartialReconciliationError as exc:
            self.modal.error = f"Failed to save assignment: {exc.message}"
            await self.calendar.refetch(db)
            raise
        except HTTPException as exc:
            self.modal.error = f"Failed to save assignment: {exc.detail}"
            await self.calendar.refetch(db)
            raise
        except Exception:
            self.modal.error = "Failed to save assignment: Unknown error"
            # 일부 쓰기가 반영되었을 수 있음 — earlier intents may have persisted
            await self.calendar.refetch(db)
            raise

        await self.calendar.refetch(db)
        self.modal = ModalState()
        return result
