"""캘린더 집계 서비스 — 주간 배정과 작업 주문을 메모리에서 조인.

Calendar Service — Loads the assignments of a visible date window together with
their stages and every working order, and joins them in memory for display.

The loaded collections are read-only snapshots. Nothing patches them in place:
after a mutation the owner calls refetch() and the snapshots are replaced.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.assignment import OrderStageAssignment
from app.models.order import Order, OrderStage
from app.repositories.assignment_repository import assignment_repository
from app.repositories.order_repository import order_repository
from app.repositories.stage_repository import stage_repository
from app.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalendarEntry:
    """배정 한 건과 조인된 단계/주문.

    One assignment joined to its stage and order. stage and order are None
    when the weak reference cannot be resolved; the entry is then rendered
    without order context.
    """

    assignment: OrderStageAssignment
    stage: OrderStage | None
    order: Order | None


class CalendarAggregator:
    """주간 캘린더 데이터 집계기.

    Calendar aggregator for one closed date window [week_start, week_end].

    Attributes:
        week_start: 조회 시작일, 포함 (Window start, inclusive)
        week_end: 조회 종료일, 포함 (Window end, inclusive)
        assignments: 범위 내 배정 스냅샷 (Assignments in range)
        stages: 조인에 필요한 단계 스냅샷 (Stages needed for the join)
        orders: 진행 중 주문 스냅샷 (Working orders with details and stages)
    """

    def __init__(self, week_start: date, week_end: date) -> None:
        if week_end < week_start:
            raise ValidationError("Calendar window end must not precede its start")
        self.week_start: date = week_start
        self.week_end: date = week_end
        self.assignments: tuple[OrderStageAssignment, ...] = ()
        self.stages: tuple[OrderStage, ...] = ()
        self.orders: tuple[Order, ...] = ()
        self.loaded: bool = False

    async def load(self, db: AsyncSession) -> "CalendarAggregator":
        """창 범위의 배정, 단계, 진행 중 주문을 모두 다시 읽습니다.

        Run the full load: assignments in range, every working order with its
        detail/stage tree, and the stages referenced by the assignments.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)

        Returns:
            CalendarAggregator: self, 체이닝용 (self, for chaining)
        """
        assignments: Sequence[OrderStageAssignment] = await assignment_repository.list_by_date_range(
            db, self.week_start, self.week_end
        )
        orders: Sequence[Order] = await order_repository.get_by_status_with_stages(
            db, settings.WORKING_ORDER_STATUS
        )

        # 주문 트리의 단계 + 주문 밖에서 참조된 단계 (stages from the order trees plus referenced strays)
        stages_by_id: dict[int, OrderStage] = {}
        for order in orders:
            for detail in order.details:
                for stage in detail.stages:
                    stages_by_id[stage.id] = stage

        missing_ids: set[int] = {
            a.order_stage_id for a in assignments if a.order_stage_id and a.order_stage_id not in stages_by_id
        }
        for stage in await stage_repository.get_by_ids(db, missing_ids):
            stages_by_id[stage.id] = stage

        self.assignments = tuple(assignments)
        self.orders = tuple(orders)
        self.stages = tuple(sorted(stages_by_id.values(), key=lambda s: s.id))
        self.loaded = True

        logger.debug(
            "Loaded calendar %s..%s: %d assignments, %d stages, %d orders",
            self.week_start,
            self.week_end,
            len(self.assignments),
            len(self.stages),
            len(self.orders),
        )
        return self

    async def refetch(self, db: AsyncSession) -> "CalendarAggregator":
        """변경 후 서버 상태를 반영하기 위해 전체 로드를 다시 수행합니다.

        Re-run the full load after a mutation.
        """
        return await self.load(db)

    def resolve_stage(self, assignment: OrderStageAssignment) -> OrderStage | None:
        """배정의 단계를 찾습니다 (Locate the assignment's stage, or None)."""
        for stage in self.stages:
            if stage.id == assignment.order_stage_id:
                return stage
        return None

    def resolve_order(self, assignment: OrderStageAssignment) -> Order | None:
        """배정이 속한 작업 주문을 찾습니다.

        Locate the order whose detail tree contains the assignment's stage.
        Falls back to matching a detail's detail_id against the stage's
        order_detail_id when the tree does not list the stage itself.

        Args:
            assignment: 배정 (Assignment to resolve)

        Returns:
            Order | None: 주문 또는 None (Order, or None when unresolvable)
        """
        stage: OrderStage | None = self.resolve_stage(assignment)
        if stage is None:
            return None

        for order in self.orders:
            if any(s.id == stage.id for detail in order.details for s in detail.stages):
                return order

        if stage.order_detail_id is None:
            return None
        for order in self.orders:
            if any(detail.detail_id == stage.order_detail_id for detail in order.details):
                return order
        return None

    def join(self, assignment: OrderStageAssignment) -> CalendarEntry:
        """배정을 단계/주문과 조인합니다 (Join an assignment to its stage and order)."""
        return CalendarEntry(
            assignment=assignment,
            stage=self.resolve_stage(assignment),
            order=self.resolve_order(assignment),
        )

    def entries(self) -> list[CalendarEntry]:
        """로드된 모든 배정의 조인 결과 (Joined entries for every loaded assignment)."""
        return [self.join(a) for a in self.assignments]

    def find_order(self, order_id: int) -> Order | None:
        """로드된 진행 중 주문에서 ID로 찾습니다 (Find a loaded working order by id)."""
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    def stages_for_order(self, order_id: int) -> list[OrderStage]:
        """주문의 단계 목록 — 배정 폼의 선택지.

        Stages of a loaded working order, used as the assignment form's choices.
        """
        order: Order | None = self.find_order(order_id)
        if order is None:
            return []
        return [stage for detail in order.details for stage in detail.stages]

    def cell(self, stage_id: int, work_date: date) -> list[OrderStageAssignment]:
        """스냅샷에서 한 셀의 배정을 반환합니다 (Assignments of one cell in the snapshot)."""
        return [
            a for a in self.assignments
            if a.order_stage_id == stage_id and a.work_date == work_date
        ]


def build_entry_response(entry: CalendarEntry) -> dict[str, Any]:
    """캘린더 항목 응답 딕셔너리를 구성합니다.

    Build the calendar entry response dict. Stage and order context are
    None when the join could not be resolved.

    Args:
        entry: 조인된 캘린더 항목 (Joined calendar entry)

    Returns:
        dict: 배정 + 단계/주문 요약 (Assignment with stage and order summary)
    """
    assignment: OrderStageAssignment = entry.assignment
    return {
        "id": assignment.id,
        "order_stage_id": assignment.order_stage_id,
        "employee_name": assignment.employee_name,
        "work_date": assignment.work_date,
        "note": assignment.note,
        "is_done": assignment.is_done,
        "employee_rate": assignment.employee_rate,
        "created_at": assignment.created_at,
        "stage_name": entry.stage.stage_name if entry.stage else None,
        "stage_status": entry.stage.status if entry.stage else None,
        "order_id": entry.order.id if entry.order else None,
        "order_code": entry.order.code if entry.order else None,
        "customer_name": entry.order.customer_name if entry.order else None,
    }


def build_card_response(card: list[CalendarEntry]) -> dict[str, Any]:
    """한 셀의 항목들로 카드 응답을 구성합니다.

    Build the card response for the entries of one (stage, date) cell.
    The note shown is the primary assignment's; every row of a cell shares it.
    """
    primary: CalendarEntry = card[0]
    return {
        "order_stage_id": primary.assignment.order_stage_id,
        "work_date": primary.assignment.work_date,
        "employees": [entry.assignment.employee_name for entry in card],
        "note": primary.assignment.note,
        "assignment_ids": [entry.assignment.id for entry in card],
        "stage_name": primary.stage.stage_name if primary.stage else None,
        "stage_status": primary.stage.status if primary.stage else None,
        "order_id": primary.order.id if primary.order else None,
        "order_code": primary.order.code if primary.order else None,
    }
