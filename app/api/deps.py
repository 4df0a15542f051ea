"""FastAPI 의존성 주입 모듈 — 직원 명단 및 화면 상태 구성.

FastAPI dependency injection module.
Provides the injected employee roster and builds a scheduling view state
from calendar query parameters.
"""

from datetime import date
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Query

from app.services.view_state import EmployeeRoster, SchedulingViewState


@lru_cache
def get_roster() -> EmployeeRoster:
    """설정의 고정 직원 명단 (Read-only roster built once from settings)."""
    return EmployeeRoster.from_settings()


def get_view_state(
    roster: Annotated[EmployeeRoster, Depends(get_roster)],
    reference_date: Annotated[date | None, Query()] = None,
    order_id: Annotated[int | None, Query()] = None,
    employees: Annotated[list[str] | None, Query()] = None,
    statuses: Annotated[list[str] | None, Query()] = None,
    link_order_id: Annotated[int | None, Query(alias="orderId")] = None,
) -> SchedulingViewState:
    """쿼리 파라미터로 화면 상태를 구성합니다.

    Build a view state for one calendar request.

    The view state lives for a single request, so the deep link is only
    consumed within that request. Clients must drop orderId from later
    requests once a response reports link_applied: true.

    Args:
        roster: 주입된 직원 명단 (Injected roster)
        reference_date: 표시할 주의 기준일, 기본 오늘 (Date whose week is shown)
        order_id: 주문 필터 (Order filter)
        employees: 직원 필터, 반복 파라미터 (Employee filter, repeatable)
        statuses: 단계 상태 필터, 반복 파라미터 (Stage status filter, repeatable)
        link_order_id: 작업 주문 목록에서 넘어온 딥링크 (Deep link from the work order list)

    Returns:
        SchedulingViewState: 필터가 설정된 화면 상태 (View state with filters set)
    """
    view: SchedulingViewState = SchedulingViewState(reference_date=reference_date, roster=roster)
    view.set_order_filter(order_id)
    view.set_employee_filter(employees or [])
    view.set_status_filter(statuses or [])
    view.receive_deep_link(link_order_id)
    return view
