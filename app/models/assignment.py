"""단계 배정 SQLAlchemy ORM 모델 정의.

Stage assignment SQLAlchemy ORM model definition.
Represents one employee's scheduled work on one production stage for one
calendar day. All rows sharing (order_stage_id, work_date) form one calendar cell.

Tables:
    - order_stage_assignments: 단계 배정 (Employee × stage × date assignments)
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, DateTime, Date, Text, Boolean, Numeric, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class OrderStageAssignment(Base):
    """단계 배정 모델 — (단계, 날짜, 직원) 한 건.

    Order stage assignment model — A (stage, date, employee) triple.
    order_stage_id is a weak reference: there is no foreign key cascade, and a
    stage that cannot be resolved is rendered without order context.

    Cell semantics:
        (order_stage_id, work_date)가 하나의 캘린더 셀을 구성하며, 셀 안에서
        employee_name은 중복되지 않습니다. 같은 셀의 모든 행은 동일한 note를 가집니다.
        (Rows sharing a cell never repeat an employee name and carry the same note.)

    Attributes:
        id: 고유 식별자 (Numeric identifier)
        order_stage_id: 대상 단계 ID (Target stage, required)
        employee_name: 직원 이름 — 명단 기반, FK 아님 (Employee name from the roster)
        work_date: 근무 날짜 (Date only, no time component)
        note: 셀 공통 메모 (Note shared by every row of the cell)
        is_done: 완료 여부 (Completion flag, toggled outside the scheduler)
        employee_rate: 시급, 예약 필드 (Hourly rate, reserved and written as null)
        created_at: 생성 일시 UTC (Creation timestamp)
    """

    __tablename__ = "order_stage_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 약한 참조 — 단계 삭제 시 연쇄 삭제 없음 (Weak reference, no cascade on stage delete)
    order_stage_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    employee_name: Mapped[str] = mapped_column(String(100), nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_done: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    employee_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_assignment_cell", "order_stage_id", "work_date"),
    )
