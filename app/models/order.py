"""작업 주문 관련 SQLAlchemy ORM 모델 정의.

Work order SQLAlchemy ORM model definitions.
An order owns one (in practice) production detail, which owns one stage row
per pipeline step. The scheduler only reads orders; stages are the only rows
whose status it writes.

Tables:
    - orders: 고객 작업 주문 (Customer work orders)
    - order_details: 주문 생산 정보 (Production record for an order)
    - order_stages: 생산 단계 (Pipeline steps such as cutting or installing)
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import JSON, String, DateTime, Date, Text, Numeric, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

# 단계 상태 값 — Stage status vocabulary (closed set)
STAGE_NOT_STARTED: str = "not_started"
STAGE_SCHEDULED: str = "scheduled"
STAGE_IN_PROGRESS: str = "in_progress"
STAGE_COMPLETED: str = "completed"
STAGE_DELAYED: str = "delayed"
STAGE_ON_HOLD: str = "on_hold"

STAGE_STATUSES: tuple[str, ...] = (
    STAGE_NOT_STARTED,
    STAGE_SCHEDULED,
    STAGE_IN_PROGRESS,
    STAGE_COMPLETED,
    STAGE_DELAYED,
    STAGE_ON_HOLD,
)

# 표준 생산 단계 — Standard stages created for every work order
STAGE_NAMES: tuple[str, ...] = ("cutting", "finishing", "delivery", "installing")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    """작업 주문 모델 — 고객 작업 단위.

    Order model — A unit of customer work. Created when a sale order converts
    to a work order; read-only from the scheduler's point of view.
    Only orders whose order_status equals the configured working status are scheduled.

    Attributes:
        id: 고유 식별자 (Numeric identifier)
        code: 사람이 읽는 주문 코드 (Human-readable order code)
        customer_name: 고객 이름 (Customer name)
        address: 시공 주소 (Installation address)
        order_status: 주문 상태 — 자유 문자열 (Free-form status, e.g. "working")
        work_types: 작업 유형 태그 목록 (Work-type tags)
        order_price: 주문 금액 (Order price)
        created_at: 생성 일시 UTC (Creation timestamp)
        updated_at: 수정 일시 UTC (Last update timestamp)
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), default="")
    customer_name: Mapped[str] = mapped_column(String(200), default="")
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    # 주문 상태 — "working"인 주문만 스케줄러 대상 (Only "working" orders are scheduled)
    order_status: Mapped[str] = mapped_column(String(30), default="working", index=True)
    work_types: Mapped[list] = mapped_column(JSON, default=list)
    order_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    details = relationship("OrderDetail", back_populates="order", order_by="OrderDetail.detail_id")


class OrderDetail(Base):
    """주문 생산 정보 모델.

    One production record for an order, owning the stage rows.

    Attributes:
        detail_id: 고유 식별자 (Numeric identifier)
        order_id: 상위 주문 FK (Parent order)
        assigned_to: 담당자 라벨 (Assignee label)
        due_date: 납기일 (Due date)
        price: 판매 금액 (Price)
        total_cost: 총 원가 (Total cost)
        notes: 메모 (Free-text notes)
        img_urls: 이미지 참조 목록 (Image references)
        process_stage: 목록 화면용 단계 요약 라벨 (Rollup stage label for list views)
        updated_at: 수정 일시 UTC (Last update timestamp)
    """

    __tablename__ = "order_details"

    detail_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_to: Mapped[str | None] = mapped_column(String(100), nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    img_urls: Mapped[list] = mapped_column(JSON, default=list)
    process_stage: Mapped[str | None] = mapped_column(String(50), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    order = relationship("Order", back_populates="details")
    stages = relationship("OrderStage", back_populates="detail", order_by="OrderStage.id")


class OrderStage(Base):
    """생산 단계 모델 — 배정 존재 여부에 따라 상태가 동기화됨.

    Order stage model — One pipeline step of an order detail.

    Status Flow (core-owned transitions only):
        not_started → scheduled: 첫 배정 추가 시 (on first assignment add)
        scheduled → not_started: 마지막 배정 삭제 시 (when the last assignment is removed)
        in_progress / completed / delayed / on_hold: 외부에서만 변경
            (owned by other collaborators, never overwritten by the scheduler)

    Attributes:
        id: 고유 식별자 (Numeric identifier)
        order_detail_id: 상위 생산 정보 FK, nullable — 약한 참조 (Soft reference to the detail)
        stage_name: 단계 이름 (Stage name from the standard vocabulary)
        status: 단계 상태 (One of STAGE_STATUSES)
        planned_start_date / planned_finish_date: 계획 일정 (Planned timestamps)
        actual_start_date / actual_finish_date: 실제 일정 (Actual timestamps)
        notes: 메모 (Notes)
        created_at: 생성 일시 UTC (Creation timestamp)
        updated_at: 수정 일시 UTC (Touched by every status write)
    """

    __tablename__ = "order_stages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_detail_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("order_details.detail_id", ondelete="SET NULL"), nullable=True, index=True
    )
    stage_name: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=STAGE_NOT_STARTED, nullable=False)
    planned_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    planned_finish_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_finish_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    detail = relationship("OrderDetail", back_populates="stages")
