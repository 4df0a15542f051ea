"""SQLAlchemy ORM 모델 패키지 — 모든 도메인 모델의 중앙 임포트 지점.

SQLAlchemy ORM models package — Central import point for all domain models.
Importing from this package ensures all models are registered with the
SQLAlchemy metadata, which is required for Alembic migrations and
relationship resolution.

Modules:
    order: 주문, 생산 정보, 생산 단계 (Order, OrderDetail, OrderStage)
    assignment: 단계 배정 (Stage assignments per employee and date)
"""

from app.models.order import Order, OrderDetail, OrderStage
from app.models.assignment import OrderStageAssignment

__all__ = [
    "Order", "OrderDetail", "OrderStage",
    "OrderStageAssignment",
]
