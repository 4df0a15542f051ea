"""add_scheduling_tables

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-18 09:00:00.000000

주문(orders), 생산 정보(order_details), 생산 단계(order_stages),
단계 배정(order_stage_assignments) 테이블 생성.
Create orders, order_details, order_stages and order_stage_assignments tables.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c2e3f4b5d6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # orders — 고객 작업 주문 (Customer work orders)
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('code', sa.String(50), server_default='', nullable=False),
        sa.Column('customer_name', sa.String(200), server_default='', nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('order_status', sa.String(30), server_default='working', nullable=False),
        sa.Column('work_types', sa.JSON(), nullable=True),
        sa.Column('order_price', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_orders_order_status', 'orders', ['order_status'])

    # order_details — 주문별 생산 정보 (Production record per order)
    op.create_table(
        'order_details',
        sa.Column('detail_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_to', sa.String(100), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('total_cost', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('img_urls', sa.JSON(), nullable=True),
        sa.Column('process_stage', sa.String(50), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_order_details_order_id', 'order_details', ['order_id'])

    # order_stages — 생산 단계, 상태는 배정 존재 여부와 동기화
    # Pipeline stages; status is synchronized with assignment existence
    op.create_table(
        'order_stages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('order_detail_id', sa.Integer(), sa.ForeignKey('order_details.detail_id', ondelete='SET NULL'), nullable=True),
        sa.Column('stage_name', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), server_default='not_started', nullable=False),
        sa.Column('planned_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('planned_finish_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_finish_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_order_stages_order_detail_id', 'order_stages', ['order_detail_id'])

    # order_stage_assignments — 단계 배정, order_stage_id는 FK 없는 약한 참조
    # Stage assignments; order_stage_id is a weak reference without FK cascade
    op.create_table(
        'order_stage_assignments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('order_stage_id', sa.Integer(), nullable=False),
        sa.Column('employee_name', sa.String(100), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('is_done', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('employee_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_order_stage_assignments_order_stage_id', 'order_stage_assignments', ['order_stage_id'])
    op.create_index('ix_order_stage_assignments_work_date', 'order_stage_assignments', ['work_date'])
    op.create_index('ix_assignment_cell', 'order_stage_assignments', ['order_stage_id', 'work_date'])


def downgrade() -> None:
    op.drop_index('ix_assignment_cell', table_name='order_stage_assignments')
    op.drop_index('ix_order_stage_assignments_work_date', table_name='order_stage_assignments')
    op.drop_index('ix_order_stage_assignments_order_stage_id', table_name='order_stage_assignments')
    op.drop_table('order_stage_assignments')
    op.drop_index('ix_order_stages_order_detail_id', table_name='order_stages')
    op.drop_table('order_stages')
    op.drop_index('ix_order_details_order_id', table_name='order_details')
    op.drop_table('order_details')
    op.drop_index('ix_orders_order_status', table_name='orders')
    op.drop_table('orders')
