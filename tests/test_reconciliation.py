"""배정 조정 엔진 테스트.

Reconciliation engine tests — cell diff planning, multi-day fan-out,
pre-write validation and partial failure reporting.
"""

from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.assignment import OrderStageAssignment
from app.models.order import OrderStage
from app.repositories.assignment_repository import assignment_repository
from app.repositories.stage_repository import stage_repository
from app.services.reconciliation_service import (
    expand_dates,
    normalize_employees,
    plan_cell,
    reconciliation_service,
)
from app.utils.exceptions import PartialReconciliationError, StoreError, ValidationError
from tests.conftest import make_assignment, make_order

DAY = date(2024, 3, 12)


def _row(row_id: int, name: str, note: str | None = None) -> OrderStageAssignment:
    return OrderStageAssignment(id=row_id, order_stage_id=1, employee_name=name, work_date=DAY, note=note)


async def _cell_names(db: AsyncSession, stage_id: int, work_date: date = DAY) -> list[str]:
    rows = await assignment_repository.list_by_stage_and_date(db, stage_id, work_date)
    return sorted(r.employee_name for r in rows)


class TestPlanCell:
    """셀 차이 계산 (순수 함수) 테스트."""

    def test_adds_and_removes(self):
        """{alice, bob} → {bob, carol}: carol 추가, alice 삭제."""
        intents = plan_cell([_row(1, "alice"), _row(2, "bob")], ["bob", "carol"], None, DAY)
        assert [(i.kind, i.employee_name, i.assignment_id) for i in intents] == [
            ("add", "carol", None),
            ("remove", "alice", 1),
        ]

    def test_note_update_only_where_different(self):
        """메모가 다른 유지 행만 갱신."""
        intents = plan_cell([_row(1, "alice", "old"), _row(2, "bob", "new")], ["alice", "bob"], "new", DAY)
        assert [(i.kind, i.assignment_id) for i in intents] == [("update_note", 1)]

    def test_blank_note_equals_missing_note(self):
        """빈 메모와 None은 같은 것으로 취급."""
        assert plan_cell([_row(1, "alice", None)], ["alice"], "   ", DAY) == []

    def test_duplicate_rows_are_removed(self):
        """같은 이름의 중복 행은 삭제되어 집합으로 수렴."""
        intents = plan_cell([_row(1, "alice"), _row(2, "alice")], ["alice"], None, DAY)
        assert [(i.kind, i.assignment_id) for i in intents] == [("remove", 2)]

    def test_empty_desired_removes_everything(self):
        """원하는 집합이 비면 모두 삭제."""
        intents = plan_cell([_row(1, "alice"), _row(2, "bob")], [], None, DAY)
        assert {i.kind for i in intents} == {"remove"}
        assert len(intents) == 2


class TestInputNormalization:
    """입력 정리 및 날짜 확장 테스트."""

    def test_normalize_employees(self):
        """공백 제거, 빈 값 제외, 순서 유지 중복 제거."""
        assert normalize_employees([" bob", "alice", "", "bob ", "  "]) == ["bob", "alice"]

    def test_expand_single_day(self):
        """다일 꺼짐 — 시작일 하루."""
        assert expand_dates(DAY, date(2024, 3, 20)) == [DAY]

    def test_expand_multi_day_inclusive(self):
        """다일 — 양 끝 포함."""
        days = expand_dates(date(2024, 3, 10), date(2024, 3, 12), multi_day=True)
        assert days == [date(2024, 3, 10), date(2024, 3, 11), date(2024, 3, 12)]

    def test_end_before_start(self):
        """종료일이 시작일보다 앞서면 검증 실패."""
        with pytest.raises(ValidationError):
            expand_dates(date(2024, 3, 12), date(2024, 3, 10), multi_day=True)

    def test_multi_day_requires_end(self):
        """다일인데 종료일 없음."""
        with pytest.raises(ValidationError):
            expand_dates(DAY, None, multi_day=True)


class TestCreateCells:
    """생성 모드 테스트."""

    async def test_multi_day_fan_out(self, db: AsyncSession, stage: OrderStage):
        """3일 × 2명 = 6건, 단계 scheduled."""
        result = await reconciliation_service.create_cells(
            db, stage.id, date(2024, 3, 10), ["Ahmed", "Karim"], "Install on site",
            end_date=date(2024, 3, 12), multi_day=True,
        )
        assert result.created == 6
        assert all(i.assignment_id is not None for i in result.applied)

        rows = await assignment_repository.list_by_date_range(db, date(2024, 3, 10), date(2024, 3, 12))
        assert len(rows) == 6
        assert {r.note for r in rows} == {"Install on site"}
        assert (await stage_repository.get_fresh(db, stage.id)).status == "scheduled"

    async def test_empty_employee_set_makes_no_store_calls(self, db: AsyncSession, stage: OrderStage, monkeypatch):
        """직원이 없으면 저장소 호출 없이 검증 실패."""
        calls: list[str] = []

        async def _recording_get_fresh(db, stage_id):
            calls.append("get_fresh")

        async def _recording_create(db, obj_data):
            calls.append("create")

        monkeypatch.setattr(stage_repository, "get_fresh", _recording_get_fresh)
        monkeypatch.setattr(assignment_repository, "create", _recording_create)

        with pytest.raises(ValidationError) as exc_info:
            await reconciliation_service.create_cells(db, stage.id, DAY, ["", "  "])
        assert "No assignments were generated" in exc_info.value.detail
        assert calls == []

    async def test_missing_stage(self, db: AsyncSession):
        """단계 미선택 — 검증 실패."""
        with pytest.raises(ValidationError):
            await reconciliation_service.create_cells(db, None, DAY, ["Ahmed"])

    async def test_stage_without_order_link(self, db: AsyncSession):
        """주문에 연결되지 않은 단계 — 검증 실패, 쓰기 없음."""
        orphan = OrderStage(order_detail_id=None, stage_name="cutting")
        db.add(orphan)
        await db.commit()
        await db.refresh(orphan)

        with pytest.raises(ValidationError) as exc_info:
            await reconciliation_service.create_cells(db, orphan.id, DAY, ["Ahmed"])
        assert "not linked to an order" in exc_info.value.detail
        assert await assignment_repository.count_by_stage(db, orphan.id) == 0

    async def test_stage_of_other_order(self, db: AsyncSession, stage: OrderStage):
        """선택된 주문에 속하지 않은 단계 — 검증 실패."""
        other_order, _ = await make_order(db, "ORD-200", ["assembly"])
        with pytest.raises(ValidationError):
            await reconciliation_service.create_cells(db, stage.id, DAY, ["Ahmed"], order_id=other_order.id)


class TestReconcileCell:
    """수정 모드 테스트."""

    async def test_converges_to_desired_set(self, db: AsyncSession, stage: OrderStage):
        """{alice, bob} → {bob, carol} 및 메모 갱신."""
        await make_assignment(db, stage.id, "alice", DAY, note="old")
        await make_assignment(db, stage.id, "bob", DAY, note="old")

        result = await reconciliation_service.reconcile_cell(db, stage.id, DAY, ["bob", "carol"], "new")
        assert (result.created, result.removed, result.updated) == (1, 1, 1)

        rows = await assignment_repository.list_by_stage_and_date(db, stage.id, DAY)
        assert sorted(r.employee_name for r in rows) == ["bob", "carol"]
        assert {r.note for r in rows} == {"new"}

    async def test_rerun_is_a_no_op(self, db: AsyncSession, stage: OrderStage):
        """같은 입력으로 다시 실행하면 작업 없음."""
        await reconciliation_service.reconcile_cell(db, stage.id, DAY, ["bob", "carol"], "n")
        result = await reconciliation_service.reconcile_cell(db, stage.id, DAY, ["carol", "bob"], "n")
        assert result.applied == []

    async def test_empty_set_empties_cell_and_resets_stage(self, db: AsyncSession, stage: OrderStage):
        """빈 집합 — 셀 비움, 단계 not_started."""
        await reconciliation_service.create_cells(db, stage.id, DAY, ["Ahmed", "Karim"])
        assert (await stage_repository.get_fresh(db, stage.id)).status == "scheduled"

        result = await reconciliation_service.reconcile_cell(db, stage.id, DAY, [])
        assert result.removed == 2
        assert await _cell_names(db, stage.id) == []
        assert (await stage_repository.get_fresh(db, stage.id)).status == "not_started"

    async def test_other_cells_untouched(self, db: AsyncSession, stage: OrderStage):
        """다른 날짜의 셀은 건드리지 않음."""
        await make_assignment(db, stage.id, "alice", date(2024, 3, 13))
        await reconciliation_service.reconcile_cell(db, stage.id, DAY, ["bob"])
        assert await _cell_names(db, stage.id, date(2024, 3, 13)) == ["alice"]

    async def test_partial_failure_reports_applied(self, db: AsyncSession, stage: OrderStage, monkeypatch):
        """삭제 실패 — 앞서 반영된 추가는 유지되고 오류에 포함."""
        await make_assignment(db, stage.id, "alice", DAY)
        await make_assignment(db, stage.id, "bob", DAY)

        async def _failing_delete(db, record_id):
            raise StoreError("connection reset by peer")

        monkeypatch.setattr(assignment_repository, "delete", _failing_delete)

        with pytest.raises(PartialReconciliationError) as exc_info:
            await reconciliation_service.reconcile_cell(db, stage.id, DAY, ["bob", "carol"])

        error = exc_info.value
        assert error.status_code == 502
        assert [(i["kind"], i["employee_name"]) for i in error.applied] == [("add", "carol")]
        assert error.failed["kind"] == "remove"
        assert error.failed["employee_name"] == "alice"
        assert "connection reset by peer" in error.message

        # 반영된 추가는 롤백되지 않음 — applied intents stay persisted
        assert await _cell_names(db, stage.id) == ["alice", "bob", "carol"]
