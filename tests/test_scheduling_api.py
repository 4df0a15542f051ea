"""스케줄링 API 테스트.

Scheduling API tests — Calendar, roster, working orders, assignment CRUD and
cell reconciliation endpoints under /api/v1/scheduling/.
"""

from datetime import date

from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.assignment_repository import assignment_repository
from app.repositories.stage_repository import stage_repository
from app.utils.exceptions import StoreError
from tests.conftest import SCHEDULING, make_assignment


# ===== Health / Roster / Orders =====

class TestReferenceData:
    """기준 데이터 조회 테스트."""

    async def test_health(self, client: AsyncClient):
        """헬스 체크."""
        res = await client.get("/health")
        assert res.status_code == 200
        assert res.json() == {"status": "ok", "store": "ok"}

    async def test_health_store_down(self, client: AsyncClient, db: AsyncSession, monkeypatch):
        """저장소 연결 실패 — 502."""
        async def _failing_execute(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        monkeypatch.setattr(db, "execute", _failing_execute)
        res = await client.get("/health")
        assert res.status_code == 502
        assert "Record store unreachable" in res.json()["detail"]

    async def test_employees(self, client: AsyncClient):
        """고정 직원 명단 14명."""
        res = await client.get(f"{SCHEDULING}/employees")
        assert res.status_code == 200
        data = res.json()
        assert len(data) == 14
        assert data[0]["id"] == 1

    async def test_working_orders_with_stage_tree(self, client: AsyncClient, working_order):
        """진행 중 주문 + 상세/단계 트리."""
        res = await client.get(f"{SCHEDULING}/orders")
        assert res.status_code == 200
        data = res.json()
        assert len(data) == 1
        assert data[0]["code"] == "ORD-100"
        stage_names = [s["stage_name"] for s in data[0]["details"][0]["stages"]]
        assert stage_names == ["cutting", "welding", "painting"]


# ===== Assignment CRUD =====

class TestAssignmentEndpoints:
    """배정 CRUD 엔드포인트 테스트."""

    async def test_create_and_get(self, client: AsyncClient, db: AsyncSession, stage):
        """생성 → 조회, 단계 scheduled."""
        res = await client.post(f"{SCHEDULING}/assignments", json={
            "order_stage_id": stage.id,
            "employee_name": "Ahmed",
            "work_date": "2024-03-12",
            "note": "Bring welding kit",
        })
        assert res.status_code == 201
        created = res.json()
        assert created["employee_name"] == "Ahmed"
        assert created["is_done"] is False

        res = await client.get(f"{SCHEDULING}/assignments/{created['id']}")
        assert res.status_code == 200
        assert res.json()["note"] == "Bring welding kit"
        assert (await stage_repository.get_fresh(db, stage.id)).status == "scheduled"

    async def test_create_missing_fields(self, client: AsyncClient, stage):
        """필수 필드 누락 — 422."""
        res = await client.post(f"{SCHEDULING}/assignments", json={"order_stage_id": stage.id})
        assert res.status_code == 422
        assert "Missing required fields" in res.json()["detail"]

    async def test_get_not_found(self, client: AsyncClient):
        """없는 배정 — 404."""
        res = await client.get(f"{SCHEDULING}/assignments/999")
        assert res.status_code == 404

    async def test_patch_and_delete(self, client: AsyncClient, db: AsyncSession, stage):
        """부분 수정 → 삭제 → 단계 not_started."""
        row = await assignment_repository.create(db, {
            "order_stage_id": stage.id,
            "employee_name": "Karim",
            "work_date": date(2024, 3, 12),
        })

        res = await client.patch(f"{SCHEDULING}/assignments/{row.id}", json={"is_done": True})
        assert res.status_code == 200
        assert res.json()["is_done"] is True

        res = await client.delete(f"{SCHEDULING}/assignments/{row.id}")
        assert res.status_code == 200
        assert (await stage_repository.get_fresh(db, stage.id)).status == "not_started"

        res = await client.delete(f"{SCHEDULING}/assignments/{row.id}")
        assert res.status_code == 404

    async def test_duplicate_post_rejected(self, client: AsyncClient, db: AsyncSession, stage):
        """같은 셀에 같은 직원 두 번 등록 — 두 번째는 422."""
        body = {"order_stage_id": stage.id, "employee_name": "alice", "work_date": "2024-03-12"}
        assert (await client.post(f"{SCHEDULING}/assignments", json=body)).status_code == 201

        res = await client.post(f"{SCHEDULING}/assignments", json=body)
        assert res.status_code == 422
        assert "already assigned" in res.json()["detail"]
        assert await assignment_repository.count_by_stage(db, stage.id) == 1

    async def test_patch_rename_collision(self, client: AsyncClient, db: AsyncSession, stage):
        """bob → alice 이름 변경 충돌 — 422."""
        await make_assignment(db, stage.id, "alice", date(2024, 3, 12))
        bob = await make_assignment(db, stage.id, "bob", date(2024, 3, 12))

        res = await client.patch(f"{SCHEDULING}/assignments/{bob.id}", json={"employee_name": "alice"})
        assert res.status_code == 422

    async def test_patch_cannot_clear_required_fields(self, client: AsyncClient, db: AsyncSession, stage):
        """빈 이름, null 단계/날짜로 수정 — 422, 저장소 오류 아님."""
        row = await make_assignment(db, stage.id, "Ahmed", date(2024, 3, 12))

        for body in ({"employee_name": ""}, {"order_stage_id": None}, {"work_date": None}):
            res = await client.patch(f"{SCHEDULING}/assignments/{row.id}", json=body)
            assert res.status_code == 422, body

        res = await client.get(f"{SCHEDULING}/assignments/{row.id}")
        assert res.json()["employee_name"] == "Ahmed"

    async def test_read_failure_is_502(self, client: AsyncClient, db: AsyncSession, monkeypatch):
        """조회 실패 — 500이 아닌 502."""
        async def _failing_get(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(db, "get", _failing_get)
        res = await client.delete(f"{SCHEDULING}/assignments/1")
        assert res.status_code == 502

    async def test_list_by_range(self, client: AsyncClient, db: AsyncSession, stage):
        """날짜 범위 조회."""
        await make_assignment(db, stage.id, "Ahmed", date(2024, 3, 10))
        await make_assignment(db, stage.id, "Ahmed", date(2024, 3, 20))

        res = await client.get(
            f"{SCHEDULING}/assignments", params={"date_from": "2024-03-10", "date_to": "2024-03-16"}
        )
        assert res.status_code == 200
        assert [a["work_date"] for a in res.json()] == ["2024-03-10"]

    async def test_list_reversed_range(self, client: AsyncClient):
        """종료일이 시작일보다 앞섬 — 422."""
        res = await client.get(
            f"{SCHEDULING}/assignments", params={"date_from": "2024-03-16", "date_to": "2024-03-10"}
        )
        assert res.status_code == 422


# ===== Cell reconciliation =====

class TestCellEndpoints:
    """셀 생성/조정 엔드포인트 테스트."""

    async def test_create_multi_day(self, client: AsyncClient, working_order):
        """다일 생성 — 2일 × 2명."""
        order, stages = working_order
        res = await client.post(f"{SCHEDULING}/cells", json={
            "order_stage_id": stages[0].id,
            "order_id": order.id,
            "work_date": "2024-03-11",
            "end_date": "2024-03-12",
            "multi_day": True,
            "employees": ["Ahmed", "Karim"],
            "note": "Site install",
        })
        assert res.status_code == 201
        data = res.json()
        assert data["mode"] == "create"
        assert data["created"] == 4

    async def test_create_empty_employees(self, client: AsyncClient, stage):
        """직원 없음 — 422."""
        res = await client.post(f"{SCHEDULING}/cells", json={
            "order_stage_id": stage.id,
            "work_date": "2024-03-11",
            "employees": [],
        })
        assert res.status_code == 422

    async def test_reconcile_cell(self, client: AsyncClient, db: AsyncSession, stage):
        """수정 모드 — {alice, bob} → {bob, carol}."""
        await make_assignment(db, stage.id, "alice", date(2024, 3, 12))
        await make_assignment(db, stage.id, "bob", date(2024, 3, 12))

        res = await client.put(f"{SCHEDULING}/cells/{stage.id}/2024-03-12", json={
            "employees": ["bob", "carol"],
        })
        assert res.status_code == 200
        data = res.json()
        assert (data["created"], data["removed"], data["updated"]) == (1, 1, 0)

        rows = await assignment_repository.list_by_stage_and_date(db, stage.id, date(2024, 3, 12))
        assert sorted(r.employee_name for r in rows) == ["bob", "carol"]

    async def test_reconcile_partial_failure(self, client: AsyncClient, db: AsyncSession, stage, monkeypatch):
        """중간 실패 — 반영된 작업 목록과 함께 오류 응답."""
        await make_assignment(db, stage.id, "alice", date(2024, 3, 12))

        async def _failing_delete(db, record_id):
            raise StoreError("store unavailable")

        monkeypatch.setattr(assignment_repository, "delete", _failing_delete)

        res = await client.put(f"{SCHEDULING}/cells/{stage.id}/2024-03-12", json={"employees": ["bob"]})
        assert res.status_code == 502
        detail = res.json()["detail"]
        assert [i["employee_name"] for i in detail["applied"]] == ["bob"]
        assert detail["failed"]["kind"] == "remove"
        assert "store unavailable" in detail["message"]


# ===== Calendar =====

class TestCalendarEndpoint:
    """주간 캘린더 엔드포인트 테스트."""

    async def test_week_with_cards(self, client: AsyncClient, db: AsyncSession, stage):
        """주간 7일, 셀 단위 카드."""
        await make_assignment(db, stage.id, "Ahmed", date(2024, 3, 12), note="n")
        await make_assignment(db, stage.id, "Karim", date(2024, 3, 12), note="n")

        res = await client.get(f"{SCHEDULING}/calendar", params={"reference_date": "2024-03-13"})
        assert res.status_code == 200
        data = res.json()
        assert data["week_start"] == "2024-03-10"
        assert data["week_end"] == "2024-03-16"
        assert len(data["days"]) == 7

        tuesday = next(d for d in data["days"] if d["day"] == "2024-03-12")
        assert len(tuesday["cards"]) == 1
        assert tuesday["cards"][0]["employees"] == ["Ahmed", "Karim"]
        assert tuesday["cards"][0]["order_code"] == "ORD-100"

    async def test_filters_and_deep_link(self, client: AsyncClient, db: AsyncSession, working_order):
        """딥링크 주문 자동 선택 + 직원 필터."""
        order, stages = working_order
        await make_assignment(db, stages[0].id, "Ahmed", date(2024, 3, 12))
        await make_assignment(db, stages[1].id, "Karim", date(2024, 3, 12))

        res = await client.get(f"{SCHEDULING}/calendar", params={
            "reference_date": "2024-03-13",
            "orderId": order.id,
            "employees": ["Karim"],
        })
        assert res.status_code == 200
        data = res.json()
        assert data["link_applied"] is True
        assert data["filters"]["order_id"] == order.id
        assert [e["employee_name"] for e in data["entries"]] == ["Karim"]

    async def test_link_not_carried_across_requests(self, client: AsyncClient, db: AsyncSession, working_order):
        """딥링크는 요청 단위 — orderId를 뺀 다음 요청은 필터 없음."""
        order, stages = working_order
        await make_assignment(db, stages[0].id, "Ahmed", date(2024, 3, 12))

        first = await client.get(f"{SCHEDULING}/calendar", params={"reference_date": "2024-03-13", "orderId": order.id})
        assert first.json()["link_applied"] is True

        second = await client.get(f"{SCHEDULING}/calendar", params={"reference_date": "2024-03-13"})
        data = second.json()
        assert data["link_applied"] is False
        assert data["filters"]["order_id"] is None

    async def test_unknown_status_filter(self, client: AsyncClient):
        """알 수 없는 상태 필터 — 422."""
        res = await client.get(f"{SCHEDULING}/calendar", params={"statuses": ["finished"]})
        assert res.status_code == 422
