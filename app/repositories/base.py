"""기본 CRUD 레포지토리 — 모든 레포지토리의 부모 클래스.

Base CRUD Repository — Parent class for all domain repositories.
Provides generic Create, Read, Update, Delete operations against the record store.

The store offers no multi-statement transaction to this layer: every write
method commits on its own, so a batch of writes issued in sequence persists
up to the point of failure. Store failures are rolled back and re-raised as
StoreError with the original message.

Usage:
    class StageRepository(BaseRepository[OrderStage]):
        def __init__(self) -> None:
            super().__init__(OrderStage)
"""

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base
from app.utils.exceptions import StoreError

# 제네릭 타입 변수 — SQLAlchemy 모델을 나타냄
# Generic type variable representing a SQLAlchemy model
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """제네릭 CRUD 레포지토리.

    Generic CRUD repository providing common record store operations.

    Attributes:
        model: SQLAlchemy 모델 클래스 (The SQLAlchemy model class)
    """

    def __init__(self, model: type[ModelType]) -> None:
        """레포지토리를 초기화합니다.

        Args:
            model: 이 레포지토리가 관리할 SQLAlchemy 모델 클래스
                   (SQLAlchemy model class this repository manages)
        """
        self.model: type[ModelType] = model

    async def _commit(self, db: AsyncSession, action: str) -> None:
        """쓰기를 확정하고 저장소 오류를 StoreError로 감쌉니다.

        Commit the pending write; on store failure roll back and raise StoreError.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            action: 로그/오류 메시지용 작업 설명 (Action label for the error message)

        Raises:
            StoreError: 저장소 호출 실패 시 (When the store rejects the write)
        """
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StoreError(f"{action} failed: {exc}") from exc

    async def get_by_id(
        self,
        db: AsyncSession,
        record_id: int,
    ) -> ModelType | None:
        """ID로 단일 레코드를 조회합니다.

        Retrieve a single record by its primary key.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            record_id: 조회할 레코드의 ID (Primary key of the record)

        Returns:
            ModelType | None: 조회된 레코드 또는 None (Found record or None)

        Raises:
            StoreError: 저장소 조회 실패 시 (When the store read fails)
        """
        try:
            return await db.get(self.model, record_id)
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StoreError(f"Read of {self.model.__tablename__} #{record_id} failed: {exc}") from exc

    async def get_all(
        self,
        db: AsyncSession,
        filters: dict[str, Any] | None = None,
        order_by: Any | None = None,
    ) -> Sequence[ModelType]:
        """조건에 맞는 모든 레코드를 조회합니다.

        Retrieve all records matching the given equality filters.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            filters: 추가 필터 딕셔너리 {'컬럼명': 값}
                     (Additional filter dict {'column_name': value})
            order_by: 정렬 기준 컬럼 (Column to order by)

        Returns:
            Sequence[ModelType]: 조회된 레코드 목록 (List of matching records)
        """
        query: Select = select(self.model)

        # 동적 필터 적용 — Dynamic filter application
        if filters:
            for column_name, value in filters.items():
                if hasattr(self.model, column_name) and value is not None:
                    query = query.where(getattr(self.model, column_name) == value)

        if order_by is not None:
            query = query.order_by(order_by)

        result = await db.execute(query)
        return result.scalars().all()

    async def create(
        self,
        db: AsyncSession,
        obj_data: dict[str, Any],
    ) -> ModelType:
        """새 레코드를 생성하고 즉시 커밋합니다.

        Insert a new record and commit it.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            obj_data: 생성할 레코드의 데이터 딕셔너리
                      (Dictionary of data for the new record)

        Returns:
            ModelType: 생성된 레코드, 생성된 ID 포함 (Created record with generated id)

        Raises:
            StoreError: 저장소 호출 실패 시 (When the store rejects the insert)
        """
        db_obj: ModelType = self.model(**obj_data)
        db.add(db_obj)
        await self._commit(db, f"Insert into {self.model.__tablename__}")
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        record_id: int,
        update_data: dict[str, Any],
    ) -> ModelType | None:
        """기존 레코드를 업데이트하고 즉시 커밋합니다.

        Update an existing record by its primary key and commit.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            record_id: 업데이트할 레코드의 ID (Primary key of the record)
            update_data: 업데이트할 필드와 값의 딕셔너리
                         (Dictionary of fields and values to update)

        Returns:
            ModelType | None: 업데이트된 레코드 또는 None (Updated record or None)

        Raises:
            StoreError: 저장소 호출 실패 시 (When the store rejects the update)
        """
        db_obj: ModelType | None = await self.get_by_id(db, record_id)
        if db_obj is None:
            return None

        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        await self._commit(db, f"Update of {self.model.__tablename__} #{record_id}")
        await db.refresh(db_obj)
        return db_obj

    async def delete(
        self,
        db: AsyncSession,
        record_id: int,
    ) -> bool:
        """레코드를 삭제하고 즉시 커밋합니다.

        Delete a record by its primary key and commit.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            record_id: 삭제할 레코드의 ID (Primary key of the record)

        Returns:
            bool: 삭제 성공 여부 (Whether a row was deleted)

        Raises:
            StoreError: 저장소 호출 실패 시 (When the store rejects the delete)
        """
        db_obj: ModelType | None = await self.get_by_id(db, record_id)
        if db_obj is None:
            return False

        await db.delete(db_obj)
        await self._commit(db, f"Delete of {self.model.__tablename__} #{record_id}")
        return True

    async def count(
        self,
        db: AsyncSession,
        filters: dict[str, Any],
    ) -> int:
        """주어진 조건에 일치하는 레코드 수를 셉니다.

        Count records matching the given equality filters.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            filters: 검색 조건 딕셔너리 (Filter criteria dictionary)

        Returns:
            int: 일치하는 레코드 수 (Number of matching records)
        """
        query: Select = select(func.count()).select_from(self.model)
        for column_name, value in filters.items():
            if hasattr(self.model, column_name):
                query = query.where(getattr(self.model, column_name) == value)

        return (await db.execute(query)).scalar() or 0
