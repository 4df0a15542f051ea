"""커스텀 HTTP 예외 클래스 모듈.

Custom HTTP exception classes module.
Provides pre-configured HTTPException subclasses for the scheduling error kinds.
Services and repositories raise these directly; FastAPI renders them
as JSON error responses with the matching status code.

Usage:
    from app.utils.exceptions import NotFoundError, ValidationError
    raise NotFoundError("Assignment not found")
    raise ValidationError("At least one employee is required")
"""

from typing import Any

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """422 검증 실패 예외 — 쓰기 전에 입력 전제 조건이 깨졌을 때 사용.

    422 Unprocessable Entity exception.
    Raised before any write when caller-supplied input fails a precondition
    (missing required field, empty operation set, end date before start date,
    unresolved stage/order reference). No side effects have occurred.

    Args:
        detail: 오류 메시지 (Error message, default: "Invalid input")
    """

    def __init__(self, detail: str = "Invalid input") -> None:
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(HTTPException):
    """404 Not Found 예외 — 요청한 리소스를 찾을 수 없을 때 사용.

    404 Not Found exception.
    Raised when an operation targets a primary key that does not exist at read time
    (e.g. update/delete of an already-deleted assignment).

    Args:
        detail: 오류 메시지 (Error message, default: "Resource not found")
    """

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class StoreError(HTTPException):
    """502 저장소 오류 예외 — 레코드 저장소 호출 자체가 실패했을 때 사용.

    502 Bad Gateway exception.
    Wraps a failure of the underlying record store (network, constraint violation,
    server error) on the primary write path, keeping the store's original message.

    Args:
        detail: 저장소 원본 오류 메시지 (Original store error message)
    """

    def __init__(self, detail: str = "Record store request failed") -> None:
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


class PartialReconciliationError(HTTPException):
    """배정 조정 중간 실패 예외 — 일부 작업만 반영된 상태를 호출자에게 보고.

    Raised when a reconciliation batch fails partway through.
    Intents applied before the failure stay committed; the response detail
    lists them together with the failed intent so the user can see what persisted.

    Args:
        message: 사람이 읽을 수 있는 실패 사유 (Human-readable failure reason)
        status_code: 원인 예외의 상태 코드 (Status code of the underlying failure)
        applied: 실패 전에 반영된 작업 목록 (Intents applied before the failure)
        failed: 실패한 작업 (The intent that failed)
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        applied: list[dict[str, Any]] | None = None,
        failed: dict[str, Any] | None = None,
    ) -> None:
        self.message: str = message
        self.applied: list[dict[str, Any]] = applied or []
        self.failed: dict[str, Any] | None = failed
        super().__init__(
            status_code=status_code,
            detail={"message": message, "applied": self.applied, "failed": failed},
        )
