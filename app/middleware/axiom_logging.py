"""Axiom API 로깅 미들웨어.

Axiom API logging middleware.
Writes one structured event per scheduling API call: method, path, query,
request body, status code, duration and the error reason for failed calls.
Events always go to the "app.api" logger and are shipped to Axiom when a
token and dataset are configured.
"""

import json
import logging
import time
from typing import Any

from axiom_py import Client as AxiomClient
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.config import settings

logger = logging.getLogger("app.api")

# 로깅 제외 경로 — Paths excluded from logging
_SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

# 요청 본문 목록 필드 최대 길이 — Max list length kept in logged bodies (employee lists)
_MAX_LIST_ITEMS = 20


def _compact(data: Any, depth: int = 0) -> Any:
    """로그용 본문 축약 — Trim nested bodies and long lists for logging."""
    if depth > 4:
        return "..."
    if isinstance(data, dict):
        return {k: _compact(v, depth + 1) for k, v in data.items()}
    if isinstance(data, list):
        return [_compact(item, depth + 1) for item in data[:_MAX_LIST_ITEMS]]
    if isinstance(data, str) and len(data) > 500:
        return data[:500] + "...(truncated)"
    return data


def _error_reason(body: bytes) -> str:
    """오류 응답에서 사유 추출 — Extract the reason from an error response body.

    Partial reconciliation failures carry {"detail": {"message": ...}}.
    """
    try:
        payload: Any = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return body.decode("utf-8", errors="replace")[:500]

    detail: Any = payload.get("detail", payload) if isinstance(payload, dict) else payload
    if isinstance(detail, dict) and "message" in detail:
        detail = detail["message"]
    reason: str = detail if isinstance(detail, str) else json.dumps(detail, default=str)
    return reason[:500]


class AxiomLoggingMiddleware(BaseHTTPMiddleware):
    """모든 API 요청/응답을 로깅하는 미들웨어.

    Middleware that logs every API request and response, locally and to Axiom.
    """

    def __init__(self, app: Any) -> None:
        super().__init__(app)
        self._client: AxiomClient | None = None
        self._dataset: str = settings.AXIOM_DATASET

        if settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
            self._client = AxiomClient(token=settings.AXIOM_API_TOKEN)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        start_time = time.time()
        method = request.method
        path = request.url.path

        # Request body 읽기 — Read request body (only for methods with body)
        request_body: Any = None
        if method in ("POST", "PUT", "PATCH"):
            body_bytes = await request.body()
            if body_bytes:
                try:
                    request_body = _compact(json.loads(body_bytes))
                except (json.JSONDecodeError, UnicodeDecodeError):
                    request_body = "(non-json body)"

        error_detail: str | None = None
        status_code: int = 500
        try:
            response = await call_next(request)
            status_code = response.status_code

            # 에러 응답시 body에서 사유 추출 — Extract error detail from error responses
            if status_code >= 400:
                resp_body = b""
                async for chunk in response.body_iterator:
                    resp_body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
                error_detail = _error_reason(resp_body)

                # 소비한 body를 다시 응답으로 반환 — Re-wrap consumed body
                response = Response(
                    content=resp_body,
                    status_code=status_code,
                    headers=dict(response.headers),
                    media_type=response.media_type,
                )
        except Exception as exc:
            error_detail = f"{type(exc).__name__}: {str(exc)[:300]}"
            raise
        finally:
            event: dict[str, Any] = {
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            }
            if request.query_params:
                event["query_params"] = dict(request.query_params)
            if request_body is not None:
                event["request_body"] = request_body
            if error_detail:
                event["error"] = error_detail

            if status_code >= 500:
                logger.error("%s %s -> %s %s", method, path, status_code, error_detail or "")
            elif status_code >= 400:
                logger.warning("%s %s -> %s %s", method, path, status_code, error_detail or "")
            else:
                logger.info("%s %s -> %s (%sms)", method, path, status_code, event["duration_ms"])

            if self._client is not None:
                try:
                    self._client.ingest_events(self._dataset, [event])
                except Exception:
                    # 로깅 실패가 요청 처리에 영향주지 않도록 — Never break a request on log failure
                    logger.warning("Axiom ingest failed for %s %s", method, path, exc_info=True)

        return response
