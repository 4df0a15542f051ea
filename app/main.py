"""FastAPI 애플리케이션 엔트리포인트 — 로깅, 미들웨어 및 라우터 등록.

FastAPI application entry point for the fabrication scheduler.
Configures service logging, the API logging middleware, CORS, the store-aware
health check and the scheduling router.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import engine, get_db, ping_store
from app.middleware.axiom_logging import AxiomLoggingMiddleware

# 서비스 로거 설정 — app.* 로거만 LOG_LEVEL 적용 (Only app.* loggers follow LOG_LEVEL)
logging.basicConfig(format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logging.getLogger("app").setLevel(settings.LOG_LEVEL.upper())

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """기동/종료 훅 — 종료 시 커넥션 풀 정리 (Dispose the connection pool on shutdown)."""
    logger.info("%s starting, week starts on weekday %d", settings.APP_NAME, settings.WEEK_START_DAY)
    yield
    await engine.dispose()
    logger.info("%s stopped", settings.APP_NAME)


app: FastAPI = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# API 로깅 미들웨어 — Request/response logging, shipped to Axiom when configured
# CORS보다 먼저 등록하여 모든 요청을 캡처 (Registered before CORS to capture all requests)
app.add_middleware(AxiomLoggingMiddleware)

# CORS 미들웨어 — 스케줄링 화면은 별도 오리진에서 호출 (The scheduling UI calls from its own origin)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check(db: Annotated[AsyncSession, Depends(get_db)]) -> dict[str, str]:
    """서버 및 레코드 저장소 상태 확인.

    Health check: the API is up and the record store answers a trivial query.
    Responds 502 when the store is unreachable.
    """
    await ping_store(db)
    return {"status": "ok", "store": "ok"}


# ---------------------------------------------------------------------------
# 라우터 등록 — 배정, 셀 조정, 캘린더 (Assignments, cell reconciliation, calendar)
# ---------------------------------------------------------------------------
from app.api.scheduling import router as scheduling_router  # noqa: E402

app.include_router(scheduling_router, prefix="/api/v1/scheduling", tags=["Scheduling"])
