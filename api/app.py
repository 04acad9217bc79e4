"""
api/app.py — FastAPI 앱 인스턴스 + 세션 미들웨어 + 만료 세션 정리
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router
import api.session as session
from exam_portal.services.exam_client import ExamApiClient

SESSION_COOKIE = "cbt_session"
CLEANUP_INTERVAL = 300  # 5분

logger = logging.getLogger(__name__)


def create_app(
    exam_client: Optional[ExamApiClient] = None,
    session_options: Optional[dict] = None,
) -> FastAPI:
    """
    Args:
        exam_client:     백엔드 클라이언트 (기본: config 기반 ExamApiClient)
        session_options: ExamSession 생성 시 넘길 추가 인자 (clock, tick_interval 등)
    """

    # 만료 세션 주기적 정리 (5분마다)
    async def _cleanup_loop():
        while True:
            await asyncio.sleep(CLEANUP_INTERVAL)
            removed = session.cleanup_expired()
            if removed:
                logger.info(f"만료 세션 {removed}개 정리")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cleanup = asyncio.create_task(_cleanup_loop())
        try:
            yield
        finally:
            cleanup.cancel()
            session.close_all()
            app.state.exam_client.close()

    app = FastAPI(title="Exam Portal", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.exam_client = exam_client or ExamApiClient()
    app.state.session_options = session_options or {}

    # CORS (프런트엔드 개발 서버 등 다양한 출처 허용)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or session.get_session(sid) is None:
            sid = session.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=session.SESSION_TTL,
        )
        return response

    app.include_router(router)

    @app.get("/")
    async def health():
        return {"ok": True}

    return app
