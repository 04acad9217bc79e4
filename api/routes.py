"""
api/routes.py — FastAPI 엔드포인트

브라우저 세션(쿠키)마다 ExamSession 하나를 두고, 그 진입점을 JSON API로 노출한다.
모든 응답은 최신 스냅샷과 쌓인 알림(toast)을 함께 돌려준다.
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

import api.session as session
from exam_portal.services.exam_session import ExamSession, SessionStateError
from exam_portal.services.session_loader import ExamLoadError, LoadFailure

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class SelectBody(BaseModel):
    question_index: int
    option_index: int
    checked: bool = True

class NavigateBody(BaseModel):
    index: int = 0


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

_LOAD_STATUS = {
    LoadFailure.NOT_FOUND: 404,
    LoadFailure.FORBIDDEN: 403,
    LoadFailure.NOT_YET_AVAILABLE: 409,
    LoadFailure.EXPIRED: 410,
    LoadFailure.MALFORMED_DATA: 422,
    LoadFailure.UNREACHABLE: 503,
    LoadFailure.FAILED: 502,
}


def _sid(request: Request) -> str:
    return request.state.session_id


def _current(request: Request) -> ExamSession:
    exam_session: ExamSession | None = session.get(_sid(request), "exam_session")
    if exam_session is None or exam_session.closed:
        raise HTTPException(status_code=404, detail="No exam session is open.")
    return exam_session


def _state_response(exam_session: ExamSession) -> dict:
    return {
        "snapshot": exam_session.snapshot().model_dump(mode="json"),
        "notices": [n.model_dump() for n in exam_session.pop_notices()],
    }


def _conflict(e: SessionStateError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(e))


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.post("/api/exams/{exam_id}/open")
async def open_exam(exam_id: str, request: Request):
    sid = _sid(request)
    previous: ExamSession | None = session.get(sid, "exam_session")
    if previous is not None:
        previous.close()

    exam_session = ExamSession(
        exam_id, request.app.state.exam_client, **request.app.state.session_options
    )
    session.put(sid, "exam_session", exam_session)
    try:
        await exam_session.load()
    except ExamLoadError as e:
        raise HTTPException(
            status_code=_LOAD_STATUS[e.reason],
            detail={"reason": e.reason.value, "message": e.message, "redirect": e.redirect},
        )
    return _state_response(exam_session)


@router.get("/api/session")
async def get_session_state(request: Request):
    return _state_response(_current(request))


@router.post("/api/session/start")
async def start_exam(request: Request):
    exam_session = _current(request)
    try:
        exam_session.start()
    except SessionStateError as e:
        raise _conflict(e)
    return _state_response(exam_session)


@router.post("/api/session/select")
async def select_option(body: SelectBody, request: Request):
    exam_session = _current(request)
    try:
        exam_session.select(body.question_index, body.option_index, body.checked)
    except SessionStateError as e:
        raise _conflict(e)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state_response(exam_session)


@router.post("/api/session/navigate")
async def navigate(body: NavigateBody, request: Request):
    exam_session = _current(request)
    try:
        exam_session.go_to(body.index)
    except SessionStateError as e:
        raise _conflict(e)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state_response(exam_session)


@router.post("/api/session/next")
async def next_question(request: Request):
    exam_session = _current(request)
    try:
        exam_session.next()
    except SessionStateError as e:
        raise _conflict(e)
    return _state_response(exam_session)


@router.post("/api/session/previous")
async def previous_question(request: Request):
    exam_session = _current(request)
    try:
        exam_session.previous()
    except SessionStateError as e:
        raise _conflict(e)
    return _state_response(exam_session)


@router.post("/api/session/submit/request")
async def request_submit(request: Request):
    exam_session = _current(request)
    try:
        exam_session.request_manual_submit()
    except SessionStateError as e:
        raise _conflict(e)
    return _state_response(exam_session)


@router.post("/api/session/submit/confirm")
async def confirm_submit(request: Request):
    exam_session = _current(request)
    try:
        await exam_session.confirm_submit()
    except SessionStateError as e:
        raise _conflict(e)
    return _state_response(exam_session)


@router.post("/api/session/submit/cancel")
async def cancel_submit(request: Request):
    exam_session = _current(request)
    exam_session.cancel_submit_dialog()
    return _state_response(exam_session)


@router.post("/api/session/close")
async def close_exam(request: Request):
    exam_session = _current(request)
    exam_session.close()
    return {"ok": True}


@router.post("/api/reset")
async def reset_session(request: Request):
    session.reset(_sid(request))
    return {"ok": True}
