"""
services/exam_client.py

시험 백엔드 REST API 클라이언트 (requests 기반, 동기).
Public API:
  - ExamApiClient.get_exam(exam_id) -> dict                 : 시험 정의 조회
  - ExamApiClient.get_exam_attempts(exam_id) -> List[dict]  : 기존 응시 기록 조회
  - ExamApiClient.submit_exam(exam_id, payload) -> dict     : 답안 제출

HTTP / 전송 오류는 아래 예외로 변환해 올린다. 결과 해석(분류)은 호출 측 책임.
"""

import logging
from typing import List, Optional

import requests

from config import BACKEND_BASE_URL, BACKEND_TOKEN, REQUEST_TIMEOUT
from exam_portal.models.session_state import SubmissionPayload

logger = logging.getLogger(__name__)

_ATTEMPT_LIMIT_MARKER = "maximum number of attempts"


# ── 예외 ─────────────────────────────────────────────────────────────────────

class ExamApiError(RuntimeError):
    """백엔드 호출 실패의 공통 부모."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ExamNotFoundError(ExamApiError):
    """404 — 시험이 없음."""


class ExamAccessDeniedError(ExamApiError):
    """403 — 접근 권한 없음."""


class SubmissionRejectedError(ExamApiError):
    """400 — 제출 형식 오류 등 서버 검증 실패."""


class AttemptLimitExceededError(SubmissionRejectedError):
    """400 — 최대 응시 횟수 초과. 서버가 보고한 횟수를 함께 담는다."""

    def __init__(
        self,
        message: str,
        attempts_made: Optional[int] = None,
        attempts_allowed: Optional[int] = None,
    ):
        super().__init__(message, status_code=400)
        self.attempts_made = attempts_made
        self.attempts_allowed = attempts_allowed


class BackendUnavailableError(ExamApiError):
    """연결 실패 / 타임아웃 등 전송 계층 오류."""


class BackendServerError(ExamApiError):
    """그 밖의 HTTP 오류 (5xx 등)."""


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def _json_or_empty(response: requests.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _optional_int(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _raise_for_response(response: requests.Response) -> None:
    """상태 코드를 예외로 변환. 2xx면 아무것도 하지 않는다."""
    status = response.status_code
    if 200 <= status < 300:
        return

    body = _json_or_empty(response)
    message = str(body.get("message") or "")

    if status == 404:
        raise ExamNotFoundError(message or "Exam not found", status)
    if status == 403:
        raise ExamAccessDeniedError(message or "Access denied", status)
    if status == 400:
        if (
            _ATTEMPT_LIMIT_MARKER in message
            or "attemptsMade" in body
            or "attemptsAllowed" in body
        ):
            raise AttemptLimitExceededError(
                message or "You have reached the maximum number of attempts",
                attempts_made=_optional_int(body.get("attemptsMade")),
                attempts_allowed=_optional_int(body.get("attemptsAllowed")),
            )
        raise SubmissionRejectedError(message or "Invalid submission format", status)
    raise BackendServerError(message or f"Server error ({status})", status)


# ══════════════════════════════════════════════════════════════════════════════
# 클라이언트
# ══════════════════════════════════════════════════════════════════════════════

class ExamApiClient:
    """
    백엔드 `/api/exams` 엔드포인트 래퍼.

    Args:
        base_url: 백엔드 주소 (기본 config.BACKEND_BASE_URL)
        token:    Bearer 토큰 (로그인 세션은 외부 협력자가 관리)
        timeout:  요청별 전송 타임아웃 (초)
        session:  주입용 requests.Session (테스트에서 교체)
    """

    def __init__(
        self,
        base_url: str = BACKEND_BASE_URL,
        token: str = BACKEND_TOKEN,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = session or requests.Session()
        if token:
            self._http.headers["Authorization"] = f"Bearer {token}"

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            response = self._http.request(
                method, self._url(path), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {path} 전송 실패: {type(e).__name__}: {e}")
            raise BackendUnavailableError(
                "Cannot connect to server. Please check your connection."
            ) from e
        _raise_for_response(response)
        return response

    def get_exam(self, exam_id: str) -> dict:
        response = self._request("GET", f"/api/exams/{exam_id}")
        return response.json()

    def get_exam_attempts(self, exam_id: str) -> List[dict]:
        """본인 응시 기록. 배열이 아니면 빈 리스트."""
        response = self._request("GET", f"/api/exams/{exam_id}/results")
        body = response.json()
        return body if isinstance(body, list) else []

    def submit_exam(self, exam_id: str, payload: SubmissionPayload) -> dict:
        response = self._request(
            "POST", f"/api/exams/{exam_id}/submit", json=payload.to_wire()
        )
        return _json_or_empty(response)

    def close(self) -> None:
        self._http.close()
