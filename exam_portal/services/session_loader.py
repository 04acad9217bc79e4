"""
services/session_loader.py

시험 세션 로더.
시험 정의 조회 → 응시 가능 기간 검증 → 기존 응시 횟수 조회 → 답안지 초기화.

로드 실패는 모두 ExamLoadError 하나로 올리며, 부분적인 세션은 만들지 않는다.
응시 기록 조회 실패는 참고용 정보이므로 0회로 간주하고 넘어간다.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List

from pydantic import ValidationError

from exam_portal.models.exam_model import ExamDefinition
from exam_portal.models.session_state import AnswerState, AttemptContext
from exam_portal.services.exam_client import (
    BackendUnavailableError,
    ExamAccessDeniedError,
    ExamApiClient,
    ExamApiError,
    ExamNotFoundError,
)

logger = logging.getLogger(__name__)

EXAM_LIST_PATH = "/dashboard/exams"


class LoadFailure(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    NOT_YET_AVAILABLE = "not_yet_available"
    EXPIRED = "expired"
    MALFORMED_DATA = "malformed_data"
    UNREACHABLE = "unreachable"
    FAILED = "failed"


_MESSAGES = {
    LoadFailure.NOT_FOUND: "Exam not found",
    LoadFailure.FORBIDDEN: "You don't have permission to access this exam",
    LoadFailure.NOT_YET_AVAILABLE: "This exam hasn't started yet",
    LoadFailure.EXPIRED: "This exam has already ended",
    LoadFailure.MALFORMED_DATA: (
        "The exam data is invalid or corrupted. Please contact your instructor."
    ),
    LoadFailure.UNREACHABLE: (
        "Cannot connect to server. Please ensure the backend server is running."
    ),
    LoadFailure.FAILED: "Failed to load exam. Please try again.",
}


class ExamLoadError(RuntimeError):
    """세션 진입을 막는 로드 오류. 복구 수단은 시험 목록으로 이동뿐."""

    def __init__(self, reason: LoadFailure, message: str = ""):
        self.reason = reason
        self.message = message or _MESSAGES[reason]
        self.redirect = EXAM_LIST_PATH
        super().__init__(self.message)


@dataclass
class LoadedSession:
    exam: ExamDefinition
    attempts: AttemptContext
    answers: List[AnswerState]


# ── 단계별 헬퍼 ──────────────────────────────────────────────────────────────

def _fetch_definition(client: ExamApiClient, exam_id: str) -> dict:
    try:
        return client.get_exam(exam_id)
    except ExamNotFoundError as e:
        raise ExamLoadError(LoadFailure.NOT_FOUND) from e
    except ExamAccessDeniedError as e:
        raise ExamLoadError(LoadFailure.FORBIDDEN) from e
    except BackendUnavailableError as e:
        raise ExamLoadError(LoadFailure.UNREACHABLE) from e
    except ExamApiError as e:
        raise ExamLoadError(LoadFailure.FAILED) from e
    except ValueError as e:
        # 응답 본문이 JSON이 아님
        raise ExamLoadError(LoadFailure.MALFORMED_DATA) from e


def _parse_definition(raw) -> ExamDefinition:
    if not isinstance(raw, dict) or not isinstance(raw.get("questions"), list):
        logger.error(f"잘못된 시험 데이터 수신: {raw!r:.200}")
        raise ExamLoadError(LoadFailure.MALFORMED_DATA)
    try:
        return ExamDefinition.model_validate(raw)
    except ValidationError as e:
        logger.error(f"시험 데이터 검증 실패: {e.error_count()}개 오류")
        raise ExamLoadError(LoadFailure.MALFORMED_DATA) from e


def check_availability(exam: ExamDefinition, now: datetime) -> None:
    """응시 가능 기간(start_time ~ end_time) 밖이면 ExamLoadError."""
    if now < exam.start_time:
        raise ExamLoadError(LoadFailure.NOT_YET_AVAILABLE)
    if now > exam.end_time:
        raise ExamLoadError(LoadFailure.EXPIRED)


def count_existing_attempts(client: ExamApiClient, exam_id: str) -> int:
    """기존 응시 횟수. 실패하면 0 (최종 판단은 제출 시 서버가 한다)."""
    try:
        attempts = client.get_exam_attempts(exam_id)
    except (ExamApiError, ValueError) as e:
        logger.info(f"응시 기록 조회 실패, 0회로 간주: {type(e).__name__}")
        return 0
    if attempts:
        logger.info(f"기존 응시 기록 {len(attempts)}건 발견 (exam={exam_id})")
    return len(attempts)


def initial_answers(exam: ExamDefinition) -> List[AnswerState]:
    return [
        AnswerState(question_id=q.id or f"q{index}")
        for index, q in enumerate(exam.questions)
    ]


# ══════════════════════════════════════════════════════════════════════════════
# Public API
# ══════════════════════════════════════════════════════════════════════════════

def load_session(client: ExamApiClient, exam_id: str, now: datetime) -> LoadedSession:
    """
    시험 세션에 필요한 데이터를 모두 가져온다.

    Raises:
        ExamLoadError: NOT_FOUND / FORBIDDEN / NOT_YET_AVAILABLE / EXPIRED /
                       MALFORMED_DATA / UNREACHABLE / FAILED
    """
    logger.info(f"시험 로드 시작: exam={exam_id}")
    exam = _parse_definition(_fetch_definition(client, exam_id))
    check_availability(exam, now)

    existing = count_existing_attempts(client, exam_id)
    attempts = AttemptContext(
        existing_attempts=existing,
        attempt_limit=exam.attempt_limit,
    )

    logger.info(
        f"시험 로드 완료: '{exam.title}' ({exam.question_count}문항, "
        f"{exam.duration}분, 응시 {existing}/{exam.attempt_limit})"
    )
    return LoadedSession(exam=exam, attempts=attempts, answers=initial_answers(exam))
