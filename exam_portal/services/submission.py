"""
services/submission.py

제출 파이프라인의 순수 로직.
페이로드 생성 → 전송 → 응답 분류.
순수 Python 함수로 구성 — 세션 상태 변경 없음 (in-flight 가드는 ExamSession 담당).
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from config import REDIRECT_DELAY_SECONDS
from exam_portal.models.session_state import (
    AnswerEntry,
    AnswerState,
    AttemptContext,
    Redirect,
    SubmissionOutcome,
    SubmissionPayload,
    SubmissionResult,
    SubmitTrigger,
)
from exam_portal.services.exam_client import (
    AttemptLimitExceededError,
    BackendUnavailableError,
    ExamApiClient,
    ExamApiError,
    SubmissionRejectedError,
)
from exam_portal.services.session_loader import EXAM_LIST_PATH

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Exam submitted successfully! 🎉"
NETWORK_MESSAGE = "Cannot connect to server. Please try again."
SERVER_MESSAGE = "Failed to submit exam. Please try again."


def elapsed_seconds(started_at: datetime, now: datetime) -> int:
    """시작 시각부터의 실제 경과 시간 (초, 반올림). 카운트다운과 무관."""
    return max(0, round((now - started_at).total_seconds()))


def build_payload(
    answers: List[AnswerState],
    started_at: datetime,
    now: datetime,
) -> SubmissionPayload:
    """
    답안지 → 제출 페이로드. 문제 순서를 그대로 유지하며
    미응답 문제도 빈 선택 리스트로 포함한다.
    """
    entries = [
        AnswerEntry(
            question_id=a.question_id,
            selected_options=sorted(a.selected_options),
            time_spent=round(a.time_spent),
        )
        for a in answers
    ]
    return SubmissionPayload(
        answers=entries,
        time_spent=elapsed_seconds(started_at, now),
        started_at=started_at,
    )


def limit_exceeded_message(
    attempts_made: Optional[int],
    attempts_allowed: Optional[int],
    attempts: Optional[AttemptContext],
) -> Tuple[str, int, int]:
    """서버 보고값 우선, 없으면 로컬 값, 그것도 없으면 1."""
    made = attempts_made or (attempts.existing_attempts if attempts else None) or 1
    allowed = attempts_allowed or (attempts.attempt_limit if attempts else None) or 1
    message = (
        "You have already completed this exam. "
        f"Attempts made: {made}/{allowed}"
    )
    return message, made, allowed


def classify_response(
    exam_id: str,
    body: dict,
    trigger: SubmitTrigger,
    redirect_delay: float = REDIRECT_DELAY_SECONDS,
) -> SubmissionResult:
    """성공 응답 본문을 결과 유형별로 분류한다."""
    result = body.get("result") if isinstance(body, dict) else None
    result_id = result.get("id") if isinstance(result, dict) else None

    if result_id:
        return SubmissionResult(
            outcome=SubmissionOutcome.COMPLETED,
            trigger=trigger,
            message=SUCCESS_MESSAGE,
            result_id=str(result_id),
            result=result,
            redirect=Redirect(path=f"/exam/{exam_id}/result/{result_id}"),
        )
    if result:
        return SubmissionResult(
            outcome=SubmissionOutcome.COMPLETED_PENDING_ID,
            trigger=trigger,
            message="Exam submitted successfully! Redirecting to results...",
            result=result if isinstance(result, dict) else None,
            redirect=Redirect(
                path=f"/exam/{exam_id}/results", delay_seconds=redirect_delay
            ),
        )
    return SubmissionResult(
        outcome=SubmissionOutcome.COMPLETED_UNKNOWN,
        trigger=trigger,
        message="Exam submitted successfully! Redirecting to dashboard...",
        redirect=Redirect(path=EXAM_LIST_PATH, delay_seconds=redirect_delay),
    )


def classify_error(
    exam_id: str,
    error: BaseException,
    trigger: SubmitTrigger,
    attempts: Optional[AttemptContext] = None,
) -> SubmissionResult:
    """제출 실패를 결과 유형별로 분류한다. ExamApiError가 아닌 예외는 서버 오류로 본다."""
    if isinstance(error, AttemptLimitExceededError):
        message, made, allowed = limit_exceeded_message(
            error.attempts_made, error.attempts_allowed, attempts
        )
        return SubmissionResult(
            outcome=SubmissionOutcome.REJECTED_LIMIT_EXCEEDED,
            trigger=trigger,
            message=message,
            attempts_made=made,
            attempts_allowed=allowed,
            view_results=Redirect(path=f"/exam/{exam_id}/results"),
        )
    if isinstance(error, SubmissionRejectedError):
        return SubmissionResult(
            outcome=SubmissionOutcome.REJECTED,
            trigger=trigger,
            message=error.message or "Invalid submission format",
        )
    if isinstance(error, BackendUnavailableError):
        return SubmissionResult(
            outcome=SubmissionOutcome.REJECTED_NETWORK,
            trigger=trigger,
            message=NETWORK_MESSAGE,
        )
    return SubmissionResult(
        outcome=SubmissionOutcome.REJECTED_SERVER,
        trigger=trigger,
        message=SERVER_MESSAGE,
    )


def send_submission(
    client: ExamApiClient,
    exam_id: str,
    payload: SubmissionPayload,
    trigger: SubmitTrigger,
    attempts: Optional[AttemptContext] = None,
    redirect_delay: float = REDIRECT_DELAY_SECONDS,
) -> SubmissionResult:
    """
    페이로드를 한 번 전송하고 분류된 결과를 반환한다.
    자동 재시도 없음 — 재시도는 사용자가 직접 한다.
    """
    logger.info(
        f"시험 제출 ({trigger.value}): exam={exam_id}, "
        f"{len(payload.answers)}문항, {payload.time_spent}초"
    )
    try:
        body = client.submit_exam(exam_id, payload)
    except ExamApiError as e:
        logger.warning(f"시험 제출 실패: {type(e).__name__}: {e}")
        return classify_error(exam_id, e, trigger, attempts)
    return classify_response(exam_id, body, trigger, redirect_delay)
