"""
models/session_state.py

시험 진행 상태를 담는 OMR 카드 모델 + 제출 페이로드/결과 + 렌더링용 스냅샷.
Pydantic BaseModel 기반 — 직렬화/역직렬화 및 타입 안전성 확보.
UI 코드 없음.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


# ── 세션 / 제출 상태 열거형 ──────────────────────────────────────────────────

class SessionPhase(str, Enum):
    LOADING = "loading"
    LOAD_FAILED = "load_failed"
    READY = "ready"              # 안내(Instructions) 화면, 시작 대기
    RUNNING = "running"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CLOSED = "closed"


class SubmitTrigger(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class SubmissionOutcome(str, Enum):
    COMPLETED = "completed"
    COMPLETED_PENDING_ID = "completed_pending_id"
    COMPLETED_UNKNOWN = "completed_unknown"
    REJECTED = "rejected"
    REJECTED_LIMIT_EXCEEDED = "rejected_limit_exceeded"
    REJECTED_NETWORK = "rejected_network"
    REJECTED_SERVER = "rejected_server"

    @property
    def is_success(self) -> bool:
        return self in (
            SubmissionOutcome.COMPLETED,
            SubmissionOutcome.COMPLETED_PENDING_ID,
            SubmissionOutcome.COMPLETED_UNKNOWN,
        )

    @property
    def is_retryable(self) -> bool:
        return self in (
            SubmissionOutcome.REJECTED,
            SubmissionOutcome.REJECTED_NETWORK,
            SubmissionOutcome.REJECTED_SERVER,
        )


# ── 답안 / 응시 횟수 ─────────────────────────────────────────────────────────

class AnswerState(BaseModel):
    """
    문제 하나에 대한 답안 상태.

    Attributes:
        question_id:      제출 시 사용할 문제 식별자 (없으면 q{index}).
        selected_options: 선택한 보기 인덱스 집합 (순서 무관).
        time_spent:       해당 문제에 머문 누적 시간 (초).
    """

    question_id: str
    selected_options: Set[int] = Field(default_factory=set)
    time_spent: float = Field(default=0.0, ge=0)

    @property
    def is_answered(self) -> bool:
        return bool(self.selected_options)


class AttemptContext(BaseModel):
    """로드 시점에 한 번 조회한 기존 응시 횟수 + 허용 횟수."""

    model_config = ConfigDict(frozen=True)

    existing_attempts: int = Field(default=0, ge=0)
    attempt_limit: int = Field(default=1, ge=1)

    @property
    def exhausted(self) -> bool:
        return self.existing_attempts >= self.attempt_limit

    @property
    def next_attempt_number(self) -> int:
        return self.existing_attempts + 1


# ── 제출 페이로드 ────────────────────────────────────────────────────────────

class AnswerEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    question_id: str = Field(..., alias="questionId")
    selected_options: List[int] = Field(default_factory=list, alias="selectedOptions")
    time_spent: int = Field(default=0, alias="timeSpent")


class SubmissionPayload(BaseModel):
    """서버로 한 번만 전송되는 불변 제출 데이터. 문제 순서 유지."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    answers: List[AnswerEntry]
    time_spent: int = Field(..., ge=0, alias="timeSpent")
    started_at: datetime = Field(..., alias="startedAt")

    def to_wire(self) -> dict:
        """백엔드 요청 바디 (camelCase JSON)."""
        return self.model_dump(mode="json", by_alias=True)


# ── 제출 결과 ────────────────────────────────────────────────────────────────

class Redirect(BaseModel):
    path: str
    delay_seconds: float = 0.0


class SubmissionResult(BaseModel):
    """Submission Pipeline의 최종 분류 결과."""

    outcome: SubmissionOutcome
    trigger: SubmitTrigger
    message: str
    result_id: Optional[str] = None
    result: Optional[dict] = None
    redirect: Optional[Redirect] = None
    view_results: Optional[Redirect] = None   # 응시 횟수 초과 시 "View Results"
    attempts_made: Optional[int] = None
    attempts_allowed: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.outcome.is_retryable


# ── 렌더링용 스냅샷 ──────────────────────────────────────────────────────────

class Notice(BaseModel):
    """토스트 알림 (success / warning / error)."""

    level: str
    message: str


class ConfirmationSummary(BaseModel):
    """제출 확인 다이얼로그에 표시할 요약. 정보 제공용이며 제출을 막지 않는다."""

    answered: int
    total: int
    remaining_seconds: int
    remaining_display: str
    attempt_number: int
    attempt_limit: int

    @property
    def unanswered(self) -> int:
        return self.total - self.answered


class QuestionView(BaseModel):
    """현재 문제 표시용. 정답 정보(is_correct)는 포함하지 않는다."""

    index: int
    number: int
    prompt: str
    type: str
    options: List[str]
    points: float
    topic: Optional[str] = None
    difficulty: Optional[str] = None
    selected_options: List[int] = Field(default_factory=list)


class SessionSnapshot(BaseModel):
    exam_id: str
    phase: SessionPhase
    title: Optional[str] = None
    subject: Optional[str] = None
    description: Optional[str] = None
    duration_minutes: Optional[int] = None
    passing_score: Optional[float] = None
    question_count: int = 0
    current_index: int = 0
    current_question: Optional[QuestionView] = None
    answered: List[bool] = Field(default_factory=list)
    answered_count: int = 0
    progress_percent: float = 0.0
    remaining_seconds: int = 0
    timer_display: str = "0:00"
    timer_emphasis: str = "normal"
    existing_attempts: int = 0
    attempt_limit: int = 1
    next_attempt_number: int = 1
    can_start: bool = False
    submitting: bool = False
    confirmation: Optional[ConfirmationSummary] = None
    outcome: Optional[SubmissionResult] = None
    error: Optional[str] = None
    error_reason: Optional[str] = None
