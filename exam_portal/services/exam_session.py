"""
services/exam_session.py — 시험 응시 세션 컨트롤러

로더 / 타이머 / 답안지 / 네비게이션 / 제출 파이프라인을 하나의 세션 객체가 소유한다.
호스트(UI/HTTP) 레이어는 snapshot()으로 상태를 읽고, 아래 진입점으로만 명령한다.

  load() → start() → select() / go_to() / next() / previous()
         → request_manual_submit() → confirm_submit() | cancel_submit_dialog()
         → (타이머 만료 시 자동 submit)

상태 관리:
  - 모든 변경은 하나의 asyncio 이벤트 루프에서 일어난다 (락 없음).
  - 블로킹 HTTP 호출은 asyncio.to_thread로 실행하고 결과만 루프에서 반영.
  - 동시에 진행 중인 제출은 최대 1개.
  - close() 이후 도착한 로드/제출 결과는 반영하지 않는다.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from config import REDIRECT_DELAY_SECONDS, TIMER_TICK_SECONDS
from exam_portal.models.exam_model import ExamDefinition
from exam_portal.models.session_state import (
    AttemptContext,
    ConfirmationSummary,
    Notice,
    QuestionView,
    SessionPhase,
    SessionSnapshot,
    SubmissionResult,
    SubmitTrigger,
)
from exam_portal.services.answer_tracker import AnswerTracker
from exam_portal.services.countdown import CountdownTimer, format_time, timer_emphasis
from exam_portal.services.exam_client import ExamApiClient
from exam_portal.services.navigation import NavigationController
from exam_portal.services.session_loader import ExamLoadError, load_session
from exam_portal.services.submission import build_payload, classify_error, send_submission

logger = logging.getLogger(__name__)


class SessionStateError(RuntimeError):
    """현재 세션 상태에서 허용되지 않는 명령."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExamSession:
    """
    한 번의 응시(Attempt)에 대한 클라이언트 측 세션.

    Args:
        exam_id:       시험 식별자
        client:        백엔드 클라이언트
        clock:         현재 시각 (tz-aware datetime) — 기간 검증/경과 시간 계산용
        monotonic:     문제별 체류 시간 측정용 단조 시계
        tick_interval: 타이머 틱 간격 (초)
        autotick:      False면 타이머 틱을 외부에서 직접 구동 (테스트용)
    """

    def __init__(
        self,
        exam_id: str,
        client: ExamApiClient,
        clock: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
        tick_interval: float = TIMER_TICK_SECONDS,
        redirect_delay: float = REDIRECT_DELAY_SECONDS,
        autotick: bool = True,
    ):
        self.exam_id = exam_id
        self._client = client
        self._clock = clock
        self._monotonic = monotonic
        self._tick_interval = tick_interval
        self._redirect_delay = redirect_delay
        self._autotick = autotick

        self.phase = SessionPhase.LOADING
        self.exam: Optional[ExamDefinition] = None
        self.attempts: Optional[AttemptContext] = None
        self.tracker: Optional[AnswerTracker] = None
        self.navigator: Optional[NavigationController] = None
        self.timer: Optional[CountdownTimer] = None
        self.started_at: Optional[datetime] = None
        self.load_error: Optional[ExamLoadError] = None
        self.outcome: Optional[SubmissionResult] = None
        self.show_submit_confirm = False

        self._notices: List[Notice] = []
        self._submitting = False
        self._closed = False
        self._submit_task: Optional[asyncio.Task] = None
        self._question_entered: Optional[float] = None

    # ── 상태 조회 ────────────────────────────────────────────────────────────

    @property
    def submitting(self) -> bool:
        return self._submitting

    @property
    def closed(self) -> bool:
        return self._closed

    def _notify(self, level: str, message: str) -> None:
        self._notices.append(Notice(level=level, message=message))

    def pop_notices(self) -> List[Notice]:
        notices, self._notices = self._notices, []
        return notices

    def _is_editable(self) -> bool:
        if self._submitting or self._closed:
            return False
        if self.phase is SessionPhase.RUNNING:
            return True
        # 재시도 가능한 실패 후에는 답안을 유지한 채 계속 수정/재제출할 수 있다
        return (
            self.phase is SessionPhase.REJECTED
            and self.outcome is not None
            and self.outcome.retryable
        )

    def _require_editable(self) -> None:
        if not self._is_editable():
            raise SessionStateError(
                f"시험 진행 중이 아닙니다 (phase={self.phase.value})."
            )

    # ── 로드 ─────────────────────────────────────────────────────────────────

    async def load(self) -> None:
        """
        시험 정의와 기존 응시 횟수를 가져온다.

        Raises:
            ExamLoadError: 세션에 진입할 수 없음 (phase=LOAD_FAILED)
        """
        if self.phase is not SessionPhase.LOADING:
            raise SessionStateError("이미 로드된 세션입니다.")

        try:
            loaded = await asyncio.to_thread(
                load_session, self._client, self.exam_id, self._clock()
            )
        except ExamLoadError as e:
            if self._closed:
                return
            logger.warning(f"시험 로드 실패 ({e.reason.value}): exam={self.exam_id}")
            self.phase = SessionPhase.LOAD_FAILED
            self.load_error = e
            self._notify("error", e.message)
            raise

        if self._closed:
            logger.info(f"종료된 세션의 로드 결과 폐기: exam={self.exam_id}")
            return

        self.exam = loaded.exam
        self.attempts = loaded.attempts
        self.tracker = AnswerTracker(loaded.exam.questions, loaded.answers)
        self.navigator = NavigationController(loaded.exam.question_count)
        self.timer = CountdownTimer(
            loaded.exam.duration_seconds,
            on_expire=self._on_time_up,
            interval=self._tick_interval,
        )
        self.phase = SessionPhase.READY

    # ── 시작 ─────────────────────────────────────────────────────────────────

    def start(self) -> None:
        """안내 화면에서 '시험 시작'. 응시 횟수를 다시 확인한 뒤 타이머를 시작한다."""
        if self.phase is not SessionPhase.READY or self._closed:
            raise SessionStateError(
                f"시험을 시작할 수 없는 상태입니다 (phase={self.phase.value})."
            )
        if self.attempts.exhausted:
            raise SessionStateError(
                f"최대 응시 횟수를 초과했습니다 "
                f"({self.attempts.existing_attempts}/{self.attempts.attempt_limit})."
            )

        self.started_at = self._clock()
        self._question_entered = self._monotonic()
        self.phase = SessionPhase.RUNNING
        logger.info(
            f"시험 시작: exam={self.exam_id}, "
            f"응시 {self.attempts.next_attempt_number}/{self.attempts.attempt_limit}"
        )
        self._notify("success", "Exam started! Good luck! 🚀")
        self.timer.start(self.started_at, autotick=self._autotick)

    def _on_time_up(self) -> None:
        if self._closed or self._submitting:
            return
        self._notify("warning", "Time's up! Submitting exam automatically...")
        self.show_submit_confirm = False
        self._submit_task = asyncio.get_running_loop().create_task(
            self.submit(SubmitTrigger.AUTO)
        )
        self._submit_task.add_done_callback(self._log_auto_submit_failure)

    @staticmethod
    def _log_auto_submit_failure(task: asyncio.Task) -> None:
        """아무도 await하지 않는 자동 제출 태스크의 예외를 로그로 남긴다."""
        if task.cancelled():
            logger.warning("자동 제출 태스크 취소됨")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"자동 제출 실패: {type(error).__name__}: {error}")

    # ── 답안 / 이동 ──────────────────────────────────────────────────────────

    def select(self, question_index: int, option_index: int, checked: bool = True) -> None:
        self._require_editable()
        self.tracker.select(question_index, option_index, checked)

    def _flush_question_time(self) -> None:
        """현재 문제에 머문 시간을 답안지에 누적."""
        if self._question_entered is None:
            return
        now = self._monotonic()
        self.tracker.add_time(self.navigator.current_index, now - self._question_entered)
        self._question_entered = now

    def go_to(self, index: int) -> int:
        self._require_editable()
        self._flush_question_time()
        return self.navigator.go_to(index)

    def next(self) -> int:
        self._require_editable()
        self._flush_question_time()
        return self.navigator.next()

    def previous(self) -> int:
        self._require_editable()
        self._flush_question_time()
        return self.navigator.previous()

    # ── 제출 확인 다이얼로그 ─────────────────────────────────────────────────

    def confirmation_summary(self) -> ConfirmationSummary:
        remaining = self.timer.remaining_seconds
        return ConfirmationSummary(
            answered=self.tracker.answered_count(),
            total=len(self.tracker),
            remaining_seconds=remaining,
            remaining_display=format_time(remaining),
            attempt_number=self.attempts.next_attempt_number,
            attempt_limit=self.attempts.attempt_limit,
        )

    def request_manual_submit(self) -> ConfirmationSummary:
        self._require_editable()
        self.show_submit_confirm = True
        return self.confirmation_summary()

    def cancel_submit_dialog(self) -> None:
        self.show_submit_confirm = False

    async def confirm_submit(self) -> Optional[SubmissionResult]:
        if not self.show_submit_confirm:
            raise SessionStateError("제출 확인 다이얼로그가 열려 있지 않습니다.")
        return await self.submit(SubmitTrigger.MANUAL)

    # ── 제출 파이프라인 ──────────────────────────────────────────────────────

    async def submit(
        self, trigger: SubmitTrigger = SubmitTrigger.MANUAL
    ) -> Optional[SubmissionResult]:
        """
        답안을 한 번 제출한다.

        진행 중인 제출이 있으면 아무것도 하지 않고 None을 반환한다.
        이미 완료되었거나 재시도 불가한 실패 후에는 기존 결과를 그대로 반환한다.
        타이머는 제출 시작과 함께 멈추므로 실패는 항상 REJECTED(재시도 가능 여부 포함)로 끝난다.
        """
        if self._submitting:
            logger.info(f"제출 진행 중 — 중복 제출 무시 ({trigger.value})")
            return None
        if not self._is_editable():
            logger.info(f"제출 불가 상태 — 무시 (phase={self.phase.value})")
            return self.outcome

        self._submitting = True
        self.phase = SessionPhase.SUBMITTING
        self.timer.stop()
        self._flush_question_time()

        try:
            payload = build_payload(self.tracker.answers, self.started_at, self._clock())
            result = await asyncio.to_thread(
                send_submission,
                self._client,
                self.exam_id,
                payload,
                trigger,
                self.attempts,
                self._redirect_delay,
            )
        except asyncio.CancelledError as e:
            # 전송 여부를 알 수 없음: 재시도 가능한 실패로 남긴다
            logger.warning(f"제출 대기 취소됨 ({trigger.value}): exam={self.exam_id}")
            if not self._closed:
                self._apply_result(classify_error(self.exam_id, e, trigger, self.attempts))
            raise
        except Exception as e:
            logger.exception(f"제출 중 예기치 못한 오류: {type(e).__name__}: {e}")
            result = classify_error(self.exam_id, e, trigger, self.attempts)
        finally:
            self._submitting = False
            self.show_submit_confirm = False

        if self._closed:
            logger.info(f"종료된 세션의 제출 결과 폐기: {result.outcome.value}")
            return result

        self._apply_result(result)
        return result

    def _apply_result(self, result: SubmissionResult) -> None:
        self.outcome = result
        if result.outcome.is_success:
            self.phase = SessionPhase.COMPLETED
            self._notify("success", result.message)
        else:
            self.phase = SessionPhase.REJECTED
            self._notify("error", result.message)
        logger.info(f"제출 결과: {result.outcome.value} (exam={self.exam_id})")

    async def wait_for_submission(self) -> Optional[SubmissionResult]:
        """타이머가 걸어 둔 자동 제출이 끝날 때까지 기다린다."""
        task = self._submit_task
        if task is None:
            return None
        return await task

    # ── 종료 ─────────────────────────────────────────────────────────────────

    def close(self) -> None:
        """세션 화면을 떠남. 타이머를 취소하고 이후 도착하는 결과는 버린다."""
        if self._closed:
            return
        self._closed = True
        if self.timer is not None:
            self.timer.cancel()
        self.show_submit_confirm = False
        self.phase = SessionPhase.CLOSED
        logger.info(f"세션 종료: exam={self.exam_id}")

    # ── 스냅샷 ───────────────────────────────────────────────────────────────

    def _question_view(self) -> QuestionView:
        index = self.navigator.current_index
        question = self.exam.questions[index]
        return QuestionView(
            index=index,
            number=index + 1,
            prompt=question.prompt,
            type=question.type.value,
            options=[o.text for o in question.options],
            points=question.points,
            topic=question.topic,
            difficulty=question.difficulty.value,
            selected_options=self.tracker.selected(index),
        )

    def snapshot(self) -> SessionSnapshot:
        """렌더링용 읽기 전용 상태."""
        snap = SessionSnapshot(
            exam_id=self.exam_id,
            phase=self.phase,
            submitting=self._submitting,
            outcome=self.outcome,
        )
        if self.load_error is not None:
            snap.error = self.load_error.message
            snap.error_reason = self.load_error.reason.value
        if self.exam is None:
            return snap

        answered_count = self.tracker.answered_count()
        remaining = self.timer.remaining_seconds
        snap.title = self.exam.title
        snap.subject = self.exam.subject
        snap.description = self.exam.description
        snap.duration_minutes = self.exam.duration
        snap.passing_score = self.exam.passing_score
        snap.question_count = self.exam.question_count
        snap.current_index = self.navigator.current_index
        snap.current_question = self._question_view()
        snap.answered = self.tracker.answered_flags()
        snap.answered_count = answered_count
        snap.progress_percent = self.navigator.progress_percent(answered_count)
        snap.remaining_seconds = remaining
        snap.timer_display = format_time(remaining)
        snap.timer_emphasis = timer_emphasis(remaining)
        snap.existing_attempts = self.attempts.existing_attempts
        snap.attempt_limit = self.attempts.attempt_limit
        snap.next_attempt_number = self.attempts.next_attempt_number
        snap.can_start = self.phase is SessionPhase.READY and not self.attempts.exhausted
        if self.show_submit_confirm:
            snap.confirmation = self.confirmation_summary()
        return snap
