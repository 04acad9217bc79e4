"""
services/countdown.py

남은 시험 시간을 관리하는 카운트다운 타이머.
상태: IDLE → RUNNING → (EXPIRED | STOPPED)

- 틱마다 remaining_seconds를 정확히 1 감소시킨다.
- 0에 도달하면 EXPIRED로 전이하고 on_expire 콜백을 한 번만 호출한다.
- 틱 루프는 타이머가 소유하는 asyncio.Task이며 stop()/cancel()에서 확실히 취소된다.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from config import TIMER_DANGER_SECONDS, TIMER_TICK_SECONDS, TIMER_WARNING_SECONDS

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"
    STOPPED = "stopped"


def format_time(seconds: int) -> str:
    """초 → 1시간 이상이면 H:MM:SS, 아니면 M:SS."""
    seconds = max(0, int(seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def timer_emphasis(seconds: int) -> str:
    """표시 강조 단계. 동작에는 영향 없음."""
    if seconds < TIMER_DANGER_SECONDS:
        return "danger"
    if seconds < TIMER_WARNING_SECONDS:
        return "warning"
    return "normal"


class CountdownTimer:
    """
    Args:
        duration_seconds: 시작 시 남은 시간 (초)
        on_expire:        0 도달 시 한 번 호출되는 콜백
        interval:         틱 간격 (초, 기본 config.TIMER_TICK_SECONDS)
    """

    def __init__(
        self,
        duration_seconds: int,
        on_expire: Callable[[], None],
        interval: float = TIMER_TICK_SECONDS,
    ):
        if duration_seconds < 0:
            raise ValueError("duration_seconds는 0 이상이어야 합니다.")
        self.remaining_seconds = int(duration_seconds)
        self.started_at: Optional[datetime] = None
        self.state = TimerState.IDLE
        self.interval = interval
        self._on_expire = on_expire
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.state is TimerState.RUNNING

    @property
    def display(self) -> str:
        return format_time(self.remaining_seconds)

    @property
    def emphasis(self) -> str:
        return timer_emphasis(self.remaining_seconds)

    def start(self, started_at: datetime, autotick: bool = True) -> None:
        """
        IDLE → RUNNING.
        autotick=True면 실행 중인 이벤트 루프에 틱 태스크를 만든다.
        False면 호출 측이 tick()을 직접 호출한다.
        """
        if self.state is not TimerState.IDLE:
            raise RuntimeError(f"타이머를 시작할 수 없는 상태입니다: {self.state.value}")
        self.state = TimerState.RUNNING
        self.started_at = started_at
        if self.remaining_seconds == 0:
            self._expire()
            return
        if autotick:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self.state is TimerState.RUNNING:
            await asyncio.sleep(self.interval)
            self.tick()

    def tick(self) -> None:
        if self.state is not TimerState.RUNNING:
            return
        self.remaining_seconds -= 1
        if self.remaining_seconds <= 0:
            self.remaining_seconds = 0
            self._expire()

    def _expire(self) -> None:
        self.state = TimerState.EXPIRED
        self._task = None
        logger.info("시험 시간 종료")
        self._on_expire()

    def stop(self) -> None:
        """RUNNING → STOPPED. 다른 상태에서는 아무것도 하지 않는다."""
        if self.state is TimerState.RUNNING:
            self.state = TimerState.STOPPED
        self._cancel_task()

    def cancel(self) -> None:
        """세션 종료(teardown). 어떤 상태에서든 틱과 제출을 모두 막는다."""
        if self.state in (TimerState.IDLE, TimerState.RUNNING):
            self.state = TimerState.STOPPED
        self._cancel_task()

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
