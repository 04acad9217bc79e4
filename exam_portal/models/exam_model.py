"""
models/exam_model.py

백엔드가 내려주는 시험 정의(ExamDefinition) 모델.
Pydantic v2 적용 — 백엔드 JSON(camelCase, `_id`)을 alias로 그대로 받는다.
로드 이후에는 변경하지 않는다 (frozen).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QuestionType(str, Enum):
    SINGLE = "SINGLE"
    MULTIPLE = "MULTIPLE"


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


def _to_str_id(v):
    # Mongo ObjectId / 숫자 id 모두 문자열로 통일
    if v is None:
        return None
    return str(v)


class Option(BaseModel):
    """보기 하나. is_correct는 채점에 쓰지 않는다 (서버가 채점)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    text: str = Field(default="", description="보기 텍스트")
    is_correct: bool = Field(
        default=False,
        alias="isCorrect",
        description="정답 여부. 로컬 힌트/해설 용도로만 보관",
    )


class Question(BaseModel):
    """
    시험 문제 모델.
    type이 SINGLE이면 라디오, MULTIPLE이면 체크박스 의미를 가진다.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: Optional[str] = Field(
        None,
        alias="_id",
        description="문제 고유 식별자 (없으면 제출 시 q{index}로 대체)",
    )
    prompt: str = Field(
        ...,
        alias="question",
        description="발문/문제 내용",
    )
    type: QuestionType = Field(
        default=QuestionType.SINGLE,
        description="SINGLE(단일 선택) / MULTIPLE(복수 선택)",
    )
    options: List[Option] = Field(
        ...,
        description="보기 리스트 (순서 유지)",
    )
    points: float = Field(default=1, description="배점")
    topic: Optional[str] = None
    difficulty: Difficulty = Difficulty.MEDIUM
    explanation: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v):
        return _to_str_id(v)

    @field_validator("options")
    @classmethod
    def validate_options_not_empty(cls, v: List[Option]) -> List[Option]:
        """보기는 최소 1개 이상이어야 답할 수 있다."""
        if not v:
            raise ValueError("보기(options)가 비어 있습니다.")
        return v

    @property
    def is_multiple(self) -> bool:
        return self.type is QuestionType.MULTIPLE


class ExamDefinition(BaseModel):
    """
    세션이 소유하는 시험 정의.

    Attributes:
        duration:      제한 시간 (분)
        start_time:    응시 가능 시작 시각 (backend: startDate)
        end_time:      응시 가능 종료 시각 (backend: endDate)
        attempt_limit: 최대 응시 횟수
        passing_score: 합격 기준 (%)
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: Optional[str] = Field(None, alias="_id")
    title: str = Field(..., min_length=1)
    subject: str = ""
    description: Optional[str] = None
    duration: int = Field(..., gt=0, description="제한 시간 (분)")
    start_time: datetime = Field(..., alias="startDate")
    end_time: datetime = Field(..., alias="endDate")
    attempt_limit: int = Field(default=1, ge=1, alias="attemptLimit")
    passing_score: float = Field(default=60, alias="passingScore")
    questions: List[Question] = Field(..., min_length=1)

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v):
        return _to_str_id(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """타임존 정보가 없는 시각은 UTC로 간주한다."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def duration_seconds(self) -> int:
        return self.duration * 60

    @property
    def question_count(self) -> int:
        return len(self.questions)
