"""
services/answer_tracker.py

문제 인덱스 → 선택한 보기 집합을 관리하는 답안지.
SINGLE 문제는 라디오(최대 1개), MULTIPLE 문제는 체크박스(독립 토글) 의미를 강제한다.
"""

from typing import List

from exam_portal.models.exam_model import Question, QuestionType
from exam_portal.models.session_state import AnswerState


class AnswerTracker:
    def __init__(self, questions: List[Question], answers: List[AnswerState]):
        if len(questions) != len(answers):
            raise ValueError("문제 수와 답안 수가 일치하지 않습니다.")
        self._questions = questions
        self._answers = answers

    def __len__(self) -> int:
        return len(self._answers)

    def _question(self, question_index: int) -> Question:
        if not 0 <= question_index < len(self._questions):
            raise IndexError(f"문제 인덱스 범위 초과: {question_index}")
        return self._questions[question_index]

    def select(self, question_index: int, option_index: int, checked: bool) -> None:
        question = self._question(question_index)
        if not 0 <= option_index < len(question.options):
            raise IndexError(f"보기 인덱스 범위 초과: {option_index}")

        selection = self._answers[question_index].selected_options
        if question.type is QuestionType.SINGLE:
            if checked:
                selection.clear()
                selection.add(option_index)
            else:
                # 선택된 보기를 해제할 때만 비운다
                selection.discard(option_index)
        elif checked:
            selection.add(option_index)
        else:
            selection.discard(option_index)

    def selected(self, question_index: int) -> List[int]:
        self._question(question_index)
        return sorted(self._answers[question_index].selected_options)

    def is_answered(self, question_index: int) -> bool:
        self._question(question_index)
        return self._answers[question_index].is_answered

    def answered_count(self) -> int:
        return sum(1 for a in self._answers if a.is_answered)

    def answered_flags(self) -> List[bool]:
        return [a.is_answered for a in self._answers]

    def add_time(self, question_index: int, seconds: float) -> None:
        self._question(question_index)
        if seconds > 0:
            self._answers[question_index].time_spent += seconds

    @property
    def answers(self) -> List[AnswerState]:
        return self._answers
