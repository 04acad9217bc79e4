"""
services/navigation.py

문제 간 이동 (이전 / 다음 / 번호 그리드 점프).
답안 상태는 인덱스 기준으로 따로 보관되므로 이동은 답안을 건드리지 않는다.
"""


class NavigationController:
    def __init__(self, question_count: int):
        if question_count < 1:
            raise ValueError("문제가 1개 이상 있어야 합니다.")
        self.question_count = question_count
        self.current_index = 0

    @property
    def is_first(self) -> bool:
        return self.current_index == 0

    @property
    def is_last(self) -> bool:
        return self.current_index == self.question_count - 1

    def next(self) -> int:
        self.current_index = min(self.current_index + 1, self.question_count - 1)
        return self.current_index

    def previous(self) -> int:
        self.current_index = max(self.current_index - 1, 0)
        return self.current_index

    def go_to(self, index: int) -> int:
        if not 0 <= index < self.question_count:
            raise IndexError(f"문제 인덱스 범위 초과: {index}")
        self.current_index = index
        return self.current_index

    def progress_percent(self, answered_count: int) -> float:
        return round(answered_count / self.question_count * 100, 2)
