import itertools
import random

import pytest

from exam_portal.models.exam_model import ExamDefinition
from exam_portal.services.answer_tracker import AnswerTracker
from exam_portal.services.navigation import NavigationController
from exam_portal.services.session_loader import initial_answers

from fakes import make_exam_json

SINGLE, MULTIPLE, SINGLE_3 = 0, 1, 2


@pytest.fixture
def tracker():
    exam = ExamDefinition.model_validate(make_exam_json())
    return AnswerTracker(exam.questions, initial_answers(exam))


# ── SINGLE (radio) ───────────────────────────────────────────────────────────

def test_single_select_replaces_previous(tracker):
    tracker.select(SINGLE, 0, True)
    tracker.select(SINGLE, 1, True)

    assert tracker.selected(SINGLE) == [1]


def test_single_late_uncheck_of_old_option_keeps_new(tracker):
    # 브라우저가 새 보기 check 후 이전 보기 uncheck 이벤트를 보내는 경우
    tracker.select(SINGLE, 0, True)
    tracker.select(SINGLE, 2, True)
    tracker.select(SINGLE, 0, False)

    assert tracker.selected(SINGLE) == [2]


def test_single_uncheck_clears(tracker):
    tracker.select(SINGLE, 3, True)
    tracker.select(SINGLE, 3, False)

    assert tracker.selected(SINGLE) == []
    assert not tracker.is_answered(SINGLE)


def test_single_never_exceeds_one_selection(tracker):
    rng = random.Random(7)
    for _ in range(300):
        tracker.select(SINGLE, rng.randrange(4), rng.random() < 0.6)
        assert len(tracker.selected(SINGLE)) <= 1


# ── MULTIPLE (checkbox) ──────────────────────────────────────────────────────

def test_multiple_toggles_independently(tracker):
    tracker.select(MULTIPLE, 0, True)
    tracker.select(MULTIPLE, 2, True)
    tracker.select(MULTIPLE, 3, True)
    tracker.select(MULTIPLE, 3, False)

    assert tracker.selected(MULTIPLE) == [0, 2]


def test_multiple_matches_last_toggle(tracker):
    rng = random.Random(11)
    last = {}
    for _ in range(300):
        option, checked = rng.randrange(4), rng.random() < 0.5
        tracker.select(MULTIPLE, option, checked)
        last[option] = checked

    assert tracker.selected(MULTIPLE) == sorted(o for o, c in last.items() if c)


def test_duplicate_check_is_idempotent(tracker):
    tracker.select(MULTIPLE, 1, True)
    tracker.select(MULTIPLE, 1, True)

    assert tracker.selected(MULTIPLE) == [1]


# ── 진행 현황 / 범위 ─────────────────────────────────────────────────────────

def test_answered_count_and_flags(tracker):
    assert tracker.answered_count() == 0

    tracker.select(SINGLE, 1, True)
    tracker.select(SINGLE_3, 0, True)

    assert tracker.answered_count() == 2
    assert tracker.answered_flags() == [True, False, True]


@pytest.mark.parametrize("question, option", [(-1, 0), (3, 0), (SINGLE_3, 3), (SINGLE, -1)])
def test_out_of_range_indices(tracker, question, option):
    with pytest.raises(IndexError):
        tracker.select(question, option, True)


def test_add_time_accumulates(tracker):
    tracker.add_time(SINGLE, 2.5)
    tracker.add_time(SINGLE, 1.5)
    tracker.add_time(SINGLE, -4)

    assert tracker.answers[SINGLE].time_spent == 4.0


def test_navigation_does_not_touch_answers(tracker):
    nav = NavigationController(len(tracker))
    tracker.select(SINGLE, 1, True)
    tracker.select(MULTIPLE, 0, True)
    tracker.select(MULTIPLE, 3, True)
    before = [tracker.selected(i) for i in range(len(tracker))]

    for move in itertools.islice(itertools.cycle(["next", "previous", "go_to"]), 30):
        if move == "go_to":
            nav.go_to(2)
        else:
            getattr(nav, move)()

    assert [tracker.selected(i) for i in range(len(tracker))] == before


def test_tracker_requires_matching_lengths():
    exam = ExamDefinition.model_validate(make_exam_json())

    with pytest.raises(ValueError):
        AnswerTracker(exam.questions, initial_answers(exam)[:2])
