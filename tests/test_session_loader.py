from datetime import timedelta

import pytest

from exam_portal.services.exam_client import (
    BackendServerError,
    BackendUnavailableError,
    ExamAccessDeniedError,
    ExamNotFoundError,
)
from exam_portal.services.session_loader import (
    EXAM_LIST_PATH,
    ExamLoadError,
    LoadFailure,
    load_session,
)

from fakes import NOW, FakeExamClient, make_exam_json


def _load_error(client, now=NOW) -> ExamLoadError:
    with pytest.raises(ExamLoadError) as info:
        load_session(client, "exam-1", now)
    return info.value


def test_success_initialises_empty_answers():
    client = FakeExamClient(attempts=[{"_id": "r1"}], exam=make_exam_json(attempt_limit=3))

    loaded = load_session(client, "exam-1", NOW)

    assert loaded.exam.title == "Python Basics"
    assert loaded.attempts.existing_attempts == 1
    assert loaded.attempts.attempt_limit == 3
    assert loaded.attempts.next_attempt_number == 2
    assert [a.question_id for a in loaded.answers] == ["q-a", "q-b", "q-c"]
    assert all(not a.selected_options and a.time_spent == 0 for a in loaded.answers)


def test_missing_question_ids_fall_back_to_index():
    raw = make_exam_json()
    for q in raw["questions"]:
        q.pop("_id")

    loaded = load_session(FakeExamClient(exam=raw), "exam-1", NOW)

    assert [a.question_id for a in loaded.answers] == ["q0", "q1", "q2"]


def test_not_yet_available():
    client = FakeExamClient(exam=make_exam_json(start=NOW + timedelta(minutes=5)))

    err = _load_error(client)

    assert err.reason is LoadFailure.NOT_YET_AVAILABLE
    assert err.message == "This exam hasn't started yet"
    assert err.redirect == EXAM_LIST_PATH


def test_expired():
    client = FakeExamClient(exam=make_exam_json(end=NOW - timedelta(seconds=1)))

    err = _load_error(client)

    assert err.reason is LoadFailure.EXPIRED
    assert err.message == "This exam has already ended"


def test_window_edges_are_inclusive():
    client = FakeExamClient(exam=make_exam_json(start=NOW, end=NOW))

    assert load_session(client, "exam-1", NOW).exam.question_count == 3


@pytest.mark.parametrize(
    "raw",
    [
        {k: v for k, v in make_exam_json().items() if k != "questions"},
        dict(make_exam_json(), questions="not-a-list"),
        dict(make_exam_json(), questions=[{"question": "no options"}]),
        ["not", "an", "object"],
    ],
)
def test_malformed_data(raw):
    err = _load_error(FakeExamClient(exam=raw))

    assert err.reason is LoadFailure.MALFORMED_DATA
    assert "invalid or corrupted" in err.message


@pytest.mark.parametrize(
    "error, reason",
    [
        (ExamNotFoundError("Exam not found", 404), LoadFailure.NOT_FOUND),
        (ExamAccessDeniedError("Access denied", 403), LoadFailure.FORBIDDEN),
        (BackendUnavailableError("down"), LoadFailure.UNREACHABLE),
        (BackendServerError("boom", 500), LoadFailure.FAILED),
        (ValueError("bad json"), LoadFailure.MALFORMED_DATA),
    ],
)
def test_backend_failures(error, reason):
    client = FakeExamClient()
    client.exam_error = error

    assert _load_error(client).reason is reason


def test_attempt_history_failure_counts_as_zero():
    client = FakeExamClient()
    client.attempts_error = BackendServerError("boom", 500)

    loaded = load_session(client, "exam-1", NOW)

    assert loaded.attempts.existing_attempts == 0
    assert not loaded.attempts.exhausted


def test_exhausted_attempts_still_load():
    client = FakeExamClient(attempts=[{"_id": "r1"}])

    loaded = load_session(client, "exam-1", NOW)

    assert loaded.attempts.exhausted
