"""
Tests for the backend REST client.

HTTP status / transport failures must map to the typed exceptions the
loader and submission pipeline rely on.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock

import pytest
import requests

from exam_portal.models.session_state import AnswerEntry, SubmissionPayload
from exam_portal.services.exam_client import (
    AttemptLimitExceededError,
    BackendServerError,
    BackendUnavailableError,
    ExamAccessDeniedError,
    ExamApiClient,
    ExamNotFoundError,
    SubmissionRejectedError,
)


def _response(status, body=None):
    resp = Mock()
    resp.status_code = status
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


def _client(response=None, error=None):
    http = MagicMock()
    http.headers = {}
    if error is not None:
        http.request.side_effect = error
    else:
        http.request.return_value = response
    return ExamApiClient(base_url="http://backend/", token="tok", timeout=3, session=http), http


def _payload():
    return SubmissionPayload(
        answers=[
            AnswerEntry(question_id="q-a", selected_options=[1], time_spent=4),
            AnswerEntry(question_id="q-b", selected_options=[], time_spent=0),
        ],
        time_spent=120,
        started_at=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
    )


class TestRequests:
    def test_sets_bearer_token_and_timeout(self):
        client, http = _client(_response(200, {"title": "x"}))

        assert client.get_exam("e1") == {"title": "x"}
        assert http.headers["Authorization"] == "Bearer tok"
        http.request.assert_called_once_with("GET", "http://backend/api/exams/e1", timeout=3)

    def test_attempts_returns_list(self):
        client, http = _client(_response(200, [{"_id": "r1"}, {"_id": "r2"}]))

        assert len(client.get_exam_attempts("e1")) == 2
        http.request.assert_called_once_with(
            "GET", "http://backend/api/exams/e1/results", timeout=3
        )

    def test_attempts_non_list_body_is_empty(self):
        client, _ = _client(_response(200, {"unexpected": True}))

        assert client.get_exam_attempts("e1") == []

    def test_submit_posts_camel_case_body(self):
        client, http = _client(_response(200, {"result": {"id": "r1"}}))

        assert client.submit_exam("e1", _payload()) == {"result": {"id": "r1"}}

        args, kwargs = http.request.call_args
        assert args == ("POST", "http://backend/api/exams/e1/submit")
        body = kwargs["json"]
        assert body["timeSpent"] == 120
        assert "startedAt" in body
        assert body["answers"][0] == {"questionId": "q-a", "selectedOptions": [1], "timeSpent": 4}
        assert body["answers"][1]["selectedOptions"] == []

    def test_submit_success_without_json_body(self):
        client, _ = _client(_response(200))

        assert client.submit_exam("e1", _payload()) == {}


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status, exc",
        [
            (404, ExamNotFoundError),
            (403, ExamAccessDeniedError),
            (500, BackendServerError),
            (502, BackendServerError),
        ],
    )
    def test_status_codes(self, status, exc):
        client, _ = _client(_response(status, {"message": "nope"}))

        with pytest.raises(exc) as info:
            client.get_exam("e1")
        assert info.value.status_code == status

    def test_validation_failure(self):
        client, _ = _client(_response(400, {"message": "Invalid submission format. Answers must be provided as an array."}))

        with pytest.raises(SubmissionRejectedError) as info:
            client.submit_exam("e1", _payload())
        assert not isinstance(info.value, AttemptLimitExceededError)
        assert "Answers must be provided" in info.value.message

    def test_validation_failure_default_message(self):
        client, _ = _client(_response(400))

        with pytest.raises(SubmissionRejectedError) as info:
            client.submit_exam("e1", _payload())
        assert info.value.message == "Invalid submission format"

    def test_attempt_limit_with_counts(self):
        client, _ = _client(
            _response(
                400,
                {
                    "message": "You have reached the maximum number of attempts",
                    "attemptsMade": 2,
                    "attemptsAllowed": "2",
                },
            )
        )

        with pytest.raises(AttemptLimitExceededError) as info:
            client.submit_exam("e1", _payload())
        assert info.value.attempts_made == 2
        assert info.value.attempts_allowed == 2

    def test_attempt_limit_detected_from_message_only(self):
        client, _ = _client(_response(400, {"message": "You have reached the maximum number of attempts"}))

        with pytest.raises(AttemptLimitExceededError) as info:
            client.submit_exam("e1", _payload())
        assert info.value.attempts_made is None
        assert info.value.attempts_allowed is None

    @pytest.mark.parametrize(
        "error",
        [requests.ConnectionError("refused"), requests.Timeout("slow")],
    )
    def test_transport_failures(self, error):
        client, _ = _client(error=error)

        with pytest.raises(BackendUnavailableError):
            client.get_exam("e1")
