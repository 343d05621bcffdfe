"""Tests for policy.py — attempt eligibility and results visibility."""

from __future__ import annotations

import pytest

from catalog import QuizConfig
from errors import AlreadyPassed, AttemptsExceeded, PolicyViolation
from models import QuizAttempt
from policy import (
    ALREADY_PASSED,
    MAX_ATTEMPTS_EXCEEDED,
    AttemptHistory,
    can_attempt,
    can_retry,
    raise_if_ineligible,
    results_visible,
    review_attempt,
    strip_correct_answers,
)


def _attempt(number, passed=False, created_at=None):
    return QuizAttempt(
        id=f"a{number}", student_id=1, course_id="c", cohort_id=None, quiz_id="q",
        attempt_number=number, score=0, total_questions=1, percentage=0.0, passed=passed,
        answers=[], results=None, created_at=created_at or f"2026-01-0{number}T00:00:00",
    )


class TestCanAttempt:
    def test_first_attempt_allowed(self):
        result = can_attempt(AttemptHistory(0, False), QuizConfig(max_attempts=1))
        assert result.allowed
        assert result.reason is None

    def test_already_passed_wins_over_count(self):
        result = can_attempt(AttemptHistory(5, True), QuizConfig(max_attempts=2))
        assert not result.allowed
        assert result.reason == ALREADY_PASSED

    def test_max_attempts_exceeded(self):
        result = can_attempt(AttemptHistory(2, False), QuizConfig(max_attempts=2))
        assert not result.allowed
        assert result.reason == MAX_ATTEMPTS_EXCEEDED

    def test_under_limit(self):
        assert can_attempt(AttemptHistory(1, False), QuizConfig(max_attempts=2)).allowed


class TestRaiseIfIneligible:
    def test_allowed_is_silent(self):
        raise_if_ineligible(can_attempt(AttemptHistory(0, False), QuizConfig()))

    def test_already_passed(self):
        with pytest.raises(AlreadyPassed) as exc:
            raise_if_ineligible(can_attempt(AttemptHistory(1, True), QuizConfig()))
        assert exc.value.status_code == 409
        assert exc.value.code == "already_passed"

    def test_attempts_exceeded_is_policy_violation(self):
        with pytest.raises(PolicyViolation):
            raise_if_ineligible(can_attempt(AttemptHistory(1, False), QuizConfig(max_attempts=1)))
        with pytest.raises(AttemptsExceeded):
            raise_if_ineligible(can_attempt(AttemptHistory(1, False), QuizConfig(max_attempts=1)))


class TestVisibility:
    @pytest.mark.parametrize("passed,number,max_attempts,expected", [
        (True, 1, 3, True),
        (False, 1, 2, False),
        (False, 2, 2, True),
        (False, 3, 2, True),
    ])
    def test_results_visible(self, passed, number, max_attempts, expected):
        assert results_visible(passed, number, max_attempts) is expected

    def test_hidden_exactly_while_retry_possible(self):
        for passed in (True, False):
            for count in range(1, 4):
                retry = can_retry(passed, count, 3)
                assert results_visible(passed, count, 3) is (not retry)

    def test_can_retry(self):
        assert can_retry(False, 1, 2)
        assert not can_retry(False, 2, 2)
        assert not can_retry(True, 1, 2)


class TestReviewAttempt:
    def test_none_when_no_attempts(self):
        assert review_attempt([]) is None

    def test_prefers_passed_attempt(self):
        attempts = [_attempt(1, passed=True), _attempt(2)]
        assert review_attempt(attempts).id == "a1"

    def test_latest_when_none_passed(self):
        attempts = [_attempt(2), _attempt(1)]
        assert review_attempt(attempts).id == "a2"

    def test_tie_on_created_at_broken_by_number(self):
        attempts = [_attempt(1, created_at="2026-01-01"), _attempt(2, created_at="2026-01-01")]
        assert review_attempt(attempts).id == "a2"


class TestStripCorrectAnswers:
    def test_removes_both_spellings(self):
        questions = [
            {"question": "a", "correctAnswer": "x", "options": ["x", "y"]},
            {"question": "b", "correct_answer": "y"},
        ]
        stripped = strip_correct_answers(questions)
        assert stripped == [{"question": "a", "options": ["x", "y"]}, {"question": "b"}]

    def test_does_not_mutate_input(self):
        questions = [{"question": "a", "correctAnswer": "x"}]
        strip_correct_answers(questions)
        assert questions[0]["correctAnswer"] == "x"
