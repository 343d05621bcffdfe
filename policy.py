"""
Attempt policy: who may take another quiz attempt, and what a learner is
allowed to see about their attempts.

Per-question results are withheld while the learner can still retry, so the
breakdown never leaks correct answers ahead of a retake. Score, percentage
and the pass flag are always reported.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from errors import AlreadyPassed, AttemptsExceeded
from models import QuizAttempt

ALREADY_PASSED = "already passed"
MAX_ATTEMPTS_EXCEEDED = "max attempts exceeded"

_ANSWER_KEYS = ("correctAnswer", "correct_answer")


@dataclass(frozen=True)
class AttemptHistory:
    attempts_count: int
    passed: bool

    @staticmethod
    def from_attempts(attempts: Sequence[QuizAttempt]) -> AttemptHistory:
        return AttemptHistory(len(attempts), any(a.passed for a in attempts))


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    reason: Optional[str] = None


def can_attempt(history: AttemptHistory, config) -> Eligibility:
    """Decide whether a new attempt may be recorded.

    ``config`` is the quiz's QuizConfig; only ``max_attempts`` is read.
    """
    if history.passed:
        return Eligibility(False, ALREADY_PASSED)
    if history.attempts_count >= config.max_attempts:
        return Eligibility(False, MAX_ATTEMPTS_EXCEEDED)
    return Eligibility(True)


def raise_if_ineligible(eligibility: Eligibility) -> None:
    if eligibility.allowed:
        return
    if eligibility.reason == ALREADY_PASSED:
        raise AlreadyPassed()
    raise AttemptsExceeded()


def results_visible(passed: bool, attempt_number: int, max_attempts: int) -> bool:
    """Per-question results are shown once the quiz is passed or out of attempts.

    Submit passes the new attempt's number. Fetch passes the attempt count,
    which equals the latest attempt number since attempts are append-only.
    """
    return passed or attempt_number >= max_attempts


def can_retry(passed: bool, attempts_count: int, max_attempts: int) -> bool:
    return not passed and attempts_count < max_attempts


def review_attempt(attempts: Sequence[QuizAttempt]) -> Optional[QuizAttempt]:
    """The attempt shown on the quiz page: the passing one, else the latest."""
    if not attempts:
        return None
    for attempt in attempts:
        if attempt.passed:
            return attempt
    return max(attempts, key=lambda a: (a.created_at, a.attempt_number))


def strip_correct_answers(questions: Sequence[dict]) -> list[dict]:
    """Copy of the question list without any answer key."""
    return [
        {k: v for k, v in q.items() if k not in _ANSWER_KEYS}
        for q in questions
        if isinstance(q, dict)
    ]
