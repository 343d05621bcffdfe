"""
Assessment engine — quiz attempts, assignment submissions and progress.

Each operation resolves the item in the catalog, checks the caller's
enrollment path for the requested cohort scope, and then works through the
scope-keyed stores. The engine holds no state between calls.

Recording an attempt or submission is the primary effect. The progress
upsert that follows it is retried on store errors; if it still fails the
attempt stays recorded and the response carries
``warnings: ["progress_not_updated"]``.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

from flask import current_app
from tenacity import (
    Retrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

import catalog
from audit import (
    ACCESS_DENIED,
    ASSIGNMENT_GRADED,
    ASSIGNMENT_SUBMITTED,
    QUIZ_ATTEMPT,
    log_event,
)
from db_stores import AssignmentSubmissionStoreDB, ProgressLedgerDB, QuizAttemptStoreDB
from enrollment import require_unlocked_path
from errors import Conflict, Forbidden, NotFound, PolicyViolation, StoreUnavailable, ValidationError
from grading import GradeResult, course_progress_percent, grade
from models import ProgressRecord, ScopeKey, normalize_cohort_id
from policy import (
    AttemptHistory,
    can_attempt,
    can_retry,
    raise_if_ineligible,
    results_visible,
    review_attempt,
    strip_correct_answers,
)

logger = logging.getLogger(__name__)

PROGRESS_NOT_UPDATED = "progress_not_updated"


# ── Validation ─────────────────────────────────────────────


def _required(value: Any, name: str) -> str:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"Missing {name}")
    return str(value).strip()


def _require_path(student_id: int, course_id: str, cohort_id: Optional[str]) -> None:
    try:
        require_unlocked_path(student_id, course_id, cohort_id)
    except Forbidden as exc:
        log_event(ACCESS_DENIED, student_id, f"course={course_id} cohort={cohort_id} reason={exc.message}")
        raise


# ── Progress (with retry) ──────────────────────────────────


def _mark_completed(scope: ScopeKey, course_id: str, completed: bool) -> ProgressRecord:
    attempts = max(1, int(current_app.config.get("PROGRESS_RETRY_ATTEMPTS", 3)))
    for attempt in Retrying(
        retry=retry_if_exception_type(StoreUnavailable),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        stop=stop_after_attempt(attempts),
        reraise=True,
    ):
        with attempt:
            return ProgressLedgerDB.mark_completed(scope, course_id, completed)


def _complete_after_record(scope: ScopeKey, course_id: str) -> list[str]:
    """Mark the item completed; a failure becomes a response warning."""
    try:
        _mark_completed(scope, course_id, True)
    except StoreUnavailable:
        logger.warning("Progress not updated after retries", extra=scope.log_extra())
        return [PROGRESS_NOT_UPDATED]
    return []


# ── Quiz ───────────────────────────────────────────────────


@retry(
    retry=retry_if_exception_type(Conflict),
    wait=wait_exponential(multiplier=0.05, max=0.2),
    stop=stop_after_attempt(2),
    reraise=True,
)
def _reserve_attempt(scope: ScopeKey, course_id: str, result: GradeResult, passed: bool,
                     answers: list, config: catalog.QuizConfig):
    """Record the attempt; a lost race is retried once with a fresh count."""

    def check(history: AttemptHistory) -> None:
        eligibility = can_attempt(history, config)
        if not eligibility.allowed:
            logger.info("Attempt refused: %s", eligibility.reason, extra=scope.log_extra())
        raise_if_ineligible(eligibility)

    return QuizAttemptStoreDB.record_attempt(scope, course_id, result, passed, answers, check)


def submit_quiz_attempt(student_id: int, course_id: Any, quiz_id: Any, answers: Any,
                        cohort_id: Any = None) -> dict:
    course_id = _required(course_id, "courseId")
    quiz_id = _required(quiz_id, "quizId")
    if not isinstance(answers, list):
        raise ValidationError("answers must be a list")

    item = catalog.get_quiz(quiz_id, course_id)
    config: catalog.QuizConfig = item.config
    scope = ScopeKey.build(student_id, item.id, cohort_id)
    _require_path(student_id, course_id, scope.cohort_id)

    result = grade(config.questions, answers)
    passed = result.passed(config.passing_grade)
    attempt, history = _reserve_attempt(scope, course_id, result, passed, answers, config)
    attempts_count = history.attempts_count + 1

    warnings = _complete_after_record(scope, course_id) if passed else []

    log_event(
        QUIZ_ATTEMPT, student_id,
        f"quiz={quiz_id} cohort={scope.cohort_id} attempt={attempt.attempt_number} "
        f"score={result.score}/{result.total} passed={passed}",
    )

    visible = results_visible(passed, attempt.attempt_number, config.max_attempts)
    return {
        "attemptId": attempt.id,
        "submission": attempt.to_dict(results_visible=visible),
        "passed": passed,
        "score": result.score,
        "percentage": result.percentage,
        "totalQuestions": result.total,
        "attemptsCount": attempts_count,
        "maxAttempts": config.max_attempts,
        "canRetry": can_retry(passed, attempts_count, config.max_attempts),
        "results": result.results_dicts() if visible else None,
        "warnings": warnings,
    }


def fetch_quiz_state(student_id: int, quiz_id: Any, cohort_id: Any = None) -> dict:
    """Quiz page payload: sanitized questions, attempt stats, reviewable attempt."""
    quiz_id = _required(quiz_id, "quizId")
    item = catalog.get_quiz(quiz_id)
    config: catalog.QuizConfig = item.config
    scope = ScopeKey.build(student_id, item.id, cohort_id)
    _require_path(student_id, item.course_id, scope.cohort_id)

    attempts = QuizAttemptStoreDB.list(scope)
    history = AttemptHistory.from_attempts(attempts)
    visible = results_visible(history.passed, history.attempts_count, config.max_attempts)
    shown = review_attempt(attempts)

    metadata = dict(item.metadata)
    metadata["questions"] = strip_correct_answers(metadata.get("questions") or [])

    return {
        "id": item.id,
        "title": item.title,
        "type": item.type,
        "courseId": item.course_id,
        "metadata": metadata,
        "stats": {
            "attemptsCount": history.attempts_count,
            "maxAttempts": config.max_attempts,
            "passed": history.passed,
            "canRetry": can_retry(history.passed, history.attempts_count, config.max_attempts),
        },
        "submission": shown.to_dict(results_visible=visible) if shown else None,
    }


# ── Assignments ────────────────────────────────────────────


def submit_assignment(student_id: int, course_id: Any, assignment_id: Any, attachments: Any = None,
                      comment: Any = None, cohort_id: Any = None) -> dict:
    course_id = _required(course_id, "courseId")
    assignment_id = _required(assignment_id, "assignmentId")
    if attachments is None:
        attachments = []
    if not isinstance(attachments, list):
        raise ValidationError("attachments must be a list")
    comment = "" if comment is None else str(comment)

    item = catalog.get_assignment(assignment_id, course_id)
    scope = ScopeKey.build(student_id, item.id, cohort_id)
    _require_path(student_id, course_id, scope.cohort_id)

    submission = AssignmentSubmissionStoreDB.upsert(scope, course_id, attachments, comment)
    warnings = _complete_after_record(scope, course_id)
    log_event(ASSIGNMENT_SUBMITTED, student_id, f"assignment={item.id} cohort={scope.cohort_id}")
    return {**submission.to_dict(), "warnings": warnings}


def get_assignment_submission(student_id: int, assignment_id: Any, cohort_id: Any = None) -> Optional[dict]:
    assignment_id = _required(assignment_id, "assignmentId")
    submission = AssignmentSubmissionStoreDB.get(ScopeKey.build(student_id, assignment_id, cohort_id))
    return submission.to_dict() if submission else None


def _points(value: Any) -> float | int:
    if isinstance(value, bool) or value is None:
        raise ValidationError("points must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError("points must be a number")
    if not math.isfinite(number):
        raise ValidationError("points must be a number")
    return int(number) if number.is_integer() else number


def grade_assignment(grader_id: int, submission_id: Any, points: Any, feedback: Any = None) -> dict:
    submission_id = _required(submission_id, "submissionId")
    points = _points(points)
    feedback = "" if feedback is None else str(feedback)

    existing = AssignmentSubmissionStoreDB.get_by_id(submission_id)
    if existing is None:
        raise NotFound("Submission not found")

    try:
        total_points = catalog.get_assignment(existing.item_id).config.total_points
    except NotFound:
        # Item removed from the curriculum after submission
        total_points = None
    if points < 0 or (total_points is not None and points > total_points):
        raise ValidationError(f"points must be between 0 and {total_points}")

    graded = AssignmentSubmissionStoreDB.grade(submission_id, points, feedback, grader_id)
    log_event(ASSIGNMENT_GRADED, grader_id, f"submission={submission_id} points={points}")
    return graded.to_dict()


def list_submissions(item_id: Any = None, course_id: Any = None, cohort_id: Any = None,
                     page: int = 1, limit: int = 20) -> tuple[list[dict], int]:
    if not (item_id or course_id or normalize_cohort_id(cohort_id)):
        raise ValidationError("Missing itemId, courseId, or cohortId")
    submissions, total = AssignmentSubmissionStoreDB.search(
        item_id=item_id, course_id=course_id, cohort_id=cohort_id, page=page, limit=limit,
    )
    return [s.to_dict() for s in submissions], total


def course_assignments(course_id: Any) -> list[dict]:
    course_id = _required(course_id, "courseId")
    if not catalog.course_exists(course_id):
        raise NotFound("Course not found")
    return catalog.course_assignments(course_id)


# ── Progress ───────────────────────────────────────────────


def get_progress(student_id: int, course_id: Any, cohort_id: Any = None, item_id: Any = None) -> list[dict]:
    """Progress rows for one enrollment scope, optionally narrowed to a single item."""
    course_id = _required(course_id, "courseId")
    if not item_id:
        return [r.summary() for r in ProgressLedgerDB.list_for_course(student_id, course_id, cohort_id)]
    record = ProgressLedgerDB.get(ScopeKey.build(student_id, str(item_id), cohort_id))
    if record is None or record.course_id != course_id:
        return []
    return [record.summary()]


def set_progress(student_id: int, course_id: Any, item_id: Any, is_completed: Any,
                 cohort_id: Any = None) -> dict:
    course_id = _required(course_id, "courseId")
    item_id = _required(item_id, "itemId")
    if not isinstance(is_completed, bool):
        raise ValidationError("isCompleted must be a boolean")

    item = catalog.get_item(item_id)
    if item.course_id != course_id:
        raise NotFound("Item not found")
    scope = ScopeKey.build(student_id, item.id, cohort_id)
    _require_path(student_id, course_id, scope.cohort_id)
    if item.is_quiz or item.is_assignment:
        # Completion of these follows a passing attempt or a submission
        raise PolicyViolation(f"Progress for a {item.type} is recorded by the {item.type} itself")

    record = _mark_completed(scope, course_id, is_completed)
    logger.info("Progress set to %s", is_completed, extra=scope.log_extra())
    return record.to_dict()


def course_progress(student_id: int, course_id: Any, cohort_id: Any = None) -> dict:
    """Completed share of a course's items for one enrollment scope."""
    course_id = _required(course_id, "courseId")
    if not catalog.course_exists(course_id):
        raise NotFound("Course not found")
    cohort_id = normalize_cohort_id(cohort_id)
    items = catalog.course_item_ids(course_id)
    completed = set(ProgressLedgerDB.completed_item_ids(student_id, course_id, cohort_id)) & set(items)
    return {
        "courseId": course_id,
        "cohortId": cohort_id,
        "completedItems": len(completed),
        "totalItems": len(items),
        "percent": course_progress_percent(items, completed),
    }
