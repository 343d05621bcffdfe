"""
DB-backed store classes for the classroom engine.

Every read and write is keyed by a ScopeKey. Readers filter the cohort with
``cohort_id IS NULL`` or ``cohort_id = ?`` so direct and cohort history are
never merged; writers rely on the UNIQUE constraints over ``cohort_key``.
Driver errors leave this module as Conflict / StoreUnavailable.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from database import atomic, fetchall, fetchone
from errors import NotFound
from grading import GradeResult
from models import (
    AssignmentSubmission,
    ProgressRecord,
    QuizAttempt,
    ScopeKey,
    normalize_cohort_id,
)
from policy import AttemptHistory

logger = logging.getLogger(__name__)



# ── Quiz Attempts ──────────────────────────────────────────


class QuizAttemptStoreDB:
    """Append-only quiz attempts, one row per submission."""

    @staticmethod
    def list(scope: ScopeKey) -> list[QuizAttempt]:
        clause, cparams = scope.cohort_clause()
        rows = fetchall(
            f"SELECT * FROM quiz_submissions WHERE student_id = ? AND quiz_id = ? AND {clause} "
            "ORDER BY created_at, attempt_number",
            (scope.student_id, scope.item_id, *cparams),
        )
        return [QuizAttempt.from_row(r) for r in rows]

    @staticmethod
    def insert(db, scope: ScopeKey, course_id: str, attempt_number: int,
               result: GradeResult, passed: bool, answers: list) -> QuizAttempt:
        """Insert one attempt row on an open transaction."""
        attempt_id = str(uuid.uuid4())
        now = datetime.now().isoformat()
        db.execute(
            "INSERT INTO quiz_submissions (id, student_id, course_id, cohort_id, cohort_key, quiz_id, "
            "attempt_number, score, total_questions, percentage, passed, answers, results, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (attempt_id, scope.student_id, str(course_id), scope.cohort_id, scope.cohort_key,
             scope.item_id, attempt_number, result.score, result.total, result.percentage,
             1 if passed else 0, json.dumps(answers), json.dumps(result.results_dicts()), now),
        )
        return QuizAttempt(
            id=attempt_id,
            student_id=scope.student_id,
            course_id=str(course_id),
            cohort_id=scope.cohort_id,
            quiz_id=scope.item_id,
            attempt_number=attempt_number,
            score=result.score,
            total_questions=result.total,
            percentage=result.percentage,
            passed=passed,
            answers=list(answers),
            results=result.results_dicts(),
            created_at=now,
        )

    @staticmethod
    def record_attempt(scope: ScopeKey, course_id: str, result: GradeResult, passed: bool,
                       answers: list, check: Callable[[AttemptHistory], None]) -> tuple[QuizAttempt, AttemptHistory]:
        """Reserve the next attempt slot and record the attempt.

        Counting, the ``check`` callback (which raises to refuse) and the
        insert share one write transaction. Returns the new attempt and the
        history it was checked against.
        """
        clause, cparams = scope.cohort_clause()
        with atomic() as db:
            row = db.execute(
                "SELECT COUNT(*) AS n, COALESCE(MAX(passed), 0) AS any_passed FROM quiz_submissions "
                f"WHERE student_id = ? AND quiz_id = ? AND {clause}",
                (scope.student_id, scope.item_id, *cparams),
            ).fetchone()
            history = AttemptHistory(attempts_count=int(row["n"]), passed=bool(row["any_passed"]))
            check(history)
            attempt = QuizAttemptStoreDB.insert(
                db, scope, course_id, history.attempts_count + 1, result, passed, answers,
            )
        logger.info(
            "Recorded quiz attempt %s", attempt.id,
            extra={**scope.log_extra(), "attempt_number": attempt.attempt_number},
        )
        return attempt, history


# ── Assignment Submissions ─────────────────────────────────


_SUBMISSION_UPSERT = (
    "INSERT INTO assignment_submissions (id, student_id, course_id, cohort_id, cohort_key, item_id, "
    "submission_data, status, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, 'submitted', ?, ?) "
    "ON CONFLICT(student_id, item_id, cohort_key) DO UPDATE SET "
    "submission_data = excluded.submission_data, status = 'submitted', updated_at = excluded.updated_at"
)


class AssignmentSubmissionStoreDB:
    """At most one submission per scope; resubmission updates it in place."""

    @staticmethod
    def get(scope: ScopeKey) -> Optional[AssignmentSubmission]:
        clause, cparams = scope.cohort_clause()
        row = fetchone(
            f"SELECT * FROM assignment_submissions WHERE student_id = ? AND item_id = ? AND {clause}",
            (scope.student_id, scope.item_id, *cparams),
        )
        return AssignmentSubmission.from_row(row) if row else None

    @staticmethod
    def get_by_id(submission_id: str) -> Optional[AssignmentSubmission]:
        row = fetchone("SELECT * FROM assignment_submissions WHERE id = ?", (str(submission_id),))
        return AssignmentSubmission.from_row(row) if row else None

    @staticmethod
    def upsert(scope: ScopeKey, course_id: str, attachments: list, comment: str) -> AssignmentSubmission:
        now = datetime.now().isoformat()
        data = {"attachments": attachments, "comment": comment, "submitted_at": now}
        clause, cparams = scope.cohort_clause()
        with atomic() as db:
            db.execute(
                _SUBMISSION_UPSERT,
                (str(uuid.uuid4()), scope.student_id, str(course_id), scope.cohort_id, scope.cohort_key,
                 scope.item_id, json.dumps(data), now, now),
            )
            row = db.execute(
                f"SELECT * FROM assignment_submissions WHERE student_id = ? AND item_id = ? AND {clause}",
                (scope.student_id, scope.item_id, *cparams),
            ).fetchone()
        logger.info("Assignment submission saved", extra=scope.log_extra())
        return AssignmentSubmission.from_row(row)

    @staticmethod
    def grade(submission_id: str, points: float, feedback: str, grader_id: int) -> AssignmentSubmission:
        grade_data = {
            "points": points,
            "feedback": feedback,
            "grader_id": grader_id,
            "graded_at": datetime.now().isoformat(),
        }
        with atomic() as db:
            cur = db.execute(
                "UPDATE assignment_submissions SET status = 'graded', grade_data = ? WHERE id = ?",
                (json.dumps(grade_data), str(submission_id)),
            )
            if cur.rowcount == 0:
                raise NotFound("Submission not found")
            row = db.execute(
                "SELECT * FROM assignment_submissions WHERE id = ?", (str(submission_id),),
            ).fetchone()
        return AssignmentSubmission.from_row(row)

    @staticmethod
    def search(item_id: Optional[str] = None, course_id: Optional[str] = None,
               cohort_id: Optional[str] = None, page: int = 1, limit: int = 20) -> tuple[list[AssignmentSubmission], int]:
        """Tutor listing, newest first. ``cohort_id='all'`` applies no cohort filter."""
        where, params = [], []
        if item_id:
            where.append("s.item_id = ?")
            params.append(str(item_id))
        if course_id:
            where.append("s.course_id = ?")
            params.append(str(course_id))
        cohort_id = normalize_cohort_id(cohort_id)
        if cohort_id and cohort_id != "all":
            where.append("s.cohort_id = ?")
            params.append(cohort_id)
        where_sql = f"WHERE {' AND '.join(where)} " if where else ""

        total = fetchone(
            f"SELECT COUNT(*) AS n FROM assignment_submissions s {where_sql}", tuple(params),
        )["n"]
        rows = fetchall(
            "SELECT s.*, u.name AS student_name FROM assignment_submissions s "
            f"LEFT JOIN users u ON u.id = s.student_id {where_sql}"
            "ORDER BY s.created_at DESC, s.id LIMIT ? OFFSET ?",
            (*params, limit, (page - 1) * limit),
        )
        return [AssignmentSubmission.from_row(r) for r in rows], int(total)


# ── Progress Ledger ────────────────────────────────────────


_PROGRESS_UPSERT = (
    "INSERT INTO student_progress (student_id, course_id, item_id, cohort_id, cohort_key, "
    "is_completed, completed_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
    "ON CONFLICT(student_id, item_id, cohort_key) DO UPDATE SET "
    "is_completed = excluded.is_completed, "
    "completed_at = CASE "
    "WHEN excluded.is_completed = 0 THEN NULL "
    "WHEN student_progress.is_completed = 1 AND student_progress.completed_at IS NOT NULL "
    "THEN student_progress.completed_at "
    "ELSE excluded.completed_at END, "
    "updated_at = excluded.updated_at"
)


class ProgressLedgerDB:
    """One completion record per scope."""

    @staticmethod
    def get(scope: ScopeKey) -> Optional[ProgressRecord]:
        clause, cparams = scope.cohort_clause()
        row = fetchone(
            f"SELECT * FROM student_progress WHERE student_id = ? AND item_id = ? AND {clause}",
            (scope.student_id, scope.item_id, *cparams),
        )
        return ProgressRecord.from_row(row) if row else None

    @staticmethod
    def mark_completed(scope: ScopeKey, course_id: str, completed: bool) -> ProgressRecord:
        """Idempotent upsert; ``completed_at`` is kept while the item stays completed."""
        now = datetime.now().isoformat()
        clause, cparams = scope.cohort_clause()
        with atomic() as db:
            db.execute(
                _PROGRESS_UPSERT,
                (scope.student_id, str(course_id), scope.item_id, scope.cohort_id, scope.cohort_key,
                 1 if completed else 0, now if completed else None, now),
            )
            row = db.execute(
                f"SELECT * FROM student_progress WHERE student_id = ? AND item_id = ? AND {clause}",
                (scope.student_id, scope.item_id, *cparams),
            ).fetchone()
        return ProgressRecord.from_row(row)

    @staticmethod
    def list_for_course(student_id: int, course_id: str, cohort_id=None) -> list[ProgressRecord]:
        scope = ScopeKey.build(student_id, "", cohort_id)
        clause, cparams = scope.cohort_clause()
        rows = fetchall(
            f"SELECT * FROM student_progress WHERE student_id = ? AND course_id = ? AND {clause} "
            "ORDER BY id",
            (scope.student_id, str(course_id), *cparams),
        )
        return [ProgressRecord.from_row(r) for r in rows]

    @staticmethod
    def completed_item_ids(student_id: int, course_id: str, cohort_id=None) -> list[str]:
        return [
            r.item_id
            for r in ProgressLedgerDB.list_for_course(student_id, course_id, cohort_id)
            if r.is_completed
        ]
