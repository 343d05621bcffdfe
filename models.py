"""
Row types for the assessment engine.

Everything a learner submits or completes is partitioned by a ScopeKey:
(student, item, cohort-or-None). The store persists the cohort part both as
the nullable ``cohort_id`` and as ``cohort_key`` ('' for direct enrollment)
so that composite UNIQUE constraints also hold for direct enrollments.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from typing import Any, Optional

DIRECT_COHORT_KEY = ""

# Values the web client sends when no cohort is selected.
_NULL_COHORT_VALUES = {"", "null", "undefined", "none"}


def normalize_cohort_id(value: Any) -> Optional[str]:
    """Map the client's spellings of "no cohort" to None."""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _NULL_COHORT_VALUES:
        return None
    return text


@dataclass(frozen=True)
class ScopeKey:
    student_id: int
    item_id: str
    cohort_id: Optional[str] = None

    @classmethod
    def build(cls, student_id: int, item_id: str, cohort_id: Any = None) -> ScopeKey:
        return cls(int(student_id), str(item_id), normalize_cohort_id(cohort_id))

    @property
    def cohort_key(self) -> str:
        return self.cohort_id if self.cohort_id is not None else DIRECT_COHORT_KEY

    @property
    def is_direct(self) -> bool:
        return self.cohort_id is None

    def cohort_clause(self, column: str = "cohort_id") -> tuple[str, tuple]:
        """SQL fragment keeping NULL and concrete cohorts as separate partitions."""
        if self.cohort_id is None:
            return f"{column} IS NULL", ()
        return f"{column} = ?", (self.cohort_id,)

    def log_extra(self) -> dict:
        return {"student_id": self.student_id, "item_id": self.item_id, "cohort_id": self.cohort_id}


@dataclass(frozen=True)
class EnrollmentPath:
    cohort_id: Optional[str]
    locked: bool = False

    @property
    def is_direct(self) -> bool:
        return self.cohort_id is None


@dataclass
class QuestionResult:
    question_index: int
    is_correct: bool
    student_answer: Any
    correct_answer: Any

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class QuizAttempt:
    id: str
    student_id: int
    course_id: str
    cohort_id: Optional[str]
    quiz_id: str
    attempt_number: int
    score: int
    total_questions: int
    percentage: float
    passed: bool
    answers: list
    results: Optional[list[dict]]
    created_at: str

    @staticmethod
    def from_row(row) -> QuizAttempt:
        results = row["results"]
        return QuizAttempt(
            id=row["id"],
            student_id=row["student_id"],
            course_id=row["course_id"],
            cohort_id=row["cohort_id"],
            quiz_id=row["quiz_id"],
            attempt_number=row["attempt_number"],
            score=row["score"],
            total_questions=row["total_questions"],
            percentage=float(row["percentage"]),
            passed=bool(row["passed"]),
            answers=json.loads(row["answers"] or "[]"),
            results=json.loads(results) if results else None,
            created_at=row["created_at"],
        )

    def to_dict(self, results_visible: bool = True) -> dict:
        data = asdict(self)
        if not results_visible:
            data["results"] = None
        return data


@dataclass
class AssignmentSubmission:
    id: str
    student_id: int
    course_id: str
    cohort_id: Optional[str]
    item_id: str
    submission_data: dict
    status: str
    grade_data: Optional[dict] = None
    created_at: str = ""
    updated_at: str = ""
    student_name: Optional[str] = None

    @staticmethod
    def from_row(row) -> AssignmentSubmission:
        keys = row.keys()
        grade_data = row["grade_data"]
        return AssignmentSubmission(
            id=row["id"],
            student_id=row["student_id"],
            course_id=row["course_id"],
            cohort_id=row["cohort_id"],
            item_id=row["item_id"],
            submission_data=json.loads(row["submission_data"] or "{}"),
            status=row["status"],
            grade_data=json.loads(grade_data) if grade_data else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            student_name=row["student_name"] if "student_name" in keys else None,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        if data["student_name"] is None:
            data.pop("student_name")
        return data


@dataclass
class ProgressRecord:
    student_id: int
    course_id: str
    item_id: str
    cohort_id: Optional[str]
    is_completed: bool
    completed_at: Optional[str] = None
    updated_at: str = field(default="")

    @staticmethod
    def from_row(row) -> ProgressRecord:
        return ProgressRecord(
            student_id=row["student_id"],
            course_id=row["course_id"],
            item_id=row["item_id"],
            cohort_id=row["cohort_id"],
            is_completed=bool(row["is_completed"]),
            completed_at=row["completed_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def summary(self) -> dict:
        return {
            "item_id": self.item_id,
            "is_completed": self.is_completed,
            "completed_at": self.completed_at,
        }
