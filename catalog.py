"""
Curriculum catalog — read-only view of courses -> modules -> items.

Item metadata is stored as a JSON blob edited by the course builder. It is
decoded here, once, into a tagged config (QuizConfig / AssignmentConfig) so
the rest of the engine never reads raw metadata keys.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from flask import current_app

from database import fetchall, fetchone
from errors import NotFound

logger = logging.getLogger(__name__)

ITEM_QUIZ = "quiz"
ITEM_ASSIGNMENT = "assignment"
ITEM_LIVE_CLASS = "live-class"

_TYPE_ALIASES = {"live_class": ITEM_LIVE_CLASS}


# ── Metadata coercion ──────────────────────────────────────


def _number(value: Any, default: float) -> float:
    """Parse a metadata number; numeric strings are accepted."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _clamp(value: float, low: float, high: float | None = None) -> float:
    value = max(low, value)
    if high is not None:
        value = min(high, value)
    return value


def _whole(value: float) -> float | int:
    return int(value) if float(value).is_integer() else value


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


# ── Item configs ───────────────────────────────────────────


@dataclass
class QuizQuestion:
    prompt: str
    options: Optional[list] = None
    correct_answer: Any = None
    kind: str = "multiple-choice"

    @staticmethod
    def from_dict(raw: dict) -> QuizQuestion:
        correct = raw.get("correctAnswer", raw.get("correct_answer"))
        if correct == "":
            correct = None
        options = raw.get("options")
        return QuizQuestion(
            prompt=str(raw.get("question") or raw.get("prompt") or ""),
            options=list(options) if isinstance(options, list) else None,
            correct_answer=correct,
            kind=str(raw.get("type") or "multiple-choice"),
        )


@dataclass
class QuizConfig:
    questions: list[QuizQuestion] = field(default_factory=list)
    max_attempts: int = 1
    passing_grade: float = 0.0

    @staticmethod
    def from_metadata(meta: dict, default_max_attempts: int = 1,
                      default_passing_grade: float = 0.0) -> QuizConfig:
        raw_questions = meta.get("questions")
        if not isinstance(raw_questions, list):
            raw_questions = []
        questions = [QuizQuestion.from_dict(q) for q in raw_questions if isinstance(q, dict)]
        max_attempts = int(_clamp(_number(meta.get("maxAttempts"), default_max_attempts), 1))
        passing_grade = _clamp(_number(meta.get("passingGrade"), default_passing_grade), 0, 100)
        return QuizConfig(questions=questions, max_attempts=max_attempts, passing_grade=passing_grade)


@dataclass
class AssignmentConfig:
    total_points: float = 10
    min_pass_points: float = 0
    allow_resubmission: bool = False
    close_date: Optional[str] = None

    @staticmethod
    def from_metadata(meta: dict) -> AssignmentConfig:
        total = _clamp(_number(meta.get("totalPoints"), 10), 0)
        min_pass = _clamp(_number(meta.get("minPassPoints"), 0), 0, total)
        return AssignmentConfig(
            total_points=_whole(total),
            min_pass_points=_whole(min_pass),
            allow_resubmission=_flag(meta.get("allowResubmission", False)),
            close_date=meta.get("closeDate") or None,
        )


ItemConfig = Union[QuizConfig, AssignmentConfig, None]


@dataclass
class CatalogItem:
    id: str
    type: str
    title: str
    summary: str
    course_id: str
    module_id: str
    module_title: str
    metadata: dict
    created_at: str = ""
    config: ItemConfig = None

    @property
    def is_quiz(self) -> bool:
        return self.type == ITEM_QUIZ

    @property
    def is_assignment(self) -> bool:
        return self.type == ITEM_ASSIGNMENT


def _decode(row) -> CatalogItem:
    try:
        meta = json.loads(row["metadata"] or "{}")
    except (TypeError, ValueError):
        logger.warning("Unreadable metadata on item %s", row["id"])
        meta = {}
    if not isinstance(meta, dict):
        meta = {}

    item_type = _TYPE_ALIASES.get(row["type"], row["type"])
    config: ItemConfig = None
    if item_type == ITEM_QUIZ:
        config = QuizConfig.from_metadata(
            meta,
            default_max_attempts=int(current_app.config.get("DEFAULT_MAX_ATTEMPTS", 1)),
            default_passing_grade=float(current_app.config.get("DEFAULT_PASSING_GRADE", 0)),
        )
    elif item_type == ITEM_ASSIGNMENT:
        config = AssignmentConfig.from_metadata(meta)

    return CatalogItem(
        id=row["id"],
        type=item_type,
        title=row["title"],
        summary=row["summary"],
        course_id=row["course_id"],
        module_id=row["module_id"],
        module_title=row["module_title"],
        metadata=meta,
        created_at=row["created_at"],
        config=config,
    )


_ITEM_SELECT = (
    "SELECT mi.id, mi.type, mi.title, mi.summary, mi.metadata, mi.created_at, "
    "mi.module_id, cm.title AS module_title, cm.course_id "
    "FROM module_items mi JOIN course_modules cm ON cm.id = mi.module_id "
)


# ── Lookups ────────────────────────────────────────────────


def get_item(item_id: str) -> CatalogItem:
    row = fetchone(_ITEM_SELECT + "WHERE mi.id = ?", (str(item_id),))
    if not row:
        raise NotFound("Item not found")
    return _decode(row)


def _get_typed(item_id: str, item_type: str, course_id: Optional[str]) -> CatalogItem:
    item = get_item(item_id)
    if item.type != item_type or (course_id is not None and item.course_id != str(course_id)):
        # Same answer as a missing item: callers learn nothing about other courses
        raise NotFound(f"{item_type.capitalize()} not found")
    return item


def get_quiz(item_id: str, course_id: Optional[str] = None) -> CatalogItem:
    """Resolve a quiz item, optionally checking it belongs to ``course_id``."""
    return _get_typed(item_id, ITEM_QUIZ, course_id)


def get_assignment(item_id: str, course_id: Optional[str] = None) -> CatalogItem:
    return _get_typed(item_id, ITEM_ASSIGNMENT, course_id)


def course_exists(course_id: str) -> bool:
    row = fetchone("SELECT 1 FROM courses WHERE id = ?", (str(course_id),))
    return row is not None


def course_item_ids(course_id: str) -> list[str]:
    """All item ids of a course in curriculum order."""
    rows = fetchall(
        "SELECT mi.id FROM module_items mi JOIN course_modules cm ON cm.id = mi.module_id "
        "WHERE cm.course_id = ? ORDER BY cm.order_index, mi.order_index, mi.id",
        (str(course_id),),
    )
    return [r["id"] for r in rows]


def course_assignments(course_id: str) -> list[dict]:
    """Assignment items of a course, shaped for the tutor grading screen."""
    rows = fetchall(
        _ITEM_SELECT + "WHERE cm.course_id = ? AND mi.type = ? "
        "ORDER BY cm.order_index, mi.order_index, mi.id",
        (str(course_id), ITEM_ASSIGNMENT),
    )
    result = []
    for row in rows:
        item = _decode(row)
        result.append({
            "id": item.id,
            "title": item.title,
            "moduleTitle": item.module_title,
            "summary": item.summary,
            "totalPoints": item.config.total_points,
            "minPassPoints": item.config.min_pass_points,
            "allowResubmission": item.config.allow_resubmission,
            "dueDate": item.config.close_date,
            "createdAt": item.created_at,
        })
    return result
