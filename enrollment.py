"""
Enrollment paths — which ways a student is enrolled in a course.

A student reaches a course either directly (no cohort) or through one or
more cohorts. A cohort path can be locked by staff through the
``isLocked`` flag in ``course_cohorts.settings``; a direct path is never
locked.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from database import fetchall
from errors import Forbidden
from models import EnrollmentPath, normalize_cohort_id

logger = logging.getLogger(__name__)


def _is_locked(settings_json: Optional[str]) -> bool:
    if not settings_json:
        return False
    try:
        settings = json.loads(settings_json)
    except (TypeError, ValueError):
        return False
    return isinstance(settings, dict) and bool(settings.get("isLocked", False))


def resolve_paths(student_id: int, course_id: str) -> list[EnrollmentPath]:
    """Every enrollment path the student holds for the course."""
    rows = fetchall(
        "SELECT e.cohort_id, cc.settings FROM course_enrollments e "
        "LEFT JOIN course_cohorts cc ON cc.cohort_id = e.cohort_id AND cc.course_id = e.course_id "
        "WHERE e.student_id = ? AND e.course_id = ? ORDER BY e.id",
        (student_id, str(course_id)),
    )
    paths = []
    for row in rows:
        cohort_id = row["cohort_id"]
        locked = cohort_id is not None and _is_locked(row["settings"])
        paths.append(EnrollmentPath(cohort_id=cohort_id, locked=locked))
    return paths


def is_accessible(paths: list[EnrollmentPath]) -> bool:
    """A course is open while at least one path to it is unlocked."""
    return any(not p.locked for p in paths)


VISIBLE_COURSE_STATUSES = ("active", "published", "completed")


def enrolled_courses(student_id: int) -> list[dict]:
    """Courses the student can see, each with its effective lock status."""
    rows = fetchall(
        "SELECT DISTINCT c.id, c.title, c.description, c.status FROM courses c "
        "JOIN course_enrollments e ON e.course_id = c.id WHERE e.student_id = ? ORDER BY c.title, c.id",
        (student_id,),
    )
    courses = []
    for row in rows:
        if row["status"] not in VISIBLE_COURSE_STATUSES:
            continue
        paths = resolve_paths(student_id, row["id"])
        courses.append({
            "id": row["id"],
            "title": row["title"],
            "description": row["description"],
            "status": row["status"],
            "isLocked": not is_accessible(paths),
            "paths": [{"cohortId": p.cohort_id, "isLocked": p.locked} for p in paths],
        })
    return courses


def require_unlocked_path(student_id: int, course_id: str, cohort_id=None) -> EnrollmentPath:
    """Return the path for exactly this cohort scope, or raise Forbidden."""
    cohort_id = normalize_cohort_id(cohort_id)
    for path in resolve_paths(student_id, course_id):
        if path.cohort_id != cohort_id:
            continue
        if path.locked:
            logger.info(
                "Access denied: cohort path locked",
                extra={"student_id": student_id, "course_id": course_id, "cohort_id": cohort_id},
            )
            raise Forbidden("This course is locked for your cohort")
        return path
    logger.info(
        "Access denied: not enrolled",
        extra={"student_id": student_id, "course_id": course_id, "cohort_id": cohort_id},
    )
    raise Forbidden("You are not enrolled in this course")
