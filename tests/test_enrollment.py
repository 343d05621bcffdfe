"""Tests for enrollment.py — enrollment paths and cohort locks."""

from __future__ import annotations

import pytest

from enrollment import enrolled_courses, is_accessible, require_unlocked_path, resolve_paths
from errors import Forbidden, ValidationError
from models import EnrollmentPath


class TestResolvePaths:
    def test_all_paths_with_locks(self, app):
        with app.app_context():
            paths = resolve_paths(1, "course-1")
            assert paths == [
                EnrollmentPath(None, False),
                EnrollmentPath("cohort-a", False),
                EnrollmentPath("cohort-b", True),
            ]

    def test_not_enrolled(self, app):
        with app.app_context():
            assert resolve_paths(2, "course-2") == []

    def test_direct_path_never_locked(self, app):
        with app.app_context():
            assert resolve_paths(2, "course-1") == [EnrollmentPath(None, False)]

    def test_cohort_without_settings_row_is_open(self, app):
        with app.app_context():
            from database import get_db
            db = get_db()
            db.execute("INSERT INTO cohorts (id, name) VALUES ('cohort-x', 'X')")
            db.execute(
                "INSERT INTO course_enrollments (student_id, course_id, cohort_id, cohort_key) "
                "VALUES (2, 'course-2', 'cohort-x', 'cohort-x')"
            )
            db.commit()
            assert resolve_paths(2, "course-2") == [EnrollmentPath("cohort-x", False)]


class TestIsAccessible:
    def test_any_open_path(self):
        assert is_accessible([EnrollmentPath("a", True), EnrollmentPath("b", False)])

    def test_all_locked(self):
        assert not is_accessible([EnrollmentPath("a", True)])

    def test_no_paths(self):
        assert not is_accessible([])


class TestRequireUnlockedPath:
    def test_direct(self, app):
        with app.app_context():
            assert require_unlocked_path(1, "course-1", None).is_direct

    def test_open_cohort(self, app):
        with app.app_context():
            assert require_unlocked_path(1, "course-1", "cohort-a").cohort_id == "cohort-a"

    def test_null_spelling_means_direct(self, app):
        with app.app_context():
            assert require_unlocked_path(1, "course-1", "undefined").is_direct

    def test_locked_cohort_is_forbidden_not_validation(self, app):
        with app.app_context():
            with pytest.raises(Forbidden) as exc:
                require_unlocked_path(1, "course-1", "cohort-b")
            assert not isinstance(exc.value, ValidationError)
            assert exc.value.status_code == 403
            assert "locked" in exc.value.message

    def test_other_cohort_not_enrolled(self, app):
        with app.app_context():
            with pytest.raises(Forbidden) as exc:
                require_unlocked_path(2, "course-1", "cohort-a")
            assert "not enrolled" in exc.value.message


class TestEnrolledCourses:
    def test_lock_status(self, app):
        with app.app_context():
            courses = enrolled_courses(1)
            assert [c["id"] for c in courses] == ["course-1"]
            assert courses[0]["isLocked"] is False
            assert {"cohortId": "cohort-b", "isLocked": True} in courses[0]["paths"]

    def test_only_locked_paths(self, app):
        with app.app_context():
            from database import get_db
            db = get_db()
            db.execute("INSERT INTO course_cohorts (cohort_id, course_id, settings) VALUES ('cohort-b', 'course-2', '{\"isLocked\": true}')")
            db.execute(
                "INSERT INTO course_enrollments (student_id, course_id, cohort_id, cohort_key) "
                "VALUES (2, 'course-2', 'cohort-b', 'cohort-b')"
            )
            db.commit()
            by_id = {c["id"]: c for c in enrolled_courses(2)}
            assert by_id["course-1"]["isLocked"] is False
            assert by_id["course-2"]["isLocked"] is True

    def test_draft_courses_hidden(self, app):
        with app.app_context():
            from database import get_db
            db = get_db()
            db.execute("UPDATE courses SET status = 'draft' WHERE id = 'course-1'")
            db.commit()
            assert enrolled_courses(1) == []
