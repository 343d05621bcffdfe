"""Tests for catalog.py — metadata decoding and item lookups."""

from __future__ import annotations

import pytest

import catalog
from catalog import AssignmentConfig, QuizConfig, QuizQuestion
from errors import NotFound, StoreUnavailable


class TestQuizConfig:
    def test_defaults(self):
        config = QuizConfig.from_metadata({})
        assert config.questions == []
        assert config.max_attempts == 1
        assert config.passing_grade == 0

    def test_numeric_strings(self):
        config = QuizConfig.from_metadata({"maxAttempts": "2", "passingGrade": "70"})
        assert config.max_attempts == 2
        assert config.passing_grade == 70

    def test_clamps_out_of_range(self):
        config = QuizConfig.from_metadata({"maxAttempts": 0, "passingGrade": 150})
        assert config.max_attempts == 1
        assert config.passing_grade == 100
        assert QuizConfig.from_metadata({"passingGrade": -5}).passing_grade == 0

    def test_garbage_falls_back_to_defaults(self):
        config = QuizConfig.from_metadata(
            {"maxAttempts": "lots", "passingGrade": None, "questions": "nope"},
            default_max_attempts=3, default_passing_grade=60,
        )
        assert config.max_attempts == 3
        assert config.passing_grade == 60
        assert config.questions == []

    def test_non_finite_numbers_fall_back(self):
        config = QuizConfig.from_metadata({"maxAttempts": "inf", "passingGrade": "nan"}, 2, 40)
        assert config.max_attempts == 2
        assert config.passing_grade == 40

    def test_questions_decoded(self):
        config = QuizConfig.from_metadata({"questions": [
            {"type": "true-false", "question": "Sky is blue?", "correctAnswer": "true"},
            {"prompt": "Pick", "options": ["a", "b"], "correct_answer": "b"},
            "not a question",
        ]})
        assert len(config.questions) == 2
        assert config.questions[0] == QuizQuestion("Sky is blue?", None, "true", "true-false")
        assert config.questions[1].options == ["a", "b"]
        assert config.questions[1].correct_answer == "b"

    def test_empty_correct_answer_means_none(self):
        question = QuizQuestion.from_dict({"question": "q", "correctAnswer": ""})
        assert question.correct_answer is None


class TestAssignmentConfig:
    def test_defaults(self):
        config = AssignmentConfig.from_metadata({})
        assert config.total_points == 10
        assert config.min_pass_points == 0
        assert config.allow_resubmission is False
        assert config.close_date is None

    def test_values(self):
        config = AssignmentConfig.from_metadata({
            "totalPoints": "20", "minPassPoints": 30, "allowResubmission": "true", "closeDate": "2026-12-31",
        })
        assert config.total_points == 20
        assert config.min_pass_points == 20  # clamped to total
        assert config.allow_resubmission is True
        assert config.close_date == "2026-12-31"


class TestLookups:
    def test_get_item_lesson_has_no_config(self, app):
        with app.app_context():
            item = catalog.get_item("lesson-1")
            assert item.type == "lesson"
            assert item.config is None
            assert item.course_id == "course-1"
            assert item.module_title == "Basics"

    def test_get_quiz(self, app):
        with app.app_context():
            item = catalog.get_quiz("quiz-1", "course-1")
            assert item.is_quiz
            assert item.config.max_attempts == 2
            assert item.config.passing_grade == 50
            assert [q.correct_answer for q in item.config.questions] == ["paris", "42"]

    def test_get_quiz_wrong_course(self, app):
        with app.app_context():
            with pytest.raises(NotFound):
                catalog.get_quiz("quiz-other", "course-1")

    def test_get_quiz_wrong_type(self, app):
        with app.app_context():
            with pytest.raises(NotFound):
                catalog.get_quiz("assignment-1")

    def test_missing_item(self, app):
        with app.app_context():
            with pytest.raises(NotFound):
                catalog.get_item("nope")

    def test_config_defaults_come_from_app(self, app):
        app.config["DEFAULT_MAX_ATTEMPTS"] = 4
        with app.app_context():
            from database import get_db
            db = get_db()
            db.execute(
                "INSERT INTO module_items (id, module_id, type, title, metadata) "
                "VALUES ('quiz-bare', 'module-1', 'quiz', 'Bare', '{}')"
            )
            db.commit()
            assert catalog.get_quiz("quiz-bare").config.max_attempts == 4

    def test_unreadable_metadata(self, app):
        with app.app_context():
            from database import get_db
            db = get_db()
            db.execute(
                "INSERT INTO module_items (id, module_id, type, title, metadata) "
                "VALUES ('quiz-broken', 'module-1', 'quiz', 'Broken', '{not json')"
            )
            db.commit()
            item = catalog.get_quiz("quiz-broken")
            assert item.metadata == {}
            assert item.config.questions == []

    def test_live_class_alias(self, app):
        with app.app_context():
            from database import get_db
            db = get_db()
            db.execute(
                "INSERT INTO module_items (id, module_id, type, title) VALUES ('live-1', 'module-2', 'live_class', 'Live')"
            )
            db.commit()
            assert catalog.get_item("live-1").type == catalog.ITEM_LIVE_CLASS

    def test_course_item_ids_in_order(self, app):
        with app.app_context():
            assert catalog.course_item_ids("course-1") == ["lesson-1", "quiz-1", "quiz-empty", "assignment-1"]
            assert catalog.course_item_ids("missing") == []

    def test_course_assignments(self, app):
        with app.app_context():
            assignments = catalog.course_assignments("course-1")
            assert assignments == [{
                "id": "assignment-1",
                "title": "Essay",
                "moduleTitle": "Practice",
                "summary": "",
                "totalPoints": 20,
                "minPassPoints": 10,
                "allowResubmission": True,
                "dueDate": "2026-12-31",
                "createdAt": assignments[0]["createdAt"],
            }]

    def test_driver_failure_becomes_store_unavailable(self, app):
        with app.app_context():
            from database import get_db
            get_db().execute("DROP TABLE module_items")
            with pytest.raises(StoreUnavailable):
                catalog.get_item("quiz-1")
            with pytest.raises(StoreUnavailable):
                catalog.course_item_ids("course-1")
