"""
Test fixtures for the classroom service.

Provides app, client, per-role header and db fixtures backed by a
file-based SQLite database. The seeded catalog holds one course with a
lesson, two quizzes and an assignment, plus a second course used for
cross-course checks.

Student 1 is enrolled directly, through cohort-a (open) and through
cohort-b (locked). Student 2 is enrolled directly only. User 3 is a tutor.
"""

from __future__ import annotations

import json
import pytest
from datetime import datetime

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))


STUDENT_TOKEN = "student-token"
OTHER_TOKEN = "other-student-token"
TUTOR_TOKEN = "tutor-token"

SCENARIO_QUIZ = {
    "questions": [
        {"type": "multiple-choice", "question": "Capital of France?",
         "options": ["paris", "rome"], "correctAnswer": "paris"},
        {"type": "multiple-choice", "question": "6 x 7?",
         "options": ["41", "42"], "correctAnswer": "42"},
    ],
    "maxAttempts": 2,
    "passingGrade": 50,
}


def _seed(db) -> None:
    from auth import hash_token

    now = datetime.now().isoformat()
    users = [
        (1, "Test Student", "student@example.com", "student", STUDENT_TOKEN),
        (2, "Other Student", "other@example.com", "student", OTHER_TOKEN),
        (3, "Test Tutor", "tutor@example.com", "tutor", TUTOR_TOKEN),
    ]
    for uid, name, email, role, token in users:
        db.execute(
            "INSERT INTO users (id, name, email, role, api_token_hash, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (uid, name, email, role, hash_token(token), now),
        )

    db.execute("INSERT INTO courses (id, title, status, created_at) VALUES ('course-1', 'Course One', 'published', ?)", (now,))
    db.execute("INSERT INTO courses (id, title, status, created_at) VALUES ('course-2', 'Course Two', 'published', ?)", (now,))
    db.execute("INSERT INTO course_modules (id, course_id, title, order_index) VALUES ('module-1', 'course-1', 'Basics', 0)")
    db.execute("INSERT INTO course_modules (id, course_id, title, order_index) VALUES ('module-2', 'course-1', 'Practice', 1)")
    db.execute("INSERT INTO course_modules (id, course_id, title, order_index) VALUES ('module-9', 'course-2', 'Other', 0)")

    items = [
        ("lesson-1", "module-1", "lesson", "Intro", {}),
        ("quiz-1", "module-1", "quiz", "Scenario quiz", SCENARIO_QUIZ),
        ("quiz-empty", "module-2", "quiz", "Empty quiz", {"questions": [], "maxAttempts": "3"}),
        ("assignment-1", "module-2", "assignment", "Essay",
         {"totalPoints": 20, "minPassPoints": 10, "allowResubmission": True, "closeDate": "2026-12-31"}),
        ("quiz-other", "module-9", "quiz", "Other course quiz", SCENARIO_QUIZ),
    ]
    for order, (item_id, module_id, item_type, title, meta) in enumerate(items):
        db.execute(
            "INSERT INTO module_items (id, module_id, type, title, summary, order_index, metadata, created_at) "
            "VALUES (?, ?, ?, ?, '', ?, ?, ?)",
            (item_id, module_id, item_type, title, order, json.dumps(meta), now),
        )

    db.execute("INSERT INTO cohorts (id, name, created_at) VALUES ('cohort-a', 'Cohort A', ?)", (now,))
    db.execute("INSERT INTO cohorts (id, name, created_at) VALUES ('cohort-b', 'Cohort B', ?)", (now,))
    db.execute(
        "INSERT INTO course_cohorts (cohort_id, course_id, settings) VALUES ('cohort-a', 'course-1', ?)",
        (json.dumps({"isLocked": False}),),
    )
    db.execute(
        "INSERT INTO course_cohorts (cohort_id, course_id, settings) VALUES ('cohort-b', 'course-1', ?)",
        (json.dumps({"isLocked": True}),),
    )

    enrollments = [
        (1, "course-1", None),
        (1, "course-1", "cohort-a"),
        (1, "course-1", "cohort-b"),
        (2, "course-1", None),
    ]
    for student_id, course_id, cohort_id in enrollments:
        db.execute(
            "INSERT INTO course_enrollments (student_id, course_id, cohort_id, cohort_key, enrolled_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (student_id, course_id, cohort_id, cohort_id or "", now),
        )
    db.commit()


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "PROGRESS_RETRY_ATTEMPTS": 2,
    })

    with app.app_context():
        from database import init_db, run_migrations, get_db

        init_db()
        run_migrations()
        _seed(get_db())

    # Yielded outside the app context so every request gets a fresh one
    # (Flask-Login caches the loaded user on ``g``).
    yield app


@pytest.fixture
def client(app):
    """Test client; authenticate by passing one of the header fixtures."""
    return app.test_client()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers():
    return bearer(STUDENT_TOKEN)


@pytest.fixture
def other_headers():
    return bearer(OTHER_TOKEN)


@pytest.fixture
def tutor_headers():
    return bearer(TUTOR_TOKEN)


@pytest.fixture
def db(app):
    """Direct database access for store tests (do not mix with client calls)."""
    with app.app_context():
        from database import get_db
        yield get_db()
