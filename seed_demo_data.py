"""
Seed Demo Data — standalone script and ``flask seed-demo`` command.

Creates one published course with a lesson, a quiz, an assignment and a live
class; two cohorts (one locked); three students on different enrollment
paths; and one tutor. Every demo user gets a fixed API token so the JSON
API can be exercised with curl straight away.

Usage:
    python seed_demo_data.py           # Seed into the configured database
    python seed_demo_data.py --reset   # Clear demo data first
"""

from __future__ import annotations

import json
import sys
from datetime import datetime

from auth import hash_token

DEMO_COURSE_ID = "demo-course"
DEMO_COHORT_OPEN = "demo-cohort-a"
DEMO_COHORT_LOCKED = "demo-cohort-b"

DEMO_STUDENTS = [
    # (name, email, cohort paths; None = direct enrollment)
    {"name": "Alice Chen", "email": "alice@demo.classroom", "paths": [None, DEMO_COHORT_OPEN]},
    {"name": "Bob Tanaka", "email": "bob@demo.classroom", "paths": [DEMO_COHORT_OPEN]},
    {"name": "Clara Schmidt", "email": "clara@demo.classroom", "paths": [DEMO_COHORT_LOCKED]},
]

DEMO_TUTOR = {"name": "Dr. Sarah Patel", "email": "tutor@demo.classroom"}

DEMO_QUIZ = {
    "questions": [
        {"type": "multiple-choice", "question": "Capital of France?",
         "options": ["paris", "rome", "madrid", "berlin"], "correctAnswer": "paris"},
        {"type": "multiple-choice", "question": "6 x 7?",
         "options": ["41", "42", "43", "0"], "correctAnswer": "42"},
    ],
    "maxAttempts": 2,
    "passingGrade": 50,
}

DEMO_ASSIGNMENT = {
    "content": "Write a one-page summary of the lesson.",
    "totalPoints": 20,
    "minPassPoints": 10,
    "allowResubmission": True,
    "closeDate": "2026-12-31",
}

DEMO_ITEMS = [
    # (id, module, type, title, metadata)
    ("demo-lesson-1", "demo-module-1", "lesson", "Welcome", {}),
    ("demo-quiz-1", "demo-module-1", "quiz", "Warm-up quiz", DEMO_QUIZ),
    ("demo-assignment-1", "demo-module-2", "assignment", "Lesson summary", DEMO_ASSIGNMENT),
    ("demo-live-1", "demo-module-2", "live-class", "Office hours",
     {"date": "2026-11-02", "time": "17:00", "platform": "google_meet"}),
]


def demo_token(email: str) -> str:
    """Fixed token for a demo account."""
    return "demo-" + email.split("@")[0]


def seed(db, start_uid: int = 200) -> dict:
    """Seed demo data into the database. Returns summary dict."""
    now = datetime.now().isoformat()

    db.execute(
        "INSERT OR IGNORE INTO courses (id, title, description, status, created_at) "
        "VALUES (?, 'Demo Course', 'A short course for trying the classroom API.', 'published', ?)",
        (DEMO_COURSE_ID, now),
    )
    for order, module_id in enumerate(("demo-module-1", "demo-module-2")):
        db.execute(
            "INSERT OR IGNORE INTO course_modules (id, course_id, title, order_index) VALUES (?, ?, ?, ?)",
            (module_id, DEMO_COURSE_ID, f"Module {order + 1}", order),
        )
    for order, (item_id, module_id, item_type, title, meta) in enumerate(DEMO_ITEMS):
        db.execute(
            "INSERT OR IGNORE INTO module_items (id, module_id, type, title, summary, order_index, "
            "metadata, created_at) VALUES (?, ?, ?, ?, '', ?, ?, ?)",
            (item_id, module_id, item_type, title, order, json.dumps(meta), now),
        )

    for cohort_id, locked in ((DEMO_COHORT_OPEN, False), (DEMO_COHORT_LOCKED, True)):
        db.execute(
            "INSERT OR IGNORE INTO cohorts (id, name, created_at) VALUES (?, ?, ?)",
            (cohort_id, cohort_id.replace("-", " ").title(), now),
        )
        db.execute(
            "INSERT OR IGNORE INTO course_cohorts (cohort_id, course_id, settings) VALUES (?, ?, ?)",
            (cohort_id, DEMO_COURSE_ID, json.dumps({"isLocked": locked})),
        )

    tokens = {}
    for i, student in enumerate(DEMO_STUDENTS):
        uid = start_uid + i
        token = demo_token(student["email"])
        tokens[student["email"]] = token
        db.execute(
            "INSERT OR IGNORE INTO users (id, name, email, role, api_token_hash, created_at) "
            "VALUES (?, ?, ?, 'student', ?, ?)",
            (uid, student["name"], student["email"], hash_token(token), now),
        )
        for cohort_id in student["paths"]:
            db.execute(
                "INSERT OR IGNORE INTO course_enrollments (student_id, course_id, cohort_id, cohort_key, "
                "enrolled_at) VALUES (?, ?, ?, ?, ?)",
                (uid, DEMO_COURSE_ID, cohort_id, cohort_id or "", now),
            )

    tutor_uid = start_uid + len(DEMO_STUDENTS)
    tutor_token = demo_token(DEMO_TUTOR["email"])
    tokens[DEMO_TUTOR["email"]] = tutor_token
    db.execute(
        "INSERT OR IGNORE INTO users (id, name, email, role, api_token_hash, created_at) "
        "VALUES (?, ?, ?, 'tutor', ?, ?)",
        (tutor_uid, DEMO_TUTOR["name"], DEMO_TUTOR["email"], hash_token(tutor_token), now),
    )

    db.commit()

    return {
        "course_id": DEMO_COURSE_ID,
        "students_created": len(DEMO_STUDENTS),
        "tutor_id": tutor_uid,
        "items_seeded": len(DEMO_ITEMS),
        "tokens": tokens,
    }


def clear_demo(db, start_uid: int = 200) -> None:
    """Remove all demo data."""
    end_uid = start_uid + len(DEMO_STUDENTS) + 1
    uids = list(range(start_uid, end_uid))
    placeholders = ",".join("?" * len(uids))

    for table in ("quiz_submissions", "assignment_submissions", "student_progress", "course_enrollments"):
        db.execute(f"DELETE FROM {table} WHERE student_id IN ({placeholders})", uids)

    db.execute(f"DELETE FROM users WHERE id IN ({placeholders})", uids)
    item_ids = [item[0] for item in DEMO_ITEMS]
    db.execute(f"DELETE FROM module_items WHERE id IN ({','.join('?' * len(item_ids))})", item_ids)
    db.execute("DELETE FROM course_modules WHERE course_id = ?", (DEMO_COURSE_ID,))
    db.execute("DELETE FROM course_cohorts WHERE course_id = ?", (DEMO_COURSE_ID,))
    db.execute("DELETE FROM cohorts WHERE id IN (?, ?)", (DEMO_COHORT_OPEN, DEMO_COHORT_LOCKED))
    db.execute("DELETE FROM courses WHERE id = ?", (DEMO_COURSE_ID,))
    db.commit()


if __name__ == "__main__":
    from app import create_app
    from database import get_db, init_db, run_migrations

    app = create_app()
    with app.app_context():
        init_db()
        run_migrations()
        db = get_db()
        if "--reset" in sys.argv:
            clear_demo(db)
            print("[Seed] Demo data cleared.")
        result = seed(db)
        print(f"[Seed] Done: {result}")
