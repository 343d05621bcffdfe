"""Student classroom routes: quizzes, assignments and progress."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

import engine
from enrollment import enrolled_courses
from extensions import limiter, submit_rate_limit
from helpers import current_user_id, json_body

bp = Blueprint("classroom", __name__)


# ── Quizzes ────────────────────────────────────────────────

@bp.route("/api/student/classroom/quiz/<quiz_id>")
@login_required
def quiz_state(quiz_id):
    state = engine.fetch_quiz_state(current_user_id(), quiz_id, request.args.get("cohortId"))
    return jsonify(state)


@bp.route("/api/student/classroom/quiz/submit", methods=["POST"])
@login_required
@limiter.limit(submit_rate_limit)
def quiz_submit():
    data = json_body()
    result = engine.submit_quiz_attempt(
        current_user_id(),
        course_id=data.get("courseId"),
        quiz_id=data.get("quizId"),
        answers=data.get("answers"),
        cohort_id=data.get("cohortId"),
    )
    return jsonify(result)


# ── Assignments ────────────────────────────────────────────

@bp.route("/api/student/classroom/assignment/submit", methods=["POST"])
@login_required
@limiter.limit(submit_rate_limit)
def assignment_submit():
    data = json_body()
    submission = engine.submit_assignment(
        current_user_id(),
        course_id=data.get("courseId"),
        assignment_id=data.get("assignmentId"),
        attachments=data.get("attachments"),
        comment=data.get("comment"),
        cohort_id=data.get("cohortId"),
    )
    return jsonify(submission)


@bp.route("/api/student/classroom/assignment/submission")
@login_required
def assignment_submission():
    assignment_id = request.args.get("assignmentId") or request.args.get("itemId")
    submission = engine.get_assignment_submission(
        current_user_id(), assignment_id, request.args.get("cohortId"),
    )
    return jsonify(submission)


# ── Progress ───────────────────────────────────────────────

@bp.route("/api/student/classroom/progress")
@login_required
def progress_list():
    records = engine.get_progress(
        current_user_id(), request.args.get("courseId"), request.args.get("cohortId"),
        item_id=request.args.get("itemId"),
    )
    return jsonify(records)


@bp.route("/api/student/classroom/progress", methods=["POST"])
@login_required
def progress_set():
    data = json_body()
    record = engine.set_progress(
        current_user_id(),
        course_id=data.get("courseId"),
        item_id=data.get("itemId"),
        is_completed=data.get("isCompleted"),
        cohort_id=data.get("cohortId"),
    )
    return jsonify(record)


# ── Courses ────────────────────────────────────────────────

@bp.route("/api/student/courses")
@login_required
def my_courses():
    return jsonify(enrolled_courses(current_user_id()))


@bp.route("/api/student/courses/<course_id>/progress")
@login_required
def course_progress(course_id):
    summary = engine.course_progress(current_user_id(), course_id, request.args.get("cohortId"))
    return jsonify(summary)
