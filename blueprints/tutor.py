"""Tutor routes: submission listing and grading."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

import engine
from extensions import limiter, submit_rate_limit
from helpers import current_user_id, json_body, paginate_args, paginated_response, tutor_required

bp = Blueprint("tutor", __name__)


@bp.route("/api/tutor/submissions")
@tutor_required
def list_submissions():
    page, limit = paginate_args()
    items, total = engine.list_submissions(
        item_id=request.args.get("itemId"),
        course_id=request.args.get("courseId"),
        cohort_id=request.args.get("cohortId"),
        page=page,
        limit=limit,
    )
    return jsonify(paginated_response(items, total, page, limit))


@bp.route("/api/tutor/submissions", methods=["POST"])
@tutor_required
@limiter.limit(submit_rate_limit)
def grade_submission():
    data = json_body()
    graded = engine.grade_assignment(
        current_user_id(),
        submission_id=data.get("submissionId"),
        points=data.get("points"),
        feedback=data.get("feedback"),
    )
    return jsonify(graded)


@bp.route("/api/tutor/courses/<course_id>/assignments")
@tutor_required
def course_assignments(course_id):
    return jsonify(engine.course_assignments(course_id))
