"""Tests for the tutor grading endpoints."""

from __future__ import annotations


def _submit_assignment(client, headers, cohort_id=None):
    resp = client.post("/api/student/classroom/assignment/submit", headers=headers, json={
        "courseId": "course-1", "assignmentId": "assignment-1",
        "attachments": [], "comment": "done", "cohortId": cohort_id,
    })
    assert resp.status_code == 200
    return resp.get_json()


class TestListSubmissions:
    def test_filters_and_student_names(self, client, student_headers, other_headers, tutor_headers):
        _submit_assignment(client, student_headers, "cohort-a")
        _submit_assignment(client, other_headers)

        resp = client.get("/api/tutor/submissions?itemId=assignment-1", headers=tutor_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["pagination"]["total"] == 2
        assert {s["student_name"] for s in data["items"]} == {"Test Student", "Other Student"}

        resp = client.get("/api/tutor/submissions?courseId=course-1&cohortId=cohort-a", headers=tutor_headers)
        assert [s["student_id"] for s in resp.get_json()["items"]] == [1]

        resp = client.get("/api/tutor/submissions?courseId=course-1&cohortId=all", headers=tutor_headers)
        assert resp.get_json()["pagination"]["total"] == 2

    def test_pagination(self, client, student_headers, other_headers, tutor_headers):
        _submit_assignment(client, student_headers)
        _submit_assignment(client, other_headers)
        data = client.get("/api/tutor/submissions?courseId=course-1&limit=1&page=2",
                          headers=tutor_headers).get_json()
        assert len(data["items"]) == 1
        assert data["pagination"] == {"page": 2, "limit": 1, "total": 2, "pages": 2}

    def test_requires_filter(self, client, tutor_headers):
        resp = client.get("/api/tutor/submissions", headers=tutor_headers)
        assert resp.status_code == 400

    def test_students_forbidden(self, client, student_headers):
        resp = client.get("/api/tutor/submissions?courseId=course-1", headers=student_headers)
        assert resp.status_code == 403

    def test_anonymous_unauthorized(self, client):
        resp = client.get("/api/tutor/submissions?courseId=course-1")
        assert resp.status_code == 401


class TestGradeSubmission:
    def test_grade(self, client, other_headers, tutor_headers):
        sub = _submit_assignment(client, other_headers)
        resp = client.post("/api/tutor/submissions", headers=tutor_headers, json={
            "submissionId": sub["id"], "points": 17, "feedback": "Solid",
        })
        assert resp.status_code == 200
        graded = resp.get_json()
        assert graded["status"] == "graded"
        assert graded["grade_data"]["points"] == 17
        assert graded["grade_data"]["grader_id"] == 3

        # the student sees the grade on their own submission
        own = client.get("/api/student/classroom/assignment/submission?assignmentId=assignment-1",
                         headers=other_headers).get_json()
        assert own["status"] == "graded"
        assert own["grade_data"]["feedback"] == "Solid"

    def test_points_out_of_range(self, client, other_headers, tutor_headers):
        sub = _submit_assignment(client, other_headers)
        resp = client.post("/api/tutor/submissions", headers=tutor_headers, json={
            "submissionId": sub["id"], "points": 99,
        })
        assert resp.status_code == 400

    def test_unknown_submission(self, client, tutor_headers):
        resp = client.post("/api/tutor/submissions", headers=tutor_headers, json={
            "submissionId": "missing", "points": 1,
        })
        assert resp.status_code == 404

    def test_student_cannot_grade(self, client, other_headers):
        sub = _submit_assignment(client, other_headers)
        resp = client.post("/api/tutor/submissions", headers=other_headers, json={
            "submissionId": sub["id"], "points": 20,
        })
        assert resp.status_code == 403


class TestCourseAssignments:
    def test_list(self, client, tutor_headers):
        resp = client.get("/api/tutor/courses/course-1/assignments", headers=tutor_headers)
        assert resp.status_code == 200
        [assignment] = resp.get_json()
        assert assignment["id"] == "assignment-1"
        assert assignment["totalPoints"] == 20
        assert assignment["minPassPoints"] == 10
        assert assignment["allowResubmission"] is True
        assert assignment["dueDate"] == "2026-12-31"
        assert assignment["moduleTitle"] == "Practice"

    def test_unknown_course(self, client, tutor_headers):
        resp = client.get("/api/tutor/courses/nope/assignments", headers=tutor_headers)
        assert resp.status_code == 404
