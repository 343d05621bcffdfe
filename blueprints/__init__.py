"""
Blueprint registration for the classroom service.

Routes carry their full /api/... paths, so blueprints are registered
without URL prefixes.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.classroom import bp as classroom_bp
    from blueprints.tutor import bp as tutor_bp

    app.register_blueprint(classroom_bp)
    app.register_blueprint(tutor_bp)
