"""
Cohort Classroom — Flask Web Application

JSON API for the assessment and progress engine: quiz attempts, assignment
submissions, tutor grading and per-cohort course progress.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import click
from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

import database
from auth import login_manager
from blueprints import register_blueprints
from errors import EngineError
from extensions import limiter

logger = logging.getLogger(__name__)


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config.get("SECRET_KEY", os.environ.get("SECRET_KEY", "dev-key-change-in-production"))

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Register database teardown
    database.init_app(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    # Bearer-token login manager
    login_manager.init_app(app)

    # Register all application blueprints
    register_blueprints(app)

    # ── Error handling ─────────────────────────────────────

    @app.errorhandler(EngineError)
    def handle_engine_error(exc: EngineError):
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.code, exc.message, exc_info=exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        if exc.code is None or exc.code < 400:
            # Routing redirects keep their normal response
            return exc.get_response()
        code = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"error": exc.description, "code": code}), exc.code

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["Cache-Control"] = "no-store"
        if not app.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # ── CLI ────────────────────────────────────────────────

    @app.cli.command("init-db")
    def init_db_command():
        """Create tables and apply migrations."""
        database.init_db()
        database.run_migrations()
        click.echo("Database initialised.")

    @app.cli.command("seed-demo")
    @click.option("--reset", is_flag=True, help="Clear demo data first.")
    def seed_demo_command(reset: bool):
        """Seed a demo course, cohorts, students and a tutor."""
        from seed_demo_data import clear_demo, seed

        database.init_db()
        database.run_migrations()
        db = database.get_db()
        if reset:
            clear_demo(db)
            click.echo("Demo data cleared.")
        result = seed(db)
        for email, token in result["tokens"].items():
            click.echo(f"{email}: {token}")
        click.echo(f"Seeded course {result['course_id']}.")

    @app.cli.command("issue-token")
    @click.argument("user_id", type=int)
    def issue_token_command(user_id: int):
        """Print a fresh API token for a user; the old one stops working."""
        from auth import User, issue_token

        user = User.get(user_id)
        if user is None:
            raise click.ClickException(f"No user with id {user_id}")
        click.echo(f"{user.email}: {issue_token(user.id)}")

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
