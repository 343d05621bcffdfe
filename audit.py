"""
Audit logging — records grading and access events.

Events are written to both the audit_log table and structured logging.
"""

from __future__ import annotations

import logging
from datetime import datetime

from flask import has_request_context, request

from database import fetchall, get_db

logger = logging.getLogger(__name__)

# Actions written by the engine
QUIZ_ATTEMPT = "quiz_attempt"
ASSIGNMENT_SUBMITTED = "assignment_submitted"
ASSIGNMENT_GRADED = "assignment_graded"
ACCESS_DENIED = "access_denied"


def log_event(action: str, user_id: int | None = None, detail: str = "") -> None:
    """Insert an audit log entry and emit a structured log line."""
    ip = (request.remote_addr or "") if has_request_context() else ""
    ua = request.headers.get("User-Agent", "") if has_request_context() else ""
    now = datetime.now().isoformat()

    db = get_db()
    try:
        db.execute(
            "INSERT INTO audit_log (user_id, action, detail, ip_address, user_agent, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, action, detail, ip, ua, now),
        )
        db.commit()
    except db.DatabaseError as exc:
        # The audited action has already been committed
        db.rollback()
        logger.warning("audit write failed for %s: %s", action, exc)

    logger.info("audit: %s user_id=%s detail=%s ip=%s", action, user_id, detail, ip)


def recent_events(user_id: int | None = None, limit: int = 50) -> list[dict]:
    """Latest audit rows, optionally for one user."""
    if user_id is None:
        rows = fetchall("SELECT * FROM audit_log ORDER BY id DESC LIMIT ?", (limit,))
    else:
        rows = fetchall(
            "SELECT * FROM audit_log WHERE user_id = ? ORDER BY id DESC LIMIT ?", (user_id, limit),
        )
    return [dict(r) for r in rows]
