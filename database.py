"""
SQLite database layer for the classroom engine.

Uses raw sqlite3 with WAL mode and parameterized queries; PostgreSQL is
reached through pg_compat when DATABASE is a postgresql:// URL.
A schema_version table handles migrations.

Submission and progress tables carry both ``cohort_id`` (NULL for direct
enrollment, what readers filter on) and ``cohort_key`` ('' for direct
enrollment) so the composite UNIQUE constraints also bind direct rows.
"""

from __future__ import annotations

import fcntl
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from flask import current_app, g

from errors import Conflict, StoreUnavailable

logger = logging.getLogger(__name__)


SCHEMA = """
-- Migration tracking
CREATE TABLE IF NOT EXISTS schema_version (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    version INTEGER NOT NULL,
    applied_at TEXT NOT NULL
);

-- Users (identity is owned elsewhere; this is the token lookup mirror)
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT UNIQUE,
    role TEXT NOT NULL DEFAULT 'student',
    api_token_hash TEXT UNIQUE,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Curriculum catalog: courses -> modules -> items
CREATE TABLE IF NOT EXISTS courses (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'draft',
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS course_modules (
    id TEXT PRIMARY KEY,
    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
    title TEXT NOT NULL DEFAULT '',
    order_index INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_course_modules_course ON course_modules(course_id, order_index);

CREATE TABLE IF NOT EXISTS module_items (
    id TEXT PRIMARY KEY,
    module_id TEXT NOT NULL REFERENCES course_modules(id) ON DELETE CASCADE,
    type TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    summary TEXT NOT NULL DEFAULT '',
    order_index INTEGER NOT NULL DEFAULT 0,
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_module_items_module ON module_items(module_id, order_index);

-- Cohorts and enrollment paths
CREATE TABLE IF NOT EXISTS cohorts (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS course_cohorts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cohort_id TEXT NOT NULL REFERENCES cohorts(id) ON DELETE CASCADE,
    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
    settings TEXT NOT NULL DEFAULT '{}',
    UNIQUE(cohort_id, course_id)
);

CREATE TABLE IF NOT EXISTS course_enrollments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
    cohort_id TEXT,
    cohort_key TEXT NOT NULL DEFAULT '',
    enrolled_at TEXT NOT NULL DEFAULT '',
    UNIQUE(student_id, course_id, cohort_key)
);

-- Quiz attempts: append-only, one row per attempt
CREATE TABLE IF NOT EXISTS quiz_submissions (
    id TEXT PRIMARY KEY,
    student_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    course_id TEXT NOT NULL,
    cohort_id TEXT,
    cohort_key TEXT NOT NULL DEFAULT '',
    quiz_id TEXT NOT NULL,
    attempt_number INTEGER NOT NULL,
    score INTEGER NOT NULL DEFAULT 0,
    total_questions INTEGER NOT NULL DEFAULT 0,
    percentage REAL NOT NULL DEFAULT 0.0,
    passed INTEGER NOT NULL DEFAULT 0,
    answers TEXT NOT NULL DEFAULT '[]',
    results TEXT,
    created_at TEXT NOT NULL DEFAULT '',
    UNIQUE(student_id, quiz_id, cohort_key, attempt_number)
);

-- Assignment submissions: one row per scope, updated on resubmission
CREATE TABLE IF NOT EXISTS assignment_submissions (
    id TEXT PRIMARY KEY,
    student_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    course_id TEXT NOT NULL,
    cohort_id TEXT,
    cohort_key TEXT NOT NULL DEFAULT '',
    item_id TEXT NOT NULL,
    submission_data TEXT NOT NULL DEFAULT '{}',
    status TEXT NOT NULL DEFAULT 'submitted',
    grade_data TEXT,
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT '',
    UNIQUE(student_id, item_id, cohort_key)
);

-- Progress ledger: one row per scope
CREATE TABLE IF NOT EXISTS student_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    course_id TEXT NOT NULL,
    item_id TEXT NOT NULL,
    cohort_id TEXT,
    cohort_key TEXT NOT NULL DEFAULT '',
    is_completed INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT,
    updated_at TEXT NOT NULL DEFAULT '',
    UNIQUE(student_id, item_id, cohort_key)
);

-- Audit trail
CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    action TEXT NOT NULL,
    detail TEXT NOT NULL DEFAULT '',
    ip_address TEXT NOT NULL DEFAULT '',
    user_agent TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT ''
);
"""


# Versioned migrations: (version, sql)
MIGRATIONS = [
    # Migration 2: lookup indexes for scoped reads
    (2, """
        CREATE INDEX IF NOT EXISTS idx_quiz_submissions_scope
            ON quiz_submissions(student_id, quiz_id, cohort_key, created_at);
        CREATE INDEX IF NOT EXISTS idx_assignment_submissions_item
            ON assignment_submissions(item_id, course_id, cohort_id);
        CREATE INDEX IF NOT EXISTS idx_student_progress_course
            ON student_progress(student_id, course_id, cohort_key);
        CREATE INDEX IF NOT EXISTS idx_course_enrollments_student
            ON course_enrollments(student_id, course_id);
    """),

    # Migration 3: audit lookups by user
    (3, """
        CREATE INDEX IF NOT EXISTS idx_audit_log_user_created ON audit_log(user_id, created_at);
    """),
]


def _is_postgres() -> bool:
    """Check if the configured database is PostgreSQL."""
    from pg_compat import is_postgres_url
    db_url = current_app.config.get("DATABASE", "")
    return is_postgres_url(db_url)


def get_db():
    """Return a DB connection from Flask g, creating if needed.

    Supports both SQLite (default) and PostgreSQL (when DATABASE starts
    with postgresql:// or postgres://).
    """
    if "db" not in g:
        db_url = current_app.config.get("DATABASE", str(Path(__file__).parent / "classroom.db"))

        from pg_compat import is_postgres_url, connect_pg
        if is_postgres_url(db_url):
            g.db = connect_pg(db_url)
            return g.db

        # Default: SQLite
        timeout = current_app.config.get("DB_BUSY_TIMEOUT", 5.0)
        g.db = sqlite3.connect(db_url, timeout=timeout)
        g.db.row_factory = sqlite3.Row
        g.db.execute("PRAGMA journal_mode=WAL")
        g.db.execute("PRAGMA foreign_keys=ON")
    return g.db


def close_db(e=None) -> None:
    """Teardown handler — close DB connection."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db() -> None:
    """Execute schema DDL to create all tables."""
    db = get_db()
    db.executescript(SCHEMA)
    db.commit()


def run_migrations() -> None:
    """Apply any unapplied versioned migrations.

    Uses file-based locking to prevent race conditions when multiple
    workers start simultaneously.
    """
    db_url = current_app.config.get("DATABASE", str(Path(__file__).parent / "classroom.db"))
    lock_file = None

    # File-based locking only for SQLite (PostgreSQL has its own locking)
    if not _is_postgres():
        lock_path = Path(db_url).with_suffix(".migration.lock")
        try:
            lock_file = open(lock_path, "w")
            fcntl.flock(lock_file, fcntl.LOCK_EX)
        except OSError:
            lock_file = None

    try:
        db = get_db()
        applied = {
            row["version"]
            for row in db.execute("SELECT version FROM schema_version").fetchall()
        }
        if 1 not in applied:
            db.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (1, ?)",
                (datetime.now().isoformat(),),
            )
            db.commit()
        for version, sql in MIGRATIONS:
            if version not in applied:
                try:
                    db.executescript(sql)
                except db.OperationalError as e:
                    err_msg = str(e).lower()
                    if "duplicate column" not in err_msg and "already exists" not in err_msg:
                        raise
                db.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now().isoformat()),
                )
                db.commit()
    finally:
        if lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
            lock_file.close()


def init_app(app) -> None:
    """Register teardown and auto-init on first request."""
    app.teardown_appcontext(close_db)

    @app.before_request
    def _ensure_db():
        if not getattr(app, "_db_initialized", False):
            init_db()
            run_migrations()
            app._db_initialized = True


# ── Transactions & error translation ──────────────────────────────────


@contextmanager
def atomic():
    """Run the block in one write transaction.

    SQLite takes the write lock up front (BEGIN IMMEDIATE) so a
    read-then-insert inside the block cannot interleave with another
    writer; PostgreSQL runs the block SERIALIZABLE.
    """
    db = get_db()
    if isinstance(db, sqlite3.Connection) and db.in_transaction:
        # Uncommitted writes from the caller would be folded into this block
        logger.error("atomic() entered with an open transaction")
        raise RuntimeError("atomic() requires no open transaction; commit or roll back first")
    with store_errors(db):
        if isinstance(db, sqlite3.Connection):
            db.execute("BEGIN IMMEDIATE")
        else:
            db.begin_serializable()
        try:
            yield db
        except BaseException:
            db.rollback()
            raise
        db.commit()


@contextmanager
def store_errors(db):
    """Translate driver exceptions into engine errors.

    Unique/foreign-key violations become Conflict; any other driver error
    (locked database, lost connection, serialization failure) becomes
    StoreUnavailable.
    """
    try:
        yield
    except db.IntegrityError as exc:
        logger.warning("store conflict: %s", exc)
        raise Conflict() from exc
    except getattr(db, "TransactionRollbackError", ()) as exc:
        logger.warning("serialization failure: %s", exc)
        raise Conflict() from exc
    except db.DatabaseError as exc:
        logger.error("store unavailable: %s", exc, exc_info=True)
        raise StoreUnavailable() from exc


def fetchone(sql: str, params: tuple = ()):
    """Single-row read with driver errors translated."""
    db = get_db()
    with store_errors(db):
        return db.execute(sql, params).fetchone()


def fetchall(sql: str, params: tuple = ()) -> list:
    """Multi-row read with driver errors translated."""
    db = get_db()
    with store_errors(db):
        return db.execute(sql, params).fetchall()
