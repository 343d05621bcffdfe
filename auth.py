"""
User authentication — Flask-Login bearer-token loader.

Identity is issued elsewhere; this service only maps an
``Authorization: Bearer <token>`` header to a user. Tokens are stored as
sha256 digests in ``users.api_token_hash``.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Optional

from flask import jsonify
from flask_login import LoginManager, UserMixin

from database import atomic, fetchone

logger = logging.getLogger(__name__)

ROLE_STUDENT = "student"
ROLE_TUTOR = "tutor"
ROLE_ADMIN = "admin"

login_manager = LoginManager()


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class User(UserMixin):
    """Wraps a DB user row for Flask-Login."""

    def __init__(self, id: int, name: str, email: str, role: str = ROLE_STUDENT):
        self.id = id
        self.name = name
        self.email = email
        self.role = role

    @property
    def is_tutor(self) -> bool:
        return self.role in (ROLE_TUTOR, ROLE_ADMIN)

    @staticmethod
    def _from_row(row) -> User:
        return User(row["id"], row["name"], row["email"], row["role"] or ROLE_STUDENT)

    @staticmethod
    def get(user_id: int) -> Optional[User]:
        row = fetchone("SELECT id, name, email, role FROM users WHERE id = ?", (user_id,))
        return User._from_row(row) if row else None

    @staticmethod
    def get_by_token(token: str) -> Optional[User]:
        row = fetchone(
            "SELECT id, name, email, role FROM users WHERE api_token_hash = ?", (hash_token(token),),
        )
        return User._from_row(row) if row else None


def issue_token(user_id: int) -> str:
    """Create a new API token for a user, replacing any previous one."""
    token = secrets.token_urlsafe(32)
    with atomic() as db:
        db.execute("UPDATE users SET api_token_hash = ? WHERE id = ?", (hash_token(token), user_id))
    return token


@login_manager.request_loader
def load_user_from_request(request):
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    user = User.get_by_token(token.strip())
    if user is None:
        logger.info("Rejected unknown bearer token")
    return user


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Unauthorized", "code": "unauthorized"}), 401
