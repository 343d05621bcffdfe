"""
Shared Flask extensions.

The limiter is created here, unbound, so blueprints can decorate routes
before create_app() calls ``limiter.init_app(app)``.
"""

from __future__ import annotations

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address


def _rate_limit_key() -> str:
    """Limit per authenticated user, falling back to the client address."""
    from flask_login import current_user

    if current_user and current_user.is_authenticated:
        return f"user:{current_user.id}"
    return get_remote_address()


limiter = Limiter(key_func=_rate_limit_key)


def submit_rate_limit() -> str:
    """Limit string for submission endpoints, read from config per request."""
    return current_app.config.get("SUBMIT_RATE_LIMIT", "30 per minute")
