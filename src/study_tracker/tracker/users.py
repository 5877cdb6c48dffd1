# src/study_tracker/tracker/users.py

from __future__ import annotations

import logging
import re
from typing import Any

from ..core.errors import ValidationError
from ..core.state import AppState
from .lifecycle import require_user
from .models import User

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,20}$")
MAX_NAME_LENGTH = 50


def register_user(state: AppState, *, username: Any, name: Any) -> User:
    """
    Create a user record. Credentials are checked by the session layer in front of
    the core and are not stored here.
    """
    if not isinstance(username, str) or not isinstance(name, str) or not username or not name:
        raise ValidationError("Username and name are required")
    if not USERNAME_RE.match(username):
        raise ValidationError("Username must be 3-20 chars, alphanumeric or underscore only")
    name = name.strip()
    if not name or len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name must be 1-{MAX_NAME_LENGTH} characters")

    with state.store.transaction() as tx:
        user_id = tx.insert_user(username=username, name=name, now_ts=state.clock.now_ts())
        user = require_user(tx, user_id)

    logger.info("User registered id=%s username=%s", user.id, user.username)
    return user


def get_user(state: AppState, user_id: int) -> User:
    with state.store.snapshot() as s:
        return require_user(s, user_id)


def find_user(state: AppState, username: str) -> User | None:
    with state.store.snapshot() as s:
        return s.get_user_by_username(username)


def list_users(state: AppState) -> list[User]:
    with state.store.snapshot() as s:
        return s.list_users()
