"""Learner session identity.

A session id is an opaque token that stands for one learner device/browser.
The tracker never looks it up itself; callers hand it a provider, a
zero-argument callable returning the current id or None when the learner
has no session yet.
"""

import secrets
from typing import Callable, Optional

from fastapi import Request

SESSION_HEADER = "X-Session-Id"
NO_SESSION_MESSAGE = "No learner session"

SessionProvider = Callable[[], Optional[str]]


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


def static_session(session_id: Optional[str]) -> SessionProvider:
    """Provider for a session id the caller already holds."""
    value = (session_id or "").strip() or None
    return lambda: value


def header_session(request: Request) -> SessionProvider:
    """Provider reading the session id from the request's X-Session-Id header."""
    return static_session(request.headers.get(SESSION_HEADER))
