"""
Ambient session context.

A session is any mutable mapping scoped to the current execution context
(thread or asyncio task). Web integrations bind their own session object
with ``start_session(session)``; otherwise a plain dict is created.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, MutableMapping, Optional

from kvcache.core.exceptions import ErrorCode, SessionError


logger = logging.getLogger(__name__)

Session = MutableMapping[str, Any]

_current_session: ContextVar[Optional[Session]] = ContextVar("kvcache_session", default=None)


def get_session() -> Optional[Session]:
    """Return the active session, or None when none is started."""
    return _current_session.get()


def start_session(session: Optional[Session] = None) -> Session:
    """
    Activate a session for the current context.

    Returns the already active session when one exists and no explicit
    session is given.

    Raises:
        SessionError: If ``session`` is not a mutable mapping
    """
    if session is None:
        active = _current_session.get()
        if active is not None:
            return active
        session = {}
    elif not isinstance(session, MutableMapping):
        raise SessionError(
            f"Session must be a mutable mapping, got {type(session).__name__}",
            error_code=ErrorCode.SESSION_INVALID
        )

    _current_session.set(session)
    logger.debug("Session started")
    return session


def end_session() -> None:
    """Deactivate the current session."""
    _current_session.set(None)


@contextmanager
def session_scope(session: Optional[Session] = None) -> Iterator[Session]:
    """Run a block with ``session`` (or a fresh dict) as the active session."""
    if session is not None and not isinstance(session, MutableMapping):
        raise SessionError(
            f"Session must be a mutable mapping, got {type(session).__name__}",
            error_code=ErrorCode.SESSION_INVALID
        )

    token = _current_session.set(session if session is not None else {})
    try:
        yield _current_session.get()
    finally:
        _current_session.reset(token)
