"""Database package."""

from dandi.db.session import (
    close_db,
    ensure_configured,
    get_async_session,
    get_session_dependency,
    init_db,
)

__all__ = [
    "close_db",
    "ensure_configured",
    "get_async_session",
    "get_session_dependency",
    "init_db",
]
