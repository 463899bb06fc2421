"""Request context helpers using ContextVars.

Values set here are attached to every log line emitted while handling the
current request, including lines from concurrent price lookups spawned by it.
"""

from contextvars import ContextVar
from typing import Optional


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
origin_var: ContextVar[Optional[str]] = ContextVar("origin", default=None)
theme_var: ContextVar[Optional[str]] = ContextVar("theme", default=None)


def bind_search(origin: Optional[str], theme: Optional[str]) -> None:
    origin_var.set(origin)
    theme_var.set(theme)


def clear_context() -> None:
    """Reset context variables to defaults."""
    request_id_var.set(None)
    origin_var.set(None)
    theme_var.set(None)
