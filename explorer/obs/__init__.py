"""Observability for the explorer service.

Structured JSON logging, request-scoped context, in-process metrics and the
ASGI middleware that ties them to each HTTP request.
"""

__all__ = [
    "middleware",
    "metrics",
    "logger",
    "context",
]
