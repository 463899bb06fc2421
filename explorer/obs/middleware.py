"""ASGI middleware for lightweight observability."""

from typing import Callable, Any
import time
import uuid

from explorer.obs.context import request_id_var, clear_context
from explorer.obs.logger import log_event
from explorer.obs.metrics import record_timing, inc_counter

REQUEST_ID_HEADER = b"x-request-id"


class ObservabilityMiddleware:
    def __init__(self, app: Callable):
        self.app = app

    async def __call__(self, scope: dict, receive: Callable, send: Callable[[dict], Any]):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        clear_context()
        req_id = _incoming_request_id(scope) or str(uuid.uuid4())
        request_id_var.set(req_id)
        method = scope.get("method", "")
        route = scope.get("path", "")
        start = time.monotonic()
        status_code = 500

        async def send_wrapper(message: dict):
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 200))
                headers = list(message.get("headers", []))
                headers.append((REQUEST_ID_HEADER, req_id.encode()))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (time.monotonic() - start) * 1000.0
            record_timing("request_latency_ms", elapsed_ms, {"route": route})
            inc_counter("requests_total", {"route": route, "status": str(status_code)})
            log_event(
                "request",
                method=method,
                route=route,
                status=status_code,
                ms_total=round(elapsed_ms, 2),
            )


def _incoming_request_id(scope: dict):
    for name, value in scope.get("headers", []):
        if name.lower() == REQUEST_ID_HEADER:
            return value.decode("latin-1")[:64] or None
    return None
