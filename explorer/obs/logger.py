"""Structured JSON logging to stdout.

One JSON object per line, safe for production stdout collectors.
"""

from typing import Any, Dict
from datetime import datetime, timezone
import json

from explorer.obs.context import request_id_var, origin_var, theme_var

_SECRET_FIELDS = ("client_secret", "access_token", "authorization")


def log_event(event: str, **fields: Any) -> None:
    now = datetime.now(timezone.utc).isoformat()
    payload: Dict[str, Any] = {
        "ts": now,
        "level": fields.pop("level", "INFO"),
        "event": event,
        "request_id": request_id_var.get(),
    }
    origin = origin_var.get()
    theme = theme_var.get()
    if origin:
        payload["origin"] = origin
    if theme:
        payload["theme"] = theme

    for k, v in fields.items():
        payload[k] = "***" if k.lower() in _SECRET_FIELDS else v

    try:
        print(json.dumps(payload, separators=(",", ":"), default=str))
    except (TypeError, ValueError):
        print(json.dumps({"ts": now, "level": "ERROR", "event": "log_encode_failed", "for_event": event}))
