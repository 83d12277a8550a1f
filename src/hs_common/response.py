"""Unified response wrappers.

HTTP endpoints return this envelope:
{
    "code": 0,           // 0=success, non-0=error code
    "message": "success",
    "data": { ... },     // null on error
    "timestamp": "...",
    "request_id": "..."
}

Realtime (WebSocket) frames use {"event": "...", "data": {...}}; error frames
carry the same code/message pair as the HTTP envelope so clients branch on
one set of codes.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from src.hs_common.errors import AppError


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")


def success_response(data: Any = None) -> ApiResponse:
    return ApiResponse(code=0, message="success", data=data)


def error_response(code: int, message: str) -> ApiResponse:
    return ApiResponse(code=code, message=message, data=None)


def ws_frame(event: str, data: Any = None) -> dict[str, Any]:
    """Build an outbound realtime frame."""
    return {"event": event, "data": data}


def ws_error_payload(exc: AppError) -> dict[str, Any]:
    return {"code": exc.code, "kind": exc.kind, "message": exc.message}


def ws_error_frame(exc: AppError) -> dict[str, Any]:
    return ws_frame("error", ws_error_payload(exc))
