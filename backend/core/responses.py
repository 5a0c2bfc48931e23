# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Uniform response envelope for every HTTP endpoint.

    {"success": true,  "data": {...}, "error": null}
    {"success": false, "data": null,  "error": {"kind": "...", "message": "..."}}
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ErrorBody(BaseModel):
    kind: str        # an ErrorKind value, or "http_error"
    message: str


class Envelope(BaseModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[ErrorBody] = None


def ok(data: Any = None) -> dict:
    return {"success": True, "data": data, "error": None}


def fail(kind: str, message: str, data: Any = None) -> dict:
    return {"success": False, "data": data, "error": {"kind": kind, "message": message}}
