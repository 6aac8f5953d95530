"""Success envelope shared by every route."""

from typing import Any, Optional


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body
