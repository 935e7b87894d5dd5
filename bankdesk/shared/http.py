from typing import Any, Optional

def ok(message: str = "OK", data: Any = None, **extra) -> dict:
    body = {"success": True, "message": message, **extra}
    if data is not None:
        body["data"] = data
    return body

def fail(message: str, data: Any = None, errors: Optional[list] = None) -> dict:
    body: dict = {"success": False, "message": message}
    if data is not None:
        body["data"] = data
    if errors:
        body["errors"] = errors
    return body
