import uuid

from fastapi import Request


def _meta(request: Request, **extra: object) -> dict:
    meta: dict[str, object] = {"request_id": getattr(request.state, "request_id", None) or str(uuid.uuid4())}
    meta.update(extra)
    return meta


def envelope(request: Request, data: dict | None, error: dict | None = None) -> dict:
    return {"data": data, "meta": _meta(request), "error": error}


def exception_envelope(request: Request, status_code: int, message: str, code: str, details: dict | None = None) -> dict:
    error = {"code": code, "message": message, "details": details or {}}
    return {"success": False, "errors": [error], "meta": _meta(request, status_code=status_code)}
