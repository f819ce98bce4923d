"""
Uniform response envelope.

Every endpoint answers with ``{status, success, message, data}`` and the HTTP
status code mirrors ``status``.
"""

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    status_code: int,
    success: bool,
    message: str,
    data: Optional[Any] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_code,
            "success": success,
            "message": message,
            "data": jsonable_encoder(data),
        },
    )


def ok(message: str, data: Optional[Any] = None, status_code: int = 200) -> JSONResponse:
    return api_response(status_code, True, message, data)


def created(message: str, data: Optional[Any] = None) -> JSONResponse:
    return api_response(201, True, message, data)

