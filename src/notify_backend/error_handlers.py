"""统一异常处理（ErrorResponse）。

所有端点出错时返回同一 JSON 结构：{error, message, request_id, details}。
- InvalidParameterError -> 400 bad_request
- NotFoundError / 未知路径 -> 404 not_found
- 请求参数/请求体校验失败 -> 422 validation_error
- StorageError 与未处理异常 -> 500 internal_error（仅记录日志，不向客户端暴露细节）
"""

from __future__ import annotations

import logging
from typing import cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from notify_backend.errors import StorageError
from notify_backend.schemas_common import ErrorResponse

logger = logging.getLogger(__name__)

_ERROR_CODES: dict[int, str] = {
    400: "bad_request",
    404: "not_found",
    422: "validation_error",
}


def _error_response(
    request: Request,
    *,
    status_code: int,
    error: str,
    message: str,
    details: object | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(
        error=error,
        message=message,
        request_id=getattr(request.state, "request_id", None),
        details=details,
    )
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(payload, exclude_none=True),
        headers=headers,
    )


def _split_detail(detail: object) -> tuple[str, object | None]:
    # 约定：NotFoundError 等可携带 {'message': str, 'details': object}
    if isinstance(detail, dict):
        msg = cast(dict[str, object], detail).get("message")
        if isinstance(msg, str):
            return msg, cast(dict[str, object], detail).get("details")
        return str(detail), detail
    if isinstance(detail, list):
        return str(detail), detail
    return str(detail), None


async def _http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(StarletteHTTPException, exc)
    message, details = _split_detail(http_exc.detail)
    return _error_response(
        request,
        status_code=http_exc.status_code,
        error=_ERROR_CODES.get(http_exc.status_code, f"http_{http_exc.status_code}"),
        message=message,
        details=details,
        headers=getattr(http_exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    validation_exc = cast(RequestValidationError, exc)
    return _error_response(
        request,
        status_code=422,
        error="validation_error",
        message="Request validation error",
        details=validation_exc.errors(),
    )


async def _internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # 记录带请求上下文的完整异常；响应保持通用文案
    kind = "storage error" if isinstance(exc, StorageError) else "unhandled exception"
    logger.exception(
        "%s request_id=%s method=%s path=%s",
        kind,
        getattr(request.state, "request_id", None),
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _error_response(
        request,
        status_code=500,
        error="internal_error",
        message="Internal server error",
    )


def register_error_handlers(app: FastAPI) -> None:
    """为 FastAPI 应用注册统一异常处理。"""

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StorageError, _internal_error_handler)
    app.add_exception_handler(Exception, _internal_error_handler)
