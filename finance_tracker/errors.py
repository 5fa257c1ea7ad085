"""
errors.py
---------
Error taxonomy raised by the service layer and the handlers that turn
every failure into the JSON error envelope.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from finance_tracker.logger import get_logger

logger = get_logger(__name__)

HTTP_CODES = {413: "PAYLOAD_TOO_LARGE"}


class ApiError(Exception):
    """An error with an HTTP status and a machine-readable code."""

    def __init__(self, status_code: int, code: str, message: str, details: Optional[List[dict]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


def bad_request(code: str, message: str, details: Optional[List[dict]] = None) -> ApiError:
    return ApiError(400, code, message, details)


def unauthorized(code: str, message: str) -> ApiError:
    return ApiError(401, code, message)


def forbidden(code: str, message: str) -> ApiError:
    return ApiError(403, code, message)


def not_found(code: str, message: str) -> ApiError:
    return ApiError(404, code, message)


def conflict(code: str, message: str) -> ApiError:
    return ApiError(409, code, message)


def too_many_requests(code: str, message: str) -> ApiError:
    return ApiError(429, code, message)


# ----------------------
# Envelope
# ----------------------

def correlation_id(request: Request) -> str:
    cid = getattr(request.state, "correlation_id", None)
    if not cid:
        cid = request.headers.get("x-correlation-id") or uuid.uuid4().hex
        request.state.correlation_id = cid
    return cid


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[List[dict]] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "success": False,
        "error": message,
        "code": code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "correlationId": correlation_id(request),
    }
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _field_path(loc) -> str:
    # drop the "body"/"query" prefix FastAPI puts in front of the field path
    parts = [str(p) for p in loc]
    if parts and parts[0] in ("body", "query", "path", "header"):
        parts = parts[1:]
    return ".".join(parts)


def validation_details(errors) -> List[dict]:
    details = []
    for err in errors:
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({
            "field": _field_path(err.get("loc", ())),
            "message": message,
            "code": err.get("type", "invalid"),
        })
    return details


# ----------------------
# Handlers
# ----------------------

async def api_error_handler(request: Request, exc: ApiError):
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return error_response(request, exc.status_code, exc.code, exc.message, exc.details, headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = validation_details(exc.errors())
    logger.info(f"{request.method} {request.url.path} -> 400 VALIDATION_ERROR ({len(details)} field errors)")
    return error_response(request, 400, "VALIDATION_ERROR", "Validation failed", details)


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    logger.warning(f"{request.method} {request.url.path} -> 409 DUPLICATE_KEY_ERROR")
    return error_response(request, 409, "DUPLICATE_KEY_ERROR", "A record with these values already exists")


async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception(f"{request.method} {request.url.path} -> 503 DATABASE_ERROR")
    return error_response(request, 503, "DATABASE_ERROR", "Database temporarily unavailable")


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        message = f"Route {request.method} {request.url.path} not found"
    else:
        message = str(exc.detail)
    code = HTTP_CODES.get(exc.status_code, f"HTTP_{exc.status_code}")
    return error_response(request, exc.status_code, code, message,
                          headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} -> 500 INTERNAL_SERVER_ERROR")
    return error_response(request, 500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(PyMongoError, database_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
